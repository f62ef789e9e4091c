"""
Unit tests for publishing templates and the audit lifecycle.
"""

from datetime import datetime

import pytest

from conftest import make_rule
from retail_audit.core.audits import (
    new_audit,
    publish_template,
    record_response,
    set_status,
    start_audit,
    submit_audit,
)
from retail_audit.core.models import AuditStatus, ComplianceStatus
from retail_audit.core.validation import AuditIncompleteError, TemplateValidationError


class TestPublish:

    def test_publish_valid(self, template):
        published = publish_template(template)
        assert published.is_published is True
        assert template.is_published is False
        assert published.updated_at is not None

    def test_publish_invalid_raises(self, template):
        template.logic_rules = [make_rule("r1", "ghost", "Yes", "q2")]
        with pytest.raises(TemplateValidationError) as exc_info:
            publish_template(template)
        assert "ghost" in str(exc_info.value)
        assert exc_info.value.issues[0].code == "unknown_trigger"

    def test_publish_with_warnings(self, template):
        template.sections[2].order = 9
        assert publish_template(template).is_published is True


class TestLifecycle:

    def test_new_audit_requires_published_template(self, template):
        with pytest.raises(ValueError):
            new_audit(template, "user-1")

    def test_new_audit(self, template):
        audit = new_audit(publish_template(template), "user-1", "Alex", {"storeName": "Store 9"})
        assert audit.status == AuditStatus.PENDING
        assert audit.template_name == "Store Walk"
        assert audit.location.store_name == "Store 9"

    def test_status_is_a_plain_label(self, audit):
        assert set_status(audit, "overdue").status == AuditStatus.OVERDUE
        assert set_status(audit, AuditStatus.PENDING).status == AuditStatus.PENDING

    def test_start(self, audit):
        pending = set_status(audit, AuditStatus.PENDING)
        assert start_audit(pending).status == AuditStatus.IN_PROGRESS
        done = set_status(audit, AuditStatus.COMPLETED)
        assert start_audit(done).status == AuditStatus.COMPLETED

    def test_record_response(self, audit):
        pending = set_status(audit, AuditStatus.PENDING)
        updated = record_response(pending, "s1", "q1", "Yes")
        updated = record_response(updated, "s1", "q2", "ok")
        assert updated.responses == {"s1": {"q1": "Yes", "q2": "ok"}}
        assert updated.status == AuditStatus.IN_PROGRESS
        assert pending.responses == {}

    def test_record_response_on_completed_audit(self, audit):
        with pytest.raises(ValueError):
            record_response(set_status(audit, "completed"), "s1", "q1", "Yes")


class TestSubmit:

    def test_submit(self, audit, template, full_responses):
        audit.responses = full_responses
        now = datetime(2025, 3, 1, 12, 0)
        submitted = submit_audit(audit, template, now=now)
        assert submitted.status == AuditStatus.COMPLETED
        assert submitted.score == 100
        assert submitted.compliance_status == ComplianceStatus.COMPLIANT
        assert submitted.submitted_at == now

    def test_submit_partial_but_complete(self, audit, template):
        audit.responses = {"s1": {"q1": "Yes"}, "s2": {"q3": 0}, "s3": {"q5": "Poor"}}
        submitted = submit_audit(audit, template)
        # 30 of 60 points
        assert submitted.score == 50
        assert submitted.compliance_status == ComplianceStatus.NON_COMPLIANT

    def test_submit_missing_required(self, audit, template):
        audit.responses = {"s1": {"q1": "Yes"}}
        with pytest.raises(AuditIncompleteError) as exc_info:
            submit_audit(audit, template)
        assert exc_info.value.missing == ["q3", "q5"]

    def test_submit_invalid_answer(self, audit, template, full_responses):
        full_responses["s3"]["q5"] = "Terrible"
        audit.responses = full_responses
        with pytest.raises(AuditIncompleteError) as exc_info:
            submit_audit(audit, template)
        assert "q5" in exc_info.value.invalid

    def test_submit_ignores_bad_answer_in_skipped_section(self, audit, template):
        template.logic_rules = [make_rule("r1", "q1", "No", "s3", action="skip_to_section", section_target=True)]
        audit.responses = {"s1": {"q1": "No"}, "s2": {"q3": 900}, "s3": {"q5": "Good"}}
        submitted = submit_audit(audit, template)
        assert submitted.status == AuditStatus.COMPLETED

    def test_submit_with_broken_pattern_is_incomplete(self, audit, template, full_responses):
        template.sections[0].questions[1].validation_rules.pattern = "("
        audit.responses = full_responses
        with pytest.raises(AuditIncompleteError) as exc_info:
            submit_audit(audit, template)
        assert exc_info.value.invalid == {"q2": ["Question has an invalid pattern"]}

    def test_submit_wrong_template(self, audit, template, full_responses):
        audit.template_id = "other"
        audit.responses = full_responses
        with pytest.raises(ValueError):
            submit_audit(audit, template)

    def test_submit_with_scoring_disabled(self, audit, template, full_responses):
        template.scoring_rules.is_enabled = False
        audit.responses = full_responses
        submitted = submit_audit(audit, template)
        assert submitted.score == 0
        assert submitted.status == AuditStatus.COMPLETED
