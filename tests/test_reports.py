"""
Unit tests for dashboard metrics and report aggregates.
"""

import pytest

from retail_audit.core.models import Audit, Template, User
from retail_audit.core.reports import (
    audits_by_status,
    compliance_rate,
    compute_dashboard_metrics,
    score_distribution,
    template_performance,
    users_by_role,
)


def _audit(template_id, status, score=None):
    return Audit(template_id=template_id, status=status, score=score)


@pytest.fixture
def records():
    return [
        _audit("t1", "completed", 95),
        _audit("t1", "completed", 80),
        _audit("t1", "completed", 72),
        _audit("t2", "completed", 40),
        _audit("t2", "in_progress"),
        _audit("t2", "pending"),
        _audit("t1", "overdue"),
    ]


@pytest.fixture
def templates():
    return [
        Template(id="t1", name="Store Walk", category="Ops", is_published=True),
        Template.model_validate({"id": "t2", "name": "Safety", "category": "H&S",
                                 "scoring_rules": {"isEnabled": True, "threshold": 30}}),
    ]


class TestDashboardMetrics:

    def test_metrics(self, templates, records):
        metrics = compute_dashboard_metrics(templates, records)
        assert metrics.total_templates == 2
        assert metrics.published_templates == 1
        assert metrics.total_audits == 7
        assert metrics.completed_audits == 4
        assert metrics.in_progress_audits == 1
        assert metrics.pending_audits == 1
        assert metrics.overdue_audits == 1
        # (95 + 80 + 72 + 40) / 4 = 71.75
        assert metrics.average_score == 72
        assert metrics.compliance_rate == 50

    def test_empty(self):
        metrics = compute_dashboard_metrics([], [])
        assert metrics.average_score == 0
        assert metrics.compliance_rate == 0

    def test_custom_threshold(self, templates, records):
        assert compute_dashboard_metrics(templates, records, threshold=70).compliance_rate == 75

    def test_unscored_completed_counts_as_zero(self):
        assert compliance_rate([_audit("t", "completed")], 0) == 100.0
        assert compliance_rate([_audit("t", "completed")], 1) == 0.0


class TestBreakdowns:

    def test_by_status(self, records):
        assert audits_by_status(records) == {
            "pending": 1, "in_progress": 1, "completed": 4, "overdue": 1,
        }

    def test_score_distribution(self, records):
        buckets = {b.range: b.count for b in score_distribution(records)}
        assert buckets == {"90-100%": 1, "80-89%": 1, "70-79%": 1, "Below 70%": 1}

    def test_template_performance(self, templates, records):
        rows = {r["template_id"]: r for r in template_performance(templates, records)}
        assert rows["t1"]["total_audits"] == 4
        assert rows["t1"]["completed_audits"] == 3
        assert rows["t1"]["average_score"] == pytest.approx(82.3)
        assert rows["t1"]["compliance_rate"] == pytest.approx(66.7)
        # t2 is judged against its own 30% threshold
        assert rows["t2"]["compliance_rate"] == 100.0


class TestUsers:

    @pytest.fixture
    def users(self):
        return [
            User(id="u1", name="Ana", email="ana@example.com", role="admin", last_login="2025-02-01T09:00:00"),
            User.model_validate({"id": "u2", "name": "Ben", "email": "ben@example.com", "role": "supervisor",
                                 "assigned_regions": ["North", "East"], "last_login": None}),
            User(id="u3", name="Cy", email="cy@example.com", role="auditor", last_login="2025-02-03T10:30:00"),
            User(id="u4", name="Di", email="di@example.com"),
        ]

    def test_dashboard_user_counts(self, templates, records, users):
        metrics = compute_dashboard_metrics(templates, records, users=users)
        assert metrics.total_users == 4
        assert metrics.active_users == 2

    def test_no_users(self, templates, records):
        metrics = compute_dashboard_metrics(templates, records)
        assert metrics.total_users == 0
        assert metrics.active_users == 0

    def test_users_by_role(self, users):
        # role defaults to auditor
        assert users_by_role(users) == {"admin": 1, "supervisor": 1, "auditor": 2}
        assert users_by_role([]) == {"admin": 0, "supervisor": 0, "auditor": 0}

    def test_assigned_regions(self, users):
        assert users[1].assigned_regions == ["North", "East"]
        assert users[3].assigned_regions == []
