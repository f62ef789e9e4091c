"""Template publishing and audit lifecycle.

These functions return updated copies; writing them back to the backend is
the caller's job.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Optional

from .models import Audit, AuditStatus, Template
from .scoring import compute_score
from .validation import (
    AuditIncompleteError,
    TemplateValidationError,
    has_errors,
    invalid_responses,
    missing_required,
    validate_template,
)

logger = logging.getLogger(__name__)


def publish_template(template: Template, now: Optional[datetime] = None) -> Template:
    """Validate a draft and mark it published. Raises TemplateValidationError on any error-level issue."""
    issues = validate_template(template)
    if has_errors(issues):
        raise TemplateValidationError(issues)
    for issue in issues:
        logger.warning("Publishing template %s with warning: %s", template.id, issue.message)
    return template.model_copy(update={"is_published": True, "updated_at": now or datetime.utcnow()})


def new_audit(template: Template, assigned_to: str, assigned_to_name: str = "", location: Any = None) -> Audit:
    """Assign a published template as a pending audit."""
    if not template.is_published:
        raise ValueError(f"Template {template.id} is not published")
    return Audit.model_validate({
        "template_id": template.id,
        "template_name": template.name,
        "status": AuditStatus.PENDING,
        "assigned_to": assigned_to,
        "assigned_to_name": assigned_to_name,
        "location": location or {},
        "created_at": datetime.utcnow(),
    })


def set_status(audit: Audit, status: AuditStatus | str) -> Audit:
    """Set any status directly. Status is a label, not a state machine."""
    return audit.model_copy(update={"status": AuditStatus(status)})


def start_audit(audit: Audit) -> Audit:
    """Move a pending or overdue audit into progress. Other statuses are left alone."""
    if audit.status in (AuditStatus.PENDING, AuditStatus.OVERDUE):
        return set_status(audit, AuditStatus.IN_PROGRESS)
    return audit


def record_response(audit: Audit, section_id: str, question_id: str, value: Any) -> Audit:
    """Return a copy of the audit with one answer stored."""
    if audit.status == AuditStatus.COMPLETED:
        raise ValueError(f"Audit {audit.id} is already completed")
    responses = {sid: dict(answers) for sid, answers in audit.responses.items()}
    responses.setdefault(section_id, {})[question_id] = value
    return start_audit(audit).model_copy(update={"responses": responses})


def submit_audit(audit: Audit, template: Template, now: Optional[datetime] = None) -> Audit:
    """Check completeness, score the responses and mark the audit completed.

    Raises AuditIncompleteError when a required question on the wizard path is
    unanswered or a visible answer breaks its validation rules.
    """
    if audit.template_id and template.id and audit.template_id != template.id:
        raise ValueError(f"Audit {audit.id} belongs to template {audit.template_id}, not {template.id}")

    missing = missing_required(template, audit.responses)
    invalid = invalid_responses(template, audit.responses)
    if missing or invalid:
        raise AuditIncompleteError(missing, invalid)

    result = compute_score(template, audit.responses)
    logger.info(
        "Audit %s submitted: score %d%% (%s)", audit.id, result.score, result.compliance_status.value
    )
    return audit.model_copy(update={
        "status": AuditStatus.COMPLETED,
        "score": result.score,
        "compliance_status": result.compliance_status,
        "submitted_at": now or datetime.utcnow(),
    })
