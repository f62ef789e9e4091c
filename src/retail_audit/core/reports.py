"""Dashboard and report aggregates over audit records and the team roster."""

from __future__ import annotations

from typing import Iterable, Optional

from .models import (
    DEFAULT_COMPLIANCE_THRESHOLD,
    Audit,
    AuditStatus,
    DashboardMetrics,
    ScoreBucket,
    Template,
    User,
    UserRole,
)
from .scoring import round_half_up

SCORE_BUCKETS = [
    ("90-100%", 90, None),
    ("80-89%", 80, 90),
    ("70-79%", 70, 80),
    ("Below 70%", None, 70),
]


def _completed(audits: Iterable[Audit]) -> list[Audit]:
    return [a for a in audits if a.status == AuditStatus.COMPLETED]


def average_score(audits: Iterable[Audit]) -> float:
    """Mean score of completed audits; unscored ones count as 0."""
    completed = _completed(audits)
    if not completed:
        return 0.0
    return sum(a.score or 0 for a in completed) / len(completed)


def compliance_rate(audits: Iterable[Audit], threshold: float = DEFAULT_COMPLIANCE_THRESHOLD) -> float:
    """Percentage of completed audits scoring at or above the threshold."""
    completed = _completed(audits)
    if not completed:
        return 0.0
    passing = [a for a in completed if (a.score or 0) >= threshold]
    return len(passing) / len(completed) * 100


def audits_by_status(audits: Iterable[Audit]) -> dict[str, int]:
    counts = {status.value: 0 for status in AuditStatus}
    for audit in audits:
        counts[audit.status.value] += 1
    return counts


def score_distribution(audits: Iterable[Audit]) -> list[ScoreBucket]:
    completed = _completed(audits)
    buckets = []
    for label, low, high in SCORE_BUCKETS:
        count = 0
        for audit in completed:
            score = audit.score or 0
            if (low is None or score >= low) and (high is None or score < high):
                count += 1
        buckets.append(ScoreBucket(range=label, count=count))
    return buckets


def users_by_role(users: Iterable[User]) -> dict[str, int]:
    """Team roster counts per role, every role present."""
    counts = {role.value: 0 for role in UserRole}
    for user in users:
        counts[user.role.value] += 1
    return counts


def compute_dashboard_metrics(
    templates: list[Template],
    audits: list[Audit],
    threshold: float = DEFAULT_COMPLIANCE_THRESHOLD,
    users: Optional[list[User]] = None,
) -> DashboardMetrics:
    """Headline numbers for the manager dashboard."""
    counts = audits_by_status(audits)
    users = users or []
    return DashboardMetrics(
        total_users=len(users),
        active_users=sum(1 for u in users if u.is_active),
        total_templates=len(templates),
        published_templates=sum(1 for t in templates if t.is_published),
        total_audits=len(audits),
        completed_audits=counts[AuditStatus.COMPLETED.value],
        in_progress_audits=counts[AuditStatus.IN_PROGRESS.value],
        pending_audits=counts[AuditStatus.PENDING.value],
        overdue_audits=counts[AuditStatus.OVERDUE.value],
        average_score=round_half_up(average_score(audits)),
        compliance_rate=round_half_up(compliance_rate(audits, threshold)),
    )


def template_performance(templates: list[Template], audits: list[Audit]) -> list[dict]:
    """Per-template audit counts, average score and compliance rate.

    Each template is judged against its own scoring threshold.
    """
    by_template: dict[str, list[Audit]] = {}
    for audit in audits:
        by_template.setdefault(audit.template_id, []).append(audit)

    rows = []
    for template in templates:
        template_audits = by_template.get(template.id, [])
        completed = _completed(template_audits)
        rows.append({
            "template_id": template.id,
            "template_name": template.name,
            "category": template.category,
            "total_audits": len(template_audits),
            "completed_audits": len(completed),
            "average_score": round(average_score(template_audits), 1),
            "compliance_rate": round(compliance_rate(template_audits, template.scoring_rules.threshold), 1),
        })
    rows.sort(key=lambda r: r["total_audits"], reverse=True)
    return rows
