"""Retail Audit MCP App Server.

FastMCP server with 12 tools and MCP Apps interactive UI.
Run: retail-audit-mcp

The tools are stateless: templates, audits, and responses are passed in using
the backend's row shape, and results come back in the same shape for the
caller to store.
"""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional

from mcp.server.fastmcp import FastMCP
from mcp.types import ToolAnnotations
from pydantic import BaseModel, ValidationError

from . import get_app_html
from .core.audits import publish_template, submit_audit
from .core.logic import evaluate_form, evaluate_visibility, next_section_id
from .core.models import DEFAULT_COMPLIANCE_THRESHOLD, Audit, IssueSeverity, LogicRule, Template, User
from .core.reports import (
    audits_by_status,
    compute_dashboard_metrics,
    score_distribution,
    template_performance,
    users_by_role,
)
from .core.scoring import compute_score, scoring_summary
from .core.validation import has_errors, validate_response, validate_template

logger = logging.getLogger(__name__)

MCP_APP_MIME = "text/html;profile=mcp-app"

READ_ONLY = ToolAnnotations(readOnlyHint=True, destructiveHint=False, idempotentHint=True, openWorldHint=False)
# returns a fresh timestamp on every call, so repeat calls differ
STAMPED = ToolAnnotations(readOnlyHint=True, destructiveHint=False, idempotentHint=False, openWorldHint=False)

DEFAULT_LOG_LEVEL = "INFO"


@asynccontextmanager
async def lifespan(server: FastMCP) -> AsyncIterator[None]:
    """Configure logging and report the dashboard threshold in use."""
    logging.basicConfig(
        level=os.environ.get("LOG_LEVEL", DEFAULT_LOG_LEVEL).upper(),
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )
    logger.info("Retail Audit server ready (dashboard compliance threshold: %g%%)", _get_dashboard_threshold())
    yield


mcp = FastMCP(
    "Retail Audit",
    instructions="Evaluate retail audit template logic, score audit responses, check compliance, and summarize audit results. Pass templates and audits as JSON objects; nothing is stored server-side.",
    lifespan=lifespan,
)


def _get_dashboard_threshold() -> float:
    raw = os.environ.get("COMPLIANCE_THRESHOLD", str(DEFAULT_COMPLIANCE_THRESHOLD))
    try:
        threshold = float(raw)
    except ValueError:
        raise ValueError(f"COMPLIANCE_THRESHOLD must be a number between 0 and 100, got {raw!r}") from None
    if not 0 <= threshold <= 100:
        raise ValueError(f"COMPLIANCE_THRESHOLD must be between 0 and 100, got {threshold:g}")
    return threshold


def _describe(exc: ValidationError) -> str:
    parts = []
    for err in exc.errors()[:5]:
        loc = ".".join(str(p) for p in err["loc"]) or "<root>"
        parts.append(f"{loc}: {err['msg']}")
    more = len(exc.errors()) - 5
    if more > 0:
        parts.append(f"... and {more} more")
    return "; ".join(parts)


def _load(model: type[BaseModel], payload: Any, what: str):
    try:
        return model.model_validate(payload)
    except ValidationError as exc:
        raise ValueError(f"Invalid {what} — {_describe(exc)}") from exc


def _load_responses(payload: Optional[dict]) -> dict[str, dict[str, Any]]:
    responses = payload or {}
    if not isinstance(responses, dict) or not all(isinstance(v, dict) for v in responses.values()):
        raise ValueError("Responses must map section id -> {question id: answer}")
    return responses


def _row(model: BaseModel) -> dict:
    return model.model_dump(mode="json", by_alias=True)


# ─── MCP Apps UI Resource ─────────────────────────────────────────────────────

APP_RESOURCE_URI = "ui://retail-audit/app"


@mcp.resource(
    APP_RESOURCE_URI,
    mime_type=MCP_APP_MIME,
)
def app_ui() -> str:
    """Retail Audit dashboard, scoring, and reports."""
    return get_app_html()


# ─── Tool 1: Visibility ──────────────────────────────────────────────────────


@mcp.tool(annotations=READ_ONLY)
def audit_evaluate_visibility(
    target_id: str,
    logic_rules: list[dict],
    responses: Optional[dict] = None,
    template: Optional[dict] = None,
) -> dict:
    """Whether a question or section is visible for the current responses.

    Targets with no show/hide rule are visible. A matching hide rule always hides;
    if show rules exist, at least one must match.

    Args:
        target_id: Question or section id.
        logic_rules: The template's logic_rules.
        responses: Answers keyed by section id, then question id.
        template: Optional template row. When given, each trigger answer is read
            from its own section and rules on unknown questions never match.
    """
    rules = [_load(LogicRule, r, "logic rule") for r in logic_rules]
    index = _load(Template, template, "template").question_index() if template is not None else None
    visible = evaluate_visibility(target_id, rules, _load_responses(responses), index)
    applicable = [r.id for r in rules if r.target_id == target_id]
    return {
        "target_id": target_id,
        "visible": visible,
        "applicable_rules": applicable,
        "summary": f"{target_id} is {'visible' if visible else 'hidden'}"
        + (f" ({len(applicable)} rule(s) target it)." if applicable else " (no rules target it)."),
    }


# ─── Tool 2: Form State ──────────────────────────────────────────────────────


@mcp.tool(annotations=READ_ONLY)
def audit_evaluate_form(template: dict, responses: Optional[dict] = None) -> dict:
    """Visibility and requiredness of every section and question, plus the section path the wizard will follow.

    Args:
        template: Template row (sections, logic_rules, scoring_rules, ...).
        responses: Answers keyed by section id, then question id.
    """
    tpl = _load(Template, template, "template")
    form = evaluate_form(tpl, _load_responses(responses))
    hidden = [q.question_id for s in form.sections for q in s.questions if not q.visible]
    required = [q.question_id for s in form.sections for q in s.questions if q.required]
    return {
        "template_id": tpl.id,
        "form": form.model_dump(mode="json"),
        "hidden_questions": hidden,
        "required_questions": required,
        "summary": f"{len(form.path)} of {len(tpl.sections)} section(s) on the path, "
        f"{len(hidden)} hidden question(s), {len(required)} required.",
    }


# ─── Tool 3: Next Section ────────────────────────────────────────────────────


@mcp.tool(annotations=READ_ONLY)
def audit_next_section(template: dict, current_section_id: str, responses: Optional[dict] = None) -> dict:
    """Which section the audit wizard shows after the current one, honoring skip_to_section rules.

    Args:
        template: Template row.
        current_section_id: Section the auditor is on.
        responses: Answers keyed by section id, then question id.
    """
    tpl = _load(Template, template, "template")
    next_id = next_section_id(tpl, current_section_id, _load_responses(responses))
    return {
        "current_section_id": current_section_id,
        "next_section_id": next_id,
        "finished": next_id is None,
        "summary": f"Next section: {next_id}" if next_id else "Last section reached — ready to submit.",
    }


# ─── Tool 4: Score ───────────────────────────────────────────────────────────


@mcp.tool(annotations=READ_ONLY)
def audit_compute_score(template: dict, responses: Optional[dict] = None) -> dict:
    """Percentage score and compliance verdict for a set of responses.

    Every non-empty answer earns its question's full weight. Scoring-disabled
    templates score 0.

    Args:
        template: Template row.
        responses: Answers keyed by section id, then question id.
    """
    tpl = _load(Template, template, "template")
    result = compute_score(tpl, _load_responses(responses))
    if not result.enabled:
        summary = "Scoring is disabled for this template; score reported as 0."
    else:
        summary = (
            f"Score {result.score}% ({result.total_points}/{result.max_points} points) — "
            f"{result.compliance_status.value.replace('_', '-')} against a {result.threshold:g}% threshold."
        )
        if result.missing_critical:
            summary += f" Unanswered critical questions: {', '.join(result.missing_critical)}."
    return {
        "template_id": tpl.id,
        "result": result.model_dump(mode="json"),
        "score": result.score,
        "compliance_status": result.compliance_status.value,
        "summary": summary,
    }


# ─── Tool 5: Scoring Summary ─────────────────────────────────────────────────


@mcp.tool(annotations=READ_ONLY)
def audit_scoring_summary(template: dict) -> dict:
    """Total questions, total weight, pass threshold, and minimum points needed to pass.

    Args:
        template: Template row.
    """
    tpl = _load(Template, template, "template")
    summary = scoring_summary(tpl)
    return {
        "template_id": tpl.id,
        **summary,
        "summary": f"{summary['total_questions']} question(s) worth {summary['total_weight']} points; "
        f"{summary['min_points']} points needed to reach {summary['threshold']:g}%.",
    }


# ─── Tool 6: Validate Template ───────────────────────────────────────────────


@mcp.tool(annotations=READ_ONLY)
def audit_validate_template(template: dict) -> dict:
    """Check a template for dangling logic references, missing options, bad thresholds, and section order problems.

    Args:
        template: Template row.
    """
    tpl = _load(Template, template, "template")
    issues = validate_template(tpl)
    errors = [i for i in issues if i.severity == IssueSeverity.ERROR]
    warnings = [i for i in issues if i.severity == IssueSeverity.WARNING]
    if not issues:
        summary = "Template is valid and can be published."
    else:
        summary = f"{len(errors)} error(s), {len(warnings)} warning(s)."
        if errors:
            summary += " " + "; ".join(i.message for i in errors[:3])
    return {
        "template_id": tpl.id,
        "valid": not has_errors(issues),
        "issues": [i.model_dump(mode="json") for i in issues],
        "summary": summary,
    }


# ─── Tool 7: Publish Template ────────────────────────────────────────────────


@mcp.tool(annotations=STAMPED)
def audit_publish_template(template: dict) -> dict:
    """Validate a draft template and return it marked as published.

    Fails with the list of errors when the template is not publishable.

    Args:
        template: Template row.
    """
    tpl = _load(Template, template, "template")
    published = publish_template(tpl)
    return {
        "template": _row(published),
        "summary": f"Template '{published.name}' is ready to publish.",
    }


# ─── Tool 8: Validate Answer ─────────────────────────────────────────────────


@mcp.tool(annotations=READ_ONLY)
def audit_validate_response(template: dict, question_id: str, value: Any = None) -> dict:
    """Check one answer against its question's type, options, and validation rules.

    Args:
        template: Template row.
        question_id: Question being answered.
        value: The answer.
    """
    tpl = _load(Template, template, "template")
    question = tpl.find_question(question_id)
    if question is None:
        raise ValueError(f"Question {question_id} is not in template {tpl.id}")
    errors = validate_response(question, value)
    return {
        "question_id": question_id,
        "valid": not errors,
        "errors": errors,
        "summary": "Answer is valid." if not errors else "; ".join(errors),
    }


# ─── Tool 9: Submit ──────────────────────────────────────────────────────────


@mcp.tool(annotations=STAMPED)
def audit_submit(audit: dict, template: dict) -> dict:
    """Check required answers, score the audit, and return it marked completed with a submission timestamp.

    Args:
        audit: Audit row including its responses.
        template: The audit's template row.
    """
    record = _load(Audit, audit, "audit")
    tpl = _load(Template, template, "template")
    submitted = submit_audit(record, tpl)
    return {
        "audit": _row(submitted),
        "summary": f"Audit submitted with score {submitted.score}% "
        f"({submitted.compliance_status.value.replace('_', '-')}).",
    }


# ─── Tool 10: Dashboard ──────────────────────────────────────────────────────


@mcp.tool(annotations=READ_ONLY)
def audit_dashboard(
    templates: Optional[list[dict]] = None,
    audits: Optional[list[dict]] = None,
    users: Optional[list[dict]] = None,
) -> dict:
    """Dashboard metrics: template and audit totals, status counts, average score, compliance rate, team size.

    Args:
        templates: Template rows.
        audits: Audit rows.
        users: User rows (id, name, email, role, assigned_regions, last_login).
    """
    tpls = [_load(Template, t, "template") for t in templates or []]
    records = [_load(Audit, a, "audit") for a in audits or []]
    members = [_load(User, u, "user") for u in users or []]
    threshold = _get_dashboard_threshold()
    metrics = compute_dashboard_metrics(tpls, records, threshold, users=members)
    return {
        "title": "Audit Dashboard",
        "metrics": metrics.model_dump(mode="json"),
        "summary": f"{metrics.completed_audits} of {metrics.total_audits} audit(s) completed, "
        f"average score {metrics.average_score}%, {metrics.compliance_rate}% compliant "
        f"(threshold {threshold:g}%). {metrics.overdue_audits} overdue. "
        f"{metrics.active_users} of {metrics.total_users} user(s) active.",
    }


# ─── Tool 11: Report ─────────────────────────────────────────────────────────


@mcp.tool(annotations=READ_ONLY)
def audit_report(
    templates: Optional[list[dict]] = None,
    audits: Optional[list[dict]] = None,
    template_id: str = "",
    users: Optional[list[dict]] = None,
) -> dict:
    """Status breakdown, score distribution, per-template performance, and team roles.

    Args:
        templates: Template rows.
        audits: Audit rows.
        template_id: Restrict the report to one template. Leave empty for all.
        users: User rows, counted per role.
    """
    tpls = [_load(Template, t, "template") for t in templates or []]
    records = [_load(Audit, a, "audit") for a in audits or []]
    members = [_load(User, u, "user") for u in users or []]
    if template_id:
        tpls = [t for t in tpls if t.id == template_id]
        records = [a for a in records if a.template_id == template_id]

    distribution = score_distribution(records)
    performance = template_performance(tpls, records)
    completed = sum(b.count for b in distribution)
    return {
        "title": "Audit Report",
        "template_id": template_id or None,
        "by_status": audits_by_status(records),
        "score_distribution": [b.model_dump() for b in distribution],
        "templates": performance,
        "users_by_role": users_by_role(members),
        "summary": f"{len(records)} audit(s), {completed} completed"
        + (f"; most common score range: {max(distribution, key=lambda b: b.count).range}." if completed else "."),
    }


# ─── Tool 12: Open MCP App (Interactive UI) ─────────────────────────────────


@mcp.tool(annotations=READ_ONLY, meta={"ui": {"resourceUri": APP_RESOURCE_URI}})
def open_audit_app(
    templates: Optional[list[dict]] = None,
    audits: Optional[list[dict]] = None,
    users: Optional[list[dict]] = None,
) -> dict:
    """Open the Retail Audit app: dashboard metrics, score distribution, template performance, and team roles."""
    tpls = [_load(Template, t, "template") for t in templates or []]
    records = [_load(Audit, a, "audit") for a in audits or []]
    members = [_load(User, u, "user") for u in users or []]
    metrics = compute_dashboard_metrics(tpls, records, _get_dashboard_threshold(), users=members)
    return {
        "title": "Audit Overview",
        "metrics": metrics.model_dump(mode="json"),
        "by_status": audits_by_status(records),
        "users_by_role": users_by_role(members),
        "score_distribution": [b.model_dump() for b in score_distribution(records)],
        "templates": template_performance(tpls, records),
        "summary": f"{metrics.total_audits} audit(s) across {metrics.total_templates} template(s); "
        f"{metrics.compliance_rate}% of completed audits are compliant.",
    }


def main():
    """Entry point for the CLI command."""
    mcp.run()


if __name__ == "__main__":
    main()
