"""Template and response validation.

Rule evaluation itself never raises: a rule pointing at a missing question
simply evaluates false. Those dangling references are reported here instead,
so the builder can refuse to publish a broken template.
"""

from __future__ import annotations

import logging
import re
from collections import Counter
from typing import Any

from .logic import evaluate_form
from .models import (
    IssueSeverity,
    LogicAction,
    Question,
    QuestionType,
    Responses,
    Template,
    ValidationIssue,
)
from .scoring import is_answered

logger = logging.getLogger(__name__)

ERROR = IssueSeverity.ERROR
WARNING = IssueSeverity.WARNING


class TemplateValidationError(ValueError):
    """Raised when a template with error-level issues is published."""

    def __init__(self, issues: list[ValidationIssue]):
        self.issues = issues
        errors = [i for i in issues if i.severity == ERROR]
        super().__init__(
            f"Template has {len(errors)} error(s): " + "; ".join(i.message for i in errors)
        )


class AuditIncompleteError(ValueError):
    """Raised when an audit is submitted with missing or invalid answers."""

    def __init__(self, missing: list[str], invalid: dict[str, list[str]]):
        self.missing = missing
        self.invalid = invalid
        parts = []
        if missing:
            parts.append(f"unanswered required questions: {', '.join(missing)}")
        if invalid:
            parts.append(f"invalid answers: {', '.join(invalid)}")
        super().__init__("Audit cannot be submitted: " + "; ".join(parts))


def _issue(severity: IssueSeverity, code: str, message: str, ref: str | None = None) -> ValidationIssue:
    return ValidationIssue(severity=severity, code=code, message=message, ref=ref)


def _check_structure(template: Template) -> list[ValidationIssue]:
    issues = []
    if not template.name.strip():
        issues.append(_issue(ERROR, "missing_name", "Template name is required"))
    if not template.category.strip():
        issues.append(_issue(ERROR, "missing_category", "Template category is required"))
    if not template.sections:
        issues.append(_issue(ERROR, "no_sections", "Template needs at least one section"))
    elif template.question_count == 0:
        issues.append(_issue(ERROR, "no_questions", "Template needs at least one question"))

    section_ids = Counter(s.id for s in template.sections)
    for sid, count in section_ids.items():
        if count > 1:
            issues.append(_issue(ERROR, "duplicate_section_id", f"Section id {sid} is used {count} times", sid))

    question_ids = Counter(q.id for _, q in template.iter_questions())
    for qid, count in question_ids.items():
        if count > 1:
            issues.append(_issue(ERROR, "duplicate_question_id", f"Question id {qid} is used {count} times", qid))

    # order is only a sort key; gaps and ties are tolerated but flagged
    orders = sorted(s.order for s in template.sections)
    if len(set(orders)) != len(orders):
        issues.append(_issue(WARNING, "duplicate_section_order", "Two or more sections share the same order value"))
    elif orders and orders != list(range(orders[0], orders[0] + len(orders))):
        issues.append(_issue(WARNING, "sparse_section_order", "Section order values have gaps"))

    for section, question in template.iter_questions():
        if not question.text.strip():
            issues.append(_issue(ERROR, "missing_question_text", f"Question {question.id} in '{section.title}' has no text", question.id))
        if question.type.has_options and not [o for o in question.options if o.strip()]:
            issues.append(_issue(ERROR, "missing_options", f"Question '{question.text}' needs at least one option", question.id))
        if question.weight is not None and question.weight < 0:
            issues.append(_issue(ERROR, "negative_weight", f"Question '{question.text}' has a negative weight", question.id))
        rules = question.validation_rules
        if rules.pattern:
            try:
                re.compile(rules.pattern)
            except re.error as exc:
                issues.append(_issue(ERROR, "bad_pattern", f"Question '{question.text}' has an invalid pattern: {exc}", question.id))
        if rules.min_value is not None and rules.max_value is not None and rules.min_value > rules.max_value:
            issues.append(_issue(ERROR, "bad_range", f"Question '{question.text}' has min value above max value", question.id))
        if rules.min_length is not None and rules.max_length is not None and rules.min_length > rules.max_length:
            issues.append(_issue(ERROR, "bad_length", f"Question '{question.text}' has min length above max length", question.id))
    return issues


def _check_rules(template: Template) -> list[ValidationIssue]:
    issues = []
    question_ids = {q.id for _, q in template.iter_questions()}
    section_ids = {s.id for s in template.sections}
    order = {s.id: i for i, s in enumerate(template.ordered_sections())}

    for rule in template.logic_rules:
        if rule.trigger_question_id not in question_ids:
            issues.append(_issue(ERROR, "unknown_trigger", f"Rule {rule.id} references nonexistent question {rule.trigger_question_id}", rule.id))
        if rule.target_question_id and rule.target_question_id not in question_ids:
            issues.append(_issue(ERROR, "unknown_target", f"Rule {rule.id} targets nonexistent question {rule.target_question_id}", rule.id))
        if rule.target_section_id and rule.target_section_id not in section_ids:
            issues.append(_issue(ERROR, "unknown_target", f"Rule {rule.id} targets nonexistent section {rule.target_section_id}", rule.id))
        if rule.target_question_id and rule.target_question_id == rule.trigger_question_id:
            issues.append(_issue(ERROR, "self_reference", f"Rule {rule.id} uses question {rule.trigger_question_id} as both trigger and target", rule.id))
        if rule.action in (LogicAction.REQUIRE, LogicAction.MAKE_OPTIONAL) and rule.target_section_id:
            issues.append(_issue(ERROR, "bad_target", f"Rule {rule.id}: {rule.action.value} applies to questions, not sections", rule.id))

        if rule.action == LogicAction.SKIP_TO_SECTION and rule.target_section_id in section_ids:
            source = template.section_of(rule.trigger_question_id)
            if source is not None and order[rule.target_section_id] <= order[source.id]:
                issues.append(_issue(WARNING, "backward_skip", f"Rule {rule.id} skips backwards and will be ignored", rule.id))
    return issues


def _check_scoring(template: Template) -> list[ValidationIssue]:
    issues = []
    rules = template.scoring_rules
    if not 0 <= rules.threshold <= 100:
        issues.append(_issue(ERROR, "bad_threshold", f"Compliance threshold {rules.threshold} is outside 0-100"))
    question_ids = {q.id for _, q in template.iter_questions()}
    for qid in rules.critical_questions:
        if qid not in question_ids:
            issues.append(_issue(ERROR, "unknown_critical", f"Critical question {qid} is not in the template", qid))
    for qid, weight in rules.weights.items():
        if qid not in question_ids:
            issues.append(_issue(WARNING, "unknown_weight", f"Weight override for unknown question {qid}", qid))
        elif weight <= 0:
            issues.append(_issue(ERROR, "negative_weight", f"Weight override for {qid} must be positive", qid))
    return issues


def validate_template(template: Template) -> list[ValidationIssue]:
    """All problems with a template definition. Empty list means it can be published."""
    issues = _check_structure(template) + _check_rules(template) + _check_scoring(template)
    if issues:
        logger.debug("Template %s: %d validation issue(s)", template.id, len(issues))
    return issues


def has_errors(issues: list[ValidationIssue]) -> bool:
    return any(i.severity == ERROR for i in issues)


def validate_response(question: Question, value: Any) -> list[str]:
    """Check one answer against the question's type, options and validation rules.

    Unanswered values pass; requiredness is checked by `missing_required`.
    """
    if not is_answered(value):
        return []

    errors = []
    rules = question.validation_rules

    if question.type == QuestionType.NUMERIC:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            try:
                value = float(value)
            except (TypeError, ValueError):
                return [f"'{value}' is not a number"]
        if rules.min_value is not None and value < rules.min_value:
            errors.append(f"Value must be at least {rules.min_value:g}")
        if rules.max_value is not None and value > rules.max_value:
            errors.append(f"Value must be at most {rules.max_value:g}")
        return errors

    if question.type == QuestionType.MULTIPLE_CHOICE:
        if not isinstance(value, list):
            return ["Expected a list of selected options"]
        unknown = [v for v in value if v not in question.options]
        if unknown:
            errors.append(f"Unknown option(s): {', '.join(map(str, unknown))}")
        return errors

    if question.type in (QuestionType.SINGLE_CHOICE, QuestionType.DROPDOWN):
        if value not in question.options:
            errors.append(f"'{value}' is not one of the available options")
        return errors

    text = str(value)
    if rules.min_length is not None and len(text) < rules.min_length:
        errors.append(f"Answer must be at least {rules.min_length} characters")
    if rules.max_length is not None and len(text) > rules.max_length:
        errors.append(f"Answer must be at most {rules.max_length} characters")
    if rules.pattern:
        try:
            matched = re.fullmatch(rules.pattern, text)
        except re.error as exc:
            logger.warning("Question %s has an invalid pattern %r: %s", question.id, rules.pattern, exc)
            errors.append("Question has an invalid pattern")
        else:
            if not matched:
                errors.append("Answer does not match the required format")
    return errors


def missing_required(template: Template, responses: Responses) -> list[str]:
    """Ids of required questions on the wizard path that have no answer."""
    form = evaluate_form(template, responses)
    on_path = set(form.path)
    missing = []
    for section in form.sections:
        if section.section_id not in on_path:
            continue
        answers = responses.get(section.section_id) or {}
        for state in section.questions:
            if state.required and not is_answered(answers.get(state.question_id)):
                missing.append(state.question_id)
    return missing


def invalid_responses(template: Template, responses: Responses) -> dict[str, list[str]]:
    """Validation errors for answers to visible questions on the wizard path, keyed by question id.

    Answers left behind in a section the wizard now skips are ignored, since
    the auditor can no longer reach them to fix them.
    """
    form = evaluate_form(template, responses)
    on_path = set(form.path)
    invalid: dict[str, list[str]] = {}
    for section, question in template.iter_questions():
        if section.id not in on_path:
            continue
        state = form.question(question.id)
        if state is None or not state.visible:
            continue
        errors = validate_response(question, (responses.get(section.id) or {}).get(question.id))
        if errors:
            invalid[question.id] = errors
    return invalid
