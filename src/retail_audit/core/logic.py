"""Conditional logic engine for audit templates.

Rules only ever read raw responses, never the effects of other rules, so
there is no chaining and no cycle to detect. Every function here is a pure
function of its arguments.

Visibility uses allow/deny combination over the rules that target an id:

    visible = not any(true hide) and (no show rule or any(true show))

`require`/`make_optional` combine the same way over a question's mandatory
flag, and `skip_to_section` is a navigation directive handled separately.

Functions that take an optional `index` (question id -> section id, from
`Template.question_index()`) read each trigger answer from its own section,
and a rule whose trigger question is not in the index never holds. Without
an index the trigger answer is looked up in any section, so a dangling
trigger behaves like an unanswered one.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Optional

from .models import (
    FormState,
    LogicAction,
    LogicOperator,
    LogicRule,
    Question,
    QuestionState,
    Responses,
    SectionState,
    Template,
)

logger = logging.getLogger(__name__)

# question id -> section id
QuestionIndex = dict[str, str]


def lookup_response(responses: Responses, question_id: str, index: Optional[QuestionIndex] = None) -> Any:
    """Return the answer for a question. None if unanswered.

    With an index, only the question's own section bucket is read; otherwise
    every bucket is searched.
    """
    if index is not None:
        section_id = index.get(question_id)
        if section_id is None:
            return None
        answers = responses.get(section_id)
        return answers.get(question_id) if isinstance(answers, dict) else None
    for answers in responses.values():
        if isinstance(answers, dict) and question_id in answers:
            return answers[question_id]
    return None


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _parse_number(value: str) -> Optional[float]:
    try:
        return float(value.strip())
    except ValueError:
        return None


def to_number(value: Any) -> float:
    """Numeric coercion used by greater_than/less_than. Anything non-numeric is 0."""
    if isinstance(value, bool):
        return 1.0 if value else 0.0
    if _is_number(value):
        return float(value)
    if isinstance(value, str) and value.strip():
        parsed = _parse_number(value)
        return parsed if parsed is not None else 0.0
    return 0.0


def to_text(value: Any) -> str:
    """String form used by `contains`. Lists join with commas, like the web client renders them."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (list, tuple)):
        return ",".join(to_text(v) for v in value)
    return str(value)


def _equals(actual: Any, expected: Any) -> bool:
    if actual is None:
        return False
    if actual == expected:
        return True
    # numeric answers against rule values typed into the builder as text
    if _is_number(actual) and isinstance(expected, str):
        parsed = _parse_number(expected) if expected.strip() else None
        return parsed is not None and float(actual) == parsed
    if isinstance(actual, str) and _is_number(expected):
        parsed = _parse_number(actual) if actual.strip() else None
        return parsed is not None and parsed == float(expected)
    return False


def _contains(actual: Any, expected: Any) -> bool:
    if actual is None or expected is None:
        return False
    return to_text(expected) in to_text(actual)


def compare(actual: Any, operator: LogicOperator, expected: Any) -> bool:
    """Apply one comparison operator. `actual` is None when the trigger is unanswered."""
    if operator == LogicOperator.EQUALS:
        return _equals(actual, expected)
    if operator == LogicOperator.NOT_EQUALS:
        return not _equals(actual, expected)
    if operator == LogicOperator.GREATER_THAN:
        return to_number(actual) > to_number(expected)
    if operator == LogicOperator.LESS_THAN:
        return to_number(actual) < to_number(expected)
    if operator == LogicOperator.CONTAINS:
        return _contains(actual, expected)
    raise ValueError(f"Unknown logic operator: {operator}")


def evaluate_condition(rule: LogicRule, responses: Responses, index: Optional[QuestionIndex] = None) -> bool:
    """Whether a rule's trigger condition holds for the current responses.

    With an index, a trigger question missing from the template is False
    for every operator.
    """
    if index is not None and rule.trigger_question_id not in index:
        return False
    actual = lookup_response(responses, rule.trigger_question_id, index)
    return compare(actual, rule.operator, rule.trigger_value)


def _rules_for(target_id: str, rules: Iterable[LogicRule], *actions: LogicAction) -> list[LogicRule]:
    return [r for r in rules if r.target_id == target_id and r.action in actions]


def _combine(
    allow: list[LogicRule],
    deny: list[LogicRule],
    responses: Responses,
    default: bool,
    index: Optional[QuestionIndex],
) -> bool:
    if any(evaluate_condition(r, responses, index) for r in deny):
        return False
    return default or any(evaluate_condition(r, responses, index) for r in allow)


def evaluate_visibility(
    target_id: str,
    rules: Iterable[LogicRule],
    responses: Responses,
    index: Optional[QuestionIndex] = None,
) -> bool:
    """Whether a question or section is visible.

    Fail-open: with no show/hide rule aimed at `target_id` the target is visible.
    A true `hide` rule always wins; if any `show` rule exists, at least one must hold.
    """
    rules = list(rules)
    show = _rules_for(target_id, rules, LogicAction.SHOW)
    hide = _rules_for(target_id, rules, LogicAction.HIDE)
    return _combine(show, hide, responses, not show, index)


def evaluate_requirement(
    question: Question,
    rules: Iterable[LogicRule],
    responses: Responses,
    index: Optional[QuestionIndex] = None,
) -> bool:
    """Whether a question must be answered: its mandatory flag adjusted by require/make_optional rules."""
    rules = list(rules)
    require = _rules_for(question.id, rules, LogicAction.REQUIRE)
    optional = _rules_for(question.id, rules, LogicAction.MAKE_OPTIONAL)
    return _combine(require, optional, responses, question.is_mandatory, index)


def resolve_skip_target(
    section_id: str,
    template: Template,
    responses: Responses,
    rules: Optional[Iterable[LogicRule]] = None,
    index: Optional[QuestionIndex] = None,
) -> Optional[str]:
    """Section to jump to after `section_id`, from the first matching skip_to_section rule."""
    rules = template.logic_rules if rules is None else rules
    index = template.question_index() if index is None else index
    section = template.find_section(section_id)
    if section is None:
        return None
    local_ids = {q.id for q in section.questions}
    for rule in rules:
        if rule.action != LogicAction.SKIP_TO_SECTION or rule.trigger_question_id not in local_ids:
            continue
        if evaluate_condition(rule, responses, index):
            return rule.target_section_id
    return None


def _wizard_path(template: Template, responses: Responses, visible: set[str], index: QuestionIndex) -> list[str]:
    ordered = template.ordered_sections()
    position = {s.id: i for i, s in enumerate(ordered)}
    path: list[str] = []
    i = 0
    while i < len(ordered):
        section = ordered[i]
        if section.id not in visible:
            i += 1
            continue
        path.append(section.id)
        target = resolve_skip_target(section.id, template, responses, index=index)
        # backward or unknown jumps would loop the wizard; ignore them
        if target is not None and position.get(target, -1) > i:
            i = position[target]
        else:
            i += 1
    return path


def evaluate_form(template: Template, responses: Responses) -> FormState:
    """Evaluate every section and question of a template against one response snapshot.

    Trigger answers are read from the trigger question's own section, the
    same bucket scoring and submission read.
    """
    rules = template.logic_rules
    index = template.question_index()
    for rule in rules:
        if rule.trigger_question_id not in index:
            logger.debug("Logic rule %s references unknown trigger question %s", rule.id, rule.trigger_question_id)

    sections: list[SectionState] = []
    for section in template.ordered_sections():
        section_visible = evaluate_visibility(section.id, rules, responses, index)
        questions = []
        for question in section.questions:
            visible = section_visible and evaluate_visibility(question.id, rules, responses, index)
            questions.append(QuestionState(
                question_id=question.id,
                section_id=section.id,
                visible=visible,
                required=visible and evaluate_requirement(question, rules, responses, index),
            ))
        sections.append(SectionState(section_id=section.id, visible=section_visible, questions=questions))

    path = _wizard_path(template, responses, {s.section_id for s in sections if s.visible}, index)
    on_path = set(path)
    for state in sections:
        state.skipped = state.visible and state.section_id not in on_path
    return FormState(sections=sections, path=path)


def next_section_id(template: Template, current_section_id: str, responses: Responses) -> Optional[str]:
    """Next section the wizard should show after `current_section_id`, or None when done."""
    path = evaluate_form(template, responses).path
    if current_section_id in path:
        i = path.index(current_section_id)
        return path[i + 1] if i + 1 < len(path) else None

    # current section dropped off the path (hidden by a later answer): resume after its position
    ordered = [s.id for s in template.ordered_sections()]
    if current_section_id not in ordered:
        raise ValueError(f"Unknown section: {current_section_id}")
    position = ordered.index(current_section_id)
    return next((sid for sid in path if ordered.index(sid) > position), None)
