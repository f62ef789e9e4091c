"""Audit scoring.

Credit is binary: any non-empty answer earns the question's full weight.
There is no correctness grading for choice or numeric answers.
"""

from __future__ import annotations

import logging
import math
from typing import Any

from .models import (
    ComplianceStatus,
    Question,
    Responses,
    ScoreResult,
    ScoringRules,
    Template,
)

logger = logging.getLogger(__name__)


def is_answered(value: Any) -> bool:
    """Non-empty answer check. Zero and empty lists count as answered."""
    return value is not None and value != ""


def round_half_up(value: float) -> int:
    """Round .5 upwards, as the web client does (Python's round() is banker's rounding)."""
    return int(math.floor(value + 0.5))


def question_weight(question: Question, scoring_rules: ScoringRules) -> int:
    """Weight override from the scoring rules, else the question's own weight, else 10."""
    override = scoring_rules.weights.get(question.id)
    if override:
        return override
    return question.effective_weight


def compliance_verdict(score: float, threshold: float) -> ComplianceStatus:
    if score >= threshold:
        return ComplianceStatus.COMPLIANT
    return ComplianceStatus.NON_COMPLIANT


def compute_score(template: Template, responses: Responses) -> ScoreResult:
    """Score a response snapshot against a template.

    Disabled scoring reports a deliberate zero without looking at responses.
    A template with no questions also scores zero. Unanswered critical
    questions make the audit non-compliant whatever the percentage.
    """
    rules = template.scoring_rules
    threshold = rules.threshold

    if not rules.is_enabled:
        return ScoreResult(
            score=0,
            compliance_status=compliance_verdict(0, threshold),
            enabled=False,
            threshold=threshold,
            total_questions=template.question_count,
        )

    total_points = 0
    max_points = 0
    answered = 0
    answered_ids: set[str] = set()
    for section in template.sections:
        section_answers = responses.get(section.id) or {}
        for question in section.questions:
            weight = question_weight(question, rules)
            max_points += weight
            if is_answered(section_answers.get(question.id)):
                total_points += weight
                answered += 1
                answered_ids.add(question.id)

    score = round_half_up(total_points / max_points * 100) if max_points > 0 else 0
    missing_critical = [qid for qid in rules.critical_questions if qid not in answered_ids]

    verdict = compliance_verdict(score, threshold)
    if missing_critical:
        logger.info("Critical questions unanswered for template %s: %s", template.id, ", ".join(missing_critical))
        verdict = ComplianceStatus.NON_COMPLIANT

    return ScoreResult(
        score=score,
        compliance_status=verdict,
        total_points=total_points,
        max_points=max_points,
        threshold=threshold,
        answered_questions=answered,
        total_questions=template.question_count,
        missing_critical=missing_critical,
    )


def scoring_summary(template: Template) -> dict:
    """Totals shown on the publish step: question count, total weight, pass mark."""
    rules = template.scoring_rules
    total_weight = sum(question_weight(q, rules) for _, q in template.iter_questions())
    return {
        "enabled": rules.is_enabled,
        "total_questions": template.question_count,
        "total_weight": total_weight,
        "threshold": rules.threshold,
        "min_points": round_half_up(total_weight * rules.threshold / 100),
        "critical_questions": list(rules.critical_questions),
    }
