"""
Pytest fixtures shared by the audit test suite.
Provides template and audit payloads in the persisted row shape.
"""

import pytest

from retail_audit.core.models import Audit, LogicRule, Template


def make_rule(rule_id, trigger, value, target, action="show", operator="equals", section_target=False):
    """Build a LogicRule aimed at a question (default) or a section."""
    data = {
        "id": rule_id,
        "trigger_question_id": trigger,
        "trigger_value": value,
        "operator": operator,
        "action": action,
    }
    data["target_section_id" if section_target else "target_question_id"] = target
    return LogicRule.model_validate(data)


@pytest.fixture
def template_row():
    """A store-walk template: three sections, mixed question types, scoring on."""
    return {
        "id": "tpl-1",
        "name": "Store Walk",
        "description": "Weekly store standards check",
        "category": "Operations",
        "is_published": False,
        "sections": [
            {
                "id": "s1",
                "title": "Entrance",
                "order": 0,
                "questions": [
                    {"id": "q1", "text": "Is the entrance clean?", "type": "single_choice",
                     "options": ["Yes", "No"], "isMandatory": True, "weight": 10,
                     "validationRules": {}},
                    {"id": "q2", "text": "Describe the issue", "type": "text",
                     "isMandatory": False, "weight": 20,
                     "validationRules": {"minLength": 5}},
                ],
            },
            {
                "id": "s2",
                "title": "Shelves",
                "order": 1,
                "questions": [
                    {"id": "q3", "text": "Empty facings", "type": "numeric",
                     "isMandatory": True, "validationRules": {"minValue": 0, "maxValue": 500}},
                    {"id": "q4", "text": "Promotions present", "type": "multiple_choice",
                     "options": ["Endcap", "Floor stand", "Shelf talker"], "isMandatory": False,
                     "validationRules": {}},
                ],
            },
            {
                "id": "s3",
                "title": "Back room",
                "order": 2,
                "questions": [
                    {"id": "q5", "text": "Stock room tidy?", "type": "dropdown",
                     "options": ["Good", "Fair", "Poor"], "isMandatory": True, "validationRules": {}},
                ],
            },
        ],
        "logic_rules": [],
        "scoring_rules": {"isEnabled": True, "weights": {}, "threshold": 80, "criticalQuestions": []},
    }


@pytest.fixture
def template(template_row):
    return Template.model_validate(template_row)


@pytest.fixture
def full_responses():
    return {
        "s1": {"q1": "Yes", "q2": "Mat is torn"},
        "s2": {"q3": 4, "q4": ["Endcap"]},
        "s3": {"q5": "Good"},
    }


@pytest.fixture
def audit_row():
    return {
        "id": "aud-1",
        "template_id": "tpl-1",
        "template_name": "Store Walk",
        "status": "in_progress",
        "assigned_to": "user-7",
        "assigned_to_name": "Sam Rivera",
        "location": {"storeName": "Store 112", "address": "1 Main St"},
        "responses": {},
        "score": None,
        "compliance_status": None,
        "submitted_at": None,
    }


@pytest.fixture
def audit(audit_row):
    return Audit.model_validate(audit_row)
