"""Pydantic data models: the shared audit objects.

Field names and aliases match the persisted template/audit rows
(`sections`, `logic_rules`, `scoring_rules`, `responses`, `score`,
`compliance_status`, ...), so rows loaded from the backend validate directly
and `model_dump(by_alias=True)` writes them back in the same shape.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Iterator, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

# section id -> question id -> answer
Responses = dict[str, dict[str, Any]]

DEFAULT_QUESTION_WEIGHT = 10
DEFAULT_COMPLIANCE_THRESHOLD = 80


class QuestionType(str, Enum):
    """Answer widget / value shape of a question."""

    TEXT = "text"
    NUMERIC = "numeric"
    SINGLE_CHOICE = "single_choice"
    MULTIPLE_CHOICE = "multiple_choice"
    DROPDOWN = "dropdown"
    DATE = "date"
    FILE_UPLOAD = "file_upload"
    BARCODE = "barcode"

    @property
    def has_options(self) -> bool:
        return self in CHOICE_TYPES


CHOICE_TYPES = frozenset({QuestionType.SINGLE_CHOICE, QuestionType.MULTIPLE_CHOICE, QuestionType.DROPDOWN})


class LogicOperator(str, Enum):
    """Comparison between a trigger answer and a rule value."""

    EQUALS = "equals"
    NOT_EQUALS = "not_equals"
    GREATER_THAN = "greater_than"
    LESS_THAN = "less_than"
    CONTAINS = "contains"


class LogicAction(str, Enum):
    """What a logic rule does to its target when its condition holds."""

    SHOW = "show"
    HIDE = "hide"
    SKIP_TO_SECTION = "skip_to_section"
    REQUIRE = "require"
    MAKE_OPTIONAL = "make_optional"


class AuditStatus(str, Enum):
    """Audit status label. Not a state machine: any value may be set."""

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    OVERDUE = "overdue"


class ComplianceStatus(str, Enum):
    COMPLIANT = "compliant"
    NON_COMPLIANT = "non_compliant"
    PENDING = "pending"


class IssueSeverity(str, Enum):
    ERROR = "error"
    WARNING = "warning"


class UserRole(str, Enum):
    ADMIN = "admin"
    SUPERVISOR = "supervisor"
    AUDITOR = "auditor"


class ValidationRules(BaseModel):
    """Per-question answer constraints."""

    model_config = ConfigDict(populate_by_name=True)

    min_value: Optional[float] = Field(None, alias="minValue")
    max_value: Optional[float] = Field(None, alias="maxValue")
    min_length: Optional[int] = Field(None, alias="minLength")
    max_length: Optional[int] = Field(None, alias="maxLength")
    pattern: Optional[str] = None


class Question(BaseModel):
    """A single audit question."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    text: str = ""
    type: QuestionType = QuestionType.TEXT
    options: list[str] = Field(default_factory=list)
    is_mandatory: bool = Field(False, alias="isMandatory")
    weight: Optional[int] = Field(DEFAULT_QUESTION_WEIGHT, description="Points earned when answered")
    validation_rules: ValidationRules = Field(default_factory=ValidationRules, alias="validationRules")

    @property
    def effective_weight(self) -> int:
        return self.weight or DEFAULT_QUESTION_WEIGHT


class Section(BaseModel):
    """An ordered group of questions within a template."""

    id: str
    title: str = ""
    description: Optional[str] = None
    order: int = 0
    questions: list[Question] = Field(default_factory=list)


class LogicRule(BaseModel):
    """Conditional directive: when the trigger answer matches, apply the action to the target."""

    id: str
    trigger_question_id: str
    trigger_value: Any = None
    operator: LogicOperator = LogicOperator.EQUALS
    action: LogicAction = LogicAction.SHOW
    target_question_id: Optional[str] = None
    target_section_id: Optional[str] = None

    @model_validator(mode="after")
    def _check_target(self) -> "LogicRule":
        if self.target_question_id and self.target_section_id:
            raise ValueError(f"Logic rule {self.id} targets both a question and a section")
        if not self.target_question_id and not self.target_section_id:
            raise ValueError(f"Logic rule {self.id} has no target")
        if self.action == LogicAction.SKIP_TO_SECTION and not self.target_section_id:
            raise ValueError(f"Logic rule {self.id}: skip_to_section requires a target section")
        return self

    @property
    def target_id(self) -> str:
        return self.target_question_id or self.target_section_id  # type: ignore[return-value]


class ScoringRules(BaseModel):
    """Template scoring configuration."""

    model_config = ConfigDict(populate_by_name=True)

    is_enabled: bool = Field(False, alias="isEnabled")
    weights: dict[str, int] = Field(default_factory=dict, description="Per-question weight overrides")
    threshold: float = Field(DEFAULT_COMPLIANCE_THRESHOLD, description="Compliance threshold percentage")
    critical_questions: list[str] = Field(
        default_factory=list,
        alias="criticalQuestions",
        description="Questions that must be answered for the audit to be compliant",
    )


class Template(BaseModel):
    """A reusable audit definition."""

    id: str = ""
    name: str = ""
    description: str = ""
    category: str = ""
    sections: list[Section] = Field(default_factory=list)
    logic_rules: list[LogicRule] = Field(default_factory=list)
    scoring_rules: ScoringRules = Field(default_factory=ScoringRules)
    is_published: bool = False
    version: int = 1
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def ordered_sections(self) -> list[Section]:
        """Sections sorted by `order`; ties keep their list position."""
        return sorted(self.sections, key=lambda s: s.order)

    def iter_questions(self) -> Iterator[tuple[Section, Question]]:
        for section in self.ordered_sections():
            for question in section.questions:
                yield section, question

    def find_question(self, question_id: str) -> Optional[Question]:
        for _, question in self.iter_questions():
            if question.id == question_id:
                return question
        return None

    def find_section(self, section_id: str) -> Optional[Section]:
        return next((s for s in self.sections if s.id == section_id), None)

    def section_of(self, question_id: str) -> Optional[Section]:
        for section, question in self.iter_questions():
            if question.id == question_id:
                return section
        return None

    def question_index(self) -> dict[str, str]:
        """Question id -> id of the section holding it."""
        return {q.id: s.id for s, q in self.iter_questions()}

    @property
    def question_count(self) -> int:
        return sum(len(s.questions) for s in self.sections)


class Location(BaseModel):
    """Store being audited."""

    model_config = ConfigDict(populate_by_name=True)

    store_name: str = Field("", alias="storeName")
    address: str = ""
    coordinates: Optional[dict[str, float]] = None


class Audit(BaseModel):
    """One execution of a template at a location by an assignee."""

    id: str = ""
    template_id: str
    template_name: str = ""
    status: AuditStatus = AuditStatus.PENDING
    assigned_to: str = ""
    assigned_to_name: str = ""
    location: Location = Field(default_factory=Location)
    responses: Responses = Field(default_factory=dict)
    score: Optional[int] = None
    compliance_status: Optional[ComplianceStatus] = None
    submitted_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class User(BaseModel):
    """A member of the audit team: admin, supervisor, or field auditor."""

    id: str = ""
    name: str = ""
    email: str = ""
    role: UserRole = UserRole.AUDITOR
    assigned_regions: list[str] = Field(default_factory=list)
    last_login: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def is_active(self) -> bool:
        """Users who have logged in at least once."""
        return self.last_login is not None


class ScoreResult(BaseModel):
    """Outcome of scoring a response set against a template."""

    score: int = Field(ge=0, le=100, description="Percentage of available points earned")
    compliance_status: ComplianceStatus
    enabled: bool = Field(True, description="False when the template has scoring disabled")
    total_points: int = 0
    max_points: int = 0
    threshold: float = DEFAULT_COMPLIANCE_THRESHOLD
    answered_questions: int = 0
    total_questions: int = 0
    missing_critical: list[str] = Field(default_factory=list, description="Unanswered critical question ids")


class QuestionState(BaseModel):
    question_id: str
    section_id: str
    visible: bool
    required: bool


class SectionState(BaseModel):
    section_id: str
    visible: bool
    skipped: bool = Field(False, description="Visible, but jumped over by a skip_to_section rule")
    questions: list[QuestionState] = Field(default_factory=list)


class FormState(BaseModel):
    """Effective visibility/requiredness of a template for one response snapshot."""

    sections: list[SectionState] = Field(default_factory=list)
    path: list[str] = Field(default_factory=list, description="Section ids the wizard visits, in order")

    def question(self, question_id: str) -> Optional[QuestionState]:
        for section in self.sections:
            for q in section.questions:
                if q.question_id == question_id:
                    return q
        return None

    def section(self, section_id: str) -> Optional[SectionState]:
        return next((s for s in self.sections if s.section_id == section_id), None)


class ValidationIssue(BaseModel):
    """A problem found in a template definition."""

    severity: IssueSeverity
    code: str
    message: str
    ref: Optional[str] = Field(None, description="Id of the offending section, question or rule")


class ScoreBucket(BaseModel):
    range: str
    count: int


class DashboardMetrics(BaseModel):
    """Aggregate numbers shown on the manager dashboard."""

    total_templates: int = 0
    published_templates: int = 0
    total_audits: int = 0
    completed_audits: int = 0
    in_progress_audits: int = 0
    pending_audits: int = 0
    overdue_audits: int = 0
    average_score: int = 0
    compliance_rate: int = 0
    total_users: int = 0
    active_users: int = Field(0, description="Users with a recorded login")
    computed_at: datetime = Field(default_factory=datetime.utcnow)
