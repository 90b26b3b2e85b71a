from __future__ import annotations

from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Optional, Union
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CamelModel(BaseModel):
    """Snake-case attributes, camelCase on the wire and in the document store."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# A submitted answer is a single choice/text, an index, or a multi-select list.
AnswerValue = Union[str, int, list[Union[str, int]], None]


def _as_str_id(value: object) -> object:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return value


class QuestionType(str, Enum):
    multiple_choice = "Multiple Choice"
    coding = "Coding"
    written_answer = "Written Answer"


class ResultStatus(str, Enum):
    passed = "Passed"
    failed = "Failed"


# ---------------------------------------------------------------------------
# Exam sessions
# ---------------------------------------------------------------------------


class ExamSession(CamelModel):
    token: str
    test_id: str
    invitation_id: Optional[str] = None

    started_at: datetime
    expires_at: datetime
    duration_seconds: int
    last_activity_at: datetime

    tab_switch_count: int = 0
    current_section: int = 0
    current_question: int = 0
    answers: dict[str, Any] = Field(default_factory=dict)
    codes: dict[str, Any] = Field(default_factory=dict)
    code_submissions: dict[str, Any] = Field(default_factory=dict)
    notes: str = ""

    completed_at: Optional[datetime] = None
    terminated_at: Optional[datetime] = None

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @classmethod
    def start(
        cls, token: str, test_id: str, duration_seconds: int, invitation_id: Optional[str] = None
    ) -> "ExamSession":
        now = utcnow()
        return cls(
            token=token,
            test_id=test_id,
            invitation_id=invitation_id,
            started_at=now,
            expires_at=now + timedelta(seconds=duration_seconds),
            duration_seconds=duration_seconds,
            last_activity_at=now,
            created_at=now,
            updated_at=now,
        )

    @property
    def is_closed(self) -> bool:
        return self.completed_at is not None or self.terminated_at is not None

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        return (now or utcnow()) > self.expires_at


class CreateSessionRequest(CamelModel):
    # Optional so a missing value is reported as 400 rather than a schema error
    test_id: Optional[str] = None
    duration_seconds: Optional[int] = None
    invitation_id: Optional[str] = None


class SessionPatch(CamelModel):
    """Allow-listed session mutations. Unknown keys are dropped."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    answers: Optional[dict[str, Any]] = None
    codes: Optional[dict[str, Any]] = None
    code_submissions: Optional[dict[str, Any]] = None
    tab_switch_count: Optional[int] = None
    current_section: Optional[int] = None
    current_question: Optional[int] = None
    notes: Optional[str] = None
    terminated_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    last_activity_at: Optional[datetime] = None


TERMINAL_FIELDS = ("completed_at", "terminated_at")


class SessionResponse(CamelModel):
    success: bool = True
    session: Optional[ExamSession] = None
    message: Optional[str] = None


# ---------------------------------------------------------------------------
# Tests and questions (owned by the test authoring flow, read-only here)
# ---------------------------------------------------------------------------


class Question(CamelModel):
    id: str
    type: str
    text: str = ""
    points: int = 0
    options: list[Any] = Field(default_factory=list)
    correct_answer: AnswerValue = None

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, value: object) -> object:
        return _as_str_id(value)


class Section(CamelModel):
    title: str = ""
    questions: list[Question] = Field(default_factory=list)


class AssessmentTest(CamelModel):
    test_id: str
    name: str = ""
    passing_score: Optional[int] = None
    duration: Optional[int] = None
    sections: list[Section] = Field(default_factory=list)
    created_by: Optional[str] = None

    def effective_passing_score(self, default: int = 70) -> int:
        return default if self.passing_score is None else self.passing_score

    def iter_questions(self):
        for section in self.sections:
            yield from section.questions


# ---------------------------------------------------------------------------
# Answers
# ---------------------------------------------------------------------------


class CodingTestResult(CamelModel):
    input: Any = ""
    expected_output: Any = ""
    actual_output: Any = ""
    passed: bool = False


class SubmittedAnswer(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    question_id: str
    answer: AnswerValue = None
    coding_test_results: Optional[list[CodingTestResult]] = None

    @field_validator("question_id", mode="before")
    @classmethod
    def coerce_id(cls, value: object) -> object:
        return _as_str_id(value)


class EvaluatedAnswer(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    question_id: str
    question_text: str = ""
    question_type: str
    answer: AnswerValue = None
    options: list[Any] = Field(default_factory=list)
    is_correct: bool = False
    points: int = 0
    max_points: int = 0
    correct_answer: AnswerValue = None
    ai_score: Optional[int] = None
    ai_feedback: Optional[str] = None
    coding_test_results: Optional[list[CodingTestResult]] = None


class ScoreOutcome(CamelModel):
    evaluated_answers: list[EvaluatedAnswer] = Field(default_factory=list)
    total_points: int = 0
    earned_points: int = 0
    correct_answers: int = 0
    score: int = 0
    status: ResultStatus = ResultStatus.failed


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


class ScoredAttempt(CamelModel):
    result_id: str = Field(default_factory=lambda: str(uuid4()))
    test_id: str
    test_name: Optional[str] = None

    score: int = 0
    status: ResultStatus = ResultStatus.failed
    duration: Optional[float] = None
    tab_switch_count: int = 0
    answers: list[EvaluatedAnswer] = Field(default_factory=list)
    total_points: int = 0
    earned_points: int = 0
    correct_answers: int = 0

    results_declared: bool = False
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    def apply_outcome(self, outcome: ScoreOutcome) -> None:
        self.score = outcome.score
        self.status = outcome.status
        self.answers = list(outcome.evaluated_answers)
        self.total_points = outcome.total_points
        self.earned_points = outcome.earned_points
        self.correct_answers = outcome.correct_answers


class AssessmentResult(ScoredAttempt):
    invitation_id: Optional[str] = None
    candidate_id: Optional[str] = None
    student_id: Optional[str] = None
    candidate_email: Optional[str] = None
    candidate_name: Optional[str] = None
    created_by: Optional[str] = None

    completion_date: Optional[datetime] = None
    declared_at: Optional[datetime] = None
    declared_by: Optional[str] = None


class PreviewResult(ScoredAttempt):
    employee_id: str
    employee_name: Optional[str] = None
    employee_email: Optional[str] = None


# ---------------------------------------------------------------------------
# Other collaborators' records consumed by the core
# ---------------------------------------------------------------------------


class Invitation(CamelModel):
    invitation_id: str
    test_id: Optional[str] = None
    email: Optional[str] = None
    created_by: Optional[str] = None
    status: str = "Pending"
    completed_at: Optional[datetime] = None


class Employee(CamelModel):
    user_id: str
    first_name: str = ""
    last_name: str = ""
    email: Optional[str] = None
    company_name: str = ""

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


# ---------------------------------------------------------------------------
# Request / response DTOs
# ---------------------------------------------------------------------------


class PreviewScoreRequest(CamelModel):
    test_id: str
    test_name: Optional[str] = None
    answers: list[SubmittedAnswer] = Field(default_factory=list)
    duration: Optional[float] = None
    tab_switch_count: int = 0


class SubmitResultRequest(CamelModel):
    invitation_id: Optional[str] = None
    test_id: str
    test_name: Optional[str] = None
    candidate_email: Optional[str] = None
    candidate_name: Optional[str] = None
    candidate_id: Optional[str] = None
    student_id: Optional[str] = None
    answers: list[SubmittedAnswer] = Field(default_factory=list)
    duration: Optional[float] = None
    tab_switch_count: int = 0


class ScoreResponse(CamelModel):
    success: bool = True
    message: str = ""
    result_id: Optional[str] = None
    score: int = 0
    status: ResultStatus = ResultStatus.failed
    evaluated_answers: list[EvaluatedAnswer] = Field(default_factory=list)
    total_points: int = 0
    earned_points: int = 0
    correct_answers: int = 0


class ResultDetailResponse(CamelModel):
    success: bool = True
    result: AssessmentResult
    total_questions: int = 0


class DeclareResponse(CamelModel):
    success: bool = True
    message: str = ""
    declared_count: int = 0
    emails_sent: int = 0
