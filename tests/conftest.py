from __future__ import annotations

from typing import Optional

import pytest

from assessment_engine.grading.evaluator import TextEvaluation, TextQualityEvaluator
from assessment_engine.models import (
    AssessmentResult,
    AssessmentTest,
    Employee,
    Question,
    ResultStatus,
    Section,
)
from assessment_engine.services.notifications import NotificationSender
from assessment_engine.storage.inmemory import InMemoryAssessmentRepository


class StubEvaluator(TextQualityEvaluator):
    def __init__(self, score: int = 80, feedback: str = "Clear and relevant.") -> None:
        self.score = score
        self.feedback = feedback
        self.calls: list[tuple[str, str]] = []

    async def evaluate(self, question_text: str, answer_text: str) -> TextEvaluation:
        self.calls.append((question_text, answer_text))
        return TextEvaluation(quality_score=self.score, feedback=self.feedback)


class RecordingNotifier(NotificationSender):
    def __init__(self, fail_for: tuple[str, ...] = ()) -> None:
        self.fail_for = set(fail_for)
        self.sent: list[dict[str, str]] = []

    async def send(self, to: str, subject: str, text_body: str, html_body: str) -> bool:
        if to in self.fail_for:
            raise ConnectionError(f"mailbox unavailable: {to}")
        self.sent.append({"to": to, "subject": subject, "text": text_body, "html": html_body})
        return True


class FlakyClaimRepository(InMemoryAssessmentRepository):
    """Raises on the claim of selected results, like a dropped store connection."""

    def __init__(self, failing: set[str]) -> None:
        super().__init__()
        self.failing = failing

    async def claim_declaration(self, result_id, status, declared_by, declared_at):
        if result_id in self.failing:
            raise ConnectionError("store unavailable")
        return await super().claim_declaration(result_id, status, declared_by, declared_at)


def make_test(test_id: str = "test-1", passing_score: Optional[int] = 60) -> AssessmentTest:
    return AssessmentTest(
        test_id=test_id,
        name="Backend Fundamentals",
        passing_score=passing_score,
        created_by="emp-1",
        sections=[
            Section(
                title="Basics",
                questions=[
                    Question(
                        id="q1",
                        type="Multiple Choice",
                        text="Which HTTP verb is idempotent?",
                        points=10,
                        options=["POST", "PUT", "PATCH"],
                        correct_answer="PUT",
                    ),
                    Question(id="q2", type="Coding", text="Reverse a string", points=10),
                ],
            ),
            Section(
                title="Design",
                questions=[
                    Question(id="q3", type="Written Answer", text="Explain caching.", points=10),
                ],
            ),
        ],
    )


def make_result(
    repo: InMemoryAssessmentRepository,
    test_id: str = "test-1",
    score: int = 75,
    email: Optional[str] = "cand@example.com",
    created_by: str = "emp-1",
    **fields,
) -> AssessmentResult:
    result = AssessmentResult(
        test_id=test_id,
        test_name="Backend Fundamentals",
        score=score,
        status=ResultStatus.failed,
        candidate_email=email,
        created_by=created_by,
        **fields,
    )
    repo.results[result.result_id] = result
    return result


@pytest.fixture
def repo() -> InMemoryAssessmentRepository:
    repo = InMemoryAssessmentRepository()
    repo.add_test(make_test())
    repo.add_employee(
        Employee(user_id="emp-1", first_name="Dana", last_name="Reyes", email="dana@acme.io", company_name="Acme")
    )
    return repo


@pytest.fixture
def evaluator() -> StubEvaluator:
    return StubEvaluator()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()
