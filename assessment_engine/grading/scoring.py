from __future__ import annotations

import asyncio
import logging
from typing import Iterable, Optional

from assessment_engine.grading.answers import WRITTEN_MIN_QUALITY, grade_answer, round_half_up
from assessment_engine.grading.evaluator import TextQualityEvaluator
from assessment_engine.models import AssessmentTest, ResultStatus, ScoreOutcome, SubmittedAnswer
from assessment_engine.observability import get_tracer

logger = logging.getLogger(__name__)

DEFAULT_PASSING_SCORE = 70


def decide_status(score: int, passing_score: int) -> ResultStatus:
    return ResultStatus.passed if score >= passing_score else ResultStatus.failed


def match_answer(question_id: str, answers: Iterable[SubmittedAnswer]) -> Optional[SubmittedAnswer]:
    """Find the submission for a question.

    Invitation-scoped clients prefix question ids (``<scope>-<id>``), so fall
    back to comparing the segment after the last ``-``.
    """
    answers = list(answers)
    for a in answers:
        if a.question_id == question_id:
            return a
    for a in answers:
        if a.question_id.split("-")[-1] == question_id:
            return a
    return None


async def score_attempt(
    test: AssessmentTest,
    answers: Iterable[SubmittedAnswer],
    evaluator: TextQualityEvaluator,
    *,
    default_passing_score: int = DEFAULT_PASSING_SCORE,
    min_quality: int = WRITTEN_MIN_QUALITY,
) -> ScoreOutcome:
    """Grade every question of ``test``; unanswered questions earn nothing but still count."""
    answers = list(answers)
    questions = list(test.iter_questions())

    with get_tracer().start_as_current_span("attempt.score") as span:
        span.set_attribute("test.id", test.test_id)
        span.set_attribute("test.questions", len(questions))

        evaluated = await asyncio.gather(
            *(
                grade_answer(q, match_answer(q.id, answers), evaluator, min_quality=min_quality)
                for q in questions
            )
        )

        total_points = sum(e.max_points for e in evaluated)
        earned_points = sum(e.points for e in evaluated)
        correct_answers = sum(1 for e in evaluated if e.is_correct)
        score = round_half_up(100 * earned_points / total_points) if total_points > 0 else 0
        status = decide_status(score, test.effective_passing_score(default_passing_score))

        span.set_attribute("attempt.score", score)
        span.set_attribute("attempt.status", status.value)

    logger.info(
        f"Scored attempt for test {test.test_id}: {earned_points}/{total_points} points, "
        f"score={score}, status={status.value}"
    )
    return ScoreOutcome(
        evaluated_answers=list(evaluated),
        total_points=total_points,
        earned_points=earned_points,
        correct_answers=correct_answers,
        score=score,
        status=status,
    )
