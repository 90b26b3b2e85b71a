"""
Per-question grading.

Each grader takes the question definition and the candidate's submission for
it (or None when unanswered) and returns an immutable ``EvaluatedAnswer``.
Only written answers do I/O, through the injected evaluator.
"""

from __future__ import annotations

import math
from typing import Any, Optional, Union

from assessment_engine.grading.evaluator import TextQualityEvaluator
from assessment_engine.models import (
    AnswerValue,
    CodingTestResult,
    EvaluatedAnswer,
    Question,
    QuestionType,
    SubmittedAnswer,
)

WRITTEN_MIN_QUALITY = 15
NO_ANSWER_FEEDBACK = "No answer provided."

Choice = Union[str, tuple[str, ...]]


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def is_blank(value: AnswerValue) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    if isinstance(value, list):
        return len(value) == 0
    return False


def normalize_choice(value: Any) -> Choice:
    """Trimmed, lower-cased scalar, or a sorted tuple for multi-select answers."""
    if isinstance(value, (list, tuple)):
        items = tuple(sorted(str(v).strip().lower() for v in value))
        return items[0] if len(items) == 1 else items
    if value is None:
        return ""
    return str(value).strip().lower()


def _text_index(choice: Choice, options: list[Any]) -> Optional[int]:
    for i, option in enumerate(options):
        if normalize_choice(option) == choice:
            return i
    return None


def _answer_index(answer: AnswerValue, options: list[Any]) -> Optional[int]:
    if isinstance(answer, int) and not isinstance(answer, bool):
        return answer
    choice = normalize_choice(answer)
    if isinstance(choice, str) and choice.isdigit():
        return int(choice)
    return _text_index(choice, options)


def _is_index(value: AnswerValue) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def is_choice_correct(answer: AnswerValue, correct: AnswerValue, options: list[Any]) -> bool:
    # Either side given as an option index: compare positions
    if _is_index(correct) or _is_index(answer):
        position = _answer_index(answer, options)
        return position is not None and position == _answer_index(correct, options)

    ua, ca = normalize_choice(answer), normalize_choice(correct)
    if ua == ca:
        return True
    if options and isinstance(ua, str) and isinstance(ca, str):
        ui = _text_index(ua, options)
        return ui is not None and ui == _text_index(ca, options)
    return False


def _evaluated(question: Question, answer: AnswerValue, **fields: Any) -> EvaluatedAnswer:
    return EvaluatedAnswer(
        question_id=question.id,
        question_text=question.text,
        question_type=question.type,
        answer=answer if answer is not None else "",
        options=list(question.options),
        max_points=question.points,
        correct_answer=question.correct_answer,
        **fields,
    )


def grade_multiple_choice(question: Question, submitted: Optional[SubmittedAnswer]) -> EvaluatedAnswer:
    answer = submitted.answer if submitted else None
    correct = not is_blank(answer) and is_choice_correct(answer, question.correct_answer, question.options)
    return _evaluated(question, answer, is_correct=correct, points=question.points if correct else 0)


def grade_coding(question: Question, submitted: Optional[SubmittedAnswer]) -> EvaluatedAnswer:
    results: list[CodingTestResult] = list(submitted.coding_test_results or []) if submitted else []
    total = len(results)
    passed = sum(1 for r in results if r.passed)
    points = round_half_up(question.points * passed / total) if total > 0 else 0
    return _evaluated(
        question,
        submitted.answer if submitted else None,
        is_correct=points > 0,
        points=points,
        coding_test_results=results,
    )


async def grade_written(
    question: Question,
    submitted: Optional[SubmittedAnswer],
    evaluator: TextQualityEvaluator,
    min_quality: int = WRITTEN_MIN_QUALITY,
) -> EvaluatedAnswer:
    answer = submitted.answer if submitted else None
    if not isinstance(answer, str) or not answer.strip():
        return _evaluated(question, answer, ai_score=0, ai_feedback=NO_ANSWER_FEEDBACK)

    evaluation = await evaluator.evaluate(question.text, answer)
    # Below the floor the answer is treated as irrelevant rather than partially right.
    if evaluation.quality_score >= min_quality:
        points = round_half_up(question.points * evaluation.quality_score / 100)
    else:
        points = 0
    return _evaluated(
        question,
        answer,
        is_correct=points > 0,
        points=points,
        ai_score=evaluation.quality_score,
        ai_feedback=evaluation.feedback,
    )


def grade_unsupported(question: Question, submitted: Optional[SubmittedAnswer]) -> EvaluatedAnswer:
    return _evaluated(question, submitted.answer if submitted else None)


async def grade_answer(
    question: Question,
    submitted: Optional[SubmittedAnswer],
    evaluator: TextQualityEvaluator,
    min_quality: int = WRITTEN_MIN_QUALITY,
) -> EvaluatedAnswer:
    if question.type == QuestionType.multiple_choice.value:
        return grade_multiple_choice(question, submitted)
    if question.type == QuestionType.coding.value:
        return grade_coding(question, submitted)
    if question.type == QuestionType.written_answer.value:
        return await grade_written(question, submitted, evaluator, min_quality=min_quality)
    return grade_unsupported(question, submitted)
