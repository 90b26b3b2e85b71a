import pytest

from assessment_engine.grading.answers import (
    NO_ANSWER_FEEDBACK,
    grade_answer,
    grade_coding,
    grade_multiple_choice,
    grade_written,
    is_choice_correct,
    round_half_up,
)
from assessment_engine.models import CodingTestResult, Question, SubmittedAnswer

from conftest import StubEvaluator


def mcq(correct, options=("A", "B", "C", "D"), points=5):
    return Question(id="m1", type="Multiple Choice", text="Pick one", points=points, options=list(options), correct_answer=correct)


def coding(points=50):
    return Question(id="c1", type="Coding", text="Implement it", points=points)


def written(points=20):
    return Question(id="w1", type="Written Answer", text="Explain indexes.", points=points)


def cases(passed, total):
    return [CodingTestResult(input=str(i), expected_output="x", actual_output="x", passed=i < passed) for i in range(total)]


def test_round_half_up_matches_half_away_from_zero_for_positive_values():
    assert round_half_up(37.5) == 38
    assert round_half_up(2.5) == 3
    assert round_half_up(2.49) == 2


@pytest.mark.parametrize("correct", ["B", ["A", "C"], "Paris"])
def test_mcq_correct_answer_earns_full_points(correct):
    q = mcq(correct, options=("A", "B", "C", "Paris"))
    graded = grade_multiple_choice(q, SubmittedAnswer(question_id="m1", answer=correct))
    assert graded.is_correct is True
    assert graded.points == q.points


@pytest.mark.parametrize("answer", ["", "   ", None, []])
def test_mcq_blank_answer_earns_nothing(answer):
    graded = grade_multiple_choice(mcq("B"), SubmittedAnswer(question_id="m1", answer=answer))
    assert graded.is_correct is False
    assert graded.points == 0


def test_mcq_unanswered_question_earns_nothing():
    graded = grade_multiple_choice(mcq("B"), None)
    assert graded.is_correct is False
    assert graded.points == 0
    assert graded.answer == ""


def test_mcq_comparison_ignores_case_and_whitespace():
    assert is_choice_correct("  b ", "B", ["A", "B"])


def test_mcq_multi_select_ignores_order():
    assert is_choice_correct(["c", "A"], ["A", "C"], [])
    assert not is_choice_correct(["A"], ["A", "C"], [])


def test_mcq_single_element_list_matches_scalar():
    assert is_choice_correct(["B"], "B", [])
    assert is_choice_correct("B", ["B"], [])


@pytest.mark.parametrize("answer", [1, "1", "B", " b"])
def test_mcq_index_correct_answer(answer):
    assert is_choice_correct(answer, 1, ["A", "B", "C"])


def test_mcq_index_answer_against_value_key():
    assert is_choice_correct(1, "B", ["A", "B", "C"])
    assert is_choice_correct(["1"], 1, ["A", "B", "C"])
    assert not is_choice_correct(1, "C", ["A", "B", "C"])
    assert not is_choice_correct(3, "B", ["A", "B", "C"])


def test_mcq_index_correct_answer_rejects_other_options():
    assert not is_choice_correct("C", 1, ["A", "B", "C"])
    assert not is_choice_correct(2, 1, ["A", "B", "C"])


def test_mcq_wrong_answer():
    graded = grade_multiple_choice(mcq("B"), SubmittedAnswer(question_id="m1", answer="C"))
    assert graded.is_correct is False
    assert graded.points == 0
    assert graded.max_points == 5


@pytest.mark.parametrize(
    "passed,total,points,correct",
    [(0, 4, 0, False), (1, 4, 13, True), (3, 4, 38, True), (4, 4, 50, True)],
)
def test_coding_points_are_proportional(passed, total, points, correct):
    graded = grade_coding(coding(), SubmittedAnswer(question_id="c1", answer="code", coding_test_results=cases(passed, total)))
    assert graded.points == points
    assert graded.is_correct is correct
    assert len(graded.coding_test_results) == total


def test_coding_without_test_results_earns_nothing():
    graded = grade_coding(coding(), SubmittedAnswer(question_id="c1", answer="print(1)"))
    assert graded.points == 0
    assert graded.is_correct is False
    assert graded.coding_test_results == []


@pytest.mark.parametrize("quality,points", [(14, 0), (15, 3), (50, 10), (100, 20)])
async def test_written_quality_threshold(quality, points):
    evaluator = StubEvaluator(score=quality)
    graded = await grade_written(written(), SubmittedAnswer(question_id="w1", answer="B-trees speed lookups."), evaluator)

    assert graded.points == points
    assert graded.is_correct is (points > 0)
    assert graded.ai_score == quality
    assert graded.ai_feedback == evaluator.feedback
    assert evaluator.calls == [("Explain indexes.", "B-trees speed lookups.")]


@pytest.mark.parametrize("answer", ["", "   ", None])
async def test_written_blank_answer_skips_evaluator(answer):
    evaluator = StubEvaluator(score=100)
    graded = await grade_written(written(), SubmittedAnswer(question_id="w1", answer=answer), evaluator)

    assert graded.points == 0
    assert graded.ai_score == 0
    assert graded.ai_feedback == NO_ANSWER_FEEDBACK
    assert evaluator.calls == []


async def test_unknown_question_type_is_recorded_without_points():
    q = Question(id="x1", type="Essay Upload", text="Upload a file", points=10)
    graded = await grade_answer(q, SubmittedAnswer(question_id="x1", answer="file.pdf"), StubEvaluator())

    assert graded.points == 0
    assert graded.max_points == 10
    assert graded.is_correct is False
    assert graded.answer == "file.pdf"
