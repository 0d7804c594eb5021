"""Tests for the pure scoring helpers."""

from types import SimpleNamespace

import pytest

from lms_quiz.models.quiz_attempt import AttemptStatus
from lms_quiz.services.scoring import (
    compute_score,
    grade_items,
    is_answer_correct,
    is_passing,
    summarize_attempts,
)


def make_item(question_id: int, correct_option: str, content: str = "q"):
    return SimpleNamespace(
        question_id=question_id,
        question=SimpleNamespace(correct_option=correct_option, content=content),
        selected_option=None,
        is_correct=None,
        time_spent_seconds=None,
    )


def test_answer_comparison_is_exact_and_case_sensitive() -> None:
    assert is_answer_correct("A", "A")
    assert not is_answer_correct("a", "A")
    assert not is_answer_correct(None, "A")
    assert not is_answer_correct("B", "A")


@pytest.mark.parametrize(
    "correct, total, expected",
    [(0, 4, 0.0), (2, 4, 50.0), (4, 4, 100.0), (1, 3, 100.0 / 3)],
)
def test_compute_score(correct: int, total: int, expected: float) -> None:
    assert compute_score(correct, total) == pytest.approx(expected)


def test_compute_score_requires_questions() -> None:
    with pytest.raises(AssertionError):
        compute_score(0, 0)


def test_passing_threshold_is_not_rounded() -> None:
    assert is_passing(60.0, 60)
    assert not is_passing(59.999, 60)
    assert is_passing(100.0, 100)
    assert is_passing(0.0, 0)


def test_grade_items_scenario() -> None:
    items = [make_item(1, "A"), make_item(2, "B"), make_item(3, "C"), make_item(4, "D")]

    correct = grade_items(items, {1: "A", 2: "B", 3: "X"}, {1: 12, 4: 3})

    assert correct == 2
    assert [i.selected_option for i in items] == ["A", "B", "X", None]
    assert [i.is_correct for i in items] == [True, True, False, False]
    assert [i.time_spent_seconds for i in items] == [12, None, None, 3]


def test_summarize_attempts() -> None:
    def attempt(status, score, passed, results):
        items = []
        for question_id, ok in results:
            item = make_item(question_id, "A", content=f"question {question_id}")
            item.is_correct = ok
            items.append(item)
        return SimpleNamespace(status=status, score=score, is_passed=passed, items=items)

    attempts = [
        attempt(AttemptStatus.SUBMITTED, 100.0, True, [(1, True), (2, True)]),
        attempt(AttemptStatus.SUBMITTED, 50.0, False, [(1, True), (2, False)]),
        attempt(AttemptStatus.IN_PROGRESS, None, None, [(1, None), (2, None)]),
    ]

    stats = summarize_attempts(attempts)

    assert stats["total_attempts"] == 3
    assert stats["completed_attempts"] == 2
    assert stats["average_score"] == pytest.approx(75.0)
    assert stats["pass_rate"] == pytest.approx(50.0)
    by_question = {s.question_id: s for s in stats["question_statistics"]}
    assert by_question[1].correct_rate == pytest.approx(100.0)
    assert by_question[2].total_attempts == 2
    assert by_question[2].correct_attempts == 1
    assert by_question[2].correct_rate == pytest.approx(50.0)


def test_summarize_without_attempts() -> None:
    stats = summarize_attempts([])
    assert stats["average_score"] == 0.0
    assert stats["pass_rate"] == 0.0
    assert stats["question_statistics"] == []
