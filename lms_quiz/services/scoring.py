"""Scoring utilities for quiz attempts.

Functions:
- is_answer_correct: exact, case-sensitive comparison of an option key with the key.
- compute_score: percentage of correct answers.
- is_passing: compare a score with the quiz's integer passing threshold.
- grade_items: record answers on attempt items and count the correct ones.
- summarize_attempts: attempt and per-question statistics for a quiz.
"""
from typing import Dict, Iterable, List, Mapping, Optional

from lms_quiz.models.quiz_attempt import AttemptStatus, QuizAttempt, QuizAttemptItem
from lms_quiz.schemas.quiz import QuestionStatistic


def is_answer_correct(selected: Optional[str], correct_option: str) -> bool:
    return selected is not None and selected == correct_option


def compute_score(correct_answers: int, total_questions: int) -> float:
    """Return ``correct / total * 100``. ``total_questions`` must be positive."""
    assert total_questions > 0, "an attempt always has at least one question"
    return correct_answers / total_questions * 100.0


def is_passing(score: float, passing_score: int) -> bool:
    # No rounding: 59.99 does not pass a 60 threshold
    return score >= passing_score


def grade_items(
    items: Iterable[QuizAttemptItem],
    answers: Mapping[int, str],
    time_spent: Optional[Mapping[int, int]] = None,
) -> int:
    """Record each item's answer and correctness; return the number correct.

    Questions missing from ``answers`` are unanswered and graded incorrect.
    """
    time_spent = time_spent or {}
    correct = 0
    for item in items:
        selected = answers.get(item.question_id)
        item.selected_option = selected
        item.is_correct = is_answer_correct(selected, item.question.correct_option)
        if item.question_id in time_spent:
            item.time_spent_seconds = time_spent[item.question_id]
        if item.is_correct:
            correct += 1
    return correct


def summarize_attempts(attempts: List[QuizAttempt]) -> Dict:
    """Aggregate attempt-level and question-level statistics.

    Average score covers every scored attempt; pass rate and question statistics
    cover submitted attempts only.
    """
    submitted = [a for a in attempts if a.status == AttemptStatus.SUBMITTED]
    scores = [a.score for a in attempts if a.score is not None]
    passed = sum(1 for a in attempts if a.is_passed)

    questions: Dict[int, QuestionStatistic] = {}
    for attempt in submitted:
        for item in attempt.items:
            stat = questions.get(item.question_id)
            if stat is None:
                stat = QuestionStatistic(
                    question_id=item.question_id,
                    question_content=item.question.content,
                )
                questions[item.question_id] = stat
            stat.total_attempts += 1
            if item.is_correct:
                stat.correct_attempts += 1
            stat.correct_rate = stat.correct_attempts / stat.total_attempts * 100

    return {
        "total_attempts": len(attempts),
        "completed_attempts": len(submitted),
        "average_score": sum(scores) / len(scores) if scores else 0.0,
        "pass_rate": passed / len(submitted) * 100 if submitted else 0.0,
        "question_statistics": list(questions.values()),
    }
