from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List
import logging

from lms_quiz.db.session import get_db
from lms_quiz.core.errors import QuizEngineError, to_http_exception
from lms_quiz.schemas.quiz import (
    Question as QuestionSchema,
    Quiz as QuizSchema,
    QuizAttempt as QuizAttemptSchema,
    QuizAttemptList,
    QuizCreate,
    QuizQuestionsUpdate,
    QuizResultDetail,
    QuizStatistics,
    StartAttemptRequest,
    SubmitAttemptRequest,
)
from lms_quiz.models.quiz_attempt import QuizAttempt
from lms_quiz.services.quiz_service import QuizService

router = APIRouter()
logger = logging.getLogger(__name__)


def get_quiz_service(db: AsyncSession = Depends(get_db)) -> QuizService:
    return QuizService(db)


def student_view(attempt: QuizAttempt) -> QuizAttemptSchema:
    """Attempt as its student sees it; grading is withheld unless the quiz shows results immediately."""
    view = QuizAttemptSchema.model_validate(attempt)
    if attempt.quiz.show_results_immediately:
        return view
    return view.model_copy(update={
        "correct_answers": None,
        "score": None,
        "is_passed": None,
        "items": [item.model_copy(update={"is_correct": None}) for item in view.items],
    })


# ----------------------------------------------------------------------
# Quiz configuration (instructor)
# ----------------------------------------------------------------------

@router.post("/quizzes/lessons/{lesson_id}", response_model=QuizSchema, status_code=status.HTTP_201_CREATED)
async def create_quiz(
    lesson_id: int,
    quiz_data: QuizCreate,
    service: QuizService = Depends(get_quiz_service)
):
    """Create the quiz of a lesson."""
    try:
        return await service.create_quiz(lesson_id, quiz_data)
    except QuizEngineError as e:
        logger.error(f"Quiz creation failed for lesson {lesson_id}: {e.message}")
        raise to_http_exception(e, "Failed to create quiz")


@router.get("/quizzes/lessons/{lesson_id}", response_model=QuizSchema)
async def get_quiz(
    lesson_id: int,
    service: QuizService = Depends(get_quiz_service)
):
    """Get quiz settings by lesson ID."""
    try:
        return await service.get_quiz_by_lesson(lesson_id)
    except QuizEngineError as e:
        raise to_http_exception(e, "Failed to get quiz")


@router.delete("/quizzes/lessons/{lesson_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_quiz(
    lesson_id: int,
    service: QuizService = Depends(get_quiz_service)
):
    """Delete a quiz with its question list and every attempt."""
    try:
        await service.delete_quiz(lesson_id)
    except QuizEngineError as e:
        raise to_http_exception(e, "Failed to delete quiz")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/quizzes/lessons/{lesson_id}/questions", response_model=List[QuestionSchema])
async def get_quiz_questions(
    lesson_id: int,
    service: QuizService = Depends(get_quiz_service)
):
    """Instructor view of the manual question list, answer key included."""
    try:
        return await service.get_quiz_questions(lesson_id)
    except QuizEngineError as e:
        raise to_http_exception(e, "Failed to get quiz questions")


@router.put("/quizzes/lessons/{lesson_id}/questions", response_model=QuizSchema)
async def update_quiz_questions(
    lesson_id: int,
    data: QuizQuestionsUpdate,
    service: QuizService = Depends(get_quiz_service)
):
    """Replace the manual question list of a quiz."""
    try:
        return await service.update_quiz_questions(lesson_id, data.question_ids)
    except QuizEngineError as e:
        raise to_http_exception(e, "Failed to update quiz questions")


@router.post("/quizzes/lessons/{lesson_id}/questions/{question_id}", response_model=QuizSchema)
async def add_question_to_quiz(
    lesson_id: int,
    question_id: int,
    service: QuizService = Depends(get_quiz_service)
):
    try:
        return await service.add_question_to_quiz(lesson_id, question_id)
    except QuizEngineError as e:
        raise to_http_exception(e, "Failed to add question to quiz")


@router.delete("/quizzes/lessons/{lesson_id}/questions/{question_id}", response_model=QuizSchema)
async def remove_question_from_quiz(
    lesson_id: int,
    question_id: int,
    service: QuizService = Depends(get_quiz_service)
):
    try:
        return await service.remove_question_from_quiz(lesson_id, question_id)
    except QuizEngineError as e:
        raise to_http_exception(e, "Failed to remove question from quiz")


@router.get("/quizzes/lessons/{lesson_id}/statistics", response_model=QuizStatistics)
async def get_quiz_statistics(
    lesson_id: int,
    service: QuizService = Depends(get_quiz_service)
):
    """Attempt and per-question statistics for the instructor dashboard."""
    try:
        return await service.get_quiz_statistics(lesson_id)
    except QuizEngineError as e:
        raise to_http_exception(e, "Failed to get quiz statistics")


# ----------------------------------------------------------------------
# Attempts
# ----------------------------------------------------------------------

@router.post("/quizzes/lessons/{lesson_id}/attempts", response_model=QuizAttemptSchema, status_code=status.HTTP_201_CREATED)
async def start_attempt(
    lesson_id: int,
    data: StartAttemptRequest,
    service: QuizService = Depends(get_quiz_service)
):
    """Start a new attempt on a lesson's quiz."""
    try:
        return await service.start_attempt(data.student_id, lesson_id)
    except QuizEngineError as e:
        raise to_http_exception(e, "Failed to start attempt")


@router.post("/quizzes/attempts/{attempt_id}/submit", response_model=QuizAttemptSchema)
async def submit_attempt(
    attempt_id: int,
    data: SubmitAttemptRequest,
    service: QuizService = Depends(get_quiz_service)
):
    """Submit the answer sheet of an attempt and get it graded."""
    try:
        attempt = await service.submit_attempt(attempt_id, data.answers, data.time_spent_seconds)
    except QuizEngineError as e:
        raise to_http_exception(e, "Failed to submit attempt")
    return student_view(attempt)


@router.get("/quizzes/attempts/{attempt_id}", response_model=QuizAttemptSchema)
async def get_attempt(
    attempt_id: int,
    student_id: int,
    service: QuizService = Depends(get_quiz_service)
):
    """An attempt with its questions and options, for the student who owns it."""
    try:
        attempt = await service.get_attempt(attempt_id, student_id)
    except QuizEngineError as e:
        raise to_http_exception(e, "Failed to get attempt")
    return student_view(attempt)


@router.get("/quizzes/attempts/{attempt_id}/result", response_model=QuizResultDetail)
async def get_attempt_result(
    attempt_id: int,
    student_id: int,
    service: QuizService = Depends(get_quiz_service)
):
    try:
        return await service.get_attempt_result(attempt_id, student_id)
    except QuizEngineError as e:
        raise to_http_exception(e, "Failed to get quiz result")


@router.get("/quizzes/{quiz_id}/students/{student_id}/attempts", response_model=QuizAttemptList)
async def get_student_attempts(
    quiz_id: int,
    student_id: int,
    service: QuizService = Depends(get_quiz_service)
):
    """A student's own attempts, oldest first."""
    try:
        attempts = await service.get_student_attempts(quiz_id, student_id)
    except QuizEngineError as e:
        raise to_http_exception(e, "Failed to get attempts")
    return QuizAttemptList(attempts=[student_view(a) for a in attempts])


@router.get("/quizzes/{quiz_id}/attempts", response_model=QuizAttemptList)
async def get_quiz_attempts(
    quiz_id: int,
    service: QuizService = Depends(get_quiz_service)
):
    """All attempts on a quiz, most recent first."""
    try:
        attempts = await service.get_quiz_attempts(quiz_id)
    except QuizEngineError as e:
        raise to_http_exception(e, "Failed to get attempts")
    return QuizAttemptList(attempts=[QuizAttemptSchema.model_validate(a) for a in attempts])
