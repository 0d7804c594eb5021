"""Quiz attempt engine.

``QuizService`` owns the attempt lifecycle of a lesson quiz: it checks whether a
student may start an attempt, freezes the questions (and their order) the
attempt will use, grades a submitted answer sheet and exposes the read paths
over attempts. It also manages the quiz configuration itself (settings and the
manual question list).

Each public coroutine is one unit of work on the session it was given. Writes
commit once at the end; any failure rolls the whole unit back, so a rejected
start never leaves a partial attempt behind.
"""
import logging
import random
from contextlib import asynccontextmanager
from datetime import datetime, timedelta
from typing import Callable, List, Mapping, Optional, Sequence

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from lms_quiz.core.config import settings
from lms_quiz.core.errors import (
    AccessDenied,
    AlreadySubmitted,
    AttemptConflict,
    AttemptExpired,
    AttemptLimitExceeded,
    AttemptNotSubmitted,
    InfrastructureError,
    NotFound,
    QuestionAlreadyInQuiz,
    QuizAlreadyExists,
    QuizClosed,
    QuizConfigurationError,
    QuizEngineError,
    QuizNotYetOpen,
)
from lms_quiz.core.utils import pick_random, shuffled, to_naive_utc, utcnow
from lms_quiz.models.question import Question
from lms_quiz.models.quiz import Quiz, QuizQuestion
from lms_quiz.models.quiz_attempt import AttemptStatus, QuizAttempt, QuizAttemptItem
from lms_quiz.schemas.quiz import (
    QuestionOption as QuestionOptionSchema,
    QuizCreate,
    QuizResultDetail,
    QuizResultItem,
    QuizStatistics,
)
from lms_quiz.services.question_store import QuestionStore, SqlQuestionStore
from lms_quiz.services.scoring import compute_score, grade_items, is_passing, summarize_attempts


class QuizService:
    def __init__(
        self,
        db: AsyncSession,
        question_store: Optional[QuestionStore] = None,
        logger: Optional[logging.Logger] = None,
        clock: Callable[[], datetime] = utcnow,
        rng: Optional[random.Random] = None,
        grace_seconds: Optional[int] = None,
        random_selection_filters: Optional[bool] = None,
    ):
        self.db = db
        self.questions = question_store or SqlQuestionStore(db)
        self.logger = logger or logging.getLogger(__name__)
        self.clock = clock
        self.rng = rng or random.Random()
        self.grace_seconds = settings.SUBMISSION_GRACE_SECONDS if grace_seconds is None else grace_seconds
        self.random_selection_filters = (
            settings.RANDOM_SELECTION_FILTERS if random_selection_filters is None else random_selection_filters
        )

    # ------------------------------------------------------------------
    # Unit-of-work helpers
    # ------------------------------------------------------------------

    @asynccontextmanager
    async def _transaction(self, action: str, conflict: Optional[QuizEngineError] = None):
        try:
            yield
            await self.db.commit()
        except QuizEngineError:
            await self.db.rollback()
            raise
        except IntegrityError as e:
            await self.db.rollback()
            if conflict is None:
                self.logger.error(f"Integrity error while trying to {action}: {str(e)}")
                raise InfrastructureError(f"Failed to {action}") from e
            self.logger.warning(f"Conflict while trying to {action}: {str(e)}")
            raise conflict from e
        except SQLAlchemyError as e:
            await self.db.rollback()
            self.logger.exception(f"Database error while trying to {action}")
            raise InfrastructureError(f"Failed to {action}") from e

    async def _execute(self, stmt):
        try:
            return await self.db.execute(stmt)
        except SQLAlchemyError as e:
            self.logger.exception("Database error while reading quiz data")
            raise InfrastructureError("Failed to read quiz data") from e

    # ------------------------------------------------------------------
    # Quiz configuration
    # ------------------------------------------------------------------

    async def get_quiz_by_lesson(self, lesson_id: int, for_update: bool = False) -> Quiz:
        stmt = select(Quiz).where(Quiz.lesson_id == lesson_id)
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        result = await self._execute(stmt)
        quiz = result.scalar_one_or_none()
        if quiz is None:
            raise NotFound(f"Quiz not found for lesson {lesson_id}", field="lesson_id")
        return quiz

    async def get_quiz_questions(self, lesson_id: int) -> List[Question]:
        """Manual question list of a lesson's quiz, in curator order."""
        quiz = await self.get_quiz_by_lesson(lesson_id)
        return [qq.question for qq in quiz.quiz_questions]

    async def create_quiz(self, lesson_id: int, data: QuizCreate) -> Quiz:
        async with self._transaction(
            "create quiz",
            conflict=QuizAlreadyExists(f"Lesson {lesson_id} already has a quiz", field="lesson_id"),
        ):
            existing = await self._execute(select(Quiz.id).where(Quiz.lesson_id == lesson_id))
            if existing.scalar_one_or_none() is not None:
                raise QuizAlreadyExists(f"Lesson {lesson_id} already has a quiz", field="lesson_id")
            await self._require_questions(data.question_ids)

            quiz = Quiz(
                lesson_id=lesson_id,
                time_limit_minutes=data.time_limit_minutes,
                max_attempts=data.max_attempts,
                passing_score=data.passing_score,
                shuffle_questions=data.shuffle_questions,
                shuffle_options=data.shuffle_options,
                show_results_immediately=data.show_results_immediately,
                show_correct_answers=data.show_correct_answers,
                start_date=to_naive_utc(data.start_date),
                end_date=to_naive_utc(data.end_date),
                random_count=data.random_count,
                random_difficulties=[d.value for d in data.random_difficulties] if data.random_difficulties else None,
                random_tags=data.random_tags,
                created_at=self.clock(),
            )
            quiz.quiz_questions = [
                QuizQuestion(question_id=question_id, position=position)
                for position, question_id in enumerate(data.question_ids, start=1)
            ]
            self.db.add(quiz)

        self.logger.info(f"Created quiz {quiz.id} for lesson {lesson_id} with {len(data.question_ids)} questions")
        return quiz

    async def update_quiz_questions(self, lesson_id: int, question_ids: Sequence[int]) -> Quiz:
        """Replace the manual question list. Attempts already started keep their questions."""
        async with self._transaction("update quiz questions"):
            quiz = await self.get_quiz_by_lesson(lesson_id, for_update=True)
            await self._require_questions(question_ids)

            quiz.quiz_questions.clear()
            # Old rows must be gone before the new ones hit the unique constraint
            await self.db.flush()
            quiz.quiz_questions.extend(
                QuizQuestion(question_id=question_id, position=position)
                for position, question_id in enumerate(question_ids, start=1)
            )
            quiz.updated_at = self.clock()

        self.logger.info(f"Updated quiz {quiz.id} with {len(question_ids)} questions")
        return quiz

    async def add_question_to_quiz(self, lesson_id: int, question_id: int) -> Quiz:
        async with self._transaction(
            "add question to quiz",
            conflict=QuestionAlreadyInQuiz(f"Question {question_id} is already in the quiz", field="question_id"),
        ):
            quiz = await self.get_quiz_by_lesson(lesson_id, for_update=True)
            if question_id in quiz.question_ids:
                raise QuestionAlreadyInQuiz(f"Question {question_id} is already in the quiz", field="question_id")
            await self._require_questions([question_id])

            next_position = max((qq.position for qq in quiz.quiz_questions), default=0) + 1
            quiz.quiz_questions.append(QuizQuestion(question_id=question_id, position=next_position))
            quiz.updated_at = self.clock()

        self.logger.info(f"Added question {question_id} to quiz {quiz.id}, total questions: {len(quiz.quiz_questions)}")
        return quiz

    async def remove_question_from_quiz(self, lesson_id: int, question_id: int) -> Quiz:
        async with self._transaction("remove question from quiz"):
            quiz = await self.get_quiz_by_lesson(lesson_id, for_update=True)
            entry = next((qq for qq in quiz.quiz_questions if qq.question_id == question_id), None)
            if entry is None:
                raise NotFound(f"Question {question_id} is not in the quiz", field="question_id")
            quiz.quiz_questions.remove(entry)
            quiz.updated_at = self.clock()

        self.logger.info(f"Removed question {question_id} from quiz {quiz.id}, remaining: {len(quiz.quiz_questions)}")
        return quiz

    async def delete_quiz(self, lesson_id: int) -> None:
        """Delete a quiz together with its question list, attempts and attempt items."""
        async with self._transaction("delete quiz"):
            quiz = await self.get_quiz_by_lesson(lesson_id, for_update=True)
            quiz_id = quiz.id
            attempt_ids = select(QuizAttempt.id).where(QuizAttempt.quiz_id == quiz_id)
            await self.db.execute(
                delete(QuizAttemptItem)
                .where(QuizAttemptItem.attempt_id.in_(attempt_ids))
                .execution_options(synchronize_session=False)
            )
            await self.db.execute(
                delete(QuizAttempt)
                .where(QuizAttempt.quiz_id == quiz_id)
                .execution_options(synchronize_session=False)
            )
            await self.db.delete(quiz)

        self.logger.info(f"Deleted quiz {quiz_id} of lesson {lesson_id} and all its attempts")

    async def _require_questions(self, question_ids: Sequence[int]) -> None:
        if len(set(question_ids)) != len(question_ids):
            raise QuizConfigurationError("Question list contains duplicates", field="question_ids")
        found = {q.id for q in await self.questions.get_questions_by_ids(question_ids)}
        missing = [question_id for question_id in question_ids if question_id not in found]
        if missing:
            raise NotFound(f"Questions not found: {missing}", field="question_ids")

    # ------------------------------------------------------------------
    # Attempt lifecycle
    # ------------------------------------------------------------------

    async def start_attempt(self, student_id: int, lesson_id: int) -> QuizAttempt:
        """Open a new IN_PROGRESS attempt for ``student_id`` on the lesson's quiz.

        The quiz row stays locked until commit, so concurrent starts by the same
        student are checked one after the other. The unique attempt number per
        (quiz, student) rejects whatever still slips through.
        """
        async with self._transaction(
            "start attempt",
            conflict=AttemptConflict("Another attempt was started at the same time, please retry"),
        ):
            quiz = await self.get_quiz_by_lesson(lesson_id, for_update=True)

            submitted = await self._count_attempts(quiz.id, student_id, AttemptStatus.SUBMITTED)
            if submitted >= quiz.max_attempts:
                self.logger.warning(
                    f"Student {student_id} reached the attempt limit ({quiz.max_attempts}) of quiz {quiz.id}"
                )
                raise AttemptLimitExceeded(f"Maximum number of attempts ({quiz.max_attempts}) reached")

            now = self.clock()
            if quiz.start_date is not None and now < quiz.start_date:
                raise QuizNotYetOpen(f"Quiz opens at {quiz.start_date.isoformat()}")
            if quiz.end_date is not None and now > quiz.end_date:
                raise QuizClosed(f"Quiz closed at {quiz.end_date.isoformat()}")

            questions = await self._resolve_questions(quiz)
            if quiz.shuffle_questions:
                questions = shuffled(questions, self.rng)

            attempt = QuizAttempt(
                quiz=quiz,
                student_id=student_id,
                attempt_number=await self._count_attempts(quiz.id, student_id) + 1,
                status=AttemptStatus.IN_PROGRESS,
                start_time=now,
                total_questions=len(questions),
                correct_answers=0,
                created_at=now,
            )
            for position, question in enumerate(questions, start=1):
                attempt.items.append(
                    QuizAttemptItem(
                        question=question,
                        position=position,
                        option_order=shuffled(question.option_keys, self.rng) if quiz.shuffle_options else None,
                    )
                )
            self.db.add(attempt)

        self.logger.info(
            f"Student {student_id} started attempt {attempt.id} (#{attempt.attempt_number}) "
            f"on quiz {quiz.id} with {attempt.total_questions} questions"
        )
        return attempt

    async def _resolve_questions(self, quiz: Quiz) -> List[Question]:
        manual_ids = quiz.question_ids
        if manual_ids:
            found = {q.id: q for q in await self.questions.get_questions_by_ids(manual_ids)}
            missing = [question_id for question_id in manual_ids if question_id not in found]
            if missing:
                self.logger.error(f"Quiz {quiz.id} references missing questions {missing}")
                raise QuizConfigurationError(f"Quiz references questions that do not exist: {missing}")
            # Keep curator order, not storage order
            return [found[question_id] for question_id in manual_ids]

        if self.random_selection_filters and quiz.random_count:
            pool = await self.questions.get_active_questions(quiz.random_difficulties, quiz.random_tags)
            chosen = {q.id for q in pick_random(pool, quiz.random_count, self.rng)}
            questions = [q for q in pool if q.id in chosen]
        else:
            questions = await self.questions.get_active_questions()

        if not questions:
            self.logger.error(f"Quiz {quiz.id} resolved to an empty question set")
            raise QuizConfigurationError("Quiz has no questions to attempt")
        return questions

    async def _count_attempts(self, quiz_id: int, student_id: int, status: Optional[AttemptStatus] = None) -> int:
        stmt = select(func.count()).select_from(QuizAttempt).where(
            QuizAttempt.quiz_id == quiz_id,
            QuizAttempt.student_id == student_id,
        )
        if status is not None:
            stmt = stmt.where(QuizAttempt.status == status)
        result = await self._execute(stmt)
        return result.scalar_one()

    async def submit_attempt(
        self,
        attempt_id: int,
        answers: Mapping[int, str],
        time_spent: Optional[Mapping[int, int]] = None,
    ) -> QuizAttempt:
        """Grade and finalize an IN_PROGRESS attempt.

        An attempt submitted after its time limit is closed as EXPIRED without
        a score and ``AttemptExpired`` is raised.
        """
        expired = False
        async with self._transaction("submit attempt"):
            attempt = await self._get_attempt(attempt_id, for_update=True)
            if attempt.status != AttemptStatus.IN_PROGRESS:
                self.logger.warning(f"Rejected resubmission of attempt {attempt_id} ({attempt.status.value})")
                raise AlreadySubmitted(
                    f"Attempt {attempt_id} is no longer in progress ({attempt.status.value})",
                    field="attempt_id",
                )

            now = self.clock()
            quiz = attempt.quiz
            if self._is_overdue(attempt, quiz, now):
                attempt.transition_to(AttemptStatus.EXPIRED)
                expired = True
            else:
                attempt.correct_answers = grade_items(attempt.items, answers, time_spent)
                attempt.score = compute_score(attempt.correct_answers, attempt.total_questions)
                attempt.is_passed = is_passing(attempt.score, quiz.passing_score)
                attempt.transition_to(AttemptStatus.SUBMITTED)
            attempt.end_time = now
            attempt.time_spent_seconds = int((now - attempt.start_time).total_seconds())

        if expired:
            self.logger.info(f"Attempt {attempt_id} expired after {attempt.time_spent_seconds}s")
            raise AttemptExpired(f"Time limit of {quiz.time_limit_minutes} minutes exceeded", field="attempt_id")

        self.logger.info(
            f"Attempt {attempt_id} submitted: {attempt.correct_answers}/{attempt.total_questions} correct, "
            f"score {attempt.score:.2f}, passed={attempt.is_passed}"
        )
        return attempt

    def _is_overdue(self, attempt: QuizAttempt, quiz: Quiz, now: datetime) -> bool:
        if not quiz.time_limit_minutes:
            return False
        allowed = timedelta(minutes=quiz.time_limit_minutes, seconds=self.grace_seconds)
        return now - attempt.start_time > allowed

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def _get_attempt(self, attempt_id: int, for_update: bool = False) -> QuizAttempt:
        stmt = select(QuizAttempt).where(QuizAttempt.id == attempt_id)
        if for_update:
            # The locked row must win over whatever this session already cached
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        result = await self._execute(stmt)
        attempt = result.scalar_one_or_none()
        if attempt is None:
            raise NotFound(f"Attempt {attempt_id} not found", field="attempt_id")
        return attempt

    async def get_attempt(self, attempt_id: int, student_id: Optional[int] = None) -> QuizAttempt:
        """Load an attempt; with ``student_id`` only its owner may read it."""
        attempt = await self._get_attempt(attempt_id)
        if student_id is not None and attempt.student_id != student_id:
            raise AccessDenied("You can only view your own quiz attempts", field="student_id")
        return attempt

    async def get_student_attempts(self, quiz_id: int, student_id: int) -> List[QuizAttempt]:
        result = await self._execute(
            select(QuizAttempt)
            .where(QuizAttempt.quiz_id == quiz_id, QuizAttempt.student_id == student_id)
            .order_by(QuizAttempt.start_time.asc(), QuizAttempt.id.asc())
        )
        return list(result.scalars().all())

    async def get_quiz_attempts(self, quiz_id: int) -> List[QuizAttempt]:
        """Every student's attempts, most recent first."""
        result = await self._execute(
            select(QuizAttempt)
            .where(QuizAttempt.quiz_id == quiz_id)
            .order_by(QuizAttempt.created_at.desc(), QuizAttempt.id.desc())
        )
        return list(result.scalars().all())

    async def get_attempt_result(self, attempt_id: int, student_id: int) -> QuizResultDetail:
        """Per-question review of a submitted attempt, for the student who made it."""
        attempt = await self._get_attempt(attempt_id)
        if attempt.student_id != student_id:
            raise AccessDenied("You can only view your own quiz results", field="student_id")
        if attempt.status != AttemptStatus.SUBMITTED:
            raise AttemptNotSubmitted(f"Attempt {attempt_id} has not been submitted", field="attempt_id")

        quiz = attempt.quiz
        reveal = bool(quiz.show_correct_answers)
        items = [
            QuizResultItem(
                question_id=item.question_id,
                question_content=item.question.content,
                options=[QuestionOptionSchema.model_validate(option) for option in item.question.options],
                option_order=item.option_order,
                selected_option=item.selected_option,
                correct_option=item.question.correct_option if reveal else None,
                is_correct=item.is_correct,
                time_spent_seconds=item.time_spent_seconds,
            )
            for item in attempt.items
        ]
        return QuizResultDetail(
            attempt_id=attempt.id,
            lesson_id=quiz.lesson_id,
            student_id=attempt.student_id,
            score=attempt.score,
            total_questions=attempt.total_questions,
            correct_answers=attempt.correct_answers,
            incorrect_answers=attempt.total_questions - attempt.correct_answers,
            is_passed=attempt.is_passed,
            passing_score=quiz.passing_score,
            start_time=attempt.start_time,
            end_time=attempt.end_time,
            time_spent_seconds=attempt.time_spent_seconds,
            show_correct_answers=reveal,
            result_items=items,
        )

    async def get_quiz_statistics(self, lesson_id: int) -> QuizStatistics:
        quiz = await self.get_quiz_by_lesson(lesson_id)
        attempts = await self.get_quiz_attempts(quiz.id)
        return QuizStatistics(
            quiz_id=quiz.id,
            lesson_id=quiz.lesson_id,
            passing_score=quiz.passing_score,
            **summarize_attempts(attempts),
        )
