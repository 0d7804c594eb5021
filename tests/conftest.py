"""Shared fixtures: an in-memory database per test, a frozen clock and a seeded RNG."""

import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")

import random
from datetime import datetime, timedelta

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from lms_quiz.db.base_class import Base
from lms_quiz.models import Difficulty, Question, QuestionOption, QuestionStatus
from lms_quiz.schemas.quiz import QuizCreate
from lms_quiz.services.quiz_service import QuizService

NOW = datetime(2026, 3, 2, 9, 0, 0)


class FrozenClock:
    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine("sqlite+aiosqlite://", poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def service_factory(db, clock):
    def make(session=None, **kwargs) -> QuizService:
        kwargs.setdefault("clock", clock)
        kwargs.setdefault("rng", random.Random(1234))
        kwargs.setdefault("grace_seconds", 0)
        kwargs.setdefault("random_selection_filters", False)
        return QuizService(session or db, **kwargs)

    return make


@pytest.fixture
def service(service_factory) -> QuizService:
    return service_factory()


@pytest.fixture
def add_question(db):
    """Insert a question bank entry and return its id."""

    async def add(
        correct_option: str = "A",
        status: QuestionStatus = QuestionStatus.ACTIVE,
        difficulty: Difficulty = Difficulty.MEDIUM,
        tags=None,
        keys: str = "ABCD",
    ) -> int:
        question = Question(
            content=f"Which option is {correct_option}?",
            correct_option=correct_option,
            status=status,
            difficulty=difficulty,
            tags=tags,
            options=[QuestionOption(option_key=key, content=f"Option {key}") for key in keys],
        )
        db.add(question)
        await db.commit()
        return question.id

    return add


@pytest_asyncio.fixture
async def four_questions(add_question):
    """Questions whose correct options are A, B, C and D respectively."""
    return [await add_question(key) for key in "ABCD"]


@pytest.fixture
def create_quiz(service):
    """Create a quiz for a lesson and return its id."""

    async def create(lesson_id: int = 1, **settings) -> int:
        quiz = await service.create_quiz(lesson_id, QuizCreate(**settings))
        return quiz.id

    return create
