"""Read-only access to the question bank.

The quiz engine never writes questions. It asks for them either by an explicit
ID list (manual selection) or as the pool of active questions (fallback and
random selection).
"""
from typing import List, Optional, Protocol, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from lms_quiz.models.question import Question, QuestionStatus


class QuestionStore(Protocol):
    async def get_questions_by_ids(self, ids: Sequence[int]) -> List[Question]:
        ...

    async def get_active_questions(
        self,
        difficulties: Optional[Sequence[str]] = None,
        tags: Optional[Sequence[str]] = None,
    ) -> List[Question]:
        ...


class SqlQuestionStore:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_questions_by_ids(self, ids: Sequence[int]) -> List[Question]:
        """Fetch the given questions. Result order follows storage, not ``ids``."""
        if not ids:
            return []
        result = await self.db.execute(select(Question).where(Question.id.in_(list(ids))))
        return list(result.scalars().all())

    async def get_active_questions(
        self,
        difficulties: Optional[Sequence[str]] = None,
        tags: Optional[Sequence[str]] = None,
    ) -> List[Question]:
        """Active questions by ID, optionally narrowed by difficulty and tags.

        A question matches the tag filter when it carries at least one of the
        requested tags.
        """
        stmt = select(Question).where(Question.status == QuestionStatus.ACTIVE).order_by(Question.id)
        if difficulties:
            stmt = stmt.where(Question.difficulty.in_(list(difficulties)))
        result = await self.db.execute(stmt)
        questions = list(result.scalars().all())

        # Tags live in a JSON column; filter in Python to stay portable across backends
        if tags:
            wanted = set(tags)
            questions = [q for q in questions if wanted.intersection(q.tags or [])]
        return questions
