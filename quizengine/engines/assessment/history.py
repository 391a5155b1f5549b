"""
Answer History - bounded, per-user log of graded answers.
"""

import uuid
from typing import List, Optional

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from quizengine.config import get_settings
from quizengine.kernel.models.history import AnswerRecord


class AnswerHistory:
    """
    Append-only history capped at the newest `limit` records per user.
    Appending past the cap evicts the oldest records first.
    """

    def __init__(self, session: AsyncSession, username: str, limit: Optional[int] = None):
        self.session = session
        self.username = username
        self.limit = limit if limit is not None else get_settings().history_limit

    async def append(
        self,
        *,
        question: str,
        user_answer: str,
        is_correct: bool,
        explanation: str,
        difficulty: str,
        points_delta: int,
        session_id: Optional[uuid.UUID] = None,
    ) -> AnswerRecord:
        record = AnswerRecord(
            username=self.username,
            session_id=session_id,
            question=question,
            user_answer=user_answer,
            is_correct=is_correct,
            explanation=explanation,
            difficulty=difficulty,
            points_delta=points_delta,
        )
        self.session.add(record)
        await self.session.flush()
        await self._evict()
        return record

    async def _evict(self) -> None:
        keep = (
            select(AnswerRecord.id)
            .where(AnswerRecord.username == self.username)
            .order_by(AnswerRecord.id.desc())
            .limit(self.limit)
        )
        stmt = (
            delete(AnswerRecord)
            .where(AnswerRecord.username == self.username, AnswerRecord.id.not_in(keep.scalar_subquery()))
            .execution_options(synchronize_session=False)
        )
        await self.session.execute(stmt)

    async def recent(self, limit: Optional[int] = None) -> List[AnswerRecord]:
        """Newest first."""
        q = (
            select(AnswerRecord)
            .where(AnswerRecord.username == self.username)
            .order_by(AnswerRecord.id.desc())
            .limit(min(limit or self.limit, self.limit))
        )
        return list((await self.session.execute(q)).scalars().all())
