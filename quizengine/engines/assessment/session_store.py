"""
Session Store - session metadata plus an ordered, append-only item log.
"""

import uuid
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from quizengine.engines.assessment.errors import InvariantViolation, NotFoundError
from quizengine.engines.assessment.ladder import DifficultyLabel, DifficultyLadder
from quizengine.kernel.models.session import ItemState, QuizSession, SessionItem
from quizengine.logging_config import get_logger

logger = get_logger(__name__)


class SessionStore:
    """
    Storage for quiz sessions.

    Items are appended with ordinal = count + 1 and never reordered.
    Only the tail item may be patched, and only while it is still ASKED.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(
        self,
        username: str,
        topic: str,
        starting_difficulty: DifficultyLabel,
    ) -> QuizSession:
        quiz_session = QuizSession(
            username=username,
            topic=topic,
            starting_difficulty=DifficultyLadder.resolve(starting_difficulty).value,
        )
        self.session.add(quiz_session)
        await self.session.flush()
        await self.session.refresh(quiz_session)
        logger.info(
            "Session created",
            extra={"session_id": str(quiz_session.id), "username": username, "topic": topic},
        )
        return quiz_session

    async def get(self, session_id: uuid.UUID) -> QuizSession:
        quiz_session = await self.session.get(QuizSession, session_id)
        if quiz_session is None:
            raise NotFoundError(f"Session {session_id} not found")
        return quiz_session

    async def for_user(self, username: str) -> List[QuizSession]:
        """All of a user's sessions, oldest first."""
        q = (
            select(QuizSession)
            .where(QuizSession.username == username)
            .order_by(QuizSession.created_at, QuizSession.id)
        )
        return list((await self.session.execute(q)).scalars().all())

    async def items(self, session_id: uuid.UUID) -> List[SessionItem]:
        q = select(SessionItem).where(SessionItem.session_id == session_id).order_by(SessionItem.ordinal)
        return list((await self.session.execute(q)).scalars().all())

    async def count(self, session_id: uuid.UUID) -> int:
        q = select(func.count()).select_from(SessionItem).where(SessionItem.session_id == session_id)
        return int((await self.session.execute(q)).scalar_one())

    async def tail(self, session_id: uuid.UUID) -> Optional[SessionItem]:
        q = (
            select(SessionItem)
            .where(SessionItem.session_id == session_id)
            .order_by(SessionItem.ordinal.desc())
            .limit(1)
        )
        return (await self.session.execute(q)).scalar_one_or_none()

    async def append(
        self,
        quiz_session: QuizSession,
        question: str,
        difficulty: DifficultyLabel,
    ) -> SessionItem:
        """Append a new ASKED item at the end of the log."""
        if quiz_session.is_concluded:
            raise InvariantViolation("Session has been concluded; no further questions may be added")

        ordinal = await self.count(quiz_session.id) + 1
        label = DifficultyLadder.resolve(difficulty).value
        item = SessionItem(
            session_id=quiz_session.id,
            ordinal=ordinal,
            question=question,
            topic=quiz_session.topic,
            starting_difficulty=label,
            final_difficulty=label,
            state=ItemState.ASKED,
        )
        self.session.add(item)
        await self.session.flush()
        await self.session.refresh(item)
        return item

    async def patch_tail(
        self,
        session_id: uuid.UUID,
        *,
        user_answer: str,
        is_correct: bool,
        explanation: str,
        final_difficulty: DifficultyLabel,
        points_delta: int,
        score_after: int,
    ) -> SessionItem:
        """Attach answer/grade fields to the last item. Allowed once per item."""
        item = await self.tail(session_id)
        if item is None:
            raise InvariantViolation("Session has no questions to grade")
        if item.is_graded:
            raise InvariantViolation(f"Question {item.ordinal} has already been graded")

        item.user_answer = user_answer
        item.is_correct = is_correct
        item.explanation = explanation
        item.final_difficulty = DifficultyLadder.resolve(final_difficulty).value
        item.points_delta = points_delta
        item.score_after = score_after
        item.state = ItemState.GRADED
        item.graded_at = datetime.now(timezone.utc)
        await self.session.flush()
        return item

    async def mark_concluded(self, quiz_session: QuizSession) -> QuizSession:
        if quiz_session.is_concluded:
            raise InvariantViolation("Session has already been concluded")
        quiz_session.concluded_at = datetime.now(timezone.utc)
        await self.session.flush()
        return quiz_session
