"""
Completed Topics - per-user list of topics marked as done.

Adds are case-insensitively idempotent; removal matches case-insensitively.
"""

from typing import List

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from quizengine.engines.assessment.errors import AssessmentValidationError
from quizengine.kernel.models.history import CompletedTopic
from quizengine.logging_config import get_logger

logger = get_logger(__name__)


class CompletedTopics:
    """Completed-topic list for one user, in insertion order."""

    def __init__(self, session: AsyncSession, username: str):
        self.session = session
        self.username = username

    async def list(self) -> List[str]:
        q = (
            select(CompletedTopic.topic)
            .where(CompletedTopic.username == self.username)
            .order_by(CompletedTopic.id)
        )
        return list((await self.session.execute(q)).scalars().all())

    async def add(self, topic: str) -> List[str]:
        topic = (topic or "").strip()
        if not topic:
            raise AssessmentValidationError("topic is required")
        existing = await self.list()
        if not any(t.lower() == topic.lower() for t in existing):
            self.session.add(CompletedTopic(username=self.username, topic=topic))
            await self.session.flush()
            existing.append(topic)
            logger.info("Topic completed", extra={"username": self.username, "topic": topic})
        return existing

    async def remove(self, topic: str) -> List[str]:
        topic = (topic or "").strip()
        if not topic:
            raise AssessmentValidationError("topic is required")
        stmt = (
            delete(CompletedTopic)
            .where(
                CompletedTopic.username == self.username,
                func.lower(CompletedTopic.topic) == topic.lower(),
            )
            .execution_options(synchronize_session=False)
        )
        await self.session.execute(stmt)
        return await self.list()

    async def reset(self) -> List[str]:
        stmt = (
            delete(CompletedTopic)
            .where(CompletedTopic.username == self.username)
            .execution_options(synchronize_session=False)
        )
        await self.session.execute(stmt)
        return []
