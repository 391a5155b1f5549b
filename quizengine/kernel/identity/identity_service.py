"""
Identity service for user management operations.
"""

from typing import Optional

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from quizengine.ai.moderation import ModerationFilter
from quizengine.engines.assessment.errors import (
    AssessmentValidationError,
    ModerationRejected,
    NotFoundError,
)
from quizengine.kernel.models import (
    AnswerRecord,
    CompletedTopic,
    ExclusionEntry,
    QuizSession,
    SessionItem,
    User,
)
from quizengine.logging_config import get_logger

logger = get_logger(__name__)

MAX_USERNAME_LENGTH = 64


class IdentityService:
    """
    Service for user identity operations.

    Handles registration (behind the moderation filter), lookup, and the
    administrative bulk wipe.
    """

    def __init__(self, session: AsyncSession, moderation: Optional[ModerationFilter] = None):
        self.session = session
        self.moderation = moderation or ModerationFilter()

    async def register_user(self, username: str) -> User:
        """
        Register a new user.

        Args:
            username: Case-sensitive unique name

        Returns:
            The created User object

        Raises:
            AssessmentValidationError: If the username is blank, too long or taken
            ModerationRejected: If the moderation filter refuses the name
        """
        username = (username or "").strip()
        if not username:
            raise AssessmentValidationError("username is required")
        if len(username) > MAX_USERNAME_LENGTH:
            raise AssessmentValidationError(f"username must be at most {MAX_USERNAME_LENGTH} characters")

        if await self.get_user(username):
            raise AssessmentValidationError("Username already registered")

        verdict = await self.moderation.check(username)
        if not verdict.allowed:
            logger.info("Username rejected by moderation", extra={"reason": verdict.reason})
            raise ModerationRejected(verdict.reason or "Username not allowed")

        user = User(username=username, score=0, answered=0, correct=0)
        self.session.add(user)
        try:
            await self.session.flush()
        except IntegrityError as exc:
            raise AssessmentValidationError("Username already registered") from exc
        await self.session.refresh(user)

        logger.info("User registered", extra={"username": username})
        return user

    async def get_user(self, username: str) -> Optional[User]:
        q = select(User).where(User.username == username)
        return (await self.session.execute(q)).scalar_one_or_none()

    async def require_user(self, username: str) -> User:
        user = await self.get_user(username)
        if user is None:
            raise NotFoundError(f"User {username!r} not found")
        return user

    async def wipe_all(self) -> dict:
        """Delete every user and all per-user state. Administrative only."""
        counts = {}
        # Children before parents so foreign keys hold without cascades
        for label, model in (
            ("session_items", SessionItem),
            ("sessions", QuizSession),
            ("exclusions", ExclusionEntry),
            ("history", AnswerRecord),
            ("topics", CompletedTopic),
            ("users", User),
        ):
            result = await self.session.execute(
                delete(model).execution_options(synchronize_session=False)
            )
            counts[label] = result.rowcount or 0
        logger.warning("Bulk wipe completed", extra={"deleted": counts})
        return counts
