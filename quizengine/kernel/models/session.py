"""
Quiz session models - session metadata and its append-only item log.
"""

import uuid
from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from quizengine.kernel.models.base import Base, CreatedAtMixin, generate_uuid


class ItemState(str, Enum):
    """Lifecycle of a single session item."""
    ASKED = "asked"
    GRADED = "graded"


class QuizSession(Base, CreatedAtMixin):
    """
    Session metadata. Immutable once created; `concluded_at` is set once
    by conclude and closes the item log.
    """

    __tablename__ = "quiz_sessions"

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=generate_uuid,
    )
    username: Mapped[str] = mapped_column(
        ForeignKey("users.username", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    topic: Mapped[str] = mapped_column(String(255), nullable=False, default="random")
    starting_difficulty: Mapped[str] = mapped_column(String(32), nullable=False)
    concluded_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    @property
    def is_concluded(self) -> bool:
        return self.concluded_at is not None


class SessionItem(Base, CreatedAtMixin):
    """
    One question/answer record. Answer fields stay NULL while state is ASKED.
    """

    __tablename__ = "session_items"

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=generate_uuid,
    )
    session_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("quiz_sessions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    ordinal: Mapped[int] = mapped_column(Integer, nullable=False)
    question: Mapped[str] = mapped_column(Text, nullable=False)
    topic: Mapped[str] = mapped_column(String(255), nullable=False)
    starting_difficulty: Mapped[str] = mapped_column(String(32), nullable=False)
    final_difficulty: Mapped[str] = mapped_column(String(32), nullable=False)
    state: Mapped[ItemState] = mapped_column(String(16), nullable=False, default=ItemState.ASKED)

    # Filled in once, at grading time
    user_answer: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    is_correct: Mapped[Optional[bool]] = mapped_column(Boolean, nullable=True)
    explanation: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    points_delta: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    score_after: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    graded_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    __table_args__ = (
        UniqueConstraint("session_id", "ordinal", name="uq_session_items_session_ordinal"),
    )

    @property
    def is_graded(self) -> bool:
        state = self.state.value if hasattr(self.state, "value") else str(self.state)
        return state == ItemState.GRADED.value
