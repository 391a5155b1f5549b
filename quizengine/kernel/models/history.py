"""
Answer history and completed-topic models (per-user, append-only).
"""

import uuid
from typing import Optional

from sqlalchemy import Boolean, ForeignKey, Index, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from quizengine.kernel.models.base import Base, CreatedAtMixin


class AnswerRecord(Base, CreatedAtMixin):
    """Immutable record of one graded answer. Trimmed to the newest N per user."""

    __tablename__ = "answer_history"

    # Autoincrement id doubles as the append sequence for eviction
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    username: Mapped[str] = mapped_column(
        ForeignKey("users.username", ondelete="CASCADE"),
        nullable=False,
    )
    session_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid(), nullable=True)
    question: Mapped[str] = mapped_column(Text, nullable=False)
    user_answer: Mapped[str] = mapped_column(Text, nullable=False)
    is_correct: Mapped[bool] = mapped_column(Boolean, nullable=False)
    explanation: Mapped[str] = mapped_column(Text, nullable=False, default="")
    difficulty: Mapped[str] = mapped_column(String(32), nullable=False)
    points_delta: Mapped[int] = mapped_column(Integer, nullable=False)

    __table_args__ = (
        Index("ix_answer_history_user_id", "username", "id"),
    )


class CompletedTopic(Base, CreatedAtMixin):
    """A topic the user has marked as completed."""

    __tablename__ = "completed_topics"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    username: Mapped[str] = mapped_column(
        ForeignKey("users.username", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    topic: Mapped[str] = mapped_column(String(255), nullable=False)
