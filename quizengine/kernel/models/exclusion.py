"""
Exclusion entries - the permanent per-user memory of asked questions.
"""

import hashlib

from sqlalchemy import Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from quizengine.kernel.models.base import Base, CreatedAtMixin


def compute_question_hash(normalized: str) -> str:
    """Compute SHA-256 hash of an already-normalized question."""
    return hashlib.sha256(normalized.encode()).hexdigest()


class ExclusionEntry(Base, CreatedAtMixin):
    """
    One previously-asked question.

    `question` keeps the original casing/punctuation; `normalized_hash`
    is the dedup key. Rows are never updated or individually deleted.
    """

    __tablename__ = "exclusion_entries"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    username: Mapped[str] = mapped_column(String(64), nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    question: Mapped[str] = mapped_column(Text, nullable=False)
    normalized_hash: Mapped[str] = mapped_column(String(64), nullable=False)

    __table_args__ = (
        UniqueConstraint("username", "normalized_hash", name="uq_exclusion_entries_user_hash"),
        Index("ix_exclusion_entries_user_position", "username", "position"),
    )
