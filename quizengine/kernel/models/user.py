"""
User model - identity plus the score counters maintained by the ScoreLedger.
"""

import uuid

from sqlalchemy import CheckConstraint, Integer, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from quizengine.kernel.models.base import Base, CreatedAtMixin, generate_uuid


class User(Base, CreatedAtMixin):
    """
    Quiz participant.

    score/answered/correct are only ever changed by atomic increments
    (see ScoreLedger); the leaderboard is read straight from `score`.
    """

    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        primary_key=True,
        default=generate_uuid,
    )
    # Case-sensitive: "Alice" and "alice" are different users
    username: Mapped[str] = mapped_column(
        String(64),
        unique=True,
        index=True,
        nullable=False,
    )
    score: Mapped[int] = mapped_column(Integer, default=0, nullable=False, index=True)
    answered: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    correct: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    __table_args__ = (
        CheckConstraint("answered >= 0", name="ck_users_answered_non_negative"),
        CheckConstraint("correct >= 0", name="ck_users_correct_non_negative"),
    )

    def __repr__(self) -> str:
        return f"<User {self.username}>"
