"""
Score Ledger - per-user score/answered/correct counters and the global
leaderboard, updated with atomic increments and floored at zero.
"""

from typing import List

from pydantic import BaseModel
from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from quizengine.engines.assessment.errors import NotFoundError
from quizengine.engines.assessment.ladder import DifficultyLadder, LabelLike
from quizengine.kernel.models.user import User
from quizengine.logging_config import get_logger

logger = get_logger(__name__)


class LeaderboardRow(BaseModel):
    """One ranked leaderboard line."""

    rank: int
    username: str
    score: int


class UserStats(BaseModel):
    """Counters for one user."""

    username: str
    score: int
    answered: int
    correct: int

    @property
    def accuracy(self) -> float:
        return (self.correct / self.answered) if self.answered else 0.0


class ScoreLedger:
    """
    Applies score deltas.

    Every change is an in-database increment (never read-then-write), so
    concurrent graders for the same user cannot lose updates. The
    leaderboard is read from the same `score` column, so a user's score
    and leaderboard entry move together.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    @staticmethod
    def points_for(difficulty: LabelLike, correct: bool) -> int:
        """+10 x tier for a correct answer, -5 x tier otherwise."""
        return DifficultyLadder.points_for(difficulty, correct)

    async def _increment_score(self, username: str, amount: int) -> int:
        stmt = (
            update(User)
            .where(User.username == username)
            .values(score=User.score + amount)
            .returning(User.score)
            .execution_options(synchronize_session=False)
        )
        return int((await self.session.execute(stmt)).scalar_one())

    async def apply_delta(self, username: str, delta: int, was_correct: bool) -> int:
        """
        Count the answer and add `delta` (may be negative) to the score.

        Returns:
            The new score, never below zero

        Raises:
            NotFoundError: If the user does not exist
        """
        stmt = (
            update(User)
            .where(User.username == username)
            .values(
                answered=User.answered + 1,
                correct=User.correct + (1 if was_correct else 0),
                score=User.score + delta,
            )
            .returning(User.score)
            .execution_options(synchronize_session=False)
        )
        score = (await self.session.execute(stmt)).scalar_one_or_none()
        if score is None:
            raise NotFoundError(f"User {username!r} not found")

        if score < 0:
            # Compensating increment inside the same transaction; the row
            # lock from the first UPDATE is held until commit
            score = await self._increment_score(username, -score)
            logger.info("Score floored at zero", extra={"username": username, "delta": delta})

        logger.info(
            "Score updated",
            extra={"username": username, "delta": delta, "correct": was_correct, "score": score},
        )
        return score

    async def stats(self, username: str) -> UserStats:
        q = select(User.username, User.score, User.answered, User.correct).where(User.username == username)
        row = (await self.session.execute(q)).one_or_none()
        if row is None:
            raise NotFoundError(f"User {username!r} not found")
        return UserStats(username=row.username, score=row.score, answered=row.answered, correct=row.correct)

    async def top(self, limit: int = 10) -> List[LeaderboardRow]:
        """Highest scores first; ties ordered by username. Blank usernames are skipped."""
        q = (
            select(User.username, User.score)
            .where(func.trim(User.username) != "")
            .order_by(User.score.desc(), User.username.asc())
            .limit(max(limit, 0))
        )
        rows = (await self.session.execute(q)).all()
        return [
            LeaderboardRow(rank=i, username=row.username, score=row.score)
            for i, row in enumerate(rows, start=1)
        ]
