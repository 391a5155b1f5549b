"""
Leaderboard endpoint.
"""

from typing import Optional

from fastapi import APIRouter, Query

from quizengine.api.deps import DbSession
from quizengine.config import get_settings
from quizengine.engines.assessment.score_ledger import ScoreLedger
from quizengine.schemas.quiz import LeaderboardEntry, LeaderboardResponse

router = APIRouter()


@router.get("", response_model=LeaderboardResponse)
async def get_leaderboard(
    db: DbSession,
    limit: Optional[int] = Query(None, ge=1, le=100),
):
    """Top scores, highest first; ties broken by username."""
    rows = await ScoreLedger(db).top(limit or get_settings().leaderboard_default_limit)
    return LeaderboardResponse(
        entries=[LeaderboardEntry(rank=r.rank, username=r.username, score=r.score) for r in rows]
    )
