"""
FastAPI dependencies for database sessions, the oracle and admin access.
"""

import hmac
from functools import lru_cache
from typing import Annotated, Optional

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from quizengine.ai.moderation import ModerationFilter
from quizengine.ai.oracle import QuizOracle
from quizengine.config import get_settings
from quizengine.database import get_db
from quizengine.engines.assessment.lifecycle import SessionLifecycle


DbSession = Annotated[AsyncSession, Depends(get_db)]


@lru_cache()
def get_oracle() -> QuizOracle:
    """Process-wide oracle; tests override this dependency with a fake."""
    return QuizOracle()


@lru_cache()
def get_moderation() -> ModerationFilter:
    return ModerationFilter()


Oracle = Annotated[QuizOracle, Depends(get_oracle)]
Moderation = Annotated[ModerationFilter, Depends(get_moderation)]


def get_lifecycle(db: DbSession, oracle: Oracle) -> SessionLifecycle:
    return SessionLifecycle(db, oracle)


Lifecycle = Annotated[SessionLifecycle, Depends(get_lifecycle)]


async def require_admin_token(
    x_admin_token: Annotated[Optional[str], Header()] = None,
) -> None:
    """
    Require the X-Admin-Token header to match ADMIN_TOKEN.

    Admin routes are disabled entirely when no token is configured.
    """
    expected = get_settings().admin_token
    if not expected:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access is not configured",
        )
    # Header values arrive latin-1 decoded; compare bytes so any character is safe
    if not x_admin_token or not hmac.compare_digest(
        x_admin_token.encode("utf-8"), expected.encode("utf-8")
    ):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid admin token",
        )


AdminToken = Annotated[None, Depends(require_admin_token)]
