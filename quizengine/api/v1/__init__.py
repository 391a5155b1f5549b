"""
API v1 routes.
"""

from fastapi import APIRouter

from quizengine.api.v1 import admin, leaderboard, sessions, users

router = APIRouter()

router.include_router(users.router, prefix="/users", tags=["Users"])
router.include_router(sessions.router, prefix="/sessions", tags=["Sessions"])
router.include_router(leaderboard.router, prefix="/leaderboard", tags=["Leaderboard"])
router.include_router(admin.router, prefix="/admin", tags=["Admin"])
