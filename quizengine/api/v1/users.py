"""
User endpoints: registration, stats, history, exclusions and completed topics.
"""

from typing import List

from fastapi import APIRouter, Query, status

from quizengine.api.deps import DbSession, Moderation
from quizengine.config import get_settings
from quizengine.engines.assessment.exclusion_set import ExclusionSet
from quizengine.engines.assessment.history import AnswerHistory
from quizengine.engines.assessment.score_ledger import ScoreLedger
from quizengine.engines.assessment.topics import CompletedTopics
from quizengine.kernel.identity.identity_service import IdentityService
from quizengine.schemas.quiz import (
    ExclusionListResponse,
    HistoryEntryResponse,
    TopicRequest,
    TopicsResponse,
    UserCreate,
    UserResponse,
)

router = APIRouter()


async def user_response(db: DbSession, username: str) -> UserResponse:
    user = await IdentityService(db).require_user(username)
    stats = await ScoreLedger(db).stats(username)
    return UserResponse(
        username=stats.username,
        score=stats.score,
        answered=stats.answered,
        correct=stats.correct,
        accuracy=round(stats.accuracy, 4),
        created_at=user.created_at,
    )


@router.post("", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def register_user(data: UserCreate, db: DbSession, moderation: Moderation):
    """Register a new username (screened by the moderation filter)."""
    user = await IdentityService(db, moderation).register_user(data.username)
    return UserResponse(username=user.username, created_at=user.created_at)


@router.get("/{username}", response_model=UserResponse)
async def get_user(username: str, db: DbSession):
    """Score, answered and correct counters for one user."""
    return await user_response(db, username)


@router.get("/{username}/history", response_model=List[HistoryEntryResponse])
async def get_history(
    username: str,
    db: DbSession,
    limit: int = Query(50, ge=1, le=1000),
):
    """Most recent graded answers, newest first."""
    await IdentityService(db).require_user(username)
    records = await AnswerHistory(db, username, get_settings().history_limit).recent(limit)
    return [HistoryEntryResponse.model_validate(r) for r in records]


@router.get("/{username}/exclusions", response_model=ExclusionListResponse)
async def get_exclusions(username: str, db: DbSession):
    """Questions this user will not be asked again."""
    await IdentityService(db).require_user(username)
    questions = await ExclusionSet(db, username).list()
    return ExclusionListResponse(username=username, count=len(questions), questions=questions)


@router.get("/{username}/topics", response_model=TopicsResponse)
async def list_topics(username: str, db: DbSession):
    await IdentityService(db).require_user(username)
    return TopicsResponse(username=username, topics=await CompletedTopics(db, username).list())


@router.post("/{username}/topics", response_model=TopicsResponse)
async def add_topic(username: str, data: TopicRequest, db: DbSession):
    """Mark a topic as completed. Adding an existing topic (any case) is a no-op."""
    await IdentityService(db).require_user(username)
    topics = await CompletedTopics(db, username).add(data.topic)
    return TopicsResponse(username=username, topics=topics, added=data.topic.strip())


@router.delete("/{username}/topics", response_model=TopicsResponse)
async def remove_topic(username: str, data: TopicRequest, db: DbSession):
    await IdentityService(db).require_user(username)
    topics = await CompletedTopics(db, username).remove(data.topic)
    return TopicsResponse(username=username, topics=topics, removed=data.topic.strip())


@router.post("/{username}/topics/reset", response_model=TopicsResponse)
async def reset_topics(username: str, db: DbSession):
    await IdentityService(db).require_user(username)
    return TopicsResponse(username=username, topics=await CompletedTopics(db, username).reset())
