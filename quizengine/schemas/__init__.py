"""
Pydantic schemas for API request/response validation.
"""

from quizengine.schemas.common import ErrorResponse, HealthResponse
from quizengine.schemas.quiz import (
    AnswerRequest,
    AnswerResponse,
    ConcludeResponse,
    ExclusionListResponse,
    HistoryEntryResponse,
    LeaderboardEntry,
    LeaderboardResponse,
    QuestionResponse,
    SessionCreate,
    SessionItemResponse,
    SessionResponse,
    TopicRequest,
    TopicsResponse,
    UserCreate,
    UserDumpResponse,
    UserResponse,
    WipeResponse,
)

__all__ = [
    "ErrorResponse",
    "HealthResponse",
    "AnswerRequest",
    "AnswerResponse",
    "ConcludeResponse",
    "ExclusionListResponse",
    "HistoryEntryResponse",
    "LeaderboardEntry",
    "LeaderboardResponse",
    "QuestionResponse",
    "SessionCreate",
    "SessionItemResponse",
    "SessionResponse",
    "TopicRequest",
    "TopicsResponse",
    "UserCreate",
    "UserDumpResponse",
    "UserResponse",
    "WipeResponse",
]
