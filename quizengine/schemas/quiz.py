"""
Quiz schemas: users, sessions, answers, leaderboard and topics.
"""

import uuid
from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class UserCreate(BaseModel):
    """User registration request."""

    username: str = Field(..., max_length=128)


class UserResponse(BaseModel):
    """User profile and counters."""

    model_config = ConfigDict(from_attributes=True)

    username: str
    score: int = 0
    answered: int = 0
    correct: int = 0
    accuracy: float = 0.0
    created_at: Optional[datetime] = None


class HistoryEntryResponse(BaseModel):
    """One graded answer from the user's history."""

    model_config = ConfigDict(from_attributes=True)

    session_id: Optional[uuid.UUID] = None
    question: str
    user_answer: str
    is_correct: bool
    explanation: str
    difficulty: str
    points_delta: int
    created_at: Optional[datetime] = None


class ExclusionListResponse(BaseModel):
    username: str
    count: int
    questions: List[str]


class TopicRequest(BaseModel):
    topic: str = Field(..., max_length=255)


class TopicsResponse(BaseModel):
    """Completed topics; `added` / `removed` echo the topic that changed."""

    username: str
    topics: List[str]
    added: Optional[str] = None
    removed: Optional[str] = None


class SessionCreate(BaseModel):
    """Start a session. Unknown difficulty labels fall back to novice-3."""

    username: str
    topic: Optional[str] = Field(default=None, max_length=255)
    difficulty: Optional[str] = Field(default=None, max_length=32)


class SessionItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    ordinal: int
    question: str
    topic: str
    state: str
    starting_difficulty: str
    final_difficulty: Optional[str] = None
    user_answer: Optional[str] = None
    is_correct: Optional[bool] = None
    explanation: Optional[str] = None
    points_delta: Optional[int] = None
    score_after: Optional[int] = None


class SessionResponse(BaseModel):
    """Session metadata with its derived state and items."""

    id: uuid.UUID
    username: str
    topic: str
    starting_difficulty: str
    state: str
    created_at: Optional[datetime] = None
    concluded_at: Optional[datetime] = None
    items: List[SessionItemResponse] = []


class QuestionResponse(BaseModel):
    session_id: uuid.UUID
    ordinal: int
    question: str
    difficulty: str


class AnswerRequest(BaseModel):
    answer: str = Field(..., max_length=10000)


class AnswerResponse(BaseModel):
    session_id: uuid.UUID
    ordinal: int
    is_correct: bool
    explanation: str
    difficulty_delta: int
    previous_difficulty: str
    next_difficulty: str
    points_delta: int
    score_after: int


class ConcludeResponse(BaseModel):
    session_id: uuid.UUID
    added: int
    new_exclusion_count: int
    next_question_number: int
    feedback: str
    rating: str
    session_points: int
    questions_asked: int
    correct_answers: int


class LeaderboardEntry(BaseModel):
    rank: int
    username: str
    score: int


class LeaderboardResponse(BaseModel):
    entries: List[LeaderboardEntry]


class WipeResponse(BaseModel):
    deleted: Dict[str, int]


class UserDumpResponse(BaseModel):
    """Everything stored for one user, for debugging."""

    user: UserResponse
    exclusions: List[str]
    completed_topics: List[str]
    history: List[HistoryEntryResponse]
    sessions: List[SessionResponse]
