"""
Shared oracle types - typed results decoded from free-form model output.
"""

from typing import Optional

from pydantic import BaseModel, Field

from quizengine.engines.assessment.ladder import DifficultyLabel


class GradeVerdict(BaseModel):
    """Judgement on one answer. difficulty_delta is always in {-1, 0, 1}."""

    is_correct: bool = False
    explanation: str = ""
    difficulty_delta: int = Field(default=0, ge=-1, le=1)


class SessionSummary(BaseModel):
    """Closing feedback for a session plus one overall rating."""

    feedback: str
    rating: DifficultyLabel


class TranscriptEntry(BaseModel):
    """One question/answer line handed to the summary oracle."""

    ordinal: int
    question: str
    difficulty: str
    user_answer: Optional[str] = None
    is_correct: Optional[bool] = None


class ModerationVerdict(BaseModel):
    """Outcome of a username moderation check."""

    allowed: bool
    reason: Optional[str] = None


# Returned whenever grading cannot be completed
SAFE_GRADE = GradeVerdict(
    is_correct=False,
    explanation="We couldn't grade this answer right now, so it was recorded as incorrect.",
    difficulty_delta=0,
)

SUMMARY_UNAVAILABLE = "Summary unavailable."
