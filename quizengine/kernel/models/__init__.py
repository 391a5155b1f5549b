"""
Kernel Data Models

SQLAlchemy models for users, sessions, session items, exclusion entries,
answer history and completed topics.
"""

from quizengine.kernel.models.base import Base, CreatedAtMixin, generate_uuid
from quizengine.kernel.models.user import User
from quizengine.kernel.models.exclusion import ExclusionEntry, compute_question_hash
from quizengine.kernel.models.session import ItemState, QuizSession, SessionItem
from quizengine.kernel.models.history import AnswerRecord, CompletedTopic

__all__ = [
    # Base
    "Base",
    "CreatedAtMixin",
    "generate_uuid",
    # User
    "User",
    # Exclusions
    "ExclusionEntry",
    "compute_question_hash",
    # Sessions
    "ItemState",
    "QuizSession",
    "SessionItem",
    # History
    "AnswerRecord",
    "CompletedTopic",
]
