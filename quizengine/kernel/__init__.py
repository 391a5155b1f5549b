"""
Kernel Layer

Persistent state for the quiz engine:
- Users and their score counters
- Quiz sessions with append-only item logs
- Per-user exclusion sets, answer history and completed topics

Invariants:
- Score counters change only through atomic increments
- Only the tail item of a session log is ever mutated, and only once
- Exclusion entries are never updated or individually deleted
"""

from quizengine.kernel.models import (
    User,
    QuizSession,
    SessionItem,
    ItemState,
    ExclusionEntry,
    AnswerRecord,
    CompletedTopic,
)

__all__ = [
    "User",
    "QuizSession",
    "SessionItem",
    "ItemState",
    "ExclusionEntry",
    "AnswerRecord",
    "CompletedTopic",
]
