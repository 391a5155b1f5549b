"""
Assessment Engine - adaptive quiz sessions.

- DifficultyLadder: ten ordered labels from novice-1 to attending
- ExclusionSet: per-user questions that will never be asked again
- QuestionSupplier: oracle-backed question generation with dedup retry
- ScoreLedger: atomic score updates floored at zero, leaderboard
- SessionLifecycle: created -> awaiting_question <-> awaiting_answer -> concluded

Only leaf modules are re-exported here; import the services from their
own modules (they depend on the oracle types, which depend on the ladder).
"""

from quizengine.engines.assessment.errors import (
    AssessmentError,
    AssessmentValidationError,
    InvariantViolation,
    ModerationRejected,
    NotFoundError,
    UpstreamGenerationError,
    UpstreamUnavailableError,
)
from quizengine.engines.assessment.ladder import DifficultyLabel, DifficultyLadder

__all__ = [
    "AssessmentError",
    "AssessmentValidationError",
    "InvariantViolation",
    "ModerationRejected",
    "NotFoundError",
    "UpstreamGenerationError",
    "UpstreamUnavailableError",
    "DifficultyLabel",
    "DifficultyLadder",
]
