"""
Difficulty ladder - the fixed 10-tier scale and the pure bump function.
"""

from enum import Enum
from typing import Any, List, Union


class DifficultyLabel(str, Enum):
    """Ordered difficulty tiers, index 0 (easiest) to 9 (hardest)."""
    NOVICE_1 = "novice-1"
    NOVICE_2 = "novice-2"
    NOVICE_3 = "novice-3"
    NOVICE_4 = "novice-4"
    RESIDENT_1 = "resident-1"
    RESIDENT_2 = "resident-2"
    RESIDENT_3 = "resident-3"
    RESIDENT_4 = "resident-4"
    RESIDENT_5 = "resident-5"
    ATTENDING = "attending"


LabelLike = Union[DifficultyLabel, str, None]


class DifficultyLadder:
    """
    Maps difficulty labels to ordinal positions and moves along the scale.

    Unknown labels are treated as index 2 everywhere, so every value that
    leaves this class is a valid DifficultyLabel.
    """

    LABELS: List[DifficultyLabel] = list(DifficultyLabel)
    DEFAULT_INDEX = 2
    LAST_INDEX = len(LABELS) - 1

    # Points per tier
    CORRECT_POINTS_PER_TIER = 10
    WRONG_POINTS_PER_TIER = 5

    @classmethod
    def index_of(cls, label: LabelLike) -> int:
        value = label.value if isinstance(label, DifficultyLabel) else str(label or "").strip().lower()
        for i, known in enumerate(cls.LABELS):
            if known.value == value:
                return i
        return cls.DEFAULT_INDEX

    @classmethod
    def resolve(cls, label: LabelLike) -> DifficultyLabel:
        """Return the canonical label, falling back to the default tier."""
        return cls.LABELS[cls.index_of(label)]

    @classmethod
    def bump(cls, current: LabelLike, delta: int) -> DifficultyLabel:
        """Move `delta` rungs from `current`, clamped to the ends of the ladder."""
        nxt = min(max(cls.index_of(current) + int(delta), 0), cls.LAST_INDEX)
        return cls.LABELS[nxt]

    @classmethod
    def tier_of(cls, label: LabelLike) -> int:
        """1-based tier number (1..10)."""
        return cls.index_of(label) + 1

    @classmethod
    def points_for(cls, label: LabelLike, correct: bool) -> int:
        """Signed points for an answer at this difficulty."""
        tier = cls.tier_of(label)
        if correct:
            return cls.CORRECT_POINTS_PER_TIER * tier
        return -cls.WRONG_POINTS_PER_TIER * tier

    @staticmethod
    def coerce_delta(value: Any, is_correct: bool) -> int:
        """
        Constrain an oracle-suggested delta to {-1, 0, 1}.
        Anything else defaults to +1 on a correct answer, 0 otherwise.
        """
        if isinstance(value, bool) or not isinstance(value, int):
            return 1 if is_correct else 0
        if value in (-1, 0, 1):
            return value
        return 1 if is_correct else 0
