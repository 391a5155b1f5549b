"""
Exclusion Set - per-user, append-only, deduplicated log of asked questions.
"""

import re
from typing import Iterable, List, Optional, Set

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from quizengine.config import get_settings
from quizengine.engines.assessment.errors import InvariantViolation
from quizengine.kernel.models.exclusion import ExclusionEntry, compute_question_hash
from quizengine.logging_config import get_logger

logger = get_logger(__name__)

_WHITESPACE = re.compile(r"\s+")


def clean_question(text: Optional[str]) -> str:
    """Trim and collapse internal whitespace; keeps casing and punctuation."""
    return _WHITESPACE.sub(" ", str(text or "")).strip()


def normalize_question(text: Optional[str]) -> str:
    """Comparison form: cleaned and case-folded."""
    return clean_question(text).casefold()


class ExclusionSet:
    """
    Permanent memory of the questions a user has been asked.

    Entries keep their original text; equality is decided on the
    normalized form through the (username, normalized_hash) index.
    """

    def __init__(
        self,
        session: AsyncSession,
        username: str,
        max_length: Optional[int] = None,
    ):
        self.session = session
        self.username = username
        self.max_length = max_length if max_length is not None else get_settings().exclusion_max_length

    async def count(self) -> int:
        q = select(func.count()).select_from(ExclusionEntry).where(ExclusionEntry.username == self.username)
        return int((await self.session.execute(q)).scalar_one())

    async def list(self) -> List[str]:
        """All entries in insertion order (first merged first)."""
        q = (
            select(ExclusionEntry.question)
            .where(ExclusionEntry.username == self.username)
            .order_by(ExclusionEntry.position)
        )
        return list((await self.session.execute(q)).scalars().all())

    async def normalized_set(self) -> Set[str]:
        return {normalize_question(q) for q in await self.list()}

    async def contains(self, question: str) -> bool:
        digest = compute_question_hash(normalize_question(question))
        q = select(ExclusionEntry.id).where(
            ExclusionEntry.username == self.username,
            ExclusionEntry.normalized_hash == digest,
        )
        return (await self.session.execute(q)).first() is not None

    async def _existing_hashes(self) -> Set[str]:
        q = select(ExclusionEntry.normalized_hash).where(ExclusionEntry.username == self.username)
        return set((await self.session.execute(q)).scalars().all())

    async def _last_position(self) -> int:
        q = select(func.coalesce(func.max(ExclusionEntry.position), 0)).where(
            ExclusionEntry.username == self.username
        )
        return int((await self.session.execute(q)).scalar_one())

    async def merge(self, candidates: Iterable[str]) -> int:
        """
        Append candidates not already present (by normalized form).

        Empty and oversized strings are dropped silently. Input order is
        preserved and duplicates within the batch collapse to the first.

        Returns:
            Number of entries added

        Raises:
            InvariantViolation: a concurrent merge inserted the same question
        """
        seen = await self._existing_hashes()
        position = await self._last_position()
        added = 0
        dropped = 0

        for candidate in candidates:
            cleaned = clean_question(candidate)
            if not cleaned or len(cleaned) > self.max_length:
                dropped += 1
                continue
            digest = compute_question_hash(cleaned.casefold())
            if digest in seen:
                continue
            seen.add(digest)
            position += 1
            self.session.add(
                ExclusionEntry(
                    username=self.username,
                    position=position,
                    question=cleaned,
                    normalized_hash=digest,
                )
            )
            added += 1

        if added:
            try:
                await self.session.flush()
            except IntegrityError as exc:
                # Another merge for the same user committed first
                logger.warning(
                    "Concurrent exclusion merge detected",
                    extra={"username": self.username},
                )
                raise InvariantViolation(
                    "The question history changed concurrently; conclude again"
                ) from exc
        logger.info(
            "Exclusion set merged",
            extra={"username": self.username, "added": added, "dropped": dropped},
        )
        return added
