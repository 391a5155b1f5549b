"""
Username moderation - screens new usernames before registration.

Uses the OpenAI moderation endpoint when a key is configured; always
applies a local blocked-term check first.
"""

import re
from typing import Optional

from quizengine.ai.types import ModerationVerdict
from quizengine.config import Settings, get_settings
from quizengine.logging_config import get_logger

logger = get_logger(__name__)

# Reserved names, matched exactly once separators and digits are stripped
RESERVED_NAMES = frozenset({
    "admin",
    "administrator",
    "moderator",
    "root",
    "system",
    "support",
})

# Offensive terms, matched anywhere in the stripped username
BLOCKED_TERMS = frozenset({
    "fuck",
    "shit",
    "cunt",
    "nazi",
    "hitler",
})

_SEPARATORS = re.compile(r"[\s._\-0-9]+")

# Leetspeak substitutions undone before matching
_LEET = str.maketrans({"@": "a", "$": "s", "!": "i", "|": "l", "€": "e"})


class ModerationFilter:
    """Decides whether a username may be registered."""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()

    @staticmethod
    def _local_check(username: str) -> ModerationVerdict:
        squashed = _SEPARATORS.sub("", username.translate(_LEET).lower())
        if squashed in RESERVED_NAMES:
            return ModerationVerdict(allowed=False, reason="Username is reserved")
        for term in BLOCKED_TERMS:
            if term in squashed:
                return ModerationVerdict(allowed=False, reason="Username contains a blocked term")
        return ModerationVerdict(allowed=True)

    async def check(self, username: str) -> ModerationVerdict:
        verdict = self._local_check(username)
        if not verdict.allowed or not self.settings.oracle_configured:
            return verdict

        try:
            from openai import AsyncOpenAI

            client = AsyncOpenAI(
                api_key=self.settings.openai_api_key.strip(),
                timeout=self.settings.openai_timeout_seconds,
            )
            response = await client.moderations.create(input=username)
        except Exception as exc:
            # The local check already passed; an unreachable moderation service does not block sign-up
            logger.warning("Moderation service unavailable, using local check only: %s", exc)
            return verdict

        if response.results and response.results[0].flagged:
            return ModerationVerdict(allowed=False, reason="Username was flagged by moderation")
        return verdict
