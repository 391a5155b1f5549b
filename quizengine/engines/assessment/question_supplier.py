"""
Question Supplier - asks the oracle for the next question while keeping
every question unique for the user.
"""

from typing import TYPE_CHECKING, List, Optional

from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from quizengine.config import Settings, get_settings
from quizengine.engines.assessment.errors import InvariantViolation, UpstreamGenerationError
from quizengine.engines.assessment.exclusion_set import ExclusionSet, clean_question, normalize_question
from quizengine.engines.assessment.ladder import DifficultyLabel, DifficultyLadder
from quizengine.engines.assessment.session_store import SessionStore
from quizengine.kernel.models.session import QuizSession, SessionItem
from quizengine.logging_config import get_logger

if TYPE_CHECKING:
    from quizengine.ai.oracle import QuizOracle

logger = get_logger(__name__)


class SuppliedQuestion(BaseModel):
    """A question that has been appended to the session log."""

    question: str
    difficulty: DifficultyLabel
    ordinal: int
    attempts: int = 1
    prefixed: bool = False


class QuestionSupplier:
    """
    Produces the next session question.

    The avoid-set is the user's exclusion set plus every question already
    in this session, compared in normalized form. Duplicates are retried
    up to the configured budget; after that the question is disambiguated
    with a topic prefix (or the call fails, if configured to).
    """

    def __init__(
        self,
        session: AsyncSession,
        oracle: "QuizOracle",
        settings: Optional[Settings] = None,
    ):
        self.session = session
        self.oracle = oracle
        self.settings = settings or get_settings()
        self.store = SessionStore(session)

    @staticmethod
    def working_difficulty(quiz_session: QuizSession, items: List[SessionItem]) -> DifficultyLabel:
        """Tail item's final difficulty, or the session's starting difficulty."""
        if items:
            return DifficultyLadder.resolve(items[-1].final_difficulty)
        return DifficultyLadder.resolve(quiz_session.starting_difficulty)

    async def _candidate(self, topic: str, difficulty: DifficultyLabel, context: List[str]) -> str:
        try:
            raw = await self.oracle.generate_question(topic, difficulty, context)
        except UpstreamGenerationError:
            raise
        except Exception as exc:
            raise UpstreamGenerationError("Question oracle is unavailable") from exc
        candidate = clean_question(raw if isinstance(raw, str) else None)
        if not candidate:
            raise UpstreamGenerationError("Question oracle returned an empty question")
        return candidate

    async def next(self, quiz_session: QuizSession) -> SuppliedQuestion:
        if quiz_session.is_concluded:
            raise InvariantViolation("Session has been concluded; no further questions may be added")

        items = await self.store.items(quiz_session.id)
        if items and not items[-1].is_graded:
            raise InvariantViolation(f"Question {items[-1].ordinal} is still awaiting an answer")

        difficulty = self.working_difficulty(quiz_session, items)

        asked = await ExclusionSet(self.session, quiz_session.username).list()
        asked.extend(item.question for item in items)
        avoid = {normalize_question(q) for q in asked}
        limit = max(self.settings.oracle_avoid_context_limit, 0)
        context = asked[-limit:] if limit else []

        budget = max(self.settings.question_retry_attempts, 1)
        prefixed = False
        attempt = 0
        question = ""
        for attempt in range(1, budget + 1):
            question = await self._candidate(quiz_session.topic, difficulty, context)
            if normalize_question(question) not in avoid:
                break
            logger.info(
                "Duplicate question from oracle",
                extra={"session_id": str(quiz_session.id), "attempt": attempt},
            )
        else:
            if self.settings.dedup_fail_on_exhaustion:
                raise UpstreamGenerationError(
                    f"Question oracle kept repeating questions after {budget} attempts"
                )
            question = f"[{quiz_session.topic}] {question}"
            prefixed = True
            logger.warning(
                "Retry budget exhausted; disambiguating with topic prefix",
                extra={"session_id": str(quiz_session.id), "attempts": budget},
            )

        item = await self.store.append(quiz_session, question, difficulty)
        logger.info(
            "Question appended",
            extra={
                "session_id": str(quiz_session.id),
                "ordinal": item.ordinal,
                "difficulty": difficulty.value,
            },
        )
        return SuppliedQuestion(
            question=item.question,
            difficulty=difficulty,
            ordinal=item.ordinal,
            attempts=attempt,
            prefixed=prefixed,
        )
