"""
Session Lifecycle - the quiz session state machine.

    created -> (awaiting_question <-> awaiting_answer)* -> concluded

- start: creates the session row (no items)
- ask: QuestionSupplier appends a new ASKED item
- grade: oracle verdict -> ladder bump -> score delta -> history -> tail patch
- conclude: merge every session question into the exclusion set, total the
  session points and ask the oracle for a summary
"""

import uuid
from enum import Enum
from typing import TYPE_CHECKING, List, Optional

from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from quizengine.ai.types import SAFE_GRADE, SUMMARY_UNAVAILABLE, GradeVerdict, SessionSummary, TranscriptEntry
from quizengine.config import Settings, get_settings
from quizengine.engines.assessment.errors import AssessmentValidationError, InvariantViolation
from quizengine.engines.assessment.exclusion_set import ExclusionSet
from quizengine.engines.assessment.history import AnswerHistory
from quizengine.engines.assessment.ladder import DifficultyLabel, DifficultyLadder
from quizengine.engines.assessment.question_supplier import QuestionSupplier, SuppliedQuestion
from quizengine.engines.assessment.score_ledger import ScoreLedger
from quizengine.engines.assessment.session_store import SessionStore
from quizengine.kernel.identity.identity_service import IdentityService
from quizengine.kernel.models.session import QuizSession, SessionItem
from quizengine.logging_config import get_logger

if TYPE_CHECKING:
    from quizengine.ai.oracle import QuizOracle

logger = get_logger(__name__)


class SessionState(str, Enum):
    """Derived session state."""
    CREATED = "created"
    AWAITING_QUESTION = "awaiting_question"
    AWAITING_ANSWER = "awaiting_answer"
    CONCLUDED = "concluded"


class GradeOutcome(BaseModel):
    """Result of grading the tail question."""

    ordinal: int
    is_correct: bool
    explanation: str
    difficulty_delta: int
    previous_difficulty: DifficultyLabel
    next_difficulty: DifficultyLabel
    points_delta: int
    score_after: int


class ConclusionResult(BaseModel):
    """Result of concluding a session."""

    added: int
    new_exclusion_count: int
    next_question_number: int
    feedback: str
    rating: DifficultyLabel
    session_points: int
    questions_asked: int
    correct_answers: int


def state_of(quiz_session: QuizSession, tail: Optional[SessionItem]) -> SessionState:
    if quiz_session.is_concluded:
        return SessionState.CONCLUDED
    if tail is None:
        return SessionState.CREATED
    if not tail.is_graded:
        return SessionState.AWAITING_ANSWER
    return SessionState.AWAITING_QUESTION


def item_points(item: SessionItem) -> int:
    """Recorded points; graded items without them fall back to the formula."""
    if item.points_delta is not None:
        return item.points_delta
    if item.is_correct is None:
        return 0
    return DifficultyLadder.points_for(item.starting_difficulty, bool(item.is_correct))


class SessionLifecycle:
    """
    Drives a quiz session through its states.

    Each call is request-scoped: all state lives in the database and the
    caller is expected to serialize calls for a given session.
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
        self.ledger = ScoreLedger(session)
        self.supplier = QuestionSupplier(session, oracle, self.settings)

    async def start(
        self,
        username: str,
        topic: Optional[str] = None,
        difficulty: Optional[str] = None,
    ) -> QuizSession:
        await IdentityService(self.session).require_user(username)
        topic = (topic or "").strip() or self.settings.default_topic
        starting = DifficultyLadder.resolve(difficulty or self.settings.default_difficulty)
        return await self.store.create(username, topic, starting)

    async def get(self, session_id: uuid.UUID) -> QuizSession:
        return await self.store.get(session_id)

    async def items(self, session_id: uuid.UUID) -> List[SessionItem]:
        await self.store.get(session_id)
        return await self.store.items(session_id)

    async def state(self, session_id: uuid.UUID) -> SessionState:
        quiz_session = await self.store.get(session_id)
        return state_of(quiz_session, await self.store.tail(session_id))

    async def ask(self, session_id: uuid.UUID) -> SuppliedQuestion:
        quiz_session = await self.store.get(session_id)
        return await self.supplier.next(quiz_session)

    async def _verdict(self, item: SessionItem, answer: str) -> GradeVerdict:
        try:
            verdict = await self.oracle.grade_answer(
                item.question, answer, DifficultyLadder.resolve(item.starting_difficulty)
            )
        except Exception as exc:
            logger.warning(
                "Grading oracle failed; recording safe default: %s",
                exc,
                extra={"session_id": str(item.session_id), "ordinal": item.ordinal},
            )
            return SAFE_GRADE.model_copy()
        if not isinstance(verdict, GradeVerdict):
            logger.warning("Grading oracle returned an unexpected result; recording safe default")
            return SAFE_GRADE.model_copy()
        return verdict

    async def grade(self, session_id: uuid.UUID, answer: str) -> GradeOutcome:
        answer = (answer or "").strip()
        if not answer:
            raise AssessmentValidationError("answer is required")

        quiz_session = await self.store.get(session_id)
        tail = await self.store.tail(session_id)
        current = state_of(quiz_session, tail)
        if current == SessionState.CONCLUDED:
            raise InvariantViolation("Session has been concluded")
        if current == SessionState.CREATED:
            raise InvariantViolation("Session has no questions to grade")
        if current == SessionState.AWAITING_QUESTION:
            raise InvariantViolation(f"Question {tail.ordinal} has already been graded")

        asked_at = DifficultyLadder.resolve(tail.starting_difficulty)
        verdict = await self._verdict(tail, answer)
        delta = DifficultyLadder.coerce_delta(verdict.difficulty_delta, verdict.is_correct)
        next_difficulty = DifficultyLadder.bump(asked_at, delta)
        explanation = verdict.explanation or SAFE_GRADE.explanation

        points = self.ledger.points_for(asked_at, verdict.is_correct)
        score_after = await self.ledger.apply_delta(quiz_session.username, points, verdict.is_correct)

        await AnswerHistory(self.session, quiz_session.username, self.settings.history_limit).append(
            question=tail.question,
            user_answer=answer,
            is_correct=verdict.is_correct,
            explanation=explanation,
            difficulty=asked_at.value,
            points_delta=points,
            session_id=quiz_session.id,
        )

        item = await self.store.patch_tail(
            session_id,
            user_answer=answer,
            is_correct=verdict.is_correct,
            explanation=explanation,
            final_difficulty=next_difficulty,
            points_delta=points,
            score_after=score_after,
        )
        logger.info(
            "Answer graded",
            extra={
                "session_id": str(session_id),
                "ordinal": item.ordinal,
                "correct": verdict.is_correct,
                "points": points,
                "next_difficulty": next_difficulty.value,
            },
        )
        return GradeOutcome(
            ordinal=item.ordinal,
            is_correct=verdict.is_correct,
            explanation=explanation,
            difficulty_delta=delta,
            previous_difficulty=asked_at,
            next_difficulty=next_difficulty,
            points_delta=points,
            score_after=score_after,
        )

    async def _summary(self, quiz_session: QuizSession, items: List[SessionItem]) -> SessionSummary:
        start = DifficultyLadder.resolve(quiz_session.starting_difficulty)
        transcript = [
            TranscriptEntry(
                ordinal=item.ordinal,
                question=item.question,
                difficulty=item.starting_difficulty,
                user_answer=item.user_answer,
                is_correct=item.is_correct,
            )
            for item in items
        ]
        try:
            summary = await self.oracle.summarize_session(transcript, start)
        except Exception as exc:
            logger.warning("Summary oracle failed; using fallback: %s", exc, extra={"session_id": str(quiz_session.id)})
            return SessionSummary(feedback=SUMMARY_UNAVAILABLE, rating=start)
        return SessionSummary(
            feedback=summary.feedback or SUMMARY_UNAVAILABLE,
            rating=DifficultyLadder.resolve(summary.rating),
        )

    async def conclude(self, session_id: uuid.UUID) -> ConclusionResult:
        quiz_session = await self.store.get(session_id)
        if quiz_session.is_concluded:
            raise InvariantViolation("Session has already been concluded")

        items = await self.store.items(session_id)
        exclusions = ExclusionSet(self.session, quiz_session.username, self.settings.exclusion_max_length)
        added = await exclusions.merge(item.question for item in items)
        total = await exclusions.count()

        session_points = sum(item_points(item) for item in items)
        summary = await self._summary(quiz_session, items)
        await self.store.mark_concluded(quiz_session)

        logger.info(
            "Session concluded",
            extra={
                "session_id": str(session_id),
                "questions": len(items),
                "added": added,
                "session_points": session_points,
            },
        )
        return ConclusionResult(
            added=added,
            new_exclusion_count=total,
            next_question_number=total + 1,
            feedback=summary.feedback,
            rating=summary.rating,
            session_points=session_points,
            questions_asked=len(items),
            correct_answers=sum(1 for item in items if item.is_correct),
        )
