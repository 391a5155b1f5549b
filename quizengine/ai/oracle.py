"""
Quiz Oracle - external text-generation service for authoring questions,
grading answers and summarizing sessions.

Uses OpenAI chat completions when an API key is configured, otherwise a
local stub so the engine runs offline.

Decoding contract:
- Question payloads must carry a non-empty "question" field, otherwise
  UpstreamGenerationError is raised (there is no safe synthetic question).
- Grade and summary payloads are decoded strictly into typed results; any
  decode failure yields the documented fallback value instead of raising.
"""

import re
import uuid
from typing import Any, List, Optional, Sequence

from pydantic import BaseModel, ValidationError

from quizengine.ai.types import (
    SAFE_GRADE,
    SUMMARY_UNAVAILABLE,
    GradeVerdict,
    SessionSummary,
    TranscriptEntry,
)
from quizengine.config import Settings, get_settings
from quizengine.engines.assessment.errors import UpstreamGenerationError
from quizengine.engines.assessment.ladder import DifficultyLabel, DifficultyLadder
from quizengine.logging_config import get_logger

logger = get_logger(__name__)

_CODE_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


# ── Prompts ──────────────────────────────────────────────────────────────

QUESTION_SYSTEM_PROMPT = (
    "You write single quiz questions for an adaptive assessment. "
    "Difficulty tiers run novice-1 (easiest) through resident-5 to attending (hardest). "
    "Write exactly one self-contained question that can be answered in a few sentences. "
    "Never repeat or lightly rephrase a question from the avoid list. "
    'Output valid JSON only: {"question": "..."}'
)

GRADE_SYSTEM_PROMPT = (
    "You grade a learner's answer to a quiz question at the stated difficulty tier. "
    "Judge correctness strictly but fairly, explain briefly, and suggest how difficulty "
    "should move for the next question: 1 (harder), 0 (same) or -1 (easier). "
    'Output valid JSON only: {"is_correct": true|false, "explanation": "...", "difficulty_delta": -1|0|1}'
)

SUMMARY_SYSTEM_PROMPT = (
    "You review a completed quiz session and give the learner concise, specific feedback "
    "on strengths and gaps, then one overall rating chosen from: "
    + ", ".join(label.value for label in DifficultyLadder.LABELS)
    + '. Output valid JSON only: {"feedback": "...", "rating": "<tier>"}'
)


# ── Strict decoding ──────────────────────────────────────────────────────

class _QuestionPayload(BaseModel):
    question: str


class _GradePayload(BaseModel):
    is_correct: bool
    explanation: str = ""
    difficulty_delta: Any = None


class _SummaryPayload(BaseModel):
    feedback: str
    rating: Any = None


def strip_code_fences(raw: str) -> str:
    """Remove a surrounding ```json fence if the model added one."""
    return _CODE_FENCE.sub("", (raw or "").strip()).strip()


def decode_question(raw: str) -> str:
    """Decode a question payload; raises UpstreamGenerationError when malformed."""
    try:
        payload = _QuestionPayload.model_validate_json(strip_code_fences(raw))
    except ValidationError as exc:
        raise UpstreamGenerationError("Question oracle returned a malformed payload") from exc
    question = payload.question.strip()
    if not question:
        raise UpstreamGenerationError("Question oracle returned an empty question")
    return question


def decode_grade(raw: str) -> GradeVerdict:
    """Decode a grade payload; falls back to SAFE_GRADE on any decode failure."""
    try:
        payload = _GradePayload.model_validate_json(strip_code_fences(raw))
    except ValidationError:
        logger.warning("Grading oracle returned an unparseable payload; using safe default")
        return SAFE_GRADE.model_copy()
    return GradeVerdict(
        is_correct=payload.is_correct,
        explanation=payload.explanation.strip(),
        difficulty_delta=DifficultyLadder.coerce_delta(payload.difficulty_delta, payload.is_correct),
    )


def decode_summary(raw: str, start_difficulty: DifficultyLabel) -> SessionSummary:
    """
    Decode a summary payload.

    Feedback and rating fall back independently: a usable feedback string
    survives a rating of the wrong type, which resolves through the ladder.
    """
    fallback = SessionSummary(feedback=SUMMARY_UNAVAILABLE, rating=DifficultyLadder.resolve(start_difficulty))
    try:
        payload = _SummaryPayload.model_validate_json(strip_code_fences(raw))
    except ValidationError:
        logger.warning("Summary oracle returned an unparseable payload; using fallback")
        return fallback
    feedback = payload.feedback.strip() or SUMMARY_UNAVAILABLE
    if payload.rating is None:
        return SessionSummary(feedback=feedback, rating=fallback.rating)
    return SessionSummary(feedback=feedback, rating=DifficultyLadder.resolve(str(payload.rating)))


# ── Oracle ───────────────────────────────────────────────────────────────

class QuizOracle:
    """
    The only component that talks to the text-generation service.

    generate_question raises UpstreamGenerationError on failure;
    grade_answer and summarize_session never raise.
    """

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()

    @property
    def configured(self) -> bool:
        return self.settings.oracle_configured

    async def generate_question(
        self,
        topic: str,
        difficulty: DifficultyLabel,
        avoid: Sequence[str],
    ) -> str:
        if not self.configured:
            return self._stub_question(topic, difficulty)

        avoid_block = "\n".join(f"- {q}" for q in avoid) if avoid else "(none)"
        prompt = (
            f"Topic: {topic}\n"
            f"Difficulty tier: {DifficultyLadder.resolve(difficulty).value}\n\n"
            f"Avoid list (already asked):\n{avoid_block}\n\n"
            "Write the next question now."
        )
        try:
            raw = await self._complete(QUESTION_SYSTEM_PROMPT, prompt, max_tokens=300, temperature=0.9)
        except Exception as exc:
            logger.warning("Question oracle call failed: %s", exc)
            raise UpstreamGenerationError("Question oracle is unavailable") from exc
        return decode_question(raw)

    async def grade_answer(
        self,
        question: str,
        answer: str,
        difficulty: DifficultyLabel,
    ) -> GradeVerdict:
        if not self.configured:
            return self._stub_grade(answer)

        prompt = (
            f"Difficulty tier: {DifficultyLadder.resolve(difficulty).value}\n\n"
            f"Question:\n{question}\n\n"
            f"Learner answer:\n{answer[:4000]}"
        )
        try:
            raw = await self._complete(GRADE_SYSTEM_PROMPT, prompt, max_tokens=400, temperature=0.0)
        except Exception as exc:
            logger.warning("Grading oracle call failed: %s", exc)
            return SAFE_GRADE.model_copy()
        return decode_grade(raw)

    async def summarize_session(
        self,
        transcript: List[TranscriptEntry],
        start_difficulty: DifficultyLabel,
    ) -> SessionSummary:
        if not self.configured:
            return self._stub_summary(transcript, start_difficulty)

        lines = []
        for entry in transcript:
            if entry.is_correct is None:
                verdict = "unanswered"
            else:
                verdict = "correct" if entry.is_correct else "incorrect"
            lines.append(
                f"{entry.ordinal}. [{entry.difficulty}] {entry.question}\n"
                f"   answer: {entry.user_answer or '(none)'} ({verdict})"
            )
        prompt = (
            f"Starting difficulty: {DifficultyLadder.resolve(start_difficulty).value}\n\n"
            "Transcript:\n" + ("\n".join(lines) if lines else "(no questions)")
        )
        try:
            raw = await self._complete(SUMMARY_SYSTEM_PROMPT, prompt, max_tokens=600, temperature=0.3)
        except Exception as exc:
            logger.warning("Summary oracle call failed: %s", exc)
            return SessionSummary(feedback=SUMMARY_UNAVAILABLE, rating=DifficultyLadder.resolve(start_difficulty))
        return decode_summary(raw, start_difficulty)

    async def _complete(self, system: str, prompt: str, *, max_tokens: int, temperature: float) -> str:
        """Single chat completion in JSON mode. Returns the raw message text."""
        from openai import AsyncOpenAI

        client = AsyncOpenAI(
            api_key=self.settings.openai_api_key.strip(),
            timeout=self.settings.openai_timeout_seconds,
        )
        response = await client.chat.completions.create(
            model=self.settings.openai_model,
            messages=[
                {"role": "system", "content": system},
                {"role": "user", "content": prompt},
            ],
            max_tokens=max_tokens,
            temperature=temperature,
            response_format={"type": "json_object"},
        )
        return (response.choices[0].message.content or "").strip()

    # ── Stubs (no API key) ───────────────────────────────────────────────

    def _stub_question(self, topic: str, difficulty: DifficultyLabel) -> str:
        label = DifficultyLadder.resolve(difficulty).value
        return (
            f"[{label}] Explain one core idea of {topic} and give a concrete example "
            f"(prompt {uuid.uuid4().hex[:8]})."
        )

    def _stub_grade(self, answer: str) -> GradeVerdict:
        # Offline fallback: a substantive answer counts as correct
        words = len((answer or "").split())
        correct = words >= self.settings.stub_min_answer_words
        return GradeVerdict(
            is_correct=correct,
            explanation=(
                "Offline grading: answer accepted on length."
                if correct
                else f"Offline grading: answers need at least {self.settings.stub_min_answer_words} words."
            ),
            difficulty_delta=1 if correct else 0,
        )

    def _stub_summary(self, transcript: List[TranscriptEntry], start_difficulty: DifficultyLabel) -> SessionSummary:
        answered = [e for e in transcript if e.is_correct is not None]
        correct = sum(1 for e in answered if e.is_correct)
        rating = DifficultyLadder.resolve(start_difficulty)
        if answered:
            rating = DifficultyLadder.resolve(answered[-1].difficulty)
        return SessionSummary(
            feedback=f"You answered {correct} of {len(answered)} questions correctly.",
            rating=rating,
        )
