"""
Quiz session endpoints: start, inspect, ask, answer, conclude.
"""

import uuid
from typing import List

from fastapi import APIRouter, status

from quizengine.api.deps import Lifecycle
from quizengine.engines.assessment.lifecycle import state_of
from quizengine.kernel.models.session import QuizSession, SessionItem
from quizengine.schemas.quiz import (
    AnswerRequest,
    AnswerResponse,
    ConcludeResponse,
    QuestionResponse,
    SessionCreate,
    SessionItemResponse,
    SessionResponse,
)

router = APIRouter()


def _enum_val(e):
    """Safely get enum value (SQLite may return str)."""
    return e.value if hasattr(e, "value") else e


def _item_response(item: SessionItem) -> SessionItemResponse:
    return SessionItemResponse(
        ordinal=item.ordinal,
        question=item.question,
        topic=item.topic,
        state=_enum_val(item.state),
        starting_difficulty=item.starting_difficulty,
        final_difficulty=item.final_difficulty,
        user_answer=item.user_answer,
        is_correct=item.is_correct,
        explanation=item.explanation,
        points_delta=item.points_delta,
        score_after=item.score_after,
    )


def build_session_response(quiz_session: QuizSession, items: List[SessionItem]) -> SessionResponse:
    return SessionResponse(
        id=quiz_session.id,
        username=quiz_session.username,
        topic=quiz_session.topic,
        starting_difficulty=quiz_session.starting_difficulty,
        state=state_of(quiz_session, items[-1] if items else None).value,
        created_at=quiz_session.created_at,
        concluded_at=quiz_session.concluded_at,
        items=[_item_response(item) for item in items],
    )


async def _session_response(lifecycle: Lifecycle, session_id: uuid.UUID) -> SessionResponse:
    quiz_session = await lifecycle.get(session_id)
    return build_session_response(quiz_session, await lifecycle.items(session_id))


@router.post("", response_model=SessionResponse, status_code=status.HTTP_201_CREATED)
async def start_session(data: SessionCreate, lifecycle: Lifecycle):
    """Start a session for an existing user. No question is asked yet."""
    quiz_session = await lifecycle.start(data.username, data.topic, data.difficulty)
    return await _session_response(lifecycle, quiz_session.id)


@router.get("/{session_id}", response_model=SessionResponse)
async def get_session(session_id: uuid.UUID, lifecycle: Lifecycle):
    return await _session_response(lifecycle, session_id)


@router.post("/{session_id}/questions", response_model=QuestionResponse, status_code=status.HTTP_201_CREATED)
async def ask_question(session_id: uuid.UUID, lifecycle: Lifecycle):
    """Append the next question (never one the user has already seen)."""
    supplied = await lifecycle.ask(session_id)
    return QuestionResponse(
        session_id=session_id,
        ordinal=supplied.ordinal,
        question=supplied.question,
        difficulty=supplied.difficulty.value,
    )


@router.post("/{session_id}/answers", response_model=AnswerResponse)
async def submit_answer(session_id: uuid.UUID, data: AnswerRequest, lifecycle: Lifecycle):
    """Grade the answer to the current question and update the score."""
    outcome = await lifecycle.grade(session_id, data.answer)
    return AnswerResponse(
        session_id=session_id,
        ordinal=outcome.ordinal,
        is_correct=outcome.is_correct,
        explanation=outcome.explanation,
        difficulty_delta=outcome.difficulty_delta,
        previous_difficulty=outcome.previous_difficulty.value,
        next_difficulty=outcome.next_difficulty.value,
        points_delta=outcome.points_delta,
        score_after=outcome.score_after,
    )


@router.post("/{session_id}/conclude", response_model=ConcludeResponse)
async def conclude_session(session_id: uuid.UUID, lifecycle: Lifecycle):
    """Close the session, remember its questions and return the summary."""
    result = await lifecycle.conclude(session_id)
    return ConcludeResponse(session_id=session_id, **result.model_dump(mode="json"))
