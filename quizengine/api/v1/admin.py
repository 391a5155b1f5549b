"""
Administrative endpoints. Guarded by the X-Admin-Token header.
"""

from fastapi import APIRouter

from quizengine.api.deps import AdminToken, DbSession
from quizengine.api.v1.sessions import build_session_response
from quizengine.api.v1.users import user_response
from quizengine.config import get_settings
from quizengine.engines.assessment.exclusion_set import ExclusionSet
from quizengine.engines.assessment.history import AnswerHistory
from quizengine.engines.assessment.session_store import SessionStore
from quizengine.engines.assessment.topics import CompletedTopics
from quizengine.kernel.identity.identity_service import IdentityService
from quizengine.schemas.quiz import HistoryEntryResponse, UserDumpResponse, WipeResponse

router = APIRouter()


@router.post("/wipe", response_model=WipeResponse)
async def wipe_all(_: AdminToken, db: DbSession):
    """Delete every user together with all sessions, history, exclusions and topics."""
    return WipeResponse(deleted=await IdentityService(db).wipe_all())


@router.get("/users/{username}/dump", response_model=UserDumpResponse)
async def dump_user(username: str, _: AdminToken, db: DbSession):
    """Raw view of everything stored for one user."""
    user = await user_response(db, username)
    history_limit = get_settings().history_limit
    store = SessionStore(db)
    sessions = [
        build_session_response(quiz_session, await store.items(quiz_session.id))
        for quiz_session in await store.for_user(username)
    ]
    return UserDumpResponse(
        user=user,
        exclusions=await ExclusionSet(db, username).list(),
        completed_topics=await CompletedTopics(db, username).list(),
        history=[
            HistoryEntryResponse.model_validate(record)
            for record in await AnswerHistory(db, username, history_limit).recent(history_limit)
        ],
        sessions=sessions,
    )
