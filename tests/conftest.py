"""
Pytest fixtures for the quiz engine tests.

Each test gets its own file-based SQLite database (in-memory SQLite is
per-connection, and the app opens a connection per session).
"""

import os
import tempfile
from typing import AsyncGenerator, List, Optional

# Must run before any quizengine import so the app binds to a test database
_tmp = tempfile.NamedTemporaryFile(suffix=".db", delete=False)
_tmp.close()
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_tmp.name}"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["OPENAI_API_KEY"] = ""
os.environ["ADMIN_TOKEN"] = "test-admin-token"

from quizengine.config import Settings, get_settings

get_settings.cache_clear()

import pytest
import pytest_asyncio
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from quizengine.ai.types import GradeVerdict, SessionSummary, TranscriptEntry
from quizengine.engines.assessment.ladder import DifficultyLabel, DifficultyLadder
from quizengine.kernel.models import Base, User

ADMIN_TOKEN = "test-admin-token"


def _sqlite_pragmas(dbapi_conn, connection_record):
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


class FakeOracle:
    """
    Scripted oracle.

    `questions` and `verdicts` are consumed in order; an Exception instance
    in either list is raised instead of returned. When a script runs out,
    questions are numbered and unique, and answers are graded correct (+1).
    """

    def __init__(
        self,
        questions: Optional[List] = None,
        verdicts: Optional[List] = None,
        summary=None,
    ):
        self.questions = list(questions or [])
        self.verdicts = list(verdicts or [])
        self.summary = summary
        self.question_calls: List[dict] = []
        self.grade_calls: List[dict] = []
        self.summary_calls: List[List[TranscriptEntry]] = []
        self._generated = 0

    async def generate_question(self, topic: str, difficulty: DifficultyLabel, avoid) -> str:
        self.question_calls.append({"topic": topic, "difficulty": difficulty, "avoid": list(avoid)})
        if self.questions:
            nxt = self.questions.pop(0)
            if isinstance(nxt, Exception):
                raise nxt
            return nxt
        self._generated += 1
        return f"Generated question {self._generated} about {topic}?"

    async def grade_answer(self, question: str, answer: str, difficulty: DifficultyLabel) -> GradeVerdict:
        self.grade_calls.append({"question": question, "answer": answer, "difficulty": difficulty})
        if self.verdicts:
            nxt = self.verdicts.pop(0)
            if isinstance(nxt, Exception):
                raise nxt
            return nxt
        return GradeVerdict(is_correct=True, explanation="Correct.", difficulty_delta=1)

    async def summarize_session(self, transcript: List[TranscriptEntry], start_difficulty: DifficultyLabel) -> SessionSummary:
        self.summary_calls.append(list(transcript))
        if isinstance(self.summary, Exception):
            raise self.summary
        if self.summary is not None:
            return self.summary
        return SessionSummary(feedback="Solid session.", rating=DifficultyLadder.resolve(start_difficulty))


@pytest.fixture
def settings() -> Settings:
    """Engine settings isolated from any local .env."""
    return Settings(
        _env_file=None,
        openai_api_key="",
        question_retry_attempts=3,
        dedup_fail_on_exhaustion=False,
        history_limit=1000,
        rate_limit_enabled=False,
    )


@pytest.fixture
def fake_oracle() -> FakeOracle:
    return FakeOracle()


@pytest.fixture
def make_oracle():
    """Factory for scripted oracles: make_oracle(questions=[...], verdicts=[...], summary=...)."""
    return FakeOracle


@pytest_asyncio.fixture
async def db_engine(tmp_path):
    """Fresh SQLite file with all tables for each test."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'quiz.db'}",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=NullPool,
    )
    event.listen(engine.sync_engine, "connect", _sqlite_pragmas)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def session_maker(db_engine):
    return async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture
async def db_session(session_maker) -> AsyncGenerator[AsyncSession, None]:
    async with session_maker() as session:
        yield session
        await session.rollback()


async def make_user(session: AsyncSession, username: str, score: int = 0) -> User:
    user = User(username=username, score=score, answered=0, correct=0)
    session.add(user)
    await session.flush()
    return user


@pytest.fixture
def user_factory(db_session: AsyncSession):
    async def _create(username: str, score: int = 0) -> User:
        return await make_user(db_session, username, score)
    return _create


@pytest_asyncio.fixture
async def alice(db_session: AsyncSession) -> User:
    return await make_user(db_session, "alice")
