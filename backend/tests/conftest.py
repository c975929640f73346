"""
Pytest configuration and shared fixtures for testing.
"""
import os
from pathlib import Path

# Settings and the database engine are built at import time; point them at
# the test database before anything from quizprogress is imported.
_TEST_DB = Path(__file__).parent / "test.db"
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-for-quizprogress")
os.environ.setdefault("DATABASE_URL", f"sqlite:///{_TEST_DB}")
os.environ.setdefault("ENV", "test")

from typing import AsyncGenerator, Callable, Dict  # noqa: E402

import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import (  # noqa: E402
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from quizprogress.core.answer_keys import AnswerKeyConfig, parse_answer_keys  # noqa: E402
from quizprogress.core.locks import LearnerLockRegistry  # noqa: E402
from quizprogress.core.security import create_access_token  # noqa: E402
from quizprogress.core.submission import SubmissionEngine  # noqa: E402
from quizprogress.main import app  # noqa: E402
from quizprogress.models import Base, Learner, get_db  # noqa: E402
from quizprogress.models.base import enable_sqlite_savepoints  # noqa: E402

# Async test engine (aiosqlite). Savepoints must work for the submission
# engine's progress update, so the driver-level BEGIN fix is applied.
ASYNC_SQLALCHEMY_DATABASE_URL = f"sqlite+aiosqlite:///{_TEST_DB}"

async_test_engine = create_async_engine(ASYNC_SQLALCHEMY_DATABASE_URL)
enable_sqlite_savepoints(async_test_engine.sync_engine)

AsyncTestingSessionLocal = async_sessionmaker(
    async_test_engine, class_=AsyncSession, expire_on_commit=False
)

# Small answer key set used across tests. Mirrors the layout of
# config/answer_keys.yaml.
TEST_ANSWER_KEYS = {
    "intelligence": {"categories": ["linguistic", "logical", "interpersonal"]},
    "initial": {"q1": "a", "q2": "x", "q3": "c"},
    "final": {"q1": "b", "q2": "b", "q3": "d", "q4": "a"},
    "units": {
        "unit-1": {"q1": "a", "q2": "b", "q3": "c", "q4": "d", "q5": "a"},
        "unit-2": {"q1": "d", "q2": "c"},
    },
}


@pytest.fixture
def answer_keys() -> AnswerKeyConfig:
    """Parsed answer keys for tests."""
    return parse_answer_keys(TEST_ANSWER_KEYS)


@pytest.fixture(scope="function")
async def async_db_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Create a fresh async database session for each test.
    """
    async with async_test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with AsyncTestingSessionLocal() as session:
        yield session

    async with async_test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture
def session_factory(async_db_session):
    """Session factory for tests that need more than one session."""
    return AsyncTestingSessionLocal


@pytest.fixture(scope="function")
async def async_client(
    async_db_session: AsyncSession, answer_keys: AnswerKeyConfig
) -> AsyncGenerator[AsyncClient, None]:
    """
    Create an async test client with async database dependency override.
    """

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield async_db_session

    app.dependency_overrides[get_db] = override_get_db
    app.state.answer_keys = answer_keys
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.pop(get_db, None)
    app.state.answer_keys = None


@pytest.fixture
async def learner(async_db_session: AsyncSession) -> Learner:
    """Create a learner with empty progress."""
    learner = Learner(
        external_id="learner-1",
        username="ada",
        email="ada@example.com",
    )
    async_db_session.add(learner)
    # No refresh: a read would leave a SQLite transaction open on this
    # session and block writers in other sessions
    await async_db_session.commit()
    return learner


@pytest.fixture
def auth_headers(learner: Learner) -> Dict[str, str]:
    """Bearer token headers for the test learner."""
    access_token = create_access_token(learner.external_id)
    return {"Authorization": f"Bearer {access_token}"}


@pytest.fixture
def make_engine(
    answer_keys: AnswerKeyConfig,
) -> Callable[..., SubmissionEngine]:
    """
    Build submission engines bound to a session.

    Each test gets its own lock registry so locks never leak between tests.
    """
    locks = LearnerLockRegistry()

    def _make(db: AsyncSession, **kwargs) -> SubmissionEngine:
        kwargs.setdefault("max_unit_count", 10)
        kwargs.setdefault("unit_pass_percentage", 60)
        kwargs.setdefault("locks", locks)
        return SubmissionEngine(db, answer_keys, **kwargs)

    return _make
