import os

# Settings are read at import time; pin a test environment first.
os.environ.setdefault("SECRET", "test-secret-0123456789abcdef0123456789abcdef")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("SCHEDULER_ENABLED", "false")
os.environ.setdefault("DB_CREATE_ALL", "false")
os.environ.setdefault("EMAIL_TRANSPORT", "dummy")
os.environ.setdefault("APP_TZ", "UTC")
os.environ.setdefault("AUTOMATION_SECRET", "test-automation-secret")

from datetime import date, datetime, timezone

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from journalbook.database import Base, get_db, get_session_maker
from journalbook import models  # noqa: F401
from journalbook.errors import GenerationFailed
from journalbook.llm_client import get_generator
from journalbook.main import app
from journalbook.security import issue_token
from journalbook.services.weeks import FixedClock, get_clock


class FakeGenerator:
    """Stands in for the LLM; echoes its input so tests can see what was sent."""

    model_name = "fake-model"

    def __init__(self, reply=None, fail=False, fail_when=None):
        self.reply = reply
        self.fail = fail
        self.fail_when = fail_when
        self.calls = []

    async def generate(self, system, user, *, temperature=0.4):
        self.calls.append(user)
        if self.fail or (self.fail_when and self.fail_when in user):
            raise GenerationFailed("generator unavailable")
        if self.reply is not None:
            return self.reply
        return f"NARRATIVE<{user}>"


@pytest_asyncio.fixture
async def session_maker(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'journal.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)
    await engine.dispose()


@pytest_asyncio.fixture
async def db(session_maker):
    async with session_maker() as session:
        yield session


@pytest.fixture
def generator():
    return FakeGenerator()


@pytest.fixture
def clock():
    # Wednesday
    return FixedClock(datetime(2024, 1, 3, 12, 0, tzinfo=timezone.utc), "UTC")


@pytest_asyncio.fixture
async def client(session_maker, generator, clock):
    async def _db():
        async with session_maker() as session:
            yield session

    app.dependency_overrides[get_db] = _db
    app.dependency_overrides[get_session_maker] = lambda: session_maker
    app.dependency_overrides[get_generator] = lambda: generator
    app.dependency_overrides[get_clock] = lambda: clock
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


def auth_headers(user_id):
    return {"Authorization": f"Bearer {issue_token(user_id)}"}


@pytest.fixture
def auth():
    return auth_headers


def d(value):
    return date.fromisoformat(value)
