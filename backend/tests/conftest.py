# tests/conftest.py — Shared test fixtures
import os
import uuid
from datetime import datetime, timedelta

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker

# Use SQLite for tests
TEST_DB_URL = "sqlite+aiosqlite:///./test.db"
os.environ["DATABASE_URL"] = TEST_DB_URL
os.environ["JWT_SECRET_KEY"] = "test-secret-key-for-unit-tests-only-min-32-chars"
os.environ["ENVIRONMENT"] = "test"
os.environ["LOG_JSON_STDOUT"] = "false"

from models import Base, Profile, ProfileRole, Task, Issue, TaskStatus, IssueStatus, Priority, utcnow
from auth import AuthService
from database import get_session_factory
from response_cache import get_response_cache
from main import app


@pytest.fixture(autouse=True)
def clear_response_cache():
    """The response cache is process-wide; isolate every test from the others"""
    get_response_cache().clear()
    yield
    get_response_cache().clear()


@pytest_asyncio.fixture(scope="function")
async def db_engine():
    engine = create_async_engine(TEST_DB_URL, echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def session_factory(db_engine):
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture(scope="function")
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture(scope="function")
async def client(session_factory):
    """HTTP test client bound to the per-test database"""
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


async def _add_profile(db_session, full_name: str, email: str, role: ProfileRole, **kwargs) -> Profile:
    profile = Profile(id=str(uuid.uuid4()), full_name=full_name, email=email, role=role, **kwargs)
    db_session.add(profile)
    await db_session.commit()
    await db_session.refresh(profile)
    return profile


@pytest_asyncio.fixture
async def admin_profile(db_session):
    """Create an admin profile"""
    return await _add_profile(db_session, "Ada Admin", "ada@tracker.dev", ProfileRole.ADMIN, score=95)


@pytest_asyncio.fixture
async def member_profile(db_session):
    """Create a member profile"""
    return await _add_profile(
        db_session, "Mia Member", "mia@tracker.dev", ProfileRole.MEMBER,
        job_description="Backend developer", score=65, weekly_hours=40,
    )


@pytest_asyncio.fixture
async def other_member(db_session):
    """Create a second member profile"""
    return await _add_profile(db_session, "Otto Other", "otto@tracker.dev", ProfileRole.MEMBER)


def days_ago(days: float, now: datetime = None) -> datetime:
    return (now or utcnow()) - timedelta(days=days)


def make_task(**kwargs) -> Task:
    """Task with sensible defaults; completed tasks get completed_at/updated_at"""
    now = utcnow()
    kwargs.setdefault("id", str(uuid.uuid4()))
    kwargs.setdefault("title", "Task")
    kwargs.setdefault("status", TaskStatus.NOT_STARTED)
    kwargs.setdefault("priority", Priority.MEDIUM)
    kwargs.setdefault("late_completion", False)
    kwargs.setdefault("created_at", now)
    kwargs.setdefault("updated_at", kwargs["created_at"])
    if kwargs["status"] == TaskStatus.COMPLETED:
        kwargs.setdefault("completed_at", kwargs["updated_at"])
    return Task(**kwargs)


def make_issue(**kwargs) -> Issue:
    kwargs.setdefault("id", str(uuid.uuid4()))
    kwargs.setdefault("title", "Issue")
    kwargs.setdefault("status", IssueStatus.PENDING_ASSIGNMENT)
    kwargs.setdefault("priority", Priority.MEDIUM)
    kwargs.setdefault("created_at", utcnow())
    return Issue(**kwargs)


async def seed(db_session, *rows) -> None:
    db_session.add_all(rows)
    await db_session.commit()


def get_auth_headers(profile: Profile, **claims) -> dict:
    """Generate auth headers for a profile"""
    token = AuthService.create_access_token({"sub": profile.id, "email": profile.email, **claims})
    return {"Authorization": f"Bearer {token}"}


class FakeClock:
    """Manually advanced monotonic clock for cache tests"""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds
