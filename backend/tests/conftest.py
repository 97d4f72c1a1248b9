"""Pytest configuration and shared fixtures for API and engine tests."""

import os

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import delete

# Set test DB before app imports so config/engine use it
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./test_team_trainer.db")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("GOOGLE_GEMINI_API_KEY", "")

from app.core.auth import create_access_token, hash_password
from app.db.base import Base
from app.db.session import async_session_maker, engine, init_db
from app.main import app
from app.models.athlete_group import AthleteGroup, GroupMembership
from app.models.coach_athlete import CoachAthlete
from app.models.user import User, UserRole

pytest_plugins = ["pytest_asyncio"]


@pytest_asyncio.fixture(scope="session", loop_scope="session")
async def ensure_db():
    """Create tables once per test session (no scheduler)."""
    await init_db()
    yield
    await engine.dispose()


async def _truncate_all():
    """Delete from all tables in reverse dependency order so tests start clean."""
    async with engine.begin() as conn:
        for table in reversed(Base.metadata.sorted_tables):
            await conn.execute(delete(table))


@pytest_asyncio.fixture
async def client(ensure_db):
    """Yield AsyncClient. No session override; use clean_db + users for isolated state."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


@pytest_asyncio.fixture
async def clean_db(ensure_db):
    """Empty all tables so the next test has a clean DB."""
    await _truncate_all()
    yield


async def create_user(email: str, role: UserRole, name: str | None = None, timezone: str | None = None) -> User:
    async with async_session_maker() as session:
        user = User(
            email=email,
            name=name,
            role=role.value,
            timezone=timezone,
            password_hash=hash_password("password123"),
        )
        session.add(user)
        await session.commit()
        await session.refresh(user)
        return user


@pytest_asyncio.fixture
async def coach(clean_db):
    """Committed coach user."""
    return await create_user("coach@test.com", UserRole.COACH, name="Coach")


@pytest_asyncio.fixture
async def test_user(coach):
    """Alias kept for auth tests: (user_id, email, access_token) of the coach."""
    return coach.id, coach.email, create_access_token(coach.id, coach.role)


@pytest_asyncio.fixture
def auth_headers(test_user):
    """Authorization header for the coach."""
    _, __, token = test_user
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def headers_for():
    """Build an Authorization header for any committed user."""

    def _headers(user: User) -> dict:
        return {"Authorization": f"Bearer {create_access_token(user.id, user.role)}"}

    return _headers


@pytest_asyncio.fixture
async def team(coach):
    """
    Coach with three linked athletes and two groups:
    long-sprints = {alice}, throws = {bob}; carol is on the roster but in no group.
    """
    alice = await create_user("alice@test.com", UserRole.ATHLETE, name="Alice")
    bob = await create_user("bob@test.com", UserRole.ATHLETE, name="Bob")
    carol = await create_user("carol@test.com", UserRole.ATHLETE, name="Carol")
    async with async_session_maker() as session:
        ls = AthleteGroup(coach_id=coach.id, name="Long Sprints", slug="long-sprints")
        throws = AthleteGroup(coach_id=coach.id, name="Throws", slug="throws")
        session.add_all([ls, throws])
        await session.flush()
        for athlete in (alice, bob, carol):
            session.add(CoachAthlete(coach_id=coach.id, athlete_id=athlete.id))
        session.add(GroupMembership(athlete_id=alice.id, group_id=ls.id, added_by=coach.id))
        session.add(GroupMembership(athlete_id=bob.id, group_id=throws.id, added_by=coach.id))
        await session.commit()
        return {
            "coach": coach,
            "alice": alice,
            "bob": bob,
            "carol": carol,
            "long_sprints_id": ls.id,
            "throws_id": throws.id,
        }
