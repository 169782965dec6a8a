"""
Pytest fixtures for test database, client, accounts and events.

Runs against a throwaway SQLite file (aiosqlite) with the schema created
and dropped around every test. External services are switched off through
the environment before the application is imported.
"""

import os

os.environ.setdefault("TEST_DATABASE_URL", "sqlite+aiosqlite:///./test_felicity.db")
os.environ["DATABASE_URL"] = os.environ["TEST_DATABASE_URL"]
os.environ["TURNSTILE_ENABLED"] = "false"
os.environ["REDIS_ENABLED"] = "false"
os.environ["BCRYPT_ROUNDS"] = "4"

from datetime import datetime, timezone, timedelta
from typing import AsyncGenerator

import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import NullPool

from felicity.main import app
from felicity.db.base import Base
from felicity.db.session import get_db
from felicity.core.security import create_access_token, hash_password
from felicity.models.event import Event, EventStatus, EventType
from felicity.models.organizer import Organizer
from felicity.models.user import User, UserType
from felicity.services.auth_service import access_claims

TEST_DATABASE_URL = os.environ["TEST_DATABASE_URL"]
DEFAULT_PASSWORD = "testpassword123"

test_engine = create_async_engine(TEST_DATABASE_URL, echo=False, poolclass=NullPool)
TestSessionLocal = async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


def auth_headers_for(account) -> dict:
    """Bearer headers for a participant, admin or organizer account."""
    return {"Authorization": f"Bearer {create_access_token(access_claims(account))}"}


@pytest_asyncio.fixture(scope="function")
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Create tables, yield session, then drop tables for isolation."""
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with TestSessionLocal() as session:
        yield session

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest_asyncio.fixture(scope="function")
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client that overrides the DB dependency with the test session."""

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def make_participant(db_session: AsyncSession):
    """Factory for participant accounts."""

    async def _make(username: str, user_type: str = UserType.IIIT, password: str = DEFAULT_PASSWORD, **profile):
        user = User(
            username=username,
            hashed_password=hash_password(password),
            user_type=user_type,
            interested_topics=profile.pop("interested_topics", []),
            interested_clubs=profile.pop("interested_clubs", []),
            **profile,
        )
        db_session.add(user)
        await db_session.commit()
        await db_session.refresh(user)
        return user

    return _make


@pytest_asyncio.fixture
async def make_organizer(db_session: AsyncSession):
    """Factory for organizer (club) accounts."""

    async def _make(email: str, name: str, password: str = DEFAULT_PASSWORD, **fields):
        organizer = Organizer(
            email=email,
            hashed_password=hash_password(password),
            name=name,
            category=fields.pop("category", "Technical"),
            status=fields.pop("status", "active"),
            **fields,
        )
        db_session.add(organizer)
        await db_session.commit()
        await db_session.refresh(organizer)
        return organizer

    return _make


@pytest_asyncio.fixture
async def make_event(db_session: AsyncSession):
    """Factory for events. Published normal event with no limit by default."""

    async def _make(organizer: Organizer, **overrides):
        now = datetime.now(timezone.utc)
        values = {
            "name": "Test Event",
            "description": "A test event",
            "event_type": EventType.NORMAL,
            "registration_deadline": now + timedelta(days=10),
            "start_date": now + timedelta(days=20),
            "end_date": now + timedelta(days=21),
            "registration_limit": None,
            "registration_fee": 0,
            "status": EventStatus.PUBLISHED,
            "views": 0,
            "sold_count": 0,
            "custom_fields": [],
            "merchandise_details": None,
        }
        values.update(overrides)
        event = Event(organizer_id=organizer.id, **values)
        db_session.add(event)
        await db_session.commit()
        await db_session.refresh(event)
        return event

    return _make


@pytest_asyncio.fixture
async def participant(make_participant) -> User:
    return await make_participant("alice@example.com")


@pytest_asyncio.fixture
async def other_participant(make_participant) -> User:
    return await make_participant("bob@example.com", user_type=UserType.NON_IIIT)


@pytest_asyncio.fixture
async def organizer(make_organizer) -> Organizer:
    return await make_organizer("robotics@example.com", "Robotics Club")


@pytest_asyncio.fixture
async def admin(db_session: AsyncSession) -> User:
    user = User(
        username="admin",
        hashed_password=hash_password("adminpassword123"),
        user_type=UserType.ADMIN,
        filled=True,
        interested_topics=[],
        interested_clubs=[],
    )
    db_session.add(user)
    await db_session.commit()
    await db_session.refresh(user)
    return user


@pytest_asyncio.fixture
async def participant_headers(participant: User) -> dict:
    return auth_headers_for(participant)


@pytest_asyncio.fixture
async def other_headers(other_participant: User) -> dict:
    return auth_headers_for(other_participant)


@pytest_asyncio.fixture
async def organizer_headers(organizer: Organizer) -> dict:
    return auth_headers_for(organizer)


@pytest_asyncio.fixture
async def admin_headers(admin: User) -> dict:
    return auth_headers_for(admin)


@pytest_asyncio.fixture
async def published_event(make_event, organizer: Organizer) -> Event:
    return await make_event(organizer, name="Hack-Night 2.0", registration_fee=100)


@pytest_asyncio.fixture
async def merchandise_event(make_event, organizer: Organizer) -> Event:
    """Club T-shirts: stock of 3, at most 2 per participant."""
    return await make_event(
        organizer,
        name="Club Tee",
        event_type=EventType.MERCHANDISE,
        registration_limit=3,
        registration_fee=250,
        merchandise_details={
            "sizes": ["M", "L"],
            "colors": ["Black", "White"],
            "variants": [],
            "purchase_limit": 2,
        },
    )


@pytest_asyncio.fixture
async def hackathon_event(make_event, organizer: Organizer) -> Event:
    return await make_event(organizer, name="Build Weekend", event_type=EventType.HACKATHON)
