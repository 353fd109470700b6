"""
Shared fixtures.

Services run against an in-memory SQLite database; a recording bus
stands in for the broadcast sink so tests can assert on what would have
been pushed to clients.
"""

from typing import List

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from homepanel.core.database import get_db, init_db
from homepanel.core.event_bus import Event, EventType, get_event_bus
from homepanel.core.security import principal_from_user
from homepanel.models.user import User, UserRole


class RecordingBus:
    """Event bus double that keeps every published event."""

    def __init__(self):
        self.events: List[Event] = []

    async def publish(self, event: Event):
        self.events.append(event)

    def of_type(self, event_type: EventType) -> List[Event]:
        return [e for e in self.events if e.event_type == event_type]

    def clear(self):
        self.events.clear()


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    await init_db(bind=engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db(session_maker):
    async with session_maker() as session:
        yield session


@pytest.fixture
def bus():
    return RecordingBus()


@pytest.fixture
def make_user(db):
    """Factory inserting a user directly, bypassing password hashing."""

    async def _make_user(
        name: str,
        house_name: str = "Acacia",
        role: UserRole = UserRole.USER,
        authorized: bool = True,
        email: str = None,
    ) -> User:
        user = User(
            name=name,
            email=email or f"{name.lower().replace(' ', '.')}@{house_name.lower()}.test",
            password_hash="not-a-real-hash",
            house_name=house_name,
            role=role.value,
            authorized=authorized,
        )
        db.add(user)
        await db.commit()
        return user

    return _make_user


@pytest.fixture
async def admin_user(make_user):
    return await make_user("Alice Admin", role=UserRole.ADMIN)


@pytest.fixture
async def member_user(make_user):
    return await make_user("Bob Member")


@pytest.fixture
async def other_admin_user(make_user):
    return await make_user("Olga Other", house_name="Birch", role=UserRole.ADMIN)


@pytest.fixture
def admin(admin_user):
    return principal_from_user(admin_user)


@pytest.fixture
def member(member_user):
    return principal_from_user(member_user)


@pytest.fixture
def outsider(other_admin_user):
    return principal_from_user(other_admin_user)


@pytest.fixture
async def client(session_maker, bus):
    """HTTP client against the app with database and bus overridden."""
    from homepanel.main import app

    async def override_get_db():
        async with session_maker() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_event_bus] = lambda: bus

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
