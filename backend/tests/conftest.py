"""
Pytest fixtures for test database, client, and authentication.

Tests run against a file-backed SQLite database (aiosqlite). Every
transaction is opened with BEGIN IMMEDIATE, so concurrent writers queue on
the database lock the way row locks serialise them on PostgreSQL; that keeps
the concurrency tests meaningful. Tables are created and dropped per test.
"""

import os
import tempfile
from datetime import datetime, time, timedelta, timezone
from decimal import Decimal
from pathlib import Path
from typing import AsyncGenerator

# Must be set before eventflow reads its settings
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("REDIS_ENABLED", "false")
os.environ.setdefault("PAYMENT_PROVIDER", "mock")
os.environ.setdefault("ADMIN_EMAILS", '["admin@example.com"]')

import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from eventflow.core.security import create_access_token, hash_password
from eventflow.db.base import Base
from eventflow.db.session import UnitOfWork, get_uow
from eventflow.main import app
from eventflow.models.event import Event, EventDate, EventSlot
from eventflow.models.user import ROLE_ADMIN, User
from eventflow.payments import get_payment_provider
from eventflow.payments.mock_provider import MockPaymentProvider
from eventflow.services.notification_service import RecordingNotifier, get_notifier

TEST_DB_PATH = Path(tempfile.gettempdir()) / f"eventflow_test_{os.getpid()}.db"
TEST_DATABASE_URL = f"sqlite+aiosqlite:///{TEST_DB_PATH}"
MOCK_SECRET = "test-webhook-secret"

test_engine = create_async_engine(
    TEST_DATABASE_URL,
    poolclass=NullPool,
    connect_args={"timeout": 30},
)
TestSessionLocal = async_sessionmaker(
    test_engine, class_=AsyncSession, autoflush=False, expire_on_commit=False
)


@event.listens_for(test_engine.sync_engine, "connect")
def _sqlite_connect(dbapi_connection, connection_record):
    # Let SQLAlchemy emit BEGIN itself (see below)
    dbapi_connection.isolation_level = None
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


@event.listens_for(test_engine.sync_engine, "begin")
def _sqlite_begin(conn):
    conn.exec_driver_sql("BEGIN IMMEDIATE")


EVENT_DAY = (datetime.now(timezone.utc) + timedelta(days=30)).date()


@pytest_asyncio.fixture(scope="function")
async def session_factory() -> AsyncGenerator[async_sessionmaker, None]:
    """Create tables, hand out the session factory, then drop tables for isolation."""
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield TestSessionLocal

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest_asyncio.fixture
async def mock_provider() -> MockPaymentProvider:
    return MockPaymentProvider(MOCK_SECRET)


@pytest_asyncio.fixture
async def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest_asyncio.fixture(scope="function")
async def client(
    session_factory: async_sessionmaker,
    mock_provider: MockPaymentProvider,
    notifier: RecordingNotifier,
) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client with the unit of work, payment provider and notifier overridden."""

    async def override_get_uow():
        async with UnitOfWork(session_factory) as uow:
            yield uow

    app.dependency_overrides[get_uow] = override_get_uow
    app.dependency_overrides[get_payment_provider] = lambda: mock_provider
    app.dependency_overrides[get_notifier] = lambda: notifier

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


async def _create_user(session_factory, name: str, email: str, role: str = "user") -> User:
    async with session_factory() as session:
        user = User(
            name=name,
            email=email,
            hashed_password=hash_password("testpassword123"),
            role=role,
        )
        session.add(user)
        await session.commit()
        await session.refresh(user)
        return user


@pytest_asyncio.fixture
async def test_user(session_factory) -> User:
    return await _create_user(session_factory, "Test User", "test@example.com")


@pytest_asyncio.fixture
async def other_user(session_factory) -> User:
    return await _create_user(session_factory, "Other User", "other@example.com")


@pytest_asyncio.fixture
async def admin_user(session_factory) -> User:
    return await _create_user(session_factory, "Admin", "admin@example.com", role=ROLE_ADMIN)


def headers_for(user: User) -> dict:
    return {"Authorization": f"Bearer {create_access_token(data={'sub': str(user.id)})}"}


@pytest_asyncio.fixture
async def auth_headers(test_user: User) -> dict:
    """Authorization headers with Bearer token."""
    return headers_for(test_user)


@pytest_asyncio.fixture
async def other_headers(other_user: User) -> dict:
    return headers_for(other_user)


@pytest_asyncio.fixture
async def admin_headers(admin_user: User) -> dict:
    return headers_for(admin_user)


async def create_event(
    session_factory,
    creator: User,
    slots: dict,
    price: Decimal = Decimal("25.00"),
    day=EVENT_DAY,
    title: str = "Test Concert",
    category: str = "Concert",
    location: str = "Test Venue",
) -> Event:
    """Insert an event with one date; ``slots`` maps slot label to seat count."""
    async with session_factory() as session:
        event_row = Event(
            title=title,
            description="A test event",
            category=category,
            location=location,
            price=price,
            created_by=creator.id,
            dates=[
                EventDate(
                    date=datetime.combine(day, time(0), tzinfo=timezone.utc),
                    slots=[
                        EventSlot(time=label, capacity=seats, available_seats=seats)
                        for label, seats in slots.items()
                    ],
                )
            ],
        )
        session.add(event_row)
        await session.commit()
        return event_row


@pytest_asyncio.fixture
async def test_event(session_factory, admin_user: User) -> Event:
    """A $25 event with a 10-seat 7:00 PM slot and a 5-seat 9:00 PM slot."""
    return await create_event(session_factory, admin_user, {"7:00 PM": 10, "9:00 PM": 5})


@pytest_asyncio.fixture
async def cheap_event(session_factory, admin_user: User) -> Event:
    """Priced below the provider's minimum charge."""
    return await create_event(
        session_factory, admin_user, {"7:00 PM": 10}, price=Decimal("0.25"), title="Cheap Talk"
    )


async def slot_seats(session_factory, event_id: int, slot_time: str = "7:00 PM") -> int:
    async with session_factory() as session:
        result = await session.execute(
            select(EventSlot.available_seats)
            .join(EventDate, EventSlot.event_date_id == EventDate.id)
            .where(EventDate.event_id == event_id, EventSlot.time == slot_time)
        )
        return result.scalar_one()


def booking_body(event_id: int, seats: int = 1, slot_time: str = "7:00 PM", day=EVENT_DAY) -> dict:
    return {
        "eventId": event_id,
        "eventDate": day.isoformat(),
        "slotTime": slot_time,
        "seatsBooked": seats,
    }


@pytest_asyncio.fixture
async def pending_booking(client: AsyncClient, auth_headers: dict, test_event: Event) -> dict:
    """A 2-seat pending booking owned by test_user."""
    response = await client.post("/api/v1/bookings/", json=booking_body(test_event.id, 2), headers=auth_headers)
    assert response.status_code == 201
    return response.json()["booking"]
