"""
Shared test fixtures.

Each test gets its own file-backed SQLite database (via aiosqlite) so the
engine can open several real connections, exactly like the production
pool, without Docker / PostgreSQL / Redis.  SQLite ignores ``FOR UPDATE``;
the conditional status updates still decide every race.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import select

from ridehail.infrastructure.database import Base, Database
from ridehail.infrastructure.models import (
    DispatcherModel,
    DriverModel,
    NotificationModel,
    RideModel,
    UserModel,
)
from ridehail.infrastructure.retry import RetryPolicy
from ridehail.services.notifications import NotificationSink
from ridehail.services.ride_engine import RideTransitionEngine


class FakeClock:
    """Injectable clock; tests move time forward explicitly."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta) -> datetime:
        self.now = self.now + timedelta(**delta)
        return self.now


@dataclass
class Seed:
    rider: int
    other_rider: int
    inactive_rider: int
    driver: int
    other_driver: int
    inactive_driver: int
    dispatcher: int
    other_dispatcher: int


# ── Fixtures ──────────────────────────────────────────────────────────


@pytest_asyncio.fixture
async def database(tmp_path) -> AsyncGenerator[Database, None]:
    """Create tables in a fresh database file, yield it, then dispose."""
    db = Database(f"sqlite+aiosqlite:///{tmp_path / 'rides.db'}")
    async with db.engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield db
    await db.dispose()


@pytest_asyncio.fixture
async def seed(database: Database) -> Seed:
    async with database.transaction() as session:
        riders = [
            UserModel(name="Test Rider", phone_number="+911000000001"),
            UserModel(name="Other Rider", phone_number="+911000000002"),
            UserModel(name="Gone Rider", phone_number="+911000000003", is_active=False),
        ]
        drivers = [
            DriverModel(name="Test Driver", phone_number="+912000000001"),
            DriverModel(name="Other Driver", phone_number="+912000000002"),
            DriverModel(
                name="Retired Driver", phone_number="+912000000003", is_active=False
            ),
        ]
        dispatchers = [
            DispatcherModel(username="desk-a"),
            DispatcherModel(username="desk-b"),
        ]
        session.add_all(riders + drivers + dispatchers)
        await session.flush()

    return Seed(
        rider=riders[0].id,
        other_rider=riders[1].id,
        inactive_rider=riders[2].id,
        driver=drivers[0].id,
        other_driver=drivers[1].id,
        inactive_driver=drivers[2].id,
        dispatcher=dispatchers[0].id,
        other_dispatcher=dispatchers[1].id,
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2026, 3, 2, 8, 0, tzinfo=timezone.utc))


@pytest.fixture
def sink(database: Database) -> NotificationSink:
    return NotificationSink(database)


@pytest.fixture
def engine(database: Database, sink: NotificationSink, clock: FakeClock):
    return RideTransitionEngine(
        database,
        notifier=sink,
        retry_policy=RetryPolicy(backoff=lambda attempt: 0),
        clock=clock,
    )


@pytest_asyncio.fixture
async def client(database: Database, sink: NotificationSink, engine):
    """AsyncClient wired to the test database and engine."""
    from ridehail.api import dependencies
    from ridehail.api.app import create_app
    from ridehail.api.middleware import limiter

    limiter.enabled = False
    app = create_app()
    app.dependency_overrides[dependencies.get_database] = lambda: database
    app.dependency_overrides[dependencies.get_notification_sink] = lambda: sink
    app.dependency_overrides[dependencies.get_ride_engine] = lambda: engine

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    limiter.enabled = True


# ── Helpers ───────────────────────────────────────────────────────────


async def load_ride(database: Database, ride_id: int) -> RideModel:
    async with database.session() as session:
        return await session.get(RideModel, ride_id)


async def load_driver(database: Database, driver_id: int) -> DriverModel:
    async with database.session() as session:
        return await session.get(DriverModel, driver_id)


async def load_notifications(database: Database) -> list[NotificationModel]:
    async with database.session() as session:
        result = await session.execute(
            select(NotificationModel).order_by(NotificationModel.id)
        )
        return list(result.scalars().all())
