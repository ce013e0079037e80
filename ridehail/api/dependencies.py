"""FastAPI dependency injection helpers."""

from typing import AsyncIterator, Optional

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from ridehail.infrastructure import database as _database
from ridehail.infrastructure.database import Database
from ridehail.infrastructure.redis_client import get_redis
from ridehail.services.notifications import NotificationSink
from ridehail.services.ride_engine import RideTransitionEngine


def get_database() -> Database:
    return _database.get_database()


async def get_db(
    database: Database = Depends(get_database),
) -> AsyncIterator[AsyncSession]:
    """Yield a read session; rolled back on error."""
    async with database.session() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise


async def get_notification_sink(
    database: Database = Depends(get_database),
) -> NotificationSink:
    return NotificationSink(database, await get_redis())


def get_ride_engine(
    database: Database = Depends(get_database),
    notifier: NotificationSink = Depends(get_notification_sink),
) -> RideTransitionEngine:
    return RideTransitionEngine.from_settings(database, notifier)


def get_actor_id(x_actor_id: Optional[str] = Header(None)) -> int:
    """Caller identity, as established by the upstream auth layer."""
    try:
        actor_id = int(x_actor_id) if x_actor_id is not None else None
    except ValueError:
        actor_id = None
    if actor_id is None or actor_id < 1:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing or invalid X-Actor-Id header",
        )
    return actor_id
