"""
Notification Sink
=================

Best-effort side channel for human-readable ride events.

* Each event is stored as a ``notifications`` row in its own short
  transaction, then published on a Redis pub/sub channel per audience.
* Nothing here ever raises into the caller: failures are logged and
  swallowed, and ``record`` returns ``None``.
* The transition engine only calls in after its transaction commits.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional

import redis.asyncio as aioredis
from pydantic import BaseModel

from ridehail.domain.enums import NotificationType
from ridehail.infrastructure.database import Database
from ridehail.infrastructure.repositories import NotificationRepository

logger = logging.getLogger(__name__)

# Channel names
CHANNEL_RIDER_UPDATES = "rider-updates"
CHANNEL_DRIVER_UPDATES = "driver-updates"
CHANNEL_DISPATCHER_UPDATES = "dispatcher-updates"


class NotificationMessage(BaseModel):
    """Payload published for live clients."""

    id: int
    ride_id: Optional[int] = None
    user_id: Optional[int] = None
    driver_id: Optional[int] = None
    dispatcher_id: Optional[int] = None
    type: str
    message: str
    timestamp: str


def _channel_for(
    user_id: Optional[int], driver_id: Optional[int]
) -> str:
    if user_id is not None:
        return CHANNEL_RIDER_UPDATES
    if driver_id is not None:
        return CHANNEL_DRIVER_UPDATES
    return CHANNEL_DISPATCHER_UPDATES


class NotificationSink:
    def __init__(
        self, database: Database, redis: Optional[aioredis.Redis] = None
    ):
        self.database = database
        self.redis = redis

    async def record(
        self,
        *,
        type: NotificationType | str,
        message: str,
        ride_id: Optional[int] = None,
        user_id: Optional[int] = None,
        driver_id: Optional[int] = None,
        dispatcher_id: Optional[int] = None,
    ) -> Optional[int]:
        """Persist and publish one event.  Returns its id, or None on failure."""
        type_value = getattr(type, "value", type)
        try:
            async with self.database.transaction(isolation_level=None) as session:
                notification = await NotificationRepository(session).create(
                    ride_id=ride_id,
                    user_id=user_id,
                    driver_id=driver_id,
                    dispatcher_id=dispatcher_id,
                    type=type_value,
                    message=message,
                )
                notification_id = notification.id
        except Exception:
            logger.exception(
                "Failed to record %s notification for ride %s", type_value, ride_id
            )
            return None

        if self.redis is not None:
            payload = NotificationMessage(
                id=notification_id,
                ride_id=ride_id,
                user_id=user_id,
                driver_id=driver_id,
                dispatcher_id=dispatcher_id,
                type=type_value,
                message=message,
                timestamp=datetime.now(timezone.utc).isoformat(),
            )
            try:
                await self.redis.publish(
                    _channel_for(user_id, driver_id), payload.model_dump_json()
                )
            except Exception:
                logger.exception(
                    "Failed to publish notification %d", notification_id
                )
        return notification_id

    # ── audience helpers ─────────────────────────────────────────────

    async def notify_rider(
        self,
        user_id: int,
        ride_id: int,
        message: str,
        type: NotificationType = NotificationType.RIDE_UPDATE,
    ) -> Optional[int]:
        return await self.record(
            type=type, message=message, ride_id=ride_id, user_id=user_id
        )

    async def notify_driver(
        self,
        driver_id: int,
        ride_id: int,
        message: str,
        type: NotificationType = NotificationType.RIDE_ASSIGNED,
    ) -> Optional[int]:
        return await self.record(
            type=type, message=message, ride_id=ride_id, driver_id=driver_id
        )

    async def notify_dispatcher(
        self,
        dispatcher_id: Optional[int],
        ride_id: int,
        message: str,
        type: NotificationType = NotificationType.RIDE_UPDATE,
    ) -> Optional[int]:
        """*dispatcher_id* None addresses the dispatch desk as a whole."""
        return await self.record(
            type=type,
            message=message,
            ride_id=ride_id,
            dispatcher_id=dispatcher_id,
        )
