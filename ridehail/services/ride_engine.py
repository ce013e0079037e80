"""
Ride Transition Engine
======================

The only code path that mutates a ride's lifecycle status.

State machine
-------------
    pending -> assigned -> in_progress -> completed
    pending -> cancelled

Concurrency safety
------------------
* Every operation runs inside one **SERIALIZABLE** transaction that is
  re-run (bounded, with backoff) on serialization failure / deadlock.
* **SELECT ... FOR UPDATE** on the ride row, then on the driver row,
  always in that order, so two dispatchers racing on different rides
  with the same driver cannot deadlock each other.
* Each status write is a conditional ``UPDATE ... WHERE status = <from>``;
  zero rows touched means a concurrent transition won and the call fails
  with ``Conflict``.  Assignment additionally re-reads the row to confirm
  it now belongs to the requested driver.
* A lock read that blocked behind a rival transaction aborts with a
  serialization failure; the retried attempt then finds the ride moved
  on and fails with ``Conflict`` rather than ``InvalidTransition``.

Notifications are sent strictly after commit and never fail a call.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Awaitable, Callable, Optional, TypeVar

from sqlalchemy.ext.asyncio import AsyncSession

from ridehail.config import Settings, settings
from ridehail.domain.entities import Place, can_transition, ensure_transition
from ridehail.domain.enums import NotificationType, RideStatus
from ridehail.domain.errors import Conflict, DataIntegrity, NotFound
from ridehail.domain.pricing import FareCalculator, elapsed_minutes
from ridehail.infrastructure.database import Database
from ridehail.infrastructure.models import RideModel
from ridehail.infrastructure.repositories import (
    DispatcherRepository,
    DriverRepository,
    RideRepository,
    UserRepository,
)
from ridehail.infrastructure.retry import RetryPolicy
from ridehail.services.notifications import NotificationSink

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _check_transition(
    current: RideStatus, target: RideStatus, *, retried: bool
) -> None:
    """State guard for a freshly locked ride.

    On a retried attempt the previous one was aborted while a concurrent
    transaction changed this ride; finding it moved off the expected
    status means that transaction won, which is a ``Conflict``.
    """
    if retried and not can_transition(current, target):
        raise Conflict(
            f"Ride is now {RideStatus(current).value}; "
            "a concurrent request changed it first"
        )
    ensure_transition(current, target)


class RideTransitionEngine:
    def __init__(
        self,
        database: Database,
        notifier: Optional[NotificationSink] = None,
        fare_calculator: Optional[FareCalculator] = None,
        retry_policy: Optional[RetryPolicy] = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.database = database
        self.notifier = notifier
        self.fares = fare_calculator or FareCalculator()
        self.retry = retry_policy or RetryPolicy()
        self.clock = clock

    @classmethod
    def from_settings(
        cls,
        database: Database,
        notifier: Optional[NotificationSink] = None,
        config: Settings = settings,
    ) -> "RideTransitionEngine":
        return cls(
            database,
            notifier,
            fare_calculator=FareCalculator(
                base_fare=config.base_fare,
                base_hours=config.base_hours,
                additional_hour_rate=config.additional_hour_rate,
            ),
            retry_policy=RetryPolicy.from_settings(config),
        )

    # ── Operations ───────────────────────────────────────────────────

    async def request_ride(
        self,
        user_id: int,
        pickup_address: Optional[str],
        drop_address: Optional[str] = None,
        *,
        pickup_lat: Optional[float] = None,
        pickup_lng: Optional[float] = None,
        drop_lat: Optional[float] = None,
        drop_lng: Optional[float] = None,
    ) -> RideModel:
        """Create a ``pending`` ride for *user_id*.  Insert-only, no locks."""
        pickup = Place.build(pickup_address, pickup_lat, pickup_lng)
        drop = None
        if drop_address is not None or drop_lat is not None or drop_lng is not None:
            drop = Place.build(drop_address, drop_lat, drop_lng, label="drop")

        async def work(session: AsyncSession, retried: bool) -> tuple[RideModel, str]:
            user = await UserRepository(session).get_by_id(user_id)
            if user is None or not user.is_active:
                raise NotFound("Rider not found")
            ride = await RideRepository(session).create_ride(
                user_id=user_id,
                pickup_address=pickup.address,
                pickup_lat=pickup.latitude,
                pickup_lng=pickup.longitude,
                drop_address=drop.address if drop else None,
                drop_lat=drop.latitude if drop else None,
                drop_lng=drop.longitude if drop else None,
                requested_at=self.clock(),
            )
            return ride, user.phone_number

        ride, phone = await self._in_transaction(work)
        logger.info("Ride %d requested by user %d", ride.id, user_id)

        await self._notify(
            lambda: self.notifier.notify_dispatcher(
                None,
                ride.id,
                f"New ride request from {phone}. Pickup: {ride.pickup_address}",
                NotificationType.NEW_RIDE_REQUEST,
            )
        )
        return ride

    async def assign_driver(
        self, dispatcher_id: int, ride_id: int, driver_id: int
    ) -> RideModel:
        """Bind *driver_id* to a pending ride and take the driver off the market."""

        async def work(session: AsyncSession, retried: bool) -> RideModel:
            rides = RideRepository(session)
            drivers = DriverRepository(session)

            if await DispatcherRepository(session).get_by_id(dispatcher_id) is None:
                raise NotFound("Dispatcher not found")

            # 1. ride lock first, always
            ride = await rides.lock_ride(ride_id)
            if ride is None:
                raise NotFound("Ride not found")
            _check_transition(ride.status, RideStatus.ASSIGNED, retried=retried)

            # 2. then the driver lock
            driver = await drivers.lock_driver(driver_id)
            if driver is None:
                raise NotFound("Driver not found")
            if not driver.is_active:
                raise Conflict("Driver is inactive")
            if not driver.is_available:
                raise Conflict("Driver is not available")

            updated = await rides.update_if_status(
                ride_id,
                RideStatus.PENDING,
                driver_id=driver_id,
                dispatcher_id=dispatcher_id,
                status=RideStatus.ASSIGNED,
                assigned_at=self.clock(),
            )
            ride = await rides.reread(ride_id)
            if (
                not updated
                or ride is None
                or RideStatus(ride.status) != RideStatus.ASSIGNED
                or ride.driver_id != driver_id
            ):
                raise Conflict(
                    "Ride assignment failed; another dispatcher assigned it concurrently"
                )

            await drivers.set_availability(driver_id, False)
            return ride

        ride = await self._in_transaction(work)
        logger.info(
            "Ride %d assigned to driver %d by dispatcher %d",
            ride_id,
            driver_id,
            dispatcher_id,
        )

        await self._notify(
            lambda: self.notifier.notify_driver(
                driver_id,
                ride_id,
                f"You have been assigned a new ride. Pickup: {ride.pickup_address}",
            )
        )
        await self._notify(
            lambda: self.notifier.notify_rider(
                ride.user_id,
                ride_id,
                "A driver has been assigned to your ride request.",
            )
        )
        return ride

    async def start_ride(self, driver_id: int, ride_id: int) -> RideModel:
        async def work(session: AsyncSession, retried: bool) -> RideModel:
            rides = RideRepository(session)

            ride = await rides.lock_ride(ride_id, driver_id=driver_id)
            if ride is None:
                raise NotFound("Ride not found or not assigned to you")
            _check_transition(ride.status, RideStatus.IN_PROGRESS, retried=retried)

            updated = await rides.update_if_status(
                ride_id,
                RideStatus.ASSIGNED,
                status=RideStatus.IN_PROGRESS,
                started_at=self.clock(),
            )
            if not updated:
                raise Conflict("Ride status changed; another request may have started it")

            await DriverRepository(session).set_availability(driver_id, False)
            return await rides.reread(ride_id)

        ride = await self._in_transaction(work)
        logger.info("Ride %d started by driver %d", ride_id, driver_id)

        await self._notify(
            lambda: self.notifier.notify_rider(
                ride.user_id, ride_id, "Your ride has started."
            )
        )
        return ride

    async def end_ride(self, driver_id: int, ride_id: int) -> RideModel:
        """Complete an in-progress ride and write its billing exactly once."""

        async def work(session: AsyncSession, retried: bool) -> RideModel:
            rides = RideRepository(session)

            ride = await rides.lock_ride(ride_id, driver_id=driver_id)
            if ride is None:
                raise NotFound("Ride not found or not assigned to you")
            _check_transition(ride.status, RideStatus.COMPLETED, retried=retried)
            if ride.started_at is None:
                raise DataIntegrity(f"Ride {ride_id} is in progress without a start time")

            ended_at = self.clock()
            duration = elapsed_minutes(ride.started_at, ended_at)
            fare = self.fares.calculate(duration)

            updated = await rides.update_if_status(
                ride_id,
                RideStatus.IN_PROGRESS,
                status=RideStatus.COMPLETED,
                ended_at=ended_at,
                duration_minutes=duration,
                base_fare=fare.base_fare,
                additional_hours=fare.additional_hours,
                additional_fare=fare.additional_fare,
                total_fare=fare.total_fare,
            )
            if not updated:
                raise Conflict("Ride status changed; another request may have ended it")

            await DriverRepository(session).set_availability(driver_id, True)
            return await rides.reread(ride_id)

        ride = await self._in_transaction(work)
        logger.info(
            "Ride %d completed by driver %d (%d min, fare %.2f)",
            ride_id,
            driver_id,
            ride.duration_minutes,
            ride.total_fare,
        )

        await self._notify(
            lambda: self.notifier.notify_rider(
                ride.user_id,
                ride_id,
                f"Your ride has been completed. Total fare: ₹{ride.total_fare:.2f}",
                NotificationType.RIDE_COMPLETED,
            )
        )
        await self._notify(
            lambda: self.notifier.notify_dispatcher(
                ride.dispatcher_id,
                ride_id,
                f"Ride completed. Duration: {ride.duration_minutes} minutes. "
                f"Fare: ₹{ride.total_fare:.2f}",
                NotificationType.RIDE_COMPLETED,
            )
        )
        return ride

    async def cancel_ride(self, user_id: int, ride_id: int) -> RideModel:
        """Cancel a rider's own ride; only unassigned (pending) rides qualify."""

        async def work(session: AsyncSession, retried: bool) -> RideModel:
            rides = RideRepository(session)

            ride = await rides.lock_ride(ride_id, user_id=user_id)
            if ride is None:
                raise NotFound("Ride not found")
            _check_transition(ride.status, RideStatus.CANCELLED, retried=retried)

            updated = await rides.update_if_status(
                ride_id, RideStatus.PENDING, status=RideStatus.CANCELLED
            )
            if not updated:
                raise Conflict("Ride status changed; it can no longer be cancelled")
            return await rides.reread(ride_id)

        ride = await self._in_transaction(work)
        logger.info("Ride %d cancelled by user %d", ride_id, user_id)
        return ride

    # ── Internals ────────────────────────────────────────────────────

    async def _in_transaction(
        self, work: Callable[[AsyncSession, bool], Awaitable[T]]
    ) -> T:
        """Run *work* in a fresh transaction per attempt.

        The second argument tells *work* whether an earlier attempt of the
        same call was aborted by a serialization failure or deadlock.
        """
        attempts = 0

        async def attempt() -> T:
            nonlocal attempts
            attempts += 1
            async with self.database.transaction() as session:
                return await work(session, attempts > 1)

        return await self.retry.run(attempt)

    async def _notify(self, send: Callable[[], Awaitable[object]]) -> None:
        if self.notifier is None:
            return
        try:
            await send()
        except Exception:
            logger.exception("Notification error (non-critical)")
