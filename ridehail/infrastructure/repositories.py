"""
Repository Pattern -- abstracts DB access so domain logic stays DB-agnostic.

Each repository receives an ``AsyncSession`` (unit-of-work) and exposes
domain-relevant queries only.

Locking reads (``lock_*``) issue ``SELECT ... FOR UPDATE`` and re-populate
any identity-mapped instance, so the caller always sees the row as of the
lock.  Transition writes are conditional ``UPDATE ... WHERE status = ?``
and return the number of rows they touched.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from sqlalchemy import and_, case, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from .models import (
    DispatcherModel,
    DriverModel,
    NotificationModel,
    RideModel,
    UserModel,
)
from ridehail.domain.enums import ACTIVE_RIDE_STATUSES, RideStatus


class RideRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create_ride(
        self,
        *,
        user_id: int,
        pickup_address: str,
        requested_at: datetime,
        pickup_lat: float | None = None,
        pickup_lng: float | None = None,
        drop_address: str | None = None,
        drop_lat: float | None = None,
        drop_lng: float | None = None,
    ) -> RideModel:
        ride = RideModel(
            user_id=user_id,
            pickup_address=pickup_address,
            pickup_lat=pickup_lat,
            pickup_lng=pickup_lng,
            drop_address=drop_address,
            drop_lat=drop_lat,
            drop_lng=drop_lng,
            status=RideStatus.PENDING,
            requested_at=requested_at,
        )
        self.session.add(ride)
        await self.session.flush()
        return ride

    async def get_by_id(self, ride_id: int) -> Optional[RideModel]:
        return await self.session.get(RideModel, ride_id)

    async def lock_ride(
        self,
        ride_id: int,
        *,
        driver_id: int | None = None,
        user_id: int | None = None,
    ) -> Optional[RideModel]:
        """SELECT ... FOR UPDATE, optionally scoped to the owning driver/rider."""
        query = select(RideModel).where(RideModel.id == ride_id)
        if driver_id is not None:
            query = query.where(RideModel.driver_id == driver_id)
        if user_id is not None:
            query = query.where(RideModel.user_id == user_id)
        result = await self.session.execute(
            query.with_for_update().execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def reread(self, ride_id: int) -> Optional[RideModel]:
        result = await self.session.execute(
            select(RideModel)
            .where(RideModel.id == ride_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def update_if_status(
        self, ride_id: int, expected: RideStatus, **values: Any
    ) -> int:
        """Conditional UPDATE guarded by the expected current status."""
        result = await self.session.execute(
            update(RideModel)
            .where(and_(RideModel.id == ride_id, RideModel.status == expected))
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    # ── read side ────────────────────────────────────────────────────

    async def get_for_user(self, ride_id: int, user_id: int) -> Optional[RideModel]:
        result = await self.session.execute(
            select(RideModel).where(
                RideModel.id == ride_id, RideModel.user_id == user_id
            )
        )
        return result.scalar_one_or_none()

    async def list_for_user(
        self, user_id: int, *, limit: int = 20, offset: int = 0
    ) -> tuple[list[RideModel], int]:
        result = await self.session.execute(
            select(RideModel)
            .where(RideModel.user_id == user_id)
            .order_by(RideModel.requested_at.desc(), RideModel.id.desc())
            .limit(limit)
            .offset(offset)
        )
        total = await self._count(RideModel.user_id == user_id)
        return list(result.scalars().all()), total

    async def list_active_for_driver(self, driver_id: int) -> list[RideModel]:
        result = await self.session.execute(
            select(RideModel)
            .where(
                RideModel.driver_id == driver_id,
                RideModel.status.in_(ACTIVE_RIDE_STATUSES),
            )
            .order_by(RideModel.assigned_at.desc())
        )
        return list(result.scalars().all())

    async def list_for_driver(
        self,
        driver_id: int,
        *,
        ended_from: datetime | None = None,
        ended_to: datetime | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[list[RideModel], int]:
        conditions = [RideModel.driver_id == driver_id]
        if ended_from is not None:
            conditions.append(RideModel.ended_at >= ended_from)
        if ended_to is not None:
            conditions.append(RideModel.ended_at <= ended_to)
        result = await self.session.execute(
            select(RideModel)
            .where(*conditions)
            .order_by(
                RideModel.ended_at.desc().nulls_last(),
                RideModel.requested_at.desc(),
            )
            .limit(limit)
            .offset(offset)
        )
        total = await self._count(*conditions)
        return list(result.scalars().all()), total

    async def get_pending_rides(self) -> list[RideModel]:
        result = await self.session.execute(
            select(RideModel)
            .where(RideModel.status == RideStatus.PENDING)
            .order_by(RideModel.requested_at, RideModel.id)
        )
        return list(result.scalars().all())

    async def get_live_rides(self) -> list[RideModel]:
        result = await self.session.execute(
            select(RideModel)
            .where(RideModel.status.in_(ACTIVE_RIDE_STATUSES))
            .order_by(RideModel.requested_at.desc())
        )
        return list(result.scalars().all())

    async def search(
        self,
        *,
        status: RideStatus | None = None,
        requested_from: datetime | None = None,
        requested_to: datetime | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[RideModel], int]:
        conditions = []
        if status is not None:
            conditions.append(RideModel.status == status)
        if requested_from is not None:
            conditions.append(RideModel.requested_at >= requested_from)
        if requested_to is not None:
            conditions.append(RideModel.requested_at <= requested_to)
        result = await self.session.execute(
            select(RideModel)
            .where(*conditions)
            .order_by(RideModel.requested_at.desc(), RideModel.id.desc())
            .limit(limit)
            .offset(offset)
        )
        total = await self._count(*conditions)
        return list(result.scalars().all()), total

    async def user_stats(self, user_id: int) -> dict[str, float]:
        result = await self.session.execute(
            select(
                func.count(RideModel.id),
                func.coalesce(func.sum(RideModel.total_fare), 0),
                func.coalesce(func.avg(RideModel.total_fare), 0),
            ).where(
                RideModel.user_id == user_id,
                RideModel.status == RideStatus.COMPLETED,
            )
        )
        completed, spent, avg_fare = result.one()
        return {
            "completed_rides": int(completed or 0),
            "total_spent": float(spent or 0),
            "avg_fare": float(avg_fare or 0),
        }

    async def _count(self, *conditions) -> int:
        result = await self.session.execute(
            select(func.count()).select_from(RideModel).where(*conditions)
        )
        return result.scalar() or 0


class DriverRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, driver_id: int) -> Optional[DriverModel]:
        return await self.session.get(DriverModel, driver_id)

    async def lock_driver(self, driver_id: int) -> Optional[DriverModel]:
        result = await self.session.execute(
            select(DriverModel)
            .where(DriverModel.id == driver_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def set_availability(self, driver_id: int, available: bool) -> None:
        await self.session.execute(
            update(DriverModel)
            .where(DriverModel.id == driver_id)
            .values(is_available=available)
            .execution_options(synchronize_session=False)
        )

    async def get_available(self) -> list[DriverModel]:
        result = await self.session.execute(
            select(DriverModel)
            .where(
                DriverModel.is_active.is_(True),
                DriverModel.is_available.is_(True),
            )
            .order_by(DriverModel.name)
        )
        return list(result.scalars().all())

    async def earnings(
        self, driver_id: int, start: datetime, end: datetime
    ) -> dict[str, float]:
        """Completed-ride totals for one driver within ``[start, end]``."""
        result = await self.session.execute(
            select(
                func.count(RideModel.id),
                func.coalesce(func.sum(RideModel.total_fare), 0),
                func.coalesce(func.sum(RideModel.duration_minutes), 0),
            ).where(
                RideModel.driver_id == driver_id,
                RideModel.status == RideStatus.COMPLETED,
                RideModel.ended_at >= start,
                RideModel.ended_at <= end,
            )
        )
        rides, earnings, minutes = result.one()
        minutes = int(minutes or 0)
        return {
            "total_rides": int(rides or 0),
            "total_earnings": float(earnings or 0),
            "total_minutes": minutes,
            "total_hours": round(minutes / 60.0, 2),
        }

    async def performance(self, driver_id: int | None = None) -> list[dict[str, Any]]:
        """Per-driver ride counts and earnings, busiest first."""
        completed = func.sum(
            case((RideModel.status == RideStatus.COMPLETED, 1), else_=0)
        )
        query = (
            select(
                DriverModel.id,
                DriverModel.name,
                DriverModel.phone_number,
                func.count(RideModel.id).label("total_rides"),
                completed.label("completed_rides"),
                func.coalesce(func.sum(RideModel.total_fare), 0).label(
                    "total_earnings"
                ),
                func.coalesce(func.sum(RideModel.duration_minutes), 0).label(
                    "total_minutes"
                ),
            )
            .select_from(DriverModel)
            .outerjoin(RideModel, RideModel.driver_id == DriverModel.id)
            .group_by(DriverModel.id, DriverModel.name, DriverModel.phone_number)
            .order_by(func.count(RideModel.id).desc(), DriverModel.id)
        )
        if driver_id is not None:
            query = query.where(DriverModel.id == driver_id)
        result = await self.session.execute(query)
        return [
            {
                "id": row.id,
                "name": row.name,
                "phone_number": row.phone_number,
                "total_rides": int(row.total_rides or 0),
                "completed_rides": int(row.completed_rides or 0),
                "total_earnings": float(row.total_earnings or 0),
                "total_minutes": int(row.total_minutes or 0),
            }
            for row in result
        ]


class UserRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, user_id: int) -> Optional[UserModel]:
        return await self.session.get(UserModel, user_id)


class DispatcherRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, dispatcher_id: int) -> Optional[DispatcherModel]:
        return await self.session.get(DispatcherModel, dispatcher_id)


class NotificationRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, **fields: Any) -> NotificationModel:
        notification = NotificationModel(**fields)
        self.session.add(notification)
        await self.session.flush()
        return notification

    async def list_for_user(
        self, user_id: int, *, limit: int = 20, offset: int = 0
    ) -> list[NotificationModel]:
        result = await self.session.execute(
            select(NotificationModel)
            .where(NotificationModel.user_id == user_id)
            .order_by(NotificationModel.created_at.desc(), NotificationModel.id.desc())
            .limit(limit)
            .offset(offset)
        )
        return list(result.scalars().all())
