"""
Driver endpoints
================

GET  /api/v1/drivers/rides/assigned          -- assigned / in-progress rides
POST /api/v1/drivers/rides/{ride_id}/start   -- assigned -> in_progress
POST /api/v1/drivers/rides/{ride_id}/end     -- in_progress -> completed (billing)
GET  /api/v1/drivers/rides/history           -- own ride history
GET  /api/v1/drivers/stats/{period}          -- daily / weekly / monthly earnings
"""

from datetime import date, datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from ridehail.api.dependencies import get_actor_id, get_db, get_ride_engine
from ridehail.api.middleware import limiter
from ridehail.api.schemas import EarningsResponse, RidePage, RideResponse
from ridehail.config import settings
from ridehail.domain.enums import StatsPeriod
from ridehail.domain.periods import stats_window
from ridehail.infrastructure.repositories import DriverRepository, RideRepository
from ridehail.services.ride_engine import RideTransitionEngine

router = APIRouter(prefix="/drivers", tags=["drivers"])


@router.get(
    "/rides/assigned",
    response_model=list[RideResponse],
    summary="Rides currently bound to this driver",
)
@limiter.limit(settings.api_rate_limit)
async def assigned_rides(
    request: Request,
    driver_id: int = Depends(get_actor_id),
    db: AsyncSession = Depends(get_db),
):
    return await RideRepository(db).list_active_for_driver(driver_id)


@router.post(
    "/rides/{ride_id}/start",
    response_model=RideResponse,
    summary="Start an assigned ride",
)
@limiter.limit(settings.api_rate_limit)
async def start_ride(
    request: Request,
    ride_id: int,
    driver_id: int = Depends(get_actor_id),
    engine: RideTransitionEngine = Depends(get_ride_engine),
):
    return await engine.start_ride(driver_id, ride_id)


@router.post(
    "/rides/{ride_id}/end",
    response_model=RideResponse,
    summary="End an in-progress ride",
    description="Completes the ride and writes its duration and fare breakdown.",
)
@limiter.limit(settings.api_rate_limit)
async def end_ride(
    request: Request,
    ride_id: int,
    driver_id: int = Depends(get_actor_id),
    engine: RideTransitionEngine = Depends(get_ride_engine),
):
    return await engine.end_ride(driver_id, ride_id)


@router.get("/rides/history", response_model=RidePage, summary="Ride history")
@limiter.limit(settings.api_rate_limit)
async def ride_history(
    request: Request,
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    driver_id: int = Depends(get_actor_id),
    db: AsyncSession = Depends(get_db),
):
    rides, total = await RideRepository(db).list_for_driver(
        driver_id,
        ended_from=start_date,
        ended_to=end_date,
        limit=limit,
        offset=offset,
    )
    return RidePage(
        rides=[RideResponse.model_validate(r) for r in rides],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.get(
    "/stats/{period}",
    response_model=EarningsResponse,
    summary="Earnings and working time for a day, week or month",
)
@limiter.limit(settings.api_rate_limit)
async def earnings(
    request: Request,
    period: StatsPeriod,
    day: Optional[date] = Query(None, alias="date"),
    driver_id: int = Depends(get_actor_id),
    db: AsyncSession = Depends(get_db),
):
    start, end = stats_window(period, day or datetime.now(timezone.utc).date())
    totals = await DriverRepository(db).earnings(driver_id, start, end)
    return EarningsResponse(period=period.value, start=start, end=end, **totals)
