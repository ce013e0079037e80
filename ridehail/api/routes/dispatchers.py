"""
Dispatcher endpoints
====================

GET  /api/v1/dispatchers/rides/pending            -- queue of unassigned rides
GET  /api/v1/dispatchers/drivers/available        -- active and available drivers
POST /api/v1/dispatchers/rides/{ride_id}/assign   -- pending -> assigned
GET  /api/v1/dispatchers/rides                    -- all rides (filters, paging)
GET  /api/v1/dispatchers/rides/live               -- assigned / in-progress rides
GET  /api/v1/dispatchers/rides/{ride_id}          -- ride details
GET  /api/v1/dispatchers/drivers/performance      -- per-driver totals
"""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from ridehail.api.dependencies import get_actor_id, get_db, get_ride_engine
from ridehail.api.middleware import limiter
from ridehail.api.schemas import (
    AssignDriverBody,
    DriverPerformance,
    DriverResponse,
    RidePage,
    RideResponse,
)
from ridehail.config import settings
from ridehail.domain.enums import RideStatus
from ridehail.infrastructure.repositories import DriverRepository, RideRepository
from ridehail.services.ride_engine import RideTransitionEngine

router = APIRouter(
    prefix="/dispatchers",
    tags=["dispatchers"],
    dependencies=[Depends(get_actor_id)],
)


@router.get(
    "/rides/pending",
    response_model=list[RideResponse],
    summary="Pending rides, oldest first",
)
@limiter.limit(settings.api_rate_limit)
async def pending_rides(request: Request, db: AsyncSession = Depends(get_db)):
    return await RideRepository(db).get_pending_rides()


@router.get(
    "/drivers/available",
    response_model=list[DriverResponse],
    summary="Drivers that can take a ride now",
)
@limiter.limit(settings.api_rate_limit)
async def available_drivers(request: Request, db: AsyncSession = Depends(get_db)):
    return await DriverRepository(db).get_available()


@router.post(
    "/rides/{ride_id}/assign",
    response_model=RideResponse,
    summary="Assign a driver to a pending ride",
    description=(
        "Locks the ride and then the driver.  Fails with 400 if the ride is "
        "no longer pending, the driver is busy or inactive, or another "
        "dispatcher won the race."
    ),
)
@limiter.limit(settings.api_rate_limit)
async def assign_driver(
    request: Request,
    ride_id: int,
    body: AssignDriverBody,
    dispatcher_id: int = Depends(get_actor_id),
    engine: RideTransitionEngine = Depends(get_ride_engine),
):
    return await engine.assign_driver(dispatcher_id, ride_id, body.driver_id)


@router.get("/rides", response_model=RidePage, summary="All rides")
@limiter.limit(settings.api_rate_limit)
async def all_rides(
    request: Request,
    status: Optional[str] = Query(None),
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
):
    ride_status = None
    if status is not None:
        try:
            ride_status = RideStatus(status)
        except ValueError:
            allowed = ", ".join(s.value for s in RideStatus)
            raise HTTPException(
                status_code=400,
                detail=f"Invalid status. Allowed values: {allowed}",
            )
    rides, total = await RideRepository(db).search(
        status=ride_status,
        requested_from=start_date,
        requested_to=end_date,
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
    "/rides/live",
    response_model=list[RideResponse],
    summary="Rides with a driver bound",
)
@limiter.limit(settings.api_rate_limit)
async def live_rides(request: Request, db: AsyncSession = Depends(get_db)):
    return await RideRepository(db).get_live_rides()


@router.get("/rides/{ride_id}", response_model=RideResponse, summary="Ride details")
@limiter.limit(settings.api_rate_limit)
async def ride_details(
    request: Request,
    ride_id: int,
    db: AsyncSession = Depends(get_db),
):
    ride = await RideRepository(db).get_by_id(ride_id)
    if not ride:
        raise HTTPException(status_code=404, detail="Ride not found")
    return ride


@router.get(
    "/drivers/performance",
    response_model=list[DriverPerformance],
    summary="Ride counts and earnings per driver",
)
@limiter.limit(settings.api_rate_limit)
async def driver_performance(
    request: Request,
    driver_id: Optional[int] = Query(None),
    db: AsyncSession = Depends(get_db),
):
    return await DriverRepository(db).performance(driver_id)
