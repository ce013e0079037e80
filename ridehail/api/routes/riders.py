"""
Rider endpoints
===============

POST   /api/v1/riders/rides                 -- request a ride (201)
GET    /api/v1/riders/rides                 -- own ride history
GET    /api/v1/riders/rides/{ride_id}       -- own ride status
DELETE /api/v1/riders/rides/{ride_id}       -- cancel a pending ride
GET    /api/v1/riders/notifications         -- own notifications
GET    /api/v1/riders/profile               -- profile with ride stats
"""

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from ridehail.api.dependencies import get_actor_id, get_db, get_ride_engine
from ridehail.api.middleware import limiter
from ridehail.api.schemas import (
    NotificationResponse,
    RideCancelledResponse,
    RideCreatedResponse,
    RidePage,
    RideRequestBody,
    RideResponse,
    RiderProfileResponse,
    RiderStats,
)
from ridehail.config import settings
from ridehail.infrastructure.repositories import (
    NotificationRepository,
    RideRepository,
    UserRepository,
)
from ridehail.services.ride_engine import RideTransitionEngine

router = APIRouter(prefix="/riders", tags=["riders"])


@router.post(
    "/rides",
    status_code=201,
    response_model=RideCreatedResponse,
    summary="Request a ride",
)
@limiter.limit(settings.api_rate_limit)
async def request_ride(
    request: Request,
    body: RideRequestBody,
    user_id: int = Depends(get_actor_id),
    engine: RideTransitionEngine = Depends(get_ride_engine),
):
    return await engine.request_ride(
        user_id,
        body.pickup_address,
        body.drop_address,
        pickup_lat=body.pickup_lat,
        pickup_lng=body.pickup_lng,
        drop_lat=body.drop_lat,
        drop_lng=body.drop_lng,
    )


@router.get("/rides", response_model=RidePage, summary="Ride history")
@limiter.limit(settings.api_rate_limit)
async def ride_history(
    request: Request,
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    user_id: int = Depends(get_actor_id),
    db: AsyncSession = Depends(get_db),
):
    rides, total = await RideRepository(db).list_for_user(
        user_id, limit=limit, offset=offset
    )
    return RidePage(
        rides=[RideResponse.model_validate(r) for r in rides],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.get("/rides/{ride_id}", response_model=RideResponse, summary="Ride status")
@limiter.limit(settings.api_rate_limit)
async def ride_status(
    request: Request,
    ride_id: int,
    user_id: int = Depends(get_actor_id),
    db: AsyncSession = Depends(get_db),
):
    ride = await RideRepository(db).get_for_user(ride_id, user_id)
    if not ride:
        raise HTTPException(status_code=404, detail="Ride not found")
    return ride


@router.delete(
    "/rides/{ride_id}",
    response_model=RideCancelledResponse,
    summary="Cancel a pending ride",
    description="Only rides that have not been assigned a driver can be cancelled.",
)
@limiter.limit(settings.api_rate_limit)
async def cancel_ride(
    request: Request,
    ride_id: int,
    user_id: int = Depends(get_actor_id),
    engine: RideTransitionEngine = Depends(get_ride_engine),
):
    return await engine.cancel_ride(user_id, ride_id)


@router.get(
    "/notifications",
    response_model=list[NotificationResponse],
    summary="Notifications, newest first",
)
@limiter.limit(settings.api_rate_limit)
async def notifications(
    request: Request,
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    user_id: int = Depends(get_actor_id),
    db: AsyncSession = Depends(get_db),
):
    return await NotificationRepository(db).list_for_user(
        user_id, limit=limit, offset=offset
    )


@router.get("/profile", response_model=RiderProfileResponse, summary="Rider profile")
@limiter.limit(settings.api_rate_limit)
async def profile(
    request: Request,
    user_id: int = Depends(get_actor_id),
    db: AsyncSession = Depends(get_db),
):
    user = await UserRepository(db).get_by_id(user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    stats = await RideRepository(db).user_stats(user_id)
    return RiderProfileResponse(
        id=user.id,
        phone_number=user.phone_number,
        name=user.name,
        is_active=user.is_active,
        created_at=user.created_at,
        stats=RiderStats(**stats),
    )
