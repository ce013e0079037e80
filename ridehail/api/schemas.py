"""Pydantic request / response schemas for the REST API."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from ridehail.domain.enums import RideStatus


# ── Requests ──────────────────────────────────────────────────────────


class RideRequestBody(BaseModel):
    # presence of the pickup is checked by the engine (ValidationError)
    pickup_address: Optional[str] = Field(None, max_length=500)
    pickup_lat: Optional[float] = None
    pickup_lng: Optional[float] = None
    drop_address: Optional[str] = Field(None, max_length=500)
    drop_lat: Optional[float] = None
    drop_lng: Optional[float] = None


class AssignDriverBody(BaseModel):
    driver_id: int = Field(..., ge=1)


# ── Responses ─────────────────────────────────────────────────────────


class RideResponse(BaseModel):
    id: int
    user_id: int
    driver_id: Optional[int] = None
    dispatcher_id: Optional[int] = None
    pickup_address: str
    pickup_lat: Optional[float] = None
    pickup_lng: Optional[float] = None
    drop_address: Optional[str] = None
    drop_lat: Optional[float] = None
    drop_lng: Optional[float] = None
    status: RideStatus
    requested_at: Optional[datetime] = None
    assigned_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None
    duration_minutes: Optional[int] = None
    base_fare: Optional[float] = None
    additional_hours: Optional[int] = None
    additional_fare: Optional[float] = None
    total_fare: Optional[float] = None

    model_config = {"from_attributes": True}


class RideCreatedResponse(BaseModel):
    id: int
    status: RideStatus
    pickup_address: str
    drop_address: Optional[str] = None
    requested_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class RideCancelledResponse(BaseModel):
    id: int
    status: RideStatus

    model_config = {"from_attributes": True}


class RidePage(BaseModel):
    rides: list[RideResponse]
    total: int
    limit: int
    offset: int


class DriverResponse(BaseModel):
    id: int
    name: str
    phone_number: str
    license_number: Optional[str] = None
    vehicle_number: Optional[str] = None

    model_config = {"from_attributes": True}


class NotificationResponse(BaseModel):
    id: int
    ride_id: Optional[int] = None
    type: str
    message: str
    is_read: bool
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class RiderStats(BaseModel):
    completed_rides: int
    total_spent: float
    avg_fare: float


class RiderProfileResponse(BaseModel):
    id: int
    phone_number: str
    name: Optional[str] = None
    is_active: bool
    created_at: Optional[datetime] = None
    stats: RiderStats


class EarningsResponse(BaseModel):
    period: str
    start: datetime
    end: datetime
    total_rides: int
    total_earnings: float
    total_minutes: int
    total_hours: float


class DriverPerformance(BaseModel):
    id: int
    name: str
    phone_number: str
    total_rides: int
    completed_rides: int
    total_earnings: float
    total_minutes: int


class PoolStatsResponse(BaseModel):
    stats: dict[str, int]


class HealthResponse(BaseModel):
    status: str = "ok"


class ErrorResponse(BaseModel):
    detail: str
    kind: Optional[str] = None
