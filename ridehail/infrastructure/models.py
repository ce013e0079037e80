"""
SQLAlchemy ORM models  (maps to PostgreSQL).

Tables
------
* ``users``          -- riders
* ``drivers``        -- drivers with active / availability flags
* ``dispatchers``    -- staff who assign drivers to pending rides
* ``rides``          -- one row per ride request, never deleted
* ``notifications``  -- write-only event log tied to a ride

Indexes
-------
* **B-Tree** on ``status``, ``user_id``, ``driver_id`` for the gateway
  queues and histories, and on each notification owner column.

Constraints
-----------
* billing totals may only be present once ``ended_at`` is set.
"""

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    func,
)

from .database import Base
from ridehail.domain.enums import RideStatus


class UserModel(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    phone_number = Column(String(20), unique=True, nullable=False)
    name = Column(String(120), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    last_login = Column(DateTime(timezone=True), nullable=True)


class DriverModel(Base):
    __tablename__ = "drivers"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(120), nullable=False)
    phone_number = Column(String(20), unique=True, nullable=False)
    license_number = Column(String(50), nullable=True)
    vehicle_number = Column(String(20), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    is_available = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    last_login = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("idx_drivers_available", "is_active", "is_available"),
    )


class DispatcherModel(Base):
    __tablename__ = "dispatchers"

    id = Column(Integer, primary_key=True, autoincrement=True)
    username = Column(String(50), unique=True, nullable=False)
    email = Column(String(255), nullable=True)
    phone_number = Column(String(20), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    last_login = Column(DateTime(timezone=True), nullable=True)


class RideModel(Base):
    __tablename__ = "rides"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    driver_id = Column(Integer, ForeignKey("drivers.id"), nullable=True)
    dispatcher_id = Column(Integer, ForeignKey("dispatchers.id"), nullable=True)

    pickup_address = Column(Text, nullable=False)
    pickup_lat = Column(Float, nullable=True)
    pickup_lng = Column(Float, nullable=True)
    drop_address = Column(Text, nullable=True)
    drop_lat = Column(Float, nullable=True)
    drop_lng = Column(Float, nullable=True)

    status = Column(
        Enum(
            RideStatus,
            name="ride_status",
            values_callable=lambda statuses: [s.value for s in statuses],
        ),
        default=RideStatus.PENDING,
        nullable=False,
    )

    requested_at = Column(DateTime(timezone=True), nullable=False)
    assigned_at = Column(DateTime(timezone=True), nullable=True)
    started_at = Column(DateTime(timezone=True), nullable=True)
    ended_at = Column(DateTime(timezone=True), nullable=True)

    # Billing: written once, together with the terminal status
    duration_minutes = Column(Integer, nullable=True)
    base_fare = Column(Float, nullable=True)
    additional_hours = Column(Integer, nullable=True)
    additional_fare = Column(Float, nullable=True)
    total_fare = Column(Float, nullable=True)

    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        CheckConstraint(
            "total_fare IS NULL OR ended_at IS NOT NULL",
            name="ck_rides_billing_after_end",
        ),
        Index("idx_rides_status", "status"),
        Index("idx_rides_user", "user_id"),
        Index("idx_rides_driver", "driver_id"),
        Index("idx_rides_requested", "requested_at"),
    )


class NotificationModel(Base):
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, autoincrement=True)
    ride_id = Column(Integer, ForeignKey("rides.id"), nullable=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    driver_id = Column(Integer, ForeignKey("drivers.id"), nullable=True)
    dispatcher_id = Column(Integer, ForeignKey("dispatchers.id"), nullable=True)
    type = Column(String(50), nullable=False)
    message = Column(Text, nullable=False)
    is_read = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        Index("idx_notifications_user", "user_id"),
        Index("idx_notifications_driver", "driver_id"),
        Index("idx_notifications_dispatcher", "dispatcher_id"),
    )
