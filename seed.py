"""
Seed script -- populates the database with sample data for reviewers.

Run after migrations:
    python seed.py

Creates:
  - 6 sample riders
  - 6 sample drivers (two of them busy with active rides)
  - 2 dispatchers
  - 6 sample rides (mix of PENDING, ASSIGNED, IN_PROGRESS, COMPLETED, CANCELLED)

Rows are written so the driver-availability invariant already holds:
every driver bound to an assigned / in-progress ride is unavailable.
"""

import asyncio
from datetime import datetime, timedelta, timezone

from sqlalchemy import text

from ridehail.config import settings
from ridehail.domain.enums import RideStatus
from ridehail.domain.pricing import FareCalculator
from ridehail.infrastructure.database import dispose_database, init_database
from ridehail.infrastructure.models import (
    DispatcherModel,
    DriverModel,
    RideModel,
    UserModel,
)


USERS = [
    {"name": "Aarav Sharma", "phone_number": "+919800000001"},
    {"name": "Priya Patel", "phone_number": "+919800000002"},
    {"name": "Rohan Mehta", "phone_number": "+919800000003"},
    {"name": "Sneha Gupta", "phone_number": "+919800000004"},
    {"name": "Vikram Singh", "phone_number": "+919800000005"},
    {"name": "Ananya Reddy", "phone_number": "+919800000006"},
]

DRIVERS = [
    {"name": "Ramesh Yadav", "phone_number": "+919900000001", "license_number": "MH0120190001", "vehicle_number": "MH01AB1234"},
    {"name": "Suresh Pawar", "phone_number": "+919900000002", "license_number": "MH0220180002", "vehicle_number": "MH02CD5678"},
    {"name": "Mahesh Kale", "phone_number": "+919900000003", "license_number": "MH0320170003", "vehicle_number": "MH03EF9012"},
    {"name": "Dinesh Shinde", "phone_number": "+919900000004", "license_number": "MH0420200004", "vehicle_number": "MH04GH3456"},
    {"name": "Ganesh More", "phone_number": "+919900000005", "license_number": "MH0520210005", "vehicle_number": "MH05IJ7890"},
    {"name": "Prakash Jadhav", "phone_number": "+919900000006", "license_number": "MH0620160006", "vehicle_number": "MH06KL2345", "is_active": False},
]

DISPATCHERS = [
    {"username": "dispatch-north", "email": "north@example.com", "phone_number": "+919700000001"},
    {"username": "dispatch-south", "email": "south@example.com", "phone_number": "+919700000002"},
]


async def seed():
    database = init_database(settings)
    fares = FareCalculator(
        settings.base_fare, settings.base_hours, settings.additional_hour_rate
    )
    now = datetime.now(timezone.utc)

    async with database.transaction() as session:
        # Check if already seeded
        result = await session.execute(text("SELECT count(*) FROM users"))
        if result.scalar() > 0:
            print("Database already seeded. Skipping.")
            return

        # ── Riders ────────────────────────────────────────────────────
        users = [UserModel(**u) for u in USERS]
        session.add_all(users)

        # ── Drivers ───────────────────────────────────────────────────
        drivers = [DriverModel(**d) for d in DRIVERS]
        session.add_all(drivers)

        # ── Dispatchers ───────────────────────────────────────────────
        dispatchers = [DispatcherModel(**d) for d in DISPATCHERS]
        session.add_all(dispatchers)
        await session.flush()
        print(
            f"  Created {len(users)} riders, {len(drivers)} drivers, "
            f"{len(dispatchers)} dispatchers"
        )

        # ── Rides ─────────────────────────────────────────────────────
        completed_start = now - timedelta(hours=5)
        completed_end = completed_start + timedelta(minutes=200)
        completed_fare = fares.calculate(200)

        rides = [
            RideModel(
                user_id=users[0].id,
                pickup_address="Terminal 2, Chhatrapati Shivaji Maharaj Intl Airport",
                drop_address="Bandra West",
                status=RideStatus.PENDING,
                requested_at=now - timedelta(minutes=4),
            ),
            RideModel(
                user_id=users[1].id,
                pickup_address="Andheri Station (East)",
                status=RideStatus.PENDING,
                requested_at=now - timedelta(minutes=2),
            ),
            RideModel(
                user_id=users[2].id,
                driver_id=drivers[0].id,
                dispatcher_id=dispatchers[0].id,
                pickup_address="Powai Lake Gate 1",
                drop_address="Lower Parel",
                status=RideStatus.ASSIGNED,
                requested_at=now - timedelta(minutes=20),
                assigned_at=now - timedelta(minutes=15),
            ),
            RideModel(
                user_id=users[3].id,
                driver_id=drivers[1].id,
                dispatcher_id=dispatchers[1].id,
                pickup_address="Dadar TT Circle",
                drop_address="Colaba Causeway",
                status=RideStatus.IN_PROGRESS,
                requested_at=now - timedelta(minutes=70),
                assigned_at=now - timedelta(minutes=65),
                started_at=now - timedelta(minutes=50),
            ),
            RideModel(
                user_id=users[4].id,
                driver_id=drivers[2].id,
                dispatcher_id=dispatchers[0].id,
                pickup_address="Juhu Beach",
                drop_address="Lonavala",
                status=RideStatus.COMPLETED,
                requested_at=completed_start - timedelta(minutes=25),
                assigned_at=completed_start - timedelta(minutes=20),
                started_at=completed_start,
                ended_at=completed_end,
                duration_minutes=200,
                base_fare=completed_fare.base_fare,
                additional_hours=completed_fare.additional_hours,
                additional_fare=completed_fare.additional_fare,
                total_fare=completed_fare.total_fare,
            ),
            RideModel(
                user_id=users[5].id,
                pickup_address="Goregaon Film City",
                status=RideStatus.CANCELLED,
                requested_at=now - timedelta(hours=2),
            ),
        ]
        session.add_all(rides)

        # Drivers bound to active rides are off the market
        drivers[0].is_available = False
        drivers[1].is_available = False
        await session.flush()
        print(f"  Created {len(rides)} rides")

    print("\nSeed complete!")


async def main():
    print("Seeding database...")
    try:
        await seed()
    finally:
        await dispose_database()


if __name__ == "__main__":
    asyncio.run(main())
