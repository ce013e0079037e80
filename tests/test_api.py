"""
Integration tests for the REST API endpoints.

Runs the real routers against the per-test SQLite database; the engine
and notification sink are injected through dependency overrides.
"""

from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from ridehail.domain.enums import RideStatus
from ridehail.infrastructure.models import RideModel


def actor(actor_id: int) -> dict[str, str]:
    return {"X-Actor-Id": str(actor_id)}


@pytest_asyncio.fixture
async def ride_id(client: AsyncClient, seed) -> int:
    resp = await client.post(
        "/api/v1/riders/rides",
        json={"pickup_address": "Terminal 2", "drop_address": "Bandra West"},
        headers=actor(seed.rider),
    )
    assert resp.status_code == 201
    return resp.json()["id"]


# ── Health / identity ─────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_health(client: AsyncClient):
    resp = await client.get("/api/v1/admin/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"


@pytest.mark.asyncio
async def test_pool_stats(client: AsyncClient):
    resp = await client.get("/api/v1/admin/pool")
    assert resp.status_code == 200
    assert isinstance(resp.json()["stats"], dict)


@pytest.mark.asyncio
async def test_missing_actor_header_is_401(client: AsyncClient, seed):
    resp = await client.post(
        "/api/v1/riders/rides", json={"pickup_address": "Terminal 2"}
    )
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_malformed_actor_header_is_401(client: AsyncClient, seed):
    resp = await client.get(
        "/api/v1/dispatchers/rides/pending", headers={"X-Actor-Id": "abc"}
    )
    assert resp.status_code == 401


# ── Rider gateway ─────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_request_ride_returns_201(client: AsyncClient, seed):
    resp = await client.post(
        "/api/v1/riders/rides",
        json={
            "pickup_address": "Terminal 2",
            "pickup_lat": 19.0896,
            "pickup_lng": 72.8656,
        },
        headers=actor(seed.rider),
    )
    assert resp.status_code == 201
    data = resp.json()
    assert data["status"] == "pending"
    assert data["id"] is not None


@pytest.mark.asyncio
async def test_blank_pickup_is_400(client: AsyncClient, seed):
    resp = await client.post(
        "/api/v1/riders/rides",
        json={"pickup_address": "  "},
        headers=actor(seed.rider),
    )
    assert resp.status_code == 400
    assert resp.json()["kind"] == "validation"


@pytest.mark.asyncio
async def test_malformed_body_is_400(client: AsyncClient, seed):
    resp = await client.post(
        "/api/v1/riders/rides",
        json={"pickup_address": "Terminal 2", "pickup_lat": "north"},
        headers=actor(seed.rider),
    )
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_get_own_ride(client: AsyncClient, seed, ride_id):
    resp = await client.get(f"/api/v1/riders/rides/{ride_id}", headers=actor(seed.rider))
    assert resp.status_code == 200
    assert resp.json()["pickup_address"] == "Terminal 2"


@pytest.mark.asyncio
async def test_other_riders_ride_is_404(client: AsyncClient, seed, ride_id):
    resp = await client.get(
        f"/api/v1/riders/rides/{ride_id}", headers=actor(seed.other_rider)
    )
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_ride_history(client: AsyncClient, seed, ride_id):
    resp = await client.get("/api/v1/riders/rides", headers=actor(seed.rider))
    assert resp.status_code == 200
    data = resp.json()
    assert data["total"] == 1
    assert data["rides"][0]["id"] == ride_id


@pytest.mark.asyncio
async def test_cancel_pending_ride(client: AsyncClient, seed, ride_id):
    resp = await client.delete(
        f"/api/v1/riders/rides/{ride_id}", headers=actor(seed.rider)
    )
    assert resp.status_code == 200
    assert resp.json() == {"id": ride_id, "status": "cancelled"}


@pytest.mark.asyncio
async def test_cancel_assigned_ride_is_400(client: AsyncClient, seed, ride_id):
    await client.post(
        f"/api/v1/dispatchers/rides/{ride_id}/assign",
        json={"driver_id": seed.driver},
        headers=actor(seed.dispatcher),
    )
    resp = await client.delete(
        f"/api/v1/riders/rides/{ride_id}", headers=actor(seed.rider)
    )
    assert resp.status_code == 400
    assert resp.json()["kind"] == "invalid_transition"


@pytest.mark.asyncio
async def test_rider_notifications_and_profile(client: AsyncClient, seed, ride_id):
    await client.post(
        f"/api/v1/dispatchers/rides/{ride_id}/assign",
        json={"driver_id": seed.driver},
        headers=actor(seed.dispatcher),
    )

    resp = await client.get("/api/v1/riders/notifications", headers=actor(seed.rider))
    assert resp.status_code == 200
    assert [n["type"] for n in resp.json()] == ["ride_update"]

    resp = await client.get("/api/v1/riders/profile", headers=actor(seed.rider))
    assert resp.status_code == 200
    assert resp.json()["stats"]["completed_rides"] == 0


# ── Dispatcher gateway ────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_pending_queue_and_available_drivers(client: AsyncClient, seed, ride_id):
    resp = await client.get(
        "/api/v1/dispatchers/rides/pending", headers=actor(seed.dispatcher)
    )
    assert [r["id"] for r in resp.json()] == [ride_id]

    resp = await client.get(
        "/api/v1/dispatchers/drivers/available", headers=actor(seed.dispatcher)
    )
    ids = {d["id"] for d in resp.json()}
    assert ids == {seed.driver, seed.other_driver}


@pytest.mark.asyncio
async def test_assign_driver(client: AsyncClient, seed, ride_id):
    resp = await client.post(
        f"/api/v1/dispatchers/rides/{ride_id}/assign",
        json={"driver_id": seed.driver},
        headers=actor(seed.dispatcher),
    )
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "assigned"
    assert data["driver_id"] == seed.driver

    resp = await client.get(
        "/api/v1/dispatchers/rides/live", headers=actor(seed.dispatcher)
    )
    assert [r["id"] for r in resp.json()] == [ride_id]


@pytest.mark.asyncio
async def test_assign_unknown_ride_is_404(client: AsyncClient, seed):
    resp = await client.post(
        "/api/v1/dispatchers/rides/9999/assign",
        json={"driver_id": seed.driver},
        headers=actor(seed.dispatcher),
    )
    assert resp.status_code == 404
    assert resp.json()["kind"] == "not_found"


@pytest.mark.asyncio
async def test_assign_busy_driver_is_400(client: AsyncClient, seed, ride_id):
    other = await client.post(
        "/api/v1/riders/rides",
        json={"pickup_address": "Terminal 1"},
        headers=actor(seed.other_rider),
    )
    await client.post(
        f"/api/v1/dispatchers/rides/{ride_id}/assign",
        json={"driver_id": seed.driver},
        headers=actor(seed.dispatcher),
    )
    resp = await client.post(
        f"/api/v1/dispatchers/rides/{other.json()['id']}/assign",
        json={"driver_id": seed.driver},
        headers=actor(seed.dispatcher),
    )
    assert resp.status_code == 400
    assert resp.json()["kind"] == "conflict"


@pytest.mark.asyncio
async def test_all_rides_filter(client: AsyncClient, seed, ride_id):
    resp = await client.get(
        "/api/v1/dispatchers/rides",
        params={"status": "pending"},
        headers=actor(seed.dispatcher),
    )
    assert resp.status_code == 200
    assert resp.json()["total"] == 1

    resp = await client.get(
        "/api/v1/dispatchers/rides",
        params={"status": "completed"},
        headers=actor(seed.dispatcher),
    )
    assert resp.json()["total"] == 0


@pytest.mark.asyncio
async def test_all_rides_bad_status_is_400(client: AsyncClient, seed):
    resp = await client.get(
        "/api/v1/dispatchers/rides",
        params={"status": "teleported"},
        headers=actor(seed.dispatcher),
    )
    assert resp.status_code == 400


# ── Driver gateway ────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_full_lifecycle_through_driver_gateway(
    client: AsyncClient, seed, clock, ride_id
):
    await client.post(
        f"/api/v1/dispatchers/rides/{ride_id}/assign",
        json={"driver_id": seed.driver},
        headers=actor(seed.dispatcher),
    )

    resp = await client.get("/api/v1/drivers/rides/assigned", headers=actor(seed.driver))
    assert [r["id"] for r in resp.json()] == [ride_id]

    resp = await client.post(
        f"/api/v1/drivers/rides/{ride_id}/start", headers=actor(seed.driver)
    )
    assert resp.status_code == 200
    assert resp.json()["status"] == "in_progress"

    clock.advance(minutes=200)
    resp = await client.post(
        f"/api/v1/drivers/rides/{ride_id}/end", headers=actor(seed.driver)
    )
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "completed"
    assert data["duration_minutes"] == 200
    assert data["total_fare"] == 550.0

    resp = await client.get("/api/v1/drivers/rides/history", headers=actor(seed.driver))
    assert resp.json()["total"] == 1

    resp = await client.get(
        "/api/v1/drivers/stats/daily",
        params={"date": clock.now.date().isoformat()},
        headers=actor(seed.driver),
    )
    assert resp.status_code == 200
    stats = resp.json()
    assert stats["total_rides"] == 1
    assert stats["total_earnings"] == 550.0
    assert stats["total_minutes"] == 200

    resp = await client.get(
        "/api/v1/dispatchers/drivers/performance",
        params={"driver_id": seed.driver},
        headers=actor(seed.dispatcher),
    )
    assert resp.json()[0]["completed_rides"] == 1


@pytest.mark.asyncio
async def test_start_someone_elses_ride_is_404(client: AsyncClient, seed, ride_id):
    await client.post(
        f"/api/v1/dispatchers/rides/{ride_id}/assign",
        json={"driver_id": seed.driver},
        headers=actor(seed.dispatcher),
    )
    resp = await client.post(
        f"/api/v1/drivers/rides/{ride_id}/start", headers=actor(seed.other_driver)
    )
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_end_before_start_is_400(client: AsyncClient, seed, ride_id):
    await client.post(
        f"/api/v1/dispatchers/rides/{ride_id}/assign",
        json={"driver_id": seed.driver},
        headers=actor(seed.dispatcher),
    )
    resp = await client.post(
        f"/api/v1/drivers/rides/{ride_id}/end", headers=actor(seed.driver)
    )
    assert resp.status_code == 400
    assert resp.json()["kind"] == "invalid_transition"


@pytest.mark.asyncio
async def test_unknown_stats_period_is_400(client: AsyncClient, seed):
    resp = await client.get("/api/v1/drivers/stats/yearly", headers=actor(seed.driver))
    assert resp.status_code == 400


# ── Fatal faults ──────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_integrity_fault_is_generic_500(client: AsyncClient, seed, clock, database):
    async with database.transaction() as session:
        broken = RideModel(
            user_id=seed.rider,
            driver_id=seed.driver,
            pickup_address="Terminal 1",
            status=RideStatus.IN_PROGRESS,
            requested_at=clock.now,
        )
        session.add(broken)
        await session.flush()

    resp = await client.post(
        f"/api/v1/drivers/rides/{broken.id}/end", headers=actor(seed.driver)
    )
    assert resp.status_code == 500
    assert resp.json()["detail"] == "Internal server error"
    assert resp.json()["kind"] == "data_integrity"
    assert "start time" not in resp.text
    assert str(broken.id) not in resp.json()["detail"]


@pytest.mark.asyncio
async def test_unexpected_fault_is_generic_500(database, seed):
    from ridehail.api import dependencies
    from ridehail.api.app import create_app
    from ridehail.api.middleware import limiter

    engine = AsyncMock()
    engine.start_ride.side_effect = RuntimeError(
        "password authentication failed for postgres://ridehail@db"
    )

    limiter.enabled = False
    app = create_app()
    app.dependency_overrides[dependencies.get_database] = lambda: database
    app.dependency_overrides[dependencies.get_ride_engine] = lambda: engine

    # Starlette re-raises after the catch-all handler has responded
    transport = ASGITransport(app=app, raise_app_exceptions=False)
    try:
        async with AsyncClient(transport=transport, base_url="http://test") as ac:
            resp = await ac.post(
                "/api/v1/drivers/rides/1/start", headers=actor(seed.driver)
            )
    finally:
        limiter.enabled = True

    assert resp.status_code == 500
    assert resp.json() == {"detail": "Internal server error"}
    assert "postgres" not in resp.text
