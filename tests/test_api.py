"""
Integration tests for the REST API endpoints.

The promo service dependency is overridden with one bound to the per-test
SQLite database and without the Redis lock.
"""

from __future__ import annotations

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from fare_core.api.app import create_app
from fare_core.api.dependencies import get_promo_service
from fare_core.infrastructure.models import RideModel


@pytest_asyncio.fixture
async def client(service):
    app = create_app()
    app.dependency_overrides[get_promo_service] = lambda: service

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


FARE_BODY = {
    "pickup_lat": 33.7490,
    "pickup_lng": -84.3880,
    "dropoff_lat": 33.8038,
    "dropoff_lng": -84.3694,
    "vehicle_type": "wheelchair",
    "additional_services": {"needs_ramp": True},
    "is_round_trip": False,
}


# ── Tests ─────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_health(client: AsyncClient):
    resp = await client.get("/api/v1/admin/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"


@pytest.mark.asyncio
async def test_estimate_fare(client: AsyncClient):
    resp = await client.post("/api/v1/fares/estimate", json=FARE_BODY)
    assert resp.status_code == 200
    data = resp.json()
    assert data["breakdown"]["base_fare"] == 70
    assert data["breakdown"]["services_fee"] == 15
    assert data["estimated_fare"] == data["breakdown"]["total"]
    assert data["formatted_distance"].endswith(" mi")
    assert data["estimated_duration"].endswith("min")


@pytest.mark.asyncio
async def test_estimate_fare_outside_us(client: AsyncClient):
    body = {**FARE_BODY, "pickup_lat": 45.0522366, "pickup_lng": 7.5153885}
    resp = await client.post("/api/v1/fares/estimate", json=body)
    assert resp.status_code == 422
    detail = resp.json()["detail"]
    assert detail["code"] == "COORDINATE_OUT_OF_SERVICE_AREA"
    assert detail["message"].startswith("Pickup location: ")
    assert detail["friendly_message"] == (
        "Service is currently available within the United States only"
    )


@pytest.mark.asyncio
async def test_estimate_fare_unknown_vehicle(client: AsyncClient):
    resp = await client.post(
        "/api/v1/fares/estimate", json={**FARE_BODY, "vehicle_type": "limo"}
    )
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_validate_promo(client: AsyncClient, add_promo):
    await add_promo(code="SAVE15", discount_type="percentage", discount_value=15.0)
    resp = await client.post(
        "/api/v1/promo-codes/validate",
        json={"code": "save15", "user_id": 1, "original_amount": 100.0},
    )
    assert resp.status_code == 200
    data = resp.json()
    assert data["valid"] is True
    assert data["promo_code"]["code"] == "SAVE15"
    assert data["calculation"] == {"final_amount": 85.0, "discount_amount": 15.0}


@pytest.mark.asyncio
async def test_validate_unknown_promo(client: AsyncClient):
    resp = await client.post(
        "/api/v1/promo-codes/validate",
        json={"code": "NOPE", "user_id": 1, "original_amount": 100.0},
    )
    assert resp.status_code == 400
    assert resp.json()["detail"]["code"] == "PROMO_CODE_NOT_FOUND"


@pytest.mark.asyncio
async def test_apply_promo(client: AsyncClient, add_promo, add_ride, session_factory):
    promo_id = await add_promo(code="TEN", discount_type="fixed_amount", discount_value=10.0)
    ride_id = await add_ride()
    body = {
        "code": "TEN",
        "user_id": 1,
        "ride_id": ride_id,
        "original_amount": 78.62,
        "idempotency_key": "3f1c",
    }

    resp = await client.post("/api/v1/promo-codes/apply", json=body)
    assert resp.status_code == 200
    data = resp.json()
    assert data["success"] is True
    assert data["final_amount"] == pytest.approx(68.62)
    assert data["idempotent_replay"] is False

    retry = await client.post("/api/v1/promo-codes/apply", json=body)
    assert retry.status_code == 200
    assert retry.json()["idempotent_replay"] is True

    async with session_factory() as session:
        ride = await session.get(RideModel, ride_id)
        assert ride.final_price == pytest.approx(68.62)
        assert ride.promo_code_id == promo_id

    analytics = await client.get(f"/api/v1/promo-codes/{promo_id}/analytics")
    assert analytics.status_code == 200
    assert analytics.json()["total_usage"] == 1


@pytest.mark.asyncio
async def test_apply_promo_usage_limit(client: AsyncClient, add_promo):
    await add_promo(code="ONCE", max_uses=1)
    body = {"code": "ONCE", "user_id": 1, "original_amount": 50.0}

    first = await client.post("/api/v1/promo-codes/apply", json=body)
    second = await client.post("/api/v1/promo-codes/apply", json=body)

    assert first.status_code == 200
    assert second.status_code == 400
    assert second.json()["detail"]["code"] == "PROMO_USAGE_LIMIT_REACHED"


@pytest.mark.asyncio
async def test_apply_promo_missing_ride(client: AsyncClient, add_promo):
    await add_promo(code="TEN")
    resp = await client.post(
        "/api/v1/promo-codes/apply",
        json={"code": "TEN", "user_id": 1, "ride_id": 4242, "original_amount": 50.0},
    )
    assert resp.status_code == 404
    assert resp.json()["detail"]["code"] == "RIDE_NOT_FOUND"
