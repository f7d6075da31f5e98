"""Health endpoint smoke tests."""

import pytest
from httpx import ASGITransport, AsyncClient

from fleet_booking.main import app

pytestmark = pytest.mark.asyncio


async def test_healthcheck_returns_ok() -> None:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        response = await client.get("/api/v1/health")
    assert response.status_code == 200
    payload = response.json()
    assert payload["status"] == "ok"
    assert payload["service"] == "Fleet Booking Console API"
    assert payload["bookingApi"] == "http://backend.test/api"
    assert response.headers["X-Request-ID"]


async def test_healthcheck_counts_open_forms(api_client) -> None:
    await api_client.post("/api/v1/booking-forms", json={})
    response = await api_client.get("/api/v1/health")
    assert response.json()["openForms"] == 1
