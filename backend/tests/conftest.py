"""Test fixtures for the booking console backend."""
from __future__ import annotations

import copy
import inspect
import json
import os
import re
from collections.abc import AsyncIterator, Callable
from decimal import Decimal
from typing import Any

import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

os.environ.setdefault("BOOKING_API_BASE_URL", "http://backend.test/api")
os.environ.setdefault("DEFAULT_CURRENCY", "MYR")

from fleet_booking.integrations.booking_api_client import BookingApiClient
from fleet_booking.main import app
from fleet_booking.schemas.catalog import (
    Catalog,
    Discount,
    DiscountType,
    Offering,
    Package,
    PackageModifierType,
    Vehicle,
)
from fleet_booking.services.booking_form_service import BookingForm, SessionContext
from fleet_booking.services.form_store import FormStore

BACKEND_URL = "http://backend.test/api"

OFFERINGS: list[dict[str, Any]] = [
    {"id": 1, "name": "GPS Navigator", "price": 15.0, "maxQuantityPerBooking": 2},
    {"id": 2, "name": "Child Seat", "price": 50.0, "maxQuantityPerBooking": 3},
    {"id": 3, "name": "Basic Insurance", "price": 20.0, "isMandatory": True},
    {"id": 4, "name": "Extra Driver", "price": 30.0, "offeringType": "SERVICE"},
]

VEHICLES: dict[int, dict[str, Any]] = {
    10: {"id": 10, "make": "Perodua", "model": "Myvi", "dailyRate": 100},
    11: {"id": 11, "name": "Honda City", "pricing": {"baseRate": 150}},
}

PACKAGES: dict[int, dict[str, Any]] = {
    20: {
        "id": 20,
        "name": "Family",
        "priceModifier": 0.9,
        "modifierType": "PERCENTAGE",
        "allowDiscountOnModifier": True,
        "offeringIds": [2],
    },
    21: {
        "id": 21,
        "name": "Weekend Flat",
        "priceModifier": 80,
        "modifierType": "FIXED",
        "allowDiscountOnModifier": False,
        "offerings": [{"id": 1, "name": "GPS Navigator"}],
        "minRentalDays": 2,
    },
}

DISCOUNTS: dict[int, dict[str, Any]] = {
    30: {"id": 30, "code": "SAVE10", "type": "PERCENTAGE", "value": 10},
    31: {"id": 31, "code": "FLAT80", "type": "FIXED_AMOUNT", "value": 80},
}

BOOKINGS: dict[int, dict[str, Any]] = {
    501: {
        "id": 501,
        "vehicleId": 10,
        "packageId": 20,
        "discountId": 30,
        "startDate": "2025-03-01T10:00:00Z",
        "endDate": "2025-03-04T10:00:00Z",
        "pickupLocation": "KLIA Terminal 1",
        "dropoffLocation": "KL Sentral",
        "guestEmail": "guest@example.com",
        "offerings": [
            {"offeringId": 2, "quantity": 2},
            {"offering": {"id": 4}, "quantity": 1},
        ],
    },
}

PREVIEW_VALID: dict[str, Any] = {
    "validation": {
        "isValid": True,
        "errors": [],
        "warnings": ["Vehicle requires inspection before pickup"],
    },
    "pricingSummary": {
        "vehicleRentals": [
            {
                "vehicleId": 10,
                "vehicleName": "Perodua Myvi",
                "numberOfDays": 3,
                "dailyRate": 100,
                "subtotal": 300,
            }
        ],
        "offerings": [
            {
                "offeringId": 3,
                "offeringName": "Basic Insurance",
                "quantity": 1,
                "pricePerUnit": 20,
                "totalPrice": 20,
            }
        ],
        "discounts": [],
        "subtotal": 320,
        "totalDiscountAmount": 0,
        "taxAmount": 19.2,
        "serviceFeeAmount": 0,
        "grandTotal": 339.2,
        "dueAtBooking": 100,
        "dueAtPickup": 239.2,
        "currency": "MYR",
    },
    "loyaltyPointsInfo": {
        "availablePoints": 120,
        "maxPointsDiscount": 12,
        "isEligibleForRedemption": True,
    },
}

class FakeBackend:
    """Routes rental backend calls made through ``httpx.MockTransport``."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.preview_payload: dict[str, Any] = copy.deepcopy(PREVIEW_VALID)
        self.preview_status = 200
        self.commit_status: int | None = None
        self.before_preview: Callable[[], Any] | None = None
        self.before_commit: Callable[[], Any] | None = None
        self.next_booking_id = 900

    def calls(self, method: str, path: str) -> list[httpx.Request]:
        return [
            request
            for request in self.requests
            if request.method == method and request.url.path == path
        ]

    async def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path.removeprefix("/api")
        method = request.method

        if method == "GET" and path == "/offerings":
            return httpx.Response(200, json={"_embedded": {"offerings": OFFERINGS}})
        if method == "GET" and path == "/offerings/search/findByIsMandatory":
            mandatory = [item for item in OFFERINGS if item.get("isMandatory")]
            return httpx.Response(200, json={"_embedded": {"offerings": mandatory}})

        for pattern, table in (
            (r"/vehicles/(\d+)", VEHICLES),
            (r"/packages/(\d+)", PACKAGES),
            (r"/discounts/(\d+)", DISCOUNTS),
            (r"/v1/bookings/(\d+)", BOOKINGS),
        ):
            match = re.fullmatch(pattern, path)
            if method == "GET" and match:
                item = table.get(int(match.group(1)))
                if item is None:
                    return httpx.Response(404, json={"message": "Not found"})
                return httpx.Response(200, json=item)

        if method == "POST" and path == "/v1/bookings/preview":
            await self._run(self.before_preview)
            if self.preview_status != 200:
                return httpx.Response(
                    self.preview_status, json={"message": "Pricing engine unavailable"}
                )
            return httpx.Response(200, json=self.preview_payload)

        if (method == "POST" and path == "/v1/bookings") or (
            method == "PUT" and re.fullmatch(r"/v1/bookings/\d+", path)
        ):
            await self._run(self.before_commit)
            if self.commit_status is not None:
                return httpx.Response(
                    self.commit_status,
                    json={"errors": [{"message": "Vehicle already booked"}]},
                )
            body = json.loads(request.content)
            if method == "POST":
                booking_id = self.next_booking_id
                self.next_booking_id += 1
                status_code = 201
            else:
                booking_id = int(path.rsplit("/", 1)[1])
                status_code = 200
            summary = body.get("pricingSummary") or {}
            return httpx.Response(
                status_code,
                json={
                    "id": booking_id,
                    "status": "CONFIRMED",
                    "finalPrice": summary.get("grandTotal"),
                },
            )

        return httpx.Response(404, json={"message": f"No route for {method} {path}"})

    @staticmethod
    async def _run(hook: Callable[[], Any] | None) -> None:
        if hook is None:
            return
        result = hook()
        if inspect.isawaitable(result):
            await result


@pytest.fixture()
def fake_backend() -> FakeBackend:
    return FakeBackend()


@pytest_asyncio.fixture()
async def booking_client(fake_backend: FakeBackend) -> AsyncIterator[BookingApiClient]:
    client = BookingApiClient(
        BACKEND_URL, transport=httpx.MockTransport(fake_backend.handler)
    )
    try:
        yield client
    finally:
        await client.aclose()


@pytest_asyncio.fixture()
async def api_client(booking_client: BookingApiClient) -> AsyncIterator[AsyncClient]:
    """Async client against the app wired to the fake rental backend."""
    app.state.booking_client = booking_client
    app.state.form_store = FormStore(capacity=50)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture()
def catalog() -> Catalog:
    return Catalog(
        offerings=(
            Offering(
                id=1,
                name="GPS Navigator",
                unit_price=Decimal("15.00"),
                max_quantity_per_booking=2,
            ),
            Offering(
                id=2,
                name="Child Seat",
                unit_price=Decimal("50.00"),
                max_quantity_per_booking=3,
            ),
            Offering(
                id=3,
                name="Basic Insurance",
                unit_price=Decimal("20.00"),
                is_mandatory=True,
            ),
            Offering(
                id=4,
                name="Extra Driver",
                unit_price=Decimal("30.00"),
                offering_type="SERVICE",
            ),
        ),
        mandatory_ids=frozenset({3}),
    )


@pytest.fixture()
def vehicle() -> Vehicle:
    return Vehicle(id=10, name="Perodua Myvi", daily_rate=Decimal("100"))


@pytest.fixture()
def family_package() -> Package:
    return Package(
        id=20,
        name="Family",
        price_modifier=Decimal("0.9"),
        allow_discount_on_modifier=True,
        included_offering_ids=frozenset({2}),
    )


@pytest.fixture()
def flat_package() -> Package:
    return Package(
        id=21,
        name="Weekend Flat",
        price_modifier=Decimal("80"),
        modifier_type=PackageModifierType.FIXED,
        allow_discount_on_modifier=False,
        included_offering_ids=frozenset({1}),
        min_rental_days=2,
    )


@pytest.fixture()
def save10() -> Discount:
    return Discount(
        id=30, code="SAVE10", type=DiscountType.PERCENTAGE, value=Decimal("10")
    )


@pytest.fixture()
def context() -> SessionContext:
    return SessionContext(
        user_id="agent-7", locale="en", currency="MYR", access_token="tok-123"
    )


@pytest.fixture()
def form(catalog: Catalog, context: SessionContext) -> BookingForm:
    return BookingForm(catalog, context)
