"""HTTP client for the authoritative rental backend."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from fleet_booking.integrations.normalizers import (
    PayloadError,
    extract_collection,
    normalize_booking_result,
    normalize_discount,
    normalize_existing_booking,
    normalize_offering,
    normalize_package,
    normalize_preview,
    normalize_vehicle,
)
from fleet_booking.schemas.booking import (
    BookingFormSubmission,
    BookingResult,
    ExistingBooking,
    PreviewRequest,
)
from fleet_booking.schemas.catalog import Catalog, Discount, Offering, Package, Vehicle
from fleet_booking.schemas.pricing import PreviewResult

logger = logging.getLogger(__name__)

_CATALOG_PAGE_SIZE = 1000


class BookingApiError(RuntimeError):
    """Raised when the rental backend cannot be reached or rejects a call."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class BookingApiNotFound(BookingApiError):
    """Raised when a looked-up resource does not exist."""


class BookingApiClient:
    """Thin async wrapper over the rental backend's REST API.

    Every call takes the caller's bearer token explicitly so one client can
    serve many sessions. Failures are raised as ``BookingApiError`` and are
    never retried here.
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            timeout=timeout,
            transport=transport,
            headers={"Accept": "application/json"},
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def list_offerings(self, *, token: str | None = None) -> list[Offering]:
        payload = await self._request(
            "GET", "/offerings", token=token, params={"size": _CATALOG_PAGE_SIZE}
        )
        return [normalize_offering(item) for item in self._collection(payload, "offerings")]

    async def list_mandatory_offering_ids(self, *, token: str | None = None) -> set[int]:
        payload = await self._request(
            "GET",
            "/offerings/search/findByIsMandatory",
            token=token,
            params={"isMandatory": "true", "size": _CATALOG_PAGE_SIZE},
        )
        return {
            normalize_offering(item).id
            for item in self._collection(payload, "offerings")
        }

    async def load_catalog(self, *, token: str | None = None) -> Catalog:
        """Offerings plus the mandatory subset, fetched once per form session."""
        offerings = await self.list_offerings(token=token)
        mandatory_ids = await self.list_mandatory_offering_ids(token=token)
        return Catalog(offerings=tuple(offerings), mandatory_ids=frozenset(mandatory_ids))

    async def get_vehicle(self, vehicle_id: int, *, token: str | None = None) -> Vehicle:
        payload = await self._request("GET", f"/vehicles/{vehicle_id}", token=token)
        return self._parse(normalize_vehicle, payload)

    async def get_package(self, package_id: int, *, token: str | None = None) -> Package:
        payload = await self._request("GET", f"/packages/{package_id}", token=token)
        return self._parse(normalize_package, payload)

    async def get_discount(self, discount_id: int, *, token: str | None = None) -> Discount:
        payload = await self._request("GET", f"/discounts/{discount_id}", token=token)
        return self._parse(normalize_discount, payload)

    async def get_booking(
        self, booking_id: int, *, token: str | None = None
    ) -> ExistingBooking:
        payload = await self._request("GET", f"/v1/bookings/{booking_id}", token=token)
        return self._parse(normalize_existing_booking, payload)

    async def preview_pricing(
        self, request: PreviewRequest, *, token: str | None = None
    ) -> PreviewResult:
        payload = await self._request(
            "POST",
            "/v1/bookings/preview",
            token=token,
            json=request.model_dump(mode="json", by_alias=True, exclude_none=True),
        )
        return self._parse(normalize_preview, payload, currency=request.currency)

    async def create_booking(
        self, submission: BookingFormSubmission, *, token: str | None = None
    ) -> BookingResult:
        payload = await self._request(
            "POST",
            "/v1/bookings",
            token=token,
            json=submission.model_dump(mode="json", by_alias=True),
        )
        return self._parse(normalize_booking_result, payload)

    async def update_booking(
        self,
        booking_id: int,
        submission: BookingFormSubmission,
        *,
        token: str | None = None,
    ) -> BookingResult:
        payload = await self._request(
            "PUT",
            f"/v1/bookings/{booking_id}",
            token=token,
            json=submission.model_dump(mode="json", by_alias=True),
        )
        return self._parse(normalize_booking_result, payload)

    async def _request(
        self,
        method: str,
        path: str,
        *,
        token: str | None = None,
        params: dict[str, Any] | None = None,
        json: Any = None,
    ) -> Any:
        headers = {"Authorization": f"Bearer {token}"} if token else None
        try:
            response = await self._client.request(
                method, path, params=params, json=json, headers=headers
            )
        except httpx.HTTPError as exc:
            logger.warning("Rental backend %s %s failed: %s", method, path, exc)
            raise BookingApiError(f"Rental backend unreachable: {exc}") from exc

        if response.status_code == 404:
            raise BookingApiNotFound(
                f"{method} {path} returned 404", status_code=response.status_code
            )
        if response.is_error:
            message = _error_message(response)
            logger.warning(
                "Rental backend %s %s returned %s: %s",
                method,
                path,
                response.status_code,
                message,
            )
            raise BookingApiError(message, status_code=response.status_code)
        if response.status_code == 204 or not response.content:
            return {}
        try:
            return response.json()
        except ValueError as exc:
            raise BookingApiError(
                "Rental backend returned a non-JSON body",
                status_code=response.status_code,
            ) from exc

    @staticmethod
    def _collection(payload: Any, name: str) -> list[Any]:
        try:
            return extract_collection(payload, name)
        except PayloadError as exc:
            raise BookingApiError(str(exc)) from exc

    @staticmethod
    def _parse(normalizer: Any, payload: Any, **kwargs: Any) -> Any:
        try:
            return normalizer(payload, **kwargs)
        except PayloadError as exc:
            raise BookingApiError(str(exc)) from exc


def _error_message(response: httpx.Response) -> str:
    """Best human-readable message from an error response."""
    fallback = f"Request failed with status {response.status_code}"
    try:
        data = response.json()
    except ValueError:
        return response.text.strip() or fallback
    if not isinstance(data, dict):
        return fallback
    if isinstance(data.get("message"), str) and data["message"]:
        return data["message"]
    errors = data.get("errors")
    if isinstance(errors, list) and errors:
        return ", ".join(
            str(item.get("message", item)) if isinstance(item, dict) else str(item)
            for item in errors
        )
    violations = data.get("violations")
    if isinstance(violations, list) and violations:
        return ", ".join(
            f"{item.get('field')}: {item.get('message')}"
            for item in violations
            if isinstance(item, dict)
        )
    if isinstance(data.get("error"), str) and data["error"]:
        return data["error"]
    return fallback


__all__ = ["BookingApiClient", "BookingApiError", "BookingApiNotFound"]
