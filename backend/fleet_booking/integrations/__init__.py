"""Integrations with the rental backend."""

from fleet_booking.integrations.booking_api_client import (
    BookingApiClient,
    BookingApiError,
    BookingApiNotFound,
)

__all__ = ["BookingApiClient", "BookingApiError", "BookingApiNotFound"]
