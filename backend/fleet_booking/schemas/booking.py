"""Booking payloads exchanged with the rental backend."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from pydantic import ConfigDict, Field

from fleet_booking.schemas.base import CamelModel
from fleet_booking.schemas.pricing import PricingBreakdownRead, PricingSummary


class VehicleBookingRequest(CamelModel):
    vehicle_id: int
    start_date: datetime
    end_date: datetime
    pickup_location: str | None = None
    dropoff_location: str | None = None


class OfferingBookingRequest(CamelModel):
    offering_id: int
    quantity: int = Field(ge=1)


class PreviewRequest(CamelModel):
    """Body of the preview pricing call."""

    vehicles: list[VehicleBookingRequest]
    package_id: int | None = None
    offerings: list[OfferingBookingRequest] = Field(default_factory=list)
    discount_codes: list[str] = Field(default_factory=list)
    currency: str
    guest_email: str | None = None
    guest_phone: str | None = None


class OfferingLine(CamelModel):
    """Offering line carried by a submission."""

    offering_id: int
    name: str
    quantity: int
    included: bool
    unit_price: Decimal
    total: Decimal


class BookingFormSubmission(CamelModel):
    """Payload handed to the create or update mutation."""

    vehicle_id: int
    package_id: int | None = None
    discount_id: int | None = None
    start_date: datetime
    end_date: datetime
    total_days: int
    pickup_location: str = ""
    dropoff_location: str = ""
    insurance_policy: str = ""
    guest_email: str | None = None
    guest_phone: str | None = None
    currency: str
    offerings: list[OfferingLine] = Field(default_factory=list)
    breakdown: PricingBreakdownRead
    pricing_summary: PricingSummary | None = None


class BookingResult(CamelModel):
    """Booking returned by a create or update mutation."""

    booking_id: int
    status: str | None = None
    grand_total: Decimal | None = None

    model_config = ConfigDict(frozen=True)


class BookedOffering(CamelModel):
    offering_id: int
    quantity: int = 1

    model_config = ConfigDict(frozen=True)


class ExistingBooking(CamelModel):
    """Booking loaded to initialise the edit flow."""

    id: int
    vehicle_id: int | None = None
    package_id: int | None = None
    discount_id: int | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None
    pickup_location: str = ""
    dropoff_location: str = ""
    insurance_policy: str = ""
    guest_email: str | None = None
    guest_phone: str | None = None
    offerings: tuple[BookedOffering, ...] = ()

    model_config = ConfigDict(frozen=True)
