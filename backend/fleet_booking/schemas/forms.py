"""Booking form API schemas."""

from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal

from pydantic import EmailStr, Field

from fleet_booking.schemas.base import CamelModel
from fleet_booking.schemas.booking import BookingResult
from fleet_booking.schemas.catalog import Discount, Package, Vehicle
from fleet_booking.schemas.pricing import LoyaltyInfo, PricingBreakdownRead, PricingSummary
from fleet_booking.services.booking_form_service import SubmitResult
from fleet_booking.services.preview_service import PreviewStatus, TerminalAction
from fleet_booking.services.wizard_service import WizardFlow, WizardStep


class FormCreate(CamelModel):
    """Open a new form, or an edit form for an existing booking."""

    flow: WizardFlow = WizardFlow.FULL
    booking_id: int | None = None


class ReservationUpdate(CamelModel):
    vehicle_id: int | None = None
    start_at: datetime | None = None
    end_at: datetime | None = None


class PackageUpdate(CamelModel):
    package_id: int | None = None


class DiscountUpdate(CamelModel):
    discount_id: int | None = None


class OfferingToggle(CamelModel):
    selected: bool


class OfferingQuantityUpdate(CamelModel):
    quantity: int


class CustomerUpdate(CamelModel):
    guest_email: EmailStr | None = None
    guest_phone: str = Field(default="", max_length=32)


class LogisticsUpdate(CamelModel):
    pickup_location: str = Field(default="", max_length=255)
    dropoff_location: str = Field(default="", max_length=255)
    insurance_policy: str = Field(default="", max_length=255)


class SelectionRead(CamelModel):
    offering_id: int
    name: str
    quantity: int
    included: bool
    mandatory: bool
    billable_quantity: int
    unit_price: Decimal
    line_total: Decimal


class PreviewStateRead(CamelModel):
    status: PreviewStatus
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    last_error: str | None = None
    pricing_summary: PricingSummary | None = None
    loyalty: LoyaltyInfo | None = None


class WizardRead(CamelModel):
    flow: WizardFlow
    steps: list[WizardStep]
    current_step: int
    current: WizardStep
    validated_steps: list[int]
    visited_steps: list[int]
    can_proceed: bool
    step_errors: list[str] = Field(default_factory=list)


class FormView(CamelModel):
    """Complete state of a booking form after an interaction."""

    id: uuid.UUID
    booking_id: int | None = None
    vehicle: Vehicle | None = None
    start_at: datetime | None = None
    end_at: datetime | None = None
    duration_days: int
    package: Package | None = None
    discount: Discount | None = None
    guest_email: str = ""
    guest_phone: str = ""
    pickup_location: str = ""
    dropoff_location: str = ""
    insurance_policy: str = ""
    currency: str
    selections: list[SelectionRead]
    breakdown: PricingBreakdownRead
    preview: PreviewStateRead
    terminal_action: TerminalAction
    terminal_enabled: bool
    wizard: WizardRead
    local_errors: list[str] = Field(default_factory=list)


class SubmitOutcomeRead(CamelModel):
    result: SubmitResult
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    booking: BookingResult | None = None


class SubmitRead(CamelModel):
    outcome: SubmitOutcomeRead
    form: FormView


class KeypressRead(CamelModel):
    """Result of Enter; ``submitted`` is false before the final step."""

    submitted: bool
    outcome: SubmitOutcomeRead | None = None
    form: FormView
