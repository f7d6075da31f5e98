"""Booking form session: selections, local pricing, wizard and submission."""

from __future__ import annotations

import enum
import logging
from collections.abc import Callable, Hashable, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from types import MappingProxyType

from fleet_booking.integrations.booking_api_client import (
    BookingApiClient,
    BookingApiError,
)
from fleet_booking.schemas.booking import (
    BookingFormSubmission,
    BookingResult,
    ExistingBooking,
    OfferingBookingRequest,
    OfferingLine,
    PreviewRequest,
    VehicleBookingRequest,
)
from fleet_booking.schemas.catalog import Catalog, Discount, Offering, Package, Vehicle
from fleet_booking.schemas.pricing import PricingBreakdownRead, PricingSummary
from fleet_booking.services import offering_service
from fleet_booking.services.offering_service import OfferingSelection
from fleet_booking.services.preview_service import PreviewMachine, PreviewStatus
from fleet_booking.services.pricing_service import (
    PricingBreakdown,
    calculate_breakdown,
    rental_days,
    round2,
)
from fleet_booking.services.wizard_service import (
    StepInputs,
    Wizard,
    WizardFlow,
    WizardStep,
    step_errors,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class SessionContext:
    """Caller identity and preferences, fixed for the life of a form."""

    user_id: str | None = None
    locale: str = "en"
    currency: str = "MYR"
    access_token: str | None = None


class SubmitResult(str, enum.Enum):
    BLOCKED = "blocked"
    IGNORED = "ignored"
    PREVIEWED = "previewed"
    PREVIEW_INVALID = "preview_invalid"
    PREVIEW_FAILED = "preview_failed"
    COMMITTED = "committed"
    COMMIT_FAILED = "commit_failed"
    STALE = "stale"


@dataclass(slots=True)
class SubmitOutcome:
    """What one press of the terminal button did."""

    result: SubmitResult
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    booking: BookingResult | None = None


class BookingForm:
    """One booking form session.

    Pricing-relevant inputs are only changed through the setters below. A
    setter that changes the pricing fingerprint resets the preview machine,
    so a confirmed preview never outlives the inputs it was computed for.
    """

    def __init__(
        self,
        catalog: Catalog,
        context: SessionContext,
        *,
        flow: WizardFlow = WizardFlow.FULL,
        booking_id: int | None = None,
    ) -> None:
        self.catalog = catalog
        self.context = context
        self.booking_id = booking_id
        self.machine = PreviewMachine()
        self.wizard = Wizard(flow=flow)

        self.vehicle: Vehicle | None = None
        self.start_at: datetime | None = None
        self.end_at: datetime | None = None
        self.package: Package | None = None
        self.discount: Discount | None = None
        self.guest_email = ""
        self.guest_phone = ""
        self.pickup_location = ""
        self.dropoff_location = ""
        self.insurance_policy = ""
        self.committed: BookingResult | None = None

        self._offerings = catalog.by_id()
        self._mandatory_ids = catalog.effective_mandatory_ids()
        self._selections: dict[int, OfferingSelection] = offering_service.reconcile_mandatory(
            {}, self._offerings, self._mandatory_ids
        )
        self._breakdown_cache: tuple[Hashable, PricingBreakdown] | None = None

    @classmethod
    def from_booking(
        cls,
        booking: ExistingBooking,
        catalog: Catalog,
        context: SessionContext,
        *,
        vehicle: Vehicle | None = None,
        package: Package | None = None,
        discount: Discount | None = None,
        flow: WizardFlow = WizardFlow.FULL,
    ) -> BookingForm:
        """Initialise the edit flow from an existing booking."""
        form = cls(catalog, context, flow=flow, booking_id=booking.id)
        form.vehicle = vehicle
        form.start_at = booking.start_date
        form.end_at = booking.end_date
        form.package = package
        form.discount = discount
        form.guest_email = booking.guest_email or ""
        form.guest_phone = booking.guest_phone or ""
        form.pickup_location = booking.pickup_location
        form.dropoff_location = booking.dropoff_location
        form.insurance_policy = booking.insurance_policy

        selections = dict(form._selections)
        for booked in booking.offerings:
            offering = form._offerings.get(booked.offering_id)
            if offering is None:
                logger.warning(
                    "Booking %s references unknown offering %s",
                    booking.id,
                    booked.offering_id,
                )
                continue
            selections[booked.offering_id] = OfferingSelection(
                offering=offering, quantity=booked.quantity
            )
        form._selections = offering_service.reconcile_package_inclusion(
            selections, form._offerings, form.included_ids
        )
        return form

    @property
    def selections(self) -> Mapping[int, OfferingSelection]:
        return MappingProxyType(self._selections)

    @property
    def mandatory_ids(self) -> frozenset[int]:
        return self._mandatory_ids

    @property
    def included_ids(self) -> frozenset[int]:
        if self.package is None:
            return frozenset()
        return self.package.included_offering_ids

    @property
    def duration_days(self) -> int:
        return rental_days(self.start_at, self.end_at)

    @property
    def fingerprint(self) -> Hashable:
        """Snapshot of every input the price depends on."""
        vehicle = self.vehicle
        package = self.package
        discount = self.discount
        return (
            (vehicle.id, vehicle.daily_rate) if vehicle else None,
            self.start_at,
            self.end_at,
            (
                package.id,
                package.price_modifier,
                package.modifier_type,
                package.allow_discount_on_modifier,
                package.included_offering_ids,
            )
            if package
            else None,
            (discount.id, discount.code, discount.type, discount.value)
            if discount
            else None,
            tuple(
                sorted(
                    (offering_id, item.quantity, item.included)
                    for offering_id, item in self._selections.items()
                )
            ),
        )

    @property
    def breakdown(self) -> PricingBreakdown:
        """Local estimate, recomputed only when the fingerprint changes."""
        fingerprint = self.fingerprint
        cached = self._breakdown_cache
        if cached is not None and cached[0] == fingerprint:
            return cached[1]
        breakdown = calculate_breakdown(
            duration_days=self.duration_days,
            vehicle_daily_rate=self.vehicle.daily_rate if self.vehicle else None,
            selections=self._selections,
            package=self.package,
            discount=self.discount,
        )
        self._breakdown_cache = (fingerprint, breakdown)
        return breakdown

    def ordered_selections(self) -> list[OfferingSelection]:
        return offering_service.display_order(self._selections)

    def search_offerings(self, term: str) -> list[Offering]:
        return offering_service.search(self.catalog.offerings, term)

    # Pricing-relevant setters

    def set_vehicle(self, vehicle: Vehicle | None) -> None:
        self._change(lambda: setattr(self, "vehicle", vehicle))

    def set_dates(self, start_at: datetime | None, end_at: datetime | None) -> None:
        def apply() -> None:
            self.start_at = start_at
            self.end_at = end_at

        self._change(apply)

    def set_package(self, package: Package | None) -> None:
        def apply() -> None:
            self.package = package
            self._selections = offering_service.reconcile_package_inclusion(
                self._selections, self._offerings, self.included_ids
            )

        self._change(apply)

    def set_discount(self, discount: Discount | None) -> None:
        self._change(lambda: setattr(self, "discount", discount))

    def toggle_offering(self, offering_id: int, selected: bool) -> None:
        def apply() -> None:
            self._selections = offering_service.toggle(
                self._selections,
                self._offerings,
                offering_id,
                selected,
                mandatory_ids=self._mandatory_ids,
                included_ids=self.included_ids,
            )

        self._change(apply)

    def set_offering_quantity(self, offering_id: int, quantity: int) -> None:
        def apply() -> None:
            self._selections = offering_service.set_quantity(
                self._selections,
                offering_id,
                quantity,
                mandatory_ids=self._mandatory_ids,
            )

        self._change(apply)

    def _change(self, apply: Callable[[], None]) -> None:
        before = self.fingerprint
        apply()
        if self.fingerprint != before:
            self.machine.reset()

    # Inputs outside the price

    def set_customer(self, *, guest_email: str = "", guest_phone: str = "") -> None:
        self.guest_email = guest_email.strip()
        self.guest_phone = guest_phone.strip()

    def set_logistics(
        self,
        *,
        pickup_location: str = "",
        dropoff_location: str = "",
        insurance_policy: str = "",
    ) -> None:
        self.pickup_location = pickup_location.strip()
        self.dropoff_location = dropoff_location.strip()
        self.insurance_policy = insurance_policy.strip()

    # Wizard

    def step_inputs(self) -> StepInputs:
        return StepInputs(
            vehicle_id=self.vehicle.id if self.vehicle else None,
            start_at=self.start_at,
            end_at=self.end_at,
            duration_days=self.duration_days,
            guest_email=self.guest_email,
            guest_phone=self.guest_phone,
            pickup_location=self.pickup_location,
            dropoff_location=self.dropoff_location,
        )

    def next_step(self) -> bool:
        return self.wizard.next(self.step_inputs())

    def previous_step(self) -> bool:
        return self.wizard.previous()

    def go_to_step(self, index: int) -> bool:
        return self.wizard.go_to(index)

    def current_step_errors(self) -> list[str]:
        return step_errors(self.wizard.current, self.step_inputs())

    def local_errors(self) -> list[str]:
        """Problems that block submission before any network call."""
        inputs = self.step_inputs()
        errors: list[str] = []
        for step in self.wizard.steps:
            if step is WizardStep.PRICING_OVERVIEW:
                continue
            errors.extend(step_errors(step, inputs))

        for selection in self.ordered_selections():
            limit = selection.offering.max_quantity_per_booking
            if limit is not None and selection.quantity > limit:
                errors.append(
                    f"{selection.offering.name} allows at most {limit} per booking."
                )

        package = self.package
        days = self.duration_days
        if package is not None and 0 < days < package.min_rental_days:
            errors.append(
                f"{package.name} requires at least {package.min_rental_days} rental days."
            )
        return errors

    # Payloads

    def build_preview_request(self) -> PreviewRequest:
        if self.vehicle is None or self.start_at is None or self.end_at is None:
            raise ValueError("A vehicle and both dates are required for a preview")
        return PreviewRequest(
            vehicles=[
                VehicleBookingRequest(
                    vehicle_id=self.vehicle.id,
                    start_date=self.start_at,
                    end_date=self.end_at,
                    pickup_location=self.pickup_location or None,
                    dropoff_location=self.dropoff_location or None,
                )
            ],
            package_id=self.package.id if self.package else None,
            offerings=[
                OfferingBookingRequest(
                    offering_id=selection.offering_id, quantity=selection.quantity
                )
                for selection in self.ordered_selections()
                if selection.quantity >= 1
            ],
            discount_codes=[self.discount.code] if self.discount else [],
            currency=self.context.currency,
            guest_email=self.guest_email or None,
            guest_phone=self.guest_phone or None,
        )

    def build_submission(
        self, confirmed: PricingSummary | None = None
    ) -> BookingFormSubmission:
        """Payload for the create or update mutation."""
        if self.vehicle is None or self.start_at is None or self.end_at is None:
            raise ValueError("A vehicle and both dates are required for a booking")
        breakdown = self.breakdown
        return BookingFormSubmission(
            vehicle_id=self.vehicle.id,
            package_id=self.package.id if self.package else None,
            discount_id=self.discount.id if self.discount else None,
            start_date=self.start_at,
            end_date=self.end_at,
            total_days=self.duration_days,
            pickup_location=self.pickup_location,
            dropoff_location=self.dropoff_location,
            insurance_policy=self.insurance_policy,
            guest_email=self.guest_email or None,
            guest_phone=self.guest_phone or None,
            currency=self.context.currency,
            offerings=[
                OfferingLine(
                    offering_id=line.offering_id,
                    name=line.name,
                    quantity=line.quantity,
                    included=line.included,
                    unit_price=line.unit_price,
                    total=round2(line.amount),
                )
                for line in breakdown.lines
                if line.quantity >= 1
            ],
            breakdown=PricingBreakdownRead.model_validate(breakdown),
            pricing_summary=confirmed,
        )

    # Submission

    def press_enter(self) -> bool:
        """Whether Enter should submit; suppressed before the final step."""
        return self.wizard.should_submit_on_enter()

    async def submit(self, client: BookingApiClient) -> SubmitOutcome:
        """Run one step of the preview-then-confirm protocol."""
        errors = self.local_errors()
        if errors:
            return SubmitOutcome(SubmitResult.BLOCKED, errors=errors)

        status = self.machine.status
        if status is PreviewStatus.IDLE:
            return await self._preview(client)
        if status is PreviewStatus.PREVIEWED_VALID:
            return await self._commit(client)
        return SubmitOutcome(
            SubmitResult.IGNORED, errors=list(self.machine.state.errors)
        )

    async def _preview(self, client: BookingApiClient) -> SubmitOutcome:
        request = self.build_preview_request()
        ticket = self.machine.begin_preview(self.fingerprint)
        if ticket is None:
            return SubmitOutcome(SubmitResult.IGNORED)
        try:
            result = await client.preview_pricing(
                request, token=self.context.access_token
            )
        except BookingApiError as exc:
            logger.warning("Preview pricing failed: %s", exc)
            if not self.machine.fail_preview(ticket, str(exc)):
                return SubmitOutcome(SubmitResult.STALE)
            return SubmitOutcome(SubmitResult.PREVIEW_FAILED, errors=[str(exc)])

        if not self.machine.resolve_preview(ticket, result):
            return SubmitOutcome(SubmitResult.STALE)
        state = self.machine.state
        if state.status is PreviewStatus.PREVIEWED_VALID:
            return SubmitOutcome(SubmitResult.PREVIEWED, warnings=list(state.warnings))
        return SubmitOutcome(
            SubmitResult.PREVIEW_INVALID,
            errors=list(state.errors),
            warnings=list(state.warnings),
        )

    async def _commit(self, client: BookingApiClient) -> SubmitOutcome:
        confirmed = self.machine.state.confirmed_summary
        ticket = self.machine.begin_commit(self.fingerprint)
        if ticket is None:
            return SubmitOutcome(SubmitResult.STALE)
        submission = self.build_submission(confirmed)
        token = self.context.access_token
        try:
            if self.booking_id is None:
                booking = await client.create_booking(submission, token=token)
            else:
                booking = await client.update_booking(
                    self.booking_id, submission, token=token
                )
        except BookingApiError as exc:
            logger.warning("Booking commit failed: %s", exc)
            self.machine.fail_commit(ticket, str(exc))
            return SubmitOutcome(SubmitResult.COMMIT_FAILED, errors=[str(exc)])

        # Later submits must update this booking rather than create another.
        self.booking_id = booking.booking_id
        self.committed = booking
        if not self.machine.resolve_commit(ticket):
            logger.warning(
                "Booking %s was committed after the form inputs changed",
                booking.booking_id,
            )
        else:
            logger.info("Booking %s committed", booking.booking_id)
        return SubmitOutcome(SubmitResult.COMMITTED, booking=booking)


async def open_form(
    client: BookingApiClient,
    context: SessionContext,
    *,
    flow: WizardFlow = WizardFlow.FULL,
    booking_id: int | None = None,
) -> BookingForm:
    """Fetch the catalog and, for the edit flow, the booking being edited."""
    token = context.access_token
    catalog = await client.load_catalog(token=token)
    if booking_id is None:
        return BookingForm(catalog, context, flow=flow)

    booking = await client.get_booking(booking_id, token=token)
    vehicle = (
        await client.get_vehicle(booking.vehicle_id, token=token)
        if booking.vehicle_id is not None
        else None
    )
    package = (
        await client.get_package(booking.package_id, token=token)
        if booking.package_id is not None
        else None
    )
    discount = (
        await client.get_discount(booking.discount_id, token=token)
        if booking.discount_id is not None
        else None
    )
    return BookingForm.from_booking(
        booking,
        catalog,
        context,
        vehicle=vehicle,
        package=package,
        discount=discount,
        flow=flow,
    )


__all__ = [
    "BookingForm",
    "SessionContext",
    "SubmitOutcome",
    "SubmitResult",
    "open_form",
]
