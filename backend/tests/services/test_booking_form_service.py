"""Tests for booking form sessions."""

from __future__ import annotations

import json
from datetime import UTC, datetime, timedelta
from decimal import Decimal

import pytest

from fleet_booking.schemas.booking import BookedOffering, ExistingBooking
from fleet_booking.schemas.catalog import Vehicle
from fleet_booking.services.booking_form_service import (
    BookingForm,
    SubmitResult,
    open_form,
)
from fleet_booking.services.preview_service import PreviewStatus, TerminalAction
from fleet_booking.services.wizard_service import WizardFlow

pytestmark = pytest.mark.asyncio

START = datetime(2025, 3, 1, 10, tzinfo=UTC)
END = START + timedelta(days=3)


def _fill(form: BookingForm, vehicle) -> None:
    form.set_vehicle(vehicle)
    form.set_dates(START, END)
    form.set_customer(guest_email="guest@example.com")
    form.set_logistics(pickup_location="KLIA Terminal 1", dropoff_location="KL Sentral")


async def test_new_form_selects_mandatory_offerings(form: BookingForm) -> None:
    assert set(form.selections) == {3}
    assert form.selections[3].quantity == 1
    form.toggle_offering(3, False)
    assert 3 in form.selections


async def test_breakdown_tracks_inputs(form: BookingForm, vehicle, family_package, save10) -> None:
    _fill(form, vehicle)
    first = form.breakdown
    assert first.vehicle_charge == Decimal("300.00")
    assert first.offering_charge == Decimal("20.00")
    assert form.breakdown is first

    form.set_package(family_package)
    form.set_discount(save10)
    breakdown = form.breakdown
    assert breakdown is not first
    assert breakdown.package_charge == Decimal("270.00")
    assert form.selections[2].included is True
    assert breakdown.included_offering_names == ["Child Seat"]
    assert breakdown.subtotal == Decimal("290.00")
    assert breakdown.discount_amount == Decimal("29.00")
    assert breakdown.total == Decimal("261.00")


async def test_changing_package_rebills_previous_inclusions(
    form: BookingForm, vehicle, family_package, flat_package
) -> None:
    _fill(form, vehicle)
    form.set_package(family_package)
    form.set_package(flat_package)
    assert form.selections[2].included is False
    assert form.selections[1].included is True
    form.set_package(None)
    assert not any(item.included for item in form.selections.values())


async def test_local_errors_block_submission(form: BookingForm, booking_client, fake_backend) -> None:
    outcome = await form.submit(booking_client)
    assert outcome.result is SubmitResult.BLOCKED
    assert "Please select a vehicle for this booking." in outcome.errors
    assert "Provide an email address or a phone number." in outcome.errors
    assert "Pickup location is required." in outcome.errors
    assert fake_backend.requests == []


async def test_compact_flow_skips_contact_check(catalog, context, vehicle) -> None:
    form = BookingForm(catalog, context, flow=WizardFlow.COMPACT)
    form.set_vehicle(vehicle)
    form.set_dates(START, END)
    form.set_logistics(pickup_location="KLIA", dropoff_location="KLIA")
    assert form.local_errors() == []


async def test_quantity_limit_and_minimum_days(form: BookingForm, vehicle, flat_package) -> None:
    _fill(form, vehicle)
    form.toggle_offering(2, True)
    form.set_offering_quantity(2, 4)
    form.set_package(flat_package)
    form.set_dates(START, START + timedelta(hours=20))
    assert form.local_errors() == [
        "Child Seat allows at most 3 per booking.",
        "Weekend Flat requires at least 2 rental days.",
    ]


async def test_preview_then_confirm_creates_booking(
    form: BookingForm, vehicle, booking_client, fake_backend
) -> None:
    _fill(form, vehicle)
    form.toggle_offering(4, True)

    outcome = await form.submit(booking_client)
    assert outcome.result is SubmitResult.PREVIEWED
    assert outcome.warnings == ["Vehicle requires inspection before pickup"]
    assert form.machine.terminal_action is TerminalAction.CONFIRM

    (preview_call,) = fake_backend.calls("POST", "/api/v1/bookings/preview")
    assert preview_call.headers["Authorization"] == "Bearer tok-123"
    body = json.loads(preview_call.content)
    assert body["vehicles"][0]["vehicleId"] == 10
    assert body["vehicles"][0]["pickupLocation"] == "KLIA Terminal 1"
    assert [line["offeringId"] for line in body["offerings"]] == [3, 4]
    assert body["currency"] == "MYR"
    assert body["discountCodes"] == []

    outcome = await form.submit(booking_client)
    assert outcome.result is SubmitResult.COMMITTED
    assert outcome.booking is not None
    assert outcome.booking.booking_id == 900
    assert outcome.booking.grand_total == Decimal("339.2")
    assert form.machine.status is PreviewStatus.COMMITTED

    (create_call,) = fake_backend.calls("POST", "/api/v1/bookings")
    submission = json.loads(create_call.content)
    assert submission["pricingSummary"]["grandTotal"] == "339.2"
    assert submission["breakdown"]["total"] == "350.00"
    assert {line["offeringId"] for line in submission["offerings"]} == {3, 4}

    outcome = await form.submit(booking_client)
    assert outcome.result is SubmitResult.IGNORED


async def test_zero_quantity_offerings_are_not_sent(
    form: BookingForm, vehicle, booking_client, fake_backend
) -> None:
    _fill(form, vehicle)
    form.toggle_offering(1, True)
    form.set_offering_quantity(1, 0)
    await form.submit(booking_client)
    (preview_call,) = fake_backend.calls("POST", "/api/v1/bookings/preview")
    assert [line["offeringId"] for line in json.loads(preview_call.content)["offerings"]] == [3]


async def test_input_change_after_preview_forces_new_preview(
    form: BookingForm, vehicle, save10, booking_client, fake_backend
) -> None:
    _fill(form, vehicle)
    await form.submit(booking_client)
    assert form.machine.status is PreviewStatus.PREVIEWED_VALID

    form.set_discount(save10)
    assert form.machine.status is PreviewStatus.IDLE

    outcome = await form.submit(booking_client)
    assert outcome.result is SubmitResult.PREVIEWED
    assert len(fake_backend.calls("POST", "/api/v1/bookings/preview")) == 2
    assert fake_backend.calls("POST", "/api/v1/bookings") == []


@pytest.mark.parametrize(
    "change",
    [
        lambda form, package, discount: form.set_vehicle(
            Vehicle(id=11, name="Honda City", daily_rate=Decimal("150"))
        ),
        lambda form, package, discount: form.set_vehicle(None),
        lambda form, package, discount: form.set_dates(START, END + timedelta(days=1)),
        lambda form, package, discount: form.set_package(package),
        lambda form, package, discount: form.set_discount(discount),
        lambda form, package, discount: form.toggle_offering(4, True),
        lambda form, package, discount: form.set_offering_quantity(3, 2),
    ],
    ids=["vehicle", "no-vehicle", "dates", "package", "discount", "toggle", "quantity"],
)
async def test_pricing_input_change_returns_to_idle(
    change, form: BookingForm, vehicle, family_package, save10, booking_client
) -> None:
    _fill(form, vehicle)
    await form.submit(booking_client)
    assert form.machine.status is PreviewStatus.PREVIEWED_VALID

    change(form, family_package, save10)
    assert form.machine.status is PreviewStatus.IDLE
    assert form.machine.terminal_action is TerminalAction.PREVIEW


async def test_rejected_toggle_keeps_preview(form: BookingForm, vehicle, booking_client) -> None:
    _fill(form, vehicle)
    await form.submit(booking_client)
    form.toggle_offering(3, False)
    assert form.machine.status is PreviewStatus.PREVIEWED_VALID


async def test_contact_change_keeps_preview(form: BookingForm, vehicle, booking_client) -> None:
    _fill(form, vehicle)
    await form.submit(booking_client)
    form.set_customer(guest_phone="0123456789")
    assert form.machine.status is PreviewStatus.PREVIEWED_VALID


async def test_stale_preview_response_is_discarded(
    form: BookingForm, vehicle, save10, booking_client, fake_backend
) -> None:
    _fill(form, vehicle)
    fake_backend.before_preview = lambda: form.set_discount(save10)

    outcome = await form.submit(booking_client)
    assert outcome.result is SubmitResult.STALE
    assert form.machine.status is PreviewStatus.IDLE
    assert form.machine.state.result is None


async def test_invalid_preview_blocks_until_inputs_change(
    form: BookingForm, vehicle, save10, booking_client, fake_backend
) -> None:
    _fill(form, vehicle)
    fake_backend.preview_payload = {
        "validation": {
            "isValid": False,
            "errors": ["Vehicle is not available for the selected dates"],
        },
        "pricingSummary": None,
    }

    outcome = await form.submit(booking_client)
    assert outcome.result is SubmitResult.PREVIEW_INVALID
    assert outcome.errors == ["Vehicle is not available for the selected dates"]

    outcome = await form.submit(booking_client)
    assert outcome.result is SubmitResult.IGNORED
    assert len(fake_backend.calls("POST", "/api/v1/bookings/preview")) == 1

    form.set_discount(save10)
    assert form.machine.terminal_action is TerminalAction.PREVIEW
    assert form.machine.terminal_enabled is True


async def test_preview_transport_failure_allows_retry(
    form: BookingForm, vehicle, booking_client, fake_backend
) -> None:
    _fill(form, vehicle)
    fake_backend.preview_status = 503

    outcome = await form.submit(booking_client)
    assert outcome.result is SubmitResult.PREVIEW_FAILED
    assert outcome.errors == ["Pricing engine unavailable"]
    assert form.machine.status is PreviewStatus.IDLE
    assert form.machine.state.last_error == "Pricing engine unavailable"

    fake_backend.preview_status = 200
    outcome = await form.submit(booking_client)
    assert outcome.result is SubmitResult.PREVIEWED


async def test_commit_failure_keeps_confirmed_preview(
    form: BookingForm, vehicle, booking_client, fake_backend
) -> None:
    _fill(form, vehicle)
    await form.submit(booking_client)
    fake_backend.commit_status = 409

    outcome = await form.submit(booking_client)
    assert outcome.result is SubmitResult.COMMIT_FAILED
    assert outcome.errors == ["Vehicle already booked"]
    assert form.machine.status is PreviewStatus.PREVIEWED_VALID

    fake_backend.commit_status = None
    outcome = await form.submit(booking_client)
    assert outcome.result is SubmitResult.COMMITTED


async def test_commit_racing_input_change_still_reports_booking(
    form: BookingForm, vehicle, save10, booking_client, fake_backend
) -> None:
    _fill(form, vehicle)
    await form.submit(booking_client)
    fake_backend.before_commit = lambda: form.set_discount(save10)

    outcome = await form.submit(booking_client)
    assert outcome.result is SubmitResult.COMMITTED
    assert form.machine.status is PreviewStatus.IDLE
    assert form.booking_id == 900

    await form.submit(booking_client)
    fake_backend.before_commit = None
    outcome = await form.submit(booking_client)
    assert outcome.result is SubmitResult.COMMITTED
    assert fake_backend.calls("PUT", "/api/v1/bookings/900")


async def test_from_booking_restores_edit_state(
    catalog, context, vehicle, family_package, save10
) -> None:
    booking = ExistingBooking(
        id=501,
        vehicle_id=10,
        package_id=20,
        discount_id=30,
        start_date=START,
        end_date=END,
        pickup_location="KLIA",
        dropoff_location="KL Sentral",
        guest_email="guest@example.com",
        offerings=(
            BookedOffering(offering_id=2, quantity=2),
            BookedOffering(offering_id=77, quantity=1),
        ),
    )
    form = BookingForm.from_booking(
        booking,
        catalog,
        context,
        vehicle=vehicle,
        package=family_package,
        discount=save10,
    )
    assert form.booking_id == 501
    assert set(form.selections) == {2, 3}
    assert form.selections[2].included is True
    assert form.selections[2].billable_quantity == 1
    assert form.duration_days == 3
    assert form.local_errors() == []


async def test_edit_flow_updates_existing_booking(context, booking_client, fake_backend) -> None:
    form = await open_form(booking_client, context, booking_id=501)
    assert form.vehicle is not None and form.vehicle.name == "Perodua Myvi"
    assert form.package is not None and form.package.included_offering_ids == {2}
    assert form.discount is not None and form.discount.code == "SAVE10"
    assert form.selections[4].quantity == 1

    await form.submit(booking_client)
    outcome = await form.submit(booking_client)
    assert outcome.result is SubmitResult.COMMITTED
    assert outcome.booking is not None and outcome.booking.booking_id == 501
    assert fake_backend.calls("PUT", "/api/v1/bookings/501")
