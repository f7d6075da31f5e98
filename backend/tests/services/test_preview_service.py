"""Tests for the preview/confirm state machine."""

from __future__ import annotations

from decimal import Decimal

import pytest

from fleet_booking.schemas.pricing import PreviewResult, PricingSummary, ValidationResult
from fleet_booking.services.preview_service import (
    PreviewMachine,
    PreviewStatus,
    TerminalAction,
)


def _summary() -> PricingSummary:
    return PricingSummary(
        total_vehicle_rental_amount=Decimal("300"),
        total_offerings_amount=Decimal("0"),
        subtotal=Decimal("300"),
        total_discount_amount=Decimal("0"),
        service_fee_amount=Decimal("0"),
        grand_total=Decimal("318"),
        tax_amount=Decimal("18"),
        due_at_booking=Decimal("100"),
        due_at_pickup=Decimal("218"),
        currency="MYR",
    )


def _valid(*warnings: str) -> PreviewResult:
    return PreviewResult(
        validation=ValidationResult(is_valid=True, warnings=warnings),
        pricing_summary=_summary(),
    )


def _invalid(*errors: str) -> PreviewResult:
    return PreviewResult(validation=ValidationResult(is_valid=False, errors=errors))


def test_initial_state_offers_preview() -> None:
    machine = PreviewMachine()
    assert machine.status is PreviewStatus.IDLE
    assert machine.terminal_action is TerminalAction.PREVIEW
    assert machine.terminal_enabled is True


def test_valid_preview_enables_confirm() -> None:
    machine = PreviewMachine()
    ticket = machine.begin_preview("fp-1")
    assert machine.terminal_action is TerminalAction.BUSY
    assert machine.terminal_enabled is False

    assert machine.resolve_preview(ticket, _valid("Needs inspection")) is True
    assert machine.status is PreviewStatus.PREVIEWED_VALID
    assert machine.terminal_action is TerminalAction.CONFIRM
    assert machine.state.warnings == ("Needs inspection",)
    assert machine.state.confirmed_summary == _summary()


def test_invalid_preview_keeps_errors_verbatim() -> None:
    machine = PreviewMachine()
    ticket = machine.begin_preview("fp-1")
    machine.resolve_preview(ticket, _invalid("Discount not combinable", "Vehicle busy"))

    assert machine.status is PreviewStatus.PREVIEWED_INVALID
    assert machine.state.errors == ("Discount not combinable", "Vehicle busy")
    assert machine.terminal_action is TerminalAction.PREVIEW
    assert machine.terminal_enabled is False
    assert machine.state.confirmed_summary is None


def test_valid_verdict_without_summary_is_invalid() -> None:
    machine = PreviewMachine()
    ticket = machine.begin_preview("fp-1")
    machine.resolve_preview(
        ticket, PreviewResult(validation=ValidationResult(is_valid=True))
    )
    assert machine.status is PreviewStatus.PREVIEWED_INVALID
    assert machine.state.errors


def test_second_preview_while_in_flight_is_refused() -> None:
    machine = PreviewMachine()
    assert machine.begin_preview("fp-1") is not None
    assert machine.begin_preview("fp-1") is None


def test_transport_failure_returns_to_idle() -> None:
    machine = PreviewMachine()
    ticket = machine.begin_preview("fp-1")
    assert machine.fail_preview(ticket, "Gateway timeout") is True
    assert machine.status is PreviewStatus.IDLE
    assert machine.state.last_error == "Gateway timeout"
    assert machine.terminal_action is TerminalAction.PREVIEW


@pytest.mark.parametrize(
    "prepare",
    [
        lambda m: None,
        lambda m: m.begin_preview("fp"),
        lambda m: m.resolve_preview(m.begin_preview("fp"), _valid()),
        lambda m: m.resolve_preview(m.begin_preview("fp"), _invalid("no")),
        lambda m: (
            m.resolve_preview(m.begin_preview("fp"), _valid()),
            m.begin_commit("fp"),
        ),
    ],
)
def test_reset_returns_to_idle_from_any_state(prepare) -> None:
    machine = PreviewMachine()
    prepare(machine)
    machine.reset()
    assert machine.status is PreviewStatus.IDLE
    assert machine.state.result is None


def test_late_preview_response_is_discarded() -> None:
    machine = PreviewMachine()
    stale = machine.begin_preview("fp-1")
    machine.reset()

    assert machine.resolve_preview(stale, _valid()) is False
    assert machine.status is PreviewStatus.IDLE

    fresh = machine.begin_preview("fp-2")
    assert machine.resolve_preview(stale, _valid()) is False
    assert machine.status is PreviewStatus.PREVIEWING
    assert machine.resolve_preview(fresh, _valid()) is True
    assert machine.state.fingerprint == "fp-2"


def test_commit_requires_matching_fingerprint() -> None:
    machine = PreviewMachine()
    machine.resolve_preview(machine.begin_preview("fp-1"), _valid())

    assert machine.begin_commit("fp-2") is None
    assert machine.status is PreviewStatus.IDLE


def test_commit_success_and_failure() -> None:
    machine = PreviewMachine()
    machine.resolve_preview(machine.begin_preview("fp-1"), _valid())

    ticket = machine.begin_commit("fp-1")
    assert machine.status is PreviewStatus.COMMITTING
    assert machine.begin_commit("fp-1") is None
    assert machine.fail_commit(ticket, "Vehicle already booked") is True
    assert machine.status is PreviewStatus.PREVIEWED_VALID
    assert machine.state.last_error == "Vehicle already booked"

    ticket = machine.begin_commit("fp-1")
    assert machine.state.last_error is None
    assert machine.resolve_commit(ticket) is True
    assert machine.status is PreviewStatus.COMMITTED
    assert machine.terminal_action is TerminalAction.DONE
    assert machine.terminal_enabled is False


def test_commit_cannot_start_without_valid_preview() -> None:
    machine = PreviewMachine()
    assert machine.begin_commit("fp-1") is None
    machine.resolve_preview(machine.begin_preview("fp-1"), _invalid("no"))
    assert machine.begin_commit("fp-1") is None


def test_preview_ticket_cannot_resolve_commit() -> None:
    machine = PreviewMachine()
    preview_ticket = machine.begin_preview("fp-1")
    assert machine.resolve_commit(preview_ticket) is False
    assert machine.status is PreviewStatus.PREVIEWING
