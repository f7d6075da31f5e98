"""Multi-step booking wizard navigation."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime

from fleet_booking.services.pricing_service import as_utc


class WizardStep(str, enum.Enum):
    """Steps a booking form can contain."""

    RESERVATION_DETAILS = "reservation_details"
    CUSTOMER_INFORMATION = "customer_information"
    LOGISTICS = "logistics"
    PRICING_OVERVIEW = "pricing_overview"


class WizardFlow(str, enum.Enum):
    """Step layouts; the compact flow skips customer information."""

    FULL = "full"
    COMPACT = "compact"


FLOW_STEPS: dict[WizardFlow, tuple[WizardStep, ...]] = {
    WizardFlow.FULL: (
        WizardStep.RESERVATION_DETAILS,
        WizardStep.CUSTOMER_INFORMATION,
        WizardStep.LOGISTICS,
        WizardStep.PRICING_OVERVIEW,
    ),
    WizardFlow.COMPACT: (
        WizardStep.RESERVATION_DETAILS,
        WizardStep.LOGISTICS,
        WizardStep.PRICING_OVERVIEW,
    ),
}


@dataclass(frozen=True, slots=True)
class StepInputs:
    """Form values the step predicates read."""

    vehicle_id: int | None = None
    start_at: datetime | None = None
    end_at: datetime | None = None
    duration_days: int = 0
    guest_email: str = ""
    guest_phone: str = ""
    pickup_location: str = ""
    dropoff_location: str = ""


def step_errors(step: WizardStep, inputs: StepInputs) -> list[str]:
    """Reasons ``step`` may not be left in the forward direction."""
    errors: list[str] = []
    if step is WizardStep.RESERVATION_DETAILS:
        if inputs.vehicle_id is None:
            errors.append("Please select a vehicle for this booking.")
        if inputs.start_at is None or inputs.end_at is None:
            errors.append("Start and end dates are required.")
        elif as_utc(inputs.start_at) >= as_utc(inputs.end_at):
            errors.append("Start date must be earlier than end date.")
        elif inputs.duration_days <= 0:
            errors.append("Rental duration must be at least one day.")
    elif step is WizardStep.CUSTOMER_INFORMATION:
        if not inputs.guest_email.strip() and not inputs.guest_phone.strip():
            errors.append("Provide an email address or a phone number.")
    elif step is WizardStep.LOGISTICS:
        if not inputs.pickup_location.strip():
            errors.append("Pickup location is required.")
        if not inputs.dropoff_location.strip():
            errors.append("Dropoff location is required.")
    return errors


def can_proceed(step: WizardStep, inputs: StepInputs) -> bool:
    # The pricing overview is gated by the preview machine instead.
    return not step_errors(step, inputs)


@dataclass
class Wizard:
    """Step cursor that only gates forward movement."""

    flow: WizardFlow = WizardFlow.FULL
    current_step: int = 0
    validated_steps: set[int] = field(default_factory=set)
    visited_steps: set[int] = field(default_factory=lambda: {0})

    @property
    def steps(self) -> tuple[WizardStep, ...]:
        return FLOW_STEPS[self.flow]

    @property
    def current(self) -> WizardStep:
        return self.steps[self.current_step]

    @property
    def is_terminal(self) -> bool:
        return self.current_step == len(self.steps) - 1

    def can_proceed(self, inputs: StepInputs) -> bool:
        return can_proceed(self.current, inputs)

    def next(self, inputs: StepInputs) -> bool:
        """Advance one step when the current step's predicate passes."""
        if self.is_terminal or not self.can_proceed(inputs):
            return False
        self.validated_steps.add(self.current_step)
        self.current_step += 1
        self.visited_steps.add(self.current_step)
        return True

    def previous(self) -> bool:
        if self.current_step == 0:
            return False
        self.current_step -= 1
        return True

    def go_to(self, index: int) -> bool:
        """Jump to a step through the progress indicator.

        Earlier and visited steps are always reachable; steps never reached
        through ``next`` are not, since that would skip their validation.
        """
        if not 0 <= index < len(self.steps):
            return False
        if index > self.current_step and index not in self.visited_steps:
            return False
        self.current_step = index
        return True

    def should_submit_on_enter(self) -> bool:
        """Enter submits the form only from the final step."""
        return self.is_terminal


__all__ = [
    "FLOW_STEPS",
    "StepInputs",
    "Wizard",
    "WizardFlow",
    "WizardStep",
    "can_proceed",
    "step_errors",
]
