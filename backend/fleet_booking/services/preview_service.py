"""Preview-then-confirm protocol for booking submissions.

The local estimate gives instant feedback, but only the backend can price
taxes, deposits, loyalty effects and availability. A submission therefore
runs in two phases: the first submit requests a server preview, and only a
valid preview computed for the current inputs can be confirmed into a real
create or update mutation.

Each outgoing request is tagged with a ticket holding a sequence number and
the fingerprint of the inputs it was built from. Any input change resets the
machine and forgets the outstanding ticket, so a late response for stale
inputs is discarded instead of being applied.
"""

from __future__ import annotations

import enum
import logging
from collections.abc import Hashable
from dataclasses import dataclass, replace

from fleet_booking.schemas.pricing import PreviewResult, PricingSummary

logger = logging.getLogger(__name__)


class PreviewStatus(str, enum.Enum):
    """Lifecycle states of a form submission."""

    IDLE = "idle"
    PREVIEWING = "previewing"
    PREVIEWED_VALID = "previewed_valid"
    PREVIEWED_INVALID = "previewed_invalid"
    COMMITTING = "committing"
    COMMITTED = "committed"


class TerminalAction(str, enum.Enum):
    """Meaning of the wizard's final button."""

    PREVIEW = "preview"
    CONFIRM = "confirm"
    BUSY = "busy"
    DONE = "done"


class RequestPhase(str, enum.Enum):
    PREVIEW = "preview"
    COMMIT = "commit"


@dataclass(frozen=True, slots=True)
class PreviewTicket:
    """Tag identifying one in-flight request."""

    sequence: int
    fingerprint: Hashable
    phase: RequestPhase


@dataclass(frozen=True, slots=True)
class PreviewState:
    """Snapshot of the machine."""

    status: PreviewStatus = PreviewStatus.IDLE
    fingerprint: Hashable | None = None
    result: PreviewResult | None = None
    errors: tuple[str, ...] = ()
    warnings: tuple[str, ...] = ()
    last_error: str | None = None

    @property
    def is_busy(self) -> bool:
        return self.status in (PreviewStatus.PREVIEWING, PreviewStatus.COMMITTING)

    @property
    def confirmed_summary(self) -> PricingSummary | None:
        if self.status is not PreviewStatus.PREVIEWED_VALID or self.result is None:
            return None
        return self.result.pricing_summary


_TERMINAL_ACTIONS: dict[PreviewStatus, TerminalAction] = {
    PreviewStatus.IDLE: TerminalAction.PREVIEW,
    PreviewStatus.PREVIEWING: TerminalAction.BUSY,
    PreviewStatus.PREVIEWED_VALID: TerminalAction.CONFIRM,
    PreviewStatus.PREVIEWED_INVALID: TerminalAction.PREVIEW,
    PreviewStatus.COMMITTING: TerminalAction.BUSY,
    PreviewStatus.COMMITTED: TerminalAction.DONE,
}


class PreviewMachine:
    """State machine gating a form's terminal action."""

    def __init__(self) -> None:
        self._state = PreviewState()
        self._sequence = 0
        self._outstanding: PreviewTicket | None = None

    @property
    def state(self) -> PreviewState:
        return self._state

    @property
    def status(self) -> PreviewStatus:
        return self._state.status

    @property
    def terminal_action(self) -> TerminalAction:
        return _TERMINAL_ACTIONS[self._state.status]

    @property
    def terminal_enabled(self) -> bool:
        return self._state.status in (
            PreviewStatus.IDLE,
            PreviewStatus.PREVIEWED_VALID,
        )

    def reset(self) -> None:
        """Discard any preview or outstanding request after an input change."""
        if self._state.status is not PreviewStatus.IDLE or self._outstanding:
            logger.debug(
                "Resetting preview state from %s", self._state.status.value
            )
        self._state = PreviewState()
        self._outstanding = None

    def begin_preview(self, fingerprint: Hashable) -> PreviewTicket | None:
        """Start a preview request; ``None`` when a preview is not allowed."""
        if self._state.status is not PreviewStatus.IDLE:
            return None
        ticket = self._issue(fingerprint, RequestPhase.PREVIEW)
        self._state = PreviewState(
            status=PreviewStatus.PREVIEWING, fingerprint=fingerprint
        )
        return ticket

    def resolve_preview(self, ticket: PreviewTicket, result: PreviewResult) -> bool:
        """Apply a preview response; stale responses are dropped."""
        if not self._accept(ticket, RequestPhase.PREVIEW):
            return False
        validation = result.validation
        if validation.is_valid and result.pricing_summary is not None:
            self._state = PreviewState(
                status=PreviewStatus.PREVIEWED_VALID,
                fingerprint=ticket.fingerprint,
                result=result,
                warnings=validation.warnings,
            )
        else:
            errors = validation.errors
            if not errors:
                errors = ("Preview did not return a pricing summary",)
            self._state = PreviewState(
                status=PreviewStatus.PREVIEWED_INVALID,
                fingerprint=ticket.fingerprint,
                result=result,
                errors=errors,
                warnings=validation.warnings,
            )
        return True

    def fail_preview(self, ticket: PreviewTicket, message: str) -> bool:
        """Return to idle after a transport failure, keeping the message."""
        if not self._accept(ticket, RequestPhase.PREVIEW):
            return False
        self._state = PreviewState(last_error=message)
        return True

    def begin_commit(self, fingerprint: Hashable) -> PreviewTicket | None:
        """Start the mutation for a confirmed preview of ``fingerprint``."""
        if self._state.status is not PreviewStatus.PREVIEWED_VALID:
            return None
        if fingerprint != self._state.fingerprint:
            logger.warning("Confirmed preview does not match current inputs")
            self.reset()
            return None
        ticket = self._issue(fingerprint, RequestPhase.COMMIT)
        self._state = replace(
            self._state, status=PreviewStatus.COMMITTING, last_error=None
        )
        return ticket

    def resolve_commit(self, ticket: PreviewTicket) -> bool:
        if not self._accept(ticket, RequestPhase.COMMIT):
            return False
        self._state = replace(self._state, status=PreviewStatus.COMMITTED)
        return True

    def fail_commit(self, ticket: PreviewTicket, message: str) -> bool:
        """Keep the confirmed preview so the user can retry the commit."""
        if not self._accept(ticket, RequestPhase.COMMIT):
            return False
        self._state = replace(
            self._state, status=PreviewStatus.PREVIEWED_VALID, last_error=message
        )
        return True

    def _issue(self, fingerprint: Hashable, phase: RequestPhase) -> PreviewTicket:
        self._sequence += 1
        ticket = PreviewTicket(
            sequence=self._sequence, fingerprint=fingerprint, phase=phase
        )
        self._outstanding = ticket
        return ticket

    def _accept(self, ticket: PreviewTicket, phase: RequestPhase) -> bool:
        if self._outstanding != ticket or ticket.phase is not phase:
            logger.debug(
                "Discarding stale %s response (sequence %s)",
                ticket.phase.value,
                ticket.sequence,
            )
            return False
        self._outstanding = None
        return True


__all__ = [
    "PreviewMachine",
    "PreviewState",
    "PreviewStatus",
    "PreviewTicket",
    "RequestPhase",
    "TerminalAction",
]
