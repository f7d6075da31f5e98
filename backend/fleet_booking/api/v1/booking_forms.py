"""Booking form session endpoints."""

from __future__ import annotations

import logging
import uuid
from collections.abc import Iterator
from contextlib import contextmanager

from fastapi import APIRouter, HTTPException, status

from fleet_booking.api.deps import ClientDep, ContextDep, FormDep, StoreDep
from fleet_booking.integrations.booking_api_client import (
    BookingApiError,
    BookingApiNotFound,
)
from fleet_booking.schemas.forms import (
    CustomerUpdate,
    DiscountUpdate,
    FormCreate,
    FormView,
    KeypressRead,
    LogisticsUpdate,
    OfferingQuantityUpdate,
    OfferingToggle,
    PackageUpdate,
    PreviewStateRead,
    ReservationUpdate,
    SelectionRead,
    SubmitOutcomeRead,
    SubmitRead,
    WizardRead,
)
from fleet_booking.schemas.pricing import PricingBreakdownRead
from fleet_booking.services.booking_form_service import (
    BookingForm,
    SubmitOutcome,
    open_form,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/booking-forms")


@contextmanager
def _upstream(resource: str) -> Iterator[None]:
    """Translate rental backend failures during lookups into HTTP errors."""
    try:
        yield
    except BookingApiNotFound as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail=f"{resource} not found"
        ) from exc
    except BookingApiError as exc:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=f"Rental backend error while loading {resource.lower()}: {exc}",
        ) from exc


def _view(form_id: uuid.UUID, form: BookingForm) -> FormView:
    state = form.machine.state
    result = state.result
    wizard = form.wizard
    return FormView(
        id=form_id,
        booking_id=form.booking_id,
        vehicle=form.vehicle,
        start_at=form.start_at,
        end_at=form.end_at,
        duration_days=form.duration_days,
        package=form.package,
        discount=form.discount,
        guest_email=form.guest_email,
        guest_phone=form.guest_phone,
        pickup_location=form.pickup_location,
        dropoff_location=form.dropoff_location,
        insurance_policy=form.insurance_policy,
        currency=form.context.currency,
        selections=[
            SelectionRead(
                offering_id=item.offering_id,
                name=item.offering.name,
                quantity=item.quantity,
                included=item.included,
                mandatory=item.offering_id in form.mandatory_ids,
                billable_quantity=item.billable_quantity,
                unit_price=item.offering.unit_price,
                line_total=item.line_total,
            )
            for item in form.ordered_selections()
        ],
        breakdown=PricingBreakdownRead.model_validate(form.breakdown),
        preview=PreviewStateRead(
            status=state.status,
            errors=list(state.errors),
            warnings=list(state.warnings),
            last_error=state.last_error,
            pricing_summary=result.pricing_summary if result else None,
            loyalty=result.loyalty if result else None,
        ),
        terminal_action=form.machine.terminal_action,
        terminal_enabled=form.machine.terminal_enabled,
        wizard=WizardRead(
            flow=wizard.flow,
            steps=list(wizard.steps),
            current_step=wizard.current_step,
            current=wizard.current,
            validated_steps=sorted(wizard.validated_steps),
            visited_steps=sorted(wizard.visited_steps),
            can_proceed=form.wizard.can_proceed(form.step_inputs()),
            step_errors=form.current_step_errors(),
        ),
        local_errors=form.local_errors(),
    )


def _outcome(outcome: SubmitOutcome) -> SubmitOutcomeRead:
    return SubmitOutcomeRead(
        result=outcome.result,
        errors=outcome.errors,
        warnings=outcome.warnings,
        booking=outcome.booking,
    )


@router.post(
    "",
    response_model=FormView,
    status_code=status.HTTP_201_CREATED,
    summary="Open booking form",
)
async def create_form(
    payload: FormCreate,
    client: ClientDep,
    store: StoreDep,
    context: ContextDep,
) -> FormView:
    resource = "Booking" if payload.booking_id is not None else "Catalog"
    with _upstream(resource):
        form = await open_form(
            client, context, flow=payload.flow, booking_id=payload.booking_id
        )
    form_id = store.add(form)
    logger.info("Opened booking form %s (flow=%s)", form_id, payload.flow.value)
    return _view(form_id, form)


@router.get("/{form_id}", response_model=FormView, summary="Get booking form")
async def get_form(form_id: uuid.UUID, form: FormDep) -> FormView:
    return _view(form_id, form)


@router.delete(
    "/{form_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Discard booking form",
)
async def delete_form(form_id: uuid.UUID, form: FormDep, store: StoreDep) -> None:
    store.discard(form_id)
    return None


@router.put(
    "/{form_id}/reservation", response_model=FormView, summary="Set vehicle and dates"
)
async def update_reservation(
    form_id: uuid.UUID,
    payload: ReservationUpdate,
    form: FormDep,
    client: ClientDep,
    context: ContextDep,
) -> FormView:
    vehicle = None
    if payload.vehicle_id is not None:
        if form.vehicle is not None and form.vehicle.id == payload.vehicle_id:
            vehicle = form.vehicle
        else:
            with _upstream("Vehicle"):
                vehicle = await client.get_vehicle(
                    payload.vehicle_id, token=context.access_token
                )
    form.set_vehicle(vehicle)
    form.set_dates(payload.start_at, payload.end_at)
    return _view(form_id, form)


@router.put("/{form_id}/package", response_model=FormView, summary="Set package")
async def update_package(
    form_id: uuid.UUID,
    payload: PackageUpdate,
    form: FormDep,
    client: ClientDep,
    context: ContextDep,
) -> FormView:
    package = None
    if payload.package_id is not None:
        with _upstream("Package"):
            package = await client.get_package(
                payload.package_id, token=context.access_token
            )
    form.set_package(package)
    return _view(form_id, form)


@router.put("/{form_id}/discount", response_model=FormView, summary="Set discount")
async def update_discount(
    form_id: uuid.UUID,
    payload: DiscountUpdate,
    form: FormDep,
    client: ClientDep,
    context: ContextDep,
) -> FormView:
    discount = None
    if payload.discount_id is not None:
        with _upstream("Discount"):
            discount = await client.get_discount(
                payload.discount_id, token=context.access_token
            )
    form.set_discount(discount)
    return _view(form_id, form)


@router.put(
    "/{form_id}/offerings/{offering_id}",
    response_model=FormView,
    summary="Select or deselect an offering",
)
async def toggle_offering(
    form_id: uuid.UUID, offering_id: int, payload: OfferingToggle, form: FormDep
) -> FormView:
    form.toggle_offering(offering_id, payload.selected)
    return _view(form_id, form)


@router.patch(
    "/{form_id}/offerings/{offering_id}",
    response_model=FormView,
    summary="Change offering quantity",
)
async def update_offering_quantity(
    form_id: uuid.UUID,
    offering_id: int,
    payload: OfferingQuantityUpdate,
    form: FormDep,
) -> FormView:
    form.set_offering_quantity(offering_id, payload.quantity)
    return _view(form_id, form)


@router.put("/{form_id}/customer", response_model=FormView, summary="Set contact")
async def update_customer(
    form_id: uuid.UUID, payload: CustomerUpdate, form: FormDep
) -> FormView:
    form.set_customer(
        guest_email=payload.guest_email or "", guest_phone=payload.guest_phone
    )
    return _view(form_id, form)


@router.put("/{form_id}/logistics", response_model=FormView, summary="Set logistics")
async def update_logistics(
    form_id: uuid.UUID, payload: LogisticsUpdate, form: FormDep
) -> FormView:
    form.set_logistics(
        pickup_location=payload.pickup_location,
        dropoff_location=payload.dropoff_location,
        insurance_policy=payload.insurance_policy,
    )
    return _view(form_id, form)


@router.post("/{form_id}/steps/next", response_model=FormView, summary="Next step")
async def next_step(form_id: uuid.UUID, form: FormDep) -> FormView:
    form.next_step()
    return _view(form_id, form)


@router.post(
    "/{form_id}/steps/previous", response_model=FormView, summary="Previous step"
)
async def previous_step(form_id: uuid.UUID, form: FormDep) -> FormView:
    form.previous_step()
    return _view(form_id, form)


@router.post(
    "/{form_id}/steps/{index}", response_model=FormView, summary="Jump to step"
)
async def go_to_step(form_id: uuid.UUID, index: int, form: FormDep) -> FormView:
    if not form.go_to_step(index):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Step has not been reached yet",
        )
    return _view(form_id, form)


@router.post(
    "/{form_id}/keypress/enter",
    response_model=KeypressRead,
    summary="Handle Enter in the form",
)
async def press_enter(
    form_id: uuid.UUID, form: FormDep, client: ClientDep
) -> KeypressRead:
    if not form.press_enter():
        return KeypressRead(submitted=False, form=_view(form_id, form))
    outcome = await form.submit(client)
    return KeypressRead(
        submitted=True, outcome=_outcome(outcome), form=_view(form_id, form)
    )


@router.post("/{form_id}/submit", response_model=SubmitRead, summary="Submit form")
async def submit_form(form_id: uuid.UUID, form: FormDep, client: ClientDep) -> SubmitRead:
    outcome = await form.submit(client)
    logger.info("Booking form %s submit: %s", form_id, outcome.result.value)
    return SubmitRead(outcome=_outcome(outcome), form=_view(form_id, form))
