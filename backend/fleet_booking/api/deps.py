"""Common API dependencies."""

from __future__ import annotations

import uuid
from typing import Annotated

from fastapi import Depends, Header, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from fleet_booking.core.config import Settings, get_settings
from fleet_booking.integrations.booking_api_client import BookingApiClient
from fleet_booking.services.booking_form_service import BookingForm, SessionContext
from fleet_booking.services.form_store import FormStore

bearer_scheme = HTTPBearer(auto_error=False)


def get_booking_client(request: Request) -> BookingApiClient:
    """Shared rental backend client created in the app lifespan."""
    return request.app.state.booking_client


def get_form_store(request: Request) -> FormStore:
    return request.app.state.form_store


def get_session_context(
    settings: Annotated[Settings, Depends(get_settings)],
    credentials: Annotated[
        HTTPAuthorizationCredentials | None, Depends(bearer_scheme)
    ] = None,
    accept_language: Annotated[str | None, Header()] = None,
    x_user_id: Annotated[str | None, Header()] = None,
) -> SessionContext:
    """Build the caller's context; the bearer token is forwarded upstream."""
    locale = settings.default_locale
    if accept_language:
        preferred = accept_language.split(",")[0].split(";")[0].strip()
        if preferred and preferred != "*":
            locale = preferred
    return SessionContext(
        user_id=x_user_id,
        locale=locale,
        currency=settings.default_currency,
        access_token=credentials.credentials if credentials else None,
    )


def get_form(
    form_id: uuid.UUID,
    store: Annotated[FormStore, Depends(get_form_store)],
    context: Annotated[SessionContext, Depends(get_session_context)],
) -> BookingForm:
    """Look up a form opened by the same caller; other callers see a 404."""
    form = store.get(form_id)
    if form is None or not _same_caller(form.context, context):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Booking form not found"
        )
    return form


def _same_caller(owner: SessionContext, caller: SessionContext) -> bool:
    return (
        owner.user_id == caller.user_id
        and owner.access_token == caller.access_token
    )


ClientDep = Annotated[BookingApiClient, Depends(get_booking_client)]
StoreDep = Annotated[FormStore, Depends(get_form_store)]
ContextDep = Annotated[SessionContext, Depends(get_session_context)]
FormDep = Annotated[BookingForm, Depends(get_form)]
