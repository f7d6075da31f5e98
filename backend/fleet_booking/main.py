"""FastAPI application entrypoint."""

import logging
from contextlib import asynccontextmanager

from asgi_correlation_id import CorrelationIdMiddleware
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from secure import Secure

from fleet_booking.api import api_router
from fleet_booking.core.config import get_settings
from fleet_booking.integrations.booking_api_client import BookingApiClient
from fleet_booking.security.logging_filters import SensitiveFilter
from fleet_booking.services.form_store import FormStore

logger = logging.getLogger(__name__)

settings = get_settings()

_ALLOWED_ORIGINS = [origin for origin in settings.cors_allowlist if origin]
if not _ALLOWED_ORIGINS:
    _ALLOWED_ORIGINS = ["http://localhost:3000"]


@asynccontextmanager
async def lifespan(app: FastAPI):
    client = BookingApiClient(
        settings.booking_api_base_url,
        timeout=settings.booking_api_timeout_seconds,
    )
    app.state.booking_client = client
    app.state.form_store = FormStore(settings.form_session_capacity)
    logger.info("Rental backend at %s", settings.booking_api_base_url)
    try:
        yield
    finally:
        try:
            await client.aclose()
        except Exception:  # pragma: no cover - shutdown is best effort
            logger.exception("Failed to close rental backend client")


app = FastAPI(title=settings.app_name, lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_ALLOWED_ORIGINS,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type", "Accept-Language", "X-Request-ID"],
    expose_headers=["X-Request-ID"],
)
app.add_middleware(CorrelationIdMiddleware, header_name="X-Request-ID")

_secure_headers = Secure()


@app.middleware("http")
async def _apply_security_headers(request, call_next):
    response = await call_next(request)
    _secure_headers.set_headers(response)
    return response


logging.getLogger("fleet_booking").setLevel(settings.log_level.upper())

for _logger_name in ("uvicorn", "uvicorn.access", "uvicorn.error", ""):
    _logger = logging.getLogger(_logger_name)
    if not any(isinstance(flt, SensitiveFilter) for flt in _logger.filters):
        _logger.addFilter(SensitiveFilter())

app.include_router(api_router)
