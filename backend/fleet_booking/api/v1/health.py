"""Health check endpoints."""

from datetime import UTC, datetime
from typing import Any

from fastapi import APIRouter, Request

from fleet_booking.core.config import get_settings

router = APIRouter()


@router.get("", summary="Service health status")
async def healthcheck(request: Request) -> dict[str, Any]:
    """Report service metadata and the number of open booking forms.

    The rental backend is not called; only its configured address is shown.
    """
    settings = get_settings()
    store = getattr(request.app.state, "form_store", None)
    return {
        "status": "ok",
        "service": settings.app_name,
        "environment": settings.app_env,
        "bookingApi": settings.booking_api_base_url,
        "openForms": len(store) if store is not None else 0,
        "checkedAt": datetime.now(UTC).isoformat(),
    }
