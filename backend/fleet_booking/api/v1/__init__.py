"""Versioned API router."""

from fastapi import APIRouter

from . import booking_forms, health

router = APIRouter()
router.include_router(health.router, prefix="/health", tags=["health"])
router.include_router(booking_forms.router, tags=["booking-forms"])

__all__ = ["router"]
