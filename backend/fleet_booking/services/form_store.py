"""In-memory registry of active booking form sessions."""

from __future__ import annotations

import logging
import uuid
from collections import OrderedDict

from fleet_booking.services.booking_form_service import BookingForm

logger = logging.getLogger(__name__)

_DEFAULT_CAPACITY = 500


class FormStore:
    """Forms keyed by id; the oldest form is evicted once capacity is reached."""

    def __init__(self, capacity: int = _DEFAULT_CAPACITY) -> None:
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        self._capacity = capacity
        self._forms: OrderedDict[uuid.UUID, BookingForm] = OrderedDict()

    def __len__(self) -> int:
        return len(self._forms)

    def __contains__(self, form_id: object) -> bool:
        return form_id in self._forms

    def add(self, form: BookingForm) -> uuid.UUID:
        """Register ``form`` and return its new id."""
        form_id = uuid.uuid4()
        self._forms[form_id] = form
        while len(self._forms) > self._capacity:
            evicted, _ = self._forms.popitem(last=False)
            logger.info("Evicted booking form %s at capacity %s", evicted, self._capacity)
        return form_id

    def get(self, form_id: uuid.UUID) -> BookingForm | None:
        return self._forms.get(form_id)

    def discard(self, form_id: uuid.UUID) -> bool:
        return self._forms.pop(form_id, None) is not None

    def clear(self) -> None:
        """Drop every form (mainly for tests)."""
        self._forms.clear()


__all__ = ["FormStore"]
