"""Catalog reference data consumed by the booking form."""

from __future__ import annotations

import enum
from decimal import Decimal

from pydantic import ConfigDict, Field

from fleet_booking.schemas.base import CamelModel


class DiscountType(str, enum.Enum):
    """How a discount value is interpreted."""

    PERCENTAGE = "PERCENTAGE"
    FIXED = "FIXED"


class PackageModifierType(str, enum.Enum):
    """How a package price modifier is interpreted."""

    PERCENTAGE = "PERCENTAGE"
    FIXED = "FIXED"


class Offering(CamelModel):
    """Selectable add-on item, fetched once per form session."""

    id: int
    name: str
    unit_price: Decimal = Field(default=Decimal("0"), ge=Decimal("0"))
    is_mandatory: bool = False
    max_quantity_per_booking: int | None = Field(default=None, ge=0)
    offering_type: str | None = None
    description: str | None = None

    model_config = ConfigDict(frozen=True)


class Package(CamelModel):
    """Rental package modifying the vehicle rate and bundling offerings."""

    id: int
    name: str
    price_modifier: Decimal = Decimal("1")
    modifier_type: PackageModifierType = PackageModifierType.PERCENTAGE
    allow_discount_on_modifier: bool | None = None
    included_offering_ids: frozenset[int] = frozenset()
    min_rental_days: int = 0

    model_config = ConfigDict(frozen=True)


class Discount(CamelModel):
    """Discount applied against the booking subtotal."""

    id: int
    code: str
    type: DiscountType
    value: Decimal = Field(ge=Decimal("0"))

    model_config = ConfigDict(frozen=True)


class Vehicle(CamelModel):
    """Vehicle with its daily rental rate, when one is configured."""

    id: int
    name: str
    daily_rate: Decimal | None = None

    model_config = ConfigDict(frozen=True)


class Catalog(CamelModel):
    """Offerings available to a form session plus the mandatory subset."""

    offerings: tuple[Offering, ...] = ()
    mandatory_ids: frozenset[int] = frozenset()

    model_config = ConfigDict(frozen=True)

    def by_id(self) -> dict[int, Offering]:
        return {offering.id: offering for offering in self.offerings}

    def effective_mandatory_ids(self) -> frozenset[int]:
        """Mandatory ids from the dedicated listing and the per-offering flag."""
        flagged = {offering.id for offering in self.offerings if offering.is_mandatory}
        return frozenset(self.mandatory_ids | flagged)
