"""Local pricing estimate for booking forms."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from decimal import Decimal, ROUND_HALF_UP

from fleet_booking.schemas.catalog import (
    Discount,
    DiscountType,
    Package,
    PackageModifierType,
)
from fleet_booking.services.offering_service import OfferingSelection, display_order

MONEY_PLACES = Decimal("0.01")
_ZERO = Decimal("0.00")
_ONE_DAY = timedelta(days=1)
_NO_TIME = timedelta(0)


@dataclass(slots=True)
class PricingLine:
    """Offering contribution to a breakdown."""

    offering_id: int
    name: str
    quantity: int
    billable_quantity: int
    unit_price: Decimal
    amount: Decimal
    included: bool


@dataclass(slots=True)
class PricingBreakdown:
    """Derived price breakdown; recomputed whenever an input changes."""

    duration_days: Decimal
    vehicle_charge: Decimal
    package_charge: Decimal
    offering_charge: Decimal
    discount_amount: Decimal
    subtotal: Decimal
    total: Decimal
    lines: list[PricingLine] = field(default_factory=list)
    included_offering_names: list[str] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class PackageTerms:
    """Package pricing resolved for the calculator."""

    modifier: Decimal = Decimal("1")
    rate: Decimal | None = None
    allow_discount_on_modifier: bool | None = None


def round2(value: Decimal | float | int | str) -> Decimal:
    """Round to cents, ties away from zero."""
    return _to_decimal(value).quantize(MONEY_PLACES, rounding=ROUND_HALF_UP)


def _to_decimal(value: Decimal | float | int | str) -> Decimal:
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    return Decimal(value)


def as_utc(dt: datetime) -> datetime:
    """Treat naive timestamps as UTC and convert aware ones to UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def rental_days(start_at: datetime | None, end_at: datetime | None) -> int:
    """Whole rental days between two timestamps, partial days rounded up."""
    if start_at is None or end_at is None:
        return 0
    delta = as_utc(end_at) - as_utc(start_at)
    if delta <= _NO_TIME:
        return 0
    # Integer division on timedeltas keeps microseconds exact.
    return -(-delta // _ONE_DAY)


def package_terms(package: Package | None) -> PackageTerms:
    """Resolve a package into a rate modifier or a rate override."""
    if package is None:
        return PackageTerms()
    if package.modifier_type is PackageModifierType.FIXED:
        return PackageTerms(
            rate=_to_decimal(package.price_modifier),
            allow_discount_on_modifier=package.allow_discount_on_modifier,
        )
    return PackageTerms(
        modifier=_to_decimal(package.price_modifier),
        allow_discount_on_modifier=package.allow_discount_on_modifier,
    )


def calculate_breakdown(
    *,
    duration_days: Decimal | int | float,
    vehicle_daily_rate: Decimal | float | None,
    selections: Mapping[int, OfferingSelection],
    package: Package | None = None,
    discount: Discount | None = None,
) -> PricingBreakdown:
    """Produce the local price estimate for the current form inputs."""

    days = _to_decimal(duration_days)
    ordered = display_order(selections)
    included_names = [item.offering.name for item in ordered if item.included]

    if days <= 0:
        return PricingBreakdown(
            duration_days=Decimal("0"),
            vehicle_charge=_ZERO,
            package_charge=_ZERO,
            offering_charge=_ZERO,
            discount_amount=_ZERO,
            subtotal=_ZERO,
            total=_ZERO,
            included_offering_names=included_names,
        )

    rate = _to_decimal(vehicle_daily_rate) if vehicle_daily_rate is not None else _ZERO
    vehicle_charge = round2(rate * days)

    terms = package_terms(package)
    if package is None:
        package_charge = vehicle_charge
    elif terms.rate is not None:
        package_charge = round2(terms.rate * days)
    else:
        package_charge = round2(vehicle_charge * terms.modifier)

    lines: list[PricingLine] = []
    offering_charge = _ZERO
    for selection in ordered:
        unit_price = _to_decimal(selection.offering.unit_price)
        amount = round2(unit_price * selection.billable_quantity)
        offering_charge = round2(offering_charge + amount)
        lines.append(
            PricingLine(
                offering_id=selection.offering_id,
                name=selection.offering.name,
                quantity=selection.quantity,
                billable_quantity=selection.billable_quantity,
                unit_price=unit_price,
                amount=amount,
                included=selection.included,
            )
        )

    subtotal = round2(package_charge + offering_charge)
    discount_amount = _discount_amount(discount, subtotal, terms)
    total = round2(subtotal - discount_amount)

    return PricingBreakdown(
        duration_days=days,
        vehicle_charge=vehicle_charge,
        package_charge=package_charge,
        offering_charge=offering_charge,
        discount_amount=discount_amount,
        subtotal=subtotal,
        total=total,
        lines=lines,
        included_offering_names=included_names,
    )


def _discount_amount(
    discount: Discount | None, subtotal: Decimal, terms: PackageTerms
) -> Decimal:
    if discount is None or terms.allow_discount_on_modifier is False:
        return _ZERO
    value = _to_decimal(discount.value)
    if discount.type is DiscountType.PERCENTAGE:
        raw = subtotal * value / Decimal("100")
    else:
        raw = value
    return round2(max(_ZERO, min(raw, subtotal)))


__all__ = [
    "MONEY_PLACES",
    "PackageTerms",
    "PricingBreakdown",
    "PricingLine",
    "as_utc",
    "calculate_breakdown",
    "package_terms",
    "rental_days",
    "round2",
]
