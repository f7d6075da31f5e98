"""Pricing schema definitions."""

from __future__ import annotations

from decimal import Decimal

from pydantic import ConfigDict, Field

from fleet_booking.schemas.base import CamelModel
from fleet_booking.schemas.catalog import DiscountType


class PricingLineRead(CamelModel):
    """Offering line within a local breakdown."""

    offering_id: int
    name: str
    quantity: int
    billable_quantity: int
    unit_price: Decimal
    amount: Decimal
    included: bool

    model_config = ConfigDict(from_attributes=True)


class PricingBreakdownRead(CamelModel):
    """Locally estimated breakdown."""

    duration_days: Decimal
    vehicle_charge: Decimal
    package_charge: Decimal
    offering_charge: Decimal
    discount_amount: Decimal
    subtotal: Decimal
    total: Decimal
    lines: list[PricingLineRead] = Field(default_factory=list)
    included_offering_names: list[str] = Field(default_factory=list)

    model_config = ConfigDict(from_attributes=True)


class _Canonical(CamelModel):
    model_config = ConfigDict(frozen=True, extra="forbid")


class ValidationResult(_Canonical):
    """Server verdict on a previewed combination."""

    is_valid: bool
    errors: tuple[str, ...] = ()
    warnings: tuple[str, ...] = ()


class VehicleRentalSummary(_Canonical):
    vehicle_id: int | None = None
    vehicle_name: str
    days: Decimal
    daily_rate: Decimal
    amount: Decimal


class PackageSummary(_Canonical):
    package_id: int
    package_name: str
    price_modifier: Decimal
    amount_before_package: Decimal
    package_discount: Decimal
    amount_after_package: Decimal


class OfferingSummary(_Canonical):
    offering_id: int | None = None
    offering_name: str
    quantity: int
    unit_price: Decimal
    amount: Decimal


class DiscountSummary(_Canonical):
    discount_id: int | None = None
    discount_code: str
    discount_type: DiscountType
    discount_value: Decimal
    discount_amount: Decimal


class LoyaltyInfo(_Canonical):
    available_points: int = 0
    max_points_discount: Decimal = Decimal("0")
    is_eligible_for_redemption: bool = False


class PricingSummary(_Canonical):
    """Authoritative pricing returned by the preview endpoint."""

    vehicle_rentals: tuple[VehicleRentalSummary, ...] = ()
    total_vehicle_rental_amount: Decimal
    package_summary: PackageSummary | None = None
    offerings: tuple[OfferingSummary, ...] = ()
    total_offerings_amount: Decimal
    discounts: tuple[DiscountSummary, ...] = ()
    subtotal: Decimal
    total_discount_amount: Decimal
    tax_amount: Decimal
    service_fee_amount: Decimal
    grand_total: Decimal
    due_at_booking: Decimal
    due_at_pickup: Decimal
    currency: str

    @property
    def package_charge(self) -> Decimal:
        if self.package_summary is not None:
            return self.package_summary.amount_after_package
        return self.total_vehicle_rental_amount


class PreviewResult(_Canonical):
    """Normalized preview response."""

    validation: ValidationResult
    pricing_summary: PricingSummary | None = None
    loyalty: LoyaltyInfo | None = None
