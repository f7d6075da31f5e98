"""Normalize rental backend payloads into canonical schemas.

The backend has shipped several field names for the same concept over
time (``days`` and ``numberOfDays``, ``amount`` and ``subtotal`` and so
on). The wire models below accept every known variant; nothing past this
module sees anything but the canonical models in ``fleet_booking.schemas``.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime
from decimal import Decimal
from typing import Any

from pydantic import (
    AliasChoices,
    AliasPath,
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
)

from fleet_booking.schemas.booking import BookedOffering, BookingResult, ExistingBooking
from fleet_booking.schemas.catalog import (
    Discount,
    DiscountType,
    Offering,
    Package,
    PackageModifierType,
    Vehicle,
)
from fleet_booking.schemas.pricing import (
    DiscountSummary,
    LoyaltyInfo,
    OfferingSummary,
    PackageSummary,
    PreviewResult,
    PricingSummary,
    ValidationResult,
    VehicleRentalSummary,
)

_ZERO = Decimal("0")

_DISCOUNT_TYPE_ALIASES = {
    "PERCENTAGE": DiscountType.PERCENTAGE,
    "PERCENT": DiscountType.PERCENTAGE,
    "FIXED": DiscountType.FIXED,
    "FIXED_AMOUNT": DiscountType.FIXED,
    "AMOUNT": DiscountType.FIXED,
}


class PayloadError(ValueError):
    """Raised when a backend payload cannot be normalized."""


def _alias(*names: str, default: Any = None) -> Any:
    return Field(default=default, validation_alias=AliasChoices(*names))


def _none_to_list(value: Any) -> Any:
    return [] if value is None else value


def discount_type(value: str | DiscountType) -> DiscountType:
    if isinstance(value, DiscountType):
        return value
    try:
        return _DISCOUNT_TYPE_ALIASES[str(value).strip().upper()]
    except KeyError as exc:
        raise PayloadError(f"Unknown discount type: {value!r}") from exc


class _Wire(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class _WireValidation(_Wire):
    is_valid: bool = _alias("isValid", "valid", default=True)
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)

    @field_validator("errors", "warnings", mode="before")
    @classmethod
    def _empty_lists(cls, value: Any) -> Any:
        return _none_to_list(value)


class _WireVehicleRental(_Wire):
    vehicle_id: int | None = _alias("vehicleId")
    vehicle_name: str = _alias("vehicleName", "name", default="")
    days: Decimal = _alias("days", "numberOfDays", "totalDays", default=_ZERO)
    daily_rate: Decimal = _alias("dailyRate", "baseRate", default=_ZERO)
    amount: Decimal = _alias("amount", "subtotal", "totalAmount", default=_ZERO)


class _WirePackageSummary(_Wire):
    package_id: int = _alias("packageId", "id")
    package_name: str = _alias("packageName", "name", default="")
    price_modifier: Decimal = _alias("priceModifier", default=Decimal("1"))
    amount_before_package: Decimal = _alias("amountBeforePackage", default=_ZERO)
    package_discount: Decimal = _alias("packageDiscount", default=_ZERO)
    amount_after_package: Decimal = _alias("amountAfterPackage", default=_ZERO)


class _WireOffering(_Wire):
    offering_id: int | None = _alias("offeringId", "id")
    offering_name: str = _alias("offeringName", "name", default="")
    quantity: int = 1
    unit_price: Decimal = _alias("unitPrice", "pricePerUnit", "price", default=_ZERO)
    amount: Decimal = _alias("amount", "totalPrice", default=_ZERO)


class _WireDiscount(_Wire):
    discount_id: int | None = _alias("discountId", "id")
    discount_code: str = _alias("discountCode", "code", default="")
    discount_type: str = _alias("discountType", "type", default="FIXED")
    discount_value: Decimal = _alias("discountValue", "value", default=_ZERO)
    discount_amount: Decimal = _alias("discountAmount", default=_ZERO)


class _WireLoyalty(_Wire):
    available_points: int = _alias("availablePoints", default=0)
    max_points_discount: Decimal = _alias("maxPointsDiscount", default=_ZERO)
    is_eligible_for_redemption: bool = _alias(
        "isEligibleForRedemption", default=False
    )


class _WireSummary(_Wire):
    vehicle_rentals: list[_WireVehicleRental] = _alias(
        "vehicleRentals", default=[]
    )
    total_vehicle_rental_amount: Decimal | None = _alias("totalVehicleRentalAmount")
    package_summary: _WirePackageSummary | None = _alias("packageSummary")
    offerings: list[_WireOffering] = Field(default_factory=list)
    total_offerings_amount: Decimal | None = _alias("totalOfferingsAmount")
    discounts: list[_WireDiscount] = Field(default_factory=list)
    subtotal: Decimal = _ZERO
    total_discount_amount: Decimal = _alias("totalDiscountAmount", default=_ZERO)
    tax_amount: Decimal = _alias("taxAmount", default=_ZERO)
    service_fee_amount: Decimal = _alias(
        "serviceFeeAmount", "serviceFee", default=_ZERO
    )
    grand_total: Decimal = _alias("grandTotal", "total", default=_ZERO)
    due_at_booking: Decimal | None = _alias("dueAtBooking")
    due_at_pickup: Decimal = _alias("dueAtPickup", default=_ZERO)
    currency: str = ""

    @field_validator("vehicle_rentals", "offerings", "discounts", mode="before")
    @classmethod
    def _empty_lists(cls, value: Any) -> Any:
        return _none_to_list(value)


class _WirePreview(_Wire):
    pricing_summary: _WireSummary | None = _alias("pricingSummary")
    validation: _WireValidation | None = None
    loyalty: _WireLoyalty | None = _alias("loyaltyInfo", "loyaltyPointsInfo")


def normalize_preview(payload: Mapping[str, Any], *, currency: str = "") -> PreviewResult:
    """Map any known preview response variant onto ``PreviewResult``."""
    try:
        wire = _WirePreview.model_validate(payload)
    except ValidationError as exc:
        raise PayloadError("Malformed preview response") from exc

    validation = wire.validation or _WireValidation()
    summary = _summary(wire.pricing_summary, currency) if wire.pricing_summary else None
    loyalty = None
    if wire.loyalty is not None:
        loyalty = LoyaltyInfo(**wire.loyalty.model_dump())
    return PreviewResult(
        validation=ValidationResult(
            is_valid=validation.is_valid,
            errors=tuple(validation.errors),
            warnings=tuple(validation.warnings),
        ),
        pricing_summary=summary,
        loyalty=loyalty,
    )


def _summary(wire: _WireSummary, currency: str) -> PricingSummary:
    rentals = tuple(
        VehicleRentalSummary(**rental.model_dump()) for rental in wire.vehicle_rentals
    )
    offerings = tuple(
        OfferingSummary(**offering.model_dump()) for offering in wire.offerings
    )
    discounts = tuple(
        DiscountSummary(
            discount_id=item.discount_id,
            discount_code=item.discount_code,
            discount_type=discount_type(item.discount_type),
            discount_value=item.discount_value,
            discount_amount=item.discount_amount,
        )
        for item in wire.discounts
    )
    package = None
    if wire.package_summary is not None:
        package = PackageSummary(**wire.package_summary.model_dump())

    vehicle_total = wire.total_vehicle_rental_amount
    if vehicle_total is None:
        vehicle_total = sum((rental.amount for rental in rentals), _ZERO)
    offerings_total = wire.total_offerings_amount
    if offerings_total is None:
        offerings_total = sum((offering.amount for offering in offerings), _ZERO)
    due_at_booking = wire.due_at_booking
    if due_at_booking is None:
        due_at_booking = wire.grand_total

    return PricingSummary(
        vehicle_rentals=rentals,
        total_vehicle_rental_amount=vehicle_total,
        package_summary=package,
        offerings=offerings,
        total_offerings_amount=offerings_total,
        discounts=discounts,
        subtotal=wire.subtotal,
        total_discount_amount=wire.total_discount_amount,
        tax_amount=wire.tax_amount,
        service_fee_amount=wire.service_fee_amount,
        grand_total=wire.grand_total,
        due_at_booking=due_at_booking,
        due_at_pickup=wire.due_at_pickup,
        currency=wire.currency or currency,
    )


class _WireCatalogOffering(_Wire):
    id: int
    name: str = ""
    unit_price: Decimal = _alias("price", "unitPrice", default=_ZERO)
    is_mandatory: bool = _alias("isMandatory", "mandatory", default=False)
    max_quantity_per_booking: int | None = _alias(
        "maxQuantityPerBooking", "purchaseLimitPerBooking"
    )
    offering_type: str | None = _alias("offeringType", "type")
    description: str | None = None


class _WirePackage(_Wire):
    id: int
    name: str = ""
    price_modifier: Decimal = _alias("priceModifier", default=Decimal("1"))
    modifier_type: PackageModifierType = _alias(
        "modifierType", default=PackageModifierType.PERCENTAGE
    )
    allow_discount_on_modifier: bool | None = _alias("allowDiscountOnModifier")
    offering_ids: list[int] = _alias("offeringIds", "includedOfferingIds", default=[])
    offerings: list[dict[str, Any]] = Field(default_factory=list)
    min_rental_days: int = _alias("minRentalDays", default=0)

    @field_validator("offering_ids", "offerings", mode="before")
    @classmethod
    def _empty_lists(cls, value: Any) -> Any:
        return _none_to_list(value)

    @field_validator("modifier_type", mode="before")
    @classmethod
    def _default_modifier(cls, value: Any) -> Any:
        return PackageModifierType.PERCENTAGE if value is None else value


class _WireDiscountEntity(_Wire):
    id: int
    code: str = ""
    type: str = _alias("type", "discountType", default="FIXED")
    value: Decimal = _ZERO


class _WireVehicle(_Wire):
    id: int
    name: str = ""
    make: str = ""
    model: str = ""
    daily_rate: Decimal | None = _alias(
        "dailyRate", "baseRate", AliasPath("pricing", "baseRate")
    )


def normalize_offering(raw: Mapping[str, Any]) -> Offering:
    wire = _validate(_WireCatalogOffering, raw, "offering")
    return Offering(**wire.model_dump())


def normalize_package(raw: Mapping[str, Any]) -> Package:
    wire = _validate(_WirePackage, raw, "package")
    included = set(wire.offering_ids)
    included.update(
        int(item["id"]) for item in wire.offerings if item.get("id") is not None
    )
    return Package(
        id=wire.id,
        name=wire.name,
        price_modifier=wire.price_modifier,
        modifier_type=wire.modifier_type,
        allow_discount_on_modifier=wire.allow_discount_on_modifier,
        included_offering_ids=frozenset(included),
        min_rental_days=wire.min_rental_days,
    )


def normalize_discount(raw: Mapping[str, Any]) -> Discount:
    wire = _validate(_WireDiscountEntity, raw, "discount")
    return Discount(
        id=wire.id, code=wire.code, type=discount_type(wire.type), value=wire.value
    )


def normalize_vehicle(raw: Mapping[str, Any]) -> Vehicle:
    wire = _validate(_WireVehicle, raw, "vehicle")
    name = wire.name or " ".join(part for part in (wire.make, wire.model) if part)
    return Vehicle(id=wire.id, name=name, daily_rate=wire.daily_rate)


class _WireBookingResult(_Wire):
    booking_id: int = _alias("bookingId", "id")
    status: str | None = None
    grand_total: Decimal | None = _alias("grandTotal", "finalPrice")


def normalize_booking_result(raw: Mapping[str, Any]) -> BookingResult:
    wire = _validate(_WireBookingResult, raw, "booking")
    return BookingResult(**wire.model_dump())


class _WireExistingBooking(_Wire):
    id: int = _alias("id", "bookingId")
    vehicle_id: int | None = _alias("vehicleId", AliasPath("vehicle", "id"))
    package_id: int | None = _alias("packageId")
    discount_id: int | None = _alias("discountId")
    start_date: datetime | None = _alias("startDate")
    end_date: datetime | None = _alias("endDate")
    pickup_location: str | None = _alias("pickupLocation")
    dropoff_location: str | None = _alias("dropoffLocation")
    insurance_policy: str | None = _alias("insurancePolicy")
    guest_email: str | None = _alias("guestEmail")
    guest_phone: str | None = _alias("guestPhone")
    offerings: list[dict[str, Any]] = Field(default_factory=list)

    @field_validator("offerings", mode="before")
    @classmethod
    def _empty_lists(cls, value: Any) -> Any:
        return _none_to_list(value)


def _booked_offering(item: Mapping[str, Any]) -> BookedOffering | None:
    quantity = int(item.get("quantity") or 1)
    if item.get("offeringId") is not None:
        return BookedOffering(offering_id=int(item["offeringId"]), quantity=quantity)
    nested = item.get("offering")
    if isinstance(nested, Mapping) and nested.get("id") is not None:
        return BookedOffering(offering_id=int(nested["id"]), quantity=quantity)
    if item.get("id") is not None:
        return BookedOffering(offering_id=int(item["id"]), quantity=quantity)
    return None


def normalize_existing_booking(raw: Mapping[str, Any]) -> ExistingBooking:
    wire = _validate(_WireExistingBooking, raw, "booking")
    offerings = tuple(
        booked
        for booked in (_booked_offering(item) for item in wire.offerings)
        if booked is not None
    )
    return ExistingBooking(
        id=wire.id,
        vehicle_id=wire.vehicle_id,
        package_id=wire.package_id,
        discount_id=wire.discount_id,
        start_date=wire.start_date,
        end_date=wire.end_date,
        pickup_location=wire.pickup_location or "",
        dropoff_location=wire.dropoff_location or "",
        insurance_policy=wire.insurance_policy or "",
        guest_email=wire.guest_email,
        guest_phone=wire.guest_phone,
        offerings=offerings,
    )


def extract_collection(payload: Any, name: str) -> list[Mapping[str, Any]]:
    """Items of a HAL collection (``_embedded.<name>``) or a bare list."""
    if isinstance(payload, list):
        return payload
    if isinstance(payload, Mapping):
        embedded = payload.get("_embedded")
        if isinstance(embedded, Mapping):
            return list(embedded.get(name) or [])
        for key in (name, "content", "items"):
            items = payload.get(key)
            if isinstance(items, list):
                return items
    raise PayloadError(f"Unexpected {name} collection payload")


def _validate(model: type[_Wire], raw: Any, label: str) -> Any:
    try:
        return model.model_validate(raw)
    except ValidationError as exc:
        raise PayloadError(f"Malformed {label} payload") from exc


__all__ = [
    "PayloadError",
    "discount_type",
    "extract_collection",
    "normalize_booking_result",
    "normalize_discount",
    "normalize_existing_booking",
    "normalize_offering",
    "normalize_package",
    "normalize_preview",
    "normalize_vehicle",
]
