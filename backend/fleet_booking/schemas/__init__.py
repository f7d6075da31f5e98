"""Schema exports.

Form request and view schemas live in ``fleet_booking.schemas.forms`` and are
imported from there directly, since they depend on the service enums.
"""

from fleet_booking.schemas.base import CamelModel
from fleet_booking.schemas.booking import (
    BookedOffering,
    BookingFormSubmission,
    BookingResult,
    ExistingBooking,
    OfferingBookingRequest,
    OfferingLine,
    PreviewRequest,
    VehicleBookingRequest,
)
from fleet_booking.schemas.catalog import (
    Catalog,
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
    PricingBreakdownRead,
    PricingLineRead,
    PricingSummary,
    ValidationResult,
    VehicleRentalSummary,
)

__all__ = [
    "BookedOffering",
    "BookingFormSubmission",
    "BookingResult",
    "CamelModel",
    "Catalog",
    "Discount",
    "DiscountSummary",
    "DiscountType",
    "ExistingBooking",
    "LoyaltyInfo",
    "Offering",
    "OfferingBookingRequest",
    "OfferingLine",
    "OfferingSummary",
    "Package",
    "PackageModifierType",
    "PackageSummary",
    "PreviewRequest",
    "PreviewResult",
    "PricingBreakdownRead",
    "PricingLineRead",
    "PricingSummary",
    "ValidationResult",
    "Vehicle",
    "VehicleBookingRequest",
    "VehicleRentalSummary",
]
