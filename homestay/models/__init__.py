"""Data models for the booking core."""

from .booking import (
    Booking,
    BookingStatus,
    GuestInfo,
    PaymentMethod,
    PriceBreakdown,
)
from .checkout import CheckoutState
from .host import HostApplication

__all__ = [
    "Booking",
    "BookingStatus",
    "CheckoutState",
    "GuestInfo",
    "HostApplication",
    "PaymentMethod",
    "PriceBreakdown",
]
