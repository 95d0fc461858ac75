"""Assemble the immutable booking record once a payment has succeeded."""

from __future__ import annotations

import logging
import secrets
import string
from datetime import datetime, timezone
from typing import Any, Optional

from homestay.models.booking import (
    Booking,
    BookingStatus,
    GuestInfo,
    PaymentMethod,
    PriceBreakdown,
)
from homestay.pricing.dates import DateRange

log = logging.getLogger("homestay.builder")

_SUFFIX_ALPHABET = string.ascii_uppercase + string.digits
_SUFFIX_LENGTH = 5


def generate_reference_id(now: Optional[datetime] = None) -> str:
    """Booking reference like ``VS1717236000000K3Q9Z``.

    Millisecond timestamp plus a random suffix from ``secrets``, so two
    bookings in the same millisecond still differ.
    """
    now = now or datetime.now(tz=timezone.utc)
    millis = int(now.timestamp() * 1000)
    suffix = "".join(secrets.choice(_SUFFIX_ALPHABET) for _ in range(_SUFFIX_LENGTH))
    return f"VS{millis}{suffix}"


def build(
    listing: Any,
    date_range: DateRange,
    guest_info: GuestInfo,
    guests: int,
    breakdown: PriceBreakdown,
    payment_id: str,
    *,
    user_id: str = "",
    payment_method: PaymentMethod = PaymentMethod.UPI,
    discount_code: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Booking:
    """Create a confirmed booking from a frozen price breakdown.

    Only the reference id and ``created_at`` are generated here; everything
    else is copied from the inputs.
    """
    now = now or datetime.now(tz=timezone.utc)
    booking = Booking(
        id=generate_reference_id(now),
        listing_id=listing.id,
        listing_title=getattr(listing, "title", ""),
        user_id=user_id,
        check_in=date_range.check_in,
        check_out=date_range.check_out,
        guests=guests,
        guest_info=guest_info.model_copy(),
        price=breakdown,
        discount_code=discount_code,
        payment_id=payment_id,
        payment_method=payment_method,
        status=BookingStatus.CONFIRMED,
        created_at=now,
    )
    log.info(
        "Built booking %s for listing %s (%d nights, total %d)",
        booking.id, booking.listing_id, breakdown.nights, breakdown.total,
    )
    return booking
