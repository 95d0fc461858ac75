"""Pydantic models for guest details, price breakdowns and booking records."""

from __future__ import annotations

import re
from datetime import date, datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel

_EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class PaymentMethod(str, Enum):
    UPI = "upi"
    CARD = "card"
    NETBANKING = "netbanking"
    QR = "qr"


class BookingStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"


class GuestInfo(BaseModel):
    """Contact details collected on the first checkout step.

    Fields may be partially filled while the guest is typing; use
    ``invalid_fields()`` to see what still blocks the step.
    """

    first_name: str = ""
    last_name: str = ""
    email: str = ""
    phone: str = ""
    special_requests: str = ""

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def invalid_fields(self) -> list[str]:
        bad = []
        for name in ("first_name", "last_name", "email", "phone"):
            if not getattr(self, name).strip():
                bad.append(name)
        if "email" not in bad and not is_valid_email(self.email):
            bad.append("email")
        return bad


def is_valid_email(value: str) -> bool:
    return bool(_EMAIL_PATTERN.match(value.strip()))


class PriceBreakdown(BaseModel):
    """Itemized price of a stay. All amounts are whole currency units.

    Frozen: a breakdown stored on a booking is a financial snapshot and is
    never recomputed.
    """

    nightly_rate: int
    nights: int
    subtotal: int
    service_fee_percent: int
    service_fee: int
    discount_percent: int = 0
    discount_amount: int = 0
    tax_percent: int
    tax: int
    total: int
    currency: str = "INR"

    model_config = {"frozen": True}


class Booking(BaseModel):
    """A confirmed (or later cancelled) reservation.

    Only ``status`` ever changes after creation, and only through
    ``BookingLedger.upsert_by_status``.
    """

    id: str
    listing_id: str
    listing_title: str = ""
    user_id: str = ""
    check_in: date
    check_out: date
    guests: int
    guest_info: GuestInfo
    price: PriceBreakdown
    discount_code: Optional[str] = None
    payment_id: str
    payment_method: PaymentMethod = PaymentMethod.UPI
    status: BookingStatus = BookingStatus.CONFIRMED
    created_at: datetime

    model_config = {"frozen": True}

    @property
    def nights(self) -> int:
        return self.price.nights

    @property
    def total_amount(self) -> int:
        return self.price.total
