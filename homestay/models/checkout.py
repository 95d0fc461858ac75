"""Pydantic model tracking a guest's progress through checkout."""

from datetime import date
from typing import Optional

from pydantic import BaseModel, Field

from .booking import GuestInfo, PaymentMethod


class CheckoutState(BaseModel):
    """Mutable state for one checkout wizard.

    Derived totals are not stored here; the session recomputes them from the
    dates, the listing rate and ``applied_discount`` on every read.
    """

    step: str = ""
    listing_id: str = ""
    user_id: str = ""

    # Stay selection (carried over from the listing page)
    check_in: Optional[date] = None
    check_out: Optional[date] = None
    guests: int = 1

    # Step 1
    guest_info: GuestInfo = Field(default_factory=GuestInfo)

    # Step 2
    discount_code: Optional[str] = None
    applied_discount: Optional[int] = None

    # Step 3
    payment_method: PaymentMethod = PaymentMethod.UPI
    payment_attempts: int = 0
    last_error: Optional[str] = None

    # Step 4
    booking_id: Optional[str] = None
