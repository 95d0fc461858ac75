"""Itemized stay pricing.

Canonical formula, used by checkout and invoices alike::

    subtotal        = nightly_rate * nights
    service_fee     = round(subtotal * service_fee_percent / 100)
    discount_amount = round(subtotal * discount_percent / 100)
    tax             = round(subtotal * tax_percent / 100)
    total           = subtotal - discount_amount + tax + service_fee

Tax and fee are charged on the pre-discount subtotal. Each line item is
rounded half-up to whole currency units and the total is the sum of the
rounded items, so an itemized receipt always adds up.
"""

from __future__ import annotations

import logging
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Optional

from homestay.config import settings
from homestay.errors import InvalidInputError, ValidationError
from homestay.models.booking import PriceBreakdown
from homestay.pricing.dates import DateLike, DateRange

log = logging.getLogger("homestay.pricing")

_HUNDRED = Decimal(100)


def round_half_up(value: Decimal) -> int:
    return int(value.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def percent_of(amount: int, percent: int) -> int:
    """``percent`` of ``amount``, rounded half-up to a whole unit."""
    return round_half_up(Decimal(amount) * Decimal(percent) / _HUNDRED)


def _require_int(name: str, value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidInputError(f"{name} must be a whole number, got {value!r}")
    return value


def compute_breakdown(
    nightly_rate: int,
    nights: int,
    discount_percent: int = 0,
    tax_percent: Optional[int] = None,
    service_fee_percent: Optional[int] = None,
    currency: Optional[str] = None,
) -> PriceBreakdown:
    """Price a stay. Pure; raises InvalidInputError on bad inputs."""
    if tax_percent is None:
        tax_percent = settings.tax_percent
    if service_fee_percent is None:
        service_fee_percent = settings.service_fee_percent

    _require_int("nightly_rate", nightly_rate)
    _require_int("nights", nights)
    _require_int("discount_percent", discount_percent)
    _require_int("tax_percent", tax_percent)
    _require_int("service_fee_percent", service_fee_percent)

    if nightly_rate <= 0:
        raise InvalidInputError("Nightly rate must be positive")
    if nights < 1:
        raise InvalidInputError("A stay must be at least one night")
    if not 0 <= discount_percent <= 100:
        raise InvalidInputError("Discount must be between 0 and 100 percent")
    if tax_percent < 0 or service_fee_percent < 0:
        raise InvalidInputError("Tax and service fee cannot be negative")

    subtotal = nightly_rate * nights
    service_fee = percent_of(subtotal, service_fee_percent)
    discount_amount = percent_of(subtotal, discount_percent)
    tax = percent_of(subtotal, tax_percent)

    return PriceBreakdown(
        nightly_rate=nightly_rate,
        nights=nights,
        subtotal=subtotal,
        service_fee_percent=service_fee_percent,
        service_fee=service_fee,
        discount_percent=discount_percent,
        discount_amount=discount_amount,
        tax_percent=tax_percent,
        tax=tax,
        total=subtotal - discount_amount + tax + service_fee,
        currency=currency or settings.currency,
    )


def validate_guest_count(guests: int, max_guests: int) -> None:
    if guests < 1:
        raise ValidationError("At least one guest is required", fields=["guests"])
    if guests > max_guests:
        raise ValidationError(
            f"This homestay accommodates up to {max_guests} guests",
            fields=["guests"],
        )


def quote(
    listing: Any,
    check_in: DateLike,
    check_out: DateLike,
    guests: int = 1,
    discount_percent: int = 0,
) -> tuple[DateRange, PriceBreakdown]:
    """Validate a stay selection for ``listing`` and price it.

    ``listing`` needs ``nightly_rate``, ``max_guests`` and ``currency``.
    """
    date_range = DateRange.between(check_in, check_out)
    validate_guest_count(guests, listing.max_guests)
    breakdown = compute_breakdown(
        listing.nightly_rate,
        date_range.nights,
        discount_percent=discount_percent,
        currency=listing.currency,
    )
    log.debug(
        "Quoted listing %s: %d nights, total %d",
        listing.id, date_range.nights, breakdown.total,
    )
    return date_range, breakdown
