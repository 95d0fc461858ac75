"""Stay pricing: night counts, itemized breakdowns and promo codes."""

from .calculator import compute_breakdown, quote, validate_guest_count
from .dates import DateRange, ensure_not_past, nights
from .discounts import DEFAULT_DISCOUNT_CODES, DiscountCodeTable

__all__ = [
    "DEFAULT_DISCOUNT_CODES",
    "DateRange",
    "DiscountCodeTable",
    "compute_breakdown",
    "ensure_not_past",
    "nights",
    "quote",
    "validate_guest_count",
]
