"""Booking error taxonomy.

Every error carries a short, user-facing ``message``. None of them is fatal:
the HTTP layer turns them into error responses (4xx, or 503 for a failed
ledger write) and the checkout session stays on its current step.
"""

from __future__ import annotations

from typing import Any


class BookingError(Exception):
    """Base class for all recoverable booking errors."""

    status_code = 400

    def __init__(self, message: str = "Booking request failed") -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, Any]:
        return {"error": type(self).__name__, "detail": self.message}


class InvalidRangeError(BookingError):
    """Check-out is not after check-in, or a date could not be parsed."""

    def __init__(self, message: str = "Check-out date must be after check-in date") -> None:
        super().__init__(message)


class InvalidInputError(BookingError):
    """Malformed pricing or payment input."""


class DiscountNotFound(BookingError):
    """The promo code is not in the discount table."""

    status_code = 404

    def __init__(self, code: str) -> None:
        super().__init__("Invalid discount code")
        self.code = code


class PaymentError(BookingError):
    """The payment collaborator failed or declined. Always retryable."""

    status_code = 402

    def __init__(self, message: str = "Payment failed. Please try again.", retryable: bool = True) -> None:
        super().__init__(message)
        self.retryable = retryable

    def to_dict(self) -> dict[str, Any]:
        d = super().to_dict()
        d["retryable"] = self.retryable
        return d


class ValidationError(BookingError):
    """Guest or stay details are incomplete; blocks the step transition."""

    status_code = 422

    def __init__(self, message: str = "Please fill in all required fields", fields: list[str] | None = None) -> None:
        super().__init__(message)
        self.fields = fields or []

    def to_dict(self) -> dict[str, Any]:
        d = super().to_dict()
        d["fields"] = self.fields
        return d


class TransitionError(BookingError):
    """The requested checkout step move is not allowed from the current step."""

    status_code = 409


class BookingNotFound(BookingError):
    status_code = 404

    def __init__(self, booking_id: str) -> None:
        super().__init__(f"Booking '{booking_id}' not found")
        self.booking_id = booking_id


class ListingNotFound(BookingError):
    status_code = 404

    def __init__(self, listing_id: str) -> None:
        super().__init__(f"Listing '{listing_id}' not found")
        self.listing_id = listing_id


class InvalidBookingStatus(BookingError):
    """Status change not allowed for the booking's current status."""

    status_code = 409


class StorageError(BookingError):
    """The booking ledger could not be written. Retrying completes the booking."""

    status_code = 503

    def __init__(self, message: str = "Your payment was received but the booking could not be saved. Please retry.") -> None:
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        d = super().to_dict()
        d["retryable"] = True
        return d
