"""Payment gateway interface and the simulated gateway used by the marketplace.

The checkout session only needs ``charge``. Any result whose ``status`` is
``"success"`` authorizes the booking; everything else is a retryable
failure.
"""

from __future__ import annotations

import asyncio
import logging
import secrets
from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional
from urllib.parse import quote, urlencode

from homestay.config import settings
from homestay.models.booking import PaymentMethod

logger = logging.getLogger(__name__)

STATUS_SUCCESS = "success"
STATUS_FAILED = "failed"


@dataclass
class PaymentResult:
    """Outcome of one charge attempt."""

    payment_id: str
    status: str
    method: str
    amount: int
    timestamp: str = ""
    error_message: str = ""
    extra: dict[str, Any] = field(default_factory=dict)

    @property
    def succeeded(self) -> bool:
        return self.status == STATUS_SUCCESS

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def build_upi_uri(
    amount: int,
    payee: str = "",
    payee_name: str = "",
    currency: str = "",
    note: str = "Homestay Booking Payment",
) -> str:
    """UPI deep link, e.g. ``upi://pay?pa=villagestay@paytm&pn=VillageStay&am=5850&cu=INR&tn=...``."""
    params = {
        "pa": payee or settings.upi_payee,
        "pn": payee_name or settings.brand_name,
        "am": str(amount),
        "cu": currency or settings.currency,
        "tn": note,
    }
    return "upi://pay?" + urlencode(params, quote_via=quote, safe="@")


class PaymentGateway(ABC):
    """Abstract payment backend."""

    @abstractmethod
    async def charge(
        self,
        amount: int,
        method: PaymentMethod,
        metadata: Optional[dict[str, Any]] = None,
    ) -> PaymentResult:
        """Charge ``amount`` (whole currency units) with ``method``.

        Args:
            amount: Total to collect.
            method: Payment method chosen by the guest.
            metadata: Free-form context (listing id, guest email, ...).

        Returns:
            PaymentResult with ``status == "success"`` when authorized.
            Implementations may also raise on transport errors.
        """


class MockPaymentGateway(PaymentGateway):
    """Always-succeeding gateway with optional simulated latency."""

    def __init__(self, latency_seconds: Optional[float] = None) -> None:
        self._latency = (
            settings.payment_latency_seconds if latency_seconds is None else latency_seconds
        )
        self.charges: list[PaymentResult] = []

    async def charge(
        self,
        amount: int,
        method: PaymentMethod,
        metadata: Optional[dict[str, Any]] = None,
    ) -> PaymentResult:
        method = PaymentMethod(method)
        currency = (metadata or {}).get("currency") or settings.currency
        if self._latency > 0:
            await asyncio.sleep(self._latency)

        now = datetime.now(tz=timezone.utc)
        result = PaymentResult(
            payment_id=f"pay_{int(now.timestamp() * 1000)}{secrets.token_hex(3)}",
            status=STATUS_SUCCESS,
            method=method.value,
            amount=amount,
            timestamp=now.isoformat(),
        )
        if method in (PaymentMethod.UPI, PaymentMethod.QR):
            result.extra["upi_uri"] = build_upi_uri(amount, currency=currency)

        self.charges.append(result)
        logger.info(
            "Mock charge %s: %d %s via %s",
            result.payment_id, amount, currency, method.value,
        )
        return result
