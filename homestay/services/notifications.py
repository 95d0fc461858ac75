"""Guest and host notifications (email + SMS).

Every notification goes out on both channels concurrently. Delivery is
fire-and-forget from the caller's point of view: a failing channel is
logged and reported as ``False``, it never raises into the checkout flow.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Awaitable, Optional

from homestay.config import settings
from homestay.models.booking import Booking
from homestay.models.host import HostApplication
from homestay.privacy import redact_pii

logger = logging.getLogger(__name__)


@dataclass
class EmailMessage:
    to: str
    subject: str
    template: str
    data: dict[str, Any] = field(default_factory=dict)


@dataclass
class SmsMessage:
    to: str
    message: str


class NotificationService(ABC):
    """Abstract delivery backend plus the marketplace's message templates.

    Subclasses implement the two transports; the booking/host helpers are
    shared.
    """

    brand = "VillageStay"

    @abstractmethod
    async def send_email(self, message: EmailMessage) -> bool:
        """Deliver an email. Returns True on success."""

    @abstractmethod
    async def send_sms(self, message: SmsMessage) -> bool:
        """Deliver an SMS. Returns True on success."""

    # ── Dispatch ──────────────────────────────────────────────

    async def _guarded(self, channel: str, send: Awaitable[bool]) -> bool:
        try:
            return await send
        except Exception:
            logger.exception("%s delivery failed", channel)
            return False

    async def _dispatch(self, email: EmailMessage, sms: SmsMessage) -> bool:
        results = await asyncio.gather(
            self._guarded("Email", self.send_email(email)),
            self._guarded("SMS", self.send_sms(sms)),
        )
        return all(results)

    # ── Templates ─────────────────────────────────────────────

    async def send_booking_confirmation(self, booking: Booking) -> bool:
        guest = booking.guest_info
        email = EmailMessage(
            to=guest.email,
            subject=f"Booking Confirmation - {self.brand}",
            template="booking-confirmation",
            data={
                "guest_name": guest.full_name,
                "homestay_name": booking.listing_title,
                "check_in": booking.check_in.isoformat(),
                "check_out": booking.check_out.isoformat(),
                "total_amount": booking.total_amount,
                "reference_id": booking.id,
            },
        )
        sms = SmsMessage(
            to=guest.phone,
            message=(
                f"{self.brand}: Your booking at {booking.listing_title} is confirmed! "
                f"Reference: {booking.id}. Check-in: {booking.check_in.isoformat()}. "
                f"Total: {booking.price.currency} {booking.total_amount}"
            ),
        )
        return await self._dispatch(email, sms)

    async def send_host_application_confirmation(self, application: HostApplication) -> bool:
        email = EmailMessage(
            to=application.contact_email,
            subject=f"Host Application Received - {self.brand}",
            template="host-application",
            data={
                "host_name": application.property_name,
                "property_name": application.property_name,
                "location": f"{application.village}, {application.state}",
            },
        )
        sms = SmsMessage(
            to=application.contact_phone,
            message=(
                f"{self.brand}: Your host application for {application.property_name} "
                f"has been received. We'll review it within 2-3 business days."
            ),
        )
        return await self._dispatch(email, sms)

    async def send_booking_reminder(self, booking: Booking, host_phone: str = "") -> bool:
        """Check-in reminder, sent the day before arrival."""
        guest = booking.guest_info
        email = EmailMessage(
            to=guest.email,
            subject=f"Check-in Reminder - {self.brand}",
            template="booking-reminder",
            data={
                "guest_name": guest.full_name,
                "homestay_name": booking.listing_title,
                "check_in": booking.check_in.isoformat(),
                "host_contact": host_phone,
            },
        )
        sms = SmsMessage(
            to=guest.phone,
            message=(
                f"{self.brand}: Reminder - Your check-in at {booking.listing_title} is "
                f"tomorrow ({booking.check_in.isoformat()}). Host contact: {host_phone}"
            ),
        )
        return await self._dispatch(email, sms)

    async def send_cancellation_notification(
        self, booking: Booking, refund_amount: Optional[int] = None,
    ) -> bool:
        guest = booking.guest_info
        refund = booking.total_amount if refund_amount is None else refund_amount
        email = EmailMessage(
            to=guest.email,
            subject=f"Booking Cancellation - {self.brand}",
            template="booking-cancellation",
            data={
                "guest_name": guest.full_name,
                "homestay_name": booking.listing_title,
                "refund_amount": refund,
                "reference_id": booking.id,
            },
        )
        sms = SmsMessage(
            to=guest.phone,
            message=(
                f"{self.brand}: Your booking {booking.id} has been cancelled. "
                f"Refund of {booking.price.currency} {refund} will be processed "
                f"in 5-7 business days."
            ),
        )
        return await self._dispatch(email, sms)


class MockNotificationService(NotificationService):
    """Logs messages instead of delivering them and keeps them in ``outbox``."""

    def __init__(self, latency_seconds: Optional[float] = None, brand: str = "") -> None:
        self._latency = (
            settings.notification_latency_seconds if latency_seconds is None else latency_seconds
        )
        self.brand = brand or settings.brand_name
        self.outbox: list[EmailMessage | SmsMessage] = []

    async def _simulate_latency(self) -> None:
        if self._latency > 0:
            await asyncio.sleep(self._latency)

    async def send_email(self, message: EmailMessage) -> bool:
        await self._simulate_latency()
        self.outbox.append(message)
        logger.info("Email sent to %s: %s", redact_pii(message.to), message.subject)
        return True

    async def send_sms(self, message: SmsMessage) -> bool:
        await self._simulate_latency()
        self.outbox.append(message)
        logger.info("SMS sent to %s", redact_pii(message.to))
        return True
