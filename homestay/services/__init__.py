"""Collaborators consumed by the checkout core: payments, notifications, invoices."""

from .invoice import InvoiceGenerator, invoice_lines, invoice_number
from .notifications import (
    EmailMessage,
    MockNotificationService,
    NotificationService,
    SmsMessage,
)
from .payment import MockPaymentGateway, PaymentGateway, PaymentResult, build_upi_uri

__all__ = [
    "EmailMessage",
    "InvoiceGenerator",
    "MockNotificationService",
    "MockPaymentGateway",
    "NotificationService",
    "PaymentGateway",
    "PaymentResult",
    "SmsMessage",
    "build_upi_uri",
    "invoice_lines",
    "invoice_number",
]
