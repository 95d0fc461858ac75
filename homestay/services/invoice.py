"""Tax invoice PDF for a confirmed booking.

Amounts come straight from the booking's stored price breakdown; nothing
is re-derived from the total, so the invoice always matches what was
charged.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from fpdf import FPDF

from homestay.config import settings
from homestay.models.booking import Booking

logger = logging.getLogger(__name__)


def invoice_number(booking: Booking) -> str:
    return f"INV{booking.id[-8:]}"


def invoice_lines(booking: Booking) -> list[tuple[str, int]]:
    """Itemized lines, signed so that they sum to the booking total."""
    price = booking.price
    lines = [
        (f"Accommodation ({price.nights} x {price.nightly_rate})", price.subtotal),
        (f"Service fee ({price.service_fee_percent}%)", price.service_fee),
    ]
    if price.discount_amount:
        label = f"Discount ({price.discount_percent}%)"
        if booking.discount_code:
            label = f"Discount {booking.discount_code} ({price.discount_percent}%)"
        lines.append((label, -price.discount_amount))
    lines.append((f"GST @{price.tax_percent}%", price.tax))
    return lines


def _latin1(text: Any) -> str:
    # Core PDF fonts only cover latin-1
    return str(text).encode("latin-1", "replace").decode("latin-1")


class InvoiceGenerator:
    """Render a one-page invoice with fpdf2."""

    def __init__(self, brand: str = "") -> None:
        self._brand = brand or settings.brand_name

    def filename(self, booking: Booking) -> str:
        return f"{self._brand}-Invoice-{booking.id}.pdf"

    def render(self, booking: Booking, listing: Optional[Any] = None) -> bytes:
        """Return the invoice as PDF bytes.

        ``listing`` is optional and only adds the village name to the stay
        details.
        """
        currency = booking.price.currency
        pdf = FPDF()
        pdf.add_page()

        pdf.set_font("helvetica", "B", 16)
        pdf.text(20, 25, "TAX INVOICE")
        pdf.set_font("helvetica", "B", 20)
        pdf.set_text_color(34, 197, 94)
        pdf.text(140, 25, _latin1(self._brand))
        pdf.set_text_color(0, 0, 0)

        y = 45
        pdf.set_font("helvetica", "", 9)
        for label, value in (
            ("Booking ID:", booking.id),
            ("Invoice No:", invoice_number(booking)),
            ("Date:", booking.created_at.strftime("%d/%m/%Y")),
            ("Date of Supply:", booking.check_in.strftime("%d/%m/%Y")),
            ("Status:", booking.status.value),
        ):
            pdf.set_font("helvetica", "B", 9)
            pdf.text(20, y, label)
            pdf.set_font("helvetica", "", 9)
            pdf.text(55, y, _latin1(value))
            y += 7

        y += 5
        pdf.set_font("helvetica", "B", 10)
        pdf.text(20, y, "Customer Details")
        pdf.line(20, y + 2, 190, y + 2)
        y += 9
        guest = booking.guest_info
        pdf.set_font("helvetica", "", 9)
        for line in (guest.full_name, guest.email, guest.phone):
            pdf.text(20, y, _latin1(line))
            y += 6

        y += 5
        pdf.set_font("helvetica", "B", 10)
        pdf.text(20, y, "Stay Details")
        pdf.line(20, y + 2, 190, y + 2)
        y += 9
        pdf.set_font("helvetica", "", 9)
        stay = booking.listing_title or booking.listing_id
        if listing is not None and getattr(listing, "location", None) is not None:
            stay = f"{stay}, {listing.location.village}"
        pdf.text(20, y, _latin1(stay))
        y += 6
        pdf.text(
            20, y,
            f"{booking.check_in.strftime('%d/%m/%Y')} to {booking.check_out.strftime('%d/%m/%Y')}"
            f"  |  {booking.nights} night(s)  |  {booking.guests} guest(s)",
        )

        y += 14
        pdf.set_font("helvetica", "B", 12)
        pdf.text(20, y, "PAYMENT BREAKUP")
        y += 4
        lines = invoice_lines(booking)
        pdf.rect(20, y, 170, 12 + 8 * (len(lines) + 1))
        y += 9
        pdf.set_font("helvetica", "", 10)
        for label, amount in lines:
            pdf.text(25, y, _latin1(label))
            sign = "-" if amount < 0 else ""
            pdf.text(150, y, f"{sign}{currency} {abs(amount):,}")
            y += 8
        pdf.line(25, y - 4, 185, y - 4)
        y += 2
        pdf.set_font("helvetica", "B", 10)
        pdf.text(25, y, "Grand Total")
        pdf.text(150, y, f"{currency} {booking.total_amount:,}")

        pdf.set_font("helvetica", "", 8)
        pdf.text(20, 270, "This is not a valid travel document.")
        pdf.text(160, 287, "Page 1 of 1")

        logger.info("Rendered invoice %s for booking %s", invoice_number(booking), booking.id)
        return bytes(pdf.output())
