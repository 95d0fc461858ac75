"""Tests for booking record assembly."""

import re
from datetime import datetime, timezone
from types import SimpleNamespace

import sys, os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from homestay.builder import build, generate_reference_id
from homestay.models.booking import BookingStatus, GuestInfo, PaymentMethod
from homestay.pricing.calculator import compute_breakdown
from homestay.pricing.dates import DateRange

_REF_PATTERN = re.compile(r"^VS\d{13}[A-Z0-9]{5}$")


class TestReferenceId:
    def test_format(self):
        now = datetime(2030, 4, 1, tzinfo=timezone.utc)
        ref = generate_reference_id(now)
        assert _REF_PATTERN.match(ref)
        assert ref.startswith(f"VS{int(now.timestamp() * 1000)}")

    def test_unique_within_same_millisecond(self):
        now = datetime(2030, 4, 1, tzinfo=timezone.utc)
        refs = {generate_reference_id(now) for _ in range(50)}
        assert len(refs) == 50


class TestBuild:
    def test_copies_inputs(self):
        listing = SimpleNamespace(id="1", title="Green Valley Homestay")
        guest = GuestInfo(first_name="Asha", last_name="Rao",
                          email="asha@example.com", phone="9876543210")
        breakdown = compute_breakdown(2500, 2, discount_percent=10,
                                      tax_percent=12, service_fee_percent=5)
        now = datetime(2030, 3, 1, 9, 30, tzinfo=timezone.utc)

        booking = build(
            listing,
            DateRange.between("2030-04-01", "2030-04-03"),
            guest,
            2,
            breakdown,
            "pay_123",
            user_id="u1",
            payment_method=PaymentMethod.CARD,
            discount_code="WELCOME10",
            now=now,
        )

        assert _REF_PATTERN.match(booking.id)
        assert booking.status == BookingStatus.CONFIRMED
        assert booking.listing_title == "Green Valley Homestay"
        assert booking.nights == 2
        assert booking.total_amount == 5350
        assert booking.price == breakdown
        assert booking.payment_id == "pay_123"
        assert booking.payment_method == PaymentMethod.CARD
        assert booking.discount_code == "WELCOME10"
        assert booking.created_at == now
        assert booking.guest_info == guest
