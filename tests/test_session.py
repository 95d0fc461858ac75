"""Tests for CheckoutSession, the per-guest checkout wizard driver."""

import asyncio
from datetime import date
from unittest.mock import AsyncMock

import pytest

import sys, os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from homestay.errors import (
    DiscountNotFound,
    InvalidInputError,
    InvalidRangeError,
    PaymentError,
    StorageError,
    TransitionError,
    ValidationError,
)
from homestay.models.booking import GuestInfo, PaymentMethod
from homestay.services.notifications import MockNotificationService, NotificationService
from homestay.services.payment import STATUS_FAILED, MockPaymentGateway, PaymentGateway, PaymentResult
from homestay.session import (
    CheckoutSession,
    get_active_sessions,
    get_session,
    register_session,
    unregister_session,
)
from homestay.storage.base import MemoryStore
from homestay.storage.collections import BookingLedger
from homestay.workflows.checkout import FIRST_STEP, WORKFLOW_DEF, CheckoutStep
from homestay.workflows.loader import parse_workflow
from listings.schema import HomestayListing, Location

TODAY = date(2030, 3, 1)


# ── Test doubles ──────────────────────────────────────────────────

class ScriptedGateway(PaymentGateway):
    """Returns queued outcomes in order: True = success, False = decline,
    an exception instance = raised."""

    def __init__(self, outcomes):
        self._outcomes = list(outcomes)
        self.calls = []
        self.metadata = []

    async def charge(self, amount, method, metadata=None):
        self.calls.append((amount, PaymentMethod(method)))
        self.metadata.append(metadata)
        outcome = self._outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        if outcome:
            return PaymentResult(payment_id=f"pay_{len(self.calls)}", status="success",
                                 method=PaymentMethod(method).value, amount=amount)
        return PaymentResult(payment_id="", status=STATUS_FAILED,
                             method=PaymentMethod(method).value, amount=amount,
                             error_message="Card declined")


class SlowGateway(MockPaymentGateway):
    def __init__(self):
        super().__init__(latency_seconds=0)
        self.release = asyncio.Event()

    async def charge(self, amount, method, metadata=None):
        await self.release.wait()
        return await super().charge(amount, method, metadata)


class BrokenNotifier(MockNotificationService):
    async def send_booking_confirmation(self, booking):
        raise RuntimeError("smtp down")


class FailingStore(MemoryStore):
    """Raises OSError on the first ``failures`` writes, then behaves normally."""

    def __init__(self, failures=1):
        super().__init__()
        self.failures = failures

    def set(self, key, value):
        if self.failures:
            self.failures -= 1
            raise OSError("No space left on device")
        super().set(key, value)


def _listing(rate=2500, max_guests=4):
    return HomestayListing(
        id="1",
        title="Green Valley Homestay",
        location=Location(village="Madikeri", district="Kodagu", state="Karnataka"),
        nightly_rate=rate,
        max_guests=max_guests,
    )


def _guest(**overrides):
    data = dict(first_name="Asha", last_name="Rao", email="asha@example.com", phone="9876543210")
    data.update(overrides)
    return GuestInfo(**data)


def _session(check_in="2030-04-01", check_out="2030-04-03", guests=2, gateway=None,
             notifier=None, ledger=None, **kwargs):
    return CheckoutSession(
        _listing(),
        check_in,
        check_out,
        guests,
        payment_gateway=gateway or MockPaymentGateway(latency_seconds=0),
        notifier=notifier or MockNotificationService(latency_seconds=0),
        ledger=ledger if ledger is not None else BookingLedger(MemoryStore()),
        clock=lambda: TODAY,
        **kwargs,
    )


def _at_payment(**kwargs):
    session = _session(**kwargs)
    session.submit_guest_info(_guest())
    session.continue_to_payment()
    return session


# ── Tests ─────────────────────────────────────────────────────────

class TestSessionInit:
    def test_initial_state(self):
        session = _session()
        assert session.step == CheckoutStep.GUEST_INFO
        assert session.state.step == FIRST_STEP
        assert session.step_number == 1
        assert session.is_done is False
        assert session.booking is None

    def test_price_before_guest_info(self):
        assert _session().breakdown().total == 5850

    def test_unparseable_dates(self):
        with pytest.raises(InvalidRangeError):
            _session(check_in="April first")


class TestGuestInfoStep:
    def test_valid_details_advance(self):
        session = _session()
        assert session.submit_guest_info(_guest()) == CheckoutStep.SUMMARY
        assert session.step_number == 2

    def test_empty_email_rejected(self):
        session = _session()
        with pytest.raises(ValidationError) as exc_info:
            session.submit_guest_info(_guest(email=""))
        assert exc_info.value.fields == ["email"]
        assert session.step == CheckoutStep.GUEST_INFO

    def test_malformed_email_rejected(self):
        session = _session()
        with pytest.raises(ValidationError) as exc_info:
            session.submit_guest_info(_guest(email="asha@example"))
        assert "email" in exc_info.value.fields

    def test_missing_fields_listed(self):
        session = _session()
        with pytest.raises(ValidationError) as exc_info:
            session.submit_guest_info({"first_name": "Asha"})
        assert exc_info.value.fields == ["last_name", "email", "phone"]

    def test_failed_submit_keeps_typed_details(self):
        session = _session()
        with pytest.raises(ValidationError):
            session.submit_guest_info(_guest(phone=" "))
        assert session.state.guest_info.first_name == "Asha"
        assert session.state.last_error

    def test_cannot_go_back_from_first_step(self):
        with pytest.raises(TransitionError):
            _session().go_back()

    def test_cannot_skip_to_payment(self):
        with pytest.raises(TransitionError):
            _session().continue_to_payment()


class TestSummaryStep:
    def test_apply_discount(self):
        session = _session()
        session.submit_guest_info(_guest())
        breakdown = session.apply_discount("WELCOME10")
        assert breakdown.discount_amount == 500
        assert breakdown.total == 5350
        assert session.state.discount_code == "WELCOME10"

    def test_unknown_code_keeps_previous_discount(self):
        session = _session()
        session.submit_guest_info(_guest())
        session.apply_discount("RURAL20")
        with pytest.raises(DiscountNotFound):
            session.apply_discount("rural20")
        assert session.state.applied_discount == 20
        assert session.breakdown().discount_amount == 1000

    def test_remove_discount(self):
        session = _session()
        session.submit_guest_info(_guest())
        session.apply_discount("FIRSTTIME")
        assert session.remove_discount().total == 5850

    def test_discount_only_on_summary(self):
        with pytest.raises(TransitionError):
            _session().apply_discount("WELCOME10")

    def test_back_to_guest_info(self):
        session = _session()
        session.submit_guest_info(_guest())
        assert session.go_back() == CheckoutStep.GUEST_INFO

    def test_same_day_booking_fails(self):
        session = _session(check_in="2024-04-01", check_out="2024-04-01")
        session.submit_guest_info(_guest())
        with pytest.raises(InvalidRangeError):
            session.continue_to_payment()
        assert session.step == CheckoutStep.SUMMARY

    def test_past_check_in_rejected(self):
        session = _session(check_in="2030-02-01", check_out="2030-02-03")
        session.submit_guest_info(_guest())
        with pytest.raises(InvalidRangeError, match="past"):
            session.continue_to_payment()

    def test_too_many_guests(self):
        session = _session(guests=5)
        session.submit_guest_info(_guest())
        with pytest.raises(ValidationError):
            session.continue_to_payment()
        assert session.step == CheckoutStep.SUMMARY

    def test_continue_freezes_price(self):
        session = _session()
        session.submit_guest_info(_guest())
        session.apply_discount("WELCOME10")
        frozen = session.continue_to_payment()
        assert session.step == CheckoutStep.PAYMENT
        assert session.price_frozen
        assert frozen.total == 5350
        assert session.breakdown() is frozen


class TestPaymentStep:
    async def test_successful_payment(self):
        ledger = BookingLedger(MemoryStore())
        notifier = MockNotificationService(latency_seconds=0)
        session = _at_payment(ledger=ledger, notifier=notifier)

        booking = await session.pay("card")

        assert session.step == CheckoutStep.CONFIRMATION
        assert session.is_done
        assert booking.total_amount == 5850
        assert booking.payment_method == PaymentMethod.CARD
        assert ledger.list() == [booking]
        assert session.state.booking_id == booking.id
        assert len(notifier.outbox) == 2  # one email, one SMS

    async def test_failure_then_success_books_once(self):
        ledger = BookingLedger(MemoryStore())
        notifier = MockNotificationService(latency_seconds=0)
        gateway = ScriptedGateway([False, True])
        session = _at_payment(gateway=gateway, ledger=ledger, notifier=notifier)

        with pytest.raises(PaymentError) as exc_info:
            await session.pay()
        assert exc_info.value.retryable is True
        assert exc_info.value.message == "Card declined"
        assert session.step == CheckoutStep.PAYMENT
        assert session.state.payment_attempts == 1
        assert len(ledger) == 0

        booking = await session.pay()
        assert session.step == CheckoutStep.CONFIRMATION
        assert len(ledger) == 1
        assert session.state.payment_attempts == 2

        # Repeated pay after confirmation neither charges nor notifies again
        again = await session.pay()
        assert again is booking
        assert len(gateway.calls) == 2
        assert len(ledger) == 1
        assert len(notifier.outbox) == 2

    async def test_gateway_exception_is_retryable(self):
        gateway = ScriptedGateway([ConnectionError("timeout"), True])
        session = _at_payment(gateway=gateway)
        with pytest.raises(PaymentError):
            await session.pay()
        assert session.step == CheckoutStep.PAYMENT
        await session.pay()
        assert session.is_done

    async def test_charges_frozen_total(self):
        gateway = ScriptedGateway([True])
        session = _session(gateway=gateway)
        session.submit_guest_info(_guest())
        session.apply_discount("RURAL20")
        session.continue_to_payment()
        await session.pay("upi")
        assert gateway.calls == [(4850, PaymentMethod.UPI)]

    async def test_concurrent_pay_rejected(self):
        gateway = SlowGateway()
        session = _at_payment(gateway=gateway)
        first = asyncio.create_task(session.pay())
        await asyncio.sleep(0)
        with pytest.raises(PaymentError, match="already"):
            await session.pay()
        with pytest.raises(TransitionError):
            session.go_back()
        gateway.release.set()
        booking = await first
        assert session.booking is booking
        assert len(gateway.charges) == 1

    async def test_exactly_one_confirmation_notification(self):
        notifier = AsyncMock(spec=NotificationService)
        notifier.send_booking_confirmation.return_value = True
        session = _at_payment(gateway=ScriptedGateway([False, True]), notifier=notifier)
        with pytest.raises(PaymentError):
            await session.pay()
        notifier.send_booking_confirmation.assert_not_awaited()
        booking = await session.pay()
        await session.pay()
        notifier.send_booking_confirmation.assert_awaited_once_with(booking)

    async def test_notification_failure_does_not_undo_booking(self):
        ledger = BookingLedger(MemoryStore())
        session = _at_payment(ledger=ledger, notifier=BrokenNotifier(latency_seconds=0))
        booking = await session.pay()
        assert session.is_done
        assert ledger.get(booking.id) == booking
        assert session.to_dict(detail=True)["notification_sent"] is False

    def test_unsupported_method(self):
        session = _at_payment()
        with pytest.raises(InvalidInputError):
            session.select_payment_method("cheque")
        assert session.state.payment_method == PaymentMethod.UPI

    async def test_pay_before_payment_step(self):
        with pytest.raises(TransitionError):
            await _session().pay()

    def test_back_unfreezes_price(self):
        session = _at_payment()
        assert session.go_back() == CheckoutStep.SUMMARY
        assert not session.price_frozen
        session.apply_discount("WELCOME10")
        assert session.continue_to_payment().total == 5350

    async def test_no_back_from_confirmation(self):
        session = _at_payment()
        await session.pay()
        with pytest.raises(TransitionError):
            session.go_back()

    async def test_charge_metadata_carries_currency(self):
        gateway = ScriptedGateway([True])
        session = _at_payment(gateway=gateway)
        await session.pay()
        assert gateway.metadata[0]["currency"] == "INR"
        assert gateway.metadata[0]["listing_id"] == "1"


class TestLedgerWriteFailure:
    async def test_failed_write_keeps_session_on_payment(self):
        store = FailingStore(failures=1)
        ledger = BookingLedger(store)
        notifier = MockNotificationService(latency_seconds=0)
        gateway = ScriptedGateway([True])
        session = _at_payment(gateway=gateway, ledger=ledger, notifier=notifier)

        with pytest.raises(StorageError) as exc_info:
            await session.pay()
        assert exc_info.value.status_code == 503
        assert session.step == CheckoutStep.PAYMENT
        assert session.booking is None
        assert session.payment_taken
        assert len(gateway.calls) == 1
        assert len(ledger) == 0
        assert notifier.outbox == []

    async def test_retry_records_booking_without_second_charge(self):
        store = FailingStore(failures=1)
        ledger = BookingLedger(store)
        notifier = MockNotificationService(latency_seconds=0)
        gateway = ScriptedGateway([True])
        session = _at_payment(gateway=gateway, ledger=ledger, notifier=notifier)

        with pytest.raises(StorageError):
            await session.pay()
        booking = await session.pay()

        assert session.step == CheckoutStep.CONFIRMATION
        assert len(gateway.calls) == 1
        assert session.state.payment_attempts == 1
        assert ledger.list() == [booking]
        assert booking.payment_id == "pay_1"
        assert len(notifier.outbox) == 2

        assert await session.pay() is booking
        assert len(notifier.outbox) == 2

    async def test_reference_id_stable_across_retries(self):
        ledger = BookingLedger(FailingStore(failures=2))
        session = _at_payment(gateway=ScriptedGateway([True]), ledger=ledger)
        for _ in range(2):
            with pytest.raises(StorageError):
                await session.pay()
        pending_id = session._pending_booking.id
        booking = await session.pay()
        assert booking.id == pending_id

    async def test_cannot_go_back_after_charge(self):
        session = _at_payment(
            gateway=ScriptedGateway([True]),
            ledger=BookingLedger(FailingStore(failures=1)),
        )
        with pytest.raises(StorageError):
            await session.pay()
        with pytest.raises(TransitionError):
            session.go_back()
        assert session.price_frozen


class TestCustomWorkflow:
    def _unguarded_summary(self):
        raw = WORKFLOW_DEF.model_dump()
        raw["states"]["summary"]["guards"] = {}
        return parse_workflow(raw)

    async def test_entering_payment_freezes_price(self):
        gateway = ScriptedGateway([True])
        session = _session(gateway=gateway, workflow=self._unguarded_summary())
        session.submit_guest_info(_guest())
        session.apply_discount("WELCOME10")
        frozen = session.continue_to_payment()
        assert session.price_frozen
        assert frozen.total == 5350
        booking = await session.pay("card")
        assert gateway.calls == [(5350, PaymentMethod.CARD)]
        assert booking.price == frozen

    def test_unpriceable_stay_stays_on_summary(self):
        session = _session(check_in="2030-04-01", check_out="2030-04-01",
                           workflow=self._unguarded_summary())
        session.submit_guest_info(_guest())
        with pytest.raises(InvalidRangeError):
            session.continue_to_payment()
        assert session.step == CheckoutStep.SUMMARY
        assert not session.price_frozen


class TestToDict:
    def test_summary_fields(self):
        session = _session()
        d = session.to_dict()
        assert d["step"] == "guest_info"
        assert d["step_number"] == 1
        assert d["step_title"] == "Guest Information"
        assert d["price"]["total"] == 5850
        assert d["price_error"] is None
        assert "allowed_intents" not in d

    def test_detail_fields(self):
        session = _session()
        session.submit_guest_info(_guest())
        d = session.to_dict(detail=True)
        assert d["allowed_intents"] == ["back", "next"]
        assert d["last_payment"] is None

    def test_invalid_range_reported_not_raised(self):
        d = _session(check_in="2024-04-01", check_out="2024-04-01").to_dict()
        assert d["price"] is None
        assert "Check-out" in d["price_error"]


class TestRegistry:
    def test_register_lookup_unregister(self):
        session = _session()
        sid = register_session(session)
        assert session.session_id == sid
        assert get_session(sid) is session
        assert sid in get_active_sessions()
        unregister_session(sid)
        assert get_session(sid) is None
