"""Per-guest checkout session: drives the four-step booking wizard.

Each checkout (one listing, one date selection) gets a CheckoutSession that:
  1. Holds the CheckoutState (guest details, discount, payment method)
  2. Tracks the current step of the checkout workflow
  3. Runs the guard attached to a transition before moving
  4. Recomputes the price from the current selection until payment starts,
     then freezes it so the charged amount cannot drift
  5. On the first successful payment builds the booking, records it in the
     ledger and sends one confirmation notification
"""

from __future__ import annotations

import logging
import secrets
import time
from datetime import date
from typing import Any, Callable, Optional

from homestay import builder
from homestay.config import settings
from homestay.errors import (
    BookingError,
    InvalidInputError,
    PaymentError,
    StorageError,
    TransitionError,
    ValidationError,
)
from homestay.models.booking import Booking, GuestInfo, PaymentMethod, PriceBreakdown
from homestay.models.checkout import CheckoutState
from homestay.pricing.calculator import compute_breakdown, validate_guest_count
from homestay.pricing.dates import DateLike, DateRange, ensure_not_past, to_date
from homestay.pricing.discounts import DiscountCodeTable
from homestay.privacy import redact_pii
from homestay.services.notifications import NotificationService
from homestay.services.payment import PaymentGateway, PaymentResult
from homestay.storage.collections import BookingLedger
from homestay.workflows.checkout import WORKFLOW_DEF as _DEFAULT_WORKFLOW
from homestay.workflows.checkout import CheckoutStep, step_number
from homestay.workflows.schema import CheckoutStepDef, CheckoutWorkflowDef
from listings.schema import HomestayListing

log = logging.getLogger("homestay.session")


# ── Session registry ─────────────────────────────────────────────

_active_sessions: dict[str, "CheckoutSession"] = {}


def register_session(session: "CheckoutSession") -> str:
    """Register a session and return its unique ID."""
    session_id = secrets.token_urlsafe(18)
    session._session_id = session_id
    session._started_at = time.time()
    _active_sessions[session_id] = session
    log.info("Session registered: %s", session_id)
    return session_id


def unregister_session(session_id: str) -> None:
    """Remove a session from the registry."""
    _active_sessions.pop(session_id, None)
    log.info("Session unregistered: %s", session_id)


def get_active_sessions() -> dict[str, "CheckoutSession"]:
    """Return all active sessions."""
    return _active_sessions


def get_session(session_id: str) -> "CheckoutSession | None":
    """Look up a session by ID."""
    return _active_sessions.get(session_id)


class CheckoutSession:
    """One guest's walk through guest info → summary → payment → confirmation.

    Typical lifecycle::

        session = CheckoutSession(listing, "2030-04-01", "2030-04-03", guests=2,
                                  payment_gateway=gateway, notifier=notifier,
                                  ledger=ledger)
        session.submit_guest_info(GuestInfo(...))     # → summary
        session.apply_discount("WELCOME10")           # optional
        session.continue_to_payment()                 # → payment, price frozen
        booking = await session.pay("upi")            # → confirmation

    Every refused move raises a BookingError subclass and leaves the step
    unchanged. Payment failures are retryable indefinitely.
    """

    def __init__(
        self,
        listing: HomestayListing,
        check_in: DateLike,
        check_out: DateLike,
        guests: int = 1,
        *,
        payment_gateway: PaymentGateway,
        notifier: NotificationService,
        ledger: BookingLedger,
        discount_table: Optional[DiscountCodeTable] = None,
        workflow: Optional[CheckoutWorkflowDef] = None,
        user_id: str = "",
        clock: Optional[Callable[[], date]] = None,
    ) -> None:
        self._listing = listing
        self._gateway = payment_gateway
        self._notifier = notifier
        self._ledger = ledger
        self._discounts = discount_table if discount_table is not None else DiscountCodeTable()
        self._workflow = workflow or _DEFAULT_WORKFLOW
        self._clock = clock or date.today

        # Registry metadata (set by register_session)
        self._session_id: str = ""
        self._started_at: float = 0.0

        self._state = CheckoutState(
            step=self._workflow.initial_state,
            listing_id=listing.id,
            user_id=user_id,
            check_in=to_date(check_in, "check-in"),
            check_out=to_date(check_out, "check-out"),
            guests=guests,
        )

        self._frozen_price: Optional[PriceBreakdown] = None
        self._payment: Optional[PaymentResult] = None
        self._payment_in_flight = False
        self._pending_booking: Optional[Booking] = None
        self._booking: Optional[Booking] = None
        self._notified = False

        self._guards: dict[str, Callable[[], None]] = {
            "guest_info_complete": self._check_guest_info,
            "stay_bookable": self._check_stay,
            "payment_succeeded": self._check_payment,
        }

    # ── Helpers ────────────────────────────────────────────────

    def _get_state(self, state_id: str) -> CheckoutStepDef | None:
        """Look up a step in the workflow definition."""
        return self._workflow.states.get(state_id)

    def _current_state(self) -> CheckoutStepDef:
        state = self._get_state(self._state.step)
        if state is None:
            raise TransitionError(f"Unknown checkout step {self._state.step!r}")
        return state

    def _require_step(self, step: CheckoutStep, action: str) -> None:
        if self._state.step != step.value:
            current = self._current_state()
            raise TransitionError(
                f"Cannot {action} on the {current.title or current.id} step"
            )

    # ── Public API ────────────────────────────────────────────

    @property
    def session_id(self) -> str:
        return self._session_id

    @property
    def step(self) -> CheckoutStep:
        return CheckoutStep(self._state.step)

    @property
    def step_number(self) -> int:
        return step_number(self._state.step)

    @property
    def is_done(self) -> bool:
        return self._current_state().terminal

    @property
    def state(self) -> CheckoutState:
        return self._state

    @property
    def listing(self) -> HomestayListing:
        return self._listing

    @property
    def booking(self) -> Optional[Booking]:
        return self._booking

    @property
    def price_frozen(self) -> bool:
        return self._frozen_price is not None

    @property
    def payment_taken(self) -> bool:
        """True once the gateway has accepted a charge for this session."""
        return self._payment is not None and self._payment.succeeded

    def date_range(self) -> DateRange:
        """The selected stay; raises InvalidRangeError unless it has >= 1 night."""
        return DateRange.between(self._state.check_in, self._state.check_out)

    def breakdown(self) -> PriceBreakdown:
        """Current price. Frozen from the moment payment starts."""
        if self._frozen_price is not None:
            return self._frozen_price
        return compute_breakdown(
            self._listing.nightly_rate,
            self.date_range().nights,
            discount_percent=self._state.applied_discount or 0,
            currency=self._listing.currency,
        )

    # Step 1 ------------------------------------------------------------

    def submit_guest_info(self, info: GuestInfo | dict[str, Any]) -> CheckoutStep:
        """Save the guest's details and move to the summary step."""
        self._require_step(CheckoutStep.GUEST_INFO, "submit guest details")
        if isinstance(info, dict):
            info = GuestInfo(**info)
        self._state.guest_info = info
        self._resolve_transition("next")
        return self.step

    # Step 2 ------------------------------------------------------------

    def apply_discount(self, code: str) -> PriceBreakdown:
        """Apply a promo code. An unknown code keeps the previous discount."""
        self._require_step(CheckoutStep.SUMMARY, "apply a discount")
        try:
            percent = self._discounts.lookup(code)
        except BookingError as e:
            self._state.last_error = e.message
            log.info("Rejected discount code %r", code)
            raise
        self._state.discount_code = code
        self._state.applied_discount = percent
        self._state.last_error = None
        log.info("Discount %s applied (%d%%)", code, percent)
        return self.breakdown()

    def remove_discount(self) -> PriceBreakdown:
        self._require_step(CheckoutStep.SUMMARY, "remove a discount")
        self._state.discount_code = None
        self._state.applied_discount = None
        return self.breakdown()

    def continue_to_payment(self) -> PriceBreakdown:
        """Validate the stay, move to payment and freeze the price."""
        self._require_step(CheckoutStep.SUMMARY, "continue to payment")
        self._resolve_transition("next")
        return self._frozen_price

    # Step 3 ------------------------------------------------------------

    def select_payment_method(self, method: PaymentMethod | str) -> None:
        self._require_step(CheckoutStep.PAYMENT, "choose a payment method")
        try:
            self._state.payment_method = PaymentMethod(method)
        except ValueError:
            raise InvalidInputError(f"Unsupported payment method: {method!r}") from None

    async def pay(self, method: PaymentMethod | str | None = None) -> Booking:
        """Charge the frozen total and confirm the booking.

        Returns the booking. Once confirmed, further calls return the same
        booking without charging or notifying again. If the charge went
        through but the ledger write failed, the session stays on the
        payment step and the next call records the booking without a second
        charge.
        """
        if self._booking is not None:
            return self._booking

        self._require_step(CheckoutStep.PAYMENT, "pay")
        if self._payment_in_flight:
            raise PaymentError("A payment is already being processed")

        if not self.payment_taken:
            if method is not None:
                self.select_payment_method(method)
            self._payment = await self._charge(self._frozen_price)
        return await self._enter_confirmation(self._payment)

    # Navigation ----------------------------------------------------------

    def go_back(self) -> CheckoutStep:
        """Summary → guest info, or payment → summary (unfreezes the price)."""
        if self._payment_in_flight:
            raise TransitionError("Cannot go back while a payment is being processed")
        if self.payment_taken:
            raise TransitionError("Payment already received; retry to finish the booking")
        leaving_payment = self._state.step == CheckoutStep.PAYMENT.value
        self._resolve_transition("back")
        if leaving_payment:
            self._frozen_price = None
        return self.step

    def to_dict(self, detail: bool = False) -> dict[str, Any]:
        """Serialize session state for the API.

        With detail=False: summary suitable for listing.
        With detail=True: adds allowed moves and the last payment result.
        """
        current = self._current_state()
        try:
            price: dict[str, Any] | None = self.breakdown().model_dump()
            price_error = None
        except BookingError as e:
            price, price_error = None, e.message

        d: dict[str, Any] = {
            "session_id": self._session_id,
            "step": self._state.step,
            "step_number": self.step_number,
            "step_title": current.title,
            "is_done": current.terminal,
            "started_at": self._started_at,
            "listing_id": self._listing.id,
            "state": self._state.model_dump(mode="json"),
            "price": price,
            "price_error": price_error,
            "price_frozen": self.price_frozen,
            "booking": self._booking.model_dump(mode="json") if self._booking else None,
        }
        if detail:
            d["allowed_intents"] = sorted(current.transitions)
            d["last_payment"] = self._payment.to_dict() if self._payment else None
            d["notification_sent"] = self._notified
        return d

    # ── Internal: Transition routing ─────────────────────────

    def _resolve_transition(self, intent: str) -> CheckoutStepDef:
        """Run the guard for ``intent`` and move to its target step.

        Raises TransitionError if the current step has no such transition;
        guard failures propagate and the step stays put. Entering the payment
        step freezes the price.
        """
        state = self._current_state()
        target = state.transitions.get(intent)
        if not target:
            raise TransitionError(
                f"Cannot '{intent}' from the {state.title or state.id} step"
            )

        guard_name = state.guards.get(intent)
        if guard_name:
            guard = self._guards.get(guard_name)
            if guard is None:
                raise TransitionError(f"Unknown guard {guard_name!r} on {state.id}")
            guard()

        frozen = None
        if target == CheckoutStep.PAYMENT.value and self._frozen_price is None:
            frozen = self.breakdown()

        self._state.step = target
        if frozen is not None:
            self._frozen_price = frozen
            log.info(
                "Price frozen for listing %s: total %d %s",
                self._listing.id, frozen.total, frozen.currency,
            )
        self._state.last_error = None
        log.info("Checkout advance: %s → %s (intent: %s)", state.id, target, intent)
        return self._get_state(target)

    # ── Internal: Guards ──────────────────────────────────────

    def _check_guest_info(self) -> None:
        bad = self._state.guest_info.invalid_fields()
        if bad:
            self._state.last_error = "Please fill in all required fields"
            raise ValidationError(fields=bad)

    def _check_stay(self) -> None:
        try:
            date_range = self.date_range()
            if settings.reject_past_check_in:
                ensure_not_past(date_range, self._clock())
            validate_guest_count(self._state.guests, self._listing.max_guests)
        except BookingError as e:
            self._state.last_error = e.message
            raise

    def _check_payment(self) -> None:
        if self._payment is None or not self._payment.succeeded:
            raise PaymentError("Payment has not been completed")

    # ── Internal: Payment outcome ─────────────────────────────

    def _record_payment_failure(self, message: str) -> None:
        self._state.last_error = message
        log.warning(
            "Payment attempt %d failed for listing %s: %s",
            self._state.payment_attempts, self._listing.id, message,
        )

    async def _charge(self, price: PriceBreakdown) -> PaymentResult:
        """One gateway attempt. Returns the result only if it succeeded."""
        self._state.payment_attempts += 1
        attempt = self._state.payment_attempts
        log.info(
            "Payment attempt %d: %d %s via %s",
            attempt, price.total, price.currency, self._state.payment_method.value,
        )

        self._payment_in_flight = True
        try:
            result = await self._gateway.charge(
                price.total,
                self._state.payment_method,
                metadata={
                    "listing_id": self._listing.id,
                    "guest_email": self._state.guest_info.email,
                    "currency": price.currency,
                    "attempt": attempt,
                },
            )
        except PaymentError as e:
            self._record_payment_failure(e.message)
            raise
        except Exception as e:
            log.exception("Payment gateway error on attempt %d", attempt)
            self._record_payment_failure("Payment failed. Please try again.")
            raise PaymentError() from e
        finally:
            self._payment_in_flight = False

        if not result.succeeded:
            message = result.error_message or "Payment failed. Please try again."
            self._record_payment_failure(message)
            raise PaymentError(message)
        return result

    async def _enter_confirmation(self, result: PaymentResult) -> Booking:
        """Record the booking, then confirm and announce it. Runs once per session.

        The booking is built once and reused, so a retry after a failed
        ledger write keeps the same reference id.
        """
        booking = self._pending_booking
        if booking is None:
            booking = self._pending_booking = builder.build(
                self._listing,
                self.date_range(),
                self._state.guest_info,
                self._state.guests,
                self._frozen_price,
                result.payment_id,
                user_id=self._state.user_id,
                payment_method=self._state.payment_method,
                discount_code=self._state.discount_code,
            )

        try:
            self._ledger.add(booking)
        except Exception as e:
            log.exception(
                "Could not record booking %s for payment %s", booking.id, result.payment_id,
            )
            err = StorageError()
            self._state.last_error = err.message
            raise err from e

        self._resolve_transition("paid")
        self._booking = booking
        self._state.booking_id = booking.id
        log.info(
            "Booking %s confirmed for %s",
            booking.id, redact_pii(booking.guest_info.email),
        )

        try:
            self._notified = await self._notifier.send_booking_confirmation(booking)
        except Exception:
            log.exception("Confirmation notification failed for booking %s", booking.id)
        return booking
