"""FastAPI application: HTTP endpoints for homestay search, checkout and accounts.

Endpoints:

  GET    /health                                  Health check
  GET    /api/listings                            Search listings
  GET    /api/listings/{id}                       Listing detail
  GET    /api/listings/{id}/quote                 Price a stay without starting checkout

  POST   /api/checkout                            Start a checkout session
  GET    /api/checkout/{sid}                      Session state + current price
  POST   /api/checkout/{sid}/guest-info           Step 1 → 2
  POST   /api/checkout/{sid}/discount             Apply a promo code (step 2)
  DELETE /api/checkout/{sid}/discount             Remove the promo code (step 2)
  POST   /api/checkout/{sid}/continue             Step 2 → 3 (price frozen)
  POST   /api/checkout/{sid}/back                 One step back
  POST   /api/checkout/{sid}/pay                  Step 3 → 4 (session released once confirmed)
  DELETE /api/checkout/{sid}                      Abandon a checkout session

  GET    /api/users/{uid}/favorites               Saved listings
  POST   /api/users/{uid}/favorites/{listing_id}  Save a listing
  DELETE /api/users/{uid}/favorites/{listing_id}  Unsave a listing
  GET    /api/users/{uid}/bookings                Booking history
  POST   /api/bookings/{id}/cancel                Cancel and notify
  GET    /api/bookings/{id}/invoice               Invoice PDF

  POST   /api/host-applications                   Host sign-up confirmation
  GET    /api/hosts/{host_id}/bookings            Host dashboard: listings, bookings, earnings

  GET    /api/admin/bookings                      All bookings (admin)
  GET    /api/admin/sessions                      Active checkout sessions (admin)
  POST   /api/admin/reminders                     Send tomorrow's check-in reminders (admin)

Every BookingError raised by the core is returned as a JSON body
``{"error": <type>, "detail": <message>, ...}`` with the error's status code.
"""

from __future__ import annotations

from dotenv import load_dotenv
load_dotenv()

import logging
import time
from datetime import date
from typing import Optional

# Configure root logger early so all homestay loggers have a handler
# when run via `uvicorn homestay.app:app`.
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(name)-20s %(levelname)-7s %(message)s",
)

from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel

from homestay.auth import require_admin_token
from homestay.config import settings
from homestay.errors import BookingError
from homestay.models.booking import BookingStatus, GuestInfo
from homestay.models.host import HostApplication
from homestay.pricing.calculator import quote
from homestay.pricing.discounts import DiscountCodeTable
from homestay.services.invoice import InvoiceGenerator
from homestay.services.notifications import MockNotificationService, NotificationService
from homestay.services.payment import MockPaymentGateway, PaymentGateway
from homestay.session import (
    CheckoutSession,
    get_active_sessions,
    get_session,
    register_session,
    unregister_session,
)
from homestay.storage.base import KeyValueStore, create_store
from homestay.storage.collections import BookingLedger, FavoritesSet
from listings.catalog import ListingCatalog

log = logging.getLogger("homestay.app")

_START_TIME = time.time()


class StartCheckoutRequest(BaseModel):
    listing_id: str
    check_in: str
    check_out: str
    guests: int = 1
    user_id: str = ""


class DiscountRequest(BaseModel):
    code: str


class PayRequest(BaseModel):
    method: Optional[str] = None


def create_app(
    catalog: Optional[ListingCatalog] = None,
    store: Optional[KeyValueStore] = None,
    payment_gateway: Optional[PaymentGateway] = None,
    notifier: Optional[NotificationService] = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Collaborators default to the configured catalog/store and the mock
    payment and notification services; tests pass their own.
    """
    for warning in settings.validate_startup():
        log.warning(warning)

    if catalog is None:
        catalog = ListingCatalog.load(settings.listings_path or None)
    store = store if store is not None else create_store(settings.storage_path)
    payment_gateway = payment_gateway or MockPaymentGateway()
    notifier = notifier or MockNotificationService(brand=settings.brand_name)
    ledger = BookingLedger(store)
    discounts = DiscountCodeTable()
    invoices = InvoiceGenerator(brand=settings.brand_name)

    app = FastAPI(
        title="Homestay Booking",
        description="Rural homestay search, checkout and booking management",
        version="0.1.0",
    )
    app.state.catalog = catalog
    app.state.store = store
    app.state.ledger = ledger
    app.state.payment_gateway = payment_gateway
    app.state.notifier = notifier

    @app.exception_handler(BookingError)
    async def booking_error_handler(request: Request, exc: BookingError) -> JSONResponse:
        log.info("%s on %s %s: %s", type(exc).__name__, request.method, request.url.path, exc.message)
        return JSONResponse(exc.to_dict(), status_code=exc.status_code)

    def _session_or_404(session_id: str) -> CheckoutSession:
        session = get_session(session_id)
        if session is None:
            raise HTTPException(status_code=404, detail="Session not found")
        return session

    # ── Health check ───────────────────────────────────────────

    @app.get("/health")
    async def health() -> JSONResponse:
        uptime = round(time.time() - _START_TIME, 1)
        return JSONResponse({"status": "ok", "uptime": uptime, "listings": len(catalog)})

    # ── Listings ───────────────────────────────────────────────

    @app.get("/api/listings")
    async def search_listings(
        location: str = "",
        guests: int = 0,
        min_price: Optional[int] = None,
        max_price: Optional[int] = None,
        amenities: list[str] = Query(default=[]),
        accommodation_type: str = Query(default="", alias="type"),
        sort_by: str = "rating",
    ):
        price_range = None
        if min_price is not None or max_price is not None:
            price_range = (min_price or 0, max_price if max_price is not None else 10**9)
        try:
            results = catalog.search(
                location=location,
                guests=guests,
                price_range=price_range,
                amenities=amenities,
                accommodation_type=accommodation_type,
                sort_by=sort_by,
            )
        except ValueError as e:
            return JSONResponse({"error": str(e)}, status_code=400)
        return JSONResponse({
            "listings": [l.to_summary() for l in results],
            "count": len(results),
        })

    @app.get("/api/listings/{listing_id}")
    async def get_listing(listing_id: str):
        return JSONResponse(catalog.get(listing_id).model_dump(mode="json"))

    @app.get("/api/listings/{listing_id}/quote")
    async def quote_listing(
        listing_id: str,
        check_in: str,
        check_out: str,
        guests: int = 1,
        discount_code: str = "",
    ):
        listing = catalog.get(listing_id)
        percent = discounts.lookup(discount_code) if discount_code else 0
        date_range, breakdown = quote(listing, check_in, check_out, guests, percent)
        return JSONResponse({
            "listing_id": listing.id,
            "stay": date_range.to_dict(),
            "guests": guests,
            "price": breakdown.model_dump(),
        })

    # ── Checkout ───────────────────────────────────────────────

    @app.post("/api/checkout")
    async def start_checkout(body: StartCheckoutRequest):
        listing = catalog.get(body.listing_id)
        session = CheckoutSession(
            listing,
            body.check_in,
            body.check_out,
            body.guests,
            payment_gateway=payment_gateway,
            notifier=notifier,
            ledger=ledger,
            discount_table=discounts,
            user_id=body.user_id,
        )
        register_session(session)
        return JSONResponse(session.to_dict(detail=True), status_code=201)

    @app.get("/api/checkout/{session_id}")
    async def get_checkout(session_id: str):
        return JSONResponse(_session_or_404(session_id).to_dict(detail=True))

    @app.post("/api/checkout/{session_id}/guest-info")
    async def submit_guest_info(session_id: str, body: GuestInfo):
        session = _session_or_404(session_id)
        session.submit_guest_info(body)
        return JSONResponse(session.to_dict(detail=True))

    @app.post("/api/checkout/{session_id}/discount")
    async def apply_discount(session_id: str, body: DiscountRequest):
        session = _session_or_404(session_id)
        session.apply_discount(body.code)
        return JSONResponse(session.to_dict(detail=True))

    @app.delete("/api/checkout/{session_id}/discount")
    async def remove_discount(session_id: str):
        session = _session_or_404(session_id)
        session.remove_discount()
        return JSONResponse(session.to_dict(detail=True))

    @app.post("/api/checkout/{session_id}/continue")
    async def continue_to_payment(session_id: str):
        session = _session_or_404(session_id)
        session.continue_to_payment()
        return JSONResponse(session.to_dict(detail=True))

    @app.post("/api/checkout/{session_id}/back")
    async def go_back(session_id: str):
        session = _session_or_404(session_id)
        session.go_back()
        return JSONResponse(session.to_dict(detail=True))

    @app.post("/api/checkout/{session_id}/pay")
    async def pay(session_id: str, body: Optional[PayRequest] = None):
        session = _session_or_404(session_id)
        await session.pay(body.method if body else None)
        result = session.to_dict(detail=True)
        if session.is_done:
            unregister_session(session_id)
        return JSONResponse(result)

    @app.delete("/api/checkout/{session_id}")
    async def abandon_checkout(session_id: str):
        session = _session_or_404(session_id)
        if session.payment_taken and not session.is_done:
            raise HTTPException(
                status_code=409,
                detail="Payment received; retry the payment step to finish the booking",
            )
        unregister_session(session_id)
        return JSONResponse({"session_id": session_id, "status": "abandoned"})

    # ── Account panels ─────────────────────────────────────────

    @app.get("/api/users/{user_id}/favorites")
    async def list_favorites(user_id: str):
        favorites = FavoritesSet(store, user_id)
        return JSONResponse({"user_id": user_id, "favorites": favorites.list()})

    @app.post("/api/users/{user_id}/favorites/{listing_id}")
    async def add_favorite(user_id: str, listing_id: str):
        catalog.get(listing_id)
        favorites = FavoritesSet(store, user_id)
        favorites.add(listing_id)
        return JSONResponse({"user_id": user_id, "favorites": favorites.list()})

    @app.delete("/api/users/{user_id}/favorites/{listing_id}")
    async def remove_favorite(user_id: str, listing_id: str):
        favorites = FavoritesSet(store, user_id)
        favorites.remove(listing_id)
        return JSONResponse({"user_id": user_id, "favorites": favorites.list()})

    @app.get("/api/users/{user_id}/bookings")
    async def list_user_bookings(user_id: str, status: Optional[BookingStatus] = None):
        bookings = ledger.list(user_id=user_id, status=status)
        return JSONResponse({
            "bookings": [b.model_dump(mode="json") for b in bookings],
            "count": len(bookings),
        })

    @app.post("/api/bookings/{booking_id}/cancel")
    async def cancel_booking(booking_id: str):
        booking = ledger.cancel(booking_id)
        notified = await notifier.send_cancellation_notification(
            booking, refund_amount=booking.total_amount,
        )
        return JSONResponse({
            "booking": booking.model_dump(mode="json"),
            "notification_sent": notified,
        })

    @app.get("/api/bookings/{booking_id}/invoice")
    async def download_invoice(booking_id: str):
        booking = ledger.get(booking_id)
        listing = catalog.get(booking.listing_id) if booking.listing_id in catalog else None
        pdf = invoices.render(booking, listing)
        return Response(
            content=pdf,
            media_type="application/pdf",
            headers={"Content-Disposition": f'attachment; filename="{invoices.filename(booking)}"'},
        )

    # ── Hosts ──────────────────────────────────────────────────

    @app.post("/api/host-applications")
    async def submit_host_application(body: HostApplication):
        notified = await notifier.send_host_application_confirmation(body)
        return JSONResponse(
            {"status": "received", "property_name": body.property_name, "notification_sent": notified},
            status_code=201,
        )

    @app.get("/api/hosts/{host_id}/bookings")
    async def host_dashboard(host_id: str, status: Optional[BookingStatus] = None):
        """A host's properties, the bookings made on them and confirmed earnings."""
        properties = catalog.by_host(host_id)
        if not properties:
            raise HTTPException(status_code=404, detail=f"Host '{host_id}' has no listings")
        bookings = ledger.list(listing_ids=[l.id for l in properties])
        earnings = sum(b.total_amount for b in bookings if b.status == BookingStatus.CONFIRMED)
        if status is not None:
            bookings = [b for b in bookings if b.status == status]
        return JSONResponse({
            "host_id": host_id,
            "listings": [l.to_summary() for l in properties],
            "bookings": [b.model_dump(mode="json") for b in bookings],
            "count": len(bookings),
            "earnings": earnings,
            "currency": properties[0].currency,
        })

    # ── Admin ──────────────────────────────────────────────────

    @app.get("/api/admin/bookings", dependencies=[Depends(require_admin_token)])
    async def admin_list_bookings(status: Optional[BookingStatus] = None):
        bookings = ledger.list(status=status)
        return JSONResponse({
            "bookings": [b.model_dump(mode="json") for b in bookings],
            "count": len(bookings),
        })

    @app.get("/api/admin/sessions", dependencies=[Depends(require_admin_token)])
    async def admin_list_sessions():
        sessions = get_active_sessions()
        return JSONResponse({
            "sessions": [s.to_dict() for s in sessions.values()],
            "count": len(sessions),
        })

    @app.post("/api/admin/reminders", dependencies=[Depends(require_admin_token)])
    async def send_reminders(today: Optional[date] = None):
        """Remind guests checking in tomorrow. ``today`` defaults to the server date."""
        due = ledger.due_for_reminder(today or date.today())
        sent = 0
        for booking in due:
            host_phone = ""
            if booking.listing_id in catalog:
                host = catalog.get(booking.listing_id).host
                host_phone = host.phone if host else ""
            if await notifier.send_booking_reminder(booking, host_phone):
                sent += 1
        log.info("Check-in reminders: %d due, %d sent", len(due), sent)
        return JSONResponse({"due": len(due), "sent": sent, "booking_ids": [b.id for b in due]})

    return app


# ── Module-level app instance for uvicorn ──────────────────────

app = create_app()


if __name__ == "__main__":
    import uvicorn

    log_config = uvicorn.config.LOGGING_CONFIG
    log_config["formatters"]["default"]["fmt"] = (
        "%(asctime)s %(name)-12s %(levelname)-8s %(message)s"
    )

    uvicorn.run(
        "homestay.app:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_config=log_config,
    )
