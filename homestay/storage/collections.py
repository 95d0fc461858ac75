"""Persisted collections: a guest's favorite listings and the booking ledger."""

from __future__ import annotations

import json
import logging
from datetime import date, timedelta
from typing import Iterable, Optional

from homestay.errors import BookingNotFound, InvalidBookingStatus
from homestay.models.booking import Booking, BookingStatus
from homestay.storage.base import KeyValueStore

log = logging.getLogger("homestay.storage")

BOOKINGS_KEY = "bookings"

BOOKING_TRANSITIONS: dict[BookingStatus, set[BookingStatus]] = {
    BookingStatus.PENDING: {BookingStatus.CONFIRMED, BookingStatus.CANCELLED},
    BookingStatus.CONFIRMED: {BookingStatus.CANCELLED},
    BookingStatus.CANCELLED: set(),
}


def favorites_key(user_id: str) -> str:
    return f"favorites:{user_id}"


class FavoritesSet:
    """Listing ids a guest has favorited. Add and remove are idempotent."""

    def __init__(self, store: KeyValueStore, user_id: str = "guest") -> None:
        self._store = store
        self._key = favorites_key(user_id)

    def _read(self) -> list[str]:
        raw = self._store.get(self._key)
        return json.loads(raw) if raw else []

    def _write(self, ids: list[str]) -> None:
        self._store.set(self._key, json.dumps(ids))

    def add(self, listing_id: str) -> None:
        ids = self._read()
        if listing_id in ids:
            return
        ids.append(listing_id)
        self._write(ids)

    def remove(self, listing_id: str) -> None:
        ids = self._read()
        if listing_id not in ids:
            return
        self._write([i for i in ids if i != listing_id])

    def toggle(self, listing_id: str) -> bool:
        """Flip membership; returns True if the listing is now a favorite."""
        if self.contains(listing_id):
            self.remove(listing_id)
            return False
        self.add(listing_id)
        return True

    def contains(self, listing_id: str) -> bool:
        return listing_id in self._read()

    def list(self) -> list[str]:
        return self._read()

    def __contains__(self, listing_id: object) -> bool:
        return listing_id in self._read()

    def __len__(self) -> int:
        return len(self._read())


class BookingLedger:
    """Append/update-by-id collection of bookings.

    Bookings are never deleted. The only mutation after ``add`` is a status
    change; the price snapshot and guest details stay as created.
    """

    def __init__(self, store: KeyValueStore, key: str = BOOKINGS_KEY) -> None:
        self._store = store
        self._key = key

    def _read(self) -> list[Booking]:
        raw = self._store.get(self._key)
        if not raw:
            return []
        return [Booking.model_validate(item) for item in json.loads(raw)]

    def _write(self, bookings: list[Booking]) -> None:
        self._store.set(
            self._key,
            json.dumps([b.model_dump(mode="json") for b in bookings]),
        )

    def add(self, booking: Booking) -> None:
        """Append ``booking``; a second add of the same id is a no-op."""
        bookings = self._read()
        if any(b.id == booking.id for b in bookings):
            log.debug("Booking %s already in ledger", booking.id)
            return
        bookings.append(booking)
        self._write(bookings)
        log.info("Booking %s added to ledger (%s)", booking.id, booking.status.value)

    def contains(self, booking_id: str) -> bool:
        return any(b.id == booking_id for b in self._read())

    def get(self, booking_id: str) -> Booking:
        for booking in self._read():
            if booking.id == booking_id:
                return booking
        raise BookingNotFound(booking_id)

    def list(
        self,
        user_id: Optional[str] = None,
        status: Optional[BookingStatus] = None,
        listing_ids: Optional[Iterable[str]] = None,
    ) -> list[Booking]:
        bookings = self._read()
        if listing_ids is not None:
            wanted = set(listing_ids)
            bookings = [b for b in bookings if b.listing_id in wanted]
        if user_id is not None:
            bookings = [b for b in bookings if b.user_id == user_id]
        if status is not None:
            bookings = [b for b in bookings if b.status == status]
        return bookings

    def upsert_by_status(self, booking_id: str, status: BookingStatus) -> Booking:
        """Change only the status of an existing booking."""
        status = BookingStatus(status)
        bookings = self._read()
        for i, booking in enumerate(bookings):
            if booking.id != booking_id:
                continue
            if booking.status == status:
                return booking
            if status not in BOOKING_TRANSITIONS[booking.status]:
                raise InvalidBookingStatus(
                    f"Cannot change booking {booking_id} from "
                    f"{booking.status.value} to {status.value}"
                )
            updated = booking.model_copy(update={"status": status})
            bookings[i] = updated
            self._write(bookings)
            log.info(
                "Booking %s status: %s -> %s",
                booking_id, booking.status.value, status.value,
            )
            return updated
        raise BookingNotFound(booking_id)

    def cancel(self, booking_id: str) -> Booking:
        return self.upsert_by_status(booking_id, BookingStatus.CANCELLED)

    def due_for_reminder(self, today: date) -> list[Booking]:
        """Confirmed bookings checking in the day after ``today``."""
        tomorrow = today + timedelta(days=1)
        return [
            b for b in self.list(status=BookingStatus.CONFIRMED)
            if b.check_in == tomorrow
        ]

    def __len__(self) -> int:
        return len(self._read())
