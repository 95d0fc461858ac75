"""Read-only homestay catalog with the search page's filters and sorting.

Usage:
    catalog = ListingCatalog.load()               # bundled sample data
    catalog = ListingCatalog.load("my.json")      # custom catalog file
    catalog.search(location="kerala", guests=4, sort_by="price-low")
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Iterable, Optional

from homestay.errors import ListingNotFound
from listings.schema import HomestayListing

log = logging.getLogger("listings.catalog")

SAMPLE_DATA_PATH = Path(__file__).parent / "sample_data" / "homestays.json"

SORT_KEYS = ("rating", "price-low", "price-high")


class ListingCatalog:
    """In-memory listing catalog keyed by id."""

    def __init__(self, listings: Iterable[HomestayListing]) -> None:
        self._listings: dict[str, HomestayListing] = {}
        for listing in listings:
            self._listings[listing.id] = listing

    @classmethod
    def load(cls, data_path: str | Path | None = None) -> "ListingCatalog":
        """Load listings from a JSON array file (defaults to the sample data)."""
        path = Path(data_path) if data_path else SAMPLE_DATA_PATH
        with open(path, encoding="utf-8") as f:
            raw = json.load(f)
        catalog = cls(HomestayListing(**item) for item in raw)
        log.info("Loaded %d listings from %s", len(catalog), path)
        return catalog

    def get(self, listing_id: str) -> HomestayListing:
        try:
            return self._listings[listing_id]
        except KeyError:
            raise ListingNotFound(listing_id) from None

    def all(self) -> list[HomestayListing]:
        return list(self._listings.values())

    def by_host(self, host_id: str) -> list[HomestayListing]:
        """Listings owned by ``host_id``; empty for an unknown host."""
        return [l for l in self._listings.values() if host_id and l.host_id == host_id]

    def __len__(self) -> int:
        return len(self._listings)

    def __contains__(self, listing_id: object) -> bool:
        return listing_id in self._listings

    def search(
        self,
        location: str = "",
        guests: int = 0,
        price_range: Optional[tuple[int, int]] = None,
        amenities: Optional[list[str]] = None,
        accommodation_type: str = "",
        sort_by: str = "rating",
    ) -> list[HomestayListing]:
        """Filter and sort listings.

        Args:
            location: Case-insensitive substring of village, district or state.
            guests: Minimum capacity required.
            price_range: Inclusive (min, max) nightly rate.
            amenities: Match listings having ANY of these (substring, case-insensitive).
            accommodation_type: Substring of the title, e.g. "homestay".
            sort_by: "rating" (best first), "price-low" or "price-high".
        """
        if sort_by not in SORT_KEYS:
            raise ValueError(f"sort_by must be one of {', '.join(SORT_KEYS)}")

        results = self.all()

        if location:
            needle = location.lower()
            results = [
                l for l in results
                if needle in l.location.village.lower()
                or needle in l.location.district.lower()
                or needle in l.location.state.lower()
            ]

        if guests:
            results = [l for l in results if l.max_guests >= guests]

        if price_range:
            low, high = price_range
            results = [l for l in results if low <= l.nightly_rate <= high]

        if amenities:
            wanted = [a.lower() for a in amenities]
            results = [
                l for l in results
                if any(w in have.lower() for w in wanted for have in l.amenities)
            ]

        if accommodation_type:
            kind = accommodation_type.lower()
            results = [l for l in results if kind in l.title.lower()]

        if sort_by == "price-low":
            results.sort(key=lambda l: l.nightly_rate)
        elif sort_by == "price-high":
            results.sort(key=lambda l: l.nightly_rate, reverse=True)
        else:
            results.sort(key=lambda l: l.rating, reverse=True)

        return results
