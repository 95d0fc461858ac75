"""Tests for the listing catalog and its search filters."""

import json

import pytest

import sys, os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from homestay.errors import ListingNotFound
from listings.catalog import ListingCatalog


@pytest.fixture
def catalog():
    return ListingCatalog.load()


class TestLoad:
    def test_sample_data(self, catalog):
        assert len(catalog) == 6
        assert "1" in catalog

    def test_listing_fields(self, catalog):
        listing = catalog.get("1")
        assert listing.title == "Green Valley Homestay"
        assert listing.nightly_rate == 2500
        assert listing.max_guests == 4
        assert listing.review_count == 2
        assert listing.host.phone == "+91 9876543210"

    def test_unknown_listing(self, catalog):
        with pytest.raises(ListingNotFound):
            catalog.get("999")

    def test_custom_file(self, tmp_path):
        path = tmp_path / "listings.json"
        path.write_text(json.dumps([{
            "id": "x1",
            "title": "Lakeside Hut",
            "location": {"village": "Loktak", "district": "Bishnupur", "state": "Manipur"},
            "nightly_rate": 1200,
            "max_guests": 2,
        }]))
        catalog = ListingCatalog.load(path)
        assert [l.id for l in catalog.all()] == ["x1"]

    def test_summary(self, catalog):
        summary = catalog.get("1").to_summary()
        assert summary["location"] == "Madikeri, Karnataka"
        assert summary["review_count"] == 2

    def test_by_host(self, catalog):
        assert [l.id for l in catalog.by_host("1")] == ["1", "4"]
        assert catalog.by_host("99") == []
        assert catalog.by_host("") == []


class TestSearch:
    def test_default_sort_by_rating(self, catalog):
        ratings = [l.rating for l in catalog.search()]
        assert ratings == sorted(ratings, reverse=True)
        assert catalog.search()[0].id == "2"

    def test_location_matches_state(self, catalog):
        assert {l.id for l in catalog.search(location="kerala")} == {"2", "6"}

    def test_location_matches_district(self, catalog):
        assert [l.id for l in catalog.search(location="Jaisalmer")] == ["4"]

    def test_guest_capacity(self, catalog):
        assert [l.id for l in catalog.search(guests=7)] == ["4"]

    def test_price_range_inclusive(self, catalog):
        ids = {l.id for l in catalog.search(price_range=(2000, 2800))}
        assert ids == {"1", "3", "6"}

    def test_amenities_any_match(self, catalog):
        ids = {l.id for l in catalog.search(amenities=["canoe", "camel"])}
        assert ids == {"2", "4"}

    def test_price_sorting(self, catalog):
        low = [l.nightly_rate for l in catalog.search(sort_by="price-low")]
        assert low == sorted(low)
        high = [l.nightly_rate for l in catalog.search(sort_by="price-high")]
        assert high == sorted(high, reverse=True)

    def test_bad_sort_key(self, catalog):
        with pytest.raises(ValueError):
            catalog.search(sort_by="distance")
