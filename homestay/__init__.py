"""Homestay booking core: pricing, checkout workflow, bookings and accounts."""
