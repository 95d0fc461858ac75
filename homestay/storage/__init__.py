"""Key-value storage and the collections persisted on top of it."""

from .base import JsonFileStore, KeyValueStore, MemoryStore, create_store
from .collections import BookingLedger, FavoritesSet

__all__ = [
    "BookingLedger",
    "FavoritesSet",
    "JsonFileStore",
    "KeyValueStore",
    "MemoryStore",
    "create_store",
]
