"""Durable key-value storage for bookings and favorites.

Mirrors a browser's local storage: string keys, string values, one device,
no sync. Collections serialize themselves to JSON strings on top of it.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

log = logging.getLogger("homestay.storage")


class KeyValueStore(ABC):
    """Abstract string key-value store."""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """Return the stored value, or None if the key is absent."""

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        """Store ``value`` under ``key``, replacing any previous value."""


class MemoryStore(KeyValueStore):
    """Process-local store; contents vanish on restart."""

    def __init__(self, initial: Optional[dict[str, str]] = None) -> None:
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value


class JsonFileStore(KeyValueStore):
    """All keys in one JSON object file, rewritten atomically on every set."""

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)
        self._data: dict[str, str] = self._load()

    @property
    def path(self) -> Path:
        return self._path

    def _load(self) -> dict[str, str]:
        if not self._path.exists():
            return {}
        text = self._path.read_text(encoding="utf-8").strip()
        if not text:
            return {}
        data = json.loads(text)
        if not isinstance(data, dict):
            raise ValueError(f"Storage file {self._path} does not hold a JSON object")
        return {str(k): str(v) for k, v in data.items()}

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value
        self._flush()

    def _flush(self) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=self._path.parent, prefix=".store-", suffix=".json")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(self._data, f)
            os.replace(tmp, self._path)
        except BaseException:
            # Leave the previous file intact
            Path(tmp).unlink(missing_ok=True)
            raise
        log.debug("Flushed %d keys to %s", len(self._data), self._path)


def create_store(storage_path: str = "") -> KeyValueStore:
    """File-backed store when a path is configured, otherwise in-memory."""
    if storage_path:
        log.info("Using JSON file store at %s", storage_path)
        return JsonFileStore(storage_path)
    log.info("Using in-memory store (STORAGE_PATH not set)")
    return MemoryStore()
