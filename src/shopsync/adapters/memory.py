"""Process-local key-value store for tests and one-off runs."""

from __future__ import annotations

import copy
import threading
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, Any

from shopsync.domain.ports.state import KeyValueStore

if TYPE_CHECKING:
    from collections.abc import Callable


def _utcnow() -> datetime:
    return datetime.now(UTC)


class InMemoryKeyValueStore:
    """Dictionary-backed store; ``add`` is atomic under a lock."""

    def __init__(self, *, clock: Callable[[], datetime] = _utcnow) -> None:
        self._clock = clock
        self._lock = threading.Lock()
        self._values: dict[str, tuple[Any, datetime | None]] = {}

    def get(self, key: str) -> Any | None:
        with self._lock:
            entry = self._live_entry(key)
            return None if entry is None else copy.deepcopy(entry[0])

    def set(self, key: str, value: Any, *, ttl_seconds: int | None = None) -> None:
        with self._lock:
            self._values[key] = (copy.deepcopy(value), self._expiry(ttl_seconds))

    def add(self, key: str, value: Any, *, ttl_seconds: int | None = None) -> bool:
        with self._lock:
            if self._live_entry(key) is not None:
                return False
            self._values[key] = (copy.deepcopy(value), self._expiry(ttl_seconds))
            return True

    def delete(self, key: str) -> None:
        with self._lock:
            self._values.pop(key, None)

    def _live_entry(self, key: str) -> tuple[Any, datetime | None] | None:
        entry = self._values.get(key)
        if entry is None:
            return None
        expires_at = entry[1]
        if expires_at is not None and expires_at <= self._clock():
            del self._values[key]
            return None
        return entry

    def _expiry(self, ttl_seconds: int | None) -> datetime | None:
        if ttl_seconds is None:
            return None
        return self._clock() + timedelta(seconds=ttl_seconds)


if TYPE_CHECKING:
    _store_check: KeyValueStore = InMemoryKeyValueStore()
