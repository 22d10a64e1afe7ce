"""Port for the small shared key-value store behind locks and progress."""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class KeyValueStore(Protocol):
    """JSON-compatible values with optional expiry.

    ``add`` is the only operation that must be atomic: it stores the value only when the key
    is absent (or expired) and reports whether it did.
    """

    def get(self, key: str) -> Any | None: ...

    def set(self, key: str, value: Any, *, ttl_seconds: int | None = None) -> None: ...

    def add(self, key: str, value: Any, *, ttl_seconds: int | None = None) -> bool: ...

    def delete(self, key: str) -> None: ...


__all__ = ["KeyValueStore"]
