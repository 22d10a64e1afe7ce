"""Domain enums (pure, dependency-light)."""

from __future__ import annotations

from enum import StrEnum


class SyncMode(StrEnum):
    FULL = "full"
    PARTIAL = "partial"

    @property
    def wire_code(self) -> str:
        """Single-letter mode flag understood by the distributor API."""
        return "F" if self is SyncMode.FULL else "P"


class RunOutcome(StrEnum):
    SUCCESS = "success"
    FAILED = "failed"
    ABORTED = "aborted"
    ALREADY_RUNNING = "already_running"


class CategoryKind(StrEnum):
    REGULAR = "regular"
    SPECIAL = "special"
    DEFAULT = "default"


class SpecialCategory(StrEnum):
    """Categories assigned from sentinel characters in an item's description."""

    SPECIALS = "special"
    BACK_IN_STOCK = "back_in_stock"
    NEW = "new"

    @property
    def marker(self) -> str:
        return _SPECIAL_MARKERS[self]

    @property
    def display_name(self) -> str:
        return _SPECIAL_NAMES[self]


_SPECIAL_MARKERS: dict[SpecialCategory, str] = {
    SpecialCategory.SPECIALS: "!",
    SpecialCategory.BACK_IN_STOCK: "^",
    SpecialCategory.NEW: "@",
}

_SPECIAL_NAMES: dict[SpecialCategory, str] = {
    SpecialCategory.SPECIALS: "Specials",
    SpecialCategory.BACK_IN_STOCK: "Back In Stock",
    SpecialCategory.NEW: "New",
}

UNCATEGORIZED_NAME = "Uncategorized"


class StockStatus(StrEnum):
    IN_STOCK = "instock"
    OUT_OF_STOCK = "outofstock"

    @classmethod
    def for_quantity(cls, quantity: int) -> StockStatus:
        return cls.IN_STOCK if quantity > 0 else cls.OUT_OF_STOCK


class SkipReason(StrEnum):
    MISSING_SKU = "missing_sku"
    UNKNOWN_SKU = "unknown_sku"  # partial sync only updates known products
    UNMATCHED_CATEGORY = "unmatched_category"
    FAILED = "failed"


class UnmatchedCategoryPolicy(StrEnum):
    """What happens to a new item whose category matches nothing known."""

    SKIP = "skip"
    UNCATEGORIZED = "uncategorized"


class OrderStatus(StrEnum):
    SUCCESS = "success"
    NO_ITEMS = "no_items"
    ERROR = "error"
