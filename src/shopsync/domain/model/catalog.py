"""Transient catalog values produced by the distributor client."""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable

EXCERPT_WORDS = 20


class DimensionFormatError(ValueError):
    """Raised when a delimited dimension string cannot be parsed."""


@dataclass(frozen=True, slots=True)
class Dimensions:
    length: Decimal
    width: Decimal
    height: Decimal
    weight: Decimal | None = None


def parse_dimensions(raw: str | None) -> Dimensions | None:
    """Parse ``"L;W;H[;weight]"``.

    Blank input means "no dimensions" and yields ``None``. Fewer than three fields or a
    non-numeric length/width/height raise :class:`DimensionFormatError`; a non-numeric
    weight is ignored.
    """

    if raw is None or not raw.strip(" ;"):
        return None
    parts = [part.strip() for part in raw.strip().strip(";").split(";")]
    if len(parts) < 3:
        raise DimensionFormatError(f"expected at least 3 fields, got {len(parts)}: {raw!r}")
    try:
        length, width, height = (Decimal(part) for part in parts[:3])
    except InvalidOperation as exc:
        raise DimensionFormatError(f"non-numeric dimension in {raw!r}") from exc
    weight: Decimal | None = None
    if len(parts) > 3 and parts[3]:
        try:
            weight = Decimal(parts[3])
        except InvalidOperation:
            weight = None
    return Dimensions(length=length, width=width, height=height, weight=weight)


@dataclass(frozen=True, slots=True)
class CatalogItem:
    """One distributor record, normalised."""

    sku: str
    description: str = ""
    stock_quantity: int = 0
    price: Decimal = Decimal(0)
    retail_price: Decimal = Decimal(0)
    dimensions: str = ""
    category: str = ""
    image_url: str | None = None
    catalog: str = ""
    catalog_page: str = ""
    unit_of_measure: str = ""

    @property
    def title(self) -> str:
        return self.description.strip() or self.sku

    @property
    def excerpt(self) -> str:
        words = self.description.split()
        if len(words) <= EXCERPT_WORDS:
            return " ".join(words)
        return " ".join(words[:EXCERPT_WORDS]) + "..."


@dataclass(frozen=True, slots=True)
class CatalogFilter:
    """Restricts a run to explicit SKUs or to named categories (never both)."""

    skus: tuple[str, ...] = ()
    categories: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if self.skus and self.categories:
            raise ValueError("A catalog filter targets either SKUs or categories, not both")

    @property
    def is_empty(self) -> bool:
        return not self.skus and not self.categories

    @classmethod
    def for_skus(cls, skus: Iterable[str]) -> CatalogFilter:
        values = tuple(dict.fromkeys(s.strip() for s in skus if s.strip()))
        return cls(skus=values)

    @classmethod
    def for_categories(cls, categories: Iterable[str]) -> CatalogFilter:
        values = tuple(dict.fromkeys(c.strip() for c in categories if c.strip()))
        return cls(categories=values)


@dataclass(slots=True)
class PageResult:
    """One page of catalog data, or an ``error`` marker after retries ran out."""

    items: list[CatalogItem] = field(default_factory=list)
    categories: list[str] = field(default_factory=list)
    page_number: int = 1
    total_pages: int = 1
    total_items: int = 0
    dropped: int = 0
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def failed(cls, page_number: int, error: str) -> PageResult:
        return cls(page_number=page_number, total_pages=0, total_items=0, error=error)
