"""
Local store entities: products and the category taxonomy.

Both are plain dataclasses; persistence adapters map them imperatively.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from shopsync.domain.model.enums import CategoryKind, StockStatus

if TYPE_CHECKING:
    from datetime import datetime

    from shopsync.domain.model.catalog import Dimensions


def new_id() -> UUID:
    return uuid4()


@dataclass(eq=False, kw_only=True)
class Category:
    name: str
    kind: CategoryKind = CategoryKind.REGULAR
    description: str = ""
    # creation ordinal, assigned by the store
    position: int | None = None
    id: UUID = field(default_factory=new_id)

    @property
    def is_special(self) -> bool:
        return self.kind is CategoryKind.SPECIAL


@dataclass(eq=False, kw_only=True)
class Product:
    sku: str
    title: str
    description: str = ""
    excerpt: str = ""
    stock_quantity: int = 0
    stock_status: StockStatus = StockStatus.OUT_OF_STOCK
    price: Decimal | None = None
    cost: Decimal | None = None
    length: Decimal | None = None
    width: Decimal | None = None
    height: Decimal | None = None
    weight: Decimal | None = None
    categories: set[Category] = field(default_factory=set)
    image_ref: str | None = None
    distributor_id: str | None = None
    last_synced_at: datetime | None = None
    created_at: datetime | None = None
    id: UUID = field(default_factory=new_id)

    def set_stock(self, quantity: int) -> None:
        self.stock_quantity = max(quantity, 0)
        self.stock_status = StockStatus.for_quantity(self.stock_quantity)

    def set_dimensions(self, dimensions: Dimensions) -> None:
        self.length = dimensions.length
        self.width = dimensions.width
        self.height = dimensions.height
        if dimensions.weight is not None:
            self.weight = dimensions.weight

    def replace_categories(self, categories: set[Category]) -> None:
        # mutate in place so the ORM collection keeps tracking changes
        self.categories.intersection_update(categories)
        self.categories.update(categories)

    def is_owned_by(self, distributor_id: str) -> bool:
        """Untagged products count as ours; they get claimed on the next update."""
        return self.distributor_id is None or self.distributor_id == distributor_id
