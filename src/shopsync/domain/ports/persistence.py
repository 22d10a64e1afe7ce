"""Ports for persisting products and categories."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

from shopsync.domain.model import Category, Product

if TYPE_CHECKING:
    from collections.abc import Iterable
    from datetime import datetime
    from uuid import UUID


@runtime_checkable
class Repository[TEntity](Protocol):
    """Minimal repository contract for a persistent aggregate store."""

    def add(self, entity: TEntity) -> None: ...


@runtime_checkable
class ProductRepository(Repository[Product], Protocol):
    """Persistence contract for products, keyed by SKU."""

    def find_by_sku(self, sku: str, *, fresh: bool = False) -> Product | None:
        """Look a product up; ``fresh`` skips any cached copy and asks the store."""
        ...

    def delete(self, product: Product) -> None: ...

    def iter_stale(self, *, distributor_id: str, before: datetime) -> Iterable[Product]:
        """Products owned by ``distributor_id`` last synced before ``before``, oldest first."""
        ...


@runtime_checkable
class CategoryRepository(Repository[Category], Protocol):
    """Persistence contract for the category taxonomy."""

    def get(self, category_id: UUID) -> Category | None: ...

    def find_by_name(self, name: str) -> Category | None: ...

    def list_regular(self) -> list[Category]:
        """Regular categories in creation order."""
        ...


__all__ = ["CategoryRepository", "ProductRepository", "Repository"]
