"""Repository implementations backed by SQLAlchemy sessions."""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import func, select

from shopsync.adapters.sqlalchemy.mappings import category_table, product_table
from shopsync.domain.model import Category, CategoryKind, Product
from shopsync.domain.ports.persistence import CategoryRepository, ProductRepository

if TYPE_CHECKING:
    import uuid
    from collections.abc import Iterator
    from datetime import datetime

    from sqlalchemy.orm import Session


class SqlAlchemyProductRepository:
    """Products keyed by SKU, with a per-session lookup cache."""

    def __init__(self, session: Session) -> None:
        self.session = session
        self._by_sku: dict[str, Product] = {}

    def add(self, entity: Product) -> None:
        self.session.add(entity)
        self._by_sku[entity.sku] = entity

    def find_by_sku(self, sku: str, *, fresh: bool = False) -> Product | None:
        if not fresh:
            cached = self._by_sku.get(sku)
            # a rolled-back savepoint expunges pending rows
            if cached is not None and cached in self.session:
                return cached
        stmt = select(Product).where(product_table.c.sku == sku)
        product = self.session.execute(stmt).scalar_one_or_none()
        if product is None:
            self._by_sku.pop(sku, None)
        else:
            self._by_sku[sku] = product
        return product

    def delete(self, product: Product) -> None:
        self._by_sku.pop(product.sku, None)
        self.session.delete(product)

    def iter_stale(self, *, distributor_id: str, before: datetime) -> Iterator[Product]:
        synced = product_table.c.last_synced_at
        stmt = (
            select(Product)
            .where(product_table.c.distributor_id == distributor_id)
            .where(synced.is_(None) | (synced < before))
            .order_by(synced.asc().nulls_first(), product_table.c.sku)
        )
        yield from self.session.execute(stmt).scalars()


class SqlAlchemyCategoryRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, entity: Category) -> None:
        if entity.position is None:
            entity.position = self._next_position()
        self.session.add(entity)

    def get(self, category_id: uuid.UUID) -> Category | None:
        return self.session.get(Category, category_id)

    def find_by_name(self, name: str) -> Category | None:
        stmt = select(Category).where(category_table.c.name == name)
        return self.session.execute(stmt).scalar_one_or_none()

    def list_regular(self) -> list[Category]:
        stmt = (
            select(Category)
            .where(category_table.c.kind == CategoryKind.REGULAR)
            .order_by(category_table.c.position, category_table.c.name)
        )
        return list(self.session.execute(stmt).scalars())

    def _next_position(self) -> int:
        # autoflush puts categories added earlier in this session into the max
        current = self.session.execute(select(func.max(category_table.c.position))).scalar()
        return (current or 0) + 1


if TYPE_CHECKING:
    from sqlalchemy.orm import Session as _Session

    _product_repo_check: ProductRepository = SqlAlchemyProductRepository(_Session())
    _category_repo_check: CategoryRepository = SqlAlchemyCategoryRepository(_Session())
