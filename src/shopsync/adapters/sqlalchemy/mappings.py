"""SQLAlchemy mapping metadata for the shopsync domain model."""

from __future__ import annotations

import json
import logging
import uuid
from datetime import UTC, datetime
from decimal import Decimal, InvalidOperation
from functools import cache
from typing import TYPE_CHECKING, Any

from sqlalchemy import (
    Column,
    DateTime,
    Dialect,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Table,
    Text,
    TypeDecorator,
    Uuid,
    orm,
)
from sqlalchemy.orm import configure_mappers, relationship

from shopsync.domain.model import Category, CategoryKind, Product, StockStatus

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine

log = logging.getLogger(__name__)

UUIDColumnType = Uuid[uuid.UUID]


class UTCDateTime(TypeDecorator[datetime]):
    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    def process_result_value(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        return value if value.tzinfo else value.replace(tzinfo=UTC)


class DecimalString(TypeDecorator[Decimal]):
    """Exact decimals stored as text; SQLite has no native decimal type."""

    impl = String(32)
    cache_ok = True

    def process_bind_param(self, value: Decimal | None, dialect: Dialect) -> str | None:
        _ = dialect
        if value is None:
            return None
        return str(value)

    def process_result_value(self, value: str | None, dialect: Dialect) -> Decimal | None:
        _ = dialect
        if value is None:
            return None
        try:
            return Decimal(value)
        except InvalidOperation:
            log.warning("Discarding malformed decimal %r", value)
            return None


class JSONText(TypeDecorator[Any]):
    impl = Text
    cache_ok = True

    def process_bind_param(self, value: Any, dialect: Dialect) -> str | None:
        _ = dialect
        if value is None:
            return None
        return json.dumps(value, sort_keys=True)

    def process_result_value(self, value: str | None, dialect: Dialect) -> Any:
        _ = dialect
        if value is None:
            return None
        return json.loads(value)


mapper_registry = orm.registry()
mapper_registry.metadata.naming_convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_label)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_label)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

# Catalog tables --------------------------------------------------------------

product_table = Table(
    "product",
    mapper_registry.metadata,
    Column("id", UUIDColumnType, primary_key=True),
    Column("sku", String(64), nullable=False, unique=True),
    Column("title", String(255), nullable=False),
    Column("description", Text, nullable=False, default=""),
    Column("excerpt", Text, nullable=False, default=""),
    Column("stock_quantity", Integer, nullable=False, default=0),
    Column("stock_status", Enum(StockStatus, native_enum=False), nullable=False),
    Column("price", DecimalString, nullable=True),
    Column("cost", DecimalString, nullable=True),
    Column("length", DecimalString, nullable=True),
    Column("width", DecimalString, nullable=True),
    Column("height", DecimalString, nullable=True),
    Column("weight", DecimalString, nullable=True),
    Column("image_ref", String(255), nullable=True),
    Column("distributor_id", String(64), nullable=True),
    Column("last_synced_at", UTCDateTime(), nullable=True),
    Column("created_at", UTCDateTime(), nullable=True),
    Index("ix_product_distributor_synced", "distributor_id", "last_synced_at"),
)

category_table = Table(
    "category",
    mapper_registry.metadata,
    Column("id", UUIDColumnType, primary_key=True),
    Column("name", String(255), nullable=False, unique=True),
    Column("kind", Enum(CategoryKind, native_enum=False), nullable=False),
    Column("description", Text, nullable=False, default=""),
    Column("position", Integer, nullable=True),
)

product_category_table = Table(
    "product_category",
    mapper_registry.metadata,
    Column(
        "product_id",
        UUIDColumnType,
        ForeignKey("product.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    Column(
        "category_id",
        UUIDColumnType,
        ForeignKey("category.id", ondelete="CASCADE"),
        primary_key=True,
    ),
)

# Coordination state ----------------------------------------------------------

sync_state_table = Table(
    "sync_state",
    mapper_registry.metadata,
    Column("key", String(255), primary_key=True),
    Column("value", JSONText, nullable=True),
    Column("expires_at", UTCDateTime(), nullable=True),
    Column("updated_at", UTCDateTime(), nullable=False),
)


@cache
def start_mappers() -> orm.registry:
    """Configure SQLAlchemy mappers for the domain model."""

    log.info("Starting SQLAlchemy mappers")

    mapper_registry.map_imperatively(Category, category_table)

    mapper_registry.map_imperatively(
        Product,
        product_table,
        properties={
            "categories": relationship(
                Category,
                secondary=product_category_table,
                collection_class=set,
                lazy="selectin",
            ),
        },
    )

    configure_mappers()
    return mapper_registry


def create_all_tables(engine: Engine) -> None:
    """Create database tables for the mapped metadata."""

    log.info("Creating all tables")
    mapper_registry.metadata.create_all(engine)
