"""SQLAlchemy adapter package for shopsync."""

from __future__ import annotations

from .mappings import create_all_tables, mapper_registry, start_mappers
from .repositories import SqlAlchemyCategoryRepository, SqlAlchemyProductRepository
from .state_store import SqlAlchemyKeyValueStore
from .unit_of_work import (
    SqlAlchemyCatalogUnitOfWork,
    StartupError,
    build_engine,
    configured_engine,
    enable_sqlite_savepoints,
    is_started,
    shutdown,
    startup,
)

__all__ = [
    "SqlAlchemyCatalogUnitOfWork",
    "SqlAlchemyCategoryRepository",
    "SqlAlchemyKeyValueStore",
    "SqlAlchemyProductRepository",
    "StartupError",
    "build_engine",
    "configured_engine",
    "create_all_tables",
    "enable_sqlite_savepoints",
    "is_started",
    "mapper_registry",
    "shutdown",
    "start_mappers",
    "startup",
]
