"""Domain port definitions for adapters."""

from __future__ import annotations

from .fetching import CatalogFetcher, ImageFetcher
from .orders import OrderSubmissionError, OrderSubmitter
from .persistence import CategoryRepository, ProductRepository, Repository
from .state import KeyValueStore
from .unit_of_work import (
    CatalogRepositories,
    CatalogUnitOfWork,
    CatalogUnitOfWorkFactory,
    RepositoryCollection,
    UnitOfWork,
)

__all__ = [
    "CatalogFetcher",
    "CatalogRepositories",
    "CatalogUnitOfWork",
    "CatalogUnitOfWorkFactory",
    "CategoryRepository",
    "ImageFetcher",
    "KeyValueStore",
    "OrderSubmissionError",
    "OrderSubmitter",
    "ProductRepository",
    "Repository",
    "RepositoryCollection",
    "UnitOfWork",
]
