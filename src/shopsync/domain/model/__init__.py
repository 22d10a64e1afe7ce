"""Domain model for catalog synchronisation."""

from __future__ import annotations

from .catalog import (
    CatalogFilter,
    CatalogItem,
    DimensionFormatError,
    Dimensions,
    PageResult,
    parse_dimensions,
)
from .enums import (
    UNCATEGORIZED_NAME,
    CategoryKind,
    OrderStatus,
    RunOutcome,
    SkipReason,
    SpecialCategory,
    StockStatus,
    SyncMode,
    UnmatchedCategoryPolicy,
)
from .orders import Address, OrderConfirmation, OrderLine, OrderRequest, OrderSubmissionResult
from .product import Category, Product
from .run import MAX_FAILED_SKUS, BatchStats, RunSummary, SyncRunResult

__all__ = [
    "MAX_FAILED_SKUS",
    "UNCATEGORIZED_NAME",
    "Address",
    "BatchStats",
    "CatalogFilter",
    "CatalogItem",
    "Category",
    "CategoryKind",
    "DimensionFormatError",
    "Dimensions",
    "OrderConfirmation",
    "OrderLine",
    "OrderRequest",
    "OrderStatus",
    "OrderSubmissionResult",
    "PageResult",
    "Product",
    "RunOutcome",
    "RunSummary",
    "SkipReason",
    "SpecialCategory",
    "StockStatus",
    "SyncMode",
    "SyncRunResult",
    "UnmatchedCategoryPolicy",
    "parse_dimensions",
]
