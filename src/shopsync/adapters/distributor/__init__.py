"""Public interface for the distributor adapter."""

from __future__ import annotations

from .client import (
    ConnectionCheck,
    DistributorAPIError,
    DistributorCatalogFetcher,
    build_sync_request,
)
from .orders import DistributorOrderSubmitter, build_order_request
from .schema import ItemPayload, ProductSyncResponse
from .translator import parse_catalog_item, parse_page

__all__ = [
    "ConnectionCheck",
    "DistributorAPIError",
    "DistributorCatalogFetcher",
    "DistributorOrderSubmitter",
    "ItemPayload",
    "ProductSyncResponse",
    "build_order_request",
    "build_sync_request",
    "parse_catalog_item",
    "parse_page",
]
