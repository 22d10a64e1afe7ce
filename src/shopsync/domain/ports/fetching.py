"""Ports for fetching data from the distributor."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from shopsync.domain.model import CatalogFilter, PageResult, SyncMode


@runtime_checkable
class CatalogFetcher(Protocol):
    """Callable port returning one normalised catalog page.

    Implementations retry internally and report exhaustion through ``PageResult.error``
    instead of raising.
    """

    def __call__(
        self,
        *,
        mode: SyncMode,
        page: int,
        page_size: int,
        catalog_filter: CatalogFilter | None = None,
    ) -> PageResult: ...


@runtime_checkable
class ImageFetcher(Protocol):
    """Capability that stores the image for a SKU and returns its reference."""

    def __call__(self, sku: str, url: str) -> str | None: ...


__all__ = ["CatalogFetcher", "ImageFetcher"]
