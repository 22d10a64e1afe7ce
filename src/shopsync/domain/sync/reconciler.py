"""Create and update local products from catalog items."""

from __future__ import annotations

import gc
import logging
from itertools import batched
from typing import TYPE_CHECKING

from shopsync.domain.model import (
    BatchStats,
    DimensionFormatError,
    Product,
    SkipReason,
    SyncMode,
    parse_dimensions,
)

from .context import utcnow

if TYPE_CHECKING:
    from collections.abc import Sequence
    from uuid import UUID

    from shopsync.domain.model import CatalogItem, Category
    from shopsync.domain.ports import (
        CatalogUnitOfWork,
        CatalogUnitOfWorkFactory,
        ImageFetcher,
    )

    from .categories import CategoryResolver
    from .context import Clock

log = logging.getLogger(__name__)

DEFAULT_SUB_BATCH_SIZE = 50


class ProductReconciler:
    """Applies catalog items to the product store in committed sub-batches.

    Each sub-batch is its own unit of work, so a failure later in a run never rolls back
    work already committed (at-least-once, not all-or-nothing). Each item runs inside a
    savepoint: a bad item is logged, rolled back on its own and the batch moves on.
    """

    def __init__(
        self,
        *,
        unit_of_work_factory: CatalogUnitOfWorkFactory,
        distributor_id: str,
        categories: CategoryResolver | None = None,
        image_fetcher: ImageFetcher | None = None,
        sub_batch_size: int = DEFAULT_SUB_BATCH_SIZE,
        clock: Clock = utcnow,
    ) -> None:
        self._uow_factory = unit_of_work_factory
        self._distributor_id = distributor_id
        self._categories = categories
        self._image_fetcher = image_fetcher
        self._sub_batch_size = max(sub_batch_size, 1)
        self._clock = clock

    def reconcile_batch(
        self,
        items: Sequence[CatalogItem],
        *,
        mode: SyncMode,
        confirmed_active: set[str] | None = None,
    ) -> BatchStats:
        stats = BatchStats()
        seen = confirmed_active if confirmed_active is not None else set[str]()
        for chunk in batched(items, self._sub_batch_size):
            chunk_stats = BatchStats()
            try:
                with self._uow_factory() as uow:
                    for item in chunk:
                        seen.add(item.sku)
                        self._reconcile_guarded(uow, item, mode, chunk_stats)
                    uow.commit()
            except Exception:
                log.exception("Sub-batch of %d items failed to commit", len(chunk))
                for item in chunk:
                    stats.fail(item.sku)
            else:
                stats.merge(chunk_stats)
            finally:
                gc.collect()
        return stats

    def _reconcile_guarded(
        self,
        uow: CatalogUnitOfWork,
        item: CatalogItem,
        mode: SyncMode,
        stats: BatchStats,
    ) -> None:
        try:
            with uow.savepoint():
                self._reconcile_item(uow, item, mode, stats)
        except Exception:
            log.exception("Failed to reconcile SKU %s", item.sku)
            stats.fail(item.sku)

    def _reconcile_item(
        self,
        uow: CatalogUnitOfWork,
        item: CatalogItem,
        mode: SyncMode,
        stats: BatchStats,
    ) -> None:
        products = uow.repositories.products
        product = products.find_by_sku(item.sku)
        created = False

        if product is None:
            if mode is SyncMode.PARTIAL:
                log.debug("Partial sync: unknown SKU %s left alone", item.sku)
                stats.skip(SkipReason.UNKNOWN_SKU)
                return
            if self._categories is not None:
                resolution = self._categories.resolve(item.category, item.description)
                if not resolution.accepted:
                    log.info("No category match for %s (%r), skipped", item.sku, item.category)
                    stats.skip(SkipReason.UNMATCHED_CATEGORY)
                    return
            # another writer may have created it since the first lookup
            product = products.find_by_sku(item.sku, fresh=True)
            if product is None:
                product = Product(
                    sku=item.sku,
                    title=item.title,
                    description=item.description,
                    excerpt=item.excerpt,
                    distributor_id=self._distributor_id,
                    created_at=self._clock(),
                )
                products.add(product)
                created = True

        owned = product.is_owned_by(self._distributor_id)
        self._apply_stock_and_price(product, item, owned=owned)
        if mode is SyncMode.FULL:
            self._apply_full(uow, product, item, owned=owned, stats=stats)

        stats.processed += 1
        if created:
            stats.created += 1
        else:
            stats.updated += 1

    def _apply_stock_and_price(self, product: Product, item: CatalogItem, *, owned: bool) -> None:
        product.set_stock(item.stock_quantity)
        if item.retail_price > 0:
            product.price = item.retail_price
        if item.price > 0:
            product.cost = item.price
        if owned:
            product.distributor_id = self._distributor_id
        product.last_synced_at = self._clock()

    def _apply_full(
        self,
        uow: CatalogUnitOfWork,
        product: Product,
        item: CatalogItem,
        *,
        owned: bool,
        stats: BatchStats,
    ) -> None:
        product.title = item.title
        product.description = item.description
        product.excerpt = item.excerpt

        if product.image_ref is None and self._image_fetcher is not None and item.image_url:
            image_ref = self._image_fetcher(item.sku, item.image_url)
            if image_ref is not None:
                product.image_ref = image_ref

        if owned and self._categories is not None:
            resolution = self._categories.resolve(item.category, item.description)
            if resolution.accepted:
                assigned = self._load_categories(uow, resolution.refs)
                if assigned != product.categories:
                    product.replace_categories(assigned)
                    stats.category_updates += 1

        try:
            dimensions = parse_dimensions(item.dimensions)
        except DimensionFormatError as exc:
            log.warning("Skipping dimensions for %s: %s", item.sku, exc)
        else:
            if dimensions is not None:
                product.set_dimensions(dimensions)

    @staticmethod
    def _load_categories(uow: CatalogUnitOfWork, refs: frozenset[UUID]) -> set[Category]:
        repository = uow.repositories.categories
        loaded: set[Category] = set()
        for ref in refs:
            category = repository.get(ref)
            if category is not None:
                loaded.add(category)
        return loaded
