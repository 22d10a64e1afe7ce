"""Remove local products the distributor no longer lists."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from shopsync.domain.model import CatalogFilter, SyncMode

from .context import utcnow

if TYPE_CHECKING:
    from collections.abc import Collection, Set
    from datetime import timedelta

    from shopsync.domain.model import Product
    from shopsync.domain.ports import CatalogFetcher, CatalogUnitOfWorkFactory

    from .context import Clock

log = logging.getLogger(__name__)

DEFAULT_SWEEP_LIMIT = 200
MAX_VERIFY_PAGE_SIZE = 1000


class DiscontinuationSweeper:
    """Hard-deletes stale products of one distributor.

    A product is a candidate when its last sync is older than ``stale_after`` and its SKU
    was not seen in the current run. With a ``verifier`` the candidates are re-queried on
    the distributor and only the ones it no longer returns are deleted.
    """

    def __init__(
        self,
        *,
        unit_of_work_factory: CatalogUnitOfWorkFactory,
        distributor_id: str,
        verifier: CatalogFetcher | None = None,
        clock: Clock = utcnow,
    ) -> None:
        self._uow_factory = unit_of_work_factory
        self._distributor_id = distributor_id
        self._verifier = verifier
        self._clock = clock

    def sweep(
        self,
        confirmed_active: Set[str],
        *,
        stale_after: timedelta,
        limit: int = DEFAULT_SWEEP_LIMIT,
    ) -> int:
        now = self._clock()
        cutoff = now - stale_after
        with self._uow_factory() as uow:
            products = uow.repositories.products
            candidates: list[Product] = []
            for product in products.iter_stale(distributor_id=self._distributor_id, before=cutoff):
                if product.sku in confirmed_active:
                    continue
                candidates.append(product)
                if len(candidates) >= limit:
                    break

            if not candidates:
                log.info("Sweep: no stale products for %s", self._distributor_id)
                return 0

            still_listed: set[str] = set()
            if self._verifier is not None:
                verified = self._remote_skus(self._verifier, [p.sku for p in candidates])
                if verified is None:
                    log.warning(
                        "Sweep: remote verification failed, keeping %d candidates", len(candidates)
                    )
                    return 0
                still_listed = verified

            deleted = 0
            for product in candidates:
                if product.sku in still_listed:
                    product.last_synced_at = now
                    continue
                products.delete(product)
                deleted += 1
            uow.commit()

        log.info(
            "Sweep: deleted %d of %d stale products for %s",
            deleted,
            len(candidates),
            self._distributor_id,
        )
        return deleted

    def _remote_skus(self, verifier: CatalogFetcher, skus: Collection[str]) -> set[str] | None:
        catalog_filter = CatalogFilter.for_skus(skus)
        page_size = min(max(len(skus), 1), MAX_VERIFY_PAGE_SIZE)
        found: set[str] = set()
        page = 1
        total_pages = 1
        while page <= total_pages:
            result = verifier(
                mode=SyncMode.PARTIAL,
                page=page,
                page_size=page_size,
                catalog_filter=catalog_filter,
            )
            if not result.ok:
                log.warning("Sweep verification page %d failed: %s", page, result.error)
                return None
            found.update(item.sku for item in result.items)
            total_pages = max(result.total_pages, 1)
            page += 1
        return found
