"""End-to-end catalog synchronisation run."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import timedelta
from typing import TYPE_CHECKING
from uuid import uuid4

from shopsync.domain.model import (
    CatalogFilter,
    RunOutcome,
    SkipReason,
    SyncMode,
    SyncRunResult,
    UnmatchedCategoryPolicy,
)

from .categories import CategoryResolver
from .context import SyncContext, utcnow
from .reconciler import DEFAULT_SUB_BATCH_SIZE, ProductReconciler
from .sweeper import DEFAULT_SWEEP_LIMIT, DiscontinuationSweeper

if TYPE_CHECKING:
    from collections.abc import Callable

    from shopsync.domain.model import PageResult
    from shopsync.domain.ports import CatalogFetcher, CatalogUnitOfWorkFactory, ImageFetcher

    from .context import Clock
    from .coordination import SyncCoordination

log = logging.getLogger(__name__)

MAX_PAGE_SIZE = 1000


@dataclass(frozen=True, slots=True)
class SyncSettings:
    page_size: int = 500
    page_delay_seconds: float = 1.0
    sub_batch_size: int = DEFAULT_SUB_BATCH_SIZE
    stale_after: timedelta = field(default_factory=lambda: timedelta(days=7))
    sweep_enabled: bool = True
    sweep_limit: int = DEFAULT_SWEEP_LIMIT
    sweep_verify_remote: bool = True
    unmatched_category_policy: UnmatchedCategoryPolicy = UnmatchedCategoryPolicy.SKIP


class _FirstPageError(RuntimeError):
    pass


class SyncOrchestrator:
    """Drives one run: lock, paginate, reconcile, sweep, release.

    :meth:`run` never raises for expected conditions; callers always get a
    :class:`SyncRunResult`.
    """

    def __init__(
        self,
        *,
        fetcher: CatalogFetcher,
        unit_of_work_factory: CatalogUnitOfWorkFactory,
        coordination: SyncCoordination,
        settings: SyncSettings | None = None,
        image_fetcher: ImageFetcher | None = None,
        clock: Clock = utcnow,
        pause: Callable[[float], None] = time.sleep,
    ) -> None:
        self._fetcher = fetcher
        self._uow_factory = unit_of_work_factory
        self._coordination = coordination
        self._settings = settings or SyncSettings()
        self._image_fetcher = image_fetcher
        self._clock = clock
        self._pause = pause

    def run(
        self,
        mode: SyncMode,
        *,
        catalog_filter: CatalogFilter | None = None,
        force: bool = False,
        page_size: int | None = None,
    ) -> SyncRunResult:
        coordination = self._coordination
        context = SyncContext(
            mode=mode,
            distributor_id=coordination.distributor_id,
            coordination=coordination,
            lock_token=uuid4().hex,
            started_at=self._clock(),
            catalog_filter=catalog_filter or CatalogFilter(),
            page_size=min(max(page_size or self._settings.page_size, 1), MAX_PAGE_SIZE),
        )

        problem = self._validate(context)
        if problem is not None:
            log.error("Sync not started: %s", problem)
            return context.to_result(
                RunOutcome.FAILED, message=problem, error=problem, finished_at=self._clock()
            )

        if not self._take_lock(context, force=force):
            status = coordination.lock.is_held(coordination.lock_key)
            message = f"Sync already in progress (lock held for {status.age_seconds}s)"
            if status.is_stale(coordination.stale_lock_seconds):
                message += "; the lock looks stale, force release it or run with force"
            log.info(message)
            return context.to_result(
                RunOutcome.ALREADY_RUNNING, message=message, finished_at=self._clock()
            )

        result: SyncRunResult | None = None
        try:
            coordination.abort.clear()
            result = self._execute(context)
        except _FirstPageError as exc:
            log.error("Sync %s failed: %s", mode, exc)
            result = context.to_result(RunOutcome.FAILED, message=str(exc), error=str(exc))
        except Exception as exc:
            log.exception("Sync %s failed unexpectedly", mode)
            result = context.to_result(
                RunOutcome.FAILED,
                message="Sync failed with an unexpected error",
                error=f"{type(exc).__name__}: {exc}",
            )
        finally:
            coordination.lock.release(coordination.lock_key, token=context.lock_token)
            coordination.progress.clear()
            if result is None:
                # only reachable for BaseException (e.g. KeyboardInterrupt)
                result = context.to_result(RunOutcome.ABORTED, message="Interrupted")
            result.finished_at = self._clock()
            coordination.history.record(result.summary())

        log.info(
            "Sync %s finished: outcome=%s processed=%d created=%d skipped=%d deleted=%d gaps=%s",
            mode,
            result.outcome,
            result.processed,
            result.created,
            result.skipped,
            result.deleted,
            result.page_gaps,
        )
        return result

    def _validate(self, context: SyncContext) -> str | None:
        if not context.distributor_id.strip():
            return "Distributor id is not configured"
        return None

    def _take_lock(self, context: SyncContext, *, force: bool) -> bool:
        coordination = self._coordination
        if force:
            coordination.lock.acquire(
                coordination.lock_key,
                ttl_seconds=coordination.lock_ttl_seconds,
                token=context.lock_token,
            )
            return True
        return coordination.lock.try_acquire(
            coordination.lock_key,
            ttl_seconds=coordination.lock_ttl_seconds,
            token=context.lock_token,
        )

    def _execute(self, context: SyncContext) -> SyncRunResult:
        progress = context.coordination.progress
        abort = context.coordination.abort
        progress.reset()

        first = self._fetch(context, 1)
        if not first.ok:
            raise _FirstPageError(f"First page could not be fetched: {first.error}")

        context.total_pages = max(first.total_pages, 1)
        context.expected = first.total_items
        progress.set_totals(context.total_pages, context.expected)
        log.info(
            "Sync %s: %d pages, %d items expected",
            context.mode,
            context.total_pages,
            context.expected,
        )

        resolver: CategoryResolver | None = None
        if context.mode is SyncMode.FULL:
            resolver = self._prepare_categories(first)

        reconciler = ProductReconciler(
            unit_of_work_factory=self._uow_factory,
            distributor_id=context.distributor_id,
            categories=resolver,
            image_fetcher=self._image_fetcher,
            sub_batch_size=self._settings.sub_batch_size,
            clock=self._clock,
        )

        pending: PageResult | None = first
        for page in range(1, context.total_pages + 1):
            if page > 1:
                self._pause(self._settings.page_delay_seconds)
            if abort.is_requested():
                log.warning("Abort requested, stopping before page %d", page)
                context.aborted = True
                abort.clear()
                break
            if page > 1:
                self._heartbeat(context)

            page_result = pending if pending is not None else self._fetch(context, page)
            pending = None
            if not page_result.ok:
                log.warning("Page %d skipped: %s", page, page_result.error)
                context.page_gaps.append(page)
                continue

            context.current_page = page
            progress.set_current_page(page)
            if page_result.dropped:
                context.stats.skip(SkipReason.MISSING_SKU, count=page_result.dropped)
            stats = reconciler.reconcile_batch(
                page_result.items,
                mode=context.mode,
                confirmed_active=context.confirmed_active,
            )
            context.stats.merge(stats)
            progress.add_processed(stats.processed)
            log.info(
                "Page %d/%d: processed=%d created=%d skipped=%d",
                page,
                context.total_pages,
                stats.processed,
                stats.created,
                stats.skipped,
            )

        if context.aborted:
            return context.to_result(
                RunOutcome.ABORTED,
                message=f"Aborted after page {context.current_page} of {context.total_pages}",
            )

        if self._settings.sweep_enabled and context.sweep_allowed:
            context.deleted = self._sweep(context)
        elif context.page_gaps:
            log.warning("Skipping discontinuation sweep, pages missing: %s", context.page_gaps)

        message = f"Processed {context.stats.processed} of {context.expected} items"
        if context.page_gaps:
            message += f"; pages not fetched: {', '.join(map(str, context.page_gaps))}"
        return context.to_result(RunOutcome.SUCCESS, message=message)

    def _heartbeat(self, context: SyncContext) -> None:
        coordination = self._coordination
        coordination.lock.refresh(
            coordination.lock_key,
            ttl_seconds=coordination.lock_ttl_seconds,
            token=context.lock_token,
        )

    def _fetch(self, context: SyncContext, page: int) -> PageResult:
        return self._fetcher(
            mode=context.mode,
            page=page,
            page_size=context.page_size,
            catalog_filter=None if context.catalog_filter.is_empty else context.catalog_filter,
        )

    def _prepare_categories(self, first: PageResult) -> CategoryResolver:
        resolver = CategoryResolver(
            policy=self._settings.unmatched_category_policy,
            create_missing=True,
        )
        with self._uow_factory() as uow:
            resolver.prepare(uow.repositories.categories, first.categories)
            uow.commit()
        return resolver

    def _sweep(self, context: SyncContext) -> int:
        sweeper = DiscontinuationSweeper(
            unit_of_work_factory=self._uow_factory,
            distributor_id=context.distributor_id,
            verifier=self._fetcher if self._settings.sweep_verify_remote else None,
            clock=self._clock,
        )
        return sweeper.sweep(
            context.confirmed_active,
            stale_after=self._settings.stale_after,
            limit=self._settings.sweep_limit,
        )
