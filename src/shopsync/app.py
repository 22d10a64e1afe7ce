"""Application orchestration entry points."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING

from shopsync.adapters.distributor import DistributorCatalogFetcher, DistributorOrderSubmitter
from shopsync.adapters.images import HttpImageFetcher
from shopsync.adapters.sqlalchemy import (
    SqlAlchemyCatalogUnitOfWork,
    SqlAlchemyKeyValueStore,
    StartupError,
    configured_engine,
    is_started,
    startup,
)
from shopsync.config import (
    ConfigurationError,
    get_distributor_config,
    get_storage_config,
    get_sync_config,
)
from shopsync.domain.model import (
    CatalogFilter,
    RunOutcome,
    SyncMode,
    SyncRunResult,
    UnmatchedCategoryPolicy,
)
from shopsync.domain.orders import submit_order
from shopsync.domain.sync import (
    SyncCoordination,
    SyncOrchestrator,
    SyncSettings,
    SyncStatusService,
)
from shopsync.domain.sync.context import utcnow

if TYPE_CHECKING:
    from shopsync.adapters.distributor import ConnectionCheck
    from shopsync.config import DistributorConfig, SyncConfig
    from shopsync.domain.model import OrderRequest, OrderSubmissionResult
    from shopsync.domain.ports import (
        CatalogFetcher,
        CatalogUnitOfWorkFactory,
        ImageFetcher,
        KeyValueStore,
        OrderSubmitter,
    )
    from shopsync.domain.sync import RunStatus


log = getLogger(__name__)


def _ensure_started() -> None:
    if not is_started():
        startup()


def _default_store() -> KeyValueStore:
    _ensure_started()
    engine = configured_engine()
    if engine is None:
        raise StartupError("Database engine is not configured")
    return SqlAlchemyKeyValueStore(engine)


def settings_from_config(config: SyncConfig) -> SyncSettings:
    return SyncSettings(
        page_size=config.page_size,
        page_delay_seconds=config.page_delay_seconds,
        sub_batch_size=config.sub_batch_size,
        stale_after=config.stale_after,
        sweep_enabled=config.sweep_enabled,
        sweep_limit=config.sweep_limit,
        sweep_verify_remote=config.sweep_verify_remote,
        unmatched_category_policy=UnmatchedCategoryPolicy(config.unmatched_category_policy),
    )


def build_coordination(
    distributor_id: str,
    *,
    store: KeyValueStore | None = None,
    sync_config: SyncConfig | None = None,
) -> SyncCoordination:
    config = sync_config or get_sync_config()
    return SyncCoordination.for_distributor(
        store or _default_store(),
        distributor_id,
        lock_ttl_seconds=config.lock_ttl_seconds,
        stale_lock_seconds=config.stale_lock_seconds,
    )


def sync_catalog(  # noqa: PLR0913
    mode: SyncMode,
    *,
    catalog_filter: CatalogFilter | None = None,
    force: bool = False,
    page_size: int | None = None,
    fetcher: CatalogFetcher | None = None,
    unit_of_work_factory: CatalogUnitOfWorkFactory | None = None,
    store: KeyValueStore | None = None,
    image_fetcher: ImageFetcher | None = None,
    download_images: bool = True,
    distributor_config: DistributorConfig | None = None,
    sync_config: SyncConfig | None = None,
) -> SyncRunResult:
    """Run one catalog sync with the configured adapters.

    Configuration problems are reported as a failed result before any lock is taken.
    """

    try:
        distributor = distributor_config or get_distributor_config()
        config = sync_config or get_sync_config()
    except ConfigurationError as exc:
        log.error("Sync not started: %s", exc)
        now = utcnow()
        return SyncRunResult(
            outcome=RunOutcome.FAILED,
            mode=mode,
            distributor_id="",
            message=str(exc),
            started_at=now,
            finished_at=now,
            error=str(exc),
        )

    if unit_of_work_factory is None:
        _ensure_started()
        unit_of_work_factory = SqlAlchemyCatalogUnitOfWork
    effective_fetcher = fetcher or DistributorCatalogFetcher(
        config=distributor,
        attempts=config.fetch_attempts,
        retry_delay_seconds=config.retry_delay_seconds,
    )
    if image_fetcher is None and download_images and mode is SyncMode.FULL:
        image_fetcher = HttpImageFetcher(images_dir=get_storage_config().images_dir())

    log.info(
        "Starting %s sync for %s: filter=%s, force=%s, page_size=%s",
        mode,
        distributor.distributor_id,
        catalog_filter,
        force,
        page_size or config.page_size,
    )
    orchestrator = SyncOrchestrator(
        fetcher=effective_fetcher,
        unit_of_work_factory=unit_of_work_factory,
        coordination=build_coordination(
            distributor.distributor_id, store=store, sync_config=config
        ),
        settings=settings_from_config(config),
        image_fetcher=image_fetcher,
    )
    return orchestrator.run(mode, catalog_filter=catalog_filter, force=force, page_size=page_size)


def sync_stock(
    *,
    skus: list[str] | None = None,
    force: bool = False,
    fetcher: CatalogFetcher | None = None,
    unit_of_work_factory: CatalogUnitOfWorkFactory | None = None,
    store: KeyValueStore | None = None,
    distributor_config: DistributorConfig | None = None,
    sync_config: SyncConfig | None = None,
) -> SyncRunResult:
    """Partial sync: stock and price only, never creates products."""

    return sync_catalog(
        SyncMode.PARTIAL,
        catalog_filter=CatalogFilter.for_skus(skus) if skus else None,
        force=force,
        fetcher=fetcher,
        unit_of_work_factory=unit_of_work_factory,
        store=store,
        download_images=False,
        distributor_config=distributor_config,
        sync_config=sync_config,
    )


def _status_service(
    store: KeyValueStore | None,
    distributor_config: DistributorConfig | None,
) -> SyncStatusService:
    distributor = distributor_config or get_distributor_config()
    return SyncStatusService(build_coordination(distributor.distributor_id, store=store))


def get_sync_status(
    *,
    store: KeyValueStore | None = None,
    distributor_config: DistributorConfig | None = None,
) -> RunStatus:
    return _status_service(store, distributor_config).get_run_status()


def request_abort(
    *,
    store: KeyValueStore | None = None,
    distributor_config: DistributorConfig | None = None,
) -> bool:
    return _status_service(store, distributor_config).request_abort()


def force_release_lock(
    *,
    store: KeyValueStore | None = None,
    distributor_config: DistributorConfig | None = None,
) -> None:
    _status_service(store, distributor_config).force_release_lock()


def check_connection(*, distributor_config: DistributorConfig | None = None) -> ConnectionCheck:
    distributor = distributor_config or get_distributor_config()
    return DistributorCatalogFetcher(config=distributor, attempts=1).check_connection()


def submit_distributor_order(
    request: OrderRequest,
    *,
    submitter: OrderSubmitter | None = None,
    testing: bool = False,
) -> OrderSubmissionResult:
    """Forward a merchant order to the distributor."""

    effective = submitter or DistributorOrderSubmitter(
        config=get_distributor_config(), testing=testing
    )
    return submit_order(request, submitter=effective)
