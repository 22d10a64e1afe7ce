from __future__ import annotations

import copy
from datetime import timedelta
from typing import TYPE_CHECKING, Any

import pytest

from shopsync.adapters.memory import InMemoryKeyValueStore
from shopsync.domain.model import CatalogFilter, Product, RunOutcome, SkipReason, SyncMode
from shopsync.domain.sync import SyncCoordination, SyncOrchestrator, SyncSettings
from tests.helpers.catalog import FakeCatalogFetcher, make_item, make_items

if TYPE_CHECKING:
    from collections.abc import Callable

    from shopsync.adapters.sqlalchemy import SqlAlchemyCatalogUnitOfWork
    from tests.helpers.catalog import MutableClock

    UowFactory = Callable[[], SqlAlchemyCatalogUnitOfWork]


class RecordingStore(InMemoryKeyValueStore):
    """Keeps every value written, so tests can follow progress over time."""

    def __init__(self, *, clock: Callable[[], Any]) -> None:
        super().__init__(clock=clock)
        self.writes: list[tuple[str, Any]] = []

    def set(self, key: str, value: Any, *, ttl_seconds: int | None = None) -> None:
        self.writes.append((key, copy.deepcopy(value)))
        super().set(key, value, ttl_seconds=ttl_seconds)


@pytest.fixture
def store(clock: MutableClock) -> RecordingStore:
    return RecordingStore(clock=clock)


@pytest.fixture
def coordination(store: RecordingStore, clock: MutableClock) -> SyncCoordination:
    return SyncCoordination.for_distributor(store, "AZT", clock=clock)


def _orchestrator(
    fetcher: FakeCatalogFetcher,
    uow_factory: UowFactory,
    coordination: SyncCoordination,
    clock: MutableClock,
    *,
    pause: Callable[[float], None] | None = None,
    **settings: Any,
) -> SyncOrchestrator:
    defaults: dict[str, Any] = {
        "page_size": 2,
        "page_delay_seconds": 0.0,
        "sweep_verify_remote": False,
    }
    defaults.update(settings)
    return SyncOrchestrator(
        fetcher=fetcher,
        unit_of_work_factory=uow_factory,
        coordination=coordination,
        settings=SyncSettings(**defaults),
        clock=clock,
        pause=pause or (lambda _seconds: None),
    )


def _seed_stale(uow_factory: UowFactory, clock: MutableClock, sku: str = "GONE-1") -> None:
    with uow_factory() as uow:
        uow.repositories.products.add(
            Product(
                sku=sku,
                title="Discontinued",
                distributor_id="AZT",
                last_synced_at=clock.now - timedelta(days=30),
            )
        )
        uow.commit()


def _exists(uow_factory: UowFactory, sku: str) -> bool:
    with uow_factory() as uow:
        return uow.repositories.products.find_by_sku(sku) is not None


def test_full_sync_paginates_and_reports_progress(
    sqlite_unit_of_work: UowFactory,
    coordination: SyncCoordination,
    store: RecordingStore,
    clock: MutableClock,
) -> None:
    fetcher = FakeCatalogFetcher(catalog=make_items(5))
    pauses: list[float] = []
    orchestrator = _orchestrator(
        fetcher,
        sqlite_unit_of_work,
        coordination,
        clock,
        pause=pauses.append,
        page_delay_seconds=1.5,
    )

    result = orchestrator.run(SyncMode.FULL)

    assert result.outcome is RunOutcome.SUCCESS
    assert (result.total_pages, result.expected) == (3, 5)
    assert (result.processed, result.created) == (5, 5)
    assert fetcher.pages_fetched() == [1, 2, 3]
    assert pauses == [1.5, 1.5]
    processed = [
        value["processed"]
        for key, value in store.writes
        if key == "sync_progress:AZT" and value.get("processed")
    ]
    assert list(dict.fromkeys(processed)) == [2, 4, 5]
    pages = [
        value["current_page"]
        for key, value in store.writes
        if key == "sync_progress:AZT" and value.get("current_page")
    ]
    assert list(dict.fromkeys(pages)) == [1, 2, 3]
    # progress is cleared and the lock released afterwards
    assert coordination.progress.snapshot() is None
    assert not coordination.lock.is_held(coordination.lock_key).held


def _product_state(uow_factory: UowFactory, skus: list[str]) -> list[tuple[Any, ...]]:
    with uow_factory() as uow:
        products = [uow.repositories.products.find_by_sku(sku) for sku in skus]
        return [
            (
                product.sku,
                product.title,
                product.price,
                product.cost,
                product.stock_quantity,
                product.stock_status,
                product.distributor_id,
                sorted(category.name for category in product.categories),
                product.image_ref,
                product.last_synced_at,
            )
            for product in products
            if product is not None
        ]


def test_second_run_is_idempotent(
    sqlite_unit_of_work: UowFactory,
    coordination: SyncCoordination,
    clock: MutableClock,
) -> None:
    catalog = make_items(4)
    skus = [item.sku for item in catalog]
    fetcher = FakeCatalogFetcher(catalog=catalog)
    orchestrator = _orchestrator(fetcher, sqlite_unit_of_work, coordination, clock)

    first = orchestrator.run(SyncMode.FULL)
    after_first = _product_state(sqlite_unit_of_work, skus)
    second = orchestrator.run(SyncMode.FULL)
    after_second = _product_state(sqlite_unit_of_work, skus)

    assert first.created == 4
    assert second.created == 0
    assert second.stats.updated == 4
    assert second.deleted == 0
    assert len(after_first) == 4
    assert after_second == after_first


def test_run_while_locked_reports_already_running(
    sqlite_unit_of_work: UowFactory,
    coordination: SyncCoordination,
    clock: MutableClock,
) -> None:
    fetcher = FakeCatalogFetcher(catalog=make_items(1))
    coordination.lock.try_acquire(coordination.lock_key, ttl_seconds=900, token="other")

    result = _orchestrator(fetcher, sqlite_unit_of_work, coordination, clock).run(SyncMode.FULL)

    assert result.outcome is RunOutcome.ALREADY_RUNNING
    assert fetcher.calls == []
    assert coordination.history.last() is None
    assert coordination.lock.is_held(coordination.lock_key).held


def test_overlapping_run_is_rejected(
    sqlite_unit_of_work: UowFactory,
    coordination: SyncCoordination,
    clock: MutableClock,
) -> None:
    fetcher = FakeCatalogFetcher(catalog=make_items(4))
    contender = FakeCatalogFetcher(catalog=make_items(4))
    overlapping: list[RunOutcome] = []

    def start_second_run(_seconds: float) -> None:
        second = _orchestrator(contender, sqlite_unit_of_work, coordination, clock)
        overlapping.append(second.run(SyncMode.PARTIAL).outcome)

    first = _orchestrator(
        fetcher, sqlite_unit_of_work, coordination, clock, pause=start_second_run
    ).run(SyncMode.FULL)

    assert first.outcome is RunOutcome.SUCCESS
    assert overlapping == [RunOutcome.ALREADY_RUNNING]
    assert contender.calls == []


def test_stale_lock_is_reported_and_force_overrides_it(
    sqlite_unit_of_work: UowFactory,
    coordination: SyncCoordination,
    clock: MutableClock,
) -> None:
    coordination.lock.try_acquire(coordination.lock_key, ttl_seconds=900, token="crashed")
    clock.advance(seconds=700)
    fetcher = FakeCatalogFetcher(catalog=make_items(1))
    orchestrator = _orchestrator(fetcher, sqlite_unit_of_work, coordination, clock)

    blocked = orchestrator.run(SyncMode.FULL)
    forced = orchestrator.run(SyncMode.FULL, force=True)

    assert blocked.outcome is RunOutcome.ALREADY_RUNNING
    assert "stale" in blocked.message
    assert forced.outcome is RunOutcome.SUCCESS
    assert not coordination.lock.is_held(coordination.lock_key).held


def test_first_page_failure_fails_the_run(
    sqlite_unit_of_work: UowFactory,
    coordination: SyncCoordination,
    clock: MutableClock,
) -> None:
    fetcher = FakeCatalogFetcher(catalog=make_items(3), failing_pages={1})

    result = _orchestrator(fetcher, sqlite_unit_of_work, coordination, clock).run(SyncMode.FULL)

    assert result.outcome is RunOutcome.FAILED
    assert result.error is not None
    assert "HTTP 503" in result.error
    assert not coordination.lock.is_held(coordination.lock_key).held
    last = coordination.history.last(SyncMode.FULL)
    assert last is not None
    assert last.outcome is RunOutcome.FAILED


def test_page_gap_blocks_the_sweep(
    sqlite_unit_of_work: UowFactory,
    coordination: SyncCoordination,
    clock: MutableClock,
) -> None:
    _seed_stale(sqlite_unit_of_work, clock)
    fetcher = FakeCatalogFetcher(catalog=make_items(5), failing_pages={2})

    result = _orchestrator(fetcher, sqlite_unit_of_work, coordination, clock).run(SyncMode.FULL)

    assert result.outcome is RunOutcome.SUCCESS
    assert result.page_gaps == [2]
    assert result.processed == 3
    assert result.deleted == 0
    assert "pages not fetched: 2" in result.message
    assert _exists(sqlite_unit_of_work, "GONE-1")


def test_clean_full_sync_sweeps_discontinued_products(
    sqlite_unit_of_work: UowFactory,
    coordination: SyncCoordination,
    clock: MutableClock,
) -> None:
    _seed_stale(sqlite_unit_of_work, clock)
    fetcher = FakeCatalogFetcher(catalog=make_items(3))

    result = _orchestrator(fetcher, sqlite_unit_of_work, coordination, clock).run(SyncMode.FULL)

    assert result.deleted == 1
    assert not _exists(sqlite_unit_of_work, "GONE-1")
    assert _exists(sqlite_unit_of_work, "SKU-001")


def test_filtered_or_partial_runs_never_sweep(
    sqlite_unit_of_work: UowFactory,
    coordination: SyncCoordination,
    clock: MutableClock,
) -> None:
    _seed_stale(sqlite_unit_of_work, clock)
    fetcher = FakeCatalogFetcher(catalog=make_items(3))
    orchestrator = _orchestrator(fetcher, sqlite_unit_of_work, coordination, clock)

    filtered = orchestrator.run(
        SyncMode.FULL, catalog_filter=CatalogFilter.for_skus(["SKU-001"])
    )
    partial = orchestrator.run(SyncMode.PARTIAL)

    assert filtered.deleted == 0
    assert partial.deleted == 0
    assert _exists(sqlite_unit_of_work, "GONE-1")
    assert fetcher.calls[0].catalog_filter == CatalogFilter(skus=("SKU-001",))


def test_partial_sync_skips_unknown_skus(
    sqlite_unit_of_work: UowFactory,
    coordination: SyncCoordination,
    clock: MutableClock,
) -> None:
    fetcher = FakeCatalogFetcher(catalog=make_items(3))

    result = _orchestrator(fetcher, sqlite_unit_of_work, coordination, clock).run(
        SyncMode.PARTIAL
    )

    assert result.outcome is RunOutcome.SUCCESS
    assert result.created == 0
    assert result.stats.skip_reasons[SkipReason.UNKNOWN_SKU] == 3
    assert not _exists(sqlite_unit_of_work, "SKU-001")


def test_abort_stops_after_current_page_without_sweep(
    sqlite_unit_of_work: UowFactory,
    coordination: SyncCoordination,
    clock: MutableClock,
) -> None:
    _seed_stale(sqlite_unit_of_work, clock)
    fetcher = FakeCatalogFetcher(catalog=make_items(5))

    def abort_during_pause(_seconds: float) -> None:
        coordination.abort.request()

    result = _orchestrator(
        fetcher, sqlite_unit_of_work, coordination, clock, pause=abort_during_pause
    ).run(SyncMode.FULL)

    assert result.outcome is RunOutcome.ABORTED
    assert fetcher.pages_fetched() == [1]
    assert result.processed == 2
    assert result.deleted == 0
    assert _exists(sqlite_unit_of_work, "GONE-1")
    assert not coordination.abort.is_requested()
    assert not coordination.lock.is_held(coordination.lock_key).held
    last = coordination.history.last()
    assert last is not None
    assert last.outcome is RunOutcome.ABORTED


def test_stale_abort_flag_is_cleared_at_start(
    sqlite_unit_of_work: UowFactory,
    coordination: SyncCoordination,
    clock: MutableClock,
) -> None:
    coordination.abort.request()
    fetcher = FakeCatalogFetcher(catalog=make_items(3))

    result = _orchestrator(fetcher, sqlite_unit_of_work, coordination, clock).run(SyncMode.FULL)

    assert result.outcome is RunOutcome.SUCCESS


def test_new_item_in_short_category_lands_in_stored_category(
    sqlite_unit_of_work: UowFactory,
    coordination: SyncCoordination,
    clock: MutableClock,
) -> None:
    fetcher = FakeCatalogFetcher(
        catalog=[make_item("W-1", category="Widgets")],
        categories=["Wooden Widgets"],
    )

    result = _orchestrator(fetcher, sqlite_unit_of_work, coordination, clock).run(SyncMode.FULL)

    assert result.created == 1
    with sqlite_unit_of_work() as uow:
        product = uow.repositories.products.find_by_sku("W-1")
    assert product is not None
    assert {c.name for c in product.categories} == {"Wooden Widgets"}


def test_missing_distributor_id_fails_before_locking(
    sqlite_unit_of_work: UowFactory,
    store: RecordingStore,
    clock: MutableClock,
) -> None:
    coordination = SyncCoordination.for_distributor(store, " ", clock=clock)
    fetcher = FakeCatalogFetcher(catalog=make_items(1))

    result = _orchestrator(fetcher, sqlite_unit_of_work, coordination, clock).run(SyncMode.FULL)

    assert result.outcome is RunOutcome.FAILED
    assert fetcher.calls == []
    assert store.writes == []


def test_run_records_history(
    sqlite_unit_of_work: UowFactory,
    coordination: SyncCoordination,
    clock: MutableClock,
) -> None:
    fetcher = FakeCatalogFetcher(catalog=make_items(2))

    result = _orchestrator(fetcher, sqlite_unit_of_work, coordination, clock).run(
        SyncMode.FULL, page_size=10
    )

    last = coordination.history.last(SyncMode.FULL)
    assert last is not None
    assert last.outcome is RunOutcome.SUCCESS
    assert last.processed == 2
    assert last.created == 2
    assert last.finished_at == result.finished_at
    assert fetcher.calls[0].page_size == 10


def test_unexpected_error_mid_run_fails_and_cleans_up(
    sqlite_unit_of_work: UowFactory,
    coordination: SyncCoordination,
    clock: MutableClock,
) -> None:
    def explode(page: int) -> None:
        if page == 2:
            raise RuntimeError("distributor exploded")

    fetcher = FakeCatalogFetcher(catalog=make_items(5), before_fetch=explode)

    result = _orchestrator(fetcher, sqlite_unit_of_work, coordination, clock).run(SyncMode.FULL)

    assert result.outcome is RunOutcome.FAILED
    assert result.error == "RuntimeError: distributor exploded"
    assert result.deleted == 0
    # the first page is already committed
    assert _exists(sqlite_unit_of_work, "SKU-001")
    assert not _exists(sqlite_unit_of_work, "SKU-003")
    assert not coordination.lock.is_held(coordination.lock_key).held
    assert coordination.progress.snapshot() is None
    last = coordination.history.last(SyncMode.FULL)
    assert last is not None
    assert last.outcome is RunOutcome.FAILED


def test_lock_is_refreshed_between_pages(
    sqlite_unit_of_work: UowFactory,
    coordination: SyncCoordination,
    clock: MutableClock,
) -> None:
    held: list[bool] = []

    def slow_page(page: int) -> None:
        held.append(coordination.lock.is_held(coordination.lock_key).held)
        clock.advance(minutes=10)

    fetcher = FakeCatalogFetcher(catalog=make_items(6), before_fetch=slow_page)

    result = _orchestrator(fetcher, sqlite_unit_of_work, coordination, clock).run(SyncMode.FULL)

    # 30 minutes in total against a 15 minute lock TTL
    assert coordination.lock_ttl_seconds == 900
    assert result.outcome is RunOutcome.SUCCESS
    assert held == [True, True, True]
    assert not coordination.lock.is_held(coordination.lock_key).held
