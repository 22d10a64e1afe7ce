from __future__ import annotations

import threading
from typing import TYPE_CHECKING

from shopsync.adapters.memory import InMemoryKeyValueStore
from shopsync.domain.model import RunOutcome, RunSummary, SyncMode
from shopsync.domain.sync import SyncCoordination, SyncLock, SyncStatusService

if TYPE_CHECKING:
    from tests.helpers.catalog import MutableClock

LOCK_KEY = "sync_lock:AZT"


def _coordination(store: InMemoryKeyValueStore, clock: MutableClock) -> SyncCoordination:
    return SyncCoordination.for_distributor(
        store,
        "AZT",
        lock_ttl_seconds=900,
        stale_lock_seconds=600,
        clock=clock,
    )


def test_lock_is_exclusive_until_released(
    memory_store: InMemoryKeyValueStore, clock: MutableClock
) -> None:
    lock = SyncLock(memory_store, clock=clock)

    assert lock.try_acquire(LOCK_KEY, ttl_seconds=900, token="first")
    assert not lock.try_acquire(LOCK_KEY, ttl_seconds=900, token="second")

    lock.release(LOCK_KEY, token="first")
    assert lock.try_acquire(LOCK_KEY, ttl_seconds=900, token="second")


def test_lock_expires_after_ttl(memory_store: InMemoryKeyValueStore, clock: MutableClock) -> None:
    lock = SyncLock(memory_store, clock=clock)
    assert lock.try_acquire(LOCK_KEY, ttl_seconds=900, token="crashed")

    clock.advance(seconds=901)

    assert not lock.is_held(LOCK_KEY).held
    assert lock.try_acquire(LOCK_KEY, ttl_seconds=900, token="next")


def test_release_with_foreign_token_keeps_lock(
    memory_store: InMemoryKeyValueStore, clock: MutableClock
) -> None:
    lock = SyncLock(memory_store, clock=clock)
    lock.try_acquire(LOCK_KEY, ttl_seconds=900, token="old")
    lock.acquire(LOCK_KEY, ttl_seconds=900, token="forced")

    lock.release(LOCK_KEY, token="old")

    assert lock.is_held(LOCK_KEY).held


def test_refresh_extends_only_our_own_lock(
    memory_store: InMemoryKeyValueStore, clock: MutableClock
) -> None:
    lock = SyncLock(memory_store, clock=clock)
    lock.try_acquire(LOCK_KEY, ttl_seconds=900, token="mine")

    clock.advance(seconds=800)
    assert lock.refresh(LOCK_KEY, ttl_seconds=900, token="mine")
    clock.advance(seconds=800)
    status = lock.is_held(LOCK_KEY)
    assert status.held
    assert status.age_seconds == 800

    lock.acquire(LOCK_KEY, ttl_seconds=900, token="forced")
    assert not lock.refresh(LOCK_KEY, ttl_seconds=900, token="mine")
    assert memory_store.get(LOCK_KEY)["token"] == "forced"


def test_lock_age_and_staleness(memory_store: InMemoryKeyValueStore, clock: MutableClock) -> None:
    lock = SyncLock(memory_store, clock=clock)
    lock.try_acquire(LOCK_KEY, ttl_seconds=900, token="t")

    clock.advance(seconds=300)
    status = lock.is_held(LOCK_KEY)
    assert status.held
    assert status.age_seconds == 300
    assert not status.is_stale(600)

    clock.advance(seconds=400)
    assert lock.is_held(LOCK_KEY).is_stale(600)


def test_only_one_concurrent_acquirer_wins() -> None:
    store = InMemoryKeyValueStore()
    lock = SyncLock(store)
    barrier = threading.Barrier(8)
    winners: list[str] = []
    winners_lock = threading.Lock()

    def contender(token: str) -> None:
        barrier.wait()
        if lock.try_acquire(LOCK_KEY, ttl_seconds=900, token=token):
            with winners_lock:
                winners.append(token)

    threads = [threading.Thread(target=contender, args=(f"t{i}",)) for i in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(winners) == 1


def test_progress_tracker_accumulates(
    memory_store: InMemoryKeyValueStore, clock: MutableClock
) -> None:
    progress = _coordination(memory_store, clock).progress
    progress.reset()
    progress.set_totals(3, 250)
    progress.set_current_page(2)
    progress.add_processed(100)
    progress.add_processed(50)

    snapshot = progress.snapshot()
    assert snapshot is not None
    assert (snapshot.current_page, snapshot.total_pages) == (2, 3)
    assert (snapshot.processed, snapshot.expected) == (150, 250)
    assert snapshot.started_at == clock.now

    progress.clear()
    assert progress.snapshot() is None


def test_run_history_keeps_last_run_per_mode(
    memory_store: InMemoryKeyValueStore, clock: MutableClock
) -> None:
    history = _coordination(memory_store, clock).history
    full = RunSummary("AZT", SyncMode.FULL, RunOutcome.SUCCESS, clock.now, processed=10)
    partial = RunSummary(
        "AZT", SyncMode.PARTIAL, RunOutcome.FAILED, clock.advance(hours=1), processed=0
    )

    history.record(full)
    history.record(partial)

    assert history.last() == partial
    assert history.last(SyncMode.FULL) == full
    assert history.last(SyncMode.PARTIAL) == partial


def test_status_service_reports_running_sync(
    memory_store: InMemoryKeyValueStore, clock: MutableClock
) -> None:
    coordination = _coordination(memory_store, clock)
    service = SyncStatusService(coordination)
    assert not service.get_run_status().active

    coordination.lock.try_acquire(coordination.lock_key, ttl_seconds=900, token="run")
    coordination.progress.reset()
    coordination.progress.set_totals(5, 500)
    clock.advance(seconds=700)

    status = service.get_run_status()
    assert status.active
    assert status.total_pages == 5
    assert status.lock_age_seconds == 700
    assert status.stale


def test_abort_request_and_force_release(
    memory_store: InMemoryKeyValueStore, clock: MutableClock
) -> None:
    coordination = _coordination(memory_store, clock)
    service = SyncStatusService(coordination)

    assert service.request_abort() is False
    coordination.lock.try_acquire(coordination.lock_key, ttl_seconds=900, token="run")
    assert service.request_abort() is True
    assert service.get_run_status().abort_requested

    service.force_release_lock()

    status = service.get_run_status()
    assert not status.active
    assert not status.abort_requested
    assert coordination.lock.try_acquire(coordination.lock_key, ttl_seconds=900, token="new")
