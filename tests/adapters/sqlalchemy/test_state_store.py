from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from shopsync.adapters.sqlalchemy import SqlAlchemyKeyValueStore
from shopsync.domain.model import RunOutcome, RunSummary, SyncMode
from shopsync.domain.sync import SyncCoordination, SyncStatusService

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine

    from tests.helpers.catalog import MutableClock


@pytest.fixture
def store(sqlite_engine: Engine, clock: MutableClock) -> SqlAlchemyKeyValueStore:
    return SqlAlchemyKeyValueStore(sqlite_engine, clock=clock)


def test_set_get_delete(store: SqlAlchemyKeyValueStore) -> None:
    store.set("progress", {"current_page": 2, "processed": 40})
    store.set("progress", {"current_page": 3, "processed": 60})

    assert store.get("progress") == {"current_page": 3, "processed": 60}

    store.delete("progress")
    assert store.get("progress") is None


def test_add_is_exclusive_until_expiry(store: SqlAlchemyKeyValueStore, clock: MutableClock) -> None:
    assert store.add("lock", {"token": "a"}, ttl_seconds=60)
    assert not store.add("lock", {"token": "b"}, ttl_seconds=60)

    clock.advance(seconds=61)

    assert store.get("lock") is None
    assert store.add("lock", {"token": "b"}, ttl_seconds=60)
    assert store.get("lock") == {"token": "b"}


def test_coordination_on_database_store(store: SqlAlchemyKeyValueStore, clock: MutableClock) -> None:
    coordination = SyncCoordination.for_distributor(store, "AZT", clock=clock)
    service = SyncStatusService(coordination)
    coordination.history.record(
        RunSummary("AZT", SyncMode.PARTIAL, RunOutcome.SUCCESS, clock.now, processed=12)
    )

    assert coordination.lock.try_acquire(coordination.lock_key, ttl_seconds=900, token="t")
    assert not coordination.lock.try_acquire(coordination.lock_key, ttl_seconds=900, token="u")

    status = service.get_run_status()
    assert status.active
    assert status.last_partial_run is not None
    assert status.last_partial_run.processed == 12
    assert status.last_full_run is None
