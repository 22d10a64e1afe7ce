"""Lock, progress, abort flag and run history on top of a key-value store."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Any

from shopsync.domain.model import RunSummary, SyncMode

from .context import utcnow

if TYPE_CHECKING:
    from shopsync.domain.ports import KeyValueStore

    from .context import Clock

log = logging.getLogger(__name__)

DEFAULT_LOCK_TTL_SECONDS = 900
DEFAULT_STALE_LOCK_SECONDS = 600
DEFAULT_PROGRESS_TTL_SECONDS = 900


@dataclass(frozen=True, slots=True)
class LockStatus:
    held: bool
    age_seconds: int = 0

    def is_stale(self, threshold_seconds: int) -> bool:
        return self.held and self.age_seconds > threshold_seconds


class SyncLock:
    """Timestamped flag with a TTL.

    Mutual exclusion is only as strong as ``KeyValueStore.add``; a rare double run is
    tolerated because product upserts are idempotent.
    """

    def __init__(self, store: KeyValueStore, *, clock: Clock = utcnow) -> None:
        self._store = store
        self._clock = clock

    def try_acquire(self, key: str, *, ttl_seconds: int, token: str) -> bool:
        acquired = self._store.add(key, self._payload(token), ttl_seconds=ttl_seconds)
        if acquired:
            log.debug("Acquired lock %s", key)
        return acquired

    def acquire(self, key: str, *, ttl_seconds: int, token: str) -> None:
        """Take the lock unconditionally (forced runs)."""
        status = self.is_held(key)
        if status.held:
            log.warning("Overriding lock %s held for %ss", key, status.age_seconds)
        self._store.set(key, self._payload(token), ttl_seconds=ttl_seconds)

    def refresh(self, key: str, *, ttl_seconds: int, token: str) -> bool:
        """Restart the TTL and age of a lock this run still owns."""
        value = self._store.get(key)
        if isinstance(value, dict) and value.get("token") not in (None, token):
            log.warning("Lock %s was taken over by another run, not refreshing it", key)
            return False
        self._store.set(key, self._payload(token), ttl_seconds=ttl_seconds)
        return True

    def is_held(self, key: str) -> LockStatus:
        value = self._store.get(key)
        if not isinstance(value, dict):
            return LockStatus(held=value is not None)
        acquired_at = _parse_timestamp(value.get("acquired_at"))
        if acquired_at is None:
            return LockStatus(held=True)
        age = max(int((self._clock() - acquired_at).total_seconds()), 0)
        return LockStatus(held=True, age_seconds=age)

    def release(self, key: str, *, token: str | None = None) -> None:
        """Drop the lock; with ``token``, only if it is still ours."""
        if token is not None:
            value = self._store.get(key)
            if isinstance(value, dict) and value.get("token") != token:
                log.warning("Lock %s was taken over by another run, leaving it in place", key)
                return
        self._store.delete(key)

    def force_release(self, key: str) -> None:
        self._store.delete(key)

    def _payload(self, token: str) -> dict[str, Any]:
        return {"token": token, "acquired_at": self._clock().isoformat()}


@dataclass(frozen=True, slots=True)
class ProgressSnapshot:
    current_page: int = 0
    total_pages: int = 0
    processed: int = 0
    expected: int = 0
    started_at: datetime | None = None


class ProgressTracker:
    """Advisory progress for status displays. Never read back for control flow."""

    def __init__(
        self,
        store: KeyValueStore,
        key: str,
        *,
        ttl_seconds: int = DEFAULT_PROGRESS_TTL_SECONDS,
        clock: Clock = utcnow,
    ) -> None:
        self._store = store
        self._key = key
        self._ttl = ttl_seconds
        self._clock = clock

    def reset(self) -> None:
        self._write(
            {
                "current_page": 0,
                "total_pages": 0,
                "processed": 0,
                "expected": 0,
                "started_at": self._clock().isoformat(),
            }
        )

    def set_totals(self, total_pages: int, total_items: int) -> None:
        self._update(total_pages=total_pages, expected=total_items)

    def set_current_page(self, page: int) -> None:
        self._update(current_page=page)

    def add_processed(self, count: int) -> None:
        state = self._read()
        state["processed"] = int(state.get("processed", 0)) + count
        self._write(state)

    def snapshot(self) -> ProgressSnapshot | None:
        value = self._store.get(self._key)
        if not isinstance(value, dict):
            return None
        return ProgressSnapshot(
            current_page=int(value.get("current_page", 0)),
            total_pages=int(value.get("total_pages", 0)),
            processed=int(value.get("processed", 0)),
            expected=int(value.get("expected", 0)),
            started_at=_parse_timestamp(value.get("started_at")),
        )

    def clear(self) -> None:
        self._store.delete(self._key)

    def _update(self, **values: int) -> None:
        state = self._read()
        state.update(values)
        self._write(state)

    def _read(self) -> dict[str, Any]:
        value = self._store.get(self._key)
        return dict(value) if isinstance(value, dict) else {}

    def _write(self, state: dict[str, Any]) -> None:
        self._store.set(self._key, state, ttl_seconds=self._ttl)


class AbortSignal:
    """User-requested stop, observed by the orchestrator at page boundaries."""

    def __init__(self, store: KeyValueStore, key: str, *, ttl_seconds: int) -> None:
        self._store = store
        self._key = key
        self._ttl = ttl_seconds

    def request(self) -> None:
        self._store.set(self._key, True, ttl_seconds=self._ttl)

    def is_requested(self) -> bool:
        return bool(self._store.get(self._key))

    def clear(self) -> None:
        self._store.delete(self._key)


class RunHistory:
    """Last run summary per distributor, overall and per mode."""

    def __init__(self, store: KeyValueStore, key: str) -> None:
        self._store = store
        self._key = key

    def record(self, summary: RunSummary) -> None:
        payload = summary.to_payload()
        self._store.set(self._key, payload)
        self._store.set(f"{self._key}:{summary.mode}", payload)

    def last(self, mode: SyncMode | None = None) -> RunSummary | None:
        key = self._key if mode is None else f"{self._key}:{mode}"
        value = self._store.get(key)
        if not isinstance(value, dict):
            return None
        return RunSummary.from_payload(value)


@dataclass(slots=True)
class SyncCoordination:
    """The core-owned shared state for one distributor."""

    distributor_id: str
    lock: SyncLock
    progress: ProgressTracker
    abort: AbortSignal
    history: RunHistory
    lock_ttl_seconds: int = DEFAULT_LOCK_TTL_SECONDS
    stale_lock_seconds: int = DEFAULT_STALE_LOCK_SECONDS

    @property
    def lock_key(self) -> str:
        return f"sync_lock:{self.distributor_id}"

    @classmethod
    def for_distributor(
        cls,
        store: KeyValueStore,
        distributor_id: str,
        *,
        lock_ttl_seconds: int = DEFAULT_LOCK_TTL_SECONDS,
        stale_lock_seconds: int = DEFAULT_STALE_LOCK_SECONDS,
        progress_ttl_seconds: int = DEFAULT_PROGRESS_TTL_SECONDS,
        clock: Clock = utcnow,
    ) -> SyncCoordination:
        return cls(
            distributor_id=distributor_id,
            lock=SyncLock(store, clock=clock),
            progress=ProgressTracker(
                store,
                f"sync_progress:{distributor_id}",
                ttl_seconds=progress_ttl_seconds,
                clock=clock,
            ),
            abort=AbortSignal(store, f"sync_abort:{distributor_id}", ttl_seconds=lock_ttl_seconds),
            history=RunHistory(store, f"sync_history:{distributor_id}"),
            lock_ttl_seconds=lock_ttl_seconds,
            stale_lock_seconds=stale_lock_seconds,
        )


@dataclass(frozen=True, slots=True)
class RunStatus:
    active: bool
    current_page: int = 0
    total_pages: int = 0
    processed: int = 0
    expected: int = 0
    lock_age_seconds: int = 0
    stale: bool = False
    abort_requested: bool = False
    last_run: RunSummary | None = None
    last_full_run: RunSummary | None = None
    last_partial_run: RunSummary | None = None


class SyncStatusService:
    """Status and control surface for an admin front end."""

    def __init__(self, coordination: SyncCoordination) -> None:
        self._coordination = coordination

    def get_run_status(self) -> RunStatus:
        c = self._coordination
        lock = c.lock.is_held(c.lock_key)
        snapshot = c.progress.snapshot() or ProgressSnapshot()
        return RunStatus(
            active=lock.held,
            current_page=snapshot.current_page,
            total_pages=snapshot.total_pages,
            processed=snapshot.processed,
            expected=snapshot.expected,
            lock_age_seconds=lock.age_seconds,
            stale=lock.is_stale(c.stale_lock_seconds),
            abort_requested=c.abort.is_requested(),
            last_run=c.history.last(),
            last_full_run=c.history.last(SyncMode.FULL),
            last_partial_run=c.history.last(SyncMode.PARTIAL),
        )

    def request_abort(self) -> bool:
        """Flag the running sync to stop; returns whether a run was active."""
        c = self._coordination
        active = c.lock.is_held(c.lock_key).held
        c.abort.request()
        log.info("Abort requested for %s (run active: %s)", c.distributor_id, active)
        return active

    def force_release_lock(self) -> None:
        c = self._coordination
        c.lock.force_release(c.lock_key)
        c.progress.clear()
        c.abort.clear()
        log.warning("Force released sync lock for %s", c.distributor_id)


def _parse_timestamp(value: object) -> datetime | None:
    if not isinstance(value, str):
        return None
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        return None
