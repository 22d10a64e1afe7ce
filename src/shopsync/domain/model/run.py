"""Run results and summaries reported at the orchestrator boundary."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from shopsync.domain.model.enums import RunOutcome, SkipReason, SyncMode

MAX_FAILED_SKUS = 100


@dataclass(slots=True)
class BatchStats:
    """Counters produced by reconciling one batch of catalog items."""

    processed: int = 0
    created: int = 0
    updated: int = 0
    category_updates: int = 0
    skipped: int = 0
    skip_reasons: Counter[SkipReason] = field(default_factory=Counter)
    failed_skus: list[str] = field(default_factory=list)

    def skip(self, reason: SkipReason, *, count: int = 1) -> None:
        self.skipped += count
        self.skip_reasons[reason] += count

    def fail(self, sku: str) -> None:
        self.skip(SkipReason.FAILED)
        if len(self.failed_skus) < MAX_FAILED_SKUS:
            self.failed_skus.append(sku)

    def merge(self, other: BatchStats) -> None:
        self.processed += other.processed
        self.created += other.created
        self.updated += other.updated
        self.category_updates += other.category_updates
        self.skipped += other.skipped
        self.skip_reasons.update(other.skip_reasons)
        room = MAX_FAILED_SKUS - len(self.failed_skus)
        if room > 0:
            self.failed_skus.extend(other.failed_skus[:room])


@dataclass(slots=True)
class SyncRunResult:
    """Structured outcome of one orchestrator invocation."""

    outcome: RunOutcome
    mode: SyncMode
    distributor_id: str
    message: str = ""
    started_at: datetime | None = None
    finished_at: datetime | None = None
    total_pages: int = 0
    expected: int = 0
    stats: BatchStats = field(default_factory=BatchStats)
    deleted: int = 0
    page_gaps: list[int] = field(default_factory=list)
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.outcome is RunOutcome.SUCCESS

    @property
    def processed(self) -> int:
        return self.stats.processed

    @property
    def created(self) -> int:
        return self.stats.created

    @property
    def skipped(self) -> int:
        return self.stats.skipped

    @property
    def failed_skus(self) -> list[str]:
        return self.stats.failed_skus

    def summary(self) -> RunSummary:
        return RunSummary(
            distributor_id=self.distributor_id,
            mode=self.mode,
            outcome=self.outcome,
            finished_at=self.finished_at,
            processed=self.processed,
            created=self.created,
            deleted=self.deleted,
            page_gaps=tuple(self.page_gaps),
            message=self.message,
        )


@dataclass(frozen=True, slots=True)
class RunSummary:
    """The persisted record of the most recent run."""

    distributor_id: str
    mode: SyncMode
    outcome: RunOutcome
    finished_at: datetime | None
    processed: int
    created: int = 0
    deleted: int = 0
    page_gaps: tuple[int, ...] = ()
    message: str = ""

    def to_payload(self) -> dict[str, Any]:
        return {
            "distributor_id": self.distributor_id,
            "mode": str(self.mode),
            "outcome": str(self.outcome),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "processed": self.processed,
            "created": self.created,
            "deleted": self.deleted,
            "page_gaps": list(self.page_gaps),
            "message": self.message,
        }

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> RunSummary:
        finished = payload.get("finished_at")
        return cls(
            distributor_id=str(payload["distributor_id"]),
            mode=SyncMode(payload["mode"]),
            outcome=RunOutcome(payload["outcome"]),
            finished_at=datetime.fromisoformat(finished) if finished else None,
            processed=int(payload.get("processed", 0)),
            created=int(payload.get("created", 0)),
            deleted=int(payload.get("deleted", 0)),
            page_gaps=tuple(int(p) for p in payload.get("page_gaps", ())),
            message=str(payload.get("message", "")),
        )
