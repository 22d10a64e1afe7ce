"""Per-run state passed down the sync call chain."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Protocol

from shopsync.domain.model import BatchStats, CatalogFilter, RunOutcome, SyncMode, SyncRunResult

if TYPE_CHECKING:
    from .coordination import SyncCoordination


class Clock(Protocol):
    def __call__(self) -> datetime: ...


def utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass(slots=True)
class SyncContext:
    """Everything one orchestrator invocation knows about itself.

    The loop variables here drive control flow; the progress tracker only mirrors them.
    """

    mode: SyncMode
    distributor_id: str
    coordination: SyncCoordination
    lock_token: str
    started_at: datetime
    catalog_filter: CatalogFilter = field(default_factory=CatalogFilter)
    page_size: int = 500
    current_page: int = 0
    total_pages: int = 0
    expected: int = 0
    confirmed_active: set[str] = field(default_factory=set)
    stats: BatchStats = field(default_factory=BatchStats)
    page_gaps: list[int] = field(default_factory=list)
    deleted: int = 0
    aborted: bool = False

    @property
    def sweep_allowed(self) -> bool:
        """Only a clean, unfiltered full pass may treat unseen SKUs as discontinued."""
        return (
            self.mode is SyncMode.FULL
            and self.catalog_filter.is_empty
            and not self.aborted
            and not self.page_gaps
        )

    def to_result(
        self,
        outcome: RunOutcome,
        *,
        message: str = "",
        error: str | None = None,
        finished_at: datetime | None = None,
    ) -> SyncRunResult:
        return SyncRunResult(
            outcome=outcome,
            mode=self.mode,
            distributor_id=self.distributor_id,
            message=message,
            started_at=self.started_at,
            finished_at=finished_at,
            total_pages=self.total_pages,
            expected=self.expected,
            stats=self.stats,
            deleted=self.deleted,
            page_gaps=list(self.page_gaps),
            error=error,
        )
