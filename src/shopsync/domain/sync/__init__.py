"""Catalog synchronisation engine."""

from __future__ import annotations

from .categories import CategoryResolution, CategoryResolver
from .context import SyncContext
from .coordination import (
    AbortSignal,
    LockStatus,
    ProgressSnapshot,
    ProgressTracker,
    RunHistory,
    RunStatus,
    SyncCoordination,
    SyncLock,
    SyncStatusService,
)
from .orchestrator import SyncOrchestrator, SyncSettings
from .reconciler import ProductReconciler
from .sweeper import DiscontinuationSweeper

__all__ = [
    "AbortSignal",
    "CategoryResolution",
    "CategoryResolver",
    "DiscontinuationSweeper",
    "LockStatus",
    "ProductReconciler",
    "ProgressSnapshot",
    "ProgressTracker",
    "RunHistory",
    "RunStatus",
    "SyncContext",
    "SyncCoordination",
    "SyncLock",
    "SyncOrchestrator",
    "SyncSettings",
    "SyncStatusService",
]
