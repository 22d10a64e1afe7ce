"""Synchronization defaults for catalog runs."""

from __future__ import annotations

import sys
from dataclasses import dataclass
from datetime import timedelta
from typing import Literal

from .env import env_bool, env_float, env_int, optional_env
from .errors import ConfigurationError

MAX_PAGE_SIZE = 1000
DEFAULT_PAGE_SIZE = 500
DEFAULT_LOCK_TTL_SECONDS = 900
DEFAULT_STALE_LOCK_SECONDS = 600
DEFAULT_FETCH_ATTEMPTS = 3
DEFAULT_RETRY_DELAY_SECONDS = 2.0
DEFAULT_PAGE_DELAY_SECONDS = 1.0
DEFAULT_STALE_AFTER_DAYS = 7
DEFAULT_SWEEP_LIMIT = 200
DEFAULT_MEMORY_LIMIT_MB = 128

UnmatchedCategoryPolicyName = Literal["skip", "uncategorized"]


def sub_batch_size_for_memory(memory_limit_mb: int) -> int:
    """Pick how many items are written per unit of work for the given memory ceiling."""

    if memory_limit_mb > 256:
        return 100
    if memory_limit_mb < 128:
        return 25
    return 50


def detect_memory_limit_mb() -> int:
    """Return the host memory ceiling in MB (override with ``SHOPSYNC_MEMORY_LIMIT_MB``)."""

    override = env_int("SHOPSYNC_MEMORY_LIMIT_MB", 0, minimum=0)
    if override:
        return override
    if sys.platform == "win32":  # pragma: no cover
        return DEFAULT_MEMORY_LIMIT_MB
    import resource  # noqa: PLC0415

    soft, _hard = resource.getrlimit(resource.RLIMIT_AS)
    if soft == resource.RLIM_INFINITY or soft <= 0:
        # no explicit ceiling: behave like a roomy host
        return 512
    return soft // (1024 * 1024)


@dataclass(frozen=True, slots=True)
class SyncConfig:
    page_size: int = DEFAULT_PAGE_SIZE
    lock_ttl_seconds: int = DEFAULT_LOCK_TTL_SECONDS
    stale_lock_seconds: int = DEFAULT_STALE_LOCK_SECONDS
    fetch_attempts: int = DEFAULT_FETCH_ATTEMPTS
    retry_delay_seconds: float = DEFAULT_RETRY_DELAY_SECONDS
    page_delay_seconds: float = DEFAULT_PAGE_DELAY_SECONDS
    sub_batch_size: int = 50
    stale_after: timedelta = timedelta(days=DEFAULT_STALE_AFTER_DAYS)
    sweep_enabled: bool = True
    sweep_limit: int = DEFAULT_SWEEP_LIMIT
    sweep_verify_remote: bool = True
    unmatched_category_policy: UnmatchedCategoryPolicyName = "skip"

    def __post_init__(self) -> None:
        if not 1 <= self.page_size <= MAX_PAGE_SIZE:
            raise ConfigurationError(f"page_size must be within 1..{MAX_PAGE_SIZE}")
        if self.sub_batch_size < 1:
            raise ConfigurationError("sub_batch_size must be positive")
        if self.fetch_attempts < 1:
            raise ConfigurationError("fetch_attempts must be positive")


def _policy_from_env() -> UnmatchedCategoryPolicyName:
    value = optional_env("SHOPSYNC_UNMATCHED_CATEGORY", "skip").lower()
    if value == "skip":
        return "skip"
    if value == "uncategorized":
        return "uncategorized"
    raise ConfigurationError(
        f"SHOPSYNC_UNMATCHED_CATEGORY must be 'skip' or 'uncategorized', got {value!r}"
    )


def get_sync_config() -> SyncConfig:
    page_size = min(env_int("SHOPSYNC_PAGE_SIZE", DEFAULT_PAGE_SIZE, minimum=1), MAX_PAGE_SIZE)
    sub_batch = env_int("SHOPSYNC_SUB_BATCH_SIZE", 0, minimum=0) or sub_batch_size_for_memory(
        detect_memory_limit_mb()
    )
    return SyncConfig(
        page_size=page_size,
        lock_ttl_seconds=env_int("SHOPSYNC_LOCK_TTL", DEFAULT_LOCK_TTL_SECONDS, minimum=1),
        stale_lock_seconds=env_int(
            "SHOPSYNC_STALE_LOCK_SECONDS", DEFAULT_STALE_LOCK_SECONDS, minimum=1
        ),
        fetch_attempts=env_int("SHOPSYNC_FETCH_ATTEMPTS", DEFAULT_FETCH_ATTEMPTS, minimum=1),
        retry_delay_seconds=env_float(
            "SHOPSYNC_RETRY_DELAY", DEFAULT_RETRY_DELAY_SECONDS, minimum=0.0
        ),
        page_delay_seconds=env_float("SHOPSYNC_PAGE_DELAY", DEFAULT_PAGE_DELAY_SECONDS, minimum=0.0),
        sub_batch_size=sub_batch,
        stale_after=timedelta(
            days=env_int("SHOPSYNC_STALE_AFTER_DAYS", DEFAULT_STALE_AFTER_DAYS, minimum=1)
        ),
        sweep_enabled=env_bool("SHOPSYNC_SWEEP_ENABLED", True),
        sweep_limit=env_int("SHOPSYNC_SWEEP_LIMIT", DEFAULT_SWEEP_LIMIT, minimum=1),
        sweep_verify_remote=env_bool("SHOPSYNC_SWEEP_VERIFY", True),
        unmatched_category_policy=_policy_from_env(),
    )


__all__ = [
    "MAX_PAGE_SIZE",
    "SyncConfig",
    "detect_memory_limit_mb",
    "get_sync_config",
    "sub_batch_size_for_memory",
]

