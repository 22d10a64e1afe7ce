"""Application configuration helpers."""

from __future__ import annotations

from .distributor import (
    DistributorConfig,
    build_distributor_resilience,
    build_image_resilience,
    build_order_resilience,
    get_distributor_config,
)
from .env import require_env_vars
from .errors import ConfigurationError, MissingConfigurationError
from .http_resilience import RateLimit, ResilienceConfig, RetryPolicy
from .logging import configure_logging
from .storage import DatabaseConfig, StorageConfig, get_database_config, get_storage_config
from .sync import SyncConfig, get_sync_config

__all__ = [
    "ConfigurationError",
    "DatabaseConfig",
    "DistributorConfig",
    "MissingConfigurationError",
    "RateLimit",
    "ResilienceConfig",
    "RetryPolicy",
    "StorageConfig",
    "SyncConfig",
    "build_distributor_resilience",
    "build_image_resilience",
    "build_order_resilience",
    "configure_logging",
    "get_database_config",
    "get_distributor_config",
    "get_storage_config",
    "get_sync_config",
    "require_env_vars",
]
