"""Application configuration helpers."""

from __future__ import annotations

from .env import optional_env_bool, optional_env_float, require_env_var, require_env_vars
from .errors import ConfigurationError, MissingConfigurationError
from .http_resilience import RateLimit, ResilienceConfig, RetryPolicy
from .logging import configure_logging
from .storage import DatabaseConfig, StorageConfig, get_database_config, get_storage_config
from .store import (
    DEFAULT_RESYNC_DELAY_SECONDS,
    StoreApiConfig,
    SyncConfig,
    get_store_api_config,
    get_sync_config,
)

__all__ = [
    "DEFAULT_RESYNC_DELAY_SECONDS",
    "ConfigurationError",
    "DatabaseConfig",
    "MissingConfigurationError",
    "RateLimit",
    "ResilienceConfig",
    "RetryPolicy",
    "StorageConfig",
    "StoreApiConfig",
    "SyncConfig",
    "configure_logging",
    "get_database_config",
    "get_storage_config",
    "get_store_api_config",
    "get_sync_config",
    "optional_env_bool",
    "optional_env_float",
    "require_env_var",
    "require_env_vars",
]
