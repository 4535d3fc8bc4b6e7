"""Remote store and synchronisation configuration values."""

from __future__ import annotations

from dataclasses import dataclass

from .env import optional_env_bool, optional_env_float, require_env_vars
from .errors import ConfigurationError
from .http_resilience import RateLimit, ResilienceConfig, RetryPolicy

DEFAULT_RESYNC_DELAY_SECONDS = 0.1
STORE_TIMEOUT_SECONDS = 15.0


@dataclass(frozen=True, slots=True)
class StoreApiConfig:
    """Holds the watchlist HTTP API configuration values."""

    api_token: str
    resilience: ResilienceConfig


@dataclass(frozen=True, slots=True)
class SyncConfig:
    """Tuning knobs for the optimistic mutation coordinator.

    ``mutation_timeout`` is ``None`` by default: a remote call that never answers
    keeps the item's voting session pinned until the task is cancelled.
    """

    resync_delay_seconds: float = DEFAULT_RESYNC_DELAY_SECONDS
    mutation_timeout: float | None = None
    coalesce_materialize: bool = False


def get_store_api_config(*, resilience: ResilienceConfig | None = None) -> StoreApiConfig:
    values = require_env_vars(("CINEQUEUE_API_URL", "CINEQUEUE_API_TOKEN"))
    return StoreApiConfig(
        api_token=values["CINEQUEUE_API_TOKEN"],
        resilience=resilience
        or ResilienceConfig(
            name="cinequeue-api",
            base_url=values["CINEQUEUE_API_URL"].rstrip("/"),
            timeout_seconds=STORE_TIMEOUT_SECONDS,
            ratelimit=RateLimit(max_calls=10, per_seconds=1.0),
            retry=RetryPolicy(total=3),
        ),
    )


def get_sync_config() -> SyncConfig:
    delay_ms = optional_env_float("CINEQUEUE_RESYNC_DELAY_MS")
    timeout = optional_env_float("CINEQUEUE_MUTATION_TIMEOUT")
    if delay_ms is not None and delay_ms < 0:
        raise ConfigurationError("CINEQUEUE_RESYNC_DELAY_MS must be non-negative")
    if timeout is not None and timeout <= 0:
        raise ConfigurationError("CINEQUEUE_MUTATION_TIMEOUT must be positive")
    return SyncConfig(
        resync_delay_seconds=(
            DEFAULT_RESYNC_DELAY_SECONDS if delay_ms is None else delay_ms / 1000.0
        ),
        mutation_timeout=timeout,
        coalesce_materialize=optional_env_bool("CINEQUEUE_COALESCE_MATERIALIZE"),
    )
