"""
Application settings.

Responsibilities:
- Build a typed, immutable Settings object from the environment (see env.py).
- Provide defaults matching the public Accumulate mainnet deployment.
- Cache the result; tests call reset_settings_cache() after changing env.
"""

from __future__ import annotations

import functools
from dataclasses import dataclass

from acme_metrics.config.env import (
    env_float,
    env_int,
    env_str,
    get_api_v2_url,
    get_api_v3_url,
    get_database_url,
    load_metrics_env,
)

DEFAULT_CACHE_TTL_SEC = 300.0  # 5 minutes
DEFAULT_REGISTRY_SCOPE = "acc://staking.acme/registered"
DEFAULT_ISSUER_SCOPE = "acc://ACME"
DEFAULT_REGISTRY_BATCH_SIZE = 100


@dataclass(frozen=True)
class Settings:
    """Service configuration resolved from environment variables (names in env.py and below)."""

    api_v3_url: str
    api_v2_url: str
    database_url: str
    cache_ttl_sec: float = DEFAULT_CACHE_TTL_SEC
    registry_scope: str = DEFAULT_REGISTRY_SCOPE
    issuer_scope: str = DEFAULT_ISSUER_SCOPE
    registry_batch_size: int = DEFAULT_REGISTRY_BATCH_SIZE
    request_timeout_sec: float = 30.0
    max_retries: int = 3
    retry_delay_sec: float = 1.0
    api_host: str = "0.0.0.0"
    api_port: int = 8080
    cache_warm_interval_sec: float = 0.0


@functools.lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Return the current application settings.

    Returns:
        Settings with ledger endpoints, cache TTL, registry/issuer scopes,
        store URL, HTTP bind and warmer interval.
    """
    load_metrics_env()
    return Settings(
        api_v3_url=get_api_v3_url(),
        api_v2_url=get_api_v2_url(),
        database_url=get_database_url(),
        cache_ttl_sec=max(0.0, env_float("METRICS_CACHE_TTL_SEC", DEFAULT_CACHE_TTL_SEC)),
        registry_scope=env_str("STAKING_REGISTRY_SCOPE", DEFAULT_REGISTRY_SCOPE),
        issuer_scope=env_str("TOKEN_ISSUER_SCOPE", DEFAULT_ISSUER_SCOPE),
        registry_batch_size=max(1, env_int("REGISTRY_BATCH_SIZE", DEFAULT_REGISTRY_BATCH_SIZE)),
        request_timeout_sec=env_float("LEDGER_REQUEST_TIMEOUT_SEC", 30.0),
        max_retries=max(1, env_int("LEDGER_MAX_RETRIES", 3)),
        retry_delay_sec=max(0.0, env_float("LEDGER_RETRY_DELAY_SEC", 1.0)),
        api_host=env_str("API_HOST", "0.0.0.0"),
        api_port=env_int("API_PORT", 8080),
        cache_warm_interval_sec=max(0.0, env_float("CACHE_WARM_INTERVAL_SEC", 0.0)),
    )


def reset_settings_cache() -> None:
    """Drop cached settings. For tests only."""
    get_settings.cache_clear()
