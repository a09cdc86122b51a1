"""
Environment variable loading for the metrics service.

- ACCUMULATE_API_V3_URL: JSON-RPC query endpoint
- ACCUMULATE_API_V2_URL: base URL of the block-inclusion (timestamp) endpoint
- DATABASE_URL / TIMESTAMP_DB_PATH: persistent timestamp store
- Loads .env from project root when available.
"""

from __future__ import annotations

import os
from pathlib import Path

# Project root: config is acme_metrics/config/, root is 2 levels up
_CONFIG_DIR = Path(__file__).resolve().parent
_PACKAGE_DIR = _CONFIG_DIR.parent
_ROOT = _PACKAGE_DIR.parent
_ENV_PATH = _ROOT / ".env"

MAINNET_API_V3_URL = "https://mainnet.accumulatenetwork.io/v3"
MAINNET_API_V2_URL = "https://mainnet.accumulatenetwork.io"
DEFAULT_TIMESTAMP_DB_PATH = "data/timestamps.db"


def load_metrics_env() -> None:
    """Load .env from project root. Safe to call multiple times; existing env wins."""
    from dotenv import load_dotenv

    if _ENV_PATH.exists():
        load_dotenv(_ENV_PATH, override=False)


def env_str(name: str, default: str) -> str:
    """Return a stripped env value, or default when unset or blank."""
    raw = (os.getenv(name) or "").strip()
    return raw or default


def env_float(name: str, default: float) -> float:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        from acme_metrics.logging import get_logger

        get_logger(__name__).warning("config_invalid_number", name=name, value=raw, default=default)
        return default


def env_int(name: str, default: int) -> int:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        from acme_metrics.logging import get_logger

        get_logger(__name__).warning("config_invalid_number", name=name, value=raw, default=default)
        return default


def get_api_v3_url() -> str:
    load_metrics_env()
    return env_str("ACCUMULATE_API_V3_URL", MAINNET_API_V3_URL).rstrip("/")


def get_api_v2_url() -> str:
    load_metrics_env()
    return env_str("ACCUMULATE_API_V2_URL", MAINNET_API_V2_URL).rstrip("/")


def get_database_url() -> str:
    """
    Resolve the timestamp store URL.
    Order: DATABASE_URL > TIMESTAMP_DB_PATH (SQLite file) > data/timestamps.db.
    """
    load_metrics_env()
    url = (os.getenv("DATABASE_URL") or "").strip()
    if url:
        return url
    path = env_str("TIMESTAMP_DB_PATH", DEFAULT_TIMESTAMP_DB_PATH)
    return f"sqlite:///{path}"
