"""
Tests for env-driven settings.
"""

from __future__ import annotations

import pytest

from acme_metrics.config import get_settings, reset_settings_cache

ENV_NAMES = (
    "ACCUMULATE_API_V3_URL",
    "ACCUMULATE_API_V2_URL",
    "DATABASE_URL",
    "TIMESTAMP_DB_PATH",
    "METRICS_CACHE_TTL_SEC",
    "REGISTRY_BATCH_SIZE",
    "CACHE_WARM_INTERVAL_SEC",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_NAMES:
        monkeypatch.delenv(name, raising=False)
    reset_settings_cache()
    yield
    reset_settings_cache()


def test_defaults():
    settings = get_settings()
    assert settings.api_v3_url == "https://mainnet.accumulatenetwork.io/v3"
    assert settings.api_v2_url == "https://mainnet.accumulatenetwork.io"
    assert settings.database_url == "sqlite:///data/timestamps.db"
    assert settings.cache_ttl_sec == 300.0
    assert settings.registry_scope == "acc://staking.acme/registered"
    assert settings.issuer_scope == "acc://ACME"
    assert settings.registry_batch_size == 100
    assert settings.cache_warm_interval_sec == 0.0


def test_env_overrides(monkeypatch, tmp_path):
    monkeypatch.setenv("ACCUMULATE_API_V3_URL", "http://localhost:26660/v3/")
    monkeypatch.setenv("TIMESTAMP_DB_PATH", str(tmp_path / "ts.db"))
    monkeypatch.setenv("METRICS_CACHE_TTL_SEC", "60")
    monkeypatch.setenv("REGISTRY_BATCH_SIZE", "25")
    settings = get_settings()
    assert settings.api_v3_url == "http://localhost:26660/v3"
    assert settings.database_url == f"sqlite:///{tmp_path / 'ts.db'}"
    assert settings.cache_ttl_sec == 60.0
    assert settings.registry_batch_size == 25


def test_database_url_wins(monkeypatch):
    monkeypatch.setenv("DATABASE_URL", "postgresql://u:p@db/metrics")
    monkeypatch.setenv("TIMESTAMP_DB_PATH", "ignored.db")
    assert get_settings().database_url == "postgresql://u:p@db/metrics"


def test_invalid_numbers_fall_back(monkeypatch):
    monkeypatch.setenv("METRICS_CACHE_TTL_SEC", "five minutes")
    monkeypatch.setenv("REGISTRY_BATCH_SIZE", "lots")
    settings = get_settings()
    assert settings.cache_ttl_sec == 300.0
    assert settings.registry_batch_size == 100


def test_settings_cached(monkeypatch):
    first = get_settings()
    monkeypatch.setenv("METRICS_CACHE_TTL_SEC", "1")
    assert get_settings() is first
    reset_settings_cache()
    assert get_settings().cache_ttl_sec == 1.0
