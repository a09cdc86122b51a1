"""
Service wiring: one ledger client, identity map cache, staking aggregator,
supply service and timestamp resolver per process.
"""

from __future__ import annotations

import functools
from dataclasses import dataclass

from acme_metrics.config import Settings, get_settings
from acme_metrics.database import get_timestamp_store
from acme_metrics.ledger import LedgerQueryService, build_ledger_client
from acme_metrics.staking import IdentityMapCache, IdentityRegistryResolver, StakingAggregator
from acme_metrics.supply import SupplyService
from acme_metrics.timestamps import TimestampResolver
from acme_metrics.timestamps.resolver import TimestampRepository


@dataclass
class MetricsServices:
    ledger: LedgerQueryService
    identity_maps: IdentityMapCache
    staking: StakingAggregator
    supply: SupplyService
    timestamps: TimestampResolver


def build_services(
    settings: Settings | None = None,
    *,
    ledger: LedgerQueryService | None = None,
    store: TimestampRepository | None = None,
) -> MetricsServices:
    settings = settings or get_settings()
    ledger = ledger or build_ledger_client(settings)
    store = store or get_timestamp_store(settings.database_url)
    resolver = IdentityRegistryResolver(
        ledger,
        scope=settings.registry_scope,
        batch_size=settings.registry_batch_size,
    )
    identity_maps = IdentityMapCache(resolver, settings.cache_ttl_sec)
    staking = StakingAggregator(ledger, identity_maps)
    supply = SupplyService(
        ledger,
        staking.total_staked,
        issuer_scope=settings.issuer_scope,
        ttl_sec=settings.cache_ttl_sec,
    )
    return MetricsServices(
        ledger=ledger,
        identity_maps=identity_maps,
        staking=staking,
        supply=supply,
        timestamps=TimestampResolver(ledger, store),
    )


@functools.lru_cache(maxsize=1)
def get_services() -> MetricsServices:
    """FastAPI dependency: process-wide services (override in tests)."""
    return build_services()
