"""
Supply cache.

Pipeline on a miss: query the ACME issuer (issued, supplyLimit), ask the
staking aggregator for the staked total, compute circulating = issued - staked.
If the aggregator fails, staked is estimated as issued / 5 and the request
still succeeds. If the issuer query fails, the previous metrics are served as
STALE; with nothing cached the error is raised.
"""

from __future__ import annotations

import time
from typing import Any, Callable

from acme_metrics.core.cache import CacheResult, TTLCache
from acme_metrics.core.exceptions import DecodeError
from acme_metrics.core.units import parse_amount, to_whole_tokens
from acme_metrics.ledger import LedgerQueryService
from acme_metrics.logging import get_logger
from acme_metrics.supply.models import SupplyMetrics

logger = get_logger(__name__)

ISSUER_SCOPE = "acc://ACME"
DEFAULT_TTL_SEC = 300.0
# Share of issued tokens assumed staked when the real figure is unavailable
STAKED_ESTIMATE_DIVISOR = 5


class SupplyService:
    """Owns the supply TTL cache; get_supply() is safe to call from concurrent requests."""

    def __init__(
        self,
        ledger: LedgerQueryService,
        staked_total: Callable[[], int],
        *,
        issuer_scope: str = ISSUER_SCOPE,
        ttl_sec: float = DEFAULT_TTL_SEC,
        **cache_kwargs: Any,
    ) -> None:
        self._ledger = ledger
        self._staked_total = staked_total
        self._issuer_scope = issuer_scope
        self._cache: TTLCache[SupplyMetrics] = TTLCache(
            self.fetch_metrics, ttl_sec, name="supply", **cache_kwargs
        )

    def fetch_issuer(self) -> tuple[int, int]:
        """(issued, supply limit) in whole ACME. Raises LedgerError subclasses."""
        result = self._ledger.query(self._issuer_scope, {})
        account = result.get("account")
        if not isinstance(account, dict):
            raise DecodeError(f"{self._issuer_scope}: missing account object")
        issued = parse_amount(account.get("issued"), field="issued")
        supply_limit = parse_amount(account.get("supplyLimit"), field="supplyLimit")
        return to_whole_tokens(issued), to_whole_tokens(supply_limit)

    def fetch_metrics(self) -> SupplyMetrics:
        """Uncached pipeline."""
        started = time.monotonic()
        issued, supply_limit = self.fetch_issuer()
        estimated = False
        try:
            staked = self._staked_total()
        except Exception as e:
            staked = issued // STAKED_ESTIMATE_DIVISOR
            estimated = True
            logger.warning("staked_amount_estimated", staked=staked, error=str(e))
        metrics = SupplyMetrics(max=supply_limit, total=issued, staked=staked, staked_estimated=estimated)
        logger.info(
            "supply_metrics_fetched",
            max=metrics.max,
            total=metrics.total,
            circulating=metrics.circulating,
            staked=metrics.staked,
            staked_estimated=estimated,
            elapsed_ms=round((time.monotonic() - started) * 1000, 1),
        )
        return metrics

    def get_supply(self) -> CacheResult[SupplyMetrics]:
        """Cached metrics tagged HIT, MISS or STALE."""
        return self._cache.get_or_refresh()

    def invalidate(self) -> None:
        self._cache.invalidate()
