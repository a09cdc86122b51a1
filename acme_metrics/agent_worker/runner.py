"""
Cache warmer: periodic refresh loop.

run_cache_warmer() is started by the FastAPI lifespan in a daemon thread.
Each tick asks the supply cache for its value, which refreshes the supply
metrics and, through the staking aggregator, the identity map whenever their
TTL has expired. A failing tick is logged; the loop continues until stop_event.
"""

from __future__ import annotations

import threading
import time

from acme_metrics.logging import get_logger

logger = get_logger(__name__)

MIN_INTERVAL_SEC = 1.0


def warm_once(services) -> str:
    """One refresh pass; returns the supply cache state."""
    result = services.supply.get_supply()
    return result.state


def run_cache_warmer(services, stop_event: threading.Event, interval_sec: float) -> None:
    interval = max(MIN_INTERVAL_SEC, interval_sec)
    tick_count = 0
    while not stop_event.is_set():
        tick_count += 1
        started = time.monotonic()
        try:
            state = warm_once(services)
            logger.debug(
                "cache_warmer_tick",
                tick=tick_count,
                supply_cache=state,
                elapsed_ms=round((time.monotonic() - started) * 1000, 1),
            )
        except Exception as e:
            logger.warning("cache_warmer_tick_failed", tick=tick_count, error=str(e))
        stop_event.wait(interval)
    logger.info("cache_warmer_exit", ticks=tick_count)
