"""
Whole-object TTL cache with single-flight refresh.

One TTLCache owns its value, the time it was loaded and a Condition guarding
both. At most one caller runs the loader at a time; while it does, callers
that can be served the previous value get it immediately (STALE), and callers
with nothing to serve wait for the refresh to finish.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Callable, Generic, TypeVar

from acme_metrics.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

HIT = "HIT"
MISS = "MISS"
STALE = "STALE"


@dataclass(frozen=True)
class CacheResult(Generic[T]):
    """Value served by the cache and how it was obtained (HIT, MISS or STALE)."""

    value: T
    state: str
    age_sec: float = 0.0


class TTLCache(Generic[T]):
    """Read-through cache around a zero-argument loader."""

    def __init__(
        self,
        loader: Callable[[], T],
        ttl_sec: float,
        *,
        name: str = "cache",
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._loader = loader
        self._ttl_sec = ttl_sec
        self._name = name
        self._clock = clock
        self._cond = threading.Condition()
        self._value: T | None = None
        self._has_value = False
        self._loaded_at = 0.0
        self._refreshing = False
        self._generation = 0
        self._last_error: BaseException | None = None

    @property
    def name(self) -> str:
        return self._name

    @property
    def ttl_sec(self) -> float:
        return self._ttl_sec

    def _age(self) -> float:
        return max(0.0, self._clock() - self._loaded_at)

    def _is_fresh(self) -> bool:
        return self._has_value and self._age() < self._ttl_sec

    def peek(self) -> CacheResult[T] | None:
        """Current value without triggering a refresh, or None when empty."""
        with self._cond:
            if not self._has_value:
                return None
            return CacheResult(self._value, HIT if self._is_fresh() else STALE, self._age())  # type: ignore[arg-type]

    def invalidate(self) -> None:
        with self._cond:
            self._value = None
            self._has_value = False
            self._loaded_at = 0.0

    def get_or_refresh(self) -> CacheResult[T]:
        """
        Return a fresh value (HIT), reload it (MISS), or fall back to the
        previous value (STALE) when a reload fails or is already in flight.
        Raises the loader's exception only when there is no previous value.
        """
        with self._cond:
            if self._is_fresh():
                return CacheResult(self._value, HIT, self._age())  # type: ignore[arg-type]
            while self._refreshing:
                if self._has_value:
                    return CacheResult(self._value, STALE, self._age())  # type: ignore[arg-type]
                generation = self._generation
                while self._refreshing and self._generation == generation:
                    self._cond.wait()
                if self._last_error is not None:
                    raise self._last_error
                if self._has_value:
                    return CacheResult(self._value, MISS, self._age())  # type: ignore[arg-type]
                # Invalidated right after the refresh; load again.
            self._refreshing = True
            previous_generation = self._generation

        try:
            value = self._loader()
        except Exception as e:
            with self._cond:
                self._refreshing = False
                self._generation = previous_generation + 1
                self._last_error = e
                self._cond.notify_all()
                if self._has_value:
                    logger.warning(
                        "cache_refresh_failed_serving_stale",
                        cache=self._name,
                        age_sec=round(self._age(), 1),
                        error=str(e),
                    )
                    return CacheResult(self._value, STALE, self._age())  # type: ignore[arg-type]
            logger.error("cache_refresh_failed", cache=self._name, error=str(e))
            raise
        except BaseException:
            with self._cond:
                self._refreshing = False
                self._generation = previous_generation + 1
                self._last_error = None
                self._cond.notify_all()
            raise

        with self._cond:
            self._value = value
            self._has_value = True
            self._loaded_at = self._clock()
            self._refreshing = False
            self._generation = previous_generation + 1
            self._last_error = None
            self._cond.notify_all()
            logger.debug("cache_refreshed", cache=self._name)
            return CacheResult(value, MISS, 0.0)
