"""
Identity registry resolver.

Scans the staking registration data account end to end:
1. Count entries on its main chain.
2. Page through the chain in fixed-size batches.
3. Fetch each entry's writeData transaction, hex- and JSON-decode the payload.
4. Normalize it and fold it into {identity -> latest entry} (last write wins).

A failed page or entry is logged and skipped; the map is rebuilt from scratch
on every refresh, so a gap only delays visibility until the next one.
"""

from __future__ import annotations

import binascii
import json
import time
from typing import Any

from acme_metrics.core.cache import CacheResult, TTLCache
from acme_metrics.core.exceptions import (
    DecodeError,
    EmptyRegistry,
    LedgerError,
    UpstreamUnavailable,
)
from acme_metrics.ledger import LedgerQueryService
from acme_metrics.logging import get_logger
from acme_metrics.staking.models import RegistrationIdentity, decode_registration
from acme_metrics.staking.normalizer import derive_identity_key, normalize

logger = get_logger(__name__)

REGISTRY_SCOPE = "acc://staking.acme/registered"
BATCH_SIZE = 100
MAIN_CHAIN = "main"
WRITE_DATA = "writeData"

IdentityMap = dict[str, RegistrationIdentity]


def _get_path(obj: Any, *keys: str) -> Any:
    for key in keys:
        if not isinstance(obj, dict):
            return None
        obj = obj.get(key)
    return obj


def _reject_constant(name: str) -> Any:
    raise ValueError(f"non-finite number {name} in registry payload")


def decode_entry_payload(tx_result: dict[str, Any]) -> Any | None:
    """
    Return the JSON document written by a registry entry transaction, or None
    when the transaction is not a writeData or its payload is not hex-encoded
    JSON (unrelated data written to the same account).
    """
    body = _get_path(tx_result, "message", "transaction", "body")
    if not isinstance(body, dict) or body.get("type") != WRITE_DATA:
        return None
    data = _get_path(body, "entry", "data")
    if not isinstance(data, list) or not data or not isinstance(data[0], str):
        return None
    try:
        return json.loads(binascii.unhexlify(data[0]), parse_constant=_reject_constant)
    except (binascii.Error, ValueError, RecursionError):
        return None


class IdentityRegistryResolver:
    """Builds the identity map from the registration record set."""

    def __init__(
        self,
        ledger: LedgerQueryService,
        *,
        scope: str = REGISTRY_SCOPE,
        batch_size: int = BATCH_SIZE,
    ) -> None:
        self._ledger = ledger
        self._scope = scope
        self._batch_size = max(1, batch_size)
        # acc://staking.acme/registered -> staking.acme/registered
        self._entry_suffix = scope.split("://", 1)[-1]

    def count_entries(self) -> int:
        """Entries on the main chain. Propagates LedgerError; raises EmptyRegistry on zero."""
        result = self._ledger.query(self._scope, {"queryType": "chain"})
        records = result.get("records") or []
        if not isinstance(records, list):
            raise DecodeError(f"chain query on {self._scope}: records is not a list")
        total = 0
        for rec in records:
            if isinstance(rec, dict) and rec.get("name") == MAIN_CHAIN:
                count = rec.get("count") or 0
                if isinstance(count, bool) or not isinstance(count, int):
                    raise DecodeError(f"main chain count is not an integer: {count!r}")
                total = count
                break
        if total <= 0:
            raise EmptyRegistry(f"no entries found in {self._scope} main chain")
        return total

    def fetch_page(self, start: int, count: int) -> list[str]:
        """Entry hashes for chain indices [start, start+count)."""
        result = self._ledger.query(
            self._scope,
            {
                "queryType": "chain",
                "name": MAIN_CHAIN,
                "range": {"start": start, "count": count},
                "includeReceipt": False,
            },
        )
        records = result.get("records") or []
        if not isinstance(records, list):
            raise DecodeError(f"chain range {start}+{count}: records is not a list")
        return [r["entry"] for r in records if isinstance(r, dict) and isinstance(r.get("entry"), str)]

    def fetch_entry(self, entry_hash: str) -> tuple[str, RegistrationIdentity] | None:
        """(identity key, normalized entry), or None when the entry is not a usable registration."""
        tx = self._ledger.query(f"acc://{entry_hash}@{self._entry_suffix}", {})
        payload = decode_entry_payload(tx)
        if payload is None:
            return None
        decoded = decode_registration(payload)
        key = derive_identity_key(decoded)
        if not key:
            return None
        return key, normalize(decoded)

    def resolve(self) -> IdentityMap:
        """
        Full scan. Failed pages and entries are skipped; the call itself fails
        when the count query fails, or when failures left the map empty.
        """
        started = time.monotonic()
        total = self.count_entries()
        identity_map: IdentityMap = {}
        skipped_pages = 0
        skipped_entries = 0
        failed_entries = 0

        for start in range(0, total, self._batch_size):
            count = min(self._batch_size, total - start)
            try:
                entries = self.fetch_page(start, count)
            except LedgerError as e:
                skipped_pages += 1
                logger.warning(
                    "registry_page_failed",
                    start=start,
                    end=start + count - 1,
                    error=str(e),
                )
                continue
            for entry_hash in entries:
                try:
                    item = self.fetch_entry(entry_hash)
                except DecodeError as e:
                    skipped_entries += 1
                    logger.debug("registry_entry_undecodable", entry=entry_hash, error=str(e))
                    continue
                except LedgerError as e:
                    failed_entries += 1
                    logger.debug("registry_entry_skipped", entry=entry_hash, error=str(e))
                    continue
                if item is None:
                    skipped_entries += 1
                    continue
                key, identity = item
                identity_map[key] = identity

        logger.info(
            "identity_map_refreshed",
            identities=len(identity_map),
            chain_entries=total,
            skipped_pages=skipped_pages,
            skipped_entries=skipped_entries,
            failed_entries=failed_entries,
            elapsed_ms=round((time.monotonic() - started) * 1000, 1),
        )
        if not identity_map and (skipped_pages or failed_entries):
            raise UpstreamUnavailable(
                f"registry scan of {self._scope} produced no identities "
                f"({skipped_pages} pages and {failed_entries} entries failed)"
            )
        return identity_map


class IdentityMapCache:
    """TTL cache around IdentityRegistryResolver.resolve(); serves the old map while refreshing."""

    def __init__(self, resolver: IdentityRegistryResolver, ttl_sec: float, **cache_kwargs: Any) -> None:
        self._resolver = resolver
        self._cache: TTLCache[IdentityMap] = TTLCache(
            resolver.resolve, ttl_sec, name="identity_map", **cache_kwargs
        )

    def get(self) -> IdentityMap:
        return self.get_result().value

    def get_result(self) -> CacheResult[IdentityMap]:
        return self._cache.get_or_refresh()

    def invalidate(self) -> None:
        self._cache.invalidate()
