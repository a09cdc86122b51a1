"""
Timestamp resolver.

Per transaction id the stored record moves Absent -> Signature-Pending ->
Block-Finalized:
- Block-Finalized records are served as-is (HIT-BLOCK) and never re-queried.
- Otherwise the v3 query (status, signatures) and the v2 block-inclusion
  lookup are run. A chain entry with a positive block finalizes the record;
  without one the earliest signature time seen so far is kept, and can only
  move earlier across polls.
- If the v3 query fails and a record is stored, that record is served
  (HIT-SIG); on a cold cache the failure is raised.
"""

from __future__ import annotations

import threading
from collections import defaultdict
from typing import Protocol

from acme_metrics.core.exceptions import DecodeError, LedgerError, NotFound, UpstreamError
from acme_metrics.ledger import ChainEntry, LedgerQueryService
from acme_metrics.logging import bind_txid
from acme_metrics.timestamps.major_block import calculate_major_block
from acme_metrics.timestamps.models import (
    SIGNATURE_CHAIN,
    TimestampLookup,
    TimestampRecord,
    format_rfc3339,
    parse_rfc3339,
)
from acme_metrics.timestamps.signatures import decode_signatures, earliest_timestamp

HIT_BLOCK = "HIT-BLOCK"
HIT_SIG = "HIT-SIG"
MISS = "MISS"
UPDATE = "UPDATE"


class TimestampRepository(Protocol):
    def get(self, txid: str) -> TimestampRecord | None:
        ...

    def put(self, txid: str, record: TimestampRecord) -> TimestampRecord:
        ...


def normalize_txid(raw: str) -> str:
    """Strip an acc:// prefix and any @scope suffix: acc://abc@x/y -> abc."""
    txid = raw.strip()
    if txid.startswith("acc://"):
        txid = txid[len("acc://"):]
    return txid.split("@", 1)[0]


class _KeyedLocks:
    """One lock per key, dropped when nobody holds or waits for it."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[str, threading.Lock] = {}
        self._users: defaultdict[str, int] = defaultdict(int)

    def acquire(self, key: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.setdefault(key, threading.Lock())
            self._users[key] += 1
        lock.acquire()
        return lock

    def release(self, key: str, lock: threading.Lock) -> None:
        lock.release()
        with self._guard:
            self._users[key] -= 1
            if self._users[key] <= 0:
                self._locks.pop(key, None)
                self._users.pop(key, None)


def block_record(chains: list[ChainEntry], status: str) -> TimestampRecord:
    """Block-Finalized record; block and time come from the first entry with a positive block."""
    first = next(c for c in chains if c.block > 0)
    try:
        major = calculate_major_block(parse_rfc3339(first.time))
    except ValueError:
        major = 0
    return TimestampRecord(
        chains=tuple(chains),
        status=status,
        minor_block=first.block,
        major_block=major,
        has_block_time=True,
    )


def signature_record(signature_time: int, status: str) -> TimestampRecord:
    """Signature-Pending record; chains holds one synthetic signature entry when a time is known."""
    chains: tuple[ChainEntry, ...] = ()
    if signature_time > 0:
        chains = (ChainEntry(chain=SIGNATURE_CHAIN, block=0, time=format_rfc3339(signature_time)),)
    return TimestampRecord(chains=chains, status=status, signature_time=signature_time)


class TimestampResolver:
    def __init__(self, ledger: LedgerQueryService, store: TimestampRepository) -> None:
        self._ledger = ledger
        self._store = store
        self._locks = _KeyedLocks()

    def resolve(self, raw_txid: str) -> TimestampLookup:
        txid = normalize_txid(raw_txid)
        if not txid:
            raise NotFound("empty transaction id")
        lock = self._locks.acquire(txid)
        try:
            return self._resolve(txid)
        finally:
            self._locks.release(txid, lock)

    def _load(self, txid: str) -> TimestampRecord | None:
        try:
            return self._store.get(txid)
        except DecodeError as e:
            bind_txid(txid).warning("timestamp_cached_record_invalid", error=str(e))
            return None

    def _resolve(self, txid: str) -> TimestampLookup:
        log = bind_txid(txid)
        prior = self._load(txid)
        if prior is not None and prior.has_block_time:
            return TimestampLookup(prior, HIT_BLOCK, txid)

        try:
            result = self._ledger.query(f"acc://{txid}@unknown")
        except LedgerError as e:
            if prior is not None:
                log.warning("timestamp_query_failed_serving_cached", error=str(e))
                return TimestampLookup(prior, HIT_SIG, txid)
            log.error("timestamp_query_failed", error=str(e))
            if isinstance(e, UpstreamError):
                raise NotFound(f"transaction not found: {txid}") from e
            raise

        status = result.get("status") if isinstance(result.get("status"), str) else ""

        try:
            chains = self._ledger.block_inclusion(txid)
        except LedgerError as e:
            log.debug("timestamp_block_lookup_failed", error=str(e))
            chains = []

        if any(c.block > 0 for c in chains):
            record = block_record(chains, status)
            log.info("timestamp_block_found", minor_block=record.minor_block, major_block=record.major_block)
        else:
            previous = prior.signature_time if prior is not None else 0
            record = signature_record(earliest_timestamp(decode_signatures(result), previous), status)
            log.info("timestamp_signature_cached", signature_time=record.signature_time)

        stored = self._store.put(txid, record)
        return TimestampLookup(stored, UPDATE if prior is not None else MISS, txid)
