"""
Timestamp records as cached per transaction.

hasBlockTime and signatureTime are cache bookkeeping: they are persisted
(underscore-prefixed keys) but stripped from the public response.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from acme_metrics.core.exceptions import DecodeError
from acme_metrics.ledger import ChainEntry

SIGNATURE_CHAIN = "signature"


@dataclass(frozen=True)
class TimestampRecord:
    chains: tuple[ChainEntry, ...] = ()
    status: str = ""
    minor_block: int = 0
    major_block: int = 0
    has_block_time: bool = False
    """Terminal: block data found; the record is never re-queried or rewritten."""
    signature_time: int = 0
    """Earliest signature timestamp seen so far (ms since epoch), 0 if none."""

    def to_public_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"chains": [c.to_dict() for c in self.chains]}
        if self.status:
            out["status"] = self.status
        if self.minor_block:
            out["minorBlock"] = self.minor_block
        if self.major_block:
            out["majorBlock"] = self.major_block
        return out

    def to_storage_dict(self) -> dict[str, Any]:
        out = self.to_public_dict()
        out["_hasBlockTime"] = self.has_block_time
        out["_signatureTime"] = self.signature_time
        return out

    @classmethod
    def from_storage_dict(cls, raw: Any) -> TimestampRecord:
        if not isinstance(raw, dict):
            raise DecodeError("stored timestamp record must be an object")
        chains = raw.get("chains") or []
        if not isinstance(chains, list):
            raise DecodeError("stored chains must be a list")
        try:
            return cls(
                chains=tuple(ChainEntry.from_dict(c) for c in chains),
                status=str(raw.get("status") or ""),
                minor_block=int(raw.get("minorBlock") or 0),
                major_block=int(raw.get("majorBlock") or 0),
                has_block_time=bool(raw.get("_hasBlockTime", False)),
                signature_time=int(raw.get("_signatureTime") or 0),
            )
        except (TypeError, ValueError, OverflowError) as e:
            raise DecodeError(f"stored timestamp record: {e}") from e


@dataclass
class TimestampLookup:
    """Result of a resolution: the record and how it was served."""

    record: TimestampRecord
    cache_state: str
    txid: str = ""


def format_rfc3339(ts_ms: int) -> str:
    """Milliseconds since epoch -> RFC 3339 UTC, second precision."""
    return datetime.fromtimestamp(ts_ms / 1000, tz=timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def parse_rfc3339(value: str) -> datetime:
    """Parse an RFC 3339 time (Z or offset, up to nanosecond fraction). Raises ValueError."""
    value = value.strip()
    if value.endswith(("Z", "z")):
        value = value[:-1] + "+00:00"
    if "." in value:
        head, _, tail = value.partition(".")
        digits = ""
        i = 0
        while i < len(tail) and tail[i].isdigit():
            digits += tail[i]
            i += 1
        value = f"{head}.{(digits + '000000')[:6]}{tail[i:]}"
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
