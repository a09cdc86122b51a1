"""
Signature timestamps from a v3 transaction query.

The query result nests signature sets -> signature records -> message.signature,
and a delegated signature wraps another signature under "signature". The
payload is decoded once into a small tree (TimestampLeaf / DelegatedSignature),
then walked.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Optional, Union


@dataclass(frozen=True)
class TimestampLeaf:
    timestamp: int


@dataclass(frozen=True)
class DelegatedSignature:
    inner: Optional["SignatureNode"]


SignatureNode = Union[TimestampLeaf, DelegatedSignature]


def decode_signature(raw: Any) -> SignatureNode | None:
    """A signature object -> node; None when it carries neither a timestamp nor a nested signature."""
    if not isinstance(raw, dict):
        return None
    ts = raw.get("timestamp")
    if isinstance(ts, float) and not math.isfinite(ts):
        ts = None
    if isinstance(ts, (int, float)) and not isinstance(ts, bool) and ts:
        return TimestampLeaf(int(ts))
    nested = raw.get("signature")
    if isinstance(nested, dict):
        return DelegatedSignature(decode_signature(nested))
    return None


def _records(obj: Any, key: str) -> list[Any]:
    container = obj.get(key) if isinstance(obj, dict) else None
    records = container.get("records") if isinstance(container, dict) else None
    return records if isinstance(records, list) else []


def decode_signatures(result: Any) -> list[SignatureNode]:
    """All signature nodes in a v3 transaction query result; unknown shapes are skipped."""
    nodes: list[SignatureNode] = []
    for sig_set in _records(result, "signatures"):
        for sig_record in _records(sig_set, "signatures"):
            message = sig_record.get("message") if isinstance(sig_record, dict) else None
            signature = message.get("signature") if isinstance(message, dict) else None
            node = decode_signature(signature)
            if node is not None:
                nodes.append(node)
    return nodes


def node_timestamp(node: SignatureNode | None) -> int:
    """Timestamp carried by a node (following delegation), 0 if none."""
    while isinstance(node, DelegatedSignature):
        node = node.inner
    if isinstance(node, TimestampLeaf):
        return node.timestamp
    return 0


def earliest_timestamp(nodes: list[SignatureNode], previous: int = 0) -> int:
    """Minimum positive timestamp across nodes and previous; 0 when none is known."""
    earliest = previous if previous > 0 else 0
    for node in nodes:
        ts = node_timestamp(node)
        if ts > 0 and (earliest == 0 or ts < earliest):
            earliest = ts
    return earliest
