"""
Transaction timestamps: block-level timestamps when available, provisional
signature timestamps until then, persisted per transaction id.
"""

from acme_metrics.timestamps.major_block import calculate_major_block
from acme_metrics.timestamps.models import TimestampLookup, TimestampRecord
from acme_metrics.timestamps.resolver import TimestampResolver, normalize_txid

__all__ = [
    "TimestampLookup",
    "TimestampRecord",
    "TimestampResolver",
    "calculate_major_block",
    "normalize_txid",
]
