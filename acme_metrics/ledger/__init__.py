"""
Ledger query boundary: the Accumulate v3 JSON-RPC query API and the v2
block-inclusion (timestamp) lookup.
"""

from acme_metrics.ledger.client import (
    ChainEntry,
    LedgerClient,
    LedgerQueryService,
    build_ledger_client,
)

__all__ = ["ChainEntry", "LedgerClient", "LedgerQueryService", "build_ledger_client"]
