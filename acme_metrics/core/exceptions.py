"""
Application-level exceptions.

- LedgerError and subclasses classify failures talking to the query service.
- EmptyRegistry and NotFound describe missing domain data.
Each carries a coarse code that the API layer may expose; the message is for logs.
"""

from __future__ import annotations


class MetricsError(Exception):
    """Base class for all service errors."""

    code = "internal_error"


class LedgerError(MetricsError):
    """The ledger query service could not answer."""

    code = "upstream_failure"


class UpstreamUnavailable(LedgerError):
    """Transport failure, non-2xx HTTP status, or retries exhausted."""

    code = "upstream_unavailable"


class UpstreamError(LedgerError):
    """Well-formed JSON-RPC error response from the query service."""

    code = "upstream_error"

    def __init__(self, message: str, rpc_code: int | None = None) -> None:
        super().__init__(message)
        self.rpc_code = rpc_code


class DecodeError(LedgerError):
    """Malformed body or unexpected payload shape."""

    code = "decode_error"


class EmptyRegistry(MetricsError):
    """The staking registration record set has no entries."""

    code = "empty_registry"


class NotFound(MetricsError):
    """Requested entity is absent from the resolved registry or the ledger."""

    code = "not_found"
