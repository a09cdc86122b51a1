"""
HTTP client for the Accumulate query service.

- query(): v3 JSON-RPC "query" method; returns the result object.
- block_inclusion(): v2 GET /timestamp/{txid}@unknown; returns chain entries
  with minor block numbers once the transaction has been executed.
Retries HTTP 429 and transport errors a fixed number of times, then classifies
the failure as UpstreamUnavailable, UpstreamError or DecodeError.
"""

from __future__ import annotations

import itertools
import math
import threading
import time
from dataclasses import dataclass
from typing import Any, Protocol

import requests

from acme_metrics.config import Settings, get_settings
from acme_metrics.core.exceptions import DecodeError, UpstreamError, UpstreamUnavailable
from acme_metrics.logging import get_logger

logger = get_logger(__name__)

USER_AGENT = "acme-metrics/0.1"


@dataclass(frozen=True)
class ChainEntry:
    """One chain a transaction was recorded on, with its minor block and time (RFC 3339)."""

    chain: str
    block: int
    time: str

    def to_dict(self) -> dict[str, Any]:
        return {"chain": self.chain, "block": self.block, "time": self.time}

    @classmethod
    def from_dict(cls, raw: Any) -> ChainEntry:
        if not isinstance(raw, dict):
            raise DecodeError(f"chain entry must be an object, got {type(raw).__name__}")
        block = raw.get("block") or 0
        if isinstance(block, bool) or not isinstance(block, (int, float)):
            raise DecodeError(f"chain entry block must be a number: {block!r}")
        if isinstance(block, float) and not math.isfinite(block):
            raise DecodeError(f"chain entry block must be finite: {block!r}")
        return cls(
            chain=str(raw.get("chain") or ""),
            block=int(block),
            time=str(raw.get("time") or ""),
        )


class LedgerQueryService(Protocol):
    """What the core needs from the network; LedgerClient is the HTTP implementation."""

    def query(self, scope: str, query: dict[str, Any] | None = None) -> dict[str, Any]:
        ...

    def block_inclusion(self, txid: str) -> list[ChainEntry]:
        ...


class LedgerClient:
    """requests-based LedgerQueryService. Thread-safe; one Session per client."""

    def __init__(
        self,
        v3_url: str,
        v2_url: str,
        *,
        timeout_sec: float = 30.0,
        max_retries: int = 3,
        retry_delay_sec: float = 1.0,
        session: requests.Session | None = None,
    ) -> None:
        self._v3_url = v3_url
        self._v2_url = v2_url.rstrip("/")
        self._timeout_sec = timeout_sec
        self._max_retries = max(1, max_retries)
        self._retry_delay_sec = retry_delay_sec
        self._session = session or requests.Session()
        self._session.headers.setdefault("User-Agent", USER_AGENT)
        self._ids = itertools.count(1)
        self._ids_lock = threading.Lock()

    def _next_id(self) -> int:
        with self._ids_lock:
            return next(self._ids)

    def _send(self, method: str, url: str, **kwargs: Any) -> requests.Response:
        last_error: Exception | None = None
        for attempt in range(self._max_retries):
            try:
                r = self._session.request(method, url, timeout=self._timeout_sec, **kwargs)
                if r.status_code == 429:
                    logger.warning("ledger_rate_limited", url=url, attempt=attempt + 1)
                    last_error = UpstreamUnavailable(f"rate limited by {url}")
                else:
                    return r
            except requests.RequestException as e:
                logger.warning("ledger_request_error", url=url, attempt=attempt + 1, error=str(e))
                last_error = e
            if attempt < self._max_retries - 1 and self._retry_delay_sec > 0:
                time.sleep(self._retry_delay_sec)
        raise UpstreamUnavailable(f"{method} {url} failed after {self._max_retries} attempts: {last_error}")

    def query(self, scope: str, query: dict[str, Any] | None = None) -> dict[str, Any]:
        """Run a v3 query against scope; return the JSON-RPC result object."""
        params: dict[str, Any] = {"scope": scope}
        if query is not None:
            params["query"] = query
        payload = {"jsonrpc": "2.0", "id": self._next_id(), "method": "query", "params": params}
        r = self._send("POST", self._v3_url, json=payload)
        try:
            data = r.json()
        except ValueError as e:
            if r.status_code >= 400:
                raise UpstreamUnavailable(f"query {scope}: HTTP {r.status_code}") from e
            raise DecodeError(f"query {scope}: response is not JSON") from e
        if not isinstance(data, dict):
            raise DecodeError(f"query {scope}: response is not an object")
        err = data.get("error")
        if err:
            message = err.get("message") if isinstance(err, dict) else str(err)
            code = err.get("code") if isinstance(err, dict) else None
            raise UpstreamError(f"query {scope}: {message or 'unknown error'}", rpc_code=code)
        if r.status_code >= 400:
            raise UpstreamUnavailable(f"query {scope}: HTTP {r.status_code}")
        result = data.get("result")
        if not isinstance(result, dict):
            raise DecodeError(f"query {scope}: missing result object")
        return result

    def block_inclusion(self, txid: str) -> list[ChainEntry]:
        """Chain entries for an executed transaction; empty while pending or unknown."""
        url = f"{self._v2_url}/timestamp/{txid}@unknown"
        r = self._send("GET", url)
        if r.status_code >= 400:
            raise UpstreamUnavailable(f"timestamp {txid}: HTTP {r.status_code}")
        try:
            data = r.json()
        except ValueError as e:
            raise DecodeError(f"timestamp {txid}: response is not JSON") from e
        if not isinstance(data, dict):
            raise DecodeError(f"timestamp {txid}: response is not an object")
        chains = data.get("chains") or []
        if not isinstance(chains, list):
            raise DecodeError(f"timestamp {txid}: chains is not a list")
        return [ChainEntry.from_dict(c) for c in chains]

    def close(self) -> None:
        self._session.close()


def build_ledger_client(settings: Settings | None = None) -> LedgerClient:
    """LedgerClient configured from settings (env)."""
    settings = settings or get_settings()
    return LedgerClient(
        settings.api_v3_url,
        settings.api_v2_url,
        timeout_sec=settings.request_timeout_sec,
        max_retries=settings.max_retries,
        retry_delay_sec=settings.retry_delay_sec,
    )
