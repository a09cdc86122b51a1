"""
Pytest fixtures for ACME metrics tests.

FakeLedger answers query()/block_inclusion() from canned results keyed by
scope (and query), records every call, and raises UpstreamError for anything
unknown. Timestamp store tests use a temporary SQLite file.
"""

from __future__ import annotations

import copy
import json
from typing import Any

import pytest

from acme_metrics.core.exceptions import UpstreamError
from acme_metrics.ledger import ChainEntry

REGISTRY_SCOPE = "acc://staking.acme/registered"

_MISSING = object()


def _query_key(query: dict[str, Any] | None) -> str:
    return json.dumps(query, sort_keys=True)


def write_data_tx(payload: Any, tx_type: str = "writeData") -> dict[str, Any]:
    """v3 query result for a data entry transaction. Dict payloads are JSON+hex encoded."""
    data = payload if isinstance(payload, str) else json.dumps(payload).encode().hex()
    return {"message": {"transaction": {"body": {"type": tx_type, "entry": {"data": [data]}}}}}


def signature_result(status: str, timestamps: list[int | None], delegated: bool = False) -> dict[str, Any]:
    """v3 transaction query result with one signature set holding the given timestamps."""
    records = []
    for ts in timestamps:
        sig: dict[str, Any] = {"type": "ed25519"}
        if ts is not None:
            sig["timestamp"] = ts
        if delegated:
            sig = {"type": "delegated", "signature": sig}
        records.append({"message": {"signature": sig}})
    return {"status": status, "signatures": {"records": [{"signatures": {"records": records}}]}}


class FakeLedger:
    def __init__(self) -> None:
        self.results: dict[tuple[str, str], Any] = {}
        self.scope_results: dict[str, Any] = {}
        self.chains: dict[str, Any] = {}
        self.calls: list[tuple[str, Any]] = []
        self.block_calls: list[str] = []

    # LedgerQueryService

    def query(self, scope: str, query: dict[str, Any] | None = None) -> dict[str, Any]:
        self.calls.append((scope, query))
        value = self.results.get((scope, _query_key(query)), _MISSING)
        if value is _MISSING:
            value = self.scope_results.get(scope, _MISSING)
        if value is _MISSING:
            raise UpstreamError(f"not found: {scope}", rpc_code=404)
        if isinstance(value, Exception):
            raise value
        return copy.deepcopy(value)

    def block_inclusion(self, txid: str) -> list[ChainEntry]:
        self.block_calls.append(txid)
        value = self.chains.get(txid, [])
        if isinstance(value, Exception):
            raise value
        return list(value)

    # Setup helpers

    write_data_tx = staticmethod(write_data_tx)

    def set_result(self, scope: str, query: dict[str, Any] | None, result: Any) -> None:
        self.results[(scope, _query_key(query))] = result

    def set_registry(
        self,
        payloads: list[Any],
        *,
        scope: str = REGISTRY_SCOPE,
        batch_size: int = 100,
        failing_pages: tuple[int, ...] = (),
    ) -> list[str]:
        """Register payloads as consecutive chain entries; returns their entry hashes."""
        hashes = [f"{i:064x}" for i in range(len(payloads))]
        self.set_result(
            scope,
            {"queryType": "chain"},
            {"records": [{"name": "signature", "count": 7}, {"name": "main", "count": len(payloads)}]},
        )
        suffix = scope.split("://", 1)[-1]
        for start in range(0, len(payloads), batch_size):
            count = min(batch_size, len(payloads) - start)
            query = {
                "queryType": "chain",
                "name": "main",
                "range": {"start": start, "count": count},
                "includeReceipt": False,
            }
            if start in failing_pages:
                self.set_result(scope, query, UpstreamError("page unavailable"))
                continue
            self.set_result(scope, query, {"records": [{"entry": h} for h in hashes[start:start + count]]})
        for h, payload in zip(hashes, payloads):
            if isinstance(payload, Exception):
                self.scope_results[f"acc://{h}@{suffix}"] = payload
            elif isinstance(payload, dict) and "message" in payload:
                self.scope_results[f"acc://{h}@{suffix}"] = payload
            else:
                self.scope_results[f"acc://{h}@{suffix}"] = write_data_tx(payload)
        return hashes

    def set_balance(self, url: str, balance: Any) -> None:
        self.set_result(url, {}, {"account": {"type": "tokenAccount", "url": url, "balance": balance}})

    def set_issuer(self, issued: Any, supply_limit: Any, scope: str = "acc://ACME") -> None:
        self.set_result(
            scope,
            {},
            {"account": {"type": "tokenIssuer", "url": scope, "symbol": "ACME", "precision": 8,
                         "issued": issued, "supplyLimit": supply_limit}},
        )

    def set_transaction(self, txid: str, result: Any) -> None:
        self.set_result(f"acc://{txid}@unknown", None, result)

    def set_signatures(
        self, txid: str, timestamps: list[int | None], status: str = "pending", delegated: bool = False
    ) -> None:
        self.set_transaction(txid, signature_result(status, timestamps, delegated=delegated))

    def set_chains(self, txid: str, chains: Any) -> None:
        self.chains[txid] = chains

    def count_calls(self, scope_prefix: str) -> int:
        return sum(1 for scope, _ in self.calls if scope.startswith(scope_prefix))


class ManualClock:
    """Monotonic clock the test advances explicitly."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def fake_ledger() -> FakeLedger:
    return FakeLedger()


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def timestamp_store(tmp_path):
    """Fresh SQLite-backed TimestampStore in tmp_path."""
    from acme_metrics.database import TimestampStore

    store = TimestampStore(f"sqlite:///{tmp_path / 'timestamps.db'}")
    store.ensure_schema()
    yield store
    store.dispose()


@pytest.fixture
def services(fake_ledger, timestamp_store):
    """MetricsServices wired to the fake ledger and temporary store."""
    from acme_metrics.api_server.services import build_services
    from acme_metrics.config import Settings

    settings = Settings(
        api_v3_url="http://ledger.test/v3",
        api_v2_url="http://ledger.test",
        database_url=timestamp_store.url,
    )
    return build_services(settings, ledger=fake_ledger, store=timestamp_store)


@pytest.fixture
def client(services):
    """FastAPI TestClient with get_services overridden."""
    from fastapi.testclient import TestClient

    from acme_metrics.api_server.server import app
    from acme_metrics.api_server.services import get_services

    app.dependency_overrides[get_services] = lambda: services
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.pop(get_services, None)
