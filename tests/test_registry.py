"""
Tests for the identity registry resolver and its TTL cache.

Registry entries are served by FakeLedger as writeData transactions on
acc://staking.acme/registered.
"""

from __future__ import annotations

import pytest

from acme_metrics.core.exceptions import EmptyRegistry, UpstreamError, UpstreamUnavailable
from acme_metrics.staking import IdentityMapCache, IdentityRegistryResolver
from acme_metrics.staking.registry import decode_entry_payload

REGISTRY_SCOPE = "acc://staking.acme/registered"


def _modern(identity: str, *urls: str, status: str = "registered") -> dict:
    return {"identity": identity, "status": status, "accounts": [{"type": "pure", "url": u} for u in urls]}


def test_resolve_builds_identity_map(fake_ledger):
    fake_ledger.set_registry(
        [
            _modern("acc://alice.acme", "acc://alice.acme/staking"),
            _modern("acc://bob.acme", "acc://bob.acme/staking", "acc://bob.acme/locked"),
        ]
    )
    identity_map = IdentityRegistryResolver(fake_ledger).resolve()
    assert set(identity_map) == {"acc://alice.acme", "acc://bob.acme"}
    assert [a.url for a in identity_map["acc://bob.acme"].accounts] == [
        "acc://bob.acme/staking",
        "acc://bob.acme/locked",
    ]


def test_resolve_latest_entry_wins(fake_ledger):
    fake_ledger.set_registry(
        [
            _modern("acc://alice.acme", "acc://alice.acme/staking"),
            _modern("acc://alice.acme", "acc://alice.acme/new", status="deleted"),
        ]
    )
    entry = IdentityRegistryResolver(fake_ledger).resolve()["acc://alice.acme"]
    assert entry.status == "deleted"
    assert [a.url for a in entry.accounts] == ["acc://alice.acme/new"]


def test_resolve_legacy_entry_keyed_by_stake_authority(fake_ledger):
    fake_ledger.set_registry([{"type": "pure", "stake": "acc://a/b/tokens"}])
    identity_map = IdentityRegistryResolver(fake_ledger).resolve()
    assert list(identity_map) == ["acc://a/b"]
    entry = identity_map["acc://a/b"]
    assert [a.url for a in entry.accounts] == ["acc://a/b/tokens"]
    assert entry.status == ""


def test_resolve_pages_in_batches(fake_ledger):
    payloads = [_modern(f"acc://id{i}.acme", f"acc://id{i}.acme/staking") for i in range(250)]
    fake_ledger.set_registry(payloads)
    identity_map = IdentityRegistryResolver(fake_ledger, batch_size=100).resolve()
    assert len(identity_map) == 250
    page_queries = [q for s, q in fake_ledger.calls if s == REGISTRY_SCOPE and q and "range" in q]
    assert [q["range"] for q in page_queries] == [
        {"start": 0, "count": 100},
        {"start": 100, "count": 100},
        {"start": 200, "count": 50},
    ]


def test_resolve_skips_failed_page(fake_ledger):
    payloads = [_modern(f"acc://id{i}.acme", f"acc://id{i}.acme/staking") for i in range(5)]
    fake_ledger.set_registry(payloads, batch_size=2, failing_pages=(2,))
    identity_map = IdentityRegistryResolver(fake_ledger, batch_size=2).resolve()
    assert set(identity_map) == {"acc://id0.acme", "acc://id1.acme", "acc://id4.acme"}


def test_resolve_skips_unusable_entries(fake_ledger):
    fake_ledger.set_registry(
        [
            _modern("acc://alice.acme", "acc://alice.acme/staking"),
            fake_ledger.write_data_tx(_modern("acc://sendtokens.acme", "acc://x"), tx_type="sendTokens"),
            fake_ledger.write_data_tx("zz-not-hex"),
            fake_ledger.write_data_tx(b"not json".hex()),
            {"accounts": [{"url": "acc://orphan/tokens"}]},  # no identity, no stake
            {"identity": "acc://bad.acme", "accounts": "nope"},  # wrong shape
            UpstreamUnavailable("entry fetch failed"),
            _modern("acc://bob.acme", "acc://bob.acme/staking"),
        ]
    )
    identity_map = IdentityRegistryResolver(fake_ledger).resolve()
    assert set(identity_map) == {"acc://alice.acme", "acc://bob.acme"}


def test_resolve_skips_non_finite_numbers(fake_ledger):
    non_finite = '{"identity":"acc://evil.acme","accounts":[{"url":"acc://evil.acme/s","lockup":NaN}]}'
    deep = "[" * 100000 + "]" * 100000
    fake_ledger.set_registry(
        [
            _modern("acc://alice.acme", "acc://alice.acme/staking"),
            fake_ledger.write_data_tx(non_finite.encode().hex()),
            fake_ledger.write_data_tx(deep.encode().hex()),
        ]
    )
    identity_map = IdentityRegistryResolver(fake_ledger).resolve()
    assert set(identity_map) == {"acc://alice.acme"}


def test_resolve_fails_when_every_page_fails(fake_ledger):
    fake_ledger.set_registry(
        [_modern("acc://alice.acme", "acc://alice.acme/staking")], failing_pages=(0,)
    )
    with pytest.raises(UpstreamUnavailable):
        IdentityRegistryResolver(fake_ledger).resolve()


def test_resolve_fails_when_every_entry_fails(fake_ledger):
    fake_ledger.set_registry([UpstreamUnavailable("entry fetch failed")])
    with pytest.raises(UpstreamUnavailable):
        IdentityRegistryResolver(fake_ledger).resolve()


def test_resolve_only_unrelated_entries_is_empty(fake_ledger):
    fake_ledger.set_registry([fake_ledger.write_data_tx(b"not json".hex())])
    assert IdentityRegistryResolver(fake_ledger).resolve() == {}


def test_resolve_empty_registry(fake_ledger):
    fake_ledger.set_result(REGISTRY_SCOPE, {"queryType": "chain"}, {"records": [{"name": "main", "count": 0}]})
    with pytest.raises(EmptyRegistry):
        IdentityRegistryResolver(fake_ledger).resolve()


def test_resolve_count_failure_propagates(fake_ledger):
    fake_ledger.set_result(REGISTRY_SCOPE, {"queryType": "chain"}, UpstreamUnavailable("down"))
    with pytest.raises(UpstreamUnavailable):
        IdentityRegistryResolver(fake_ledger).resolve()


def test_entry_scope_uses_registry_path(fake_ledger):
    hashes = fake_ledger.set_registry([_modern("acc://alice.acme", "acc://alice.acme/staking")])
    IdentityRegistryResolver(fake_ledger).resolve()
    assert (f"acc://{hashes[0]}@staking.acme/registered", {}) in fake_ledger.calls


def test_decode_entry_payload():
    assert decode_entry_payload({"message": {}}) is None
    assert decode_entry_payload(
        {"message": {"transaction": {"body": {"type": "writeData", "entry": {"data": []}}}}}
    ) is None
    tx = {"message": {"transaction": {"body": {"type": "writeData", "entry": {"data": ['{"a":1}'.encode().hex()]}}}}}
    assert decode_entry_payload(tx) == {"a": 1}


def test_identity_map_cache_reuses_map_within_ttl(fake_ledger, clock):
    fake_ledger.set_registry([_modern("acc://alice.acme", "acc://alice.acme/staking")])
    cache = IdentityMapCache(IdentityRegistryResolver(fake_ledger), 300, clock=clock)

    first = cache.get_result()
    assert first.state == "MISS"
    scans = fake_ledger.count_calls(REGISTRY_SCOPE)

    clock.advance(299)
    assert cache.get_result().state == "HIT"
    assert fake_ledger.count_calls(REGISTRY_SCOPE) == scans

    clock.advance(2)
    assert cache.get_result().state == "MISS"
    assert fake_ledger.count_calls(REGISTRY_SCOPE) == 2 * scans


def test_identity_map_cache_keeps_old_map_when_refresh_fails(fake_ledger, clock):
    fake_ledger.set_registry([_modern("acc://alice.acme", "acc://alice.acme/staking")])
    cache = IdentityMapCache(IdentityRegistryResolver(fake_ledger), 300, clock=clock)
    assert set(cache.get()) == {"acc://alice.acme"}

    fake_ledger.set_result(REGISTRY_SCOPE, {"queryType": "chain"}, UpstreamError("boom"))
    clock.advance(301)
    result = cache.get_result()
    assert result.state == "STALE"
    assert set(result.value) == {"acc://alice.acme"}


def test_identity_map_cache_keeps_old_map_when_all_pages_fail(fake_ledger, clock):
    fake_ledger.set_registry([_modern("acc://alice.acme", "acc://alice.acme/staking")])
    cache = IdentityMapCache(IdentityRegistryResolver(fake_ledger), 300, clock=clock)
    assert set(cache.get()) == {"acc://alice.acme"}

    fake_ledger.set_registry([_modern("acc://alice.acme", "acc://alice.acme/staking")], failing_pages=(0,))
    clock.advance(301)
    result = cache.get_result()
    assert result.state == "STALE"
    assert set(result.value) == {"acc://alice.acme"}
