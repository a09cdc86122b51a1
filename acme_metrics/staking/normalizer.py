"""
Legacy registration normalizer.

Folds the single-account legacy shape into the multi-account shape. Pure:
returns a new RegistrationIdentity and never mutates its input. Idempotent:
an entry whose stake account is already listed gains no duplicate, and a
current-shape entry is returned unchanged.
"""

from __future__ import annotations

from dataclasses import replace

from acme_metrics.staking.models import (
    Account,
    DecodedRegistration,
    LegacyRegistration,
    RegistrationIdentity,
)


def normalize(entry: DecodedRegistration) -> RegistrationIdentity:
    if isinstance(entry, RegistrationIdentity):
        return entry

    record, legacy = entry.record, entry.legacy
    if any(a.url == legacy.stake for a in record.accounts):
        return record

    account = Account(
        type=legacy.type,
        url=legacy.stake,
        payout=legacy.rewards,
        delegate=legacy.delegate,
        lockup=legacy.lockup,
        hard_lock=legacy.hard_lock,
    )
    delegator_payout = record.delegator_payout
    if not record.reject_delegates and not delegator_payout:
        delegator_payout = legacy.rewards or legacy.stake
    return replace(
        record,
        accounts=record.accounts + (account,),
        delegator_payout=delegator_payout,
    )


def derive_identity_key(entry: DecodedRegistration) -> str:
    """
    Map key for an entry: its explicit identity, else the authority that owns
    the legacy stake account (the stake URL minus its last path segment).
    Returns "" when neither is available.
    """
    if isinstance(entry, LegacyRegistration):
        if entry.record.identity:
            return entry.record.identity
        return authority_of(entry.legacy.stake)
    return entry.identity


def authority_of(url: str) -> str:
    """acc://a/b/tokens -> acc://a/b; acc://a/tokens -> acc://a; acc://a -> ''."""
    scheme, sep, rest = url.partition("://")
    if not sep:
        return ""
    path = rest.rstrip("/")
    head, slash, _ = path.rpartition("/")
    if not slash or not head:
        return ""
    return f"{scheme}://{head}"
