"""
Staking registration records.

Registration entries on the ledger come in two shapes: the current
multi-account shape (identity + accounts) and an older single-account shape
(stake, rewards, delegate, ...). decode_registration() tells them apart once;
normalizer.normalize() folds the legacy shape into the current one so the rest
of the pipeline only ever sees RegistrationIdentity.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Union

from acme_metrics.core.exceptions import DecodeError

STATUS_REGISTERED = "registered"
STATUS_DELETED = "deleted"
STATUS_IMPLICIT = ""  # legacy entries carry no status and count as registered


@dataclass(frozen=True)
class Account:
    """A staking account owned by an identity."""

    type: str = ""
    url: str = ""
    payout: str = ""
    delegate: str = ""
    lockup: int = 0
    hard_lock: bool = False


@dataclass(frozen=True)
class RegistrationIdentity:
    """A registration entry in the current (multi-account) shape."""

    identity: str = ""
    accounts: tuple[Account, ...] = ()
    delegator_payout: str = ""
    reject_delegates: bool = False
    status: str = STATUS_IMPLICIT
    accepting_delegates: str = ""

    @property
    def is_deleted(self) -> bool:
        return self.status == STATUS_DELETED

    @property
    def is_registered(self) -> bool:
        return self.status in (STATUS_REGISTERED, STATUS_IMPLICIT)


@dataclass(frozen=True)
class LegacyStake:
    """Single-account fields of the older registration shape."""

    stake: str
    type: str = ""
    rewards: str = ""
    delegate: str = ""
    lockup: int = 0
    hard_lock: bool = False


@dataclass(frozen=True)
class LegacyRegistration:
    """A legacy entry: whatever current-shape fields it carried plus its single stake account."""

    record: RegistrationIdentity
    legacy: LegacyStake


DecodedRegistration = Union[RegistrationIdentity, LegacyRegistration]


@dataclass
class StakingAccountInfo:
    """Staking metadata for one account, as exposed by the staker lookup."""

    url: str
    type: str = ""
    delegate: str = ""
    rewards: str = ""
    identity: str = ""

    def to_dict(self) -> dict[str, str]:
        out = {"url": self.url}
        for key in ("type", "delegate", "rewards", "identity"):
            value = getattr(self, key)
            if value:
                out[key] = value
        return out


@dataclass
class StakingSummary:
    """Counters from one aggregation pass, for logs."""

    identities: int = 0
    registered: int = 0
    missing_status: int = 0
    without_accounts: list[str] = field(default_factory=list)
    deleted: int = 0
    unknown_status: int = 0
    account_refs: int = 0
    unique_accounts: int = 0
    failed_accounts: int = 0
    staked_raw: int = 0
    staked: int = 0


# -----------------------------------------------------------------------------
# Decoding
# -----------------------------------------------------------------------------


def _str(raw: dict[str, Any], key: str) -> str:
    value = raw.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise DecodeError(f"{key} must be a string, got {type(value).__name__}")
    return value


def _bool(raw: dict[str, Any], key: str) -> bool:
    value = raw.get(key)
    if value is None:
        return False
    if not isinstance(value, bool):
        raise DecodeError(f"{key} must be a boolean, got {type(value).__name__}")
    return value


def _uint(raw: dict[str, Any], key: str) -> int:
    value = raw.get(key)
    if value is None:
        return 0
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value < 0:
        raise DecodeError(f"{key} must be a non-negative number: {value!r}")
    if isinstance(value, float) and not math.isfinite(value):
        raise DecodeError(f"{key} must be finite: {value!r}")
    return int(value)


def decode_account(raw: Any) -> Account:
    if not isinstance(raw, dict):
        raise DecodeError(f"account must be an object, got {type(raw).__name__}")
    return Account(
        type=_str(raw, "type"),
        url=_str(raw, "url"),
        payout=_str(raw, "payout"),
        delegate=_str(raw, "delegate"),
        lockup=_uint(raw, "lockup"),
        hard_lock=_bool(raw, "hardLock"),
    )


def decode_registration(raw: Any) -> DecodedRegistration:
    """
    Decode one registration entry (already JSON-parsed).

    Returns LegacyRegistration when the entry carries a legacy stake address,
    RegistrationIdentity otherwise. Raises DecodeError on a wrong shape.
    """
    if not isinstance(raw, dict):
        raise DecodeError(f"registration must be an object, got {type(raw).__name__}")
    accounts_raw = raw.get("accounts") or []
    if not isinstance(accounts_raw, list):
        raise DecodeError("accounts must be a list")
    record = RegistrationIdentity(
        identity=_str(raw, "identity"),
        accounts=tuple(decode_account(a) for a in accounts_raw),
        delegator_payout=_str(raw, "delegatorPayout"),
        reject_delegates=_bool(raw, "rejectDelegates"),
        status=_str(raw, "status"),
        accepting_delegates=_str(raw, "acceptingDelegates"),
    )
    stake = _str(raw, "stake")
    if not stake:
        return record
    return LegacyRegistration(
        record=record,
        legacy=LegacyStake(
            stake=stake,
            type=_str(raw, "type"),
            rewards=_str(raw, "rewards"),
            delegate=_str(raw, "delegate"),
            lockup=_uint(raw, "lockup"),
            hard_lock=_bool(raw, "hardLock"),
        ),
    )
