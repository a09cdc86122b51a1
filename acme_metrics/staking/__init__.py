"""
Staking registry: registration decoding, legacy normalization, identity map
resolution and staked-amount aggregation.
"""

from acme_metrics.staking.aggregator import (
    StakingAggregator,
    collect_staking_accounts,
    find_staking_account,
    normalize_account_url,
)
from acme_metrics.staking.models import (
    Account,
    LegacyRegistration,
    LegacyStake,
    RegistrationIdentity,
    StakingAccountInfo,
    decode_registration,
)
from acme_metrics.staking.normalizer import derive_identity_key, normalize
from acme_metrics.staking.registry import IdentityMap, IdentityMapCache, IdentityRegistryResolver

__all__ = [
    "Account",
    "IdentityMap",
    "IdentityMapCache",
    "IdentityRegistryResolver",
    "LegacyRegistration",
    "LegacyStake",
    "RegistrationIdentity",
    "StakingAccountInfo",
    "StakingAggregator",
    "collect_staking_accounts",
    "decode_registration",
    "derive_identity_key",
    "find_staking_account",
    "normalize",
    "normalize_account_url",
]
