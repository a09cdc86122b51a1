"""
Staking aggregator and staker lookup.

Totals ACME locked in staking: take every registered (or legacy implicitly
registered) identity from the identity map, collect its account URLs,
deduplicate, query each balance and sum. A failed balance query counts as
zero rather than failing the whole total.
"""

from __future__ import annotations

from acme_metrics.core.exceptions import LedgerError, NotFound
from acme_metrics.core.units import parse_amount, to_whole_tokens
from acme_metrics.ledger import LedgerQueryService
from acme_metrics.logging import get_logger
from acme_metrics.staking.models import StakingAccountInfo, StakingSummary
from acme_metrics.staking.registry import IdentityMap, IdentityMapCache

logger = get_logger(__name__)

ACC_PREFIX = "acc://"


def collect_staking_accounts(identity_map: IdentityMap, summary: StakingSummary | None = None) -> set[str]:
    """Unique account URLs of all non-deleted, registered identities."""
    summary = summary if summary is not None else StakingSummary()
    summary.identities = len(identity_map)
    refs: list[str] = []
    for identity, entry in identity_map.items():
        if entry.is_deleted:
            summary.deleted += 1
            continue
        if not entry.is_registered:
            summary.unknown_status += 1
            logger.warning("staking_unknown_status", identity=identity, status=entry.status)
            continue
        summary.registered += 1
        if not entry.status:
            summary.missing_status += 1
        before = len(refs)
        refs.extend(a.url for a in entry.accounts if a.url)
        if len(refs) == before:
            summary.without_accounts.append(identity)
            logger.warning("staking_identity_without_accounts", identity=identity, status=entry.status)
    summary.account_refs = len(refs)
    unique = set(refs)
    summary.unique_accounts = len(unique)
    return unique


class StakingAggregator:
    """Sums staking account balances for the current identity map."""

    def __init__(self, ledger: LedgerQueryService, identity_maps: IdentityMapCache) -> None:
        self._ledger = ledger
        self._identity_maps = identity_maps

    def account_balance(self, url: str) -> int:
        """Balance of one token account in smallest units."""
        result = self._ledger.query(url, {})
        account = result.get("account") if isinstance(result, dict) else None
        balance = account.get("balance") if isinstance(account, dict) else None
        if balance in (None, ""):
            return 0
        return parse_amount(balance, field="balance")

    def aggregate(self, identity_map: IdentityMap) -> StakingSummary:
        """Total staked for identity_map. Never raises for per-account failures."""
        summary = StakingSummary()
        accounts = collect_staking_accounts(identity_map, summary)
        total_raw = 0
        for url in sorted(accounts):
            try:
                total_raw += self.account_balance(url)
            except LedgerError as e:
                summary.failed_accounts += 1
                logger.debug("staking_balance_skipped", account=url, error=str(e))
        summary.staked_raw = total_raw
        summary.staked = to_whole_tokens(total_raw)
        logger.info(
            "staking_aggregated",
            identities=summary.identities,
            registered=summary.registered,
            missing_status=summary.missing_status,
            without_accounts=len(summary.without_accounts),
            deleted=summary.deleted,
            unknown_status=summary.unknown_status,
            account_refs=summary.account_refs,
            unique_accounts=summary.unique_accounts,
            failed_accounts=summary.failed_accounts,
            staked=summary.staked,
        )
        return summary

    def total_staked(self) -> int:
        """Whole ACME staked. Raises when the identity map cannot be resolved at all."""
        identity_map = self._identity_maps.get()
        return self.aggregate(identity_map).staked

    def find_account(self, url: str) -> StakingAccountInfo:
        """Staking metadata for an account URL. Raises NotFound."""
        return find_staking_account(self._identity_maps.get(), url)


def normalize_account_url(raw: str) -> str:
    """acc:/x (slash collapsed by HTTP clients) and bare x both become acc://x."""
    raw = raw.strip()
    if raw.startswith(ACC_PREFIX):
        return raw
    if raw.startswith("acc:/"):
        return ACC_PREFIX + raw[len("acc:/"):]
    return ACC_PREFIX + raw


def find_staking_account(identity_map: IdentityMap, url: str) -> StakingAccountInfo:
    for identity, entry in identity_map.items():
        if entry.is_deleted or not entry.is_registered:
            continue
        for account in entry.accounts:
            if account.url == url:
                return StakingAccountInfo(
                    url=account.url,
                    type=account.type,
                    delegate=account.delegate,
                    rewards=account.payout,
                    identity=identity,
                )
    raise NotFound(f"account not found in staking registry: {url}")
