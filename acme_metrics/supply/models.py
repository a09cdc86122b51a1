"""
Supply metrics, in whole ACME.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class SupplyMetrics:
    max: int
    total: int
    staked: int
    staked_estimated: bool = False
    """True when the staking total could not be resolved and staked is total // 5."""

    @property
    def circulating(self) -> int:
        return self.total - self.staked

    @property
    def circulating_tokens(self) -> int:
        # Alias kept for explorer compatibility
        return self.circulating

    def to_dict(self) -> dict[str, int]:
        return {
            "max": self.max,
            "total": self.total,
            "circulating": self.circulating,
            "circulatingTokens": self.circulating_tokens,
            "staked": self.staked,
        }
