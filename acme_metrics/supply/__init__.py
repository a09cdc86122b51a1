"""
ACME supply: issuer totals, staked amount and circulating supply, cached.
"""

from acme_metrics.supply.models import SupplyMetrics
from acme_metrics.supply.service import ISSUER_SCOPE, SupplyService

__all__ = ["ISSUER_SCOPE", "SupplyMetrics", "SupplyService"]
