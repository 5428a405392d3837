"""Selectors for the franchise kernel (read side)."""

from franchise_kernel.selectors.franchise_selector import (
    FranchiseSelector,
    RoleChangeSelector,
)
from franchise_kernel.selectors.ledger_selector import LedgerSelector
from franchise_kernel.selectors.profit_share_selector import ProfitShareSelector
from franchise_kernel.selectors.revenue_selector import RevenueAggregator

__all__ = [
    "FranchiseSelector",
    "LedgerSelector",
    "ProfitShareSelector",
    "RevenueAggregator",
    "RoleChangeSelector",
]
