"""Pure domain values: roles and scopes, month keys, split arithmetic, DTOs."""

from franchise_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from franchise_kernel.domain.month import MonthKey, month_range
from franchise_kernel.domain.profit_share import (
    DEFAULT_ADMIN_PERCENTAGE,
    PaymentStatus,
    PercentageSource,
    ResolvedPercentage,
)
from franchise_kernel.domain.roles import AccessScope, LedgerStream, Role

__all__ = [
    "Clock",
    "SystemClock",
    "DeterministicClock",
    "MonthKey",
    "month_range",
    "DEFAULT_ADMIN_PERCENTAGE",
    "PaymentStatus",
    "PercentageSource",
    "ResolvedPercentage",
    "AccessScope",
    "LedgerStream",
    "Role",
]
