"""ORM models for the franchise kernel."""

from franchise_kernel.models.access import RoleBinding, RoleChange
from franchise_kernel.models.franchise import Franchise
from franchise_kernel.models.ledger import (
    AdminIncome,
    Expense,
    Worker,
    WorkerIncome,
)
from franchise_kernel.models.profit_sharing import (
    ProfitShareRecord,
    ProfitSharingOverride,
)

__all__ = [
    "Franchise",
    "RoleBinding",
    "RoleChange",
    "Worker",
    "AdminIncome",
    "WorkerIncome",
    "Expense",
    "ProfitSharingOverride",
    "ProfitShareRecord",
]
