"""
franchise_services -- Package init and public API.

Responsibility:
    The outer layer callers use.  ``FranchiseTracker`` owns transaction
    boundaries, caches and the change bus; ``ProfitShareBatchCalculator``
    runs recalculations in parallel, one unit of work per key.

Architecture position:
    Services -- orchestration over the kernel.

    Dependency direction:
        franchise_services/ -> franchise_kernel/  (allowed)
        franchise_services/ -> franchise_config/  (allowed)
        franchise_kernel/   -> franchise_services/ (FORBIDDEN)
"""

from franchise_services.recalculation import (
    BatchRecalculationResult,
    BatchStatus,
    ProfitShareBatchCalculator,
    RecalculationFailure,
)
from franchise_services.retry import ReadRetryPolicy
from franchise_services.tracker import FranchiseTracker, OverrideUpdate

__all__ = [
    "BatchRecalculationResult",
    "BatchStatus",
    "FranchiseTracker",
    "OverrideUpdate",
    "ProfitShareBatchCalculator",
    "ReadRetryPolicy",
    "RecalculationFailure",
]
