"""Services for the franchise kernel (write side)."""

from franchise_kernel.services.access_scope import AccessScopeResolver
from franchise_kernel.services.change_notifier import (
    ChangeNotifier,
    ChangeSubscription,
    InProcessChangeBus,
    SubscriptionState,
)
from franchise_kernel.services.franchise_deletion import FranchiseDeletionService
from franchise_kernel.services.identity import (
    IdentityProvider,
    Principal,
    StaticIdentityProvider,
)
from franchise_kernel.services.ledger_service import LedgerService
from franchise_kernel.services.override_service import OverrideService
from franchise_kernel.services.payment_status_tracker import PaymentStatusTracker
from franchise_kernel.services.percentage_resolver import PercentageResolver
from franchise_kernel.services.profit_share_calculator import ProfitShareCalculator
from franchise_kernel.services.role_auditor import RoleChangeAuditor
from franchise_kernel.services.tenant_directory import TenantDirectoryService

__all__ = [
    "AccessScopeResolver",
    "ChangeNotifier",
    "ChangeSubscription",
    "FranchiseDeletionService",
    "IdentityProvider",
    "InProcessChangeBus",
    "LedgerService",
    "OverrideService",
    "PaymentStatusTracker",
    "PercentageResolver",
    "Principal",
    "ProfitShareCalculator",
    "RoleChangeAuditor",
    "StaticIdentityProvider",
    "SubscriptionState",
    "TenantDirectoryService",
]
