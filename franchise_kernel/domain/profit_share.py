"""
Module: franchise_kernel.domain.profit_share
Responsibility: Split arithmetic and the three-tier percentage cascade.
Architecture position: Kernel > Domain.  Pure functions, zero I/O.

Invariants enforced:
    - adminPercentage is within [0, 100] and franchisePercentage is always
      derived as ``100 - adminPercentage``; it is never set independently.
    - shareAmount = round_whole(totalRevenue * adminPercentage / 100), the
      only rounding applied to share amounts (ROUND_HALF_UP, whole units).
    - Cascade priority: per-franchise override, then global override, then
      DEFAULT_ADMIN_PERCENTAGE.
"""

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from enum import Enum
from uuid import UUID

from franchise_kernel.db.types import round_percentage, round_whole, to_decimal
from franchise_kernel.exceptions import (
    InvalidArgumentError,
    InvalidPercentageError,
    UnbalancedSplitError,
)

DEFAULT_ADMIN_PERCENTAGE = Decimal("20")
FULL_PERCENTAGE = Decimal("100")

# Scope key of the singleton global override row
GLOBAL_SCOPE_KEY = "global"


class PaymentStatus(str, Enum):
    UNPAID = "unpaid"
    PAID = "paid"


class PercentageSource(str, Enum):
    """Which tier of the cascade supplied a percentage."""

    FRANCHISE = "franchise"
    GLOBAL = "global"
    DEFAULT = "default"


def parse_payment_status(value: PaymentStatus | str) -> PaymentStatus:
    if isinstance(value, PaymentStatus):
        return value
    try:
        return PaymentStatus(value)
    except ValueError:
        raise InvalidArgumentError(f"Unknown payment status: {value!r}") from None


def override_scope_key(franchise_id: UUID | None) -> str:
    """Storage key of an override: ``global`` or the franchise id."""
    return GLOBAL_SCOPE_KEY if franchise_id is None else str(franchise_id)


def validate_percentage(value: object) -> Decimal:
    """
    Coerce and range-check an admin percentage.

    Raises:
        InvalidPercentageError: if not a finite number within [0, 100].
    """
    try:
        percentage = to_decimal(value)
    except (InvalidOperation, TypeError):
        raise InvalidPercentageError(str(value)) from None
    if not percentage.is_finite() or not Decimal(0) <= percentage <= FULL_PERCENTAGE:
        raise InvalidPercentageError(percentage)
    return round_percentage(percentage)


def franchise_percentage_for(admin_percentage: Decimal) -> Decimal:
    return FULL_PERCENTAGE - admin_percentage


def validate_split(admin_percentage: object, franchise_percentage: object) -> Decimal:
    """
    Validate an explicitly supplied pair and return the admin side.

    Raises:
        InvalidPercentageError: if either side is out of range.
        UnbalancedSplitError: if the sides do not add up to 100.
    """
    admin = validate_percentage(admin_percentage)
    franchise = validate_percentage(franchise_percentage)
    if admin + franchise != FULL_PERCENTAGE:
        raise UnbalancedSplitError(admin, franchise)
    return admin


def compute_share_amount(total_revenue: Decimal, admin_percentage: Decimal) -> Decimal:
    """Admin share of a month's revenue, rounded half-up to whole units."""
    return round_whole(total_revenue * admin_percentage / FULL_PERCENTAGE)


@dataclass(frozen=True)
class ResolvedPercentage:
    admin_percentage: Decimal
    source: PercentageSource

    @property
    def franchise_percentage(self) -> Decimal:
        return franchise_percentage_for(self.admin_percentage)


def resolve_cascade(
    franchise_override: Decimal | None,
    global_override: Decimal | None,
) -> ResolvedPercentage:
    """Pick the applicable percentage from the stored overrides."""
    if franchise_override is not None:
        return ResolvedPercentage(franchise_override, PercentageSource.FRANCHISE)
    if global_override is not None:
        return ResolvedPercentage(global_override, PercentageSource.GLOBAL)
    return ResolvedPercentage(DEFAULT_ADMIN_PERCENTAGE, PercentageSource.DEFAULT)
