"""
Module: franchise_kernel.selectors.profit_share_selector
Responsibility: Reads of profit-share records, overviews and stored
    overrides.
Architecture position: Kernel > Selectors.  Read-only.

Invariants enforced:
    - Profit-share records are readable by super_admin (all franchises) and
      by the franchise role for its own franchise only.
    - ``persisted_keys`` lists only keys that already have a record; the
      batch runner never invents months.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import select

from franchise_kernel.db.types import normalize_amount
from franchise_kernel.domain.dtos import (
    OverrideInfo,
    ProfitShareInfo,
    ProfitShareOverview,
)
from franchise_kernel.domain.month import MonthKey
from franchise_kernel.domain.profit_share import PaymentStatus
from franchise_kernel.domain.roles import AccessScope, Role
from franchise_kernel.exceptions import (
    ForbiddenError,
    ProfitShareNotFoundError,
)
from franchise_kernel.models.profit_sharing import (
    ProfitShareRecord,
    ProfitSharingOverride,
)
from franchise_kernel.selectors.base import BaseSelector

PROFIT_SHARE_READERS = frozenset({Role.SUPER_ADMIN, Role.FRANCHISE})


def profit_share_filter(scope: AccessScope, franchise_id: UUID | None) -> UUID | None:
    """Tenant filter for profit-share reads."""
    if scope.role not in PROFIT_SHARE_READERS:
        raise ForbiddenError(scope.role.value, "read profit sharing")
    return scope.read_filter(franchise_id)


class ProfitShareSelector(BaseSelector[ProfitShareRecord]):
    def get(self, franchise_id: UUID, month_key: MonthKey | str) -> ProfitShareInfo:
        """Unscoped lookup, for services that already checked access."""
        month = MonthKey.parse(month_key)
        row = self.session.execute(
            select(ProfitShareRecord).where(
                ProfitShareRecord.franchise_id == franchise_id,
                ProfitShareRecord.month_key == str(month),
            )
        ).scalar_one_or_none()
        if row is None:
            raise ProfitShareNotFoundError(franchise_id, str(month))
        return ProfitShareInfo.from_model(row)

    def get_for_scope(
        self,
        scope: AccessScope,
        franchise_id: UUID,
        month_key: MonthKey | str,
    ) -> ProfitShareInfo:
        target = profit_share_filter(scope, franchise_id)
        record = self.get(franchise_id, month_key)
        if target is not None and record.franchise_id != target:
            raise ProfitShareNotFoundError(franchise_id, str(record.month_key))
        return record

    def list_for_scope(
        self,
        scope: AccessScope,
        month_key: MonthKey | str | None = None,
        franchise_id: UUID | None = None,
    ) -> list[ProfitShareInfo]:
        target = profit_share_filter(scope, franchise_id)
        stmt = select(ProfitShareRecord).order_by(
            ProfitShareRecord.month_key.desc(), ProfitShareRecord.franchise_id
        )
        if target is not None:
            stmt = stmt.where(ProfitShareRecord.franchise_id == target)
        if month_key is not None:
            stmt = stmt.where(ProfitShareRecord.month_key == str(MonthKey.parse(month_key)))
        return [ProfitShareInfo.from_model(row) for row in self.session.scalars(stmt)]

    def overview(
        self,
        scope: AccessScope,
        month_key: MonthKey | str,
        franchise_id: UUID | None = None,
    ) -> ProfitShareOverview:
        month = MonthKey.parse(month_key)
        records = tuple(self.list_for_scope(scope, month, franchise_id))
        paid = sum(1 for record in records if record.payment_status == PaymentStatus.PAID)
        return ProfitShareOverview(
            month_key=month,
            records=records,
            total_share_amount=normalize_amount(
                sum((record.share_amount for record in records), Decimal("0"))
            ),
            paid_count=paid,
            unpaid_count=len(records) - paid,
        )

    def persisted_keys(
        self,
        franchise_id: UUID | None = None,
        month_key: MonthKey | str | None = None,
    ) -> list[tuple[UUID, MonthKey]]:
        stmt = select(ProfitShareRecord.franchise_id, ProfitShareRecord.month_key).order_by(
            ProfitShareRecord.month_key, ProfitShareRecord.franchise_id
        )
        if franchise_id is not None:
            stmt = stmt.where(ProfitShareRecord.franchise_id == franchise_id)
        if month_key is not None:
            stmt = stmt.where(ProfitShareRecord.month_key == str(MonthKey.parse(month_key)))
        return [(fid, MonthKey.parse(key)) for fid, key in self.session.execute(stmt)]

    def share_totals(
        self,
        franchise_id: UUID | None,
        months: list[MonthKey],
    ) -> dict[MonthKey, Decimal]:
        """Sum of persisted share amounts per month; the caller applies scope."""
        totals = {month: Decimal("0") for month in months}
        stmt = select(ProfitShareRecord.month_key, ProfitShareRecord.share_amount).where(
            ProfitShareRecord.month_key.in_([str(month) for month in months])
        )
        if franchise_id is not None:
            stmt = stmt.where(ProfitShareRecord.franchise_id == franchise_id)
        for key, amount in self.session.execute(stmt):
            totals[MonthKey.parse(key)] += normalize_amount(amount)
        return {month: normalize_amount(total) for month, total in totals.items()}

    # -- overrides ----------------------------------------------------------

    def list_overrides(self) -> list[OverrideInfo]:
        rows = self.session.scalars(
            select(ProfitSharingOverride).order_by(ProfitSharingOverride.scope_key)
        )
        return [OverrideInfo.from_model(row) for row in rows]
