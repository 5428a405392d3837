"""
Module: franchise_kernel.selectors.revenue_selector
Responsibility: Monthly revenue totals from the ledger streams.
Architecture position: Kernel > Selectors.  Read-only.

Invariants enforced:
    - Month membership is half-open: ``start(M) <= occurred_at <
      start(M.next())`` with both boundaries taken in the reporting timezone
      and compared in UTC.
    - A month without records is a valid zero total, never an error.
    - Gross revenue (admin + worker income) is the profit-share base.
      Expenses are totalled separately for reporting only.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select

from franchise_kernel.db.types import as_utc, normalize_amount
from franchise_kernel.domain.dtos import RevenueTotals
from franchise_kernel.domain.month import MonthKey, month_range
from franchise_kernel.domain.roles import LedgerStream
from franchise_kernel.models.ledger import AdminIncome, Expense, WorkerIncome
from franchise_kernel.selectors.base import BaseSelector

STREAM_MODELS = {
    LedgerStream.ADMIN_INCOME: AdminIncome,
    LedgerStream.WORKER_INCOME: WorkerIncome,
    LedgerStream.EXPENSES: Expense,
}


class RevenueAggregator(BaseSelector[AdminIncome]):
    def aggregate(self, franchise_id: UUID, month_key: MonthKey | str) -> RevenueTotals:
        """Admin and worker income of one franchise in one month."""
        month = MonthKey.parse(month_key)
        start, end = month.bounds(self.tz)
        return RevenueTotals(
            franchise_id=franchise_id,
            month_key=month,
            admin_income_total=self._sum(AdminIncome, franchise_id, start, end),
            worker_income_total=self._sum(WorkerIncome, franchise_id, start, end),
        )

    def stream_totals(
        self,
        stream: LedgerStream,
        franchise_id: UUID | None,
        first: MonthKey,
        last: MonthKey,
    ) -> dict[MonthKey, Decimal]:
        """
        Per-month totals of one stream over ``[first, last]`` in one query.

        ``franchise_id`` None sums every franchise; the caller derives it
        from the scope.  Every month in the range is present in the result.
        """
        model = STREAM_MODELS[stream]
        start = first.start(self.tz)
        _, end = last.bounds(self.tz)
        stmt = select(model.occurred_at, model.amount).where(
            model.occurred_at >= start,
            model.occurred_at < end,
        )
        if franchise_id is not None:
            stmt = stmt.where(model.franchise_id == franchise_id)

        totals = {month: Decimal("0") for month in month_range(first, last)}
        for occurred_at, amount in self.session.execute(stmt):
            month = MonthKey.containing(as_utc(occurred_at), self.tz)
            totals[month] += normalize_amount(amount)
        return {month: normalize_amount(total) for month, total in totals.items()}

    def _sum(self, model, franchise_id: UUID, start, end) -> Decimal:
        total = self.session.execute(
            select(func.sum(model.amount)).where(
                model.franchise_id == franchise_id,
                model.occurred_at >= start,
                model.occurred_at < end,
            )
        ).scalar_one()
        return normalize_amount(total)
