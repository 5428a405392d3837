"""
Module: franchise_kernel.selectors.ledger_selector
Responsibility: Scope-filtered reads of the ledger streams, the worker
    roster, the public worker-income projection and available months.
Architecture position: Kernel > Selectors.  Read-only.

Invariants enforced:
    - The tenant filter comes from ``AccessScope.read_filter()``: a
      franchise-bound scope sees its own franchise whatever id it passes;
      super_admin sees everything unless it narrows explicitly.
    - The stream access matrix is checked before any query runs.
    - The public projection carries no ids and no creator.
"""

from uuid import UUID

from sqlalchemy import select

from franchise_kernel.db.types import as_utc, normalize_amount
from franchise_kernel.domain.dtos import (
    AdminIncomeRecord,
    ExpenseRecord,
    PublicWorkerIncome,
    WorkerIncomeRecord,
    WorkerInfo,
)
from franchise_kernel.domain.month import MonthKey
from franchise_kernel.domain.roles import AccessScope, LedgerStream, Role
from franchise_kernel.models.franchise import Franchise
from franchise_kernel.models.ledger import AdminIncome, Expense, Worker, WorkerIncome
from franchise_kernel.selectors.base import BaseSelector
from franchise_kernel.selectors.revenue_selector import STREAM_MODELS


class LedgerSelector(BaseSelector[AdminIncome]):
    def list_admin_income(
        self,
        scope: AccessScope,
        month_key: MonthKey | str | None = None,
        franchise_id: UUID | None = None,
    ) -> list[AdminIncomeRecord]:
        rows = self._scoped_rows(
            scope, LedgerStream.ADMIN_INCOME, AdminIncome, month_key, franchise_id
        )
        return [AdminIncomeRecord.from_model(row) for row in rows]

    def list_worker_income(
        self,
        scope: AccessScope,
        month_key: MonthKey | str | None = None,
        franchise_id: UUID | None = None,
    ) -> list[WorkerIncomeRecord]:
        rows = self._scoped_rows(
            scope, LedgerStream.WORKER_INCOME, WorkerIncome, month_key, franchise_id
        )
        return [WorkerIncomeRecord.from_model(row) for row in rows]

    def list_expenses(
        self,
        scope: AccessScope,
        month_key: MonthKey | str | None = None,
        franchise_id: UUID | None = None,
    ) -> list[ExpenseRecord]:
        rows = self._scoped_rows(
            scope, LedgerStream.EXPENSES, Expense, month_key, franchise_id
        )
        return [ExpenseRecord.from_model(row) for row in rows]

    def list_workers(
        self,
        scope: AccessScope,
        franchise_id: UUID | None = None,
    ) -> list[WorkerInfo]:
        scope.require_stream(LedgerStream.WORKERS)
        stmt = select(Worker).order_by(Worker.name, Worker.id)
        target = scope.read_filter(franchise_id)
        if target is not None:
            stmt = stmt.where(Worker.franchise_id == target)
        return [WorkerInfo.from_model(row) for row in self.session.scalars(stmt)]

    def list_public_worker_income(
        self,
        scope: AccessScope,
        month_key: MonthKey | str | None = None,
        franchise_slug: str | None = None,
    ) -> list[PublicWorkerIncome]:
        """
        The de-identified worker-income view.

        Open to every authenticated scope.  Franchise-bound scopes still see
        only their own franchise.
        """
        stmt = (
            select(
                WorkerIncome.code,
                WorkerIncome.amount,
                WorkerIncome.job_description,
                WorkerIncome.occurred_at,
                Worker.name,
                Franchise.display_name,
                Franchise.slug,
            )
            .join(Franchise, Franchise.id == WorkerIncome.franchise_id)
            .outerjoin(Worker, Worker.id == WorkerIncome.worker_id)
            .order_by(WorkerIncome.occurred_at.desc(), WorkerIncome.id)
        )
        if scope.is_franchise_bound:
            stmt = stmt.where(WorkerIncome.franchise_id == scope.franchise_id)
        if franchise_slug is not None:
            stmt = stmt.where(Franchise.slug == franchise_slug)
        if month_key is not None:
            start, end = MonthKey.parse(month_key).bounds(self.tz)
            stmt = stmt.where(
                WorkerIncome.occurred_at >= start, WorkerIncome.occurred_at < end
            )
        return [
            PublicWorkerIncome(
                code=code,
                amount=normalize_amount(amount),
                job_description=job_description,
                occurred_at=as_utc(occurred_at),
                worker_name=worker_name,
                franchise_name=franchise_name,
                franchise_slug=franchise_slug_value,
            )
            for (
                code,
                amount,
                job_description,
                occurred_at,
                worker_name,
                franchise_name,
                franchise_slug_value,
            ) in self.session.execute(stmt)
        ]

    def available_months(
        self,
        scope: AccessScope,
        franchise_id: UUID | None = None,
    ) -> list[MonthKey]:
        """Months with at least one visible ledger record, newest first."""
        if scope.role == Role.USER:
            streams = [LedgerStream.WORKER_INCOME]
            target = None
        else:
            streams = [s for s in STREAM_MODELS if scope.can_access(s)]
            target = scope.read_filter(franchise_id)

        months: set[MonthKey] = set()
        for stream in streams:
            model = STREAM_MODELS[stream]
            stmt = select(model.occurred_at).distinct()
            if target is not None:
                stmt = stmt.where(model.franchise_id == target)
            for (occurred_at,) in self.session.execute(stmt):
                months.add(MonthKey.containing(as_utc(occurred_at), self.tz))
        return sorted(months, reverse=True)

    def _scoped_rows(self, scope, stream, model, month_key, franchise_id):
        scope.require_stream(stream)
        stmt = select(model).order_by(model.occurred_at.desc(), model.id)
        target = scope.read_filter(franchise_id)
        if target is not None:
            stmt = stmt.where(model.franchise_id == target)
        if month_key is not None:
            start, end = MonthKey.parse(month_key).bounds(self.tz)
            stmt = stmt.where(model.occurred_at >= start, model.occurred_at < end)
        return self.session.scalars(stmt).all()
