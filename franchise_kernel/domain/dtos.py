"""
DTOs -- Pure domain data transfer objects.

Responsibility:
    Immutable, explicitly typed records returned by selectors and services:
    franchises, workers, the three ledger variants, the public worker-income
    projection, revenue totals, profit-share records and overviews,
    percentage overrides, role-change entries and monthly summaries.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    from_model() class methods are boundary converters invoked from the
    service and selector layers only.

Invariants enforced:
    - Callers never receive ORM entities; every row is converted here.
    - Amounts are normalized Decimals and timestamps are UTC-aware, so two
      reads of unchanged data compare equal on every backend.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, ClassVar
from uuid import UUID

from franchise_kernel.db.types import as_utc, normalize_amount
from franchise_kernel.domain.month import MonthKey
from franchise_kernel.domain.profit_share import (
    PaymentStatus,
    franchise_percentage_for,
)
from franchise_kernel.domain.roles import LedgerStream, Role

if TYPE_CHECKING:
    from franchise_kernel.models.access import RoleChange as RoleChangeModel
    from franchise_kernel.models.franchise import Franchise as FranchiseModel
    from franchise_kernel.models.ledger import (
        AdminIncome as AdminIncomeModel,
    )
    from franchise_kernel.models.ledger import (
        Expense as ExpenseModel,
    )
    from franchise_kernel.models.ledger import (
        Worker as WorkerModel,
    )
    from franchise_kernel.models.ledger import (
        WorkerIncome as WorkerIncomeModel,
    )
    from franchise_kernel.models.profit_sharing import (
        ProfitShareRecord as ProfitShareRecordModel,
    )
    from franchise_kernel.models.profit_sharing import (
        ProfitSharingOverride as ProfitSharingOverrideModel,
    )


@dataclass(frozen=True)
class FranchiseInfo:
    id: UUID
    display_name: str
    slug: str
    franchise_code: str | None = None
    address: str | None = None

    @classmethod
    def from_model(cls, model: FranchiseModel) -> FranchiseInfo:
        return cls(
            id=model.id,
            display_name=model.display_name,
            slug=model.slug,
            franchise_code=model.franchise_code,
            address=model.address,
        )


@dataclass(frozen=True)
class WorkerInfo:
    id: UUID
    franchise_id: UUID
    name: str
    phone: str | None = None
    bank_account: str | None = None
    position: str | None = None
    status: str | None = None

    @classmethod
    def from_model(cls, model: WorkerModel) -> WorkerInfo:
        return cls(
            id=model.id,
            franchise_id=model.franchise_id,
            name=model.name,
            phone=model.phone,
            bank_account=model.bank_account,
            position=model.position,
            status=model.status,
        )


# -- Ledger records ---------------------------------------------------------


@dataclass(frozen=True)
class AdminIncomeRecord:
    stream: ClassVar[LedgerStream] = LedgerStream.ADMIN_INCOME

    id: UUID
    franchise_id: UUID
    amount: Decimal
    occurred_at: datetime
    created_by_id: UUID
    code: str | None = None

    @classmethod
    def from_model(cls, model: AdminIncomeModel) -> AdminIncomeRecord:
        return cls(
            id=model.id,
            franchise_id=model.franchise_id,
            amount=normalize_amount(model.amount),
            occurred_at=as_utc(model.occurred_at),
            created_by_id=model.created_by_id,
            code=model.code,
        )


@dataclass(frozen=True)
class WorkerIncomeRecord:
    stream: ClassVar[LedgerStream] = LedgerStream.WORKER_INCOME

    id: UUID
    franchise_id: UUID
    amount: Decimal
    occurred_at: datetime
    created_by_id: UUID
    worker_id: UUID | None = None
    code: str | None = None
    job_description: str | None = None

    @classmethod
    def from_model(cls, model: WorkerIncomeModel) -> WorkerIncomeRecord:
        return cls(
            id=model.id,
            franchise_id=model.franchise_id,
            amount=normalize_amount(model.amount),
            occurred_at=as_utc(model.occurred_at),
            created_by_id=model.created_by_id,
            worker_id=model.worker_id,
            code=model.code,
            job_description=model.job_description,
        )


@dataclass(frozen=True)
class ExpenseRecord:
    stream: ClassVar[LedgerStream] = LedgerStream.EXPENSES

    id: UUID
    franchise_id: UUID
    amount: Decimal
    occurred_at: datetime
    created_by_id: UUID
    note: str | None = None

    @classmethod
    def from_model(cls, model: ExpenseModel) -> ExpenseRecord:
        return cls(
            id=model.id,
            franchise_id=model.franchise_id,
            amount=normalize_amount(model.amount),
            occurred_at=as_utc(model.occurred_at),
            created_by_id=model.created_by_id,
            note=model.note,
        )


LedgerRecord = AdminIncomeRecord | WorkerIncomeRecord | ExpenseRecord


@dataclass(frozen=True)
class PublicWorkerIncome:
    """De-identified worker income row: no ids, no creator."""

    code: str | None
    amount: Decimal
    job_description: str | None
    occurred_at: datetime
    worker_name: str | None
    franchise_name: str
    franchise_slug: str


# -- Aggregates -------------------------------------------------------------


@dataclass(frozen=True)
class RevenueTotals:
    """Admin and worker income of one franchise in one month."""

    franchise_id: UUID
    month_key: MonthKey
    admin_income_total: Decimal
    worker_income_total: Decimal

    @property
    def gross_revenue(self) -> Decimal:
        return self.admin_income_total + self.worker_income_total


@dataclass(frozen=True)
class MonthlySummary:
    """
    Dashboard figures for one month in a scope.

    ``gross_revenue`` is the base used by profit-share records.
    ``net_revenue`` ("omset") additionally subtracts expenses and the
    persisted profit share; it is a reporting figure only.
    """

    month_key: MonthKey
    admin_income: Decimal
    worker_income: Decimal
    expenses: Decimal
    profit_share: Decimal

    @property
    def gross_revenue(self) -> Decimal:
        return self.admin_income + self.worker_income

    @property
    def net_revenue(self) -> Decimal:
        return self.gross_revenue - self.expenses - self.profit_share


# -- Profit sharing ---------------------------------------------------------


@dataclass(frozen=True)
class ProfitShareInfo:
    id: UUID
    franchise_id: UUID
    month_key: MonthKey
    total_revenue: Decimal
    admin_percentage: Decimal
    share_amount: Decimal
    payment_status: PaymentStatus

    @property
    def franchise_percentage(self) -> Decimal:
        return franchise_percentage_for(self.admin_percentage)

    @property
    def is_paid(self) -> bool:
        return self.payment_status == PaymentStatus.PAID

    @classmethod
    def from_model(cls, model: ProfitShareRecordModel) -> ProfitShareInfo:
        return cls(
            id=model.id,
            franchise_id=model.franchise_id,
            month_key=MonthKey.parse(model.month_key),
            total_revenue=normalize_amount(model.total_revenue),
            admin_percentage=normalize_amount(model.admin_percentage),
            share_amount=normalize_amount(model.share_amount),
            payment_status=PaymentStatus(model.payment_status),
        )


@dataclass(frozen=True)
class ProfitShareOverview:
    month_key: MonthKey
    records: tuple[ProfitShareInfo, ...]
    total_share_amount: Decimal
    paid_count: int
    unpaid_count: int


@dataclass(frozen=True)
class OverrideInfo:
    scope_key: str
    franchise_id: UUID | None
    admin_percentage: Decimal

    @property
    def franchise_percentage(self) -> Decimal:
        return franchise_percentage_for(self.admin_percentage)

    @property
    def is_global(self) -> bool:
        return self.franchise_id is None

    @classmethod
    def from_model(cls, model: ProfitSharingOverrideModel) -> OverrideInfo:
        return cls(
            scope_key=model.scope_key,
            franchise_id=model.franchise_id,
            admin_percentage=normalize_amount(model.admin_percentage),
        )


# -- Access -----------------------------------------------------------------


@dataclass(frozen=True)
class RoleChangeInfo:
    id: UUID
    actor_id: UUID
    target_principal_id: UUID
    previous_role: Role | None
    new_role: Role
    franchise_id: UUID | None
    occurred_at: datetime

    @classmethod
    def from_model(cls, model: RoleChangeModel) -> RoleChangeInfo:
        return cls(
            id=model.id,
            actor_id=model.actor_id,
            target_principal_id=model.target_principal_id,
            previous_role=Role(model.previous_role) if model.previous_role else None,
            new_role=Role(model.new_role),
            franchise_id=model.franchise_id,
            occurred_at=as_utc(model.occurred_at),
        )


@dataclass(frozen=True)
class DeletionStep:
    name: str
    rows: int


@dataclass(frozen=True)
class DeletionReport:
    """What a committed franchise cascade removed, in order."""

    franchise_id: UUID
    display_name: str
    steps: tuple[DeletionStep, ...]

    @property
    def total_rows(self) -> int:
        return sum(step.rows for step in self.steps)
