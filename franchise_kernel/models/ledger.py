"""
Module: franchise_kernel.models.ledger
Responsibility: ORM persistence for the worker roster and the three ledger
    streams (admin income, worker income, expenses).
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Every row carries franchise_id (FK to franchises); the value is stamped
      from the caller's resolved scope by LedgerService, never from input.
    - amount is a non-negative decimal (ck_*_amount_non_negative).
    - occurred_at is stored in UTC and is the month-bucketing timestamp.
    - Rows are removed only by the franchise cascade.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, Numeric, String
from sqlalchemy.orm import Mapped, declared_attr, mapped_column

from franchise_kernel.db.base import TrackedBase, UUIDString


class FranchiseOwned(TrackedBase):
    """Abstract base for rows that belong to exactly one franchise."""

    __abstract__ = True

    @declared_attr
    def franchise_id(cls) -> Mapped[UUID]:
        return mapped_column(
            UUIDString(),
            ForeignKey("franchises.id"),
            nullable=False,
            index=True,
        )


class LedgerEntryBase(FranchiseOwned):
    """Abstract base for the three fact streams."""

    __abstract__ = True

    amount: Mapped[Decimal] = mapped_column(
        Numeric(38, 9),
        nullable=False,
    )

    occurred_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )


class Worker(FranchiseOwned):
    """A person on a franchise's roster, referenced by worker income."""

    __tablename__ = "workers"

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    bank_account: Mapped[str | None] = mapped_column(String(100), nullable=True)
    position: Mapped[str | None] = mapped_column(String(100), nullable=True)
    status: Mapped[str | None] = mapped_column(String(50), nullable=True)

    def __repr__(self) -> str:
        return f"<Worker {self.name}>"


class AdminIncome(LedgerEntryBase):
    __tablename__ = "admin_income"

    __table_args__ = (
        CheckConstraint("amount >= 0", name="ck_admin_income_amount_non_negative"),
        Index("idx_admin_income_franchise_occurred", "franchise_id", "occurred_at"),
    )

    code: Mapped[str | None] = mapped_column(String(50), nullable=True)

    def __repr__(self) -> str:
        return f"<AdminIncome {self.code}: {self.amount}>"


class WorkerIncome(LedgerEntryBase):
    __tablename__ = "worker_income"

    __table_args__ = (
        CheckConstraint("amount >= 0", name="ck_worker_income_amount_non_negative"),
        Index("idx_worker_income_franchise_occurred", "franchise_id", "occurred_at"),
    )

    worker_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("workers.id"),
        nullable=True,
    )

    code: Mapped[str | None] = mapped_column(String(50), nullable=True)

    job_description: Mapped[str | None] = mapped_column(String(2000), nullable=True)

    def __repr__(self) -> str:
        return f"<WorkerIncome {self.code}: {self.amount}>"


class Expense(LedgerEntryBase):
    __tablename__ = "expenses"

    __table_args__ = (
        CheckConstraint("amount >= 0", name="ck_expense_amount_non_negative"),
        Index("idx_expense_franchise_occurred", "franchise_id", "occurred_at"),
    )

    note: Mapped[str | None] = mapped_column(String(2000), nullable=True)

    def __repr__(self) -> str:
        return f"<Expense {self.amount}>"
