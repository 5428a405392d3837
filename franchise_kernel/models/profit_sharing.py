"""
Module: franchise_kernel.models.profit_sharing
Responsibility: ORM persistence for percentage overrides and per-month
    profit-share records.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - One override per scope (uq_override_scope): the global singleton is
      keyed ``global``, per-franchise overrides by the franchise id string.
    - admin_percentage + franchise_percentage = 100 (ck_override_split).
      franchise_percentage is always written as 100 - admin_percentage.
    - One profit-share record per (franchise_id, month_key)
      (uq_profit_share_franchise_month).  Recalculation is an upsert on this
      key, which is what serializes concurrent writers of the same key.
    - payment_status is written only by PaymentStatusTracker; recalculation
      leaves it untouched on existing rows.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    CheckConstraint,
    ForeignKey,
    Index,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from franchise_kernel.db.base import TrackedBase, UUIDString


class ProfitSharingOverride(TrackedBase):
    """A stored admin/franchise split, either global or for one franchise."""

    __tablename__ = "profit_sharing_overrides"

    __table_args__ = (
        UniqueConstraint("scope_key", name="uq_override_scope"),
        CheckConstraint(
            "admin_percentage >= 0 AND admin_percentage <= 100",
            name="ck_override_admin_range",
        ),
        CheckConstraint(
            "admin_percentage + franchise_percentage = 100",
            name="ck_override_split",
        ),
    )

    scope_key: Mapped[str] = mapped_column(
        String(36),
        nullable=False,
    )

    # None for the global override
    franchise_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("franchises.id"),
        nullable=True,
    )

    admin_percentage: Mapped[Decimal] = mapped_column(
        Numeric(5, 2),
        nullable=False,
    )

    franchise_percentage: Mapped[Decimal] = mapped_column(
        Numeric(5, 2),
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<ProfitSharingOverride {self.scope_key}: {self.admin_percentage}>"


class ProfitShareRecord(TrackedBase):
    """The admin share of one franchise's gross revenue for one month."""

    __tablename__ = "profit_share_records"

    __table_args__ = (
        UniqueConstraint(
            "franchise_id", "month_key", name="uq_profit_share_franchise_month"
        ),
        Index("idx_profit_share_month", "month_key"),
        CheckConstraint(
            "payment_status IN ('unpaid', 'paid')",
            name="ck_profit_share_payment_status",
        ),
    )

    franchise_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("franchises.id"),
        nullable=False,
    )

    # "YYYY-MM"
    month_key: Mapped[str] = mapped_column(
        String(7),
        nullable=False,
    )

    total_revenue: Mapped[Decimal] = mapped_column(
        Numeric(38, 9),
        nullable=False,
    )

    # Percentage applied when the record was last calculated or edited
    admin_percentage: Mapped[Decimal] = mapped_column(
        Numeric(5, 2),
        nullable=False,
    )

    share_amount: Mapped[Decimal] = mapped_column(
        Numeric(38, 9),
        nullable=False,
    )

    payment_status: Mapped[str] = mapped_column(
        String(10),
        nullable=False,
        default="unpaid",
    )

    def __repr__(self) -> str:
        return f"<ProfitShareRecord {self.franchise_id} {self.month_key}>"
