"""
Module: franchise_kernel.models.access
Responsibility: ORM persistence for principal role bindings and the
    append-only role-change log.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - One binding per principal (uq_role_binding_principal).  Both the
      ensure-default insert and role assignment are single upserts keyed by
      principal_id.
    - franchise_id is non-null exactly for franchise-bound roles (checked in
      AccessScope before any write, mirrored by ck_role_binding_scope).
    - RoleChange rows are append-only (db/immutability.py).  They carry the
      franchise id as a plain value, not a FK, so the log survives the
      cascade deletion of the franchise it mentions.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    String,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column

from franchise_kernel.db.base import Base, UUIDString


class RoleBinding(Base):
    """The single active (role, franchise) binding of a principal."""

    __tablename__ = "role_bindings"

    __table_args__ = (
        UniqueConstraint("principal_id", name="uq_role_binding_principal"),
        Index("idx_role_binding_franchise", "franchise_id"),
        CheckConstraint(
            "(role IN ('franchise', 'admin_keuangan', 'admin_marketing') "
            "AND franchise_id IS NOT NULL) "
            "OR (role IN ('super_admin', 'user') AND franchise_id IS NULL)",
            name="ck_role_binding_scope",
        ),
    )

    principal_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        nullable=False,
    )

    role: Mapped[str] = mapped_column(
        String(30),
        nullable=False,
    )

    franchise_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("franchises.id"),
        nullable=True,
    )

    assigned_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<RoleBinding {self.principal_id}: {self.role}>"


class RoleChange(Base):
    """Append-only record of one role assignment."""

    __tablename__ = "role_changes"

    __table_args__ = (
        Index("idx_role_change_target", "target_principal_id"),
        Index("idx_role_change_occurred", "occurred_at"),
    )

    actor_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        nullable=False,
    )

    target_principal_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        nullable=False,
    )

    # None when the target had no binding before
    previous_role: Mapped[str | None] = mapped_column(
        String(30),
        nullable=True,
    )

    new_role: Mapped[str] = mapped_column(
        String(30),
        nullable=False,
    )

    franchise_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        nullable=True,
    )

    occurred_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    def __repr__(self) -> str:
        return (
            f"<RoleChange {self.target_principal_id}: "
            f"{self.previous_role} -> {self.new_role}>"
        )
