"""
Module: franchise_kernel.models.franchise
Responsibility: ORM persistence for the tenant directory.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - slug is globally unique (uq_franchise_slug).
    - franchise_code, when present, is unique (uq_franchise_code).
    - Every ledger, profit-share and role-binding row references a franchise
      by FK; a franchise is removed only by the cascade in
      FranchiseDeletionService, never by a bare DELETE.
"""

from sqlalchemy import String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from franchise_kernel.db.base import TrackedBase


class Franchise(TrackedBase):
    """A tenant: an isolated business unit with its own ledgers."""

    __tablename__ = "franchises"

    __table_args__ = (
        UniqueConstraint("slug", name="uq_franchise_slug"),
        UniqueConstraint("franchise_code", name="uq_franchise_code"),
    )

    display_name: Mapped[str] = mapped_column(
        String(200),
        nullable=False,
    )

    # URL-safe, [a-z0-9-]+
    slug: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
    )

    # Optional human identifier printed on reports (e.g. "FR-0007")
    franchise_code: Mapped[str | None] = mapped_column(
        String(50),
        nullable=True,
    )

    address: Mapped[str | None] = mapped_column(
        String(500),
        nullable=True,
    )

    def __repr__(self) -> str:
        return f"<Franchise {self.slug}>"
