"""
Module: franchise_kernel.selectors.franchise_selector
Responsibility: Reads of the tenant directory and of the role-change log.
Architecture position: Kernel > Selectors.  Read-only.
"""

from uuid import UUID

from sqlalchemy import select

from franchise_kernel.domain.dtos import FranchiseInfo, RoleChangeInfo
from franchise_kernel.exceptions import FranchiseNotFoundError
from franchise_kernel.models.access import RoleChange
from franchise_kernel.models.franchise import Franchise
from franchise_kernel.selectors.base import BaseSelector


class FranchiseSelector(BaseSelector[Franchise]):
    def get(self, franchise_id: UUID) -> FranchiseInfo:
        row = self.session.get(Franchise, franchise_id)
        if row is None:
            raise FranchiseNotFoundError(franchise_id)
        return FranchiseInfo.from_model(row)

    def get_by_slug(self, slug: str) -> FranchiseInfo:
        row = self.session.execute(
            select(Franchise).where(Franchise.slug == slug)
        ).scalar_one_or_none()
        if row is None:
            raise FranchiseNotFoundError(slug)
        return FranchiseInfo.from_model(row)

    def list_all(self) -> list[FranchiseInfo]:
        rows = self.session.scalars(
            select(Franchise).order_by(Franchise.display_name, Franchise.id)
        )
        return [FranchiseInfo.from_model(row) for row in rows]


class RoleChangeSelector(BaseSelector[RoleChange]):
    def history(self, target_principal_id: UUID) -> list[RoleChangeInfo]:
        """Every role change of one principal, oldest first."""
        rows = self.session.scalars(
            select(RoleChange)
            .where(RoleChange.target_principal_id == target_principal_id)
            .order_by(RoleChange.occurred_at, RoleChange.id)
        )
        return [RoleChangeInfo.from_model(row) for row in rows]
