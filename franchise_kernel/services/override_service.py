"""
OverrideService -- global and per-franchise percentage overrides.

Responsibility:
    Upserts and removes ProfitSharingOverride rows.  Only super_admin may
    do either.  The franchise side of a split is always written as
    ``100 - admin_percentage``; callers that pass both sides get them
    checked for balance.

Architecture position:
    Kernel > Services -- flush-only.  The facade runs the batch
    recalculation after the write commits.

Invariants enforced:
    - One row per scope key, written by a single upsert.
    - The shared override cache is invalidated in the same call as the
      write, before it returns.
"""

from uuid import UUID, uuid4

from sqlalchemy import delete, select

from franchise_kernel.db.types import normalize_amount, round_percentage
from franchise_kernel.db.upsert import dialect_insert
from franchise_kernel.domain.clock import Clock
from franchise_kernel.domain.dtos import OverrideInfo
from franchise_kernel.domain.profit_share import (
    franchise_percentage_for,
    override_scope_key,
    validate_percentage,
    validate_split,
)
from franchise_kernel.domain.roles import AccessScope
from franchise_kernel.exceptions import FranchiseNotFoundError, OverrideNotFoundError
from franchise_kernel.logging_config import get_logger
from franchise_kernel.models.franchise import Franchise
from franchise_kernel.models.profit_sharing import ProfitSharingOverride
from franchise_kernel.services.base import BaseService
from franchise_kernel.services.percentage_resolver import override_cache_key
from franchise_kernel.utils.ttl_cache import TTLCache

logger = get_logger("services.override_service")


class OverrideService(BaseService[ProfitSharingOverride]):
    def __init__(
        self,
        session,
        clock: Clock | None = None,
        cache: TTLCache | None = None,
    ):
        super().__init__(session, clock)
        self._cache = cache

    def set_override(
        self,
        scope: AccessScope,
        admin_percentage: object,
        franchise_percentage: object | None = None,
        franchise_id: UUID | None = None,
    ) -> OverrideInfo:
        """Store the split for one franchise, or the global split if None."""
        scope.require_super_admin("edit profit sharing settings")
        if franchise_percentage is None:
            admin = validate_percentage(admin_percentage)
        else:
            admin = validate_split(admin_percentage, franchise_percentage)
        if franchise_id is not None and self.session.get(Franchise, franchise_id) is None:
            raise FranchiseNotFoundError(franchise_id)

        scope_key = override_scope_key(franchise_id)
        franchise_side = round_percentage(franchise_percentage_for(admin))
        now = self.clock.now_utc()

        stmt = dialect_insert(self.session, ProfitSharingOverride).values(
            id=uuid4(),
            scope_key=scope_key,
            franchise_id=franchise_id,
            admin_percentage=admin,
            franchise_percentage=franchise_side,
            created_by_id=scope.principal_id,
            created_at=now,
            updated_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["scope_key"],
            set_={
                "admin_percentage": stmt.excluded.admin_percentage,
                "franchise_percentage": stmt.excluded.franchise_percentage,
                "updated_at": stmt.excluded.updated_at,
                "updated_by_id": scope.principal_id,
            },
        )
        self.session.execute(stmt)
        self._invalidate(scope_key)

        logger.info(
            "profit_sharing_override_set",
            extra={
                "scope_key": scope_key,
                "admin_percentage": str(admin),
                "franchise_percentage": str(franchise_side),
            },
        )
        return OverrideInfo(
            scope_key=scope_key,
            franchise_id=franchise_id,
            admin_percentage=normalize_amount(admin),
        )

    def remove_override(
        self,
        scope: AccessScope,
        franchise_id: UUID | None = None,
    ) -> OverrideInfo:
        """Delete a stored override; resolution falls through to the next tier."""
        scope.require_super_admin("edit profit sharing settings")
        scope_key = override_scope_key(franchise_id)
        existing = self.session.execute(
            select(ProfitSharingOverride.admin_percentage).where(
                ProfitSharingOverride.scope_key == scope_key
            )
        ).scalar_one_or_none()
        if existing is None:
            raise OverrideNotFoundError(scope_key)

        self.session.execute(
            delete(ProfitSharingOverride)
            .where(ProfitSharingOverride.scope_key == scope_key)
            .execution_options(synchronize_session=False)
        )
        self._invalidate(scope_key)

        logger.info("profit_sharing_override_removed", extra={"scope_key": scope_key})
        return OverrideInfo(
            scope_key=scope_key,
            franchise_id=franchise_id,
            admin_percentage=normalize_amount(existing),
        )

    def _invalidate(self, scope_key: str) -> None:
        if self._cache is not None:
            self._cache.invalidate(override_cache_key(scope_key))
