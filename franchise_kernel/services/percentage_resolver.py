"""
PercentageResolver -- the three-tier admin percentage cascade.

Resolution order for (franchise, month):
    1. the franchise's own stored override,
    2. the global stored override,
    3. DEFAULT_ADMIN_PERCENTAGE (20).

Overrides are not versioned by month: the latest stored value applies to
whichever month is being resolved, so recalculating a past month after an
override edit applies the new percentage to it.

Resolution is a pure read.  Stored overrides may be served from a TTL
cache shared with OverrideService, which invalidates it synchronously on
every write.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from franchise_kernel.db.types import normalize_amount
from franchise_kernel.domain.month import MonthKey
from franchise_kernel.domain.profit_share import (
    GLOBAL_SCOPE_KEY,
    ResolvedPercentage,
    override_scope_key,
    resolve_cascade,
)
from franchise_kernel.models.profit_sharing import ProfitSharingOverride
from franchise_kernel.utils.ttl_cache import TTLCache


def override_cache_key(scope_key: str) -> tuple[str, str]:
    return ("override", scope_key)


class PercentageResolver:
    def __init__(self, session: Session, cache: TTLCache | None = None):
        self.session = session
        self._cache = cache

    def resolve(self, franchise_id: UUID, month_key: MonthKey | str) -> ResolvedPercentage:
        # Validated for the caller; the cascade itself is month-independent
        MonthKey.parse(month_key)
        franchise_percentage = self._stored(override_scope_key(franchise_id))
        global_percentage = None
        if franchise_percentage is None:
            global_percentage = self._stored(GLOBAL_SCOPE_KEY)
        return resolve_cascade(franchise_percentage, global_percentage)

    def _stored(self, scope_key: str) -> Decimal | None:
        if self._cache is None:
            return self._load(scope_key)
        # Wrapped in a tuple so "no override" is cached too
        (value,) = self._cache.get_or_load(
            override_cache_key(scope_key), lambda: (self._load(scope_key),)
        )
        return value

    def _load(self, scope_key: str) -> Decimal | None:
        stored = self.session.execute(
            select(ProfitSharingOverride.admin_percentage).where(
                ProfitSharingOverride.scope_key == scope_key
            )
        ).scalar_one_or_none()
        return None if stored is None else normalize_amount(stored)
