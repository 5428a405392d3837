"""
ProfitShareCalculator -- idempotent per-(franchise, month) recalculation.

Responsibility:
    Aggregates a month's gross revenue, resolves the admin percentage and
    upserts the ProfitShareRecord for the key.

Architecture position:
    Kernel > Services -- flush-only.  ``franchise_services.recalculation``
    fans this out over many keys, one session per key.

Invariants enforced:
    - totalRevenue = admin income + worker income; expenses are not
      subtracted.
    - shareAmount = round_whole(totalRevenue * adminPercentage / 100).
    - The write is a single ``INSERT ... ON CONFLICT (franchise_id,
      month_key) DO UPDATE``.  Concurrent recalculations of the same key are
      linearized by the unique constraint: one row, holding one complete
      snapshot.  payment_status is never in the update set, so an existing
      record keeps it; a new record starts ``unpaid``.
    - Repeating the call without ledger or override changes yields an equal
      ProfitShareInfo.

Failure modes:
    - FranchiseNotFoundError for an unknown franchise.
    - InvalidMonthKeyError for a malformed month.
    - SQLAlchemy errors propagate; the caller's unit of work rolls back.
"""

from uuid import UUID, uuid4
from zoneinfo import ZoneInfo

from sqlalchemy import select

from franchise_kernel.db.change_capture import note_change
from franchise_kernel.db.upsert import dialect_insert
from franchise_kernel.domain.changes import ChangeKind, WatchedTable
from franchise_kernel.domain.clock import Clock
from franchise_kernel.domain.dtos import ProfitShareInfo
from franchise_kernel.domain.month import MonthKey
from franchise_kernel.domain.profit_share import PaymentStatus, compute_share_amount
from franchise_kernel.domain.roles import SYSTEM_PRINCIPAL_ID
from franchise_kernel.exceptions import FranchiseNotFoundError
from franchise_kernel.logging_config import get_logger
from franchise_kernel.models.franchise import Franchise
from franchise_kernel.models.profit_sharing import ProfitShareRecord
from franchise_kernel.selectors.revenue_selector import RevenueAggregator
from franchise_kernel.services.base import BaseService
from franchise_kernel.services.percentage_resolver import PercentageResolver
from franchise_kernel.utils.ttl_cache import TTLCache

logger = get_logger("services.profit_share_calculator")


class ProfitShareCalculator(BaseService[ProfitShareRecord]):
    def __init__(
        self,
        session,
        clock: Clock | None = None,
        tz: ZoneInfo | None = None,
        override_cache: TTLCache | None = None,
    ):
        super().__init__(session, clock)
        self._aggregator = RevenueAggregator(session, tz)
        self._resolver = PercentageResolver(session, override_cache)

    def recalculate(
        self,
        franchise_id: UUID,
        month_key: MonthKey | str,
        actor_id: UUID = SYSTEM_PRINCIPAL_ID,
    ) -> ProfitShareInfo:
        month = MonthKey.parse(month_key)
        if self.session.get(Franchise, franchise_id) is None:
            raise FranchiseNotFoundError(franchise_id)

        totals = self._aggregator.aggregate(franchise_id, month)
        resolved = self._resolver.resolve(franchise_id, month)
        revenue = totals.gross_revenue
        share_amount = compute_share_amount(revenue, resolved.admin_percentage)

        existed = self._load(franchise_id, month) is not None
        now = self.clock.now_utc()

        stmt = dialect_insert(self.session, ProfitShareRecord).values(
            id=uuid4(),
            franchise_id=franchise_id,
            month_key=str(month),
            total_revenue=revenue,
            admin_percentage=resolved.admin_percentage,
            share_amount=share_amount,
            payment_status=PaymentStatus.UNPAID.value,
            created_by_id=actor_id,
            created_at=now,
            updated_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["franchise_id", "month_key"],
            set_={
                "total_revenue": stmt.excluded.total_revenue,
                "admin_percentage": stmt.excluded.admin_percentage,
                "share_amount": stmt.excluded.share_amount,
                "updated_at": stmt.excluded.updated_at,
                "updated_by_id": actor_id,
            },
        )
        self.session.execute(stmt)

        record = ProfitShareInfo.from_model(self._load(franchise_id, month))
        note_change(
            self.session,
            WatchedTable.PROFIT_SHARE_RECORDS,
            ChangeKind.UPDATE if existed else ChangeKind.INSERT,
            record.id,
            franchise_id,
        )

        logger.info(
            "profit_share_recalculated",
            extra={
                "franchise_id": str(franchise_id),
                "month_key": str(month),
                "total_revenue": str(record.total_revenue),
                "admin_percentage": str(record.admin_percentage),
                "percentage_source": resolved.source.value,
                "share_amount": str(record.share_amount),
                "payment_status": record.payment_status.value,
                "inserted": not existed,
            },
        )
        return record

    def _load(self, franchise_id: UUID, month: MonthKey) -> ProfitShareRecord | None:
        return self.session.execute(
            select(ProfitShareRecord)
            .where(
                ProfitShareRecord.franchise_id == franchise_id,
                ProfitShareRecord.month_key == str(month),
            )
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
