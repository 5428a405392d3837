"""
PaymentStatusTracker -- administrator edits of persisted profit-share records.

Responsibility:
    Moves a record between ``unpaid`` and ``paid``, edits its applied
    percentage, and deletes single records.  All three are super_admin
    actions and require the record to exist.

Architecture position:
    Kernel > Services -- flush-only.  ORM updates and deletes here are
    captured as change events from the flush.

Invariants enforced:
    - Editing the percentage recomputes shareAmount from the record's
      existing totalRevenue.  Revenue is never re-aggregated here.
    - Recalculation never touches payment_status, so a status set here
      survives every later recalculation of the key.
"""

from uuid import UUID

from sqlalchemy import select

from franchise_kernel.db.types import normalize_amount
from franchise_kernel.domain.dtos import ProfitShareInfo
from franchise_kernel.domain.month import MonthKey
from franchise_kernel.domain.profit_share import (
    PaymentStatus,
    compute_share_amount,
    parse_payment_status,
    validate_percentage,
)
from franchise_kernel.domain.roles import AccessScope
from franchise_kernel.exceptions import ProfitShareNotFoundError
from franchise_kernel.logging_config import get_logger
from franchise_kernel.models.profit_sharing import ProfitShareRecord
from franchise_kernel.services.base import BaseService

logger = get_logger("services.payment_status_tracker")


class PaymentStatusTracker(BaseService[ProfitShareRecord]):
    def set_payment_status(
        self,
        scope: AccessScope,
        franchise_id: UUID,
        month_key: MonthKey | str,
        new_status: PaymentStatus | str,
    ) -> ProfitShareInfo:
        scope.require_super_admin("change payment status")
        status = parse_payment_status(new_status)
        record = self._require(franchise_id, month_key)

        previous = record.payment_status
        record.payment_status = status.value
        record.updated_by_id = scope.principal_id
        record.updated_at = self.clock.now_utc()
        self.session.flush()

        logger.info(
            "payment_status_changed",
            extra={
                "franchise_id": str(franchise_id),
                "month_key": record.month_key,
                "previous_status": previous,
                "new_status": status.value,
            },
        )
        return ProfitShareInfo.from_model(record)

    def edit_percentage(
        self,
        scope: AccessScope,
        franchise_id: UUID,
        month_key: MonthKey | str,
        new_percentage: object,
    ) -> ProfitShareInfo:
        scope.require_super_admin("edit applied percentage")
        percentage = validate_percentage(new_percentage)
        record = self._require(franchise_id, month_key)

        total_revenue = normalize_amount(record.total_revenue)
        record.admin_percentage = percentage
        record.share_amount = compute_share_amount(total_revenue, percentage)
        record.updated_by_id = scope.principal_id
        record.updated_at = self.clock.now_utc()
        self.session.flush()

        logger.info(
            "applied_percentage_edited",
            extra={
                "franchise_id": str(franchise_id),
                "month_key": record.month_key,
                "admin_percentage": str(percentage),
                "share_amount": str(record.share_amount),
            },
        )
        return ProfitShareInfo.from_model(record)

    def delete_record(
        self,
        scope: AccessScope,
        franchise_id: UUID,
        month_key: MonthKey | str,
    ) -> ProfitShareInfo:
        """Remove one record; returns its last state."""
        scope.require_super_admin("delete profit sharing records")
        record = self._require(franchise_id, month_key)
        snapshot = ProfitShareInfo.from_model(record)
        self.session.delete(record)
        self.session.flush()

        logger.info(
            "profit_share_deleted",
            extra={
                "franchise_id": str(franchise_id),
                "month_key": str(snapshot.month_key),
                "payment_status": snapshot.payment_status.value,
            },
        )
        return snapshot

    def _require(self, franchise_id: UUID, month_key: MonthKey | str) -> ProfitShareRecord:
        month = MonthKey.parse(month_key)
        stmt = (
            select(ProfitShareRecord)
            .where(
                ProfitShareRecord.franchise_id == franchise_id,
                ProfitShareRecord.month_key == str(month),
            )
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        record = self.session.execute(stmt).scalar_one_or_none()
        if record is None:
            raise ProfitShareNotFoundError(franchise_id, str(month))
        return record
