"""
FranchiseDeletionService -- transactional cascade deletion of a franchise.

Responsibility:
    Removes a franchise and everything that references it, in dependency
    order, inside the caller's single transaction.

Architecture position:
    Kernel > Services -- flush-only.  The facade commits the whole cascade
    or rolls all of it back.

Cascade order:
    worker_income -> workers -> admin_income -> expenses ->
    profit_share_records -> profit_sharing_overrides -> role_bindings ->
    franchises

Invariants enforced:
    - The caller must echo the franchise display name; a mismatch deletes
      nothing.
    - A failing step raises CascadeDeletionError naming the step and the
      steps that ran before it.  Because nothing has been committed, the
      rollback leaves the franchise and all its records in place.
    - role_changes is never touched; the log outlives the franchise.
    - Deleted rows of watched tables are reported to change capture.
"""

from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError

from franchise_kernel.db.change_capture import note_change
from franchise_kernel.domain.changes import WATCHED_TABLE_NAMES, ChangeKind, WatchedTable
from franchise_kernel.domain.dtos import DeletionReport, DeletionStep
from franchise_kernel.domain.roles import AccessScope
from franchise_kernel.exceptions import (
    CascadeDeletionError,
    DeletionConfirmationError,
    FranchiseNotFoundError,
)
from franchise_kernel.logging_config import get_logger
from franchise_kernel.models.access import RoleBinding
from franchise_kernel.models.franchise import Franchise
from franchise_kernel.models.ledger import AdminIncome, Expense, Worker, WorkerIncome
from franchise_kernel.models.profit_sharing import ProfitShareRecord, ProfitSharingOverride
from franchise_kernel.services.base import BaseService

logger = get_logger("services.franchise_deletion")

CASCADE_STEPS = (
    ("worker_income", WorkerIncome),
    ("workers", Worker),
    ("admin_income", AdminIncome),
    ("expenses", Expense),
    ("profit_share_records", ProfitShareRecord),
    ("profit_sharing_overrides", ProfitSharingOverride),
    ("role_bindings", RoleBinding),
)


class FranchiseDeletionService(BaseService[Franchise]):
    def delete_franchise(
        self,
        scope: AccessScope,
        franchise_id: UUID,
        confirmation_name: str,
    ) -> DeletionReport:
        scope.require_super_admin("delete franchises")
        franchise = self.session.get(Franchise, franchise_id)
        if franchise is None:
            raise FranchiseNotFoundError(franchise_id)
        display_name = franchise.display_name
        if (confirmation_name or "").strip() != display_name:
            raise DeletionConfirmationError(franchise_id, display_name)

        # Core deletes below bypass the identity map
        self.session.expunge(franchise)

        logger.warning(
            "franchise_cascade_started",
            extra={"franchise_id": str(franchise_id), "display_name": display_name},
        )

        steps: list[DeletionStep] = []
        for name, model in (*CASCADE_STEPS, ("franchises", Franchise)):
            try:
                rows = self._delete_step(name, model, franchise_id)
            except SQLAlchemyError as exc:
                completed = tuple(step.name for step in steps)
                logger.error(
                    "franchise_cascade_failed",
                    extra={
                        "franchise_id": str(franchise_id),
                        "failed_step": name,
                        "completed_steps": list(completed),
                    },
                )
                raise CascadeDeletionError(
                    franchise_id, name, completed, str(exc)
                ) from exc
            steps.append(DeletionStep(name=name, rows=rows))
            logger.info(
                "franchise_cascade_step",
                extra={"franchise_id": str(franchise_id), "step": name, "rows": rows},
            )

        report = DeletionReport(
            franchise_id=franchise_id,
            display_name=display_name,
            steps=tuple(steps),
        )
        logger.warning(
            "franchise_deleted",
            extra={"franchise_id": str(franchise_id), "total_rows": report.total_rows},
        )
        return report

    def _delete_step(self, name: str, model, franchise_id: UUID) -> int:
        column = model.id if model is Franchise else model.franchise_id
        if name in WATCHED_TABLE_NAMES:
            ids = self.session.scalars(select(model.id).where(column == franchise_id)).all()
            for record_id in ids:
                note_change(
                    self.session,
                    WatchedTable(name),
                    ChangeKind.DELETE,
                    record_id,
                    franchise_id,
                )
        result = self.session.execute(
            delete(model)
            .where(column == franchise_id)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount
