"""
LedgerService -- scoped writes to the worker roster and the ledger streams.

Responsibility:
    Validated inserts and explicit edits of admin income, worker income,
    expenses and workers.

Architecture position:
    Kernel > Services -- flush-only.  Change events for ledger rows are
    captured from the flush by ``franchise_kernel.db.change_capture``.

Invariants enforced:
    - The franchise stamped on a row comes from the caller's scope.  Only a
      super_admin names the franchise, and must do so explicitly.
    - The stream access matrix applies to writes exactly as to reads.
    - Amounts are non-negative finite decimals; timestamps are stored in UTC.
    - Worker income may only reference a worker of the same franchise.
    - Edits are restricted to the record's variant fields; franchise_id and
      created_by_id are never editable.

Failure modes:
    - ForbiddenError: the scope may not write the stream.
    - InvalidAmountError / InvalidArgumentError: rejected input.
    - LedgerRecordNotFoundError: record absent or outside the scope.
    - WorkerNotFoundError: worker absent or in another franchise.
"""

from datetime import datetime
from decimal import Decimal, InvalidOperation
from uuid import UUID

from sqlalchemy import select

from franchise_kernel.db.types import as_utc, to_decimal
from franchise_kernel.domain.dtos import (
    AdminIncomeRecord,
    ExpenseRecord,
    LedgerRecord,
    WorkerIncomeRecord,
    WorkerInfo,
)
from franchise_kernel.domain.roles import AccessScope, LedgerStream, parse_stream
from franchise_kernel.exceptions import (
    FranchiseNotFoundError,
    InvalidAmountError,
    InvalidArgumentError,
    LedgerRecordNotFoundError,
    WorkerNotFoundError,
)
from franchise_kernel.logging_config import get_logger
from franchise_kernel.models.franchise import Franchise
from franchise_kernel.models.ledger import AdminIncome, Expense, Worker, WorkerIncome
from franchise_kernel.services.base import BaseService

logger = get_logger("services.ledger_service")

_LEDGER_MODELS = {
    LedgerStream.ADMIN_INCOME: (AdminIncome, AdminIncomeRecord),
    LedgerStream.WORKER_INCOME: (WorkerIncome, WorkerIncomeRecord),
    LedgerStream.EXPENSES: (Expense, ExpenseRecord),
}

_EDITABLE_FIELDS = {
    LedgerStream.ADMIN_INCOME: frozenset({"amount", "occurred_at", "code"}),
    LedgerStream.WORKER_INCOME: frozenset(
        {"amount", "occurred_at", "code", "job_description", "worker_id"}
    ),
    LedgerStream.EXPENSES: frozenset({"amount", "occurred_at", "note"}),
}

_WORKER_FIELDS = frozenset({"name", "phone", "bank_account", "position", "status"})


def validate_amount(amount: object) -> Decimal:
    """
    Coerce a ledger amount.

    Raises:
        InvalidAmountError: if not a finite, non-negative number.
    """
    try:
        value = to_decimal(amount)
    except (InvalidOperation, TypeError):
        raise InvalidAmountError(amount) from None
    if not value.is_finite() or value < 0:
        raise InvalidAmountError(amount)
    return value


def validate_occurred_at(occurred_at: object) -> datetime:
    if not isinstance(occurred_at, datetime):
        raise InvalidArgumentError(
            f"occurred_at must be a datetime, got {type(occurred_at).__name__}"
        )
    return as_utc(occurred_at)


class LedgerService(BaseService[AdminIncome]):
    """Writes for the three ledger streams and the worker roster."""

    def record_admin_income(
        self,
        scope: AccessScope,
        amount: object,
        occurred_at: datetime,
        code: str | None = None,
        franchise_id: UUID | None = None,
    ) -> AdminIncomeRecord:
        target = self._stamp(scope, LedgerStream.ADMIN_INCOME, franchise_id)
        row = AdminIncome(
            franchise_id=target,
            amount=validate_amount(amount),
            occurred_at=validate_occurred_at(occurred_at),
            code=code,
            created_by_id=scope.principal_id,
        )
        return self._insert(row, AdminIncomeRecord, LedgerStream.ADMIN_INCOME)

    def record_worker_income(
        self,
        scope: AccessScope,
        amount: object,
        occurred_at: datetime,
        worker_id: UUID | None = None,
        code: str | None = None,
        job_description: str | None = None,
        franchise_id: UUID | None = None,
    ) -> WorkerIncomeRecord:
        target = self._stamp(scope, LedgerStream.WORKER_INCOME, franchise_id)
        if worker_id is not None:
            self._require_worker(worker_id, target)
        row = WorkerIncome(
            franchise_id=target,
            amount=validate_amount(amount),
            occurred_at=validate_occurred_at(occurred_at),
            worker_id=worker_id,
            code=code,
            job_description=job_description,
            created_by_id=scope.principal_id,
        )
        return self._insert(row, WorkerIncomeRecord, LedgerStream.WORKER_INCOME)

    def record_expense(
        self,
        scope: AccessScope,
        amount: object,
        occurred_at: datetime,
        note: str | None = None,
        franchise_id: UUID | None = None,
    ) -> ExpenseRecord:
        target = self._stamp(scope, LedgerStream.EXPENSES, franchise_id)
        row = Expense(
            franchise_id=target,
            amount=validate_amount(amount),
            occurred_at=validate_occurred_at(occurred_at),
            note=note,
            created_by_id=scope.principal_id,
        )
        return self._insert(row, ExpenseRecord, LedgerStream.EXPENSES)

    def edit_record(
        self,
        scope: AccessScope,
        stream: LedgerStream | str,
        record_id: UUID,
        **changes,
    ) -> LedgerRecord:
        """Apply ``changes`` to one ledger record visible in the scope."""
        stream = parse_stream(stream)
        if stream not in _LEDGER_MODELS:
            raise InvalidArgumentError(f"{stream.value} is not a ledger stream")
        scope.require_stream(stream, "edit")
        unknown = set(changes) - _EDITABLE_FIELDS[stream]
        if unknown:
            raise InvalidArgumentError(
                f"Fields not editable on {stream.value}: {sorted(unknown)}"
            )

        model, dto = _LEDGER_MODELS[stream]
        row = self.session.get(model, record_id)
        if row is None or not self._visible(scope, row.franchise_id):
            raise LedgerRecordNotFoundError(stream.value, record_id)

        if "amount" in changes:
            changes["amount"] = validate_amount(changes["amount"])
        if "occurred_at" in changes:
            changes["occurred_at"] = validate_occurred_at(changes["occurred_at"])
        if changes.get("worker_id") is not None:
            self._require_worker(changes["worker_id"], row.franchise_id)

        for field, value in changes.items():
            setattr(row, field, value)
        row.updated_by_id = scope.principal_id
        self.session.flush()

        logger.info(
            "ledger_record_edited",
            extra={
                "stream": stream.value,
                "record_id": str(record_id),
                "franchise_id": str(row.franchise_id),
                "fields": sorted(changes),
            },
        )
        return dto.from_model(row)

    # -- workers ------------------------------------------------------------

    def add_worker(
        self,
        scope: AccessScope,
        name: str,
        phone: str | None = None,
        bank_account: str | None = None,
        position: str | None = None,
        status: str | None = None,
        franchise_id: UUID | None = None,
    ) -> WorkerInfo:
        target = self._stamp(scope, LedgerStream.WORKERS, franchise_id)
        name = (name or "").strip()
        if not name:
            raise InvalidArgumentError("Worker name must not be empty")
        worker = Worker(
            franchise_id=target,
            name=name,
            phone=phone,
            bank_account=bank_account,
            position=position,
            status=status,
            created_by_id=scope.principal_id,
        )
        self.session.add(worker)
        self.session.flush()
        logger.info(
            "worker_added",
            extra={"worker_id": str(worker.id), "franchise_id": str(target)},
        )
        return WorkerInfo.from_model(worker)

    def update_worker(self, scope: AccessScope, worker_id: UUID, **changes) -> WorkerInfo:
        scope.require_stream(LedgerStream.WORKERS, "edit")
        unknown = set(changes) - _WORKER_FIELDS
        if unknown:
            raise InvalidArgumentError(f"Fields not editable on workers: {sorted(unknown)}")
        worker = self.session.get(Worker, worker_id)
        if worker is None or not self._visible(scope, worker.franchise_id):
            raise WorkerNotFoundError(worker_id)
        if "name" in changes and not (changes["name"] or "").strip():
            raise InvalidArgumentError("Worker name must not be empty")
        for field, value in changes.items():
            setattr(worker, field, value)
        worker.updated_by_id = scope.principal_id
        self.session.flush()
        return WorkerInfo.from_model(worker)

    # -- helpers ------------------------------------------------------------

    def _stamp(
        self,
        scope: AccessScope,
        stream: LedgerStream,
        requested_franchise_id: UUID | None,
    ) -> UUID:
        scope.require_stream(stream, "write")
        target = scope.write_franchise(requested_franchise_id)
        if scope.is_super_admin and self.session.get(Franchise, target) is None:
            raise FranchiseNotFoundError(target)
        if (
            requested_franchise_id is not None
            and requested_franchise_id != target
        ):
            logger.warning(
                "franchise_parameter_ignored",
                extra={
                    "stream": stream.value,
                    "requested_franchise_id": str(requested_franchise_id),
                    "stamped_franchise_id": str(target),
                },
            )
        return target

    @staticmethod
    def _visible(scope: AccessScope, franchise_id: UUID) -> bool:
        return scope.is_super_admin or scope.franchise_id == franchise_id

    def _require_worker(self, worker_id: UUID, franchise_id: UUID) -> None:
        worker = self.session.execute(
            select(Worker.id).where(
                Worker.id == worker_id, Worker.franchise_id == franchise_id
            )
        ).first()
        if worker is None:
            raise WorkerNotFoundError(worker_id, franchise_id)

    def _insert(self, row, dto, stream: LedgerStream):
        self.session.add(row)
        self.session.flush()
        logger.info(
            "ledger_record_created",
            extra={
                "stream": stream.value,
                "record_id": str(row.id),
                "franchise_id": str(row.franchise_id),
                "amount": str(row.amount),
            },
        )
        return dto.from_model(row)
