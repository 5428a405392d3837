"""
franchise_services.recalculation -- parallel batch recalculation.

Responsibility:
    Re-runs ``ProfitShareCalculator.recalculate`` for every
    (franchise, month) key that already has a persisted record, optionally
    narrowed to one franchise and/or one month.  Used after override edits
    and by the operator CLI.

Architecture position:
    Services -- owns one unit of work per key.  Each key runs in its own
    session on a worker thread, so one key's failure rolls back that key
    only.

Invariants enforced:
    - Only persisted keys are recalculated; no month is invented.
    - Keys are distinct, so no two workers ever recalculate the same key
      inside one batch.  Across concurrent batches the per-key upsert
      serializes writers.
    - Failures are collected per key with their error code and reported in
      the result; they never abort the other keys and are never dropped.
    - There is no cross-key transaction.  A batch observed mid-flight has
      some months updated and others not; re-running it is always safe.

Failure modes:
    - A FranchiseKernelError or SQLAlchemyError for one key becomes a
      RecalculationFailure.  Anything else is a programming error and
      propagates.
"""

from __future__ import annotations

import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from enum import Enum
from uuid import UUID
from zoneinfo import ZoneInfo

from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from franchise_kernel.db.engine import session_scope
from franchise_kernel.domain.clock import Clock, SystemClock
from franchise_kernel.domain.dtos import ProfitShareInfo
from franchise_kernel.domain.month import MonthKey
from franchise_kernel.domain.roles import SYSTEM_PRINCIPAL_ID
from franchise_kernel.exceptions import FranchiseKernelError, StorageUnavailableError
from franchise_kernel.logging_config import get_logger
from franchise_kernel.selectors.profit_share_selector import ProfitShareSelector
from franchise_kernel.services.profit_share_calculator import ProfitShareCalculator
from franchise_kernel.utils.ttl_cache import TTLCache

logger = get_logger("services.recalculation")


class BatchStatus(str, Enum):
    """Outcome of a batch as a whole."""

    COMPLETE = "complete"  # every key recalculated
    PARTIAL = "partial"  # some keys failed, the rest are persisted
    FAILED = "failed"  # every key failed, nothing changed
    EMPTY = "empty"  # no persisted keys matched


@dataclass(frozen=True)
class RecalculationFailure:
    franchise_id: UUID
    month_key: MonthKey
    error_code: str
    message: str


@dataclass(frozen=True)
class BatchRecalculationResult:
    """
    What a batch did, key by key.

    ``records`` hold the recalculated values of the keys that succeeded,
    ``failures`` the keys that did not.  Together they cover every key the
    batch found.
    """

    franchise_id: UUID | None
    month_key: MonthKey | None
    records: tuple[ProfitShareInfo, ...]
    failures: tuple[RecalculationFailure, ...]
    duration_ms: int = 0

    @property
    def attempted(self) -> int:
        return len(self.records) + len(self.failures)

    @property
    def succeeded(self) -> int:
        return len(self.records)

    @property
    def status(self) -> BatchStatus:
        if self.attempted == 0:
            return BatchStatus.EMPTY
        if not self.failures:
            return BatchStatus.COMPLETE
        if not self.records:
            return BatchStatus.FAILED
        return BatchStatus.PARTIAL


class ProfitShareBatchCalculator:
    def __init__(
        self,
        session_factory: sessionmaker[Session],
        clock: Clock | None = None,
        tz: ZoneInfo | None = None,
        max_workers: int = 4,
        override_cache: TTLCache | None = None,
    ):
        if max_workers < 1:
            raise ValueError("max_workers must be >= 1")
        self._factory = session_factory
        self._clock = clock or SystemClock()
        self._tz = tz
        self._max_workers = max_workers
        self._override_cache = override_cache

    def recalculate_batch(
        self,
        franchise_id: UUID | None = None,
        month_key: MonthKey | str | None = None,
        actor_id: UUID = SYSTEM_PRINCIPAL_ID,
    ) -> BatchRecalculationResult:
        month = MonthKey.parse(month_key) if month_key is not None else None
        started = time.monotonic()

        with session_scope(self._factory) as session:
            keys = ProfitShareSelector(session, self._tz).persisted_keys(franchise_id, month)

        logger.info(
            "batch_recalculation_started",
            extra={
                "franchise_id": str(franchise_id) if franchise_id else None,
                "month_key": str(month) if month else None,
                "keys": len(keys),
                "max_workers": self._max_workers,
            },
        )

        records: list[ProfitShareInfo] = []
        failures: list[RecalculationFailure] = []
        if keys:
            workers = min(self._max_workers, len(keys))
            with ThreadPoolExecutor(
                max_workers=workers, thread_name_prefix="profit-share-recalc"
            ) as pool:
                outcomes = list(
                    pool.map(lambda key: self._recalculate_one(*key, actor_id), keys)
                )
            for outcome in outcomes:
                if isinstance(outcome, RecalculationFailure):
                    failures.append(outcome)
                else:
                    records.append(outcome)

        result = BatchRecalculationResult(
            franchise_id=franchise_id,
            month_key=month,
            records=tuple(records),
            failures=tuple(failures),
            duration_ms=int((time.monotonic() - started) * 1000),
        )
        log = logger.warning if failures else logger.info
        log(
            "batch_recalculation_completed",
            extra={
                "status": result.status.value,
                "attempted": result.attempted,
                "succeeded": result.succeeded,
                "failed": len(failures),
                "duration_ms": result.duration_ms,
            },
        )
        return result

    def _recalculate_one(
        self,
        franchise_id: UUID,
        month: MonthKey,
        actor_id: UUID,
    ) -> ProfitShareInfo | RecalculationFailure:
        try:
            with session_scope(self._factory) as session:
                calculator = ProfitShareCalculator(
                    session,
                    self._clock,
                    tz=self._tz,
                    override_cache=self._override_cache,
                )
                return calculator.recalculate(franchise_id, month, actor_id=actor_id)
        except OperationalError as exc:
            error = StorageUnavailableError("recalculate", str(exc.orig))
            return self._failure(franchise_id, month, error.code, str(error))
        except SQLAlchemyError as exc:
            return self._failure(franchise_id, month, "STORAGE_ERROR", str(exc))
        except FranchiseKernelError as exc:
            return self._failure(franchise_id, month, exc.code, str(exc))

    @staticmethod
    def _failure(franchise_id, month, code, message) -> RecalculationFailure:
        logger.error(
            "recalculation_key_failed",
            extra={
                "franchise_id": str(franchise_id),
                "month_key": str(month),
                "error_code": code,
            },
        )
        return RecalculationFailure(
            franchise_id=franchise_id,
            month_key=month,
            error_code=code,
            message=message,
        )
