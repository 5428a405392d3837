"""
franchise_services.tracker -- the FranchiseTracker facade.

Responsibility:
    The single entry point for callers (UI layer, CLI).  Every public
    method takes the caller's bearer token, resolves an AccessScope for it,
    and runs the kernel services and selectors inside one unit of work.

Architecture position:
    Services -- owns transaction boundaries, caches and the change bus.
    Kernel services flush; this layer commits or rolls back.

Invariants enforced:
    - The scope is resolved per call from the token and passed explicitly;
      nothing reads an ambient "current role".
    - Resolved scopes are reused for at most ``scope_ttl_seconds``.
      ``assign_role`` evicts the target's entry before it returns, and a
      cascade deletion clears every entry.
    - Franchise and override lookups are cached for at most
      ``cache_ttl_seconds``; every write that changes them invalidates the
      cache before returning.
    - Change events reach subscribers only after their transaction commits.
    - Reads retry UnavailableError with linear backoff.  Writes never retry.

Failure modes:
    - UnauthenticatedError from the identity provider.
    - StorageUnavailableError when the database raises OperationalError.
    - Every kernel error propagates unchanged.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import Generator, TypeVar
from uuid import UUID
from zoneinfo import ZoneInfo

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session, sessionmaker

from franchise_config import TrackerSettings
from franchise_kernel.db.change_capture import ChangeCapture
from franchise_kernel.db.engine import (
    get_session_factory,
    init_engine_from_url,
    session_scope,
)
from franchise_kernel.db.immutability import register_immutability_listeners
from franchise_kernel.domain.changes import ChangeEvent, WatchedTable
from franchise_kernel.domain.clock import Clock, SystemClock
from franchise_kernel.domain.dtos import (
    AdminIncomeRecord,
    DeletionReport,
    ExpenseRecord,
    FranchiseInfo,
    LedgerRecord,
    MonthlySummary,
    OverrideInfo,
    ProfitShareInfo,
    ProfitShareOverview,
    PublicWorkerIncome,
    RevenueTotals,
    RoleChangeInfo,
    WorkerIncomeRecord,
    WorkerInfo,
)
from franchise_kernel.domain.month import MonthKey, month_range
from franchise_kernel.domain.profit_share import PaymentStatus, ResolvedPercentage
from franchise_kernel.domain.roles import AccessScope, LedgerStream, Role
from franchise_kernel.exceptions import (
    FranchiseNotFoundError,
    InvalidArgumentError,
    StorageUnavailableError,
)
from franchise_kernel.logging_config import LogContext, configure_logging, get_logger
from franchise_kernel.selectors.franchise_selector import (
    FranchiseSelector,
    RoleChangeSelector,
)
from franchise_kernel.selectors.ledger_selector import LedgerSelector
from franchise_kernel.selectors.profit_share_selector import (
    ProfitShareSelector,
    profit_share_filter,
)
from franchise_kernel.selectors.revenue_selector import RevenueAggregator
from franchise_kernel.services.access_scope import AccessScopeResolver
from franchise_kernel.services.change_notifier import (
    ChangeNotifier,
    ChangeSubscription,
    InProcessChangeBus,
)
from franchise_kernel.services.franchise_deletion import FranchiseDeletionService
from franchise_kernel.services.identity import IdentityProvider
from franchise_kernel.services.ledger_service import LedgerService
from franchise_kernel.services.override_service import OverrideService
from franchise_kernel.services.payment_status_tracker import PaymentStatusTracker
from franchise_kernel.services.percentage_resolver import (
    PercentageResolver,
    override_cache_key,
)
from franchise_kernel.services.profit_share_calculator import ProfitShareCalculator
from franchise_kernel.services.tenant_directory import TenantDirectoryService
from franchise_kernel.utils.ttl_cache import TTLCache
from franchise_services.recalculation import (
    BatchRecalculationResult,
    ProfitShareBatchCalculator,
)
from franchise_services.retry import ReadRetryPolicy

logger = get_logger("services.tracker")

T = TypeVar("T")

_SUMMARY_STREAMS = (
    LedgerStream.ADMIN_INCOME,
    LedgerStream.WORKER_INCOME,
    LedgerStream.EXPENSES,
)


@dataclass(frozen=True)
class OverrideUpdate:
    """An override write together with the recalculation it triggered."""

    override: OverrideInfo
    removed: bool
    batch: BatchRecalculationResult


class FranchiseTracker:
    """
    Token-first API over the franchise kernel.

    Build one per process with ``from_settings()``, or hand in an existing
    session factory (tests do).  ``close()`` stops every change
    subscription and detaches change capture from the factory.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        identity: IdentityProvider,
        settings: TrackerSettings | None = None,
        clock: Clock | None = None,
        change_bus: InProcessChangeBus | None = None,
        timer: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        settings = settings or TrackerSettings()
        self.settings = settings
        self.tz = ZoneInfo(settings.reporting_timezone)
        self._factory = session_factory
        self._identity = identity
        self._clock = clock or SystemClock()

        self._scope_cache: TTLCache[AccessScope] = TTLCache(
            settings.scope_ttl_seconds, timer
        )
        self._franchise_cache: TTLCache[FranchiseInfo] = TTLCache(
            settings.cache_ttl_seconds, timer
        )
        self._override_cache: TTLCache = TTLCache(settings.cache_ttl_seconds, timer)
        self._read_retry = ReadRetryPolicy(
            settings.read_retry_attempts,
            settings.read_retry_backoff_seconds,
            sleep=sleep,
        )

        self.change_bus = change_bus or InProcessChangeBus()
        self._capture = ChangeCapture(self.change_bus.publish, self._clock)
        self._capture.attach(session_factory)
        register_immutability_listeners()

        self._notifier = ChangeNotifier(self.change_bus, settings.notifier_retry_seconds)
        self._batch = ProfitShareBatchCalculator(
            session_factory,
            clock=self._clock,
            tz=self.tz,
            max_workers=settings.recalc_max_workers,
            override_cache=self._override_cache,
        )

    @classmethod
    def from_settings(
        cls,
        settings: TrackerSettings,
        identity: IdentityProvider,
        clock: Clock | None = None,
    ) -> FranchiseTracker:
        """Initialize logging and the engine from settings, then build."""
        configure_logging(level=settings.log_level)
        init_engine_from_url(
            settings.database_url,
            pool_size=settings.pool_size,
            max_overflow=settings.max_overflow,
        )
        return cls(get_session_factory(), identity, settings, clock)

    def close(self) -> None:
        self._notifier.close_all()
        self._capture.detach(self._factory)

    def __enter__(self) -> FranchiseTracker:
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    # -- scope --------------------------------------------------------------

    def resolve_scope(self, token: str) -> AccessScope:
        """Authenticate ``token`` and return the principal's scope."""
        principal = self._identity.authenticate(token)
        cached = self._scope_cache.get(principal.principal_id)
        if cached is not None:
            return cached
        generation = self._scope_cache.generation
        with self._unit_of_work("resolve_scope") as session:
            scope = AccessScopeResolver(session, self._clock).resolve_role(
                principal.principal_id
            )
        self._scope_cache.put(principal.principal_id, scope, generation)
        return scope

    def assign_role(
        self,
        token: str,
        target_email: str,
        new_role: Role | str,
        franchise_id: UUID | None = None,
    ) -> RoleChangeInfo:
        """
        Bind the principal behind ``target_email`` to a role.

        Returns the appended role-change entry.  The target's cached scope
        is evicted before this returns.
        """
        actor = self.resolve_scope(token)
        actor.require_super_admin("assign roles")
        target = self._identity.find_by_email(target_email)
        with self._unit_of_work("assign_role", actor) as session:
            entry = AccessScopeResolver(session, self._clock).assign_role(
                actor, target.principal_id, new_role, franchise_id
            )
        self._scope_cache.invalidate(target.principal_id)
        return entry

    def role_history(self, token: str, target_email: str) -> list[RoleChangeInfo]:
        scope = self.resolve_scope(token)
        scope.require_super_admin("read role history")
        target = self._identity.find_by_email(target_email)
        return self._read(
            "role_history",
            scope,
            lambda session: RoleChangeSelector(session).history(target.principal_id),
        )

    # -- tenant directory ---------------------------------------------------

    def create_franchise(
        self,
        token: str,
        display_name: str,
        slug: str | None = None,
        franchise_code: str | None = None,
        address: str | None = None,
    ) -> FranchiseInfo:
        scope = self.resolve_scope(token)
        with self._unit_of_work("create_franchise", scope) as session:
            return TenantDirectoryService(session, self._clock).create_franchise(
                scope, display_name, slug, franchise_code, address
            )

    def update_franchise(
        self,
        token: str,
        franchise_id: UUID,
        *,
        display_name: str | None = None,
        slug: str | None = None,
        franchise_code: str | None = None,
        address: str | None = None,
    ) -> FranchiseInfo:
        scope = self.resolve_scope(token)
        with self._unit_of_work("update_franchise", scope) as session:
            info = TenantDirectoryService(session, self._clock).update_franchise(
                scope,
                franchise_id,
                display_name=display_name,
                slug=slug,
                franchise_code=franchise_code,
                address=address,
            )
        self._franchise_cache.invalidate(franchise_id)
        return info

    def get_franchise(self, token: str, franchise_id: UUID) -> FranchiseInfo:
        """One franchise; bound roles can only see their own."""
        scope = self.resolve_scope(token)
        target = scope.read_filter(franchise_id)
        if target is not None and target != franchise_id:
            raise FranchiseNotFoundError(franchise_id)
        return self._franchise_cache.get_or_load(
            franchise_id,
            lambda: self._read(
                "get_franchise",
                scope,
                lambda session: FranchiseSelector(session).get(franchise_id),
            ),
        )

    def list_franchises(self, token: str) -> list[FranchiseInfo]:
        scope = self.resolve_scope(token)
        target = scope.read_filter()
        if target is not None:
            return [self.get_franchise(token, target)]
        return self._read(
            "list_franchises", scope, lambda session: FranchiseSelector(session).list_all()
        )

    def delete_franchise(
        self,
        token: str,
        franchise_id: UUID,
        confirmation_name: str,
    ) -> DeletionReport:
        """
        Cascade-delete a franchise in one transaction.

        Raises:
            DeletionConfirmationError: ``confirmation_name`` is not the
                franchise's display name; nothing was deleted.
            CascadeDeletionError: a step failed; nothing was deleted.
        """
        scope = self.resolve_scope(token)
        with self._unit_of_work("delete_franchise", scope) as session:
            report = FranchiseDeletionService(session, self._clock).delete_franchise(
                scope, franchise_id, confirmation_name
            )
        # Bindings to the franchise are gone; their principals re-resolve
        self._scope_cache.clear()
        self._franchise_cache.invalidate(franchise_id)
        self._override_cache.clear()
        return report

    # -- workers ------------------------------------------------------------

    def add_worker(
        self,
        token: str,
        name: str,
        phone: str | None = None,
        bank_account: str | None = None,
        position: str | None = None,
        status: str | None = None,
        franchise_id: UUID | None = None,
    ) -> WorkerInfo:
        scope = self.resolve_scope(token)
        with self._unit_of_work("add_worker", scope) as session:
            return LedgerService(session, self._clock).add_worker(
                scope, name, phone, bank_account, position, status, franchise_id
            )

    def update_worker(self, token: str, worker_id: UUID, **changes) -> WorkerInfo:
        scope = self.resolve_scope(token)
        with self._unit_of_work("update_worker", scope) as session:
            return LedgerService(session, self._clock).update_worker(
                scope, worker_id, **changes
            )

    def list_workers(self, token: str, franchise_id: UUID | None = None) -> list[WorkerInfo]:
        scope = self.resolve_scope(token)
        return self._read(
            "list_workers",
            scope,
            lambda session: LedgerSelector(session, self.tz).list_workers(scope, franchise_id),
        )

    # -- ledger writes ------------------------------------------------------

    def record_admin_income(
        self,
        token: str,
        amount: object,
        occurred_at: datetime,
        code: str | None = None,
        franchise_id: UUID | None = None,
    ) -> AdminIncomeRecord:
        scope = self.resolve_scope(token)
        with self._unit_of_work("record_admin_income", scope) as session:
            return LedgerService(session, self._clock).record_admin_income(
                scope, amount, occurred_at, code=code, franchise_id=franchise_id
            )

    def record_worker_income(
        self,
        token: str,
        amount: object,
        occurred_at: datetime,
        worker_id: UUID | None = None,
        code: str | None = None,
        job_description: str | None = None,
        franchise_id: UUID | None = None,
    ) -> WorkerIncomeRecord:
        scope = self.resolve_scope(token)
        with self._unit_of_work("record_worker_income", scope) as session:
            return LedgerService(session, self._clock).record_worker_income(
                scope,
                amount,
                occurred_at,
                worker_id=worker_id,
                code=code,
                job_description=job_description,
                franchise_id=franchise_id,
            )

    def record_expense(
        self,
        token: str,
        amount: object,
        occurred_at: datetime,
        note: str | None = None,
        franchise_id: UUID | None = None,
    ) -> ExpenseRecord:
        scope = self.resolve_scope(token)
        with self._unit_of_work("record_expense", scope) as session:
            return LedgerService(session, self._clock).record_expense(
                scope, amount, occurred_at, note=note, franchise_id=franchise_id
            )

    def edit_record(
        self,
        token: str,
        stream: LedgerStream | str,
        record_id: UUID,
        **changes,
    ) -> LedgerRecord:
        scope = self.resolve_scope(token)
        with self._unit_of_work("edit_record", scope) as session:
            return LedgerService(session, self._clock).edit_record(
                scope, stream, record_id, **changes
            )

    # -- ledger reads -------------------------------------------------------

    def list_admin_income(
        self,
        token: str,
        month_key: MonthKey | str | None = None,
        franchise_id: UUID | None = None,
    ) -> list[AdminIncomeRecord]:
        scope = self.resolve_scope(token)
        return self._read(
            "list_admin_income",
            scope,
            lambda session: LedgerSelector(session, self.tz).list_admin_income(
                scope, month_key, franchise_id
            ),
        )

    def list_worker_income(
        self,
        token: str,
        month_key: MonthKey | str | None = None,
        franchise_id: UUID | None = None,
    ) -> list[WorkerIncomeRecord]:
        scope = self.resolve_scope(token)
        return self._read(
            "list_worker_income",
            scope,
            lambda session: LedgerSelector(session, self.tz).list_worker_income(
                scope, month_key, franchise_id
            ),
        )

    def list_expenses(
        self,
        token: str,
        month_key: MonthKey | str | None = None,
        franchise_id: UUID | None = None,
    ) -> list[ExpenseRecord]:
        scope = self.resolve_scope(token)
        return self._read(
            "list_expenses",
            scope,
            lambda session: LedgerSelector(session, self.tz).list_expenses(
                scope, month_key, franchise_id
            ),
        )

    def list_public_worker_income(
        self,
        token: str,
        month_key: MonthKey | str | None = None,
        franchise_slug: str | None = None,
    ) -> list[PublicWorkerIncome]:
        scope = self.resolve_scope(token)
        return self._read(
            "list_public_worker_income",
            scope,
            lambda session: LedgerSelector(session, self.tz).list_public_worker_income(
                scope, month_key, franchise_slug
            ),
        )

    def available_months(
        self, token: str, franchise_id: UUID | None = None
    ) -> list[MonthKey]:
        scope = self.resolve_scope(token)
        return self._read(
            "available_months",
            scope,
            lambda session: LedgerSelector(session, self.tz).available_months(
                scope, franchise_id
            ),
        )

    # -- aggregation --------------------------------------------------------

    def aggregate(
        self,
        token: str,
        franchise_id: UUID | None,
        month_key: MonthKey | str,
    ) -> RevenueTotals:
        """Admin and worker income of one franchise in one month."""
        scope = self.resolve_scope(token)
        scope.require_stream(LedgerStream.ADMIN_INCOME)
        scope.require_stream(LedgerStream.WORKER_INCOME)
        target = self._single_franchise(scope.read_filter(franchise_id))
        month = MonthKey.parse(month_key)
        return self._read(
            "aggregate",
            scope,
            lambda session: RevenueAggregator(session, self.tz).aggregate(target, month),
        )

    def monthly_summary(
        self,
        token: str,
        first: MonthKey | str,
        last: MonthKey | str | None = None,
        franchise_id: UUID | None = None,
    ) -> list[MonthlySummary]:
        """
        Dashboard figures per month over ``[first, last]``.

        super_admin without a franchise sees totals across all franchises.
        The three ledger streams and the persisted shares are read
        concurrently, one query each for the whole range.
        """
        scope = self.resolve_scope(token)
        scope.require_stream(LedgerStream.EXPENSES, "read monthly summary of")
        target = scope.read_filter(franchise_id)
        first = MonthKey.parse(first)
        last = MonthKey.parse(last) if last is not None else first
        if last < first:
            raise InvalidArgumentError(f"Month range is reversed: {first} > {last}")
        return self._read_retry.run(
            "monthly_summary", lambda: self._summarize(scope, target, first, last)
        )

    def trailing_summary(
        self,
        token: str,
        months: int = 6,
        franchise_id: UUID | None = None,
    ) -> list[MonthlySummary]:
        """The last ``months`` months up to and including the current one."""
        if months < 1:
            raise InvalidArgumentError("months must be >= 1")
        window = MonthKey.containing(self._clock.now_utc(), self.tz).trailing(months)
        return self.monthly_summary(token, window[0], window[-1], franchise_id)

    # -- overrides ----------------------------------------------------------

    def set_override(
        self,
        token: str,
        admin_percentage: object,
        franchise_percentage: object | None = None,
        franchise_id: UUID | None = None,
    ) -> OverrideUpdate:
        """
        Store a split and recalculate the records it applies to.

        A global change recalculates every persisted record, a per-franchise
        change that franchise's records.  The override is committed before
        the batch starts; batch failures are reported in the result.
        """
        scope = self.resolve_scope(token)
        with self._unit_of_work("set_override", scope) as session:
            info = OverrideService(session, self._clock, self._override_cache).set_override(
                scope, admin_percentage, franchise_percentage, franchise_id
            )
        self._override_cache.invalidate(override_cache_key(info.scope_key))
        batch = self._batch.recalculate_batch(franchise_id, actor_id=scope.principal_id)
        return OverrideUpdate(override=info, removed=False, batch=batch)

    def remove_override(self, token: str, franchise_id: UUID | None = None) -> OverrideUpdate:
        scope = self.resolve_scope(token)
        with self._unit_of_work("remove_override", scope) as session:
            info = OverrideService(
                session, self._clock, self._override_cache
            ).remove_override(scope, franchise_id)
        self._override_cache.invalidate(override_cache_key(info.scope_key))
        batch = self._batch.recalculate_batch(franchise_id, actor_id=scope.principal_id)
        return OverrideUpdate(override=info, removed=True, batch=batch)

    def list_overrides(self, token: str) -> list[OverrideInfo]:
        scope = self.resolve_scope(token)
        scope.require_super_admin("read profit sharing settings")
        return self._read(
            "list_overrides",
            scope,
            lambda session: ProfitShareSelector(session, self.tz).list_overrides(),
        )

    def resolve_percentage(
        self,
        token: str,
        franchise_id: UUID | None,
        month_key: MonthKey | str,
    ) -> ResolvedPercentage:
        """The split that a recalculation of this key would apply now."""
        scope = self.resolve_scope(token)
        target = self._single_franchise(profit_share_filter(scope, franchise_id))
        return self._read(
            "resolve_percentage",
            scope,
            lambda session: PercentageResolver(session, self._override_cache).resolve(
                target, month_key
            ),
        )

    # -- profit sharing -----------------------------------------------------

    def recalculate(
        self,
        token: str,
        franchise_id: UUID,
        month_key: MonthKey | str,
    ) -> ProfitShareInfo:
        scope = self.resolve_scope(token)
        scope.require_super_admin("recalculate profit sharing")
        with self._unit_of_work("recalculate", scope) as session:
            calculator = ProfitShareCalculator(
                session, self._clock, tz=self.tz, override_cache=self._override_cache
            )
            return calculator.recalculate(
                franchise_id, month_key, actor_id=scope.principal_id
            )

    def recalculate_batch(
        self,
        token: str,
        franchise_id: UUID | None = None,
        month_key: MonthKey | str | None = None,
    ) -> BatchRecalculationResult:
        scope = self.resolve_scope(token)
        scope.require_super_admin("recalculate profit sharing")
        with LogContext.bind_scope(scope, "recalculate_batch"):
            return self._batch.recalculate_batch(
                franchise_id, month_key, actor_id=scope.principal_id
            )

    def set_payment_status(
        self,
        token: str,
        franchise_id: UUID,
        month_key: MonthKey | str,
        new_status: PaymentStatus | str,
    ) -> ProfitShareInfo:
        scope = self.resolve_scope(token)
        with self._unit_of_work("set_payment_status", scope) as session:
            return PaymentStatusTracker(session, self._clock).set_payment_status(
                scope, franchise_id, month_key, new_status
            )

    def edit_percentage(
        self,
        token: str,
        franchise_id: UUID,
        month_key: MonthKey | str,
        new_percentage: object,
    ) -> ProfitShareInfo:
        scope = self.resolve_scope(token)
        with self._unit_of_work("edit_percentage", scope) as session:
            return PaymentStatusTracker(session, self._clock).edit_percentage(
                scope, franchise_id, month_key, new_percentage
            )

    def delete_profit_share(
        self,
        token: str,
        franchise_id: UUID,
        month_key: MonthKey | str,
    ) -> ProfitShareInfo:
        scope = self.resolve_scope(token)
        with self._unit_of_work("delete_profit_share", scope) as session:
            return PaymentStatusTracker(session, self._clock).delete_record(
                scope, franchise_id, month_key
            )

    def get_profit_share(
        self,
        token: str,
        franchise_id: UUID,
        month_key: MonthKey | str,
    ) -> ProfitShareInfo:
        scope = self.resolve_scope(token)
        return self._read(
            "get_profit_share",
            scope,
            lambda session: ProfitShareSelector(session, self.tz).get_for_scope(
                scope, franchise_id, month_key
            ),
        )

    def list_profit_shares(
        self,
        token: str,
        month_key: MonthKey | str | None = None,
        franchise_id: UUID | None = None,
    ) -> list[ProfitShareInfo]:
        scope = self.resolve_scope(token)
        return self._read(
            "list_profit_shares",
            scope,
            lambda session: ProfitShareSelector(session, self.tz).list_for_scope(
                scope, month_key, franchise_id
            ),
        )

    def profit_share_overview(
        self,
        token: str,
        month_key: MonthKey | str,
        franchise_id: UUID | None = None,
    ) -> ProfitShareOverview:
        scope = self.resolve_scope(token)
        return self._read(
            "profit_share_overview",
            scope,
            lambda session: ProfitShareSelector(session, self.tz).overview(
                scope, month_key, franchise_id
            ),
        )

    # -- change notifications ----------------------------------------------

    def subscribe(
        self,
        token: str,
        table: WatchedTable | str,
        handler: Callable[[ChangeEvent], None],
        franchise_id: UUID | None = None,
    ) -> ChangeSubscription:
        """
        Start a background subscription to committed changes of ``table``.

        Each event is a hint to re-read the affected aggregate, not a delta.
        """
        scope = self.resolve_scope(token)
        return self._notifier.subscribe(scope, table, handler, franchise_id)

    # -- internals ----------------------------------------------------------

    @contextmanager
    def _unit_of_work(
        self,
        operation: str,
        scope: AccessScope | None = None,
    ) -> Generator[Session, None, None]:
        context = (
            LogContext.bind_scope(scope, operation)
            if scope is not None
            else LogContext.bind(operation=operation)
        )
        with context:
            try:
                with session_scope(self._factory) as session:
                    yield session
            except OperationalError as exc:
                logger.error(
                    "storage_unavailable",
                    extra={"operation": operation, "detail": str(exc.orig)},
                )
                raise StorageUnavailableError(operation, str(exc.orig)) from exc

    def _read(
        self,
        operation: str,
        scope: AccessScope,
        fn: Callable[[Session], T],
    ) -> T:
        def attempt() -> T:
            with self._unit_of_work(operation, scope) as session:
                return fn(session)

        return self._read_retry.run(operation, attempt)

    @staticmethod
    def _single_franchise(target: UUID | None) -> UUID:
        if target is None:
            raise InvalidArgumentError("franchise_id is required for this read")
        return target

    def _summarize(
        self,
        scope: AccessScope,
        target: UUID | None,
        first: MonthKey,
        last: MonthKey,
    ) -> list[MonthlySummary]:
        months = month_range(first, last)

        def stream_totals(stream: LedgerStream):
            with self._unit_of_work("monthly_summary", scope) as session:
                return RevenueAggregator(session, self.tz).stream_totals(
                    stream, target, first, last
                )

        def share_totals():
            with self._unit_of_work("monthly_summary", scope) as session:
                return ProfitShareSelector(session, self.tz).share_totals(target, months)

        with ThreadPoolExecutor(
            max_workers=len(_SUMMARY_STREAMS) + 1, thread_name_prefix="monthly-summary"
        ) as pool:
            stream_futures = [pool.submit(stream_totals, s) for s in _SUMMARY_STREAMS]
            shares_future = pool.submit(share_totals)
            admin, worker, expenses = (future.result() for future in stream_futures)
            shares = shares_future.result()

        return [
            MonthlySummary(
                month_key=month,
                admin_income=admin[month],
                worker_income=worker[month],
                expenses=expenses[month],
                profit_share=shares[month],
            )
            for month in months
        ]
