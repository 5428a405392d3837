"""
Tests for ProfitShareCalculator, PercentageResolver and OverrideService.

Covers:
- totalRevenue = admin income + worker income, expenses excluded
- Cascade resolution feeding the applied percentage
- Idempotent upsert: one row per key, payment status preserved
- Override writes invalidate the shared cache
"""

from datetime import datetime, timezone
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import func, select

from franchise_kernel.domain.month import MonthKey
from franchise_kernel.domain.profit_share import PaymentStatus, PercentageSource
from franchise_kernel.domain.roles import Role
from franchise_kernel.exceptions import (
    ForbiddenError,
    FranchiseNotFoundError,
    InvalidMonthKeyError,
    InvalidPercentageError,
    OverrideNotFoundError,
    UnbalancedSplitError,
)
from franchise_kernel.models.profit_sharing import ProfitShareRecord
from franchise_kernel.services.override_service import OverrideService
from franchise_kernel.services.payment_status_tracker import PaymentStatusTracker
from franchise_kernel.services.percentage_resolver import (
    PercentageResolver,
    override_cache_key,
)
from franchise_kernel.services.profit_share_calculator import ProfitShareCalculator
from franchise_kernel.utils.ttl_cache import TTLCache

JUNE = MonthKey(2024, 6)


def at(month: int, day: int = 10) -> datetime:
    return datetime(2024, month, day, 5, 0, tzinfo=timezone.utc)


@pytest.fixture
def calculator(session, deterministic_clock):
    return ProfitShareCalculator(session, deterministic_clock)


@pytest.fixture
def overrides(session, deterministic_clock):
    return OverrideService(session, deterministic_clock)


@pytest.fixture
def june_ledger(ledger, super_admin, franchise):
    """1,000,000 admin income + 500,000 worker income + 200,000 expenses in June."""
    ledger.record_admin_income(super_admin, "600000", at(6, 3), franchise_id=franchise.id)
    ledger.record_admin_income(super_admin, "400000", at(6, 20), franchise_id=franchise.id)
    ledger.record_worker_income(super_admin, "500000", at(6, 12), franchise_id=franchise.id)
    ledger.record_expense(super_admin, "200000", at(6, 15), franchise_id=franchise.id)
    # Outside the month
    ledger.record_admin_income(super_admin, "999999", at(7, 2), franchise_id=franchise.id)
    return franchise


def record_count(session, franchise_id) -> int:
    return session.execute(
        select(func.count()).select_from(ProfitShareRecord).where(
            ProfitShareRecord.franchise_id == franchise_id
        )
    ).scalar_one()


class TestRecalculate:
    def test_default_percentage(self, calculator, june_ledger):
        record = calculator.recalculate(june_ledger.id, JUNE)

        assert record.total_revenue == Decimal("1500000")
        assert record.admin_percentage == Decimal("20")
        assert record.franchise_percentage == Decimal("80")
        assert record.share_amount == Decimal("300000")
        assert record.payment_status is PaymentStatus.UNPAID
        assert record.month_key == JUNE

    def test_franchise_override(self, calculator, overrides, super_admin, june_ledger):
        overrides.set_override(super_admin, "35", franchise_id=june_ledger.id)

        record = calculator.recalculate(june_ledger.id, "2024-06")

        assert record.admin_percentage == Decimal("35")
        assert record.share_amount == Decimal("525000")

    def test_empty_month_yields_zero_record(self, calculator, franchise):
        record = calculator.recalculate(franchise.id, MonthKey(2024, 1))

        assert record.total_revenue == Decimal("0")
        assert record.share_amount == Decimal("0")

    def test_idempotent(self, calculator, june_ledger, session):
        first = calculator.recalculate(june_ledger.id, JUNE)
        second = calculator.recalculate(june_ledger.id, JUNE)

        assert first == second
        assert record_count(session, june_ledger.id) == 1

    def test_preserves_payment_status(
        self, calculator, session, deterministic_clock, super_admin, ledger, june_ledger
    ):
        calculator.recalculate(june_ledger.id, JUNE)
        PaymentStatusTracker(session, deterministic_clock).set_payment_status(
            super_admin, june_ledger.id, JUNE, PaymentStatus.PAID
        )
        ledger.record_worker_income(super_admin, "100000", at(6, 25), franchise_id=june_ledger.id)

        record = calculator.recalculate(june_ledger.id, JUNE)

        assert record.payment_status is PaymentStatus.PAID
        assert record.total_revenue == Decimal("1600000")
        assert record.share_amount == Decimal("320000")

    def test_logs_recalculation(self, calculator, june_ledger, captured_logs):
        calculator.recalculate(june_ledger.id, JUNE)
        calculator.recalculate(june_ledger.id, JUNE)

        logs = [r for r in captured_logs() if r["message"] == "profit_share_recalculated"]
        assert [r["inserted"] for r in logs] == [True, False]
        assert logs[0]["percentage_source"] == "default"
        assert logs[0]["share_amount"] == "300000"

    def test_unknown_franchise(self, calculator):
        with pytest.raises(FranchiseNotFoundError):
            calculator.recalculate(uuid4(), JUNE)

    def test_malformed_month(self, calculator, franchise):
        with pytest.raises(InvalidMonthKeyError):
            calculator.recalculate(franchise.id, "June 2024")


class TestPercentageResolver:
    def test_cascade_through_tiers(self, session, overrides, super_admin, franchise):
        resolver = PercentageResolver(session)

        assert resolver.resolve(franchise.id, JUNE).source is PercentageSource.DEFAULT

        overrides.set_override(super_admin, "25")
        resolved = resolver.resolve(franchise.id, JUNE)
        assert (resolved.source, resolved.admin_percentage) == (PercentageSource.GLOBAL, Decimal("25"))

        overrides.set_override(super_admin, "35", franchise_id=franchise.id)
        resolved = resolver.resolve(franchise.id, JUNE)
        assert (resolved.source, resolved.admin_percentage) == (PercentageSource.FRANCHISE, Decimal("35"))

        overrides.remove_override(super_admin, franchise_id=franchise.id)
        assert resolver.resolve(franchise.id, JUNE).source is PercentageSource.GLOBAL

    def test_global_override_does_not_leak_franchise_override(
        self, session, overrides, super_admin, franchise, other_franchise
    ):
        overrides.set_override(super_admin, "35", franchise_id=franchise.id)
        resolved = PercentageResolver(session).resolve(other_franchise.id, JUNE)
        assert resolved.source is PercentageSource.DEFAULT

    def test_cache_is_invalidated_by_override_write(
        self, session, deterministic_clock, super_admin, franchise
    ):
        cache = TTLCache(ttl_seconds=300)
        service = OverrideService(session, deterministic_clock, cache)
        resolver = PercentageResolver(session, cache)

        assert resolver.resolve(franchise.id, JUNE).admin_percentage == Decimal("20")
        assert cache.get(override_cache_key("global")) == (None,)

        service.set_override(super_admin, "30")

        assert cache.get(override_cache_key("global")) is None
        assert resolver.resolve(franchise.id, JUNE).admin_percentage == Decimal("30")


class TestOverrideService:
    def test_upsert_keeps_one_row_per_scope(self, overrides, super_admin, session):
        overrides.set_override(super_admin, "25")
        info = overrides.set_override(super_admin, "30", "70")

        assert info.is_global
        assert info.admin_percentage == Decimal("30")
        assert info.franchise_percentage == Decimal("70")
        assert [o.scope_key for o in _list(session)] == ["global"]

    def test_unbalanced_split_rejected(self, overrides, super_admin):
        with pytest.raises(UnbalancedSplitError):
            overrides.set_override(super_admin, "30", "60")

    def test_out_of_range_rejected(self, overrides, super_admin):
        with pytest.raises(InvalidPercentageError):
            overrides.set_override(super_admin, "101")

    def test_unknown_franchise_rejected(self, overrides, super_admin):
        with pytest.raises(FranchiseNotFoundError):
            overrides.set_override(super_admin, "30", franchise_id=uuid4())

    def test_remove_missing_override(self, overrides, super_admin):
        with pytest.raises(OverrideNotFoundError):
            overrides.remove_override(super_admin)

    def test_only_super_admin(self, overrides, scope_for, franchise):
        with pytest.raises(ForbiddenError):
            overrides.set_override(scope_for(Role.FRANCHISE, franchise.id), "10", franchise_id=franchise.id)


def _list(session):
    from franchise_kernel.selectors.profit_share_selector import ProfitShareSelector

    return ProfitShareSelector(session).list_overrides()
