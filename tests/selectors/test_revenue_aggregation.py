"""
Tests for RevenueAggregator and ProfitShareSelector read paths.

Covers:
- Half-open month boundaries in Asia/Jakarta
- Zero totals for empty months
- Per-month stream totals over a range
- Profit-share visibility and overview counts
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from zoneinfo import ZoneInfo

import pytest

from franchise_kernel.domain.month import MonthKey
from franchise_kernel.domain.profit_share import PaymentStatus
from franchise_kernel.domain.roles import LedgerStream, Role
from franchise_kernel.exceptions import ForbiddenError, ProfitShareNotFoundError
from franchise_kernel.selectors.profit_share_selector import ProfitShareSelector
from franchise_kernel.selectors.revenue_selector import RevenueAggregator
from franchise_kernel.services.payment_status_tracker import PaymentStatusTracker
from franchise_kernel.services.profit_share_calculator import ProfitShareCalculator

# Local midnight 2024-07-01 in Jakarta (UTC+7)
JULY_START = datetime(2024, 6, 30, 17, 0, tzinfo=timezone.utc)


@pytest.fixture
def aggregator(session):
    return RevenueAggregator(session)


class TestMonthBoundary:
    def test_record_at_local_midnight_goes_to_new_month(
        self, aggregator, ledger, super_admin, franchise
    ):
        ledger.record_admin_income(super_admin, 100, JULY_START, franchise_id=franchise.id)
        ledger.record_admin_income(
            super_admin, 7, JULY_START - timedelta(seconds=1), franchise_id=franchise.id
        )

        june = aggregator.aggregate(franchise.id, "2024-06")
        july = aggregator.aggregate(franchise.id, "2024-07")

        assert june.admin_income_total == Decimal("7")
        assert july.admin_income_total == Decimal("100")

    def test_utc_evening_of_last_day_is_next_month_in_jakarta(
        self, aggregator, ledger, super_admin, franchise
    ):
        # 2024-06-30 20:00 UTC is 2024-07-01 03:00 in Jakarta
        ledger.record_worker_income(
            super_admin, 50, datetime(2024, 6, 30, 20, 0, tzinfo=timezone.utc),
            franchise_id=franchise.id,
        )
        assert aggregator.aggregate(franchise.id, "2024-07").worker_income_total == Decimal("50")

    def test_same_data_in_utc_buckets_differently(self, session, ledger, super_admin, franchise):
        ledger.record_worker_income(
            super_admin, 50, datetime(2024, 6, 30, 20, 0, tzinfo=timezone.utc),
            franchise_id=franchise.id,
        )
        utc = RevenueAggregator(session, ZoneInfo("UTC"))
        assert utc.aggregate(franchise.id, "2024-06").worker_income_total == Decimal("50")


class TestTotals:
    def test_empty_month_is_zero(self, aggregator, franchise):
        totals = aggregator.aggregate(franchise.id, MonthKey(2031, 1))

        assert totals.admin_income_total == Decimal("0")
        assert totals.worker_income_total == Decimal("0")
        assert totals.gross_revenue == Decimal("0")

    def test_gross_excludes_expenses(self, aggregator, ledger, super_admin, franchise):
        when = datetime(2024, 6, 10, 5, 0, tzinfo=timezone.utc)
        ledger.record_admin_income(super_admin, "1000000", when, franchise_id=franchise.id)
        ledger.record_worker_income(super_admin, "500000", when, franchise_id=franchise.id)
        ledger.record_expense(super_admin, "300000", when, franchise_id=franchise.id)

        assert aggregator.aggregate(franchise.id, "2024-06").gross_revenue == Decimal("1500000")

    def test_fractional_amounts_sum_exactly(self, aggregator, ledger, super_admin, franchise):
        when = datetime(2024, 6, 10, 5, 0, tzinfo=timezone.utc)
        for _ in range(3):
            ledger.record_admin_income(super_admin, "0.10", when, franchise_id=franchise.id)

        assert aggregator.aggregate(franchise.id, "2024-06").admin_income_total == Decimal("0.3")

    def test_stream_totals_cover_every_month(
        self, aggregator, ledger, super_admin, franchise, other_franchise
    ):
        ledger.record_expense(
            super_admin, 10, datetime(2024, 4, 10, tzinfo=timezone.utc), franchise_id=franchise.id
        )
        ledger.record_expense(
            super_admin, 20, datetime(2024, 6, 10, tzinfo=timezone.utc), franchise_id=franchise.id
        )
        ledger.record_expense(
            super_admin, 40, datetime(2024, 6, 11, tzinfo=timezone.utc), franchise_id=other_franchise.id
        )

        own = aggregator.stream_totals(
            LedgerStream.EXPENSES, franchise.id, MonthKey(2024, 4), MonthKey(2024, 6)
        )
        everyone = aggregator.stream_totals(
            LedgerStream.EXPENSES, None, MonthKey(2024, 6), MonthKey(2024, 6)
        )

        assert own == {
            MonthKey(2024, 4): Decimal("10"),
            MonthKey(2024, 5): Decimal("0"),
            MonthKey(2024, 6): Decimal("20"),
        }
        assert everyone == {MonthKey(2024, 6): Decimal("60")}


class TestProfitShareReads:
    @pytest.fixture
    def records(self, session, deterministic_clock, ledger, super_admin, franchise, other_franchise):
        when = datetime(2024, 6, 10, 5, 0, tzinfo=timezone.utc)
        calculator = ProfitShareCalculator(session, deterministic_clock)
        for fid, amount in ((franchise.id, "1000"), (other_franchise.id, "3000")):
            ledger.record_admin_income(super_admin, amount, when, franchise_id=fid)
            calculator.recalculate(fid, "2024-06")
        PaymentStatusTracker(session, deterministic_clock).set_payment_status(
            super_admin, other_franchise.id, "2024-06", PaymentStatus.PAID
        )
        return franchise, other_franchise

    def test_overview_for_super_admin(self, session, super_admin, records):
        overview = ProfitShareSelector(session).overview(super_admin, "2024-06")

        assert len(overview.records) == 2
        assert overview.total_share_amount == Decimal("800")
        assert (overview.paid_count, overview.unpaid_count) == (1, 1)

    def test_owner_sees_own_record_only(self, session, scope_for, records):
        own, other = records
        owner = scope_for(Role.FRANCHISE, own.id)
        selector = ProfitShareSelector(session)

        assert [r.franchise_id for r in selector.list_for_scope(owner, franchise_id=other.id)] == [own.id]
        with pytest.raises(ProfitShareNotFoundError):
            selector.get_for_scope(owner, other.id, "2024-06")

    @pytest.mark.parametrize("role", [Role.ADMIN_KEUANGAN, Role.ADMIN_MARKETING])
    def test_admins_cannot_read_profit_sharing(self, session, scope_for, records, role):
        own, _ = records
        with pytest.raises(ForbiddenError):
            ProfitShareSelector(session).list_for_scope(scope_for(role, own.id))

    def test_share_totals(self, session, records):
        totals = ProfitShareSelector(session).share_totals(
            None, [MonthKey(2024, 5), MonthKey(2024, 6)]
        )
        assert totals == {MonthKey(2024, 5): Decimal("0"), MonthKey(2024, 6): Decimal("800")}

    def test_persisted_keys(self, session, records):
        own, _ = records
        selector = ProfitShareSelector(session)

        assert len(selector.persisted_keys()) == 2
        assert selector.persisted_keys(own.id) == [(own.id, MonthKey(2024, 6))]
        assert selector.persisted_keys(month_key="2024-05") == []
