"""
Tests for PaymentStatusTracker: status changes, percentage edits, deletes.
"""

from datetime import datetime, timezone
from decimal import Decimal
from uuid import uuid4

import pytest

from franchise_kernel.domain.month import MonthKey
from franchise_kernel.domain.profit_share import PaymentStatus
from franchise_kernel.domain.roles import Role
from franchise_kernel.exceptions import (
    ForbiddenError,
    InvalidArgumentError,
    InvalidPercentageError,
    ProfitShareNotFoundError,
)
from franchise_kernel.selectors.profit_share_selector import ProfitShareSelector
from franchise_kernel.services.payment_status_tracker import PaymentStatusTracker
from franchise_kernel.services.profit_share_calculator import ProfitShareCalculator

JUNE = MonthKey(2024, 6)


@pytest.fixture
def tracker_service(session, deterministic_clock):
    return PaymentStatusTracker(session, deterministic_clock)


@pytest.fixture
def june_record(session, deterministic_clock, ledger, super_admin, franchise):
    ledger.record_admin_income(
        super_admin, "1500000", datetime(2024, 6, 10, 5, 0, tzinfo=timezone.utc),
        franchise_id=franchise.id,
    )
    return ProfitShareCalculator(session, deterministic_clock).recalculate(franchise.id, JUNE)


class TestPaymentStatus:
    def test_mark_paid_and_back(self, tracker_service, super_admin, june_record):
        paid = tracker_service.set_payment_status(
            super_admin, june_record.franchise_id, JUNE, "paid"
        )
        assert paid.is_paid

        unpaid = tracker_service.set_payment_status(
            super_admin, june_record.franchise_id, JUNE, PaymentStatus.UNPAID
        )
        assert unpaid.payment_status is PaymentStatus.UNPAID
        assert unpaid.share_amount == june_record.share_amount

    def test_unknown_status(self, tracker_service, super_admin, june_record):
        with pytest.raises(InvalidArgumentError):
            tracker_service.set_payment_status(super_admin, june_record.franchise_id, JUNE, "void")

    def test_missing_record(self, tracker_service, super_admin, franchise):
        with pytest.raises(ProfitShareNotFoundError) as exc_info:
            tracker_service.set_payment_status(super_admin, franchise.id, "2023-01", "paid")
        assert exc_info.value.month_key == "2023-01"

    def test_franchise_owner_cannot_mark_paid(self, tracker_service, scope_for, june_record):
        owner = scope_for(Role.FRANCHISE, june_record.franchise_id)
        with pytest.raises(ForbiddenError):
            tracker_service.set_payment_status(owner, june_record.franchise_id, JUNE, "paid")

    def test_status_change_is_logged(self, tracker_service, super_admin, june_record, captured_logs):
        tracker_service.set_payment_status(super_admin, june_record.franchise_id, JUNE, "paid")

        record = next(r for r in captured_logs() if r["message"] == "payment_status_changed")
        assert record["previous_status"] == "unpaid"
        assert record["new_status"] == "paid"


class TestEditPercentage:
    def test_recomputes_share_from_stored_revenue(self, tracker_service, super_admin, june_record):
        edited = tracker_service.edit_percentage(
            super_admin, june_record.franchise_id, JUNE, "35"
        )

        assert edited.admin_percentage == Decimal("35")
        assert edited.total_revenue == Decimal("1500000")
        assert edited.share_amount == Decimal("525000")

    def test_out_of_range(self, tracker_service, super_admin, june_record):
        with pytest.raises(InvalidPercentageError):
            tracker_service.edit_percentage(super_admin, june_record.franchise_id, JUNE, "-5")


class TestDelete:
    def test_delete_returns_last_state(self, tracker_service, super_admin, june_record, session):
        deleted = tracker_service.delete_record(super_admin, june_record.franchise_id, JUNE)

        assert deleted == june_record
        with pytest.raises(ProfitShareNotFoundError):
            ProfitShareSelector(session).get(june_record.franchise_id, JUNE)

    def test_delete_missing(self, tracker_service, super_admin):
        with pytest.raises(ProfitShareNotFoundError):
            tracker_service.delete_record(super_admin, uuid4(), JUNE)
