"""
Tenant isolation of ledger reads.

A franchise-bound scope must never see another franchise's rows, whatever
franchise id it passes.  super_admin sees everything unless it narrows.
"""

from datetime import datetime, timezone
from decimal import Decimal
from uuid import uuid4

import pytest

from franchise_kernel.domain.month import MonthKey
from franchise_kernel.domain.roles import Role
from franchise_kernel.exceptions import ForbiddenError
from franchise_kernel.selectors.ledger_selector import LedgerSelector


def at(month: int, day: int = 10) -> datetime:
    return datetime(2024, month, day, 5, 0, tzinfo=timezone.utc)


@pytest.fixture
def selector(session):
    return LedgerSelector(session)


@pytest.fixture
def two_tenants(ledger, super_admin, franchise, other_franchise):
    for fid, amount in ((franchise.id, "100"), (other_franchise.id, "999")):
        worker = ledger.add_worker(super_admin, f"Worker {amount}", franchise_id=fid)
        ledger.record_admin_income(super_admin, amount, at(6), code=f"A-{amount}", franchise_id=fid)
        ledger.record_worker_income(
            super_admin, amount, at(6), worker_id=worker.id, code=f"W-{amount}",
            job_description="delivery", franchise_id=fid,
        )
        ledger.record_expense(super_admin, amount, at(5), franchise_id=fid)
    return franchise, other_franchise


class TestScopedLists:
    @pytest.mark.parametrize("role", [Role.FRANCHISE, Role.ADMIN_KEUANGAN, Role.ADMIN_MARKETING])
    def test_bound_roles_see_own_income_only(self, selector, scope_for, two_tenants, role):
        own, other = two_tenants
        scope = scope_for(role, own.id)

        rows = selector.list_admin_income(scope, franchise_id=other.id)

        assert [r.franchise_id for r in rows] == [own.id]
        assert rows[0].amount == Decimal("100")
        assert {r.franchise_id for r in selector.list_worker_income(scope)} == {own.id}

    def test_marketing_admin_cannot_read_expenses(self, selector, scope_for, two_tenants):
        own, _ = two_tenants
        with pytest.raises(ForbiddenError):
            selector.list_expenses(scope_for(Role.ADMIN_MARKETING, own.id))

    def test_marketing_admin_cannot_read_roster(self, selector, scope_for, two_tenants):
        own, _ = two_tenants
        with pytest.raises(ForbiddenError):
            selector.list_workers(scope_for(Role.ADMIN_MARKETING, own.id))

    def test_super_admin_sees_all_or_narrows(self, selector, super_admin, two_tenants):
        own, other = two_tenants

        assert len(selector.list_expenses(super_admin)) == 2
        narrowed = selector.list_expenses(super_admin, franchise_id=other.id)
        assert [r.amount for r in narrowed] == [Decimal("999")]

    def test_month_filter(self, selector, super_admin, two_tenants):
        assert selector.list_expenses(super_admin, "2024-06") == []
        assert len(selector.list_expenses(super_admin, MonthKey(2024, 5))) == 2

    def test_user_has_no_scoped_lists(self, selector, scope_for, two_tenants):
        with pytest.raises(ForbiddenError):
            selector.list_admin_income(scope_for(Role.USER))

    def test_roster_is_scoped(self, selector, scope_for, two_tenants):
        own, _ = two_tenants
        workers = selector.list_workers(scope_for(Role.ADMIN_KEUANGAN, own.id))
        assert [w.name for w in workers] == ["Worker 100"]


class TestPublicProjection:
    def test_user_sees_every_franchise_without_ids(self, selector, scope_for, two_tenants):
        rows = selector.list_public_worker_income(scope_for(Role.USER))

        assert {r.franchise_slug for r in rows} == {"franchise-a", "franchise-b"}
        assert not hasattr(rows[0], "id")
        assert not hasattr(rows[0], "created_by_id")
        assert {r.worker_name for r in rows} == {"Worker 100", "Worker 999"}

    def test_filter_by_slug(self, selector, scope_for, two_tenants):
        rows = selector.list_public_worker_income(scope_for(Role.USER), franchise_slug="franchise-b")
        assert [(r.code, r.amount) for r in rows] == [("W-999", Decimal("999"))]

    def test_bound_scope_is_still_isolated(self, selector, scope_for, two_tenants):
        own, _ = two_tenants
        rows = selector.list_public_worker_income(
            scope_for(Role.ADMIN_MARKETING, own.id), franchise_slug="franchise-b"
        )
        assert rows == []


class TestAvailableMonths:
    def test_newest_first_for_owner(self, selector, scope_for, two_tenants):
        own, _ = two_tenants
        months = selector.available_months(scope_for(Role.FRANCHISE, own.id))
        assert months == [MonthKey(2024, 6), MonthKey(2024, 5)]

    def test_marketing_admin_ignores_expense_months(self, selector, scope_for, two_tenants):
        own, _ = two_tenants
        months = selector.available_months(scope_for(Role.ADMIN_MARKETING, own.id))
        assert months == [MonthKey(2024, 6)]

    def test_user_sees_worker_income_months(self, selector, scope_for, two_tenants):
        assert selector.available_months(scope_for(Role.USER)) == [MonthKey(2024, 6)]

    def test_empty_franchise(self, selector, scope_for, create_franchise):
        empty = create_franchise("Empty Outlet")
        assert selector.available_months(scope_for(Role.FRANCHISE, empty.id)) == []


def test_unknown_franchise_filter_returns_nothing(selector, super_admin, two_tenants):
    assert selector.list_admin_income(super_admin, franchise_id=uuid4()) == []
