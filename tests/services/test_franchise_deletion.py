"""
Tests for the transactional franchise cascade.

Covers:
- Confirmation by display name
- Every dependent row removed, role-change log kept
- A failing step rolls back the whole cascade
"""

from datetime import datetime, timezone
from uuid import uuid4

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from franchise_kernel.db.engine import session_scope
from franchise_kernel.domain.roles import Role
from franchise_kernel.exceptions import (
    CascadeDeletionError,
    DeletionConfirmationError,
    ForbiddenError,
    FranchiseNotFoundError,
)
from franchise_kernel.models.access import RoleBinding, RoleChange
from franchise_kernel.models.franchise import Franchise
from franchise_kernel.models.ledger import AdminIncome, Expense, Worker, WorkerIncome
from franchise_kernel.models.profit_sharing import ProfitShareRecord, ProfitSharingOverride
from franchise_kernel.services.access_scope import AccessScopeResolver
from franchise_kernel.services.franchise_deletion import FranchiseDeletionService
from franchise_kernel.services.ledger_service import LedgerService
from franchise_kernel.services.override_service import OverrideService
from franchise_kernel.services.profit_share_calculator import ProfitShareCalculator
from franchise_kernel.services.tenant_directory import TenantDirectoryService

WHEN = datetime(2024, 6, 10, 5, 0, tzinfo=timezone.utc)

DEPENDENT_MODELS = (
    WorkerIncome,
    Worker,
    AdminIncome,
    Expense,
    ProfitShareRecord,
    ProfitSharingOverride,
    RoleBinding,
)


def populate(session, clock, super_admin, display_name="Doomed Outlet"):
    """A franchise with one row in every dependent table."""
    franchise = TenantDirectoryService(session, clock).create_franchise(super_admin, display_name)
    ledger = LedgerService(session, clock)
    worker = ledger.add_worker(super_admin, "Budi", franchise_id=franchise.id)
    ledger.record_worker_income(super_admin, 500, WHEN, worker_id=worker.id, franchise_id=franchise.id)
    ledger.record_admin_income(super_admin, 1000, WHEN, franchise_id=franchise.id)
    ledger.record_expense(super_admin, 200, WHEN, franchise_id=franchise.id)
    OverrideService(session, clock).set_override(super_admin, "30", franchise_id=franchise.id)
    ProfitShareCalculator(session, clock).recalculate(franchise.id, "2024-06")
    AccessScopeResolver(session, clock).assign_role(super_admin, uuid4(), Role.FRANCHISE, franchise.id)
    return franchise


def count(session, model, franchise_id) -> int:
    column = model.id if model is Franchise else model.franchise_id
    return session.execute(
        select(func.count()).select_from(model).where(column == franchise_id)
    ).scalar_one()


class TestCascade:
    def test_removes_every_dependent_row(self, session, deterministic_clock, super_admin):
        franchise = populate(session, deterministic_clock, super_admin)
        survivor = populate(session, deterministic_clock, super_admin, "Survivor")

        report = FranchiseDeletionService(session, deterministic_clock).delete_franchise(
            super_admin, franchise.id, "Doomed Outlet"
        )

        assert [step.name for step in report.steps] == [
            "worker_income",
            "workers",
            "admin_income",
            "expenses",
            "profit_share_records",
            "profit_sharing_overrides",
            "role_bindings",
            "franchises",
        ]
        assert all(step.rows == 1 for step in report.steps)
        assert report.total_rows == 8
        for model in (*DEPENDENT_MODELS, Franchise):
            assert count(session, model, franchise.id) == 0
            assert count(session, model, survivor.id) == 1

    def test_role_change_log_outlives_franchise(self, session, deterministic_clock, super_admin):
        franchise = populate(session, deterministic_clock, super_admin)

        FranchiseDeletionService(session, deterministic_clock).delete_franchise(
            super_admin, franchise.id, "Doomed Outlet"
        )

        assert count(session, RoleChange, franchise.id) == 1

    def test_wrong_confirmation_deletes_nothing(self, session, deterministic_clock, super_admin):
        franchise = populate(session, deterministic_clock, super_admin)

        with pytest.raises(DeletionConfirmationError) as exc_info:
            FranchiseDeletionService(session, deterministic_clock).delete_franchise(
                super_admin, franchise.id, "doomed outlet"
            )

        assert exc_info.value.expected_name == "Doomed Outlet"
        assert count(session, Franchise, franchise.id) == 1

    def test_unknown_franchise(self, session, deterministic_clock, super_admin):
        with pytest.raises(FranchiseNotFoundError):
            FranchiseDeletionService(session, deterministic_clock).delete_franchise(
                super_admin, uuid4(), "Nobody"
            )

    def test_only_super_admin(self, session, deterministic_clock, scope_for, franchise):
        with pytest.raises(ForbiddenError):
            FranchiseDeletionService(session, deterministic_clock).delete_franchise(
                scope_for(Role.FRANCHISE, franchise.id), franchise.id, franchise.display_name
            )


class TestAtomicity:
    def test_failed_step_rolls_back_everything(
        self, session_factory, deterministic_clock, super_admin, monkeypatch, captured_logs
    ):
        with session_scope(session_factory) as setup:
            franchise = populate(setup, deterministic_clock, super_admin)

        original = FranchiseDeletionService._delete_step

        def failing_step(self, name, model, franchise_id):
            if name == "profit_share_records":
                raise OperationalError("DELETE", {}, Exception("disk I/O error"))
            return original(self, name, model, franchise_id)

        monkeypatch.setattr(FranchiseDeletionService, "_delete_step", failing_step)

        with pytest.raises(CascadeDeletionError) as exc_info:
            with session_scope(session_factory) as work:
                FranchiseDeletionService(work, deterministic_clock).delete_franchise(
                    super_admin, franchise.id, "Doomed Outlet"
                )

        error = exc_info.value
        assert error.failed_step == "profit_share_records"
        assert error.completed_steps == ("worker_income", "workers", "admin_income", "expenses")
        assert error.code == "CASCADE_DELETION_FAILED"

        with session_scope(session_factory) as check:
            for model in (*DEPENDENT_MODELS, Franchise):
                assert count(check, model, franchise.id) == 1

        failed = [r for r in captured_logs() if r["message"] == "franchise_cascade_failed"]
        assert failed[0]["failed_step"] == "profit_share_records"
