"""
ORM-level immutability: posted and cancelled lines, budget revisions and
hard deletes are rejected before any SQL is sent.
"""

from datetime import date
from decimal import Decimal

import pytest

from ledger_kernel.exceptions import ImmutabilityViolationError
from ledger_modules.budget.models import BudgetPeriod, BudgetType

JAN_15 = date(2024, 1, 15)


class TestTransactionImmutability:
    def test_posted_line_cannot_change(self, chart, book, session):
        rows = book(JAN_15, (chart["cash"], 10, 0), (chart["sales"], 0, 10))
        rows[0].description = "rewritten"
        with pytest.raises(ImmutabilityViolationError) as exc_info:
            session.flush()
        assert exc_info.value.entity_type == "Transaction"
        assert "description" in exc_info.value.reason

    def test_posted_amount_cannot_change(self, chart, book, session):
        rows = book(JAN_15, (chart["cash"], 10, 0), (chart["sales"], 0, 10))
        rows[1].credit_amount = Decimal("11")
        with pytest.raises(ImmutabilityViolationError):
            session.flush()

    def test_cancelled_line_cannot_change(self, chart, book, session, ledger_service, test_actor_id):
        rows = book(JAN_15, (chart["cash"], 10, 0), (chart["sales"], 0, 10), post=False)
        ledger_service.cancel(rows[0].id, "Void", test_actor_id)
        rows[0].memo = "after the fact"
        with pytest.raises(ImmutabilityViolationError):
            session.flush()

    def test_audit_fields_may_change(self, chart, book, session, test_actor_id):
        rows = book(JAN_15, (chart["cash"], 10, 0), (chart["sales"], 0, 10))
        rows[0].updated_by_id = test_actor_id
        session.flush()

    def test_draft_line_is_editable(self, chart, book, session):
        rows = book(JAN_15, (chart["cash"], 10, 0), (chart["sales"], 0, 10), post=False)
        rows[0].memo = "still a draft"
        session.flush()

    def test_transactions_are_never_deleted(self, chart, book, session):
        rows = book(JAN_15, (chart["cash"], 10, 0), (chart["sales"], 0, 10), post=False)
        session.delete(rows[0])
        with pytest.raises(ImmutabilityViolationError):
            session.flush()

    def test_violation_is_logged(self, chart, book, session, captured_logs):
        rows = book(JAN_15, (chart["cash"], 10, 0), (chart["sales"], 0, 10))
        rows[0].memo = "x"
        with pytest.raises(ImmutabilityViolationError):
            session.flush()
        blocked = [r for r in captured_logs() if r["message"] == "immutability_violation_blocked"]
        assert blocked[0]["operation"] == "UPDATE"


class TestAccountDeletion:
    def test_accounts_are_never_hard_deleted(self, chart, session):
        session.delete(chart["equipment"])
        with pytest.raises(ImmutabilityViolationError) as exc_info:
            session.flush()
        assert exc_info.value.entity_type == "Account"


class TestBudgetRevisionImmutability:
    @pytest.fixture
    def revision(self, chart, budget_service, company_id, test_actor_id):
        budget = budget_service.create_budget(
            company_id, chart["rent"].id, 2024, BudgetPeriod.ANNUAL, BudgetType.EXPENSE,
            Decimal("12000"), test_actor_id,
        )
        return budget_service.revise(budget.id, Decimal("15000"), "New lease", test_actor_id)

    def test_revision_cannot_change(self, revision, session):
        revision.revision_reason = "Something else"
        with pytest.raises(ImmutabilityViolationError) as exc_info:
            session.flush()
        assert exc_info.value.entity_type == "BudgetRevision"

    def test_revision_cannot_be_deleted(self, revision, session):
        session.delete(revision)
        with pytest.raises(ImmutabilityViolationError):
            session.flush()
