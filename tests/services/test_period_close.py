"""
Period close: month close recompute, year-end nominal reset, the pending
transaction gate and re-running a close.
"""

from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import select

from ledger_kernel.exceptions import (
    ClosedPeriodError,
    PendingTransactionsError,
    ValidationError,
)
from ledger_kernel.models.fiscal_close import FiscalClose
from ledger_services import PeriodCloseOrchestrator

ACCOUNTS_IN_CHART = 17
NOMINAL_ACCOUNTS_IN_CHART = 7


class TestMonthClose:
    def test_recomputes_and_records(
        self, chart, book, session, period_close, company_id, test_actor_id, deterministic_clock,
    ):
        book(date(2024, 1, 10), (chart["cash"], 1000, 0), (chart["sales"], 0, 1000))
        chart["cash"].current_balance = Decimal("1")
        session.commit()

        result = period_close.close_fiscal_period(company_id, 2024, 1, test_actor_id)

        assert result.period_key == "2024-01"
        assert result.accounts_recomputed == ACCOUNTS_IN_CHART
        assert result.closed_at == deterministic_clock.now()
        assert chart["cash"].current_balance == Decimal("1000")
        assert period_close.is_closed(company_id, "2024-01")
        assert not period_close.is_closed(company_id, "2024-02")

    def test_month_must_be_valid(self, chart, period_close, company_id, test_actor_id):
        with pytest.raises(ValidationError):
            period_close.close_fiscal_period(company_id, 2024, 13, test_actor_id)

    def test_rerun_refreshes_single_record(
        self, chart, period_close, company_id, test_actor_id, deterministic_clock,
    ):
        period_close.close_fiscal_period(company_id, 2024, 1, test_actor_id)
        deterministic_clock.advance(3600)
        period_close.close_fiscal_period(company_id, 2024, 1, test_actor_id)

        records = period_close.closed_periods(company_id)
        assert [r.period_key for r in records] == ["2024-01"]
        assert records[0].closed_at == deterministic_clock.now()

    def test_month_close_does_not_block_posting(
        self, chart, book, period_close, company_id, test_actor_id,
    ):
        period_close.close_fiscal_period(company_id, 2024, 1, test_actor_id)
        rows = book(date(2024, 1, 20), (chart["cash"], 5, 0), (chart["sales"], 0, 5))
        assert chart["cash"].current_balance == Decimal("5")
        assert len(rows) == 2

    def test_close_is_logged(self, chart, period_close, company_id, test_actor_id, captured_logs):
        period_close.close_fiscal_period(company_id, 2024, 2, test_actor_id)
        events = [r for r in captured_logs() if r["message"] == "fiscal_period_closed"]
        assert events[0]["period_key"] == "2024-02"
        assert events[0]["company_id"] == str(company_id)


class TestPendingGate:
    @pytest.fixture
    def one_pending(self, chart, book, ledger_service, session, test_actor_id):
        rows = book(date(2024, 1, 12), (chart["cash"], 50, 0), (chart["sales"], 0, 50), post=False)
        ledger_service.submit(rows[0].id, test_actor_id)
        session.commit()
        return rows[0]

    def test_blocked_with_exact_count(
        self, one_pending, chart, session, period_close, company_id, test_actor_id,
    ):
        chart["cash"].current_balance = Decimal("999")
        session.commit()

        with pytest.raises(PendingTransactionsError) as exc_info:
            period_close.close_fiscal_period(company_id, 2024, 1, test_actor_id)

        assert exc_info.value.count == 1
        assert exc_info.value.company_id == str(company_id)
        # Nothing was recomputed or recorded
        assert chart["cash"].current_balance == Decimal("999")
        assert period_close.closed_periods(company_id) == []

    def test_blocked_close_is_logged(
        self, one_pending, period_close, company_id, test_actor_id, captured_logs,
    ):
        with pytest.raises(PendingTransactionsError):
            period_close.close_fiscal_period(company_id, 2024, 1, test_actor_id)
        events = [r for r in captured_logs() if r["message"] == "period_close_blocked"]
        assert events[0]["pending_count"] == 1

    def test_year_close_blocked_before_any_month(
        self, one_pending, period_close, company_id, test_actor_id,
    ):
        with pytest.raises(PendingTransactionsError):
            period_close.close_fiscal_year(company_id, 2024, test_actor_id)
        assert period_close.closed_periods(company_id) == []

    def test_unblocked_once_approved(
        self, one_pending, ledger_service, session, period_close, company_id, test_actor_id,
    ):
        ledger_service.approve(one_pending.id, test_actor_id)
        session.commit()
        result = period_close.close_fiscal_period(company_id, 2024, 1, test_actor_id)
        assert result.period_key == "2024-01"


class TestYearClose:
    @pytest.fixture
    def year_2023(self, chart, book):
        book(date(2023, 3, 1), (chart["cash"], 900, 0), (chart["sales"], 0, 900))
        book(date(2023, 8, 1), (chart["rent"], 400, 0), (chart["cash"], 0, 400))
        return chart

    def test_closes_every_month_and_resets(
        self, year_2023, period_close, company_id, test_actor_id,
    ):
        result = period_close.close_fiscal_year(company_id, 2023, test_actor_id)

        assert result.period_key == "2023-FY"
        assert [m.fiscal_month for m in result.months] == list(range(1, 13))
        assert result.nominal_accounts_reset == NOMINAL_ACCOUNTS_IN_CHART
        assert result.accounts_recomputed == 12 * ACCOUNTS_IN_CHART

        assert year_2023["sales"].current_balance == Decimal("0")
        assert year_2023["rent"].current_balance == Decimal("0")
        assert year_2023["sales"].balance_reset_on == date(2024, 1, 1)
        assert year_2023["cash"].current_balance == Decimal("500")
        assert len(period_close.closed_periods(company_id)) == 13

    def test_next_year_starts_from_zero(
        self, year_2023, book, period_close, balance_service, company_id, test_actor_id,
    ):
        period_close.close_fiscal_year(company_id, 2023, test_actor_id)
        book(date(2024, 1, 5), (year_2023["cash"], 60, 0), (year_2023["sales"], 0, 60))

        assert year_2023["sales"].current_balance == Decimal("60")
        assert balance_service.recompute_balance(year_2023["sales"]).balance == Decimal("60")

    def test_closed_year_rejects_posting(
        self, year_2023, ledger_service, period_close, company_id, test_actor_id, book,
    ):
        period_close.close_fiscal_year(company_id, 2023, test_actor_id)
        rows = book(
            date(2023, 12, 31), (year_2023["cash"], 5, 0), (year_2023["sales"], 0, 5), post=False,
        )
        ledger_service.approve(rows[0].id, test_actor_id)

        with pytest.raises(ClosedPeriodError) as exc_info:
            ledger_service.post(rows[0].id, test_actor_id)
        assert exc_info.value.period_key == "2023-FY"

    def test_rerun_is_idempotent(self, year_2023, period_close, company_id, test_actor_id):
        period_close.close_fiscal_year(company_id, 2023, test_actor_id)
        again = period_close.close_fiscal_year(company_id, 2023, test_actor_id)

        assert again.nominal_accounts_reset == 0
        assert year_2023["sales"].current_balance == Decimal("0")
        assert year_2023["cash"].current_balance == Decimal("500")
        assert len(period_close.closed_periods(company_id)) == 13

    def test_earlier_year_does_not_move_reset_back(
        self, year_2023, period_close, company_id, test_actor_id,
    ):
        period_close.close_fiscal_year(company_id, 2023, test_actor_id)
        result = period_close.close_fiscal_year(company_id, 2022, test_actor_id)

        assert result.nominal_accounts_reset == 0
        assert year_2023["sales"].balance_reset_on == date(2024, 1, 1)

    def test_year_record(self, year_2023, session, period_close, company_id, test_actor_id):
        period_close.close_fiscal_year(company_id, 2023, test_actor_id)
        record = session.execute(
            select(FiscalClose).where(
                FiscalClose.company_id == company_id,
                FiscalClose.period_key == "2023-FY",
            )
        ).scalar_one()
        assert record.fiscal_month is None
        assert record.fiscal_year == 2023


class TestFlushOnly:
    def test_caller_owns_the_commit(
        self, chart, session, deterministic_clock, company_id, test_actor_id,
    ):
        orchestrator = PeriodCloseOrchestrator(session, deterministic_clock, auto_commit=False)
        orchestrator.close_fiscal_period(company_id, 2024, 1, test_actor_id)
        assert orchestrator.is_closed(company_id, "2024-01")

        session.rollback()
        assert not orchestrator.is_closed(company_id, "2024-01")
