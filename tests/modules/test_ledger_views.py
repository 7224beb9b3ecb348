"""
Read-only ledger views: trial balance, general ledger and transaction
statistics.
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from ledger_kernel.exceptions import AccountNotFoundError, ValidationError
from ledger_kernel.models.account import AccountType

JAN_31 = date(2024, 1, 31)
FEB_1 = date(2024, 2, 1)
FEB_29 = date(2024, 2, 29)


@pytest.fixture
def activity(chart, book):
    book(date(2024, 1, 10), (chart["cash"], 1000, 0), (chart["sales"], 0, 1000))
    book(date(2024, 2, 3), (chart["cash"], 500, 0), (chart["sales"], 0, 500))
    book(date(2024, 2, 20), (chart["rent"], 200, 0), (chart["cash"], 0, 200))
    book(date(2024, 2, 21), (chart["cash"], 70, 0), (chart["sales"], 0, 70), post=False)
    return chart


class TestTrialBalance:
    def test_posted_activity_only(self, activity, reporting_service, company_id):
        report = reporting_service.trial_balance(company_id, date(2024, 1, 1), FEB_29)

        rows = {row.account_code: row for row in report.rows}
        assert set(rows) == {"101", "401", "502"}
        assert rows["101"].debit_total == Decimal("1500")
        assert rows["101"].credit_total == Decimal("200")
        assert rows["101"].balance == Decimal("1300")
        assert rows["401"].balance == Decimal("1500")
        assert rows["401"].account_type == AccountType.REVENUE
        assert report.total_debit == report.total_credit == Decimal("1700")
        assert report.is_balanced

    def test_window(self, activity, reporting_service, company_id):
        report = reporting_service.trial_balance(company_id, FEB_1, FEB_29)
        rows = {row.account_code: row for row in report.rows}
        assert rows["101"].debit_total == Decimal("500")
        assert report.total_debit == Decimal("700")

    def test_include_empty(self, activity, reporting_service, company_id):
        report = reporting_service.trial_balance(
            company_id, date(2024, 1, 1), FEB_29, include_empty=True,
        )
        codes = {row.account_code for row in report.rows}
        assert len(codes) == 12
        assert "1" not in codes
        assert report.is_balanced

    def test_reversed_window_rejected(self, chart, reporting_service, company_id):
        with pytest.raises(ValidationError):
            reporting_service.trial_balance(company_id, FEB_29, FEB_1)

    def test_logged(self, activity, reporting_service, company_id, captured_logs):
        reporting_service.trial_balance(company_id, date(2024, 1, 1), FEB_29)
        events = [r for r in captured_logs() if r["message"] == "trial_balance_generated"]
        assert events[0]["row_count"] == 3
        assert events[0]["is_balanced"] is True


class TestGeneralLedger:
    def test_running_balance(self, activity, reporting_service):
        report = reporting_service.general_ledger(activity["cash"].id, FEB_1, FEB_29)

        assert report.account_code == "101"
        assert report.opening_balance == Decimal("1000")
        assert [line.running_balance for line in report.lines] == [
            Decimal("1500"), Decimal("1300"),
        ]
        assert report.closing_balance == Decimal("1300")
        assert report.total_debit == Decimal("500")
        assert report.total_credit == Decimal("200")

    def test_credit_normal_account(self, activity, reporting_service):
        report = reporting_service.general_ledger(
            activity["sales"].id, date(2024, 1, 1), JAN_31,
        )
        assert report.opening_balance == Decimal("0")
        assert report.lines[0].credit_amount == Decimal("1000")
        assert report.closing_balance == Decimal("1000")

    def test_opening_balance_carried(
        self, chart, book, account_service, reporting_service, test_actor_id,
    ):
        account_service.set_opening_balance(chart["bank"].id, Decimal("250"), test_actor_id)
        book(date(2024, 1, 5), (chart["rent"], 50, 0), (chart["bank"], 0, 50))

        report = reporting_service.general_ledger(chart["bank"].id, FEB_1, FEB_29)
        assert report.opening_balance == Decimal("200")
        assert report.lines == ()
        assert report.closing_balance == Decimal("200")

    def test_unknown_account(self, chart, reporting_service):
        with pytest.raises(AccountNotFoundError):
            reporting_service.general_ledger(uuid4(), FEB_1, FEB_29)

    def test_reversed_window_rejected(self, chart, reporting_service):
        with pytest.raises(ValidationError):
            reporting_service.general_ledger(chart["cash"].id, FEB_29, FEB_1)


class TestTransactionStatistics:
    def test_counts_every_status(self, activity, reporting_service, company_id):
        stats = reporting_service.transaction_statistics(company_id, FEB_1, FEB_29)

        assert stats.total_count == 6
        assert stats.count_by_status == {"draft": 2, "posted": 4}
        assert stats.count_by_type == {"journal": 6}
        assert stats.total_debit == stats.total_credit == Decimal("770")
        assert stats.total_amount == Decimal("1540")
        assert stats.daily_counts == {"2024-02-03": 2, "2024-02-20": 2, "2024-02-21": 2}
        assert stats.daily_amounts["2024-02-20"] == Decimal("400")

    def test_empty_range(self, activity, reporting_service, company_id):
        stats = reporting_service.transaction_statistics(
            company_id, date(2023, 1, 1), date(2023, 12, 31),
        )
        assert stats.total_count == 0
        assert stats.total_amount == Decimal("0")
        assert stats.count_by_status == {}


class TestLedgerSelector:
    def test_posted_totals_by_account(self, activity, ledger_selector, company_id):
        totals = ledger_selector.posted_totals_by_account(company_id, None, JAN_31)
        assert totals[activity["cash"].id] == (Decimal("1000"), Decimal("0"))
        assert activity["rent"].id not in totals

    def test_balance_before(self, activity, ledger_selector):
        assert ledger_selector.balance_before(activity["cash"], FEB_1) == Decimal("1000")
        assert ledger_selector.balance_before(activity["cash"], date(2024, 3, 1)) == Decimal("1300")

    def test_pending_count(self, chart, book, ledger_service, ledger_selector, company_id, test_actor_id):
        rows = book(date(2024, 3, 1), (chart["cash"], 5, 0), (chart["sales"], 0, 5), post=False)
        assert ledger_selector.pending_count(company_id) == 0
        for row in rows:
            ledger_service.submit(row.id, test_actor_id)
        assert ledger_selector.pending_count(company_id) == 2
