"""
Account balances: incremental updates on post agree with a full recompute
from posted history.
"""

from datetime import date
from decimal import Decimal

import pytest

from ledger_kernel.models.account import AccountType, NormalBalance


class TestApplyPosting:
    def test_negative_amount_rejected(self, chart, balance_service):
        with pytest.raises(ValueError):
            balance_service.apply_posting(chart["cash"], Decimal("-1"), is_debit=True)

    def test_zero_amount_is_noop(self, chart, balance_service):
        account = balance_service.apply_posting(chart["cash"], Decimal("0"), is_debit=True)
        assert account.debit_balance == Decimal("0")
        assert account.current_balance == Decimal("0")

    def test_credit_normal_account(self, chart, balance_service):
        balance_service.apply_posting(chart["payables"], Decimal("700"), is_debit=False)
        balance_service.apply_posting(chart["payables"], Decimal("200"), is_debit=True)
        assert chart["payables"].credit_balance == Decimal("700")
        assert chart["payables"].debit_balance == Decimal("200")
        assert chart["payables"].current_balance == Decimal("500")

    def test_both_sided_account_is_debit_positive(self, create_account, balance_service):
        suspense = create_account(
            "190", "Suspense", AccountType.ASSET, normal_balance=NormalBalance.BOTH,
        )
        balance_service.apply_posting(suspense, Decimal("40"), is_debit=False)
        assert suspense.current_balance == Decimal("-40")


class TestRecompute:
    def test_recompute_matches_incremental(self, chart, book, balance_service):
        book(date(2024, 1, 10), (chart["cash"], 1000, 0), (chart["sales"], 0, 1000))
        book(date(2024, 1, 20), (chart["rent"], 300, 0), (chart["cash"], 0, 300))
        book(date(2024, 2, 5), (chart["cash"], 50, 0), (chart["sales"], 0, 50))

        cached = chart["cash"].current_balance
        snapshot = balance_service.recompute_balance(chart["cash"], persist=True)
        assert snapshot.balance == cached == Decimal("750")
        assert snapshot.debit_total == Decimal("1050")
        assert snapshot.credit_total == Decimal("300")

    def test_recompute_repairs_drift(self, chart, book, session, balance_service):
        book(date(2024, 1, 10), (chart["cash"], 1000, 0), (chart["sales"], 0, 1000))
        chart["cash"].current_balance = Decimal("999999")
        chart["cash"].debit_balance = Decimal("1")
        session.flush()

        balance_service.recompute_balance(chart["cash"], persist=True)
        assert chart["cash"].current_balance == Decimal("1000")
        assert chart["cash"].debit_balance == Decimal("1000")

    def test_point_in_time(self, chart, book, balance_service):
        book(date(2024, 1, 10), (chart["cash"], 1000, 0), (chart["sales"], 0, 1000))
        book(date(2024, 3, 10), (chart["cash"], 500, 0), (chart["sales"], 0, 500))

        assert balance_service.account_balance(chart["cash"].id, as_of=date(2024, 1, 31)) == (
            Decimal("1000")
        )
        assert balance_service.account_balance(chart["cash"].id) == Decimal("1500")
        assert balance_service.account_balance(chart["cash"].id, as_of=date(2023, 12, 31)) == (
            Decimal("0")
        )

    def test_drafts_and_cancellations_excluded(
        self, chart, book, ledger_service, balance_service, test_actor_id,
    ):
        book(date(2024, 1, 10), (chart["cash"], 1000, 0), (chart["sales"], 0, 1000))
        draft = book(date(2024, 1, 11), (chart["cash"], 70, 0), (chart["sales"], 0, 70), post=False)
        ledger_service.cancel(draft[0].id, "Duplicate", test_actor_id)

        assert balance_service.recompute_balance(chart["cash"]).balance == Decimal("1000")

    def test_opening_balance_included(self, chart, book, account_service, balance_service, test_actor_id):
        account_service.set_opening_balance(chart["bank"].id, Decimal("5000"), test_actor_id)
        book(date(2024, 1, 10), (chart["rent"], 800, 0), (chart["bank"], 0, 800))

        snapshot = balance_service.recompute_balance(chart["bank"])
        assert snapshot.opening_balance == Decimal("5000")
        assert snapshot.balance == Decimal("4200")
        assert chart["bank"].current_balance == Decimal("4200")

    def test_bounded_window_cannot_persist(self, chart, balance_service):
        with pytest.raises(ValueError):
            balance_service.recompute_balance(
                chart["cash"], as_of=date(2024, 1, 31), persist=True,
            )

    def test_recompute_is_deterministic(self, chart, book, balance_service):
        book(date(2024, 1, 10), (chart["cash"], 123.45, 0), (chart["sales"], 0, 123.45))
        first = balance_service.recompute_balance(chart["cash"], as_of=date(2024, 6, 30))
        second = balance_service.recompute_balance(chart["cash"], as_of=date(2024, 6, 30))
        assert first == second


class TestNominalReset:
    def test_reset_zeroes_nominal_account(self, chart, book, balance_service):
        book(date(2023, 11, 10), (chart["cash"], 900, 0), (chart["sales"], 0, 900))
        balance_service.reset_nominal_balance(chart["sales"], date(2024, 1, 1))

        assert chart["sales"].balance_reset_on == date(2024, 1, 1)
        assert chart["sales"].current_balance == Decimal("0")
        assert chart["sales"].credit_balance == Decimal("0")

    def test_postings_after_reset_accumulate(self, chart, book, balance_service):
        book(date(2023, 11, 10), (chart["cash"], 900, 0), (chart["sales"], 0, 900))
        balance_service.reset_nominal_balance(chart["sales"], date(2024, 1, 1))
        book(date(2024, 1, 5), (chart["cash"], 40, 0), (chart["sales"], 0, 40))

        assert chart["sales"].current_balance == Decimal("40")
        snapshot = balance_service.recompute_balance(chart["sales"], persist=True)
        assert snapshot.balance == Decimal("40")

    def test_real_accounts_cannot_be_reset(self, chart, balance_service):
        with pytest.raises(ValueError):
            balance_service.reset_nominal_balance(chart["cash"], date(2024, 1, 1))
