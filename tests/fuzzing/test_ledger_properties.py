"""
Property-based tests for the ledger rules.

Boundaries fuzzed here:
- Journal balance: any split of a total into debit and credit lines
- Line amounts: exactly one positive side
- Natural balance sign conventions
- Variance and rate rounding
- Fiscal period derivation
- Balance sheet item tree: total assets equal total claims
- Trial balance stays balanced while the chart of accounts changes
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest
from hypothesis import HealthCheck, assume, given, settings
from hypothesis import strategies as st
from sqlalchemy import select

from ledger_kernel.domain.calculations import change_rate, percentage, variance
from ledger_kernel.domain.clock import DeterministicClock
from ledger_kernel.domain.dtos import JournalLineSpec
from ledger_kernel.domain.fiscal import derive_fiscal_period, month_range, quarter_range
from ledger_kernel.domain.rules import (
    check_journal_balance,
    natural_balance,
    validate_line_amounts,
)
from ledger_kernel.exceptions import (
    AccountHasChildrenError,
    InvalidLineAmountError,
    NotFoundError,
    UnbalancedJournalError,
    ValidationError,
)
from ledger_kernel.models.account import Account, AccountCategory, AccountType, NormalBalance
from ledger_kernel.models.transaction import Transaction, TransactionStatus
from ledger_kernel.selectors.ledger_selector import LedgerSelector
from ledger_kernel.services.account_service import AccountService
from ledger_kernel.services.ledger_service import LedgerService
from ledger_modules.reporting.config import ReportingConfig
from ledger_modules.reporting.models import AccountAmount
from ledger_modules.reporting.statements import build_balance_sheet

amounts = st.decimals(
    min_value=Decimal("0.01"),
    max_value=Decimal("999999999.99"),
    places=2,
    allow_nan=False,
    allow_infinity=False,
)


def _split(cents: int, parts: list[int]) -> list[Decimal]:
    """Split ``cents`` into positive amounts proportional to ``parts``."""
    weight = sum(parts)
    shares = [cents * p // weight for p in parts]
    shares[-1] += cents - sum(shares)
    return [Decimal(s) / 100 for s in shares]


class TestJournalBalance:
    # At least 1000.00 so every share of up to 8 weights of 1..50 is positive
    @given(
        cents=st.integers(100_000, 99_999_999_999),
        debit_parts=st.lists(st.integers(1, 50), min_size=1, max_size=8),
        credit_parts=st.lists(st.integers(1, 50), min_size=1, max_size=8),
    )
    def test_any_split_balances(self, cents, debit_parts, credit_parts):
        total = Decimal(cents) / 100
        debits = _split(cents, debit_parts)
        credits = _split(cents, credit_parts)

        lines = [(d, Decimal("0")) for d in debits] + [(Decimal("0"), c) for c in credits]
        assert check_journal_balance(lines) == (total, total)

    @given(debit=amounts, credit=amounts)
    def test_unequal_totals_rejected(self, debit, credit):
        assume(debit != credit)
        with pytest.raises(UnbalancedJournalError):
            check_journal_balance([(debit, Decimal("0")), (Decimal("0"), credit)])


class TestLineAmounts:
    @given(amount=amounts, is_debit=st.booleans())
    def test_one_sided_line_accepted(self, amount, is_debit):
        debit, credit = (amount, Decimal("0")) if is_debit else (Decimal("0"), amount)
        validate_line_amounts(1, debit, credit)

    @given(debit=amounts, credit=amounts)
    def test_two_sided_line_rejected(self, debit, credit):
        with pytest.raises(InvalidLineAmountError):
            validate_line_amounts(1, debit, credit)

    @given(amount=amounts, line_number=st.integers(1, 500))
    def test_negative_rejected_with_line_number(self, amount, line_number):
        with pytest.raises(InvalidLineAmountError) as exc_info:
            validate_line_amounts(line_number, -amount, Decimal("0"))
        assert exc_info.value.line_number == line_number


class TestNaturalBalance:
    @given(debit=amounts, credit=amounts)
    def test_sides_are_mirror_images(self, debit, credit):
        assert natural_balance(NormalBalance.DEBIT, debit, credit) == -natural_balance(
            NormalBalance.CREDIT, debit, credit,
        )
        assert natural_balance(NormalBalance.BOTH, debit, credit) == debit - credit


class TestRates:
    @given(actual=amounts, planned=amounts)
    def test_variance_identities(self, actual, planned):
        result = variance(actual, planned)
        assert result.variance_amount == actual - planned
        assert result.variance_rate == percentage(actual - planned, planned)
        assert result.achievement_rate == result.achievement_rate.quantize(Decimal("0.01"))
        # achievement - 100 and the variance rate differ by rounding at most
        assert abs((result.achievement_rate - 100) - result.variance_rate) <= Decimal("0.01")

    @given(actual=amounts)
    def test_zero_plan_gives_zero_rates(self, actual):
        result = variance(actual, Decimal("0"))
        assert result.achievement_rate == 0
        assert result.variance_rate == 0

    @given(current=amounts, previous=amounts)
    def test_change_rate_sign(self, current, previous):
        rate = change_rate(current, previous)
        if current > previous:
            assert rate >= 0
        elif current < previous:
            assert rate <= 0


class TestFiscalPeriods:
    @given(day=st.dates(min_value=date(1900, 1, 1), max_value=date(2999, 12, 31)))
    def test_date_falls_inside_its_month_and_quarter(self, day):
        period = derive_fiscal_period(day)
        start, end = month_range(period.year, period.month)
        assert start <= day <= end
        q_start, q_end = quarter_range(period.year, period.quarter)
        assert q_start <= day <= q_end
        assert period.key == f"{day.year:04d}-{day.month:02d}"


_POSITION_CATEGORIES = {
    AccountType.ASSET: [AccountCategory.CURRENT_ASSET, AccountCategory.FIXED_ASSET],
    AccountType.LIABILITY: [
        AccountCategory.CURRENT_LIABILITY, AccountCategory.LONG_TERM_LIABILITY,
    ],
    AccountType.EQUITY: [AccountCategory.CAPITAL],
}


@st.composite
def position_accounts(draw):
    accounts = []
    for index in range(draw(st.integers(1, 12))):
        account_type = draw(st.sampled_from(list(_POSITION_CATEGORIES)))
        accounts.append(AccountAmount(
            account_id=uuid4(),
            code=f"{index + 1:03d}",
            name=f"Account {index}",
            name_en=None,
            account_type=account_type,
            category=draw(st.sampled_from(_POSITION_CATEGORIES[account_type])),
            amount=draw(amounts),
        ))
    return accounts


class TestBalanceSheetTree:
    @settings(max_examples=50)
    @given(accounts=position_accounts())
    def test_assets_equal_claims_when_balanced(self, accounts):
        assets = sum(
            (a.amount for a in accounts if a.account_type == AccountType.ASSET), Decimal("0"),
        )
        claims = sum(
            (a.amount for a in accounts if a.account_type != AccountType.ASSET), Decimal("0"),
        )
        statement = build_balance_sheet(
            accounts, ReportingConfig(), unclosed_net_income=assets - claims,
        )
        lines = {line.item_code: line for line in statement.lines}
        assert lines["A.TOT"].current_amount == lines["LE.TOT"].current_amount == assets

    @settings(max_examples=50)
    @given(accounts=position_accounts())
    def test_parents_precede_children(self, accounts):
        seen = set()
        for line in build_balance_sheet(accounts, ReportingConfig()).lines:
            if line.parent_code is not None:
                assert line.parent_code in seen
            seen.add(line.item_code)


POSTING_DATE = date(2024, 3, 1)

_BASE_CHART = (
    ("10", AccountType.ASSET),
    ("20", AccountType.LIABILITY),
    ("40", AccountType.REVENUE),
    ("50", AccountType.EXPENSE),
)

# (operation, first account index, second account index, amount in cents)
ledger_operations = st.lists(
    st.tuples(
        st.sampled_from(["post", "draft", "add_child", "untrack", "deactivate", "delete"]),
        st.integers(0, 20),
        st.integers(0, 20),
        st.integers(1, 10_000_000),
    ),
    min_size=1,
    max_size=15,
)


class TestTrialBalanceUnderChartChanges:
    """
    Postings interleaved with chart edits: sub-accounts, untracking,
    deactivation and soft delete.  Whatever the chart does, every posted
    line sits on a leaf and the trial balance keeps debits equal to credits.
    """

    @settings(
        max_examples=50,
        deadline=None,
        suppress_health_check=[HealthCheck.too_slow, HealthCheck.function_scoped_fixture],
    )
    @given(operations=ledger_operations)
    def test_trial_balance_stays_balanced(self, session, test_actor_id, operations):
        company_id = uuid4()
        clock = DeterministicClock()
        accounts = AccountService(session, clock)
        ledger = LedgerService(session, clock)
        chart = [
            accounts.register_account(company_id, code, f"Account {code}", account_type, test_actor_id)
            for code, account_type in _BASE_CHART
        ]

        posted_total = Decimal("0")
        for serial, (operation, first, second, cents) in enumerate(operations):
            account = chart[first % len(chart)]
            other = chart[second % len(chart)]
            try:
                if operation in ("post", "draft"):
                    if account.id == other.id:
                        continue
                    amount = Decimal(cents) / 100
                    rows = ledger.create_journal_entry(
                        company_id,
                        [
                            JournalLineSpec.debit(account.id, POSTING_DATE, amount),
                            JournalLineSpec.credit(other.id, POSTING_DATE, amount),
                        ],
                        test_actor_id,
                    )
                    if operation == "post":
                        ledger.approve_journal(company_id, rows[0].journal_number, test_actor_id)
                        ledger.post_journal(company_id, rows[0].journal_number, test_actor_id)
                        posted_total += amount
                elif operation == "add_child":
                    chart.append(accounts.register_account(
                        company_id, f"9{serial:03d}", "Sub-account", account.account_type,
                        test_actor_id, parent_id=account.id,
                    ))
                elif operation == "untrack":
                    accounts.update_account(account.id, test_actor_id, track_balance=False)
                elif operation == "deactivate":
                    accounts.update_account(account.id, test_actor_id, is_active=False)
                else:
                    accounts.soft_delete_account(account.id, test_actor_id)
            except (ValidationError, NotFoundError, AccountHasChildrenError):
                # Rejected edits and postings leave the ledger untouched
                continue

        report = LedgerSelector(session).trial_balance(
            company_id, date(2024, 1, 1), date(2024, 12, 31),
        )
        assert report.is_balanced
        assert report.total_debit == report.total_credit == posted_total

        posted_targets = session.execute(
            select(Account)
            .join(Transaction, Transaction.account_id == Account.id)
            .where(
                Transaction.company_id == company_id,
                Transaction.status == TransactionStatus.POSTED,
            )
        ).scalars().unique()
        for target in posted_targets:
            assert target.is_leaf
            assert target.track_balance
            assert not target.is_deleted
