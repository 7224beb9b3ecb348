"""
Pure domain helpers: calculations, fiscal buckets, numbering, chart shape
rules, sign conventions and the clock.

No database; every function here is deterministic.
"""

from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

import pytest

from ledger_kernel.domain.calculations import change_rate, percentage, ratio, variance
from ledger_kernel.domain.clock import DeterministicClock
from ledger_kernel.domain.fiscal import (
    derive_fiscal_period,
    month_range,
    quarter_range,
    year_range,
)
from ledger_kernel.domain.numbering import NumberingPolicy
from ledger_kernel.domain.rules import (
    ChartPolicy,
    balance_side,
    check_journal_balance,
    natural_balance,
    validate_budget_type_match,
    validate_line_amounts,
)
from ledger_kernel.exceptions import (
    AccountLevelError,
    BudgetTypeMismatchError,
    InvalidAccountCodeError,
    InvalidLineAmountError,
    UnbalancedJournalError,
    ValidationError,
)
from ledger_kernel.models.account import AccountType, NormalBalance
from ledger_kernel.models.transaction import TransactionType


class TestCalculations:
    """Ratio math: 4 internal places, HALF_UP to 2, zero denominator -> 0."""

    def test_ratio_rounds_to_two_places(self):
        assert ratio(Decimal("1"), Decimal("3")) == Decimal("0.33")

    def test_percentage(self):
        assert percentage(Decimal("1200000"), Decimal("1000000")) == Decimal("120.00")
        assert percentage(Decimal("2"), Decimal("3")) == Decimal("66.67")

    def test_zero_denominator_yields_zero(self):
        assert ratio(Decimal("5"), Decimal("0")) == Decimal("0")
        assert percentage(Decimal("5"), Decimal("0")) == Decimal("0")

    def test_internal_precision_applied_before_display_rounding(self):
        """0.00495 -> 0.0050 at 4 places -> 0.01 at 2 places."""
        assert percentage(Decimal("495"), Decimal("10000000")) == Decimal("0.01")

    def test_results_carry_two_decimal_places(self):
        assert percentage(Decimal("1"), Decimal("4")).as_tuple().exponent == -2

    def test_change_rate_uses_absolute_prior_amount(self):
        assert change_rate(Decimal("120"), Decimal("100")) == Decimal("20.00")
        assert change_rate(Decimal("80"), Decimal("-100")) == Decimal("180.00")
        assert change_rate(Decimal("50"), Decimal("0")) == Decimal("0")

    def test_variance_over_budget(self):
        result = variance(Decimal("1200000"), Decimal("1000000"))
        assert result.achievement_rate == Decimal("120.00")
        assert result.variance_amount == Decimal("200000")
        assert result.variance_rate == Decimal("20.00")

    def test_variance_with_zero_plan(self):
        result = variance(Decimal("5"), Decimal("0"))
        assert result.achievement_rate == Decimal("0")
        assert result.variance_amount == Decimal("5")
        assert result.variance_rate == Decimal("0")


class TestFiscal:
    def test_derive_fiscal_period(self):
        period = derive_fiscal_period(date(2024, 5, 15))
        assert (period.year, period.month, period.quarter) == (2024, 5, 2)
        assert period.key == "2024-05"

    @pytest.mark.parametrize(
        "month, quarter",
        [(1, 1), (3, 1), (4, 2), (6, 2), (7, 3), (9, 3), (10, 4), (12, 4)],
    )
    def test_quarter_boundaries(self, month, quarter):
        assert derive_fiscal_period(date(2024, month, 1)).quarter == quarter

    def test_month_range_handles_leap_february(self):
        assert month_range(2024, 2) == (date(2024, 2, 1), date(2024, 2, 29))
        assert month_range(2023, 2) == (date(2023, 2, 1), date(2023, 2, 28))

    def test_quarter_and_year_ranges(self):
        assert quarter_range(2024, 4) == (date(2024, 10, 1), date(2024, 12, 31))
        assert year_range(2024) == (date(2024, 1, 1), date(2024, 12, 31))

    def test_out_of_range_buckets_rejected(self):
        with pytest.raises(ValueError):
            month_range(2024, 13)
        with pytest.raises(ValueError):
            quarter_range(2024, 0)


class TestNumberingPolicy:
    """Transaction number formatting."""

    def test_first_entry_of_day_has_no_ordinal(self):
        policy = NumberingPolicy()
        assert policy.base_number("JE", date(2024, 1, 1), 1) == "JE20240101"

    def test_later_entries_carry_padded_ordinal(self):
        policy = NumberingPolicy()
        assert policy.base_number("JE", date(2024, 1, 1), 2) == "JE202401010002"
        assert policy.base_number("JE", date(2024, 1, 1), 12345) == "JE2024010112345"

    def test_line_numbers(self):
        policy = NumberingPolicy()
        assert policy.line_numbers("JE20240101", 1) == ["JE20240101"]
        assert policy.line_numbers("JE20240101", 2) == ["JE20240101-1", "JE20240101-2"]

    def test_reversal_number(self):
        assert NumberingPolicy().reversal_number("AJ20240101") == "AJ20240101-REV"

    def test_default_prefixes(self):
        policy = NumberingPolicy()
        expected = {
            TransactionType.JOURNAL: "JE",
            TransactionType.SALES: "SL",
            TransactionType.PURCHASE: "PU",
            TransactionType.CASH_RECEIPT: "CR",
            TransactionType.CASH_PAYMENT: "CP",
            TransactionType.BANK_RECEIPT: "BR",
            TransactionType.BANK_PAYMENT: "BP",
            TransactionType.ADJUSTMENT: "AJ",
            TransactionType.CLOSING: "CL",
        }
        for transaction_type, prefix in expected.items():
            assert policy.prefix_for(transaction_type) == prefix

    def test_every_type_needs_a_prefix(self):
        with pytest.raises(ValueError, match="sales"):
            NumberingPolicy(prefixes={TransactionType.JOURNAL: "JE"})

    def test_sequence_width_must_be_positive(self):
        with pytest.raises(ValueError):
            NumberingPolicy(sequence_width=0)


class TestChartPolicy:
    def test_numeric_code_accepted(self):
        ChartPolicy().validate_code("1010")
        ChartPolicy().validate_code("1" * 20)

    @pytest.mark.parametrize("code", ["", "10A", "1" * 21, "١٢٣", "10 1"])
    def test_malformed_codes_rejected(self, code):
        with pytest.raises(InvalidAccountCodeError):
            ChartPolicy().validate_code(code)

    def test_non_numeric_codes_allowed_when_configured(self):
        ChartPolicy(numeric_codes=False).validate_code("CASH")

    def test_level_range(self):
        policy = ChartPolicy()
        policy.validate_level(1)
        policy.validate_level(10)
        with pytest.raises(AccountLevelError) as exc_info:
            policy.validate_level(11)
        assert exc_info.value.level == 11
        assert exc_info.value.code == "ACCOUNT_LEVEL_OUT_OF_RANGE"

    def test_invalid_policy_rejected(self):
        with pytest.raises(ValueError):
            ChartPolicy(min_level=0)
        with pytest.raises(ValueError):
            ChartPolicy(max_code_length=0)


class TestSignConventions:
    @pytest.mark.parametrize(
        "account_type, side",
        [
            (AccountType.ASSET, NormalBalance.DEBIT),
            (AccountType.EXPENSE, NormalBalance.DEBIT),
            (AccountType.LIABILITY, NormalBalance.CREDIT),
            (AccountType.EQUITY, NormalBalance.CREDIT),
            (AccountType.REVENUE, NormalBalance.CREDIT),
        ],
    )
    def test_balance_side(self, account_type, side):
        assert balance_side(account_type) == side

    def test_natural_balance(self):
        debit, credit = Decimal("100"), Decimal("300")
        assert natural_balance(NormalBalance.CREDIT, debit, credit) == Decimal("200")
        assert natural_balance(NormalBalance.DEBIT, debit, credit) == Decimal("-200")
        # BOTH is reported debit-positive
        assert natural_balance(NormalBalance.BOTH, debit, credit) == Decimal("-200")


class TestLineRules:
    """Debit XOR credit, and balanced journals."""

    def test_valid_lines(self):
        validate_line_amounts(1, Decimal("10"), Decimal("0"))
        validate_line_amounts(2, Decimal("0"), Decimal("10"))

    @pytest.mark.parametrize(
        "debit, credit",
        [("10", "10"), ("0", "0"), ("-5", "0"), ("0", "-5")],
    )
    def test_invalid_lines(self, debit, credit):
        with pytest.raises(InvalidLineAmountError) as exc_info:
            validate_line_amounts(3, Decimal(debit), Decimal(credit))
        assert exc_info.value.line_number == 3
        assert isinstance(exc_info.value, ValidationError)

    def test_balanced_journal_returns_totals(self):
        totals = check_journal_balance([
            (Decimal("600"), Decimal("0")),
            (Decimal("400"), Decimal("0")),
            (Decimal("0"), Decimal("1000")),
        ])
        assert totals == (Decimal("1000"), Decimal("1000"))

    def test_unbalanced_journal_rejected(self):
        with pytest.raises(UnbalancedJournalError) as exc_info:
            check_journal_balance([(Decimal("1000"), Decimal("0")), (Decimal("0"), Decimal("900"))])
        assert exc_info.value.total_debit == Decimal("1000")
        assert exc_info.value.total_credit == Decimal("900")


class TestBudgetTypeMatch:
    @pytest.mark.parametrize(
        "budget_type, account_type",
        [
            ("revenue", AccountType.REVENUE),
            ("expense", AccountType.EXPENSE),
            ("capital", AccountType.ASSET),
            ("capital", AccountType.EQUITY),
            ("cash_flow", AccountType.ASSET),
        ],
    )
    def test_compatible(self, budget_type, account_type):
        validate_budget_type_match(budget_type, account_type)

    @pytest.mark.parametrize(
        "budget_type, account_type",
        [
            ("revenue", AccountType.EXPENSE),
            ("expense", AccountType.ASSET),
            ("capital", AccountType.LIABILITY),
            ("cash_flow", AccountType.REVENUE),
            ("unknown", AccountType.ASSET),
        ],
    )
    def test_incompatible(self, budget_type, account_type):
        with pytest.raises(BudgetTypeMismatchError):
            validate_budget_type_match(budget_type, account_type)


class TestDeterministicClock:
    def test_default_time(self):
        clock = DeterministicClock()
        assert clock.now() == datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)
        assert clock.today() == date(2024, 1, 1)

    def test_now_is_stable_until_advanced(self):
        clock = DeterministicClock()
        first = clock.now()
        assert clock.now() == first
        clock.advance(30)
        assert clock.now() == first + timedelta(seconds=30)
        assert clock.tick() == first + timedelta(seconds=31)

    def test_set_time_resets_advance(self):
        clock = DeterministicClock()
        clock.advance(100)
        target = datetime(2025, 6, 30, tzinfo=timezone.utc)
        clock.set_time(target)
        assert clock.now() == target
