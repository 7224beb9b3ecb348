"""
Bookkeeping rules -- pure validation and sign conventions.

Responsibility:
    Every structural rule the ledger enforces, as plain functions with no
    I/O: account code shape, hierarchy depth, the debit XOR credit line
    rule, the balanced-journal rule, normal balance sides, and the budget
    type to account type compatibility table.

Architecture position:
    Kernel > Domain.  Imported by services and by module services.  Raises
    the typed exceptions from ``ledger_kernel.exceptions``.

Invariants enforced:
    - Every line carries exactly one positive amount; the other is zero.
    - Sum of debits equals sum of credits for a journal entry.
    - Asset and expense accounts are debit-normal; liability, equity and
      revenue accounts are credit-normal.
"""

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import Decimal

from ledger_kernel.db.types import ZERO, to_decimal
from ledger_kernel.exceptions import (
    AccountLevelError,
    BudgetTypeMismatchError,
    InvalidAccountCodeError,
    InvalidLineAmountError,
    UnbalancedJournalError,
)
from ledger_kernel.models.account import Account, AccountType, NormalBalance


@dataclass(frozen=True)
class ChartPolicy:
    """Shape rules for the chart of accounts."""

    max_code_length: int = 20
    min_level: int = 1
    max_level: int = 10
    numeric_codes: bool = True

    def __post_init__(self):
        if self.max_code_length < 1:
            raise ValueError("max_code_length must be positive")
        if not 1 <= self.min_level <= self.max_level:
            raise ValueError("level range must satisfy 1 <= min_level <= max_level")

    def validate_code(self, code: str) -> None:
        if not code:
            raise InvalidAccountCodeError(code, "code is empty")
        if len(code) > self.max_code_length:
            raise InvalidAccountCodeError(
                code, f"longer than {self.max_code_length} characters",
            )
        # str.isdigit accepts superscripts and other unicode digits
        if self.numeric_codes and not (code.isascii() and code.isdigit()):
            raise InvalidAccountCodeError(code, "code must contain digits only")

    def validate_level(self, level: int) -> None:
        if not self.min_level <= level <= self.max_level:
            raise AccountLevelError(level, self.min_level, self.max_level)


_DEBIT_NORMAL_TYPES = frozenset({AccountType.ASSET, AccountType.EXPENSE})


def balance_side(account_type: AccountType) -> NormalBalance:
    """The side on which an account of ``account_type`` increases."""
    if account_type in _DEBIT_NORMAL_TYPES:
        return NormalBalance.DEBIT
    return NormalBalance.CREDIT


def natural_balance(
    normal_balance: NormalBalance, debit: Decimal, credit: Decimal,
) -> Decimal:
    """
    Signed balance from raw debit and credit totals.

    DEBIT-normal: debit - credit.  CREDIT-normal: credit - debit.
    BOTH is reported debit-positive.
    """
    if normal_balance == NormalBalance.CREDIT:
        return credit - debit
    return debit - credit


def effective_opening_balance(account: Account) -> Decimal:
    """
    Opening balance that still counts toward the running balance.

    A year-closed nominal account starts again from zero.
    """
    if account.is_nominal and account.balance_reset_on is not None:
        return ZERO
    return to_decimal(account.opening_balance)


def validate_line_amounts(line_number: int, debit: Decimal, credit: Decimal) -> None:
    """Exactly one of debit / credit is > 0 and neither is negative."""
    if debit < ZERO or credit < ZERO:
        raise InvalidLineAmountError(line_number, "amounts cannot be negative")
    if debit > ZERO and credit > ZERO:
        raise InvalidLineAmountError(line_number, "line has both a debit and a credit amount")
    if debit == ZERO and credit == ZERO:
        raise InvalidLineAmountError(line_number, "line has neither a debit nor a credit amount")


def check_journal_balance(
    amounts: Iterable[tuple[Decimal, Decimal]],
) -> tuple[Decimal, Decimal]:
    """
    Sum (debit, credit) pairs and require equal totals.

    Returns:
        (total_debit, total_credit)

    Raises:
        UnbalancedJournalError: totals differ.
    """
    total_debit = ZERO
    total_credit = ZERO
    for debit, credit in amounts:
        total_debit += debit
        total_credit += credit
    if total_debit != total_credit:
        raise UnbalancedJournalError(total_debit, total_credit)
    return total_debit, total_credit


# budget type value -> account types it may be linked to
BUDGET_ACCOUNT_TYPES: dict[str, frozenset[AccountType]] = {
    "revenue": frozenset({AccountType.REVENUE}),
    "expense": frozenset({AccountType.EXPENSE}),
    "capital": frozenset({AccountType.ASSET, AccountType.EQUITY}),
    "cash_flow": frozenset({AccountType.ASSET}),
}


def validate_budget_type_match(budget_type, account_type: AccountType) -> None:
    """
    Require the budget type to be compatible with the account type.

    ``budget_type`` is a string-valued enum member or its value.
    """
    key = getattr(budget_type, "value", budget_type)
    allowed = BUDGET_ACCOUNT_TYPES.get(key)
    if allowed is None or account_type not in allowed:
        raise BudgetTypeMismatchError(str(key), account_type.value)
