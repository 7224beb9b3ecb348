"""
Pure financial statement transformation functions.

These functions turn account amounts into statement totals, ratios and
item trees.  ZERO I/O.  ZERO side effects.

All monetary values are Decimal.  All inputs/outputs are frozen dataclasses.

Functions in this module follow the ledger_kernel/domain/ purity convention:
- No database access
- No clock access
- Deterministic: same inputs always produce same outputs
"""

from collections.abc import Iterable, Sequence
from datetime import date
from decimal import Decimal

from ledger_kernel.db.types import ZERO
from ledger_kernel.domain.calculations import percentage, ratio
from ledger_kernel.domain.labels import display_label
from ledger_kernel.models.account import AccountCategory, AccountType
from ledger_kernel.selectors.ledger_selector import TrialBalanceRow
from ledger_modules.reporting.config import ReportingConfig
from ledger_modules.reporting.models import (
    AccountAmount,
    FinancialRatios,
    ItemType,
    ReportType,
    Statement,
    StatementLine,
    StatementTotals,
)

# =========================================================================
# Helpers
# =========================================================================


def same_day_previous_year(day: date) -> date:
    """``day`` one year earlier; 29 February falls back to the 28th."""
    try:
        return day.replace(year=day.year - 1)
    except ValueError:
        return day.replace(year=day.year - 1, day=28)


def report_title(
    report_type: ReportType,
    fiscal_year: int,
    fiscal_period: str,
    entity_name: str | None = None,
) -> str:
    title = f"FY{fiscal_year} {fiscal_period} {display_label(report_type)}"
    if entity_name:
        return f"{entity_name} {title}"
    return title


def _total(accounts: Iterable[AccountAmount], previous: bool = False) -> Decimal:
    if previous:
        return sum((a.previous_amount for a in accounts), ZERO)
    return sum((a.amount for a in accounts), ZERO)


def _of_type(accounts: Sequence[AccountAmount], account_type: AccountType) -> list[AccountAmount]:
    return sorted(
        (a for a in accounts if a.account_type == account_type),
        key=lambda a: a.code,
    )


def _split(
    accounts: list[AccountAmount], category: AccountCategory,
) -> tuple[list[AccountAmount], list[AccountAmount]]:
    inside = [a for a in accounts if a.category == category]
    outside = [a for a in accounts if a.category != category]
    return inside, outside


def _composition(amount: Decimal, base: Decimal) -> Decimal:
    return percentage(amount, abs(base))


# =========================================================================
# Totals
# =========================================================================


def balance_sheet_totals(
    accounts: Sequence[AccountAmount],
    config: ReportingConfig,
) -> StatementTotals:
    """
    Balance sheet buckets from point-in-time account balances.

    Assets split on the CURRENT_ASSET category, liabilities on
    CURRENT_LIABILITY; anything else of that type is non-current.
    Revenue and expense accounts are ignored.
    """
    assets = _of_type(accounts, AccountType.ASSET)
    current_assets, non_current_assets = _split(assets, AccountCategory.CURRENT_ASSET)
    liabilities = _of_type(accounts, AccountType.LIABILITY)
    current_liabilities, non_current_liabilities = _split(
        liabilities, AccountCategory.CURRENT_LIABILITY,
    )
    equity = _of_type(accounts, AccountType.EQUITY)

    cash = _total(a for a in current_assets if config.is_cash_account(a.code))

    return StatementTotals(
        total_assets=_total(assets),
        current_assets=_total(current_assets),
        non_current_assets=_total(non_current_assets),
        cash_and_equivalents=cash,
        total_liabilities=_total(liabilities),
        current_liabilities=_total(current_liabilities),
        non_current_liabilities=_total(non_current_liabilities),
        total_equity=_total(equity),
    )


def income_statement_totals(accounts: Sequence[AccountAmount]) -> StatementTotals:
    """
    Income statement figures from period activity.

    operating_income = operating revenue - operating expenses
    net_income       = total revenue - total expenses
    No tax is modelled, so income_before_tax equals net_income.
    """
    revenue = _of_type(accounts, AccountType.REVENUE)
    expenses = _of_type(accounts, AccountType.EXPENSE)
    operating_revenue = _total(a for a in revenue if a.category == AccountCategory.OPERATING_REVENUE)
    operating_expenses = _total(
        a for a in expenses if a.category == AccountCategory.OPERATING_EXPENSE
    )
    total_revenue = _total(revenue)
    total_expenses = _total(expenses)
    net_income = total_revenue - total_expenses

    return StatementTotals(
        total_revenue=total_revenue,
        operating_revenue=operating_revenue,
        total_expenses=total_expenses,
        operating_expenses=operating_expenses,
        operating_income=operating_revenue - operating_expenses,
        income_before_tax=net_income,
        net_income=net_income,
    )


def financial_ratios(
    balance: StatementTotals,
    income: StatementTotals | None = None,
) -> FinancialRatios:
    """
    Ratios from balance sheet totals and income statement totals.

    When ``income`` is omitted the income figures come from ``balance``
    itself, so a single report's own totals can be analysed.
    """
    income = income if income is not None else balance
    return FinancialRatios(
        current_ratio=ratio(balance.current_assets, balance.current_liabilities),
        debt_ratio=percentage(balance.total_liabilities, balance.total_assets),
        equity_ratio=percentage(balance.total_equity, balance.total_assets),
        roa=percentage(income.net_income, balance.total_assets),
        roe=percentage(income.net_income, balance.total_equity),
        gross_margin=percentage(income.operating_income, income.total_revenue),
        net_margin=percentage(income.net_income, income.total_revenue),
    )


# =========================================================================
# Item trees
# =========================================================================


class _LineBuilder:
    """Accumulates StatementLines in presentation order."""

    def __init__(self, config: ReportingConfig):
        self._config = config
        self.lines: list[StatementLine] = []

    def add(self, line: StatementLine) -> None:
        self.lines.append(line)

    def section(self, code: str, name: str, level: int = 1, parent: str | None = None) -> None:
        self.add(StatementLine(
            item_code=code,
            item_name=name,
            item_type=ItemType.HEADER,
            item_level=level,
            parent_code=parent,
            is_bold=True,
        ))

    def accounts(
        self,
        accounts: Sequence[AccountAmount],
        parent: str,
        level: int,
        base: Decimal,
    ) -> None:
        for account in accounts:
            if (
                not self._config.include_zero_balances
                and account.amount == ZERO
                and account.previous_amount == ZERO
            ):
                continue
            self.add(StatementLine(
                item_code=account.code,
                item_name=account.name,
                item_name_en=account.name_en,
                item_type=ItemType.ACCOUNT,
                item_level=level,
                current_amount=account.amount,
                previous_amount=account.previous_amount,
                composition_ratio=_composition(account.amount, base),
                parent_code=parent,
                account_id=account.account_id,
            ))

    def summary(
        self,
        code: str,
        name: str,
        item_type: ItemType,
        current: Decimal,
        previous: Decimal,
        base: Decimal,
        level: int = 1,
        parent: str | None = None,
        formula: str | None = None,
    ) -> None:
        self.add(StatementLine(
            item_code=code,
            item_name=name,
            item_type=item_type,
            item_level=level,
            current_amount=current,
            previous_amount=previous,
            composition_ratio=_composition(current, base),
            parent_code=parent,
            calculation_formula=formula,
            is_bold=item_type in (ItemType.TOTAL, ItemType.CALCULATED),
        ))

    def grouped(
        self,
        code: str,
        name: str,
        accounts: Sequence[AccountAmount],
        parent: str,
        base: Decimal,
    ) -> None:
        """A SUBTOTAL line followed by its account lines."""
        self.summary(
            code, name, ItemType.SUBTOTAL,
            _total(accounts), _total(accounts, previous=True), base,
            level=2, parent=parent,
        )
        self.accounts(accounts, parent=code, level=3, base=base)


def build_balance_sheet(
    accounts: Sequence[AccountAmount],
    config: ReportingConfig,
    unclosed_net_income: Decimal = ZERO,
    previous_unclosed_net_income: Decimal = ZERO,
) -> Statement:
    """
    Classified balance sheet.

    Current-year income not yet closed into equity is shown as a
    CALCULATED line under equity so that total assets equal total
    liabilities and equity.  ``total_equity`` in the totals covers equity
    accounts only.
    """
    totals = balance_sheet_totals(accounts, config)
    assets = _of_type(accounts, AccountType.ASSET)
    current_assets, non_current_assets = _split(assets, AccountCategory.CURRENT_ASSET)
    liabilities = _of_type(accounts, AccountType.LIABILITY)
    current_liabilities, non_current_liabilities = _split(
        liabilities, AccountCategory.CURRENT_LIABILITY,
    )
    equity = _of_type(accounts, AccountType.EQUITY)

    assets_base = totals.total_assets
    claims = totals.total_liabilities + totals.total_equity + unclosed_net_income
    previous_claims = (
        _total(liabilities, previous=True)
        + _total(equity, previous=True)
        + previous_unclosed_net_income
    )

    b = _LineBuilder(config)
    b.section("A", "Assets")
    b.grouped("A.CUR", "Current assets", current_assets, "A", assets_base)
    b.grouped("A.NCUR", "Non-current assets", non_current_assets, "A", assets_base)
    b.summary(
        "A.TOT", "Total assets", ItemType.TOTAL,
        totals.total_assets, _total(assets, previous=True), assets_base,
        formula="A.CUR + A.NCUR",
    )

    b.section("L", "Liabilities")
    b.grouped("L.CUR", "Current liabilities", current_liabilities, "L", claims)
    b.grouped("L.NCUR", "Non-current liabilities", non_current_liabilities, "L", claims)
    b.summary(
        "L.TOT", "Total liabilities", ItemType.TOTAL,
        totals.total_liabilities, _total(liabilities, previous=True), claims,
        formula="L.CUR + L.NCUR",
    )

    b.section("E", "Equity")
    b.accounts(equity, parent="E", level=2, base=claims)
    if unclosed_net_income != ZERO or previous_unclosed_net_income != ZERO:
        b.summary(
            "E.NI", "Current year net income", ItemType.CALCULATED,
            unclosed_net_income, previous_unclosed_net_income, claims,
            level=2, parent="E", formula="revenue - expenses",
        )
    b.summary(
        "E.TOT", "Total equity", ItemType.TOTAL,
        totals.total_equity + unclosed_net_income,
        _total(equity, previous=True) + previous_unclosed_net_income,
        claims,
    )
    b.summary(
        "LE.TOT", "Total liabilities and equity", ItemType.TOTAL,
        claims, previous_claims, claims, formula="L.TOT + E.TOT",
    )
    return Statement(totals=totals, lines=tuple(b.lines))


def build_income_statement(
    accounts: Sequence[AccountAmount],
    config: ReportingConfig,
) -> Statement:
    """Income statement split into operating and non-operating sections."""
    totals = income_statement_totals(accounts)
    revenue = _of_type(accounts, AccountType.REVENUE)
    operating_revenue, other_revenue = _split(revenue, AccountCategory.OPERATING_REVENUE)
    expenses = _of_type(accounts, AccountType.EXPENSE)
    operating_expenses, other_expenses = _split(expenses, AccountCategory.OPERATING_EXPENSE)

    base = totals.total_revenue
    previous_revenue = _total(revenue, previous=True)
    previous_expenses = _total(expenses, previous=True)
    previous_operating_income = (
        _total(operating_revenue, previous=True) - _total(operating_expenses, previous=True)
    )
    previous_net_income = previous_revenue - previous_expenses

    b = _LineBuilder(config)
    b.section("R", "Revenue")
    b.grouped("R.OP", "Operating revenue", operating_revenue, "R", base)
    b.grouped("R.NOP", "Non-operating revenue", other_revenue, "R", base)
    b.summary(
        "R.TOT", "Total revenue", ItemType.TOTAL,
        totals.total_revenue, previous_revenue, base, formula="R.OP + R.NOP",
    )

    b.section("X", "Expenses")
    b.grouped("X.OP", "Operating expenses", operating_expenses, "X", base)
    b.grouped("X.NOP", "Non-operating expenses", other_expenses, "X", base)
    b.summary(
        "X.TOT", "Total expenses", ItemType.TOTAL,
        totals.total_expenses, previous_expenses, base, formula="X.OP + X.NOP",
    )

    b.summary(
        "OI", "Operating income", ItemType.CALCULATED,
        totals.operating_income, previous_operating_income, base, formula="R.OP - X.OP",
    )
    b.summary(
        "IBT", "Income before tax", ItemType.CALCULATED,
        totals.income_before_tax, previous_net_income, base, formula="R.TOT - X.TOT",
    )
    b.summary(
        "NI", "Net income", ItemType.CALCULATED,
        totals.net_income, previous_net_income, base, formula="R.TOT - X.TOT",
    )
    return Statement(totals=totals, lines=tuple(b.lines))


def build_trial_balance(
    rows: Sequence[TrialBalanceRow],
    config: ReportingConfig,
) -> Statement:
    """
    Trial balance lines: one ACCOUNT line per row carrying its natural
    balance, then TOTAL lines for the debit and credit columns.
    """
    total_debit = sum((r.debit_total for r in rows), ZERO)
    total_credit = sum((r.credit_total for r in rows), ZERO)

    b = _LineBuilder(config)
    for row in rows:
        b.add(StatementLine(
            item_code=row.account_code,
            item_name=row.account_name,
            item_type=ItemType.ACCOUNT,
            item_level=1,
            current_amount=row.balance,
            account_id=row.account_id,
        ))
    b.summary("TB.DR", "Total debits", ItemType.TOTAL, total_debit, ZERO, ZERO)
    b.summary("TB.CR", "Total credits", ItemType.TOTAL, total_credit, ZERO, ZERO)
    return Statement(totals=StatementTotals(), lines=tuple(b.lines))
