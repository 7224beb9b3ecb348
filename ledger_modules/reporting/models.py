"""
Financial Reporting Domain Models (``ledger_modules.reporting.models``).

Responsibility
--------------
Enums and frozen value objects for financial reports: report types and
their lifecycle, statement item kinds, the aggregate totals of a
statement, derived ratios, balance verification and the item lines a
statement is built from.

Architecture position
---------------------
**Modules layer** -- pure data definitions with ZERO I/O.  Consumed by
``statements.py`` and ``ReportingService``.

Invariants enforced
-------------------
* All models are ``frozen=True``.
* All monetary fields use ``Decimal`` -- NEVER ``float``.
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID

from ledger_kernel.db.types import ZERO
from ledger_kernel.domain.labels import register_labels
from ledger_kernel.models.account import AccountCategory, AccountType

# =========================================================================
# Enums
# =========================================================================


class ReportType(str, Enum):
    """Types of financial reports."""

    BALANCE_SHEET = "balance_sheet"
    INCOME_STATEMENT = "income_statement"
    CASH_FLOW_STATEMENT = "cash_flow_statement"
    EQUITY_STATEMENT = "equity_statement"
    TRIAL_BALANCE = "trial_balance"
    GENERAL_LEDGER = "general_ledger"
    BUDGET_REPORT = "budget_report"
    VARIANCE_ANALYSIS = "variance_analysis"
    AGING_REPORT = "aging_report"
    TAX_REPORT = "tax_report"


# Report types generate_statement can build
GENERATABLE_REPORT_TYPES = frozenset({
    ReportType.BALANCE_SHEET,
    ReportType.INCOME_STATEMENT,
    ReportType.TRIAL_BALANCE,
})


class ReportStatus(str, Enum):
    """Report lifecycle: draft -> generated -> reviewed -> approved -> published."""

    DRAFT = "draft"
    GENERATED = "generated"
    REVIEWED = "reviewed"
    APPROVED = "approved"
    PUBLISHED = "published"


# A report in one of these states is frozen: it can no longer be regenerated
LOCKED_REPORT_STATUSES = frozenset({ReportStatus.APPROVED, ReportStatus.PUBLISHED})


class ItemType(str, Enum):
    ACCOUNT = "account"
    SUBTOTAL = "subtotal"
    TOTAL = "total"
    HEADER = "header"
    SEPARATOR = "separator"
    CALCULATED = "calculated"


# =========================================================================
# Statement inputs and outputs
# =========================================================================


@dataclass(frozen=True)
class AccountAmount:
    """
    One account's amount for a statement, with the metadata needed to
    classify it.

    The bridge between the ORM layer and the pure functions in
    ``statements.py``: the service converts Account rows and their
    balances into these before building anything.
    """

    account_id: UUID
    code: str
    name: str
    name_en: str | None
    account_type: AccountType
    category: AccountCategory | None
    amount: Decimal
    previous_amount: Decimal = ZERO


@dataclass(frozen=True)
class StatementTotals:
    """Aggregate figures stored on a generated report."""

    total_assets: Decimal = ZERO
    current_assets: Decimal = ZERO
    non_current_assets: Decimal = ZERO
    cash_and_equivalents: Decimal = ZERO
    total_liabilities: Decimal = ZERO
    current_liabilities: Decimal = ZERO
    non_current_liabilities: Decimal = ZERO
    total_equity: Decimal = ZERO
    total_revenue: Decimal = ZERO
    operating_revenue: Decimal = ZERO
    total_expenses: Decimal = ZERO
    operating_expenses: Decimal = ZERO
    operating_income: Decimal = ZERO
    income_before_tax: Decimal = ZERO
    net_income: Decimal = ZERO


@dataclass(frozen=True)
class FinancialRatios:
    """
    Ratios derived from statement totals.

    current_ratio is a plain ratio; every other figure is a percentage.
    A zero denominator yields zero.
    """

    current_ratio: Decimal
    debt_ratio: Decimal
    equity_ratio: Decimal
    roa: Decimal
    roe: Decimal
    gross_margin: Decimal
    net_margin: Decimal


@dataclass(frozen=True)
class BalanceVerification:
    """Accounting equation check: assets = liabilities + equity + unclosed income."""

    company_id: UUID
    as_of: date
    total_assets: Decimal
    total_liabilities: Decimal
    total_equity: Decimal
    unclosed_net_income: Decimal

    @property
    def difference(self) -> Decimal:
        return self.total_assets - (
            self.total_liabilities + self.total_equity + self.unclosed_net_income
        )

    @property
    def is_balanced(self) -> bool:
        return self.difference == ZERO


@dataclass(frozen=True)
class StatementLine:
    """
    One line of a statement's item tree, before persistence.

    ``parent_code`` refers to the ``item_code`` of an earlier line.
    """

    item_code: str
    item_name: str
    item_type: ItemType
    item_level: int
    current_amount: Decimal = ZERO
    previous_amount: Decimal = ZERO
    composition_ratio: Decimal = ZERO
    parent_code: str | None = None
    account_id: UUID | None = None
    item_name_en: str | None = None
    calculation_formula: str | None = None
    is_bold: bool = False

    @property
    def change_amount(self) -> Decimal:
        return self.current_amount - self.previous_amount


@dataclass(frozen=True)
class Statement:
    """Totals plus item lines: everything a generated report stores."""

    totals: StatementTotals
    lines: tuple[StatementLine, ...]


register_labels({
    ReportType.BALANCE_SHEET: ("Balance Sheet", "재무상태표"),
    ReportType.INCOME_STATEMENT: ("Income Statement", "손익계산서"),
    ReportType.CASH_FLOW_STATEMENT: ("Cash Flow Statement", "현금흐름표"),
    ReportType.EQUITY_STATEMENT: ("Statement of Changes in Equity", "자본변동표"),
    ReportType.TRIAL_BALANCE: ("Trial Balance", "시산표"),
    ReportType.GENERAL_LEDGER: ("General Ledger", "총계정원장"),
    ReportType.BUDGET_REPORT: ("Budget Report", "예산보고서"),
    ReportType.VARIANCE_ANALYSIS: ("Variance Analysis", "차이분석표"),
    ReportType.AGING_REPORT: ("Aging Report", "연령분석표"),
    ReportType.TAX_REPORT: ("Tax Report", "세무보고서"),
})
register_labels({
    ReportStatus.DRAFT: ("Draft", "임시저장"),
    ReportStatus.GENERATED: ("Generated", "생성완료"),
    ReportStatus.REVIEWED: ("Reviewed", "검토완료"),
    ReportStatus.APPROVED: ("Approved", "승인완료"),
    ReportStatus.PUBLISHED: ("Published", "공시완료"),
})
register_labels({
    ItemType.ACCOUNT: ("Account", "계정과목"),
    ItemType.SUBTOTAL: ("Subtotal", "소계"),
    ItemType.TOTAL: ("Total", "합계"),
    ItemType.HEADER: ("Header", "제목"),
    ItemType.SEPARATOR: ("Separator", "구분선"),
    ItemType.CALCULATED: ("Calculated", "계산항목"),
})
