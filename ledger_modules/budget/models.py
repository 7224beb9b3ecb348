"""
Budget Domain Models (``ledger_modules.budget.models``).

Responsibility
--------------
Enums, frozen value objects and pure helpers for budget tracking: budget
periods and their date windows, budget types, the budget lifecycle, and the
variance / budget-vs-actual results handed back to callers.

Architecture position
---------------------
**Modules layer** -- pure data definitions with ZERO I/O.  Consumed by
``BudgetService``.

Invariants enforced
-------------------
* All models are ``frozen=True``.
* All monetary fields use ``Decimal`` -- NEVER ``float``.
* Period numbers are bounded by the budget period: 1-12 monthly, 1-4
  quarterly, exactly 1 annual.
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID

from ledger_kernel.domain.fiscal import month_range, quarter_range, year_range
from ledger_kernel.domain.labels import register_labels
from ledger_kernel.exceptions import InvalidBudgetPeriodError


class BudgetPeriod(str, Enum):
    ANNUAL = "annual"
    QUARTERLY = "quarterly"
    MONTHLY = "monthly"


class BudgetType(str, Enum):
    """What the budget plans; constrains the linked account's type."""

    REVENUE = "revenue"
    EXPENSE = "expense"
    CAPITAL = "capital"
    CASH_FLOW = "cash_flow"


class BudgetStatus(str, Enum):
    """Budget lifecycle: draft -> submitted -> approved -> active -> closed."""

    DRAFT = "draft"
    SUBMITTED = "submitted"
    APPROVED = "approved"
    ACTIVE = "active"
    CLOSED = "closed"
    CANCELLED = "cancelled"


TERMINAL_BUDGET_STATUSES = frozenset({BudgetStatus.CLOSED, BudgetStatus.CANCELLED})

_MAX_PERIOD_NUMBER = {
    BudgetPeriod.ANNUAL: 1,
    BudgetPeriod.QUARTERLY: 4,
    BudgetPeriod.MONTHLY: 12,
}


def validate_period_number(budget_period: BudgetPeriod, period_number: int) -> None:
    max_number = _MAX_PERIOD_NUMBER[budget_period]
    if not 1 <= period_number <= max_number:
        raise InvalidBudgetPeriodError(budget_period.value, period_number, max_number)


def budget_window(
    fiscal_year: int, budget_period: BudgetPeriod, period_number: int,
) -> tuple[date, date]:
    """Inclusive date range a budget covers."""
    validate_period_number(budget_period, period_number)
    if budget_period == BudgetPeriod.MONTHLY:
        return month_range(fiscal_year, period_number)
    if budget_period == BudgetPeriod.QUARTERLY:
        return quarter_range(fiscal_year, period_number)
    return year_range(fiscal_year)


@dataclass(frozen=True)
class BudgetVariance:
    """Budget vs actual figures for one budget."""

    budget_id: UUID
    budget_amount: Decimal
    current_actual: Decimal
    previous_actual: Decimal
    achievement_rate: Decimal
    variance_amount: Decimal
    variance_rate: Decimal
    is_over_budget: bool
    remaining_budget: Decimal
    over_budget_amount: Decimal
    progress_rate: Decimal


@dataclass(frozen=True)
class BudgetVsActualRow:
    budget_id: UUID
    account_id: UUID
    account_code: str
    account_name: str
    budget_type: BudgetType
    budget_period: BudgetPeriod
    period_number: int
    status: BudgetStatus
    variance: BudgetVariance


@dataclass(frozen=True)
class BudgetVsActualReport:
    company_id: UUID
    fiscal_year: int
    rows: tuple[BudgetVsActualRow, ...]
    total_budget: Decimal
    total_actual: Decimal
    total_variance: Decimal
    over_budget_count: int


register_labels({
    BudgetPeriod.ANNUAL: ("Annual", "연간"),
    BudgetPeriod.QUARTERLY: ("Quarterly", "분기"),
    BudgetPeriod.MONTHLY: ("Monthly", "월간"),
})
register_labels({
    BudgetType.REVENUE: ("Revenue budget", "수익예산"),
    BudgetType.EXPENSE: ("Expense budget", "비용예산"),
    BudgetType.CAPITAL: ("Capital budget", "자본예산"),
    BudgetType.CASH_FLOW: ("Cash flow budget", "현금흐름예산"),
})
register_labels({
    BudgetStatus.DRAFT: ("Draft", "임시저장"),
    BudgetStatus.SUBMITTED: ("Submitted", "제출"),
    BudgetStatus.APPROVED: ("Approved", "승인"),
    BudgetStatus.ACTIVE: ("Active", "활성"),
    BudgetStatus.CLOSED: ("Closed", "마감"),
    BudgetStatus.CANCELLED: ("Cancelled", "취소"),
})
