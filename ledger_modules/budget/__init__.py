"""
Budget Tracking Module (``ledger_modules.budget``).

Responsibility
--------------
Budgets per account and period, their approval lifecycle, actuals pulled
from the posted ledger, revisions with an immutable history, and
budget-vs-actual variance analysis.

Architecture position
---------------------
**Modules layer** -- config schema, frozen DTOs, ORM tables and a service
facade.  Reads kernel accounts and posted transactions; writes only its
own tables.

Audit relevance
---------------
Every amount change after creation leaves a ``BudgetRevisionModel`` row
that can never be updated or deleted.
"""

from ledger_modules.budget.config import BudgetConfig
from ledger_modules.budget.models import (
    TERMINAL_BUDGET_STATUSES,
    BudgetPeriod,
    BudgetStatus,
    BudgetType,
    BudgetVariance,
    BudgetVsActualReport,
    BudgetVsActualRow,
    budget_window,
    validate_period_number,
)
from ledger_modules.budget.service import BudgetService

__all__ = [
    "TERMINAL_BUDGET_STATUSES",
    "BudgetConfig",
    "BudgetPeriod",
    "BudgetService",
    "BudgetStatus",
    "BudgetType",
    "BudgetVariance",
    "BudgetVsActualReport",
    "BudgetVsActualRow",
    "budget_window",
    "validate_period_number",
]
