"""
Financial Reporting Module (``ledger_modules.reporting``).

Responsibility
--------------
Trial balance and general ledger views, generated financial statement
snapshots with a review / approval / publication lifecycle, the
accounting-equation check, financial ratios and transaction statistics.

Architecture position
---------------------
**Modules layer** -- config schema, frozen DTOs, pure statement functions,
ORM snapshot tables and a service facade over the kernel selectors.
"""

from ledger_modules.reporting.config import ReportingConfig
from ledger_modules.reporting.models import (
    GENERATABLE_REPORT_TYPES,
    LOCKED_REPORT_STATUSES,
    AccountAmount,
    BalanceVerification,
    FinancialRatios,
    ItemType,
    ReportStatus,
    ReportType,
    Statement,
    StatementLine,
    StatementTotals,
)
from ledger_modules.reporting.service import ReportingService
from ledger_modules.reporting.statements import (
    balance_sheet_totals,
    build_balance_sheet,
    build_income_statement,
    build_trial_balance,
    financial_ratios,
    income_statement_totals,
    report_title,
)

__all__ = [
    "GENERATABLE_REPORT_TYPES",
    "LOCKED_REPORT_STATUSES",
    "AccountAmount",
    "BalanceVerification",
    "FinancialRatios",
    "ItemType",
    "ReportStatus",
    "ReportType",
    "ReportingConfig",
    "ReportingService",
    "Statement",
    "StatementLine",
    "StatementTotals",
    "balance_sheet_totals",
    "build_balance_sheet",
    "build_income_statement",
    "build_trial_balance",
    "financial_ratios",
    "income_statement_totals",
    "report_title",
]
