"""Read-only selectors for the ledger kernel (query side)."""

from ledger_kernel.selectors.ledger_selector import (
    GeneralLedgerLine,
    GeneralLedgerReport,
    LedgerSelector,
    TransactionStatistics,
    TrialBalanceReport,
    TrialBalanceRow,
)

__all__ = [
    "GeneralLedgerLine",
    "GeneralLedgerReport",
    "LedgerSelector",
    "TransactionStatistics",
    "TrialBalanceReport",
    "TrialBalanceRow",
]
