"""ORM models for the ledger kernel."""

from ledger_kernel.models.account import (
    NOMINAL_ACCOUNT_TYPES,
    Account,
    AccountCategory,
    AccountType,
    NormalBalance,
)
from ledger_kernel.models.fiscal_close import FiscalClose, month_key, year_key
from ledger_kernel.models.sequence_counter import TransactionNumberCounter
from ledger_kernel.models.transaction import (
    DocumentType,
    TaxType,
    Transaction,
    TransactionStatus,
    TransactionType,
)

__all__ = [
    "Account",
    "AccountCategory",
    "AccountType",
    "NormalBalance",
    "NOMINAL_ACCOUNT_TYPES",
    "FiscalClose",
    "month_key",
    "year_key",
    "DocumentType",
    "TaxType",
    "Transaction",
    "TransactionStatus",
    "TransactionType",
    "TransactionNumberCounter",
]
