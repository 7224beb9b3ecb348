"""Services for the ledger kernel (write side)."""

from ledger_kernel.services.account_service import AccountService
from ledger_kernel.services.balance_service import BalanceService, BalanceSnapshot
from ledger_kernel.services.directory import (
    ActorDirectory,
    CompanyDirectory,
    StaticDirectory,
)
from ledger_kernel.services.ledger_service import LedgerService
from ledger_kernel.services.sequence_service import SequenceService

__all__ = [
    "AccountService",
    "ActorDirectory",
    "BalanceService",
    "BalanceSnapshot",
    "CompanyDirectory",
    "LedgerService",
    "SequenceService",
    "StaticDirectory",
]
