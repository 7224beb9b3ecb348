"""
ledger_services -- Package init and public API.

Responsibility:
    Orchestration that spans several kernel services and the modules:
    the period closing coordinator and the LedgerOrchestrator service
    container.

Architecture position:
    Services -- above ledger_kernel and ledger_modules.

    Dependency direction:
        ledger_services/ -> ledger_modules/  (allowed)
        ledger_services/ -> ledger_kernel/   (allowed)
        ledger_kernel/   -> ledger_services/ (FORBIDDEN)
        ledger_modules/  -> ledger_services/ (FORBIDDEN)
"""

from ledger_kernel.logging_config import get_logger

logger = get_logger("services")

from ledger_services._close_types import PeriodCloseResult, YearCloseResult
from ledger_services.ledger_orchestrator import LedgerOrchestrator
from ledger_services.period_close_orchestrator import PeriodCloseOrchestrator

__all__ = [
    "LedgerOrchestrator",
    "PeriodCloseOrchestrator",
    "PeriodCloseResult",
    "YearCloseResult",
]
