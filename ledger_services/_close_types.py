"""
ledger_services._close_types -- Period close DTOs for the close orchestrator.

Responsibility:
    Frozen results returned by PeriodCloseOrchestrator for a month close
    and a year close.

Architecture position:
    Services -- these types live beside the orchestrator that produces
    them.  They carry no kernel dependency.

Invariants enforced:
    - All DTOs are frozen dataclasses (immutable).
"""

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID


@dataclass(frozen=True)
class PeriodCloseResult:
    """Outcome of closing one fiscal month."""

    company_id: UUID
    period_key: str
    fiscal_year: int
    fiscal_month: int
    accounts_recomputed: int
    closed_at: datetime


@dataclass(frozen=True)
class YearCloseResult:
    """Outcome of closing a fiscal year: twelve month closes plus the reset."""

    company_id: UUID
    period_key: str
    fiscal_year: int
    months: tuple[PeriodCloseResult, ...]
    nominal_accounts_reset: int
    closed_at: datetime

    @property
    def accounts_recomputed(self) -> int:
        return sum(m.accounts_recomputed for m in self.months)
