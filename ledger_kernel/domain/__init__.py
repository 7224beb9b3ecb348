"""
Pure domain layer.

Plain functions and immutable values with no database access: clocks,
fiscal period derivation, bookkeeping rules, ratio math, transaction
number formatting, display labels and the journal line input DTO.
"""

from ledger_kernel.domain.calculations import change_rate, percentage, ratio, variance
from ledger_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from ledger_kernel.domain.dtos import JournalLineSpec
from ledger_kernel.domain.fiscal import FiscalPeriod, derive_fiscal_period
from ledger_kernel.domain.labels import display_label
from ledger_kernel.domain.numbering import NumberingPolicy
from ledger_kernel.domain.rules import (
    ChartPolicy,
    balance_side,
    natural_balance,
    validate_budget_type_match,
)

__all__ = [
    "ChartPolicy",
    "Clock",
    "DeterministicClock",
    "FiscalPeriod",
    "JournalLineSpec",
    "NumberingPolicy",
    "SystemClock",
    "balance_side",
    "change_rate",
    "derive_fiscal_period",
    "display_label",
    "natural_balance",
    "percentage",
    "ratio",
    "validate_budget_type_match",
    "variance",
]
