"""
Transaction number formatting.

A journal entry's base number is ``<prefix><yyyyMMdd>`` for the first entry
of that prefix on that date and ``<prefix><yyyyMMdd><n:04d>`` for later
ones.  Lines of a multi-line entry append ``-1``, ``-2``, ...; a single
line uses the base number.  The ordinal n comes from SequenceService.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date
from types import MappingProxyType

from ledger_kernel.models.transaction import TransactionType

DEFAULT_PREFIXES: Mapping[TransactionType, str] = MappingProxyType({
    TransactionType.JOURNAL: "JE",
    TransactionType.SALES: "SL",
    TransactionType.PURCHASE: "PU",
    TransactionType.CASH_RECEIPT: "CR",
    TransactionType.CASH_PAYMENT: "CP",
    TransactionType.BANK_RECEIPT: "BR",
    TransactionType.BANK_PAYMENT: "BP",
    TransactionType.ADJUSTMENT: "AJ",
    TransactionType.CLOSING: "CL",
})


@dataclass(frozen=True)
class NumberingPolicy:
    """Prefix table and formatting knobs for transaction numbers."""

    prefixes: Mapping[TransactionType, str] = field(
        default_factory=lambda: DEFAULT_PREFIXES,
    )
    sequence_width: int = 4
    line_separator: str = "-"
    reversal_suffix: str = "-REV"

    def __post_init__(self):
        missing = [t.value for t in TransactionType if t not in self.prefixes]
        if missing:
            raise ValueError(f"No number prefix configured for: {', '.join(missing)}")
        if self.sequence_width < 1:
            raise ValueError("sequence_width must be positive")

    def prefix_for(self, transaction_type: TransactionType) -> str:
        return self.prefixes[transaction_type]

    def base_number(self, prefix: str, business_date: date, ordinal: int) -> str:
        stem = f"{prefix}{business_date:%Y%m%d}"
        if ordinal <= 1:
            return stem
        return f"{stem}{ordinal:0{self.sequence_width}d}"

    def line_numbers(self, base: str, line_count: int) -> list[str]:
        if line_count == 1:
            return [base]
        return [f"{base}{self.line_separator}{i}" for i in range(1, line_count + 1)]

    def reversal_number(self, base: str) -> str:
        return f"{base}{self.reversal_suffix}"
