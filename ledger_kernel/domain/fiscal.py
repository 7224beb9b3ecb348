"""
Fiscal period derivation.

Pure functions mapping dates to fiscal buckets and back.  The fiscal year is
the calendar year.  Called explicitly on every write path that stores a
transaction date; nothing is derived by ORM hooks.
"""

import calendar
from dataclasses import dataclass
from datetime import date


@dataclass(frozen=True)
class FiscalPeriod:
    """Year / month / quarter bucket of a date."""

    year: int
    month: int
    quarter: int

    @property
    def key(self) -> str:
        return f"{self.year:04d}-{self.month:02d}"


def derive_fiscal_period(value: date) -> FiscalPeriod:
    return FiscalPeriod(
        year=value.year,
        month=value.month,
        quarter=(value.month - 1) // 3 + 1,
    )


def month_range(year: int, month: int) -> tuple[date, date]:
    """First and last day of a month."""
    if not 1 <= month <= 12:
        raise ValueError(f"month must be 1..12, got {month}")
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, last_day)


def quarter_range(year: int, quarter: int) -> tuple[date, date]:
    """First day of the quarter's first month to the last day of its third."""
    if not 1 <= quarter <= 4:
        raise ValueError(f"quarter must be 1..4, got {quarter}")
    start, _ = month_range(year, 3 * quarter - 2)
    _, end = month_range(year, 3 * quarter)
    return start, end


def year_range(year: int) -> tuple[date, date]:
    return date(year, 1, 1), date(year, 12, 31)
