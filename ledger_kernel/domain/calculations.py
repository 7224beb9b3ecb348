"""
Calculations -- the single home of ratio and percentage math.

Rounding rule:
    Division results are carried at INTERNAL_PRECISION (4 places) and
    rounded HALF_UP to DISPLAY_PRECISION (2 places) for every stored or
    displayed rate.  A zero denominator yields zero, never an error.
"""

from dataclasses import dataclass
from decimal import Decimal

from ledger_kernel.db.types import DISPLAY_PRECISION, INTERNAL_PRECISION, ZERO, round_money

HUNDRED = Decimal("100")


def _display(value: Decimal) -> Decimal:
    return round_money(round_money(value, INTERNAL_PRECISION), DISPLAY_PRECISION)


def ratio(numerator: Decimal, denominator: Decimal) -> Decimal:
    """numerator / denominator, 0 when the denominator is 0."""
    if denominator == ZERO:
        return _display(ZERO)
    return _display(Decimal(numerator) / Decimal(denominator))


def percentage(numerator: Decimal, denominator: Decimal) -> Decimal:
    """numerator / denominator * 100, 0 when the denominator is 0."""
    if denominator == ZERO:
        return _display(ZERO)
    return _display(Decimal(numerator) / Decimal(denominator) * HUNDRED)


def change_rate(current: Decimal, previous: Decimal) -> Decimal:
    """Percentage change relative to the absolute prior amount."""
    return percentage(current - previous, abs(previous))


@dataclass(frozen=True)
class Variance:
    achievement_rate: Decimal
    variance_amount: Decimal
    variance_rate: Decimal


def variance(actual: Decimal, planned: Decimal) -> Variance:
    """
    Plan-versus-actual figures.

    achievement_rate = actual / planned * 100
    variance_amount  = actual - planned
    variance_rate    = variance_amount / planned * 100
    """
    variance_amount = actual - planned
    return Variance(
        achievement_rate=percentage(actual, planned),
        variance_amount=variance_amount,
        variance_rate=percentage(variance_amount, planned),
    )
