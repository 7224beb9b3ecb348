"""
Module: ledger_kernel.db.types
Responsibility: Shared column types and the single sanctioned rounding
    function for monetary and percentage values.
Architecture position: Kernel > DB.  May be imported by models/, domain/,
    services/ and selectors/.  MUST NOT import from any of those layers.

Rounding rule:
    Intermediate ratio math is carried at INTERNAL_PRECISION (4) decimal
    places, then rounded HALF_UP to DISPLAY_PRECISION (2) places.  Stored
    amounts keep Numeric(38, 9).  No floats anywhere.
"""

from decimal import ROUND_HALF_UP, Decimal
from enum import Enum as PyEnum

from sqlalchemy import Enum, Numeric

# Stored ratios and percentages (e.g. 120.00, 12.3456).  Amounts use the
# Decimal -> Numeric(38, 9) default from Base.type_annotation_map.
PercentageNumeric = Numeric(19, 4)

INTERNAL_PRECISION = 4
DISPLAY_PRECISION = 2
DEFAULT_ROUNDING = ROUND_HALF_UP

ZERO = Decimal("0")


def round_money(
    value: Decimal,
    decimal_places: int = DISPLAY_PRECISION,
    rounding: str = DEFAULT_ROUNDING,
) -> Decimal:
    """
    Round a monetary or percentage value to ``decimal_places``.

    This is the ONLY rounding function used for financial values.

    Args:
        value: The Decimal value to round.
        decimal_places: Number of decimal places to keep.
        rounding: Rounding mode (default: ROUND_HALF_UP).

    Returns:
        Rounded Decimal value.
    """
    quantum = Decimal(1).scaleb(-decimal_places)
    return Decimal(value).quantize(quantum, rounding=rounding)


def to_decimal(value: object) -> Decimal:
    """Coerce a driver-returned numeric (None, int, float, str) to Decimal."""
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def enum_column(enum_cls: type[PyEnum], length: int = 30) -> Enum:
    """
    Portable enum column storing the member VALUE as a VARCHAR.

    Rows load back as enum members, so comparisons and set membership
    are always enum-to-enum.
    """
    return Enum(
        enum_cls,
        native_enum=False,
        length=length,
        values_callable=lambda members: [m.value for m in members],
        validate_strings=True,
    )
