"""
Module: allocation_kernel.db.types
Responsibility: Column types and utility functions for money and
    percentage columns.  Centralizes precision and rounding so that every
    model, domain function, and service uses identical definitions.
Architecture position: Kernel > DB.  May be imported by models/, domain/,
    services/, and selectors/.  MUST NOT import from any of those layers.

Invariants enforced:
    - Money is stored with exactly 2 decimal places (Numeric(15, 2)).
    - Percentages are stored with 2 decimal places (Numeric(5, 2)).
    - round_money() is the ONLY sanctioned rounding function and defaults
      to ROUND_HALF_UP.  truncate_money() is the ONLY sanctioned
      truncation function (ROUND_DOWN), used for installment bases so that
      months are never over-allocated.
    CRITICAL: No floats anywhere in the kernel.
"""

from decimal import ROUND_DOWN, ROUND_HALF_UP, Decimal

from sqlalchemy import Numeric

# Currency amount column, 2 decimal places
MoneyColumn = Numeric(15, 2)

# Member share of a project budget, 2 decimal places, 0 < p <= 100
PercentageColumn = Numeric(5, 2)


MONEY_DECIMAL_PLACES = 2
PERCENTAGE_DECIMAL_PLACES = 2
DEFAULT_ROUNDING = ROUND_HALF_UP

ZERO = Decimal("0.00")
ONE_HUNDRED = Decimal("100")


def _quantum(decimal_places: int) -> Decimal:
    return Decimal(1).scaleb(-decimal_places)


def to_decimal(value: Decimal | int | str) -> Decimal:
    """
    Coerce an int, str, or Decimal into a Decimal.

    Floats are rejected: a float amount has already lost precision.

    Raises:
        TypeError: If value is a float or another unsupported type.
        decimal.InvalidOperation: If a string is not a number.
    """
    if isinstance(value, bool) or isinstance(value, float):
        raise TypeError(f"Monetary values must not be floats: {value!r}")
    if isinstance(value, Decimal):
        return value
    if isinstance(value, (int, str)):
        return Decimal(value)
    raise TypeError(f"Unsupported numeric type: {type(value).__name__}")


def round_money(
    value: Decimal,
    decimal_places: int = MONEY_DECIMAL_PLACES,
    rounding: str = DEFAULT_ROUNDING,
) -> Decimal:
    """
    Round a monetary value to specified decimal places.

    This is the ONLY sanctioned rounding function for monetary values in
    the kernel.

    Args:
        value: The Decimal value to round.
        decimal_places: Number of decimal places to round to.
        rounding: Rounding mode (default: ROUND_HALF_UP).

    Returns:
        Rounded Decimal value.
    """
    return value.quantize(_quantum(decimal_places), rounding=rounding)


def truncate_money(value: Decimal, decimal_places: int = MONEY_DECIMAL_PLACES) -> Decimal:
    """
    Truncate a monetary value toward zero.

    Used for installment bases: TRUNC(total / months, 2).

    Example:
        truncate_money(Decimal("6666.6666")) -> Decimal("6666.66")
    """
    return value.quantize(_quantum(decimal_places), rounding=ROUND_DOWN)


def normalize_percentage(value: Decimal) -> Decimal:
    """Quantize a percentage to its stored precision (half-up)."""
    return value.quantize(_quantum(PERCENTAGE_DECIMAL_PLACES), rounding=ROUND_HALF_UP)
