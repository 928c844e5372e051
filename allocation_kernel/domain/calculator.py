"""
AllocationCalculator -- pure money and percentage arithmetic.

Responsibility:
    Turns a project budget and a member percentage into the member's
    calculated amount, and validates the raw inputs before anything is
    written.

Architecture position:
    Kernel > Domain -- pure functions, zero I/O.

Invariants enforced:
    - calculated_amount = round(budget * percentage / 100, 2), half-up by
      default.  The only rounding mode switch is the explicit ``rounding``
      argument.
    - Floats are rejected; all inputs are Decimal (or int/str coerced).
"""

from datetime import date
from decimal import Decimal

from allocation_kernel.db.types import (
    DEFAULT_ROUNDING,
    ONE_HUNDRED,
    normalize_percentage,
    round_money,
    to_decimal,
)
from allocation_kernel.exceptions import (
    InvalidBudgetError,
    InvalidDateRangeError,
    InvalidMonthNumberError,
    InvalidPercentageError,
)


def calculate_total(
    budget: Decimal,
    percentage: Decimal,
    rounding: str = DEFAULT_ROUNDING,
) -> Decimal:
    """
    Compute a member's share of a budget.

    Example:
        calculate_total(Decimal("10000"), Decimal("33.33")) -> Decimal("3333.00")
        calculate_total(Decimal("0.05"), Decimal("50")) -> Decimal("0.03")
    """
    return round_money(
        to_decimal(budget) * to_decimal(percentage) / ONE_HUNDRED,
        rounding=rounding,
    )


def validate_budget(total_budget: Decimal) -> Decimal:
    """Return the budget at money precision, or raise InvalidBudgetError if negative."""
    value = to_decimal(total_budget)
    if not value.is_finite() or value < 0:
        raise InvalidBudgetError(value)
    return round_money(value)


def validate_percentage(percentage: Decimal) -> Decimal:
    """
    Return the percentage at stored precision.

    Raises:
        InvalidPercentageError: If the value is not in (0, 100] after
            normalization to 2 decimal places.
    """
    value = to_decimal(percentage)
    if not value.is_finite():
        raise InvalidPercentageError(value)
    normalized = normalize_percentage(value)
    if normalized <= 0 or normalized > ONE_HUNDRED:
        raise InvalidPercentageError(value)
    return normalized


def validate_date_range(start_date: date | None, end_date: date | None) -> None:
    """Raise InvalidDateRangeError if both dates are set and end < start."""
    if start_date is not None and end_date is not None and end_date < start_date:
        raise InvalidDateRangeError(start_date, end_date)


def validate_month_number(month_number: int) -> int:
    if month_number < 1:
        raise InvalidMonthNumberError(month_number)
    return month_number
