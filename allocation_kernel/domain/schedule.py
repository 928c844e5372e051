"""
ScheduleGenerator -- pure monthly installment splitting.

Responsibility:
    Counts the calendar months a project spans and splits a member's
    calculated amount into one installment per month so that the slots sum
    to the amount exactly.

Architecture position:
    Kernel > Domain -- pure functions, zero I/O.

Invariants enforced:
    - Slots are numbered 1..N and dated on the first day of consecutive
      calendar months starting at the month of the project start date.
    - base = truncate(total / N, 2); every slot but the last gets base, the
      last gets base + (total - base * N).  Truncation keeps the remainder
      non-negative, so no slot is ever negative.
    - sum(slots) == total, verified before returning
      (ArithmeticInvariantViolationError otherwise).

Failure modes:
    - ScheduleNotGeneratableError if either date is missing.  There is no
      silent one-month default.
    - PaidInstallmentConflictError when paid history cannot be carried into
      a regenerated schedule.
"""

import calendar
from collections.abc import Iterable
from datetime import date
from decimal import Decimal

from allocation_kernel.db.types import ZERO, round_money, truncate_money
from allocation_kernel.domain.dtos import PaidSlot, ScheduledInstallment
from allocation_kernel.exceptions import (
    ArithmeticInvariantViolationError,
    PaidInstallmentConflictError,
    ScheduleNotGeneratableError,
)


def month_start(d: date) -> date:
    """First day of the month containing d."""
    return d.replace(day=1)


def add_months(d: date, months: int) -> date:
    """
    Shift d by whole calendar months, clamping the day to the target month.

    Example:
        add_months(date(2024, 1, 31), 1) -> date(2024, 2, 29)
    """
    index = d.year * 12 + (d.month - 1) + months
    year, month = divmod(index, 12)
    month += 1
    day = min(d.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def months_between(start_date: date | None, end_date: date | None) -> int:
    """
    Number of calendar months from start_date's month to end_date's month,
    inclusive.  Never less than 1.

    Example:
        months_between(date(2024, 1, 15), date(2024, 6, 10)) -> 6
        months_between(date(2024, 3, 1), date(2024, 3, 31)) -> 1

    Raises:
        ScheduleNotGeneratableError: If either date is None.
    """
    if start_date is None or end_date is None:
        raise ScheduleNotGeneratableError(start_date, end_date)
    months = (
        (end_date.year - start_date.year) * 12
        + (end_date.month - start_date.month)
        + 1
    )
    return max(months, 1)


def _split(total: Decimal, slots: int) -> list[Decimal]:
    base = truncate_money(total / slots)
    remainder = total - base * slots
    amounts = [base] * slots
    amounts[-1] = base + remainder
    return amounts


def _verify_sum(expected: Decimal, amounts: Iterable[Decimal], months: int) -> None:
    actual = sum(amounts, ZERO)
    if actual != expected:
        raise ArithmeticInvariantViolationError(expected, actual, months)


def generate_schedule(
    member_total: Decimal,
    months: int,
    schedule_start: date,
) -> tuple[ScheduledInstallment, ...]:
    """
    Split member_total into `months` monthly installments.

    Args:
        member_total: The member's calculated amount (2 decimal places).
        months: Number of slots, >= 1 (see months_between).
        schedule_start: Any date in the first month; slots are dated on the
            first of each month.

    Returns:
        Slots ordered by month_number 1..months.

    Example:
        generate_schedule(Decimal("10000.00"), 3, date(2024, 1, 15))
        -> 3333.33 (2024-01-01), 3333.33 (2024-02-01), 3333.34 (2024-03-01)
    """
    if months < 1:
        raise ValueError(f"months must be >= 1, got {months}")

    total = round_money(member_total)
    amounts = _split(total, months)
    first = month_start(schedule_start)

    schedule = tuple(
        ScheduledInstallment(
            month_number=n,
            payment_month=add_months(first, n - 1),
            monthly_amount=amount,
        )
        for n, amount in enumerate(amounts, start=1)
    )
    _verify_sum(total, (s.monthly_amount for s in schedule), months)
    return schedule


def generate_schedule_preserving(
    member_total: Decimal,
    months: int,
    schedule_start: date,
    paid: Iterable[PaidSlot],
) -> tuple[ScheduledInstallment, ...]:
    """
    Regenerate a schedule around installments that are already paid.

    The paid slots keep their month numbers and amounts.  What is left of
    member_total is split over the remaining month numbers with the same
    truncate-and-remainder rule as generate_schedule.

    Returns:
        Only the NEW (unpaid) slots, ordered by month_number.

    Raises:
        PaidInstallmentConflictError: If a paid month lies beyond `months`,
            a paid slot's payment_month no longer matches the new start,
            the paid total exceeds member_total, or every month is paid but
            an unpaid remainder is left.
    """
    if months < 1:
        raise ValueError(f"months must be >= 1, got {months}")

    total = round_money(member_total)
    paid = list(paid)
    paid_slots = {p.month_number: p.monthly_amount for p in paid}
    paid_total = sum(paid_slots.values(), ZERO)

    if paid_slots and max(paid_slots) > months:
        raise PaidInstallmentConflictError(
            total, paid_total, months,
            f"paid month {max(paid_slots)} is outside the new {months}-month range",
        )

    first = month_start(schedule_start)
    for slot in paid:
        expected = add_months(first, slot.month_number - 1)
        if slot.payment_month is not None and slot.payment_month != expected:
            raise PaidInstallmentConflictError(
                total, paid_total, months,
                f"paid month {slot.month_number} is dated {slot.payment_month}, "
                f"the new schedule puts it in {expected}",
            )
    if paid_total > total:
        raise PaidInstallmentConflictError(
            total, paid_total, months,
            "paid amount exceeds the new allocation",
        )

    open_months = [n for n in range(1, months + 1) if n not in paid_slots]
    outstanding = total - paid_total

    if not open_months:
        if outstanding != ZERO:
            raise PaidInstallmentConflictError(
                total, paid_total, months,
                "every month is paid but an outstanding amount remains",
            )
        return ()

    amounts = _split(outstanding, len(open_months))
    schedule = tuple(
        ScheduledInstallment(
            month_number=n,
            payment_month=add_months(first, n - 1),
            monthly_amount=amount,
        )
        for n, amount in zip(open_months, amounts)
    )
    _verify_sum(
        total,
        [*paid_slots.values(), *(s.monthly_amount for s in schedule)],
        months,
    )
    return schedule
