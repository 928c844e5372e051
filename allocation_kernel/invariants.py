"""
Kernel Invariants Contract.

These invariants are structural law. No settings value or regeneration
policy may switch them off; configuration only chooses *how* a schedule
is rebuilt, never *whether* it balances.

This module exists solely to declare these invariants explicitly. The
enforcement is distributed across PercentageLedger, the schedule
functions, RecalculationCoordinator, PaymentLedger and AllocationService.
"""

from enum import Enum, unique


@unique
class AllocationInvariant(str, Enum):
    """Non-configurable invariants enforced by the kernel."""

    PERCENTAGE_CAP = "percentage_cap"
    """sum(member.percentage) <= 100 for every project. Enforced by
    PercentageLedger.validate under the project row lock."""

    SCHEDULE_SUM = "schedule_sum"
    """sum(installment.monthly_amount) == member.calculated_amount for
    every member that has a schedule. Enforced by generate_schedule,
    which raises ArithmeticInvariantViolationError otherwise."""

    CONTIGUOUS_MONTHS = "contiguous_months"
    """A member's installments are numbered 1..N without gaps. Enforced
    by generate_schedule and the (member_id, month_number) unique key."""

    ATOMIC_RECALCULATION = "atomic_recalculation"
    """A project-level recalculation commits for every member or for
    none. Enforced by the AllocationService unit of work."""

    PAID_ONLY_FROM_PENDING = "paid_only_from_pending"
    """Only PENDING installments move to PAID or CANCELLED. Enforced by
    PaymentLedger and the Installment transition guards."""


# All invariants as a frozenset for programmatic checks.
ALL_ALLOCATION_INVARIANTS: frozenset[AllocationInvariant] = frozenset(AllocationInvariant)

# The kernel package may not import from these packages.
# This is enforced by tests/architecture/test_kernel_boundary.py.
FORBIDDEN_KERNEL_IMPORTS: tuple[str, ...] = (
    "allocation_config",
)
