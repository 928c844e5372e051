"""
Typed Exception Hierarchy for the Allocation Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers of the allocation kernel (API handlers, admin tooling, batch jobs)
must react to failures precisely: an over-allocated percentage is a user
error to show on a form, a missing member is a 404, an arithmetic invariant
violation is a bug to page someone about.  Parsing message strings for that
is fragile, so:

  1. Every error has a TYPED exception class (catch by type, not message)
  2. Every exception has a CODE attribute (machine-readable, API-safe)
  3. Exceptions carry structured DATA (not just a message string)

Example:
    try:
        service.create_member(project_id, "Ana", Decimal("70"), actor=actor)
    except PercentageExceededError as e:
        return {
            "error": e.code,
            "allocated": str(e.current_total),
            "attempted": str(e.attempted),
        }

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    AllocationKernelError (base)
    |
    +-- ValidationError
    |   +-- PercentageExceededError
    |   +-- InvalidPercentageError
    |   +-- InvalidBudgetError
    |   +-- InvalidDateRangeError
    |   +-- InvalidMonthNumberError
    |   +-- DuplicateMemberNameError
    |
    +-- NotFoundError
    |   +-- ProjectNotFoundError
    |   +-- MemberNotFoundError
    |   +-- InstallmentNotFoundError
    |
    +-- InstallmentStateError
    |   +-- InvalidStateTransitionError
    |
    +-- ScheduleError
    |   +-- ScheduleNotGeneratableError
    |   +-- PaidInstallmentConflictError
    |
    +-- ArithmeticInvariantViolationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category     | Code                           | When Raised
-------------|--------------------------------|----------------------------------------
Validation   | PERCENTAGE_EXCEEDED            | Member percentages would exceed 100
             | INVALID_PERCENTAGE             | Percentage not in (0, 100]
             | INVALID_BUDGET                 | Negative project budget
             | INVALID_DATE_RANGE             | end_date before start_date
             | INVALID_MONTH_NUMBER           | Month number below 1
             | DUPLICATE_MEMBER_NAME          | Name already used in the project
-------------|--------------------------------|----------------------------------------
Not found    | PROJECT_NOT_FOUND              | Project ID doesn't exist
             | MEMBER_NOT_FOUND               | Member ID doesn't exist
             | INSTALLMENT_NOT_FOUND          | Installment ID doesn't exist
-------------|--------------------------------|----------------------------------------
State        | INVALID_STATE_TRANSITION       | Guarded model transition refused
-------------|--------------------------------|----------------------------------------
Schedule     | SCHEDULE_NOT_GENERATABLE       | Project has no start or end date
             | PAID_INSTALLMENT_CONFLICT      | Paid history does not fit new schedule
-------------|--------------------------------|----------------------------------------
Internal     | ARITHMETIC_INVARIANT_VIOLATION | Installments don't sum to allocation

===============================================================================
HANDLING PATTERNS
===============================================================================

1. Paying an installment that is not PENDING is NOT an error at the
   service boundary.  PaymentLedger returns False; InvalidStateTransitionError
   is only raised when a model transition method is called directly.

2. ArithmeticInvariantViolationError means a bug.  The unit of work has
   already been rolled back; do not retry, investigate.

3. All validation errors are raised before anything is flushed, and the
   caller's unit of work is rolled back.  Fix the input and resubmit.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID


class AllocationKernelError(Exception):
    """
    Base exception for all allocation kernel errors.

    All subclasses must have a `code` class attribute for
    machine-readable error identification.
    """

    code: str = "ALLOCATION_KERNEL_ERROR"


# Validation exceptions


class ValidationError(AllocationKernelError):
    """Base exception for rejected input."""

    code: str = "VALIDATION_ERROR"


class PercentageExceededError(ValidationError):
    """The project's member percentages would exceed the allowed total."""

    code: str = "PERCENTAGE_EXCEEDED"

    def __init__(
        self,
        project_id: UUID,
        current_total: Decimal,
        attempted: Decimal,
        would_be_total: Decimal,
        max_total: Decimal = Decimal("100"),
    ):
        self.project_id = project_id
        self.current_total = current_total
        self.attempted = attempted
        self.would_be_total = would_be_total
        self.max_total = max_total
        super().__init__(
            f"Total percentage cannot exceed {max_total}% for project {project_id}. "
            f"Current: {current_total}, adding: {attempted}, "
            f"would be: {would_be_total}"
        )


class InvalidPercentageError(ValidationError):
    """Percentage outside the (0, 100] range."""

    code: str = "INVALID_PERCENTAGE"

    def __init__(self, percentage: Decimal):
        self.percentage = percentage
        super().__init__(
            f"Percentage must be greater than 0 and at most 100, got {percentage}"
        )


class InvalidBudgetError(ValidationError):
    """Project budget is negative."""

    code: str = "INVALID_BUDGET"

    def __init__(self, total_budget: Decimal):
        self.total_budget = total_budget
        super().__init__(f"Project budget cannot be negative, got {total_budget}")


class InvalidDateRangeError(ValidationError):
    """Project end date falls before its start date."""

    code: str = "INVALID_DATE_RANGE"

    def __init__(self, start_date: date, end_date: date):
        self.start_date = start_date
        self.end_date = end_date
        super().__init__(
            f"end_date ({end_date}) cannot be before start_date ({start_date})"
        )


class InvalidMonthNumberError(ValidationError):
    """Installment month numbers start at 1."""

    code: str = "INVALID_MONTH_NUMBER"

    def __init__(self, month_number: int):
        self.month_number = month_number
        super().__init__(f"Month number must be at least 1, got {month_number}")


class DuplicateMemberNameError(ValidationError):
    """A member with the same name already exists in the project."""

    code: str = "DUPLICATE_MEMBER_NAME"

    def __init__(self, project_id: UUID, name: str):
        self.project_id = project_id
        self.name = name
        super().__init__(f"Member '{name}' already exists in project {project_id}")


# Lookup exceptions


class NotFoundError(AllocationKernelError):
    """Base exception for missing records."""

    code: str = "NOT_FOUND"


class ProjectNotFoundError(NotFoundError):
    """Project was not found."""

    code: str = "PROJECT_NOT_FOUND"

    def __init__(self, project_id: UUID):
        self.project_id = project_id
        super().__init__(f"Project not found: {project_id}")


class MemberNotFoundError(NotFoundError):
    """Member was not found."""

    code: str = "MEMBER_NOT_FOUND"

    def __init__(self, member_id: UUID):
        self.member_id = member_id
        super().__init__(f"Member not found: {member_id}")


class InstallmentNotFoundError(NotFoundError):
    """Installment was not found."""

    code: str = "INSTALLMENT_NOT_FOUND"

    def __init__(self, installment_id: UUID):
        self.installment_id = installment_id
        super().__init__(f"Installment not found: {installment_id}")


# Installment state exceptions


class InstallmentStateError(AllocationKernelError):
    """Base exception for installment lifecycle errors."""

    code: str = "INSTALLMENT_STATE_ERROR"


class InvalidStateTransitionError(InstallmentStateError):
    """
    Installment cannot move from its current status to the target.

    PaymentLedger checks transitions up front and reports a refused
    transition as a no-op (False); this is only raised by the guarded
    transition methods on the Installment model.
    """

    code: str = "INVALID_STATE_TRANSITION"

    def __init__(self, installment_id: UUID, from_status: str, to_status: str):
        self.installment_id = installment_id
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            f"Installment {installment_id} cannot transition "
            f"from {from_status} to {to_status}"
        )


# Schedule exceptions


class ScheduleError(AllocationKernelError):
    """Base exception for schedule generation errors."""

    code: str = "SCHEDULE_ERROR"


class ScheduleNotGeneratableError(ScheduleError):
    """A schedule needs both a start and an end date."""

    code: str = "SCHEDULE_NOT_GENERATABLE"

    def __init__(self, start_date: date | None, end_date: date | None):
        self.start_date = start_date
        self.end_date = end_date
        super().__init__(
            "Cannot generate an installment schedule without both dates "
            f"(start_date={start_date}, end_date={end_date})"
        )


class PaidInstallmentConflictError(ScheduleError):
    """
    Already-paid installments cannot be carried into the new schedule.

    Raised under the preserve-paid regeneration policy when a paid month
    falls outside the new month range, or when the paid total exceeds the
    member's new allocation.
    """

    code: str = "PAID_INSTALLMENT_CONFLICT"

    def __init__(self, member_total: Decimal, paid_total: Decimal, months: int, reason: str):
        self.member_total = member_total
        self.paid_total = paid_total
        self.months = months
        self.reason = reason
        super().__init__(
            f"Paid installments conflict with regenerated schedule: {reason} "
            f"(allocation={member_total}, paid={paid_total}, months={months})"
        )


# Internal exceptions


class ArithmeticInvariantViolationError(AllocationKernelError):
    """
    Regenerated installments do not sum to the member's allocation.

    This is unreachable by construction.  Seeing it means a bug in
    schedule generation; treat it as fatal.
    """

    code: str = "ARITHMETIC_INVARIANT_VIOLATION"

    def __init__(self, expected_total: Decimal, actual_total: Decimal, months: int):
        self.expected_total = expected_total
        self.actual_total = actual_total
        self.months = months
        super().__init__(
            f"Installment sum {actual_total} != allocation {expected_total} "
            f"over {months} months"
        )
