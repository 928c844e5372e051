"""
DTOs -- Pure domain data transfer objects.

Responsibility:
    Defines the immutable data structures that cross the kernel boundary:
    the Actor performing a mutation, the interchange shapes for projects,
    members and installments, the pure schedule output, and the read-side
    summaries returned by selectors.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    Free of ORM dependencies, database access, and external services.
    ORM models convert themselves with to_dto(); domain logic never sees
    an ORM entity.

Invariants enforced:
    - All DTOs are frozen; monetary fields are Decimal, never float.
    - ScheduledInstallment.month_number >= 1.

Failure modes:
    - ValueError on ScheduledInstallment with month_number < 1.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID

if TYPE_CHECKING:
    from allocation_kernel.models.installment import InstallmentStatus
    from allocation_kernel.models.project import ProjectStatus


@dataclass(frozen=True)
class Actor:
    """
    Identity of whoever performs a mutation.

    Passed explicitly to every mutating operation and stamped on audit
    records and the created_by_id / updated_by_id columns.  The kernel does
    not authenticate it.
    """

    actor_id: UUID
    name: str | None = None


class RegenerationPolicy(str, Enum):
    """How an existing schedule is treated when it is regenerated.

    REPLACE_ALL discards every existing installment (PAID included) and
    writes a fresh PENDING schedule.  PRESERVE_PAID keeps PAID installments
    and re-spreads only the unpaid remainder over the other months.
    """

    REPLACE_ALL = "replace_all"
    PRESERVE_PAID = "preserve_paid"


class AllocationStatus(str, Enum):
    """How much of a project's budget has been assigned to members."""

    NOT_ALLOCATED = "NOT_ALLOCATED"
    PARTIALLY_ALLOCATED = "PARTIALLY_ALLOCATED"
    FULLY_ALLOCATED = "FULLY_ALLOCATED"


@dataclass(frozen=True)
class ScheduledInstallment:
    """One slot of a generated schedule, before it is persisted."""

    month_number: int
    payment_month: date
    monthly_amount: Decimal

    def __post_init__(self) -> None:
        if self.month_number < 1:
            raise ValueError(f"month_number must be >= 1, got {self.month_number}")


@dataclass(frozen=True)
class PaidSlot:
    """
    An already-paid installment carried into a regenerated schedule.

    payment_month is the month the installment was dated for; when set it
    must still match its month_number under the new schedule start.
    """

    month_number: int
    monthly_amount: Decimal
    payment_month: date | None = None


@dataclass(frozen=True)
class ProjectInfo:
    project_id: UUID
    name: str
    total_budget: Decimal
    start_date: date | None
    end_date: date | None
    status: ProjectStatus


@dataclass(frozen=True)
class InstallmentInfo:
    installment_id: UUID
    project_id: UUID
    member_id: UUID
    month_number: int
    payment_month: date
    monthly_amount: Decimal
    status: InstallmentStatus
    paid_date: date | None = None
    paid_by_id: UUID | None = None


@dataclass(frozen=True)
class MemberInfo:
    member_id: UUID
    project_id: UUID
    name: str
    role: str | None
    percentage: Decimal
    calculated_amount: Decimal
    installments: tuple[InstallmentInfo, ...] = field(default_factory=tuple)

    @property
    def schedule_total(self) -> Decimal:
        """Sum of the member's installment amounts."""
        return sum((i.monthly_amount for i in self.installments), Decimal("0.00"))


@dataclass(frozen=True)
class RecalculationResult:
    """
    Outcome of a project-level budget or date change.

    changed is False when the submitted values equal the stored ones; in
    that case nothing was written and members is empty.
    """

    project: ProjectInfo
    changed: bool
    members: tuple[MemberInfo, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class PaymentStatusSummary:
    """
    Payment progress of a project.

    total_* include CANCELLED installments; paid_* and pending_* count only
    their own status.  completion_pct is paid_count / total_count * 100,
    rounded to 2 places, or 0 when the project has no installments.
    """

    project_id: UUID
    total_count: int
    paid_count: int
    pending_count: int
    total_amount: Decimal
    paid_amount: Decimal
    pending_amount: Decimal
    completion_pct: Decimal


@dataclass(frozen=True)
class AllocationSummary:
    """Allocation progress of a project."""

    project_id: UUID
    name: str
    total_budget: Decimal
    start_date: date | None
    end_date: date | None
    allocated_percentage: Decimal
    remaining_percentage: Decimal
    allocated_amount: Decimal
    member_count: int
    total_months: int | None
    allocation_status: AllocationStatus
