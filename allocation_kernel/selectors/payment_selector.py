"""
Module: allocation_kernel.selectors.payment_selector
Responsibility: Read-side aggregations over projects, members and installments:
    payment progress, allocation progress and a member's ordered schedule.
Architecture position: Kernel > Selectors.  Read-only.

Invariants enforced:
    - Amounts are summed in Python as Decimal; the database never adds
      money as floating point.
    - completion_pct = round(paid_count / total_count * 100, 2), or 0 when
      the project has no installments.

Failure modes:
    - ProjectNotFoundError / MemberNotFoundError for unknown ids.
"""

from decimal import ROUND_HALF_UP, Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from allocation_kernel.db.types import ONE_HUNDRED, ZERO, normalize_percentage
from allocation_kernel.domain.dtos import (
    AllocationStatus,
    AllocationSummary,
    InstallmentInfo,
    PaymentStatusSummary,
)
from allocation_kernel.domain.schedule import months_between
from allocation_kernel.exceptions import MemberNotFoundError, ProjectNotFoundError
from allocation_kernel.models.installment import Installment, InstallmentStatus
from allocation_kernel.models.member import Member
from allocation_kernel.models.project import Project
from allocation_kernel.selectors.base import BaseSelector

_PCT_QUANTUM = Decimal("0.01")


class PaymentSelector(BaseSelector):
    """
    Payment and allocation read models.

    max_total is the percentage cap a project counts as fully allocated;
    AllocationService passes its configured max_total_percentage.
    """

    def __init__(self, session: Session, max_total: Decimal = ONE_HUNDRED):
        super().__init__(session)
        self.max_total = max_total

    def _project(self, project_id: UUID) -> Project:
        project = self.session.get(Project, project_id)
        if project is None:
            raise ProjectNotFoundError(project_id)
        return project

    def project_payment_status(self, project_id: UUID) -> PaymentStatusSummary:
        """
        Count and sum a project's installments by status.

        Raises:
            ProjectNotFoundError: If the project does not exist.
        """
        self._project(project_id)
        rows = self.session.execute(
            select(Installment.status, Installment.monthly_amount)
            .where(Installment.project_id == project_id)
        ).all()

        total_count = len(rows)
        total_amount = sum((amount for _, amount in rows), ZERO)
        paid = [amount for status, amount in rows if status == InstallmentStatus.PAID.value]
        pending = [amount for status, amount in rows if status == InstallmentStatus.PENDING.value]

        if total_count:
            completion = (Decimal(len(paid)) / Decimal(total_count) * ONE_HUNDRED).quantize(
                _PCT_QUANTUM, rounding=ROUND_HALF_UP
            )
        else:
            completion = ZERO

        return PaymentStatusSummary(
            project_id=project_id,
            total_count=total_count,
            paid_count=len(paid),
            pending_count=len(pending),
            total_amount=total_amount,
            paid_amount=sum(paid, ZERO),
            pending_amount=sum(pending, ZERO),
            completion_pct=completion,
        )

    def allocation_summary(self, project_id: UUID) -> AllocationSummary:
        """
        How much of a project's percentage and budget is assigned.

        total_months is None when either project date is missing.

        Raises:
            ProjectNotFoundError: If the project does not exist.
        """
        project = self._project(project_id)
        rows = self.session.execute(
            select(Member.percentage, Member.calculated_amount)
            .where(Member.project_id == project_id)
        ).all()

        allocated = normalize_percentage(sum((pct for pct, _ in rows), ZERO))
        if allocated == ZERO:
            status = AllocationStatus.NOT_ALLOCATED
        elif allocated < self.max_total:
            status = AllocationStatus.PARTIALLY_ALLOCATED
        else:
            status = AllocationStatus.FULLY_ALLOCATED

        total_months = (
            months_between(project.start_date, project.end_date)
            if project.has_schedule_window
            else None
        )

        return AllocationSummary(
            project_id=project.id,
            name=project.name,
            total_budget=project.total_budget,
            start_date=project.start_date,
            end_date=project.end_date,
            allocated_percentage=allocated,
            remaining_percentage=normalize_percentage(max(self.max_total - allocated, ZERO)),
            allocated_amount=sum((amount for _, amount in rows), ZERO),
            member_count=len(rows),
            total_months=total_months,
            allocation_status=status,
        )

    def member_schedule(self, member_id: UUID) -> tuple[InstallmentInfo, ...]:
        """
        A member's installments ordered by month number.

        Raises:
            MemberNotFoundError: If the member does not exist.
        """
        if self.session.get(Member, member_id) is None:
            raise MemberNotFoundError(member_id)
        installments = self.session.execute(
            select(Installment)
            .where(Installment.member_id == member_id)
            .order_by(Installment.month_number)
        ).scalars().all()
        return tuple(i.to_dto() for i in installments)
