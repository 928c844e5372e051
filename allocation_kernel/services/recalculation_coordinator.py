"""
RecalculationCoordinator -- keeps derived member data consistent.

Responsibility:
    Recomputes a member's calculated amount from the project budget and
    regenerates (or clears) the member's installment schedule.  Runs for a
    single member when a percentage changes and for every member when the
    project budget or dates change.

Architecture position:
    Kernel > Services -- imperative shell, flush-only.  Composes the pure
    calculator and schedule functions with PaymentLedger writes.

Invariants enforced:
    - calculated_amount == calculate_total(budget, percentage) after every
      call.
    - A schedule exists only when both project dates are set and the
      budget is positive; otherwise the member's installments are cleared.
    - Under REPLACE_ALL every existing installment, PAID included, is
      replaced.  Under PRESERVE_PAID paid rows are kept and only the
      outstanding amount is re-spread.
    - All writes happen in the caller's transaction; a failure for any
      member rolls back the whole recalculation.

Failure modes:
    - PaidInstallmentConflictError under PRESERVE_PAID when paid history
      does not fit the new schedule, or when the schedule window is removed
      while paid installments exist.
    - ArithmeticInvariantViolationError (unreachable by construction).
"""

from allocation_kernel.db.types import DEFAULT_ROUNDING, ZERO
from allocation_kernel.domain.calculator import calculate_total
from allocation_kernel.domain.dtos import Actor, PaidSlot, RegenerationPolicy
from allocation_kernel.domain.schedule import (
    generate_schedule,
    generate_schedule_preserving,
    months_between,
)
from allocation_kernel.exceptions import PaidInstallmentConflictError
from allocation_kernel.logging_config import get_logger
from allocation_kernel.models.member import Member
from allocation_kernel.models.project import Project
from allocation_kernel.services.base import BaseService
from allocation_kernel.services.payment_ledger import PaymentLedger

logger = get_logger("services.recalculation_coordinator")


class RecalculationCoordinator(BaseService):
    """
    Recomputes member amounts and schedules.

    Contract:
        The caller holds the project lock and owns the transaction.  The
        coordinator decides WHAT to write; PaymentLedger writes it.
    """

    def __init__(
        self,
        session,
        clock=None,
        audit=None,
        policy: RegenerationPolicy = RegenerationPolicy.REPLACE_ALL,
        rounding: str = DEFAULT_ROUNDING,
        payment_ledger: PaymentLedger | None = None,
    ):
        super().__init__(session, clock, audit)
        self._policy = policy
        self._rounding = rounding
        self._payments = payment_ledger or PaymentLedger(session, self._clock, self._audit)

    @property
    def policy(self) -> RegenerationPolicy:
        return self._policy

    def allocate_member(self, project: Project, member: Member, actor: Actor) -> Member:
        """
        Recompute one member's amount and schedule.

        Returns:
            The same member, flushed.
        """
        member.calculated_amount = calculate_total(
            project.total_budget, member.percentage, self._rounding
        )
        member.updated_by_id = actor.actor_id
        self.session.flush()

        self._regenerate(project, member, actor)
        return member

    def recalculate_project(self, project: Project, actor: Actor) -> list[Member]:
        """
        Recompute every member of a project.

        Returns:
            The project's members ordered by created_at, ties broken by id.
        """
        members = list(project.members)
        for member in members:
            self.allocate_member(project, member, actor)

        logger.info(
            "project_recalculated",
            extra={
                "project_id": str(project.id),
                "member_count": len(members),
                "policy": self._policy.value,
            },
        )
        return members

    def _schedulable(self, project: Project) -> bool:
        return project.has_schedule_window and project.total_budget > ZERO

    def _regenerate(self, project: Project, member: Member, actor: Actor) -> None:
        if not self._schedulable(project):
            self._clear(project, member, actor)
            return

        months = months_between(project.start_date, project.end_date)

        if self._policy == RegenerationPolicy.PRESERVE_PAID:
            paid = [
                PaidSlot(i.month_number, i.monthly_amount, i.payment_month)
                for i in member.installments
                if i.is_paid
            ]
            schedule = generate_schedule_preserving(
                member.calculated_amount, months, project.start_date, paid
            )
            self._payments.replace_schedule(member, schedule, actor, keep_paid=True)
        else:
            schedule = generate_schedule(member.calculated_amount, months, project.start_date)
            self._payments.replace_schedule(member, schedule, actor)

        logger.info(
            "schedule_regenerated",
            extra={
                "project_id": str(project.id),
                "member_id": str(member.id),
                "months": months,
                "calculated_amount": str(member.calculated_amount),
            },
        )

    def _clear(self, project: Project, member: Member, actor: Actor) -> None:
        if self._policy == RegenerationPolicy.PRESERVE_PAID:
            paid = [i.monthly_amount for i in member.installments if i.is_paid]
            if paid:
                raise PaidInstallmentConflictError(
                    member.calculated_amount, sum(paid, ZERO), 0,
                    "schedule cannot be removed while installments are paid",
                )

        removed = self._payments.clear_schedule(member, actor)
        if removed:
            logger.info(
                "schedule_cleared",
                extra={
                    "project_id": str(project.id),
                    "member_id": str(member.id),
                    "removed": removed,
                },
            )
