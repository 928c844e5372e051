"""
AllocationService -- the operation surface of the allocation kernel.

Responsibility
--------------
Every mutation of projects, members and installments enters here.  Each
public method opens one unit of work, takes the project lock, runs
PercentageLedger -> AllocationCalculator -> ScheduleGenerator ->
PaymentLedger through RecalculationCoordinator, commits, and only then
dispatches the buffered audit records to the external recorder.

Architecture position
---------------------
**Kernel > Services** -- the one service that owns the transaction
boundary.  The ledgers and the coordinator it composes are flush-only.

Invariants enforced
-------------------
* Each public mutating method commits on success and rolls back on any
  exception, re-raising it.  A project-level recalculation therefore
  commits for every member or for none.
* The project row is locked before any percentage is validated or any
  schedule rewritten, and stays locked until commit or rollback.
* Audit records reach the recorder only after a successful commit;
  recorder failures are logged and swallowed.

Failure modes
-------------
* Validation errors (PercentageExceededError, InvalidPercentageError,
  InvalidBudgetError, InvalidDateRangeError, InvalidMonthNumberError,
  DuplicateMemberNameError) -> rolled back, re-raised, nothing written.
* Not-found errors for unknown project, member or installment ids.
* PaidInstallmentConflictError under the PRESERVE_PAID policy.
* Paying or cancelling a non-PENDING installment is NOT an error: the
  method returns False.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from allocation_kernel.db.types import DEFAULT_ROUNDING, ONE_HUNDRED, ZERO
from allocation_kernel.domain.audit import (
    AuditAction,
    AuditBuffer,
    AuditRecord,
    AuditRecorder,
    EntityKind,
)
from allocation_kernel.domain.calculator import (
    validate_budget,
    validate_date_range,
    validate_month_number,
    validate_percentage,
)
from allocation_kernel.domain.clock import Clock, SystemClock
from allocation_kernel.domain.dtos import (
    Actor,
    AllocationSummary,
    InstallmentInfo,
    MemberInfo,
    PaymentStatusSummary,
    ProjectInfo,
    RecalculationResult,
    RegenerationPolicy,
)
from allocation_kernel.exceptions import (
    DuplicateMemberNameError,
    InstallmentNotFoundError,
    MemberNotFoundError,
)
from allocation_kernel.logging_config import LogContext, get_logger
from allocation_kernel.models.installment import Installment
from allocation_kernel.models.member import Member
from allocation_kernel.models.project import Project, ProjectStatus
from allocation_kernel.selectors.payment_selector import PaymentSelector
from allocation_kernel.services.payment_ledger import PaymentLedger
from allocation_kernel.services.percentage_ledger import PercentageLedger
from allocation_kernel.services.recalculation_coordinator import RecalculationCoordinator

logger = get_logger("services.allocation")


class _Unchanged:
    """Sentinel type for "leave this field as it is"."""

    _instance: _Unchanged | None = None

    def __new__(cls) -> _Unchanged:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNCHANGED"


UNCHANGED: Any = _Unchanged()


@dataclass(frozen=True)
class _UnitOfWork:
    """Flush-only collaborators bound to one transaction and its audit buffer."""

    audit: AuditBuffer
    clock: Clock
    percentages: PercentageLedger
    payments: PaymentLedger
    coordinator: RecalculationCoordinator

    def record(
        self,
        entity_kind: EntityKind,
        record_id: UUID,
        action: AuditAction,
        actor: Actor,
        before: dict[str, Any] | None = None,
        after: dict[str, Any] | None = None,
    ) -> None:
        self.audit.add(
            AuditRecord(
                entity_kind=entity_kind,
                record_id=record_id,
                action=action,
                actor_id=actor.actor_id,
                actor_name=actor.name,
                occurred_at=self.clock.now(),
                before=before,
                after=after,
            )
        )


class AllocationService:
    """
    Budget allocation and installment operations.

    Contract
    --------
    * Every mutating method takes an explicit ``actor`` and owns its
      transaction.
    * Read methods return frozen DTOs and end their read transaction.

    Guarantees
    ----------
    * sum(member.percentage) <= max_total_percentage per project.
    * sum(installment.monthly_amount) == member.calculated_amount for every
      member that has a schedule.
    * Clock is injectable for deterministic testing.

    Non-goals
    ---------
    * Does NOT authorize the actor; callers are trusted.
    * Does NOT retry on lock timeouts or serialization failures.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        audit_recorder: AuditRecorder | None = None,
        regeneration_policy: RegenerationPolicy = RegenerationPolicy.REPLACE_ALL,
        rounding: str = DEFAULT_ROUNDING,
        max_total_percentage: Decimal = ONE_HUNDRED,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._audit_recorder = audit_recorder
        self._policy = RegenerationPolicy(regeneration_policy)
        self._rounding = rounding
        self._max_total = max_total_percentage

    # =========================================================================
    # Transaction boundary
    # =========================================================================

    @contextmanager
    def _unit_of_work(
        self,
        operation: str,
        actor: Actor,
        **context: Any,
    ) -> Iterator[_UnitOfWork]:
        audit = AuditBuffer()
        payments = PaymentLedger(self._session, self._clock, audit)
        work = _UnitOfWork(
            audit=audit,
            clock=self._clock,
            percentages=PercentageLedger(
                self._session, self._clock, audit, max_total=self._max_total
            ),
            payments=payments,
            coordinator=RecalculationCoordinator(
                self._session,
                self._clock,
                audit,
                policy=self._policy,
                rounding=self._rounding,
                payment_ledger=payments,
            ),
        )

        with LogContext.bind(actor_id=actor.actor_id, **context):
            try:
                yield work
                self._session.commit()
            except Exception as exc:
                self._session.rollback()
                audit.discard()
                logger.warning(
                    "transaction_rolled_back",
                    extra={
                        "operation": operation,
                        "error_code": getattr(exc, "code", None),
                        "error": str(exc),
                    },
                )
                raise

            delivered = audit.dispatch(self._audit_recorder)
            logger.debug(
                "transaction_committed",
                extra={"operation": operation, "audit_records": delivered},
            )

    @contextmanager
    def _read(self) -> Iterator[PaymentSelector]:
        try:
            yield PaymentSelector(self._session, max_total=self._max_total)
        finally:
            # Release the read transaction (and the SQLite write lock it holds)
            self._session.rollback()

    def _member_for_update(self, member_id: UUID, work: _UnitOfWork) -> tuple[Project, Member]:
        found = self._session.get(Member, member_id)
        if found is None:
            raise MemberNotFoundError(member_id)
        project = work.percentages.lock_project(found.project_id)
        member = self._session.execute(
            select(Member)
            .where(Member.id == member_id)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if member is None:
            raise MemberNotFoundError(member_id)
        return project, member

    def _installment_project(self, installment_id: UUID) -> UUID:
        installment = self._session.get(Installment, installment_id)
        if installment is None:
            raise InstallmentNotFoundError(installment_id)
        return installment.project_id

    # =========================================================================
    # Projects
    # =========================================================================

    def create_project(
        self,
        name: str,
        total_budget: Decimal,
        *,
        actor: Actor,
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> ProjectInfo:
        """Create a project with no members."""
        with self._unit_of_work("create_project", actor) as work:
            budget = validate_budget(total_budget)
            validate_date_range(start_date, end_date)

            project = Project(
                name=name,
                total_budget=budget,
                start_date=start_date,
                end_date=end_date,
                status=ProjectStatus.OPEN.value,
                created_by_id=actor.actor_id,
            )
            self._session.add(project)
            self._session.flush()
            work.record(
                EntityKind.PROJECT, project.id, AuditAction.INSERT, actor,
                after=project.snapshot(),
            )
            info = project.to_dto()

        logger.info(
            "project_created",
            extra={
                "project_id": str(info.project_id),
                "total_budget": str(info.total_budget),
                "start_date": info.start_date,
                "end_date": info.end_date,
            },
        )
        return info

    def update_project_budget_or_dates(
        self,
        project_id: UUID,
        *,
        actor: Actor,
        total_budget: Decimal = UNCHANGED,
        start_date: date | None = UNCHANGED,
        end_date: date | None = UNCHANGED,
    ) -> RecalculationResult:
        """
        Change a project's budget and/or dates and recalculate every member.

        Fields left as UNCHANGED keep their stored value; passing None for a
        date clears it, which removes every member's schedule.  When the
        resulting values equal the stored ones nothing is written and the
        result has changed=False.
        """
        with self._unit_of_work(
            "update_project_budget_or_dates", actor, project_id=project_id
        ) as work:
            project = work.percentages.lock_project(project_id)

            new_budget = (
                project.total_budget if total_budget is UNCHANGED
                else validate_budget(total_budget)
            )
            new_start = project.start_date if start_date is UNCHANGED else start_date
            new_end = project.end_date if end_date is UNCHANGED else end_date
            validate_date_range(new_start, new_end)

            if (
                new_budget == project.total_budget
                and new_start == project.start_date
                and new_end == project.end_date
            ):
                result = RecalculationResult(project=project.to_dto(), changed=False)
            else:
                project_before = project.snapshot()
                members_before = {m.id: m.snapshot() for m in project.members}

                project.total_budget = new_budget
                project.start_date = new_start
                project.end_date = new_end
                project.updated_by_id = actor.actor_id
                self._session.flush()

                members = work.coordinator.recalculate_project(project, actor)

                work.record(
                    EntityKind.PROJECT, project.id, AuditAction.UPDATE, actor,
                    before=project_before, after=project.snapshot(),
                )
                for member in members:
                    after = member.snapshot()
                    if after != members_before[member.id]:
                        work.record(
                            EntityKind.MEMBER, member.id, AuditAction.UPDATE, actor,
                            before=members_before[member.id], after=after,
                        )

                result = RecalculationResult(
                    project=project.to_dto(),
                    changed=True,
                    members=tuple(m.to_dto() for m in members),
                )

        logger.info(
            "project_updated" if result.changed else "project_update_noop",
            extra={
                "project_id": str(project_id),
                "total_budget": str(result.project.total_budget),
                "start_date": result.project.start_date,
                "end_date": result.project.end_date,
                "members_recalculated": len(result.members),
            },
        )
        return result

    def delete_project(self, project_id: UUID, *, actor: Actor) -> None:
        """Delete a project with all of its members and installments."""
        with self._unit_of_work("delete_project", actor, project_id=project_id) as work:
            project = work.percentages.lock_project(project_id)
            removed = 0
            for member in project.members:
                removed += self._record_member_removal(work, member, actor)
            work.record(
                EntityKind.PROJECT, project.id, AuditAction.DELETE, actor,
                before=project.snapshot(),
            )
            self._session.delete(project)
            self._session.flush()

        logger.info(
            "project_deleted",
            extra={"project_id": str(project_id), "rows_removed": removed + 1},
        )

    # =========================================================================
    # Members
    # =========================================================================

    def create_member(
        self,
        project_id: UUID,
        name: str,
        percentage: Decimal,
        *,
        actor: Actor,
        role: str | None = None,
    ) -> MemberInfo:
        """
        Add a member to a project, compute its amount and schedule.

        Raises:
            InvalidPercentageError: percentage not in (0, 100].
            PercentageExceededError: the project would exceed the cap.
            DuplicateMemberNameError: name already used in the project.
            ProjectNotFoundError: unknown project.
        """
        with self._unit_of_work("create_member", actor, project_id=project_id) as work:
            pct = validate_percentage(percentage)
            project = work.percentages.lock_project(project_id)

            duplicate = self._session.execute(
                select(Member.id).where(Member.project_id == project.id, Member.name == name)
            ).first()
            if duplicate is not None:
                raise DuplicateMemberNameError(project.id, name)

            work.percentages.validate(project.id, pct)

            member = Member(
                project=project,
                project_id=project.id,
                name=name,
                role=role,
                percentage=pct,
                calculated_amount=ZERO,
                created_by_id=actor.actor_id,
            )
            self._session.add(member)
            self._session.flush()

            work.coordinator.allocate_member(project, member, actor)
            work.record(
                EntityKind.MEMBER, member.id, AuditAction.INSERT, actor,
                after=member.snapshot(),
            )
            info = member.to_dto()

        logger.info(
            "member_created",
            extra={
                "project_id": str(project_id),
                "member_id": str(info.member_id),
                "percentage": str(info.percentage),
                "calculated_amount": str(info.calculated_amount),
                "installments": len(info.installments),
            },
        )
        return info

    def update_member_percentage(
        self,
        member_id: UUID,
        percentage: Decimal,
        *,
        actor: Actor,
    ) -> MemberInfo:
        """
        Change a member's percentage and regenerate its schedule.

        The member's own current percentage is excluded from the cap check.
        Submitting the current percentage changes nothing.
        """
        with self._unit_of_work("update_member_percentage", actor, member_id=member_id) as work:
            pct = validate_percentage(percentage)
            project, member = self._member_for_update(member_id, work)

            if member.percentage == pct:
                info = member.to_dto()
                changed = False
            else:
                before = member.snapshot()
                work.percentages.validate(project.id, pct, exclude_member_id=member.id)

                member.percentage = pct
                member.updated_by_id = actor.actor_id
                self._session.flush()

                work.coordinator.allocate_member(project, member, actor)
                work.record(
                    EntityKind.MEMBER, member.id, AuditAction.UPDATE, actor,
                    before=before, after=member.snapshot(),
                )
                info = member.to_dto()
                changed = True

        logger.info(
            "member_percentage_updated" if changed else "member_percentage_unchanged",
            extra={
                "member_id": str(member_id),
                "percentage": str(info.percentage),
                "calculated_amount": str(info.calculated_amount),
            },
        )
        return info

    def delete_member(self, member_id: UUID, *, actor: Actor) -> None:
        """Remove a member and its installments, freeing its percentage."""
        with self._unit_of_work("delete_member", actor, member_id=member_id) as work:
            project, member = self._member_for_update(member_id, work)
            self._record_member_removal(work, member, actor)
            project.members.remove(member)
            self._session.delete(member)
            self._session.flush()

        logger.info("member_deleted", extra={"member_id": str(member_id)})

    def _record_member_removal(self, work: _UnitOfWork, member: Member, actor: Actor) -> int:
        for installment in member.installments:
            work.record(
                EntityKind.INSTALLMENT, installment.id, AuditAction.DELETE, actor,
                before=installment.snapshot(),
            )
        work.record(
            EntityKind.MEMBER, member.id, AuditAction.DELETE, actor,
            before=member.snapshot(),
        )
        return len(member.installments) + 1

    # =========================================================================
    # Payments
    # =========================================================================

    def mark_installment_paid(self, installment_id: UUID, *, actor: Actor) -> bool:
        """
        Mark one installment PAID.

        Returns:
            True on PENDING -> PAID; False if it was already PAID or
            CANCELLED.
        """
        with self._unit_of_work("mark_installment_paid", actor) as work:
            work.percentages.lock_project(self._installment_project(installment_id))
            paid = work.payments.mark_paid(installment_id, actor)
        return paid

    def mark_month_paid(self, project_id: UUID, month_number: int, *, actor: Actor) -> int:
        """
        Mark every PENDING installment of one project month PAID.

        Returns:
            Number of installments that changed.
        """
        with self._unit_of_work("mark_month_paid", actor, project_id=project_id) as work:
            validate_month_number(month_number)
            work.percentages.lock_project(project_id)
            count = work.payments.mark_month_paid(project_id, month_number, actor)
        return count

    def cancel_installment(self, installment_id: UUID, *, actor: Actor) -> bool:
        """
        Cancel one PENDING installment.

        Returns:
            True on PENDING -> CANCELLED; False otherwise.
        """
        with self._unit_of_work("cancel_installment", actor) as work:
            work.percentages.lock_project(self._installment_project(installment_id))
            cancelled = work.payments.cancel(installment_id, actor)
        return cancelled

    # =========================================================================
    # Reads
    # =========================================================================

    def get_project_payment_status(self, project_id: UUID) -> PaymentStatusSummary:
        with self._read() as selector:
            return selector.project_payment_status(project_id)

    def get_allocation_summary(self, project_id: UUID) -> AllocationSummary:
        with self._read() as selector:
            return selector.allocation_summary(project_id)

    def get_member_schedule(self, member_id: UUID) -> tuple[InstallmentInfo, ...]:
        with self._read() as selector:
            return selector.member_schedule(member_id)
