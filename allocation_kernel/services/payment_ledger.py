"""
PaymentLedger -- installment persistence and payment state.

Responsibility:
    Writes a member's installment set (replace or clear as one swap) and
    moves individual installments through PENDING -> PAID / CANCELLED.

Architecture position:
    Kernel > Services -- imperative shell, flush-only.

Invariants enforced:
    - Only PENDING installments are paid or cancelled.  A request against
      a PAID or CANCELLED installment is a no-op that returns False.
    - paid_date comes from the injected clock; paid_by_id is the actor.
    - A schedule swap deletes the old rows and flushes before inserting the
      new ones, so the (member_id, month_number) key never collides inside
      the transaction.

Failure modes:
    - InstallmentNotFoundError on an unknown installment id.
    - InvalidMonthNumberError on month_number < 1.

Audit relevance:
    One INSERT / DELETE record per swapped row and one UPDATE record per
    status change, all buffered until the caller commits.
"""

from collections.abc import Sequence
from uuid import UUID

from sqlalchemy import select

from allocation_kernel.domain.audit import AuditAction, EntityKind
from allocation_kernel.domain.calculator import validate_month_number
from allocation_kernel.domain.dtos import Actor, ScheduledInstallment
from allocation_kernel.exceptions import InstallmentNotFoundError
from allocation_kernel.logging_config import get_logger
from allocation_kernel.models.installment import Installment, InstallmentStatus
from allocation_kernel.models.member import Member
from allocation_kernel.services.base import BaseService

logger = get_logger("services.payment_ledger")


class PaymentLedger(BaseService):
    """
    Installment writes and payment transitions.

    Contract:
        Runs inside the caller's unit of work.  Methods flush, never commit.
    """

    # =========================================================================
    # Schedule writes
    # =========================================================================

    def replace_schedule(
        self,
        member: Member,
        schedule: Sequence[ScheduledInstallment],
        actor: Actor,
        keep_paid: bool = False,
    ) -> list[Installment]:
        """
        Swap a member's installments for a newly generated set.

        Args:
            member: The member whose schedule is replaced.
            schedule: New slots to insert as PENDING installments.
            actor: Who triggered the regeneration.
            keep_paid: Leave PAID installments in place (preserve-paid
                regeneration).  The new slots must not reuse their month
                numbers.

        Returns:
            The inserted installments, ordered by month_number.
        """
        removed = [
            i for i in member.installments
            if not (keep_paid and i.status == InstallmentStatus.PAID.value)
        ]
        for installment in removed:
            self._record(
                EntityKind.INSTALLMENT,
                installment.id,
                AuditAction.DELETE,
                actor,
                before=installment.snapshot(),
            )
            self.session.delete(installment)
        self.session.flush()
        self.session.expire(member, ["installments"])

        added = [
            Installment(
                project_id=member.project_id,
                member_id=member.id,
                month_number=slot.month_number,
                payment_month=slot.payment_month,
                monthly_amount=slot.monthly_amount,
                status=InstallmentStatus.PENDING.value,
                created_by_id=actor.actor_id,
            )
            for slot in schedule
        ]
        self.session.add_all(added)
        self.session.flush()
        self.session.expire(member, ["installments"])

        for installment in added:
            self._record(
                EntityKind.INSTALLMENT,
                installment.id,
                AuditAction.INSERT,
                actor,
                after=installment.snapshot(),
            )

        logger.info(
            "schedule_replaced",
            extra={
                "member_id": str(member.id),
                "removed": len(removed),
                "inserted": len(added),
                "kept_paid": keep_paid,
            },
        )
        return added

    def clear_schedule(self, member: Member, actor: Actor) -> int:
        """Delete every installment of a member.  Returns the number removed."""
        count = len(member.installments)
        if count:
            self.replace_schedule(member, (), actor)
        return count

    # =========================================================================
    # Payment transitions
    # =========================================================================

    def get_for_update(self, installment_id: UUID) -> Installment:
        installment = self.session.execute(
            select(Installment)
            .where(Installment.id == installment_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if installment is None:
            raise InstallmentNotFoundError(installment_id)
        return installment

    def mark_paid(self, installment_id: UUID, actor: Actor) -> bool:
        """
        Mark one installment PAID.

        Returns:
            True if it moved PENDING -> PAID, False if it was already PAID
            or CANCELLED (nothing written).

        Raises:
            InstallmentNotFoundError: If the id is unknown.
        """
        installment = self.get_for_update(installment_id)
        return self._pay(installment, actor)

    def mark_month_paid(self, project_id: UUID, month_number: int, actor: Actor) -> int:
        """
        Mark every PENDING installment of a project's month PAID.

        Returns:
            Number of installments that changed.  0 when none are pending.
        """
        validate_month_number(month_number)
        pending = self.session.execute(
            select(Installment)
            .where(
                Installment.project_id == project_id,
                Installment.month_number == month_number,
                Installment.status == InstallmentStatus.PENDING.value,
            )
            .order_by(Installment.member_id)
            .with_for_update()
        ).scalars().all()

        count = sum(1 for installment in pending if self._pay(installment, actor))
        logger.info(
            "month_marked_paid",
            extra={
                "project_id": str(project_id),
                "month_number": month_number,
                "count": count,
            },
        )
        return count

    def cancel(self, installment_id: UUID, actor: Actor) -> bool:
        """
        Cancel one installment.

        Returns:
            True if it moved PENDING -> CANCELLED, False otherwise.
        """
        installment = self.get_for_update(installment_id)
        if not installment.can_transition(InstallmentStatus.CANCELLED):
            logger.info(
                "installment_cancel_skipped",
                extra={"installment_id": str(installment.id), "status": installment.status},
            )
            return False

        before = installment.snapshot()
        installment.cancel(actor.actor_id)
        self.session.flush()
        self._record(
            EntityKind.INSTALLMENT,
            installment.id,
            AuditAction.UPDATE,
            actor,
            before=before,
            after=installment.snapshot(),
        )
        logger.info("installment_cancelled", extra={"installment_id": str(installment.id)})
        return True

    def _pay(self, installment: Installment, actor: Actor) -> bool:
        if not installment.can_transition(InstallmentStatus.PAID):
            logger.info(
                "installment_payment_skipped",
                extra={"installment_id": str(installment.id), "status": installment.status},
            )
            return False

        before = installment.snapshot()
        installment.mark_paid(self._clock.today(), actor.actor_id)
        self.session.flush()
        self._record(
            EntityKind.INSTALLMENT,
            installment.id,
            AuditAction.UPDATE,
            actor,
            before=before,
            after=installment.snapshot(),
        )
        logger.info(
            "installment_paid",
            extra={
                "installment_id": str(installment.id),
                "member_id": str(installment.member_id),
                "month_number": installment.month_number,
                "amount": str(installment.monthly_amount),
            },
        )
        return True
