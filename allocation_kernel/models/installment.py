"""
Module: allocation_kernel.models.installment
Responsibility: ORM persistence for member installments -- one monthly slice
    of a member's calculated amount, with its payment status.
Architecture position: Kernel > Models.  May import from db/, exceptions,
    and domain/dtos.

Invariants enforced:
    - month_number >= 1 and unique per member (uq_installment_member_month).
    - monthly_amount >= 0 (chk_installment_amount).
    - status in {PENDING, PAID, CANCELLED}; PAID and CANCELLED are terminal
      (VALID_TRANSITIONS, enforced by mark_paid / cancel).
    - paid_date and paid_by_id are set only on the PENDING -> PAID transition.

Failure modes:
    - InvalidStateTransitionError when mark_paid / cancel is called on a
      terminal installment.  PaymentLedger checks can_transition() first and
      reports a refused transition as a no-op instead.

Audit relevance:
    Installment rows are replaced wholesale on recalculation.  Each removed
    and each inserted row produces its own DELETE / INSERT audit record;
    payments produce UPDATE records with the status before and after.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import CheckConstraint, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from allocation_kernel.db.base import TrackedBase, UUIDString
from allocation_kernel.db.types import MoneyColumn
from allocation_kernel.exceptions import InvalidStateTransitionError

if TYPE_CHECKING:
    from allocation_kernel.domain.dtos import InstallmentInfo
    from allocation_kernel.models.member import Member


class InstallmentStatus(str, Enum):
    """Payment status of an installment.

    Contract: PENDING -> PAID or PENDING -> CANCELLED.  Both targets are
    terminal.
    """

    PENDING = "PENDING"
    PAID = "PAID"
    CANCELLED = "CANCELLED"


VALID_TRANSITIONS: dict[InstallmentStatus, frozenset[InstallmentStatus]] = {
    InstallmentStatus.PENDING: frozenset({
        InstallmentStatus.PAID, InstallmentStatus.CANCELLED,
    }),
    InstallmentStatus.PAID: frozenset(),
    InstallmentStatus.CANCELLED: frozenset(),
}


class Installment(TrackedBase):
    """
    One month of a member's payment schedule.

    Contract:
        Rows are created by PaymentLedger.replace_schedule and change only
        through mark_paid() / cancel().  Amount and month are never edited
        in place; a recalculation replaces the rows.

    Guarantees:
        - project_id always equals member.project_id (denormalized for the
          month-wide bulk payment query).
    """

    __tablename__ = "member_installments"

    __table_args__ = (
        UniqueConstraint("member_id", "month_number", name="uq_installment_member_month"),
        CheckConstraint("month_number > 0", name="chk_installment_month"),
        CheckConstraint("monthly_amount >= 0", name="chk_installment_amount"),
        CheckConstraint(
            "status IN ('PENDING', 'PAID', 'CANCELLED')",
            name="chk_installment_status",
        ),
        Index("idx_installments_project_month", "project_id", "month_number"),
        Index("idx_installments_status", "status"),
    )

    # Denormalized from member.project_id
    project_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
    )

    member_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("project_members.id", ondelete="CASCADE"),
        nullable=False,
    )

    month_number: Mapped[int] = mapped_column(nullable=False)

    # First day of the calendar month this installment covers
    payment_month: Mapped[date] = mapped_column(nullable=False)

    monthly_amount: Mapped[Decimal] = mapped_column(
        MoneyColumn,
        nullable=False,
    )

    status: Mapped[str] = mapped_column(
        String(20),
        default=InstallmentStatus.PENDING.value,
        nullable=False,
    )

    paid_date: Mapped[date | None] = mapped_column(nullable=True)

    paid_by_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        nullable=True,
    )

    member: Mapped["Member"] = relationship(
        "Member",
        back_populates="installments",
    )

    def __repr__(self) -> str:
        return (
            f"<Installment month={self.month_number} "
            f"{self.monthly_amount} ({self.status})>"
        )

    @property
    def status_enum(self) -> InstallmentStatus:
        return InstallmentStatus(self.status)

    @property
    def is_paid(self) -> bool:
        return self.status_enum == InstallmentStatus.PAID

    def can_transition(self, target: InstallmentStatus) -> bool:
        """Check if the installment may move to target."""
        return target in VALID_TRANSITIONS[self.status_enum]

    def _transition(self, target: InstallmentStatus) -> None:
        if not self.can_transition(target):
            raise InvalidStateTransitionError(self.id, self.status, target.value)
        self.status = target.value

    def mark_paid(self, paid_date: date, actor_id: UUID) -> None:
        """Move PENDING -> PAID.

        Preconditions: status is PENDING.
        Postconditions: status is PAID; paid_date and paid_by_id are set.
        Raises: InvalidStateTransitionError otherwise.

        Note: paid_date comes from the injected clock -- does NOT call
        date.today().
        """
        self._transition(InstallmentStatus.PAID)
        self.paid_date = paid_date
        self.paid_by_id = actor_id
        self.updated_by_id = actor_id

    def cancel(self, actor_id: UUID) -> None:
        """Move PENDING -> CANCELLED.

        Raises: InvalidStateTransitionError if not PENDING.
        """
        self._transition(InstallmentStatus.CANCELLED)
        self.updated_by_id = actor_id

    def snapshot(self) -> dict:
        """Audit snapshot of the mutable columns."""
        return {
            "member_id": self.member_id,
            "month_number": self.month_number,
            "payment_month": self.payment_month,
            "monthly_amount": self.monthly_amount,
            "status": self.status,
            "paid_date": self.paid_date,
        }

    def to_dto(self) -> InstallmentInfo:
        """Convert ORM model to frozen domain DTO."""
        from allocation_kernel.domain.dtos import InstallmentInfo

        return InstallmentInfo(
            installment_id=self.id,
            project_id=self.project_id,
            member_id=self.member_id,
            month_number=self.month_number,
            payment_month=self.payment_month,
            monthly_amount=self.monthly_amount,
            status=self.status_enum,
            paid_date=self.paid_date,
            paid_by_id=self.paid_by_id,
        )
