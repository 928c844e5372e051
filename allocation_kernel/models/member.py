"""
Module: allocation_kernel.models.member
Responsibility: ORM persistence for project members -- a named percentage
    share of a project budget and the amount derived from it.
Architecture position: Kernel > Models.  May import from db/ and domain/dtos.

Invariants enforced:
    - 0 < percentage <= 100 (chk_member_percentage).
    - name is unique within a project (uq_member_project_name).
    - sum(percentage) <= 100 per project is NOT expressible as a constraint;
      PercentageLedger enforces it under the project row lock.
    - calculated_amount is derived data, written only by
      RecalculationCoordinator.

Failure modes:
    - IntegrityError on duplicate (project_id, name) if the service-level
      DuplicateMemberNameError check is bypassed.

Audit relevance:
    Member INSERT/UPDATE/DELETE audit records carry percentage and
    calculated_amount snapshots, so every change of a member's share can be
    reconstructed.
"""

from __future__ import annotations

from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import CheckConstraint, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from allocation_kernel.db.base import TrackedBase, UUIDString
from allocation_kernel.db.types import MoneyColumn, PercentageColumn

if TYPE_CHECKING:
    from allocation_kernel.domain.dtos import MemberInfo
    from allocation_kernel.models.installment import Installment
    from allocation_kernel.models.project import Project


class Member(TrackedBase):
    """
    A participant holding a percentage share of a project's budget.

    Guarantees:
        - installments are ordered by month_number and cascade on delete.
        - calculated_amount == round_half_up(budget * percentage / 100, 2)
          after every committed AllocationService operation.
    """

    __tablename__ = "project_members"

    __table_args__ = (
        UniqueConstraint("project_id", "name", name="uq_member_project_name"),
        CheckConstraint(
            "percentage > 0 AND percentage <= 100",
            name="chk_member_percentage",
        ),
        Index("idx_project_members_project", "project_id"),
    )

    project_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
    )

    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    # Free-form label, e.g. "Founder" or "Advisor"
    role: Mapped[str | None] = mapped_column(
        String(100),
        nullable=True,
    )

    percentage: Mapped[Decimal] = mapped_column(
        PercentageColumn,
        nullable=False,
    )

    calculated_amount: Mapped[Decimal] = mapped_column(
        MoneyColumn,
        nullable=False,
        default=Decimal("0.00"),
    )

    project: Mapped["Project"] = relationship(
        "Project",
        back_populates="members",
    )

    installments: Mapped[list["Installment"]] = relationship(
        "Installment",
        back_populates="member",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="Installment.month_number",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<Member {self.name}: {self.percentage}% = {self.calculated_amount}>"

    def snapshot(self) -> dict:
        """Audit snapshot of the mutable columns."""
        return {
            "project_id": self.project_id,
            "name": self.name,
            "role": self.role,
            "percentage": self.percentage,
            "calculated_amount": self.calculated_amount,
        }

    def to_dto(self) -> MemberInfo:
        """Convert ORM model to frozen domain DTO."""
        from allocation_kernel.domain.dtos import MemberInfo

        return MemberInfo(
            member_id=self.id,
            project_id=self.project_id,
            name=self.name,
            role=self.role,
            percentage=self.percentage,
            calculated_amount=self.calculated_amount,
            installments=tuple(i.to_dto() for i in self.installments),
        )
