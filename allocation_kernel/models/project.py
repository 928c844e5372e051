"""
Module: allocation_kernel.models.project
Responsibility: ORM persistence for projects -- the budget and date range
    that every member allocation and installment is derived from.
Architecture position: Kernel > Models.  May import from db/ and domain/dtos.

Invariants enforced:
    - total_budget >= 0 (chk_project_budget).
    - end_date >= start_date when both are present (chk_project_dates).
    - Deleting a project deletes its members and, through them, every
      installment (ORM cascade and ON DELETE CASCADE).

Failure modes:
    - IntegrityError if a CHECK constraint is violated.  The service layer
      validates first and raises InvalidBudgetError / InvalidDateRangeError,
      so the constraint only fires on direct writes.

Audit relevance:
    Project rows are the root of the ownership tree.  Budget and date changes
    trigger a full recalculation of every member and produce UPDATE audit
    records for the project and each affected member.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING

from sqlalchemy import CheckConstraint, Index, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from allocation_kernel.db.base import TrackedBase
from allocation_kernel.db.types import MoneyColumn

if TYPE_CHECKING:
    from allocation_kernel.domain.dtos import ProjectInfo
    from allocation_kernel.models.member import Member


class ProjectStatus(str, Enum):
    """Lifecycle status of a project."""

    OPEN = "OPEN"
    CLOSED = "CLOSED"
    CANCELLED = "CANCELLED"


class Project(TrackedBase):
    """
    A budgeted project whose budget is split among members.

    Contract:
        Members and their schedules are derived data.  Any change to
        total_budget, start_date or end_date must go through
        AllocationService.update_project_budget_or_dates so that every
        member is recalculated in the same transaction.

    Guarantees:
        - members are loaded eagerly (selectin) and cascade on delete.
        - has_schedule_window is True only when both dates are set.
    """

    __tablename__ = "projects"

    __table_args__ = (
        CheckConstraint("total_budget >= 0", name="chk_project_budget"),
        CheckConstraint(
            "start_date IS NULL OR end_date IS NULL OR end_date >= start_date",
            name="chk_project_dates",
        ),
        Index("idx_projects_status", "status"),
    )

    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    total_budget: Mapped[Decimal] = mapped_column(
        MoneyColumn,
        nullable=False,
        default=Decimal("0.00"),
    )

    # Schedule window; installments exist only when both are set
    start_date: Mapped[date | None] = mapped_column(nullable=True)
    end_date: Mapped[date | None] = mapped_column(nullable=True)

    status: Mapped[str] = mapped_column(
        String(20),
        default=ProjectStatus.OPEN.value,
        nullable=False,
    )

    members: Mapped[list["Member"]] = relationship(
        "Member",
        back_populates="project",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="[Member.created_at, Member.id]",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<Project {self.name}: {self.total_budget} ({self.status})>"

    @property
    def has_schedule_window(self) -> bool:
        """Check if both start and end dates are set."""
        return self.start_date is not None and self.end_date is not None

    def snapshot(self) -> dict:
        """Audit snapshot of the mutable columns."""
        return {
            "name": self.name,
            "total_budget": self.total_budget,
            "start_date": self.start_date,
            "end_date": self.end_date,
            "status": self.status,
        }

    def to_dto(self) -> ProjectInfo:
        """Convert ORM model to frozen domain DTO."""
        from allocation_kernel.domain.dtos import ProjectInfo

        return ProjectInfo(
            project_id=self.id,
            name=self.name,
            total_budget=self.total_budget,
            start_date=self.start_date,
            end_date=self.end_date,
            status=ProjectStatus(self.status),
        )
