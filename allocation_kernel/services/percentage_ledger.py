"""
PercentageLedger -- per-project percentage-sum guard.

Responsibility:
    Keeps the sum of a project's member percentages at or below the cap
    (100).  Checks a candidate percentage against the current members,
    excluding the member being updated, under the project row lock.

Architecture position:
    Kernel > Services -- imperative shell, flush-only.

Invariants enforced:
    - sum(member.percentage) <= max_total for every project.  The check
      and the subsequent write happen while the caller holds the project
      lock from lock_project(), so two concurrent writers cannot both pass
      the check against the same stale total.

Failure modes:
    - ProjectNotFoundError from lock_project().
    - PercentageExceededError from validate().
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import select

from allocation_kernel.db.types import ONE_HUNDRED, ZERO, normalize_percentage
from allocation_kernel.exceptions import PercentageExceededError, ProjectNotFoundError
from allocation_kernel.logging_config import get_logger
from allocation_kernel.models.member import Member
from allocation_kernel.models.project import Project
from allocation_kernel.services.base import BaseService

logger = get_logger("services.percentage_ledger")


class PercentageLedger(BaseService):
    """
    Validates member percentages against the project cap.

    Contract:
        Call lock_project() first, then validate(), then write the member,
        all in one transaction.  The lock is released by the caller's
        commit or rollback.

    Guarantees:
        - validate() reads the committed member rows with a fresh query,
          never the possibly stale ``project.members`` collection.
    """

    def __init__(self, session, clock=None, audit=None, max_total: Decimal = ONE_HUNDRED):
        super().__init__(session, clock, audit)
        self._max_total = max_total

    @property
    def max_total(self) -> Decimal:
        return self._max_total

    def lock_project(self, project_id: UUID) -> Project:
        """
        Load a project with a row lock (SELECT ... FOR UPDATE).

        On SQLite the surrounding transaction already holds the database
        write lock (BEGIN IMMEDIATE) and FOR UPDATE is omitted by the
        dialect.

        Raises:
            ProjectNotFoundError: If no project has this id.
        """
        project = self.session.execute(
            select(Project)
            .where(Project.id == project_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if project is None:
            raise ProjectNotFoundError(project_id)
        return project

    def allocated_percentage(
        self,
        project_id: UUID,
        exclude_member_id: UUID | None = None,
    ) -> Decimal:
        """Sum of current member percentages, optionally without one member."""
        stmt = select(Member.percentage).where(Member.project_id == project_id)
        if exclude_member_id is not None:
            stmt = stmt.where(Member.id != exclude_member_id)
        percentages = self.session.execute(stmt).scalars().all()
        return normalize_percentage(sum(percentages, ZERO))

    def validate(
        self,
        project_id: UUID,
        candidate: Decimal,
        exclude_member_id: UUID | None = None,
    ) -> Decimal:
        """
        Check that adding candidate keeps the project within the cap.

        Returns:
            The would-be total.

        Raises:
            PercentageExceededError: If the total would exceed max_total.
        """
        current = self.allocated_percentage(project_id, exclude_member_id)
        would_be = current + candidate
        if would_be > self._max_total:
            logger.warning(
                "percentage_validation_failed",
                extra={
                    "project_id": str(project_id),
                    "current_total": str(current),
                    "attempted": str(candidate),
                    "would_be_total": str(would_be),
                },
            )
            raise PercentageExceededError(
                project_id=project_id,
                current_total=current,
                attempted=candidate,
                would_be_total=would_be,
                max_total=self._max_total,
            )
        return would_be
