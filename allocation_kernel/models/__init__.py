"""ORM models for the allocation kernel."""

from allocation_kernel.models.installment import (
    VALID_TRANSITIONS,
    Installment,
    InstallmentStatus,
)
from allocation_kernel.models.member import Member
from allocation_kernel.models.project import Project, ProjectStatus

__all__ = [
    "Project",
    "ProjectStatus",
    "Member",
    "Installment",
    "InstallmentStatus",
    "VALID_TRANSITIONS",
]
