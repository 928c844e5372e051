"""Pure domain layer: DTOs, allocation arithmetic, schedules, clock, audit records."""

from allocation_kernel.domain.audit import (
    AuditAction,
    AuditBuffer,
    AuditRecord,
    AuditRecorder,
    EntityKind,
    InMemoryAuditRecorder,
    LoggingAuditRecorder,
)
from allocation_kernel.domain.calculator import (
    calculate_total,
    validate_budget,
    validate_date_range,
    validate_month_number,
    validate_percentage,
)
from allocation_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from allocation_kernel.domain.dtos import (
    Actor,
    AllocationStatus,
    AllocationSummary,
    InstallmentInfo,
    MemberInfo,
    PaidSlot,
    PaymentStatusSummary,
    ProjectInfo,
    RecalculationResult,
    RegenerationPolicy,
    ScheduledInstallment,
)
from allocation_kernel.domain.schedule import (
    add_months,
    generate_schedule,
    generate_schedule_preserving,
    month_start,
    months_between,
)

__all__ = [
    "Actor",
    "AllocationStatus",
    "AllocationSummary",
    "AuditAction",
    "AuditBuffer",
    "AuditRecord",
    "AuditRecorder",
    "Clock",
    "DeterministicClock",
    "EntityKind",
    "InMemoryAuditRecorder",
    "InstallmentInfo",
    "LoggingAuditRecorder",
    "MemberInfo",
    "PaidSlot",
    "PaymentStatusSummary",
    "ProjectInfo",
    "RecalculationResult",
    "RegenerationPolicy",
    "ScheduledInstallment",
    "SystemClock",
    "add_months",
    "calculate_total",
    "generate_schedule",
    "generate_schedule_preserving",
    "month_start",
    "months_between",
    "validate_budget",
    "validate_date_range",
    "validate_month_number",
    "validate_percentage",
]
