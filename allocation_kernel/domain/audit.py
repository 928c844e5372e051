"""
Audit -- change records and the external recorder boundary.

Responsibility:
    Describes every insert, update and delete the kernel performs on
    projects, members and installments, buffers those records for the
    length of a unit of work, and hands them to an external AuditRecorder
    once the unit of work has committed.

Architecture position:
    Kernel > Domain.  The recorder is an outbound port; the kernel ships
    two adapters (in-memory and structured logging) and accepts any object
    with a ``record(event)`` method.

Invariants enforced:
    - Records are dispatched only after commit.  A rolled-back unit of work
      discards its buffer, so no record describes a change that did not
      persist.
    - Dispatch is fire-and-forget: a failing recorder is logged and never
      propagates into the caller or blocks the remaining records.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import Any, Protocol
from uuid import UUID

from allocation_kernel.logging_config import get_logger

logger = get_logger("domain.audit")


class EntityKind(str, Enum):
    PROJECT = "PROJECT"
    MEMBER = "MEMBER"
    INSTALLMENT = "INSTALLMENT"


class AuditAction(str, Enum):
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


def _freeze(snapshot: Mapping[str, Any] | None) -> Mapping[str, Any] | None:
    if snapshot is None:
        return None
    return MappingProxyType(dict(snapshot))


@dataclass(frozen=True)
class AuditRecord:
    """
    One row-level change.

    before is None for INSERT, after is None for DELETE.
    """

    entity_kind: EntityKind
    record_id: UUID
    action: AuditAction
    actor_id: UUID
    actor_name: str | None
    occurred_at: datetime
    before: Mapping[str, Any] | None = None
    after: Mapping[str, Any] | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "before", _freeze(self.before))
        object.__setattr__(self, "after", _freeze(self.after))

    @property
    def changed_fields(self) -> tuple[str, ...]:
        """Names of fields whose value differs between before and after."""
        if self.before is None or self.after is None:
            return ()
        keys = sorted(set(self.before) | set(self.after))
        return tuple(k for k in keys if self.before.get(k) != self.after.get(k))


class AuditRecorder(Protocol):
    """Outbound port receiving committed change records."""

    def record(self, event: AuditRecord) -> None:
        """Persist or forward a single record."""
        ...


class InMemoryAuditRecorder:
    """Keeps records in a list.  For tests and local runs."""

    def __init__(self) -> None:
        self.records: list[AuditRecord] = []

    def record(self, event: AuditRecord) -> None:
        self.records.append(event)

    def for_record(self, record_id: UUID) -> list[AuditRecord]:
        return [r for r in self.records if r.record_id == record_id]

    def of_kind(
        self,
        entity_kind: EntityKind,
        action: AuditAction | None = None,
    ) -> list[AuditRecord]:
        return [
            r for r in self.records
            if r.entity_kind == entity_kind and (action is None or r.action == action)
        ]

    def clear(self) -> None:
        self.records.clear()


class LoggingAuditRecorder:
    """Writes one structured log line per record."""

    def __init__(self, logger_name: str = "audit") -> None:
        self._logger = get_logger(logger_name)

    def record(self, event: AuditRecord) -> None:
        self._logger.info(
            "audit_record",
            extra={
                "entity_kind": event.entity_kind.value,
                "record_id": str(event.record_id),
                "action": event.action.value,
                "actor_id": str(event.actor_id),
                "actor_name": event.actor_name,
                "occurred_at": event.occurred_at.isoformat(),
                "before": dict(event.before) if event.before is not None else None,
                "after": dict(event.after) if event.after is not None else None,
            },
        )


@dataclass
class AuditBuffer:
    """
    Records collected during one unit of work.

    The owning service calls dispatch() after commit or discard() after
    rollback.
    """

    records: list[AuditRecord] = field(default_factory=list)

    def add(self, record: AuditRecord) -> None:
        self.records.append(record)

    def __len__(self) -> int:
        return len(self.records)

    def discard(self) -> None:
        if self.records:
            logger.debug("audit_records_discarded", extra={"count": len(self.records)})
        self.records.clear()

    def dispatch(self, recorder: AuditRecorder | None) -> int:
        """
        Hand every buffered record to recorder and empty the buffer.

        Returns:
            Number of records the recorder accepted without raising.
        """
        pending, self.records = self.records, []
        if recorder is None:
            return 0

        delivered = 0
        for event in pending:
            try:
                recorder.record(event)
            except Exception:
                logger.exception(
                    "audit_dispatch_failed",
                    extra={
                        "entity_kind": event.entity_kind.value,
                        "record_id": str(event.record_id),
                        "action": event.action.value,
                    },
                )
            else:
                delivered += 1
        return delivered
