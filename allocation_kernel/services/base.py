"""
Base class for the flush-only services.

PercentageLedger, PaymentLedger and RecalculationCoordinator all run inside
a transaction that AllocationService opened.  They write with
``session.flush()`` and append audit records to the unit of work's buffer;
committing, rolling back and dispatching audit records is left to
AllocationService, which does not extend this class.  A ledger that
committed on its own would break the all-members-or-nothing guarantee of a
project recalculation.
"""

from abc import ABC
from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from allocation_kernel.domain.audit import AuditAction, AuditBuffer, AuditRecord, EntityKind
from allocation_kernel.domain.clock import Clock, SystemClock
from allocation_kernel.domain.dtos import Actor


class BaseService(ABC):
    """Holds the session, clock and audit buffer shared by a unit of work."""

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        audit: AuditBuffer | None = None,
    ):
        self.session = session
        self._clock = clock or SystemClock()
        self._audit = audit if audit is not None else AuditBuffer()

    def _record(
        self,
        entity_kind: EntityKind,
        record_id: UUID,
        action: AuditAction,
        actor: Actor,
        before: dict[str, Any] | None = None,
        after: dict[str, Any] | None = None,
    ) -> None:
        self._audit.add(
            AuditRecord(
                entity_kind=entity_kind,
                record_id=record_id,
                action=action,
                actor_id=actor.actor_id,
                actor_name=actor.name,
                occurred_at=self._clock.now(),
                before=before,
                after=after,
            )
        )
