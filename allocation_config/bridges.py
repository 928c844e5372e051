"""
Config -> Kernel Bridges.

Functions that convert AllocationSettings into kernel-compatible inputs.
These live in allocation_config (the producer) because the kernel must
NEVER import allocation_config.

Usage:
    from allocation_config import get_active_settings
    from allocation_config.bridges import build_allocation_service, init_engine_from_settings

    settings = get_active_settings()
    init_engine_from_settings(settings)
    with session_scope() as session:
        service = build_allocation_service(session, settings)
"""

from __future__ import annotations

import decimal
from typing import Any

from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session

from allocation_config.schema import AllocationSettings
from allocation_kernel.db.engine import init_engine_from_url
from allocation_kernel.domain.audit import AuditRecorder
from allocation_kernel.domain.clock import Clock
from allocation_kernel.domain.dtos import RegenerationPolicy
from allocation_kernel.logging_config import configure_logging
from allocation_kernel.services.allocation_service import AllocationService


def service_options(settings: AllocationSettings) -> dict[str, Any]:
    """
    AllocationService keyword arguments derived from settings.

    Returns:
        Dict with regeneration_policy, rounding and max_total_percentage.
    """
    rules = settings.allocation
    return {
        "regeneration_policy": RegenerationPolicy(rules.regeneration_policy),
        "rounding": getattr(decimal, rules.rounding),
        "max_total_percentage": rules.max_total_percentage,
    }


def build_allocation_service(
    session: Session,
    settings: AllocationSettings,
    clock: Clock | None = None,
    audit_recorder: AuditRecorder | None = None,
) -> AllocationService:
    """Construct an AllocationService configured from settings."""
    return AllocationService(
        session,
        clock=clock,
        audit_recorder=audit_recorder,
        **service_options(settings),
    )


def init_engine_from_settings(settings: AllocationSettings) -> Engine:
    """Configure logging and initialize the kernel engine from settings."""
    configure_logging(level=settings.logging.level)
    db = settings.database
    return init_engine_from_url(
        db.url,
        echo=db.echo,
        pool_size=db.pool_size,
        max_overflow=db.max_overflow,
        pool_timeout=db.pool_timeout,
        pool_recycle=db.pool_recycle,
    )
