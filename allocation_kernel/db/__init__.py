"""Database layer - engine, base classes, and column types."""

from allocation_kernel.db.base import Base, TrackedBase, UUIDString
from allocation_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_engine,
    get_session,
    get_session_factory,
    init_engine_from_url,
    reset_engine,
    session_scope,
)
from allocation_kernel.db.types import (
    MoneyColumn,
    PercentageColumn,
    round_money,
    truncate_money,
)

__all__ = [
    "get_engine",
    "get_session",
    "get_session_factory",
    "init_engine_from_url",
    "reset_engine",
    "session_scope",
    "create_tables",
    "drop_tables",
    "Base",
    "TrackedBase",
    "UUIDString",
    "MoneyColumn",
    "PercentageColumn",
    "round_money",
    "truncate_money",
]
