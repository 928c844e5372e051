"""
Runtime settings schema.

YAML files are parsed into these frozen dataclasses by the loader.
Values are plain data; bridges.py turns them into kernel arguments.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

# Rounding modes accepted for calculated amounts (names of decimal module constants)
ROUNDING_MODES: frozenset[str] = frozenset({
    "ROUND_HALF_UP",
    "ROUND_HALF_EVEN",
    "ROUND_HALF_DOWN",
    "ROUND_UP",
    "ROUND_DOWN",
    "ROUND_CEILING",
    "ROUND_FLOOR",
})

REGENERATION_POLICIES: frozenset[str] = frozenset({"replace_all", "preserve_paid"})

LOG_LEVELS: frozenset[str] = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})


@dataclass(frozen=True)
class DatabaseSettings:
    """Engine construction arguments."""

    url: str
    echo: bool = False
    pool_size: int = 20
    max_overflow: int = 10
    pool_timeout: int = 30
    pool_recycle: int = 1800


@dataclass(frozen=True)
class AllocationRules:
    """Allocation behaviour that may vary per deployment."""

    max_total_percentage: Decimal = Decimal("100")
    rounding: str = "ROUND_HALF_UP"
    regeneration_policy: str = "replace_all"


@dataclass(frozen=True)
class LoggingSettings:
    level: str = "INFO"


@dataclass(frozen=True)
class AllocationSettings:
    """The complete runtime settings artifact."""

    database: DatabaseSettings
    allocation: AllocationRules = field(default_factory=AllocationRules)
    logging: LoggingSettings = field(default_factory=LoggingSettings)
    source: str = "<defaults>"
    checksum: str = ""
