"""
Settings Loader (``allocation_config.loader``).

Responsibility
--------------
Loads YAML settings files and parses them into the frozen dataclasses of
``allocation_config.schema``.  Runtime callers go through
``allocation_config.get_active_settings()``, not through this module.

Invariants enforced
-------------------
* All parse errors raise ``ValueError`` or ``KeyError`` with descriptive
  messages; no silent defaults for required fields.
* ``compute_checksum`` produces a deterministic SHA-256 hash of the merged
  settings, logged with every load.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing ``database.url``  -> ``KeyError``.
* Unknown rounding mode, policy, or log level  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from allocation_config.schema import (
    LOG_LEVELS,
    REGENERATION_POLICIES,
    ROUNDING_MODES,
    AllocationRules,
    AllocationSettings,
    DatabaseSettings,
    LoggingSettings,
)


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the top level is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: top level must be a mapping, got {type(data).__name__}")
    return data


def merge_sections(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Overlay override onto base, one level deep per section."""
    merged = {key: dict(value) if isinstance(value, dict) else value for key, value in base.items()}
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key].update(value)
        else:
            merged[key] = value
    return merged


def parse_decimal(value: Any, field_name: str) -> Decimal:
    if isinstance(value, float):
        # YAML floats lose precision; require a quoted string or an int
        value = str(value)
    try:
        return Decimal(str(value))
    except InvalidOperation as exc:
        raise ValueError(f"{field_name}: not a decimal number: {value!r}") from exc


def parse_database(data: dict[str, Any]) -> DatabaseSettings:
    """Parse DatabaseSettings.  ``url`` is required."""
    return DatabaseSettings(
        url=data["url"],
        echo=bool(data.get("echo", False)),
        pool_size=int(data.get("pool_size", 20)),
        max_overflow=int(data.get("max_overflow", 10)),
        pool_timeout=int(data.get("pool_timeout", 30)),
        pool_recycle=int(data.get("pool_recycle", 1800)),
    )


def parse_allocation(data: dict[str, Any]) -> AllocationRules:
    """
    Parse AllocationRules.

    Raises:
        ValueError: on an unknown rounding mode or regeneration policy, or
            a percentage cap outside (0, 100].
    """
    cap = parse_decimal(data.get("max_total_percentage", "100"), "max_total_percentage")
    if cap <= 0 or cap > 100:
        raise ValueError(f"max_total_percentage must be in (0, 100], got {cap}")

    rounding = str(data.get("rounding", "ROUND_HALF_UP")).upper()
    if rounding not in ROUNDING_MODES:
        raise ValueError(
            f"Unknown rounding mode {rounding!r}. Allowed: {sorted(ROUNDING_MODES)}"
        )

    policy = str(data.get("regeneration_policy", "replace_all")).lower()
    if policy not in REGENERATION_POLICIES:
        raise ValueError(
            f"Unknown regeneration_policy {policy!r}. "
            f"Allowed: {sorted(REGENERATION_POLICIES)}"
        )

    return AllocationRules(
        max_total_percentage=cap,
        rounding=rounding,
        regeneration_policy=policy,
    )


def parse_logging(data: dict[str, Any]) -> LoggingSettings:
    level = str(data.get("level", "INFO")).upper()
    if level not in LOG_LEVELS:
        raise ValueError(f"Unknown log level {level!r}. Allowed: {sorted(LOG_LEVELS)}")
    return LoggingSettings(level=level)


def parse_settings(data: dict[str, Any], source: str = "<dict>") -> AllocationSettings:
    """
    Parse a complete AllocationSettings from a merged settings dict.

    Raises:
        KeyError: if the ``database`` section or ``database.url`` is missing.
        ValueError: on invalid values.
    """
    return AllocationSettings(
        database=parse_database(data["database"]),
        allocation=parse_allocation(data.get("allocation") or {}),
        logging=parse_logging(data.get("logging") or {}),
        source=source,
        checksum=compute_checksum(data),
    )


def compute_checksum(data: dict[str, Any]) -> str:
    """
    Compute SHA-256 checksum of canonical JSON serialization.

    Identical ``data`` always produces identical checksums.
    """
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
