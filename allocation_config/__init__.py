"""
allocation_config -- single public entrypoint for runtime settings.

Responsibility:
    Provides the ONLY way to obtain settings at runtime through
    ``get_active_settings()``.  No other component reads settings files or
    environment variables directly.

Architecture position:
    Configuration.  This package sits above ``allocation_kernel``.  The
    kernel MUST NEVER import from ``allocation_config``; ``bridges``
    translates settings into kernel constructor arguments.

Failure modes:
    - ``FileNotFoundError`` -- config_path does not exist.
    - ``ValueError`` / ``KeyError`` -- invalid or missing values.

Audit relevance:
    Every successful ``get_active_settings()`` call emits an
    ``allocation_config_loaded`` log entry with the source and checksum of
    the merged settings.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from pathlib import Path

from allocation_config.loader import load_yaml_file, merge_sections, parse_settings
from allocation_config.schema import (
    AllocationRules,
    AllocationSettings,
    DatabaseSettings,
    LoggingSettings,
)

_logger = logging.getLogger("allocation_kernel.config")

DEFAULTS_PATH = Path(__file__).parent / "defaults.yaml"

DATABASE_URL_ENV = "DATABASE_URL"


def get_active_settings(
    config_path: Path | str | None = None,
    environ: Mapping[str, str] | None = None,
) -> AllocationSettings:
    """The ONLY public settings entrypoint.

    Loads the packaged defaults, overlays ``config_path`` when given, then
    applies the ``DATABASE_URL`` environment override.

    Args:
        config_path: Optional YAML file overriding the defaults.
        environ: Environment mapping; defaults to ``os.environ``.

    Returns:
        Frozen AllocationSettings.

    Raises:
        FileNotFoundError: If config_path does not exist.
        ValueError: If a value is invalid.
        KeyError: If a required key is missing.
    """
    env = os.environ if environ is None else environ

    data = load_yaml_file(DEFAULTS_PATH)
    source = str(DEFAULTS_PATH)
    if config_path is not None:
        data = merge_sections(data, load_yaml_file(Path(config_path)))
        source = str(config_path)

    if env.get(DATABASE_URL_ENV):
        data = merge_sections(data, {"database": {"url": env[DATABASE_URL_ENV]}})
        source = f"{source} (+{DATABASE_URL_ENV})"

    settings = parse_settings(data, source=source)

    _logger.info(
        "allocation_config_loaded",
        extra={
            "source": settings.source,
            "checksum": settings.checksum,
            "regeneration_policy": settings.allocation.regeneration_policy,
            "rounding": settings.allocation.rounding,
        },
    )
    return settings


__all__ = [
    "AllocationRules",
    "AllocationSettings",
    "DatabaseSettings",
    "LoggingSettings",
    "get_active_settings",
]
