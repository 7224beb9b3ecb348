"""
ledger_config -- single public entrypoint for ledger configuration.

Responsibility:
    Provides ``get_active_config()``, which returns a frozen
    ``LedgerSettings`` built from a YAML document.  Services never read
    configuration files or environment variables themselves.

Architecture position:
    Configuration -- sits above ``ledger_kernel``, ``ledger_modules`` and
    ``ledger_services`` and builds their policy and config objects.  None
    of those packages import from ``ledger_config``.

Resolution order:
    1. The ``path`` argument.
    2. The ``LEDGER_CONFIG`` environment variable.
    3. ``ledger_config/defaults/ledger.yaml``.

    ``DATABASE_URL`` in the environment overrides ``database.url``.

Failure modes:
    - ``FileNotFoundError`` -- the resolved file does not exist.
    - ``ValueError`` -- unknown keys or invalid values.
"""

from __future__ import annotations

import dataclasses
import os
from pathlib import Path

from ledger_config.loader import load_yaml_file, parse_settings
from ledger_config.schema import LedgerSettings
from ledger_kernel.logging_config import get_logger

logger = get_logger("config")

DEFAULT_CONFIG_PATH = Path(__file__).parent / "defaults" / "ledger.yaml"

CONFIG_ENV_VAR = "LEDGER_CONFIG"
DATABASE_URL_ENV_VAR = "DATABASE_URL"


def get_active_config(path: Path | str | None = None) -> LedgerSettings:
    """The public configuration entrypoint.

    Args:
        path: Explicit YAML file.  Defaults to ``$LEDGER_CONFIG``, then
            the packaged defaults.

    Returns:
        LedgerSettings parsed from the file, with ``database_url``
        replaced by ``$DATABASE_URL`` when that is set.
    """
    config_path = Path(path or os.environ.get(CONFIG_ENV_VAR) or DEFAULT_CONFIG_PATH)
    settings = parse_settings(load_yaml_file(config_path))

    database_url = os.environ.get(DATABASE_URL_ENV_VAR)
    if database_url:
        settings = dataclasses.replace(settings, database_url=database_url)

    logger.info(
        "ledger_config_loaded",
        extra={
            "config_path": str(config_path),
            "database_override": bool(database_url),
            "entity_name": settings.reporting.entity_name,
        },
    )
    return settings


__all__ = [
    "DEFAULT_CONFIG_PATH",
    "LedgerSettings",
    "get_active_config",
]
