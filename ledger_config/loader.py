"""
Configuration Loader (``ledger_config.loader``).

Responsibility
--------------
Loads a YAML configuration document and parses it into a frozen
``LedgerSettings``.  Runtime callers go through
``ledger_config.get_active_config()``; this module is the parsing layer
underneath it.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Unknown section or key  -> ``ValueError``.
* Unknown transaction type in ``numbering.prefixes``  -> ``ValueError``.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from ledger_config.schema import DEFAULT_DATABASE_URL, LedgerSettings
from ledger_kernel.domain.numbering import DEFAULT_PREFIXES, NumberingPolicy
from ledger_kernel.domain.rules import ChartPolicy
from ledger_kernel.models.transaction import TransactionType
from ledger_modules.budget.config import BudgetConfig
from ledger_modules.reporting.config import ReportingConfig

_SECTIONS = frozenset({"numbering", "chart", "budget", "reporting", "database"})


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Postconditions:
        - Returns a ``dict`` (empty if the YAML document is empty).
    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the document is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: top level must be a mapping")
    return data


def _check_keys(section: str, data: dict[str, Any], allowed: set[str]) -> None:
    unknown = set(data) - allowed
    if unknown:
        raise ValueError(f"Unknown {section} key(s): {', '.join(sorted(unknown))}")


def parse_numbering(data: dict[str, Any]) -> NumberingPolicy:
    """
    Parse a NumberingPolicy.

    ``prefixes`` maps transaction type values to prefixes and is merged
    over the built-in table, so a document only lists the prefixes it
    changes.
    """
    _check_keys(
        "numbering", data,
        {"prefixes", "sequence_width", "line_separator", "reversal_suffix"},
    )
    prefixes = dict(DEFAULT_PREFIXES)
    for type_value, prefix in (data.get("prefixes") or {}).items():
        try:
            prefixes[TransactionType(type_value)] = str(prefix)
        except ValueError:
            raise ValueError(f"Unknown transaction type in numbering.prefixes: {type_value!r}") from None

    kwargs = {k: v for k, v in data.items() if k != "prefixes"}
    return NumberingPolicy(prefixes=prefixes, **kwargs)


def parse_chart(data: dict[str, Any]) -> ChartPolicy:
    _check_keys("chart", data, {"max_code_length", "min_level", "max_level", "numeric_codes"})
    return ChartPolicy(**data)


def parse_settings(data: dict[str, Any]) -> LedgerSettings:
    """Parse a whole configuration document into LedgerSettings."""
    _check_keys("top-level", data, set(_SECTIONS))
    database = data.get("database") or {}
    _check_keys("database", database, {"url"})

    return LedgerSettings(
        numbering=parse_numbering(data.get("numbering") or {}),
        chart=parse_chart(data.get("chart") or {}),
        budget=BudgetConfig.from_dict(data.get("budget") or {}),
        reporting=ReportingConfig.from_dict(data.get("reporting") or {}),
        database_url=database.get("url") or DEFAULT_DATABASE_URL,
    )
