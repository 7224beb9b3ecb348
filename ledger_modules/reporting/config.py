"""
Reporting Configuration Schema.

Controls statement classification details that the chart of accounts
does not carry itself, and what the generated item trees contain.
"""

from dataclasses import dataclass, fields
from typing import Any, Self

from ledger_kernel.logging_config import get_logger

logger = get_logger("modules.reporting.config")


@dataclass
class ReportingConfig:
    """
    Configuration schema for the reporting module.

    Prefix matching: a current-asset account counts as cash and cash
    equivalents if its code starts with any of ``cash_account_prefixes``.
    """

    cash_account_prefixes: tuple[str, ...] = ("101", "102", "103")

    # Entity name used in generated report titles
    entity_name: str | None = None

    # Prior-year comparative amounts on statement items
    include_comparatives: bool = True

    # Whether zero-balance accounts get an item line
    include_zero_balances: bool = False

    def __post_init__(self):
        self.cash_account_prefixes = tuple(self.cash_account_prefixes)
        for prefix in self.cash_account_prefixes:
            if not prefix or not prefix.isdigit():
                raise ValueError(f"cash account prefix must be digits: {prefix!r}")

    def is_cash_account(self, code: str) -> bool:
        return any(code.startswith(p) for p in self.cash_account_prefixes)

    @classmethod
    def with_defaults(cls) -> Self:
        """Create config with standard defaults."""
        logger.info("reporting_config_created_with_defaults")
        return cls()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Self:
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ValueError(f"Unknown reporting config key(s): {', '.join(sorted(unknown))}")
        logger.info(
            "reporting_config_loading_from_dict",
            extra={"keys": sorted(data.keys())},
        )
        return cls(**data)
