"""
Budget Tracking Configuration Schema.
"""

from dataclasses import dataclass, fields
from decimal import Decimal
from typing import Any, Self

from ledger_kernel.logging_config import get_logger

logger = get_logger("modules.budget.config")


@dataclass
class BudgetConfig:
    """Configuration schema for the budget module."""

    # Progress rate is never reported above this
    progress_cap: Decimal = Decimal("100")

    max_revision_reason_length: int = 500

    allow_negative_amounts: bool = False

    def __post_init__(self):
        self.progress_cap = Decimal(str(self.progress_cap))
        if self.progress_cap <= 0:
            raise ValueError("progress_cap must be positive")
        if not 1 <= self.max_revision_reason_length <= 500:
            raise ValueError("max_revision_reason_length must be between 1 and 500")

    @classmethod
    def with_defaults(cls) -> Self:
        """Create config with standard defaults."""
        logger.info("budget_config_created_with_defaults")
        return cls()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Self:
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ValueError(f"Unknown budget config key(s): {', '.join(sorted(unknown))}")
        logger.info(
            "budget_config_loading_from_dict",
            extra={"keys": sorted(data.keys())},
        )
        return cls(**data)
