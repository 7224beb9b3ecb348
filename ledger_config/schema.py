"""
LedgerSettings schema.

The runtime configuration artifact: one frozen object holding every
policy and module config the services are built from.  YAML documents
are parsed into it by ``ledger_config.loader``.
"""

from dataclasses import dataclass, field

from ledger_kernel.domain.numbering import NumberingPolicy
from ledger_kernel.domain.rules import ChartPolicy
from ledger_modules.budget.config import BudgetConfig
from ledger_modules.reporting.config import ReportingConfig

DEFAULT_DATABASE_URL = "sqlite:///ledger.db"


@dataclass(frozen=True)
class LedgerSettings:
    """Everything needed to wire a LedgerOrchestrator."""

    numbering: NumberingPolicy = field(default_factory=NumberingPolicy)
    chart: ChartPolicy = field(default_factory=ChartPolicy)
    budget: BudgetConfig = field(default_factory=BudgetConfig)
    reporting: ReportingConfig = field(default_factory=ReportingConfig)
    database_url: str = DEFAULT_DATABASE_URL
