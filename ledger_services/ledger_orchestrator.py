"""
ledger_services.ledger_orchestrator -- DI container for ledger services.

Responsibility:
    Creates every kernel and module service exactly once for a session
    and wires them to the same clock, policies and directories.

Architecture position:
    Services -- the only place where kernel services and module services
    are constructed together.

Invariants enforced:
    - Single-instance lifecycle: one BalanceService and one LedgerSelector
      are shared by everything built here.
    - DI transparency: all service wiring is visible in ``__init__``.

Usage:
    from ledger_services import LedgerOrchestrator

    orch = LedgerOrchestrator(session, clock=clock)
    entry = orch.ledger.create_journal_entry(...)
    orch.session.commit()
    orch.period_close.close_fiscal_period(company_id, 2024, 1, actor_id)
"""

from sqlalchemy.orm import Session

from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.numbering import NumberingPolicy
from ledger_kernel.domain.rules import ChartPolicy
from ledger_kernel.selectors.ledger_selector import LedgerSelector
from ledger_kernel.services.account_service import AccountService
from ledger_kernel.services.balance_service import BalanceService
from ledger_kernel.services.directory import ActorDirectory, CompanyDirectory
from ledger_kernel.services.ledger_service import LedgerService
from ledger_modules.budget.config import BudgetConfig
from ledger_modules.budget.service import BudgetService
from ledger_modules.reporting.config import ReportingConfig
from ledger_modules.reporting.service import ReportingService
from ledger_services.period_close_orchestrator import PeriodCloseOrchestrator


class LedgerOrchestrator:
    """
    Central service container.

    Kernel services (``accounts``, ``ledger``, ``balances``) only flush;
    the caller commits.  ``budgets``, ``reporting`` and ``period_close``
    commit their own work unless built with ``auto_commit=False``.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        numbering: NumberingPolicy | None = None,
        chart_policy: ChartPolicy | None = None,
        budget_config: BudgetConfig | None = None,
        reporting_config: ReportingConfig | None = None,
        companies: CompanyDirectory | None = None,
        actors: ActorDirectory | None = None,
        auto_commit: bool = True,
    ) -> None:
        self._session = session
        self._clock = clock or SystemClock()
        self.companies = companies
        self.actors = actors

        self.balances = BalanceService(session, self._clock)
        self.ledger_selector = LedgerSelector(session)

        self.accounts = AccountService(
            session, self._clock,
            chart_policy=chart_policy,
            companies=companies,
            actors=actors,
        )
        self.ledger = LedgerService(
            session, self._clock,
            numbering=numbering,
            companies=companies,
            actors=actors,
            balance_service=self.balances,
        )
        self.budgets = BudgetService(
            session, self._clock,
            config=budget_config,
            companies=companies,
            actors=actors,
            auto_commit=auto_commit,
        )
        self.reporting = ReportingService(
            session, self._clock,
            config=reporting_config,
            companies=companies,
            actors=actors,
            auto_commit=auto_commit,
            balance_service=self.balances,
            ledger_selector=self.ledger_selector,
        )
        self.period_close = PeriodCloseOrchestrator.from_ledger_orchestrator(
            self, auto_commit=auto_commit,
        )

    @classmethod
    def from_settings(cls, session: Session, settings, **kwargs) -> "LedgerOrchestrator":
        """Build from a loaded ``ledger_config.LedgerSettings``."""
        return cls(
            session,
            numbering=settings.numbering,
            chart_policy=settings.chart,
            budget_config=settings.budget,
            reporting_config=settings.reporting,
            **kwargs,
        )

    @property
    def session(self) -> Session:
        return self._session

    @property
    def clock(self) -> Clock:
        return self._clock
