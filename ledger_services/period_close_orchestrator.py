"""
ledger_services.period_close_orchestrator -- Month and year close.

Responsibility:
    Close a company's fiscal months and years: refuse while submitted
    transactions await approval, rebuild every tracked account's cached
    balance from posted history, zero nominal accounts at year end and
    record each completed close as a FiscalClose row.

Architecture position:
    Services -- orchestration over kernel services and selectors.
    Owns the session commit of each close it runs.

Invariants enforced:
    - A close never starts while the company has PENDING transactions.
      The count is re-read from the database immediately before the
      close begins, and a blocked close mutates nothing.
    - Recomputing an account is idempotent, so a close interrupted part
      way through can simply be run again.
    - One FiscalClose row per (company, period_key): re-running a close
      refreshes the existing row.
    - After a year close, LedgerService.post rejects transactions dated
      in that year.

Failure modes:
    - PendingTransactionsError with the exact blocking count.
    - ValidationError for a month outside 1..12.
    - CompanyNotFoundError / ActorNotFoundError when directories are
      configured and the id is unknown.

Audit relevance:
    Emits period_close_blocked, fiscal_period_closed and
    fiscal_year_closed with the company and period in context.
"""

from datetime import date, datetime
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ledger_kernel.db.base import live
from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.exceptions import PendingTransactionsError, ValidationError
from ledger_kernel.logging_config import LogContext, get_logger
from ledger_kernel.models.account import Account, AccountType
from ledger_kernel.models.fiscal_close import FiscalClose, month_key, year_key
from ledger_kernel.selectors.ledger_selector import LedgerSelector
from ledger_kernel.services.balance_service import BalanceService
from ledger_kernel.services.directory import ActorDirectory, CompanyDirectory, DirectoryChecks
from ledger_modules._service_helpers import unit_of_work
from ledger_services._close_types import PeriodCloseResult, YearCloseResult

logger = get_logger("services.period_close")


class PeriodCloseOrchestrator(DirectoryChecks):
    """
    Period Closing Coordinator.

    Contract:
        close_fiscal_period and close_fiscal_year commit their work when
        ``auto_commit`` is True (the default).  Otherwise they flush and
        leave the transaction to the caller.
    Guarantees:
        - A blocked close leaves the database untouched.
        - A year close commits each month as it goes, so a failure in a
          later month keeps the earlier months closed.
    Non-goals:
        - Does not post closing journal entries; nominal accounts are
          reset through ``balance_reset_on`` instead.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        balance_service: BalanceService | None = None,
        ledger_selector: LedgerSelector | None = None,
        companies: CompanyDirectory | None = None,
        actors: ActorDirectory | None = None,
        auto_commit: bool = True,
    ) -> None:
        self._session = session
        self._clock = clock or SystemClock()
        self._balances = balance_service or BalanceService(session, self._clock)
        self._ledger = ledger_selector or LedgerSelector(session)
        self.companies = companies
        self.actors = actors
        self._auto_commit = auto_commit

    @classmethod
    def from_ledger_orchestrator(
        cls, ledger_orch, auto_commit: bool = True,
    ) -> "PeriodCloseOrchestrator":
        """Reuses the session, clock and services already wired by LedgerOrchestrator."""
        return cls(
            session=ledger_orch.session,
            clock=ledger_orch.clock,
            balance_service=ledger_orch.balances,
            ledger_selector=ledger_orch.ledger_selector,
            companies=ledger_orch.companies,
            actors=ledger_orch.actors,
            auto_commit=auto_commit,
        )

    def _unit_of_work(self, operation: str, company_id: UUID, period_key: str):
        return unit_of_work(
            self._session, self._auto_commit, logger, operation,
            company_id=company_id, period_key=period_key,
        )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def _close_record(self, company_id: UUID, period_key: str) -> FiscalClose | None:
        return self._session.execute(
            select(FiscalClose).where(
                FiscalClose.company_id == company_id,
                FiscalClose.period_key == period_key,
            )
        ).scalar_one_or_none()

    def is_closed(self, company_id: UUID, period_key: str) -> bool:
        return self._close_record(company_id, period_key) is not None

    def closed_periods(self, company_id: UUID) -> list[FiscalClose]:
        return list(self._session.execute(
            select(FiscalClose)
            .where(FiscalClose.company_id == company_id)
            .order_by(FiscalClose.period_key)
        ).scalars())

    def _tracked_accounts(self, company_id: UUID) -> list[Account]:
        return list(self._session.execute(
            select(Account)
            .where(
                Account.company_id == company_id,
                Account.track_balance.is_(True),
                live(Account),
            )
            .order_by(Account.code)
        ).scalars())

    def _nominal_accounts(self, company_id: UUID) -> list[Account]:
        return list(self._session.execute(
            select(Account)
            .where(
                Account.company_id == company_id,
                Account.account_type.in_((AccountType.REVENUE, AccountType.EXPENSE)),
                live(Account),
            )
            .order_by(Account.code)
        ).scalars())

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    def _check_no_pending(self, company_id: UUID, period_key: str) -> None:
        count = self._ledger.pending_count(company_id)
        if count:
            logger.warning(
                "period_close_blocked",
                extra={"period_key": period_key, "pending_count": count},
            )
            raise PendingTransactionsError(company_id, count)

    def _record_close(
        self,
        company_id: UUID,
        period_key: str,
        fiscal_year: int,
        fiscal_month: int | None,
        accounts_recomputed: int,
        closed_at: datetime,
        actor_id: UUID,
    ) -> FiscalClose:
        record = self._close_record(company_id, period_key)
        if record is None:
            record = FiscalClose(
                company_id=company_id,
                period_key=period_key,
                fiscal_year=fiscal_year,
                fiscal_month=fiscal_month,
                accounts_recomputed=accounts_recomputed,
                closed_at=closed_at,
                created_by_id=actor_id,
            )
            try:
                with self._session.begin_nested():
                    self._session.add(record)
                    self._session.flush()
                return record
            except IntegrityError:
                # A concurrent close inserted the row first
                record = self._close_record(company_id, period_key)

        record.accounts_recomputed = accounts_recomputed
        record.closed_at = closed_at
        record.updated_by_id = actor_id
        self._session.flush()
        return record

    # ------------------------------------------------------------------
    # Month close
    # ------------------------------------------------------------------

    def close_fiscal_period(
        self,
        company_id: UUID,
        fiscal_year: int,
        fiscal_month: int,
        actor_id: UUID,
    ) -> PeriodCloseResult:
        """
        Close one fiscal month.

        Preconditions:
            - No PENDING transactions for the company.
        Postconditions:
            - Every tracked live account's accumulators equal its posted
              history.
            - A FiscalClose row exists for "YYYY-MM".

        Raises:
            PendingTransactionsError: while submitted transactions await
                approval.  Nothing is written.
            ValidationError: if the month is not in 1..12.
        """
        if not 1 <= fiscal_month <= 12:
            raise ValidationError(f"Fiscal month must be 1..12, got {fiscal_month}")
        self._require_company(company_id)
        self._require_actor(actor_id)

        period_key = month_key(fiscal_year, fiscal_month)
        with LogContext.bind(company_id=company_id, actor_id=actor_id):
            self._check_no_pending(company_id, period_key)

            with self._unit_of_work("close_fiscal_period", company_id, period_key):
                accounts = self._tracked_accounts(company_id)
                for account in accounts:
                    self._balances.recompute_balance(account, persist=True)

                closed_at = self._clock.now()
                self._record_close(
                    company_id, period_key, fiscal_year, fiscal_month,
                    len(accounts), closed_at, actor_id,
                )

            logger.info(
                "fiscal_period_closed",
                extra={"period_key": period_key, "accounts_recomputed": len(accounts)},
            )

        return PeriodCloseResult(
            company_id=company_id,
            period_key=period_key,
            fiscal_year=fiscal_year,
            fiscal_month=fiscal_month,
            accounts_recomputed=len(accounts),
            closed_at=closed_at,
        )

    # ------------------------------------------------------------------
    # Year close
    # ------------------------------------------------------------------

    def close_fiscal_year(
        self,
        company_id: UUID,
        fiscal_year: int,
        actor_id: UUID,
    ) -> YearCloseResult:
        """
        Close months 1..12, then zero every revenue and expense account.

        Nominal accounts get ``balance_reset_on`` = January 1 of the next
        year, so their balances only count later postings.  A reset date
        is never moved backwards: closing an earlier year after a later
        one leaves the later reset in place.

        Raises:
            PendingTransactionsError: from the first month close when
                submitted transactions await approval.
        """
        months = tuple(
            self.close_fiscal_period(company_id, fiscal_year, month, actor_id)
            for month in range(1, 13)
        )

        period_key = year_key(fiscal_year)
        reset_on = date(fiscal_year + 1, 1, 1)
        with LogContext.bind(company_id=company_id, actor_id=actor_id):
            self._check_no_pending(company_id, period_key)

            with self._unit_of_work("close_fiscal_year", company_id, period_key):
                reset_count = 0
                for account in self._nominal_accounts(company_id):
                    if account.balance_reset_on is not None and account.balance_reset_on >= reset_on:
                        continue
                    self._balances.reset_nominal_balance(account, reset_on)
                    reset_count += 1

                closed_at = self._clock.now()
                self._record_close(
                    company_id, period_key, fiscal_year, None,
                    sum(m.accounts_recomputed for m in months), closed_at, actor_id,
                )

            logger.info(
                "fiscal_year_closed",
                extra={
                    "period_key": period_key,
                    "fiscal_year": fiscal_year,
                    "nominal_accounts_reset": reset_count,
                },
            )

        return YearCloseResult(
            company_id=company_id,
            period_key=period_key,
            fiscal_year=fiscal_year,
            months=months,
            nominal_accounts_reset=reset_count,
            closed_at=closed_at,
        )
