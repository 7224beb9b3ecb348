"""
Reporting Module Service (``ledger_modules.reporting.service``).

Responsibility
--------------
Trial balance and general ledger views over the posted ledger, generated
financial statement snapshots (balance sheet, income statement, trial
balance) with their review / approval / publication lifecycle, the
accounting-equation check, financial ratios and transaction statistics.

Architecture position
---------------------
**Modules layer** -- bridges the kernel ``LedgerSelector`` and
``BalanceService`` to the pure transformation functions in
``statements.py``.  Never writes journal lines or balances.

Invariants enforced
-------------------
* One report per (company, report type, fiscal year, fiscal period):
  generating again for the same key updates that report and replaces its
  items.
* APPROVED and PUBLISHED reports are frozen; PUBLISHED reports cannot be
  deleted.
* Each public method that writes owns the transaction boundary unless
  constructed with ``auto_commit=False``.

Failure modes
-------------
* ``UnsupportedReportTypeError`` for report types that cannot be generated.
* ``ReportNotFoundError`` / ``AccountNotFoundError`` for unknown ids.
* ``InvalidTransitionError`` for a lifecycle step not allowed from the
  current status.
* ``ValidationError`` when a date window ends before it starts.

Audit relevance
---------------
Reports record who generated, reviewed, approved and published them and
when.  Structured log events carry report type, period and status.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from ledger_kernel.db.base import live
from ledger_kernel.db.types import ZERO
from ledger_kernel.domain.calculations import change_rate
from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.rules import effective_opening_balance, natural_balance
from ledger_kernel.exceptions import (
    InvalidTransitionError,
    ReportNotFoundError,
    UnsupportedReportTypeError,
    ValidationError,
)
from ledger_kernel.logging_config import LogContext, get_logger
from ledger_kernel.models.account import NOMINAL_ACCOUNT_TYPES, Account, AccountType
from ledger_kernel.selectors.ledger_selector import (
    GeneralLedgerReport,
    LedgerSelector,
    TransactionStatistics,
    TrialBalanceReport,
)
from ledger_kernel.services.balance_service import BalanceService
from ledger_kernel.services.directory import ActorDirectory, CompanyDirectory, DirectoryChecks
from ledger_modules._service_helpers import unit_of_work
from ledger_modules.reporting.config import ReportingConfig
from ledger_modules.reporting.models import (
    GENERATABLE_REPORT_TYPES,
    LOCKED_REPORT_STATUSES,
    AccountAmount,
    BalanceVerification,
    FinancialRatios,
    ReportStatus,
    ReportType,
    Statement,
    StatementTotals,
)
from ledger_modules.reporting.orm import FinancialReportItemModel, FinancialReportModel
from ledger_modules.reporting.statements import (
    build_balance_sheet,
    build_income_statement,
    build_trial_balance,
    financial_ratios,
    report_title,
    same_day_previous_year,
)

logger = get_logger("modules.reporting.service")

_POSITION_TYPES = (AccountType.ASSET, AccountType.LIABILITY, AccountType.EQUITY)


class ReportingService(DirectoryChecks):
    """
    Reporting Engine.

    Contract
    --------
    * Ledger views (``trial_balance``, ``general_ledger``,
      ``transaction_statistics``) and analysis (``verify_balance``,
      ``financial_ratios``) are read-only and return frozen DTOs.
    * Statement generation and lifecycle methods return
      ``FinancialReportModel`` rows.

    Guarantees
    ----------
    * All statement math is delegated to ``statements.py``.
    * Clock is injectable for deterministic lifecycle stamps.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        config: ReportingConfig | None = None,
        companies: CompanyDirectory | None = None,
        actors: ActorDirectory | None = None,
        auto_commit: bool = True,
        balance_service: BalanceService | None = None,
        ledger_selector: LedgerSelector | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._config = config or ReportingConfig.with_defaults()
        self.companies = companies
        self.actors = actors
        self._auto_commit = auto_commit
        self._ledger = ledger_selector or LedgerSelector(session)
        self._balances = balance_service or BalanceService(session, self._clock)

    def _unit_of_work(self, operation: str, **context):
        return unit_of_work(self._session, self._auto_commit, logger, operation, **context)

    @staticmethod
    def _check_window(start_date: date, end_date: date) -> None:
        if end_date < start_date:
            raise ValidationError(f"end date {end_date} is before start date {start_date}")

    # =========================================================================
    # Ledger views
    # =========================================================================

    def trial_balance(
        self,
        company_id: UUID,
        start_date: date,
        end_date: date,
        include_empty: bool = False,
    ) -> TrialBalanceReport:
        self._require_company(company_id)
        self._check_window(start_date, end_date)
        report = self._ledger.trial_balance(company_id, start_date, end_date, include_empty)
        logger.info(
            "trial_balance_generated",
            extra={
                "company_id": str(company_id),
                "row_count": len(report.rows),
                "is_balanced": report.is_balanced,
            },
        )
        return report

    def general_ledger(
        self, account_id: UUID, start_date: date, end_date: date,
    ) -> GeneralLedgerReport:
        self._check_window(start_date, end_date)
        return self._ledger.general_ledger(account_id, start_date, end_date)

    def transaction_statistics(
        self, company_id: UUID, start_date: date, end_date: date,
    ) -> TransactionStatistics:
        self._require_company(company_id)
        self._check_window(start_date, end_date)
        return self._ledger.transaction_statistics(company_id, start_date, end_date)

    # =========================================================================
    # Account amounts
    # =========================================================================

    def _statement_accounts(
        self, company_id: UUID, account_types: tuple[AccountType, ...],
    ) -> list[Account]:
        return list(self._session.execute(
            select(Account)
            .where(
                Account.company_id == company_id,
                Account.account_type.in_(account_types),
                Account.is_leaf.is_(True),
                Account.track_balance.is_(True),
                live(Account),
            )
            .order_by(Account.code)
        ).scalars())

    def _position_balances(self, company_id: UUID, as_of: date) -> dict[UUID, Decimal]:
        """Asset, liability and equity balances at the end of ``as_of``."""
        totals = self._ledger.posted_totals_by_account(company_id, None, as_of)
        balances = {}
        for account in self._statement_accounts(company_id, _POSITION_TYPES):
            debit, credit = totals.get(account.id, (ZERO, ZERO))
            balances[account.id] = effective_opening_balance(account) + natural_balance(
                account.normal_balance, debit, credit,
            )
        return balances

    def _unclosed_net_income(self, company_id: UUID, as_of: date) -> Decimal:
        """Revenue less expenses not yet cleared by a year close, at ``as_of``."""
        net = ZERO
        for account in self._statement_accounts(company_id, tuple(NOMINAL_ACCOUNT_TYPES)):
            balance = self._balances.recompute_balance(account, as_of=as_of).balance
            if account.account_type == AccountType.REVENUE:
                net += balance
            else:
                net -= balance
        return net

    def _period_activity(
        self, company_id: UUID, start_date: date, end_date: date,
    ) -> dict[UUID, Decimal]:
        """Natural-balance posted activity of revenue and expense accounts."""
        totals = self._ledger.posted_totals_by_account(company_id, start_date, end_date)
        activity = {}
        for account in self._statement_accounts(company_id, tuple(NOMINAL_ACCOUNT_TYPES)):
            debit, credit = totals.get(account.id, (ZERO, ZERO))
            activity[account.id] = natural_balance(account.normal_balance, debit, credit)
        return activity

    @staticmethod
    def _amounts(
        accounts: list[Account],
        current: dict[UUID, Decimal],
        previous: dict[UUID, Decimal],
    ) -> list[AccountAmount]:
        return [
            AccountAmount(
                account_id=account.id,
                code=account.code,
                name=account.name,
                name_en=account.name_en,
                account_type=account.account_type,
                category=account.category,
                amount=current.get(account.id, ZERO),
                previous_amount=previous.get(account.id, ZERO),
            )
            for account in accounts
        ]

    # =========================================================================
    # Statement builders
    # =========================================================================

    def _build_balance_sheet(self, company_id: UUID, base_date: date) -> Statement:
        accounts = self._statement_accounts(company_id, _POSITION_TYPES)
        current = self._position_balances(company_id, base_date)
        unclosed = self._unclosed_net_income(company_id, base_date)
        previous: dict[UUID, Decimal] = {}
        previous_unclosed = ZERO
        if self._config.include_comparatives:
            prior_date = same_day_previous_year(base_date)
            previous = self._position_balances(company_id, prior_date)
            previous_unclosed = self._unclosed_net_income(company_id, prior_date)
        return build_balance_sheet(
            self._amounts(accounts, current, previous),
            self._config,
            unclosed_net_income=unclosed,
            previous_unclosed_net_income=previous_unclosed,
        )

    def _build_income_statement(
        self, company_id: UUID, start_date: date, base_date: date,
    ) -> Statement:
        accounts = self._statement_accounts(company_id, tuple(NOMINAL_ACCOUNT_TYPES))
        current = self._period_activity(company_id, start_date, base_date)
        previous: dict[UUID, Decimal] = {}
        if self._config.include_comparatives:
            previous = self._period_activity(
                company_id,
                same_day_previous_year(start_date),
                same_day_previous_year(base_date),
            )
        return build_income_statement(self._amounts(accounts, current, previous), self._config)

    def _build(
        self,
        company_id: UUID,
        report_type: ReportType,
        start_date: date,
        base_date: date,
    ) -> Statement:
        if report_type == ReportType.BALANCE_SHEET:
            return self._build_balance_sheet(company_id, base_date)
        if report_type == ReportType.INCOME_STATEMENT:
            return self._build_income_statement(company_id, start_date, base_date)
        rows = self._ledger.trial_balance(company_id, start_date, base_date).rows
        return build_trial_balance(rows, self._config)

    def _replace_items(self, report: FinancialReportModel, statement: Statement) -> None:
        self._session.execute(
            delete(FinancialReportItemModel)
            .where(FinancialReportItemModel.report_id == report.id)
            .execution_options(synchronize_session=False)
        )
        ids_by_code: dict[str, UUID] = {}
        items = []
        for line_number, line in enumerate(statement.lines, start=1):
            item_id = uuid4()
            ids_by_code[line.item_code] = item_id
            items.append(FinancialReportItemModel(
                id=item_id,
                report_id=report.id,
                parent_id=ids_by_code.get(line.parent_code) if line.parent_code else None,
                account_id=line.account_id,
                item_code=line.item_code,
                item_name=line.item_name,
                item_name_en=line.item_name_en,
                line_number=line_number,
                item_level=line.item_level,
                item_type=line.item_type,
                current_amount=line.current_amount,
                previous_amount=line.previous_amount,
                change_amount=line.change_amount,
                change_rate=change_rate(line.current_amount, line.previous_amount),
                composition_ratio=line.composition_ratio,
                calculation_formula=line.calculation_formula,
                is_bold=line.is_bold,
                indent_level=line.item_level - 1,
                created_by_id=report.generated_by_id,
            ))
        self._session.add_all(items)

    # =========================================================================
    # Generation
    # =========================================================================

    def _find_by_key(
        self,
        company_id: UUID,
        report_type: ReportType,
        fiscal_year: int,
        fiscal_period: str,
    ) -> FinancialReportModel | None:
        return self._session.execute(
            select(FinancialReportModel).where(
                FinancialReportModel.company_id == company_id,
                FinancialReportModel.report_type == report_type,
                FinancialReportModel.fiscal_year == fiscal_year,
                FinancialReportModel.fiscal_period == fiscal_period,
            )
        ).scalar_one_or_none()

    def generate_statement(
        self,
        company_id: UUID,
        report_type: ReportType,
        fiscal_year: int,
        fiscal_period: str,
        base_date: date,
        actor_id: UUID,
        start_date: date | None = None,
    ) -> FinancialReportModel:
        """
        Generate (or regenerate) a statement snapshot.

        The balance sheet is a position at ``base_date``.  The income
        statement and trial balance cover ``start_date`` (default: 1 January
        of ``fiscal_year``) through ``base_date``.

        Raises:
            UnsupportedReportTypeError: report type cannot be generated.
            InvalidTransitionError: the existing report is approved or
                published.
        """
        if report_type not in GENERATABLE_REPORT_TYPES:
            raise UnsupportedReportTypeError(report_type.value)
        self._require_company(company_id)
        self._require_actor(actor_id)
        if report_type == ReportType.BALANCE_SHEET:
            start_date = None
        else:
            start_date = start_date or date(fiscal_year, 1, 1)
            self._check_window(start_date, base_date)

        with LogContext.bind(company_id=company_id, actor_id=actor_id):
            with self._unit_of_work("generate_statement", report_type=report_type.value):
                report = self._find_by_key(company_id, report_type, fiscal_year, fiscal_period)
                if report is not None and report.report_status in LOCKED_REPORT_STATUSES:
                    raise InvalidTransitionError(
                        "FinancialReport", report.id, report.report_status.value, "regenerate",
                    )

                # Build before adding a new row: the queries autoflush
                statement = self._build(company_id, report_type, start_date, base_date)
                title = report_title(
                    report_type, fiscal_year, fiscal_period, self._config.entity_name,
                )

                if report is None:
                    report = FinancialReportModel(
                        id=uuid4(),
                        company_id=company_id,
                        report_type=report_type,
                        fiscal_year=fiscal_year,
                        fiscal_period=fiscal_period,
                        report_title=title,
                        base_date=base_date,
                        report_status=ReportStatus.DRAFT,
                        created_by_id=actor_id,
                    )
                    self._session.add(report)
                else:
                    report.updated_by_id = actor_id

                report.report_title = title
                report.base_date = base_date
                report.start_date = start_date
                report.deleted_at = None
                report.apply_totals(statement.totals)
                report.report_status = ReportStatus.GENERATED
                report.generated_by_id = actor_id
                report.generated_at = self._clock.now()
                report.reviewed_by_id = None
                report.reviewed_at = None
                self._session.flush()
                self._replace_items(report, statement)

            logger.info(
                "financial_report_generated",
                extra={
                    "report_id": str(report.id),
                    "report_type": report_type.value,
                    "fiscal_year": fiscal_year,
                    "fiscal_period": fiscal_period,
                    "item_count": len(statement.lines),
                },
            )
        return report

    def regenerate_report(self, report_id: UUID, actor_id: UUID) -> FinancialReportModel:
        """Rebuild a report from the current ledger with its stored parameters."""
        report = self.get_report(report_id)
        return self.generate_statement(
            report.company_id,
            report.report_type,
            report.fiscal_year,
            report.fiscal_period,
            report.base_date,
            actor_id,
            start_date=report.start_date,
        )

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def _advance(
        self,
        report_id: UUID,
        actor_id: UUID,
        expected: ReportStatus,
        target: ReportStatus,
        operation: str,
    ) -> FinancialReportModel:
        self._require_actor(actor_id)
        with self._unit_of_work(operation, report_id=report_id):
            report = self.get_report(report_id)
            if report.report_status != expected:
                raise InvalidTransitionError(
                    "FinancialReport", report.id, report.report_status.value, operation,
                )
            now = self._clock.now()
            report.report_status = target
            report.updated_by_id = actor_id
            if target == ReportStatus.REVIEWED:
                report.reviewed_by_id, report.reviewed_at = actor_id, now
            elif target == ReportStatus.APPROVED:
                report.approved_by_id, report.approved_at = actor_id, now
            elif target == ReportStatus.PUBLISHED:
                report.published_by_id, report.published_at = actor_id, now

        logger.info(
            f"financial_report_{target.value}",
            extra={"report_id": str(report_id), "actor_id": str(actor_id)},
        )
        return report

    def review_report(self, report_id: UUID, reviewer_id: UUID) -> FinancialReportModel:
        return self._advance(
            report_id, reviewer_id, ReportStatus.GENERATED, ReportStatus.REVIEWED, "review",
        )

    def approve_report(self, report_id: UUID, approver_id: UUID) -> FinancialReportModel:
        return self._advance(
            report_id, approver_id, ReportStatus.REVIEWED, ReportStatus.APPROVED, "approve",
        )

    def publish_report(self, report_id: UUID, actor_id: UUID) -> FinancialReportModel:
        return self._advance(
            report_id, actor_id, ReportStatus.APPROVED, ReportStatus.PUBLISHED, "publish",
        )

    def delete_report(self, report_id: UUID, actor_id: UUID) -> None:
        """Soft-delete a report.  Published reports cannot be deleted."""
        self._require_actor(actor_id)
        with self._unit_of_work("delete_report", report_id=report_id):
            report = self.get_report(report_id)
            if report.report_status == ReportStatus.PUBLISHED:
                raise InvalidTransitionError(
                    "FinancialReport", report.id, report.report_status.value, "delete",
                )
            report.deleted_at = self._clock.now()
            report.updated_by_id = actor_id
        logger.info("financial_report_deleted", extra={"report_id": str(report_id)})

    # =========================================================================
    # Queries
    # =========================================================================

    def get_report(self, report_id: UUID) -> FinancialReportModel:
        report = self._session.get(FinancialReportModel, report_id)
        if report is None or report.is_deleted:
            raise ReportNotFoundError(report_id)
        return report

    def report_items(self, report_id: UUID) -> list[FinancialReportItemModel]:
        """A report's item lines in presentation order."""
        self.get_report(report_id)
        return list(self._session.execute(
            select(FinancialReportItemModel)
            .where(FinancialReportItemModel.report_id == report_id)
            .order_by(FinancialReportItemModel.line_number)
        ).scalars())

    def list_reports(
        self, company_id: UUID, report_type: ReportType | None = None,
    ) -> list[FinancialReportModel]:
        query = select(FinancialReportModel).where(
            FinancialReportModel.company_id == company_id,
            live(FinancialReportModel),
        )
        if report_type is not None:
            query = query.where(FinancialReportModel.report_type == report_type)
        query = query.order_by(
            FinancialReportModel.fiscal_year.desc(),
            FinancialReportModel.base_date.desc(),
            FinancialReportModel.report_type,
        )
        return list(self._session.execute(query).scalars())

    def _latest(
        self,
        company_id: UUID,
        report_type: ReportType,
        fiscal_year: int | None = None,
    ) -> FinancialReportModel | None:
        query = select(FinancialReportModel).where(
            FinancialReportModel.company_id == company_id,
            FinancialReportModel.report_type == report_type,
            FinancialReportModel.report_status != ReportStatus.DRAFT,
            live(FinancialReportModel),
        )
        if fiscal_year is not None:
            query = query.where(FinancialReportModel.fiscal_year == fiscal_year)
        query = query.order_by(
            FinancialReportModel.fiscal_year.desc(),
            FinancialReportModel.base_date.desc(),
            FinancialReportModel.generated_at.desc(),
        ).limit(1)
        return self._session.execute(query).scalar_one_or_none()

    def latest_statements(self, company_id: UUID) -> dict[ReportType, FinancialReportModel]:
        """The most recent balance sheet and income statement, where they exist."""
        result = {}
        for report_type in (ReportType.BALANCE_SHEET, ReportType.INCOME_STATEMENT):
            report = self._latest(company_id, report_type)
            if report is not None:
                result[report_type] = report
        return result

    # =========================================================================
    # Analysis
    # =========================================================================

    def verify_balance(self, company_id: UUID, as_of: date) -> BalanceVerification:
        """Check assets = liabilities + equity + unclosed net income at ``as_of``."""
        self._require_company(company_id)
        balances = self._position_balances(company_id, as_of)
        by_type = {account_type: ZERO for account_type in _POSITION_TYPES}
        for account in self._statement_accounts(company_id, _POSITION_TYPES):
            by_type[account.account_type] += balances[account.id]

        verification = BalanceVerification(
            company_id=company_id,
            as_of=as_of,
            total_assets=by_type[AccountType.ASSET],
            total_liabilities=by_type[AccountType.LIABILITY],
            total_equity=by_type[AccountType.EQUITY],
            unclosed_net_income=self._unclosed_net_income(company_id, as_of),
        )
        if not verification.is_balanced:
            logger.warning(
                "balance_verification_failed",
                extra={
                    "company_id": str(company_id),
                    "as_of": as_of,
                    "difference": verification.difference,
                },
            )
        return verification

    def financial_ratios(self, company_id: UUID, fiscal_year: int) -> FinancialRatios:
        """
        Ratios from the latest balance sheet and income statement of a year.

        A missing statement contributes zeros.
        """
        balance_sheet = self._latest(company_id, ReportType.BALANCE_SHEET, fiscal_year)
        income_statement = self._latest(company_id, ReportType.INCOME_STATEMENT, fiscal_year)
        balance = balance_sheet.to_totals() if balance_sheet is not None else StatementTotals()
        income = (
            income_statement.to_totals() if income_statement is not None else StatementTotals()
        )
        return financial_ratios(balance, income)
