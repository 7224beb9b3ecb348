"""
Budget Tracking Service (``ledger_modules.budget.service``).

Responsibility
--------------
Budget creation and lifecycle (draft -> submitted -> approved -> active ->
closed, or cancelled), actual tracking against the ledger, revisions with
an append-only history, and variance / budget-vs-actual analysis.

Architecture position
---------------------
**Modules layer** -- thin glue over the kernel.  ``BudgetService`` is the
sole public entry point for budget operations.  It reads posted ledger
activity but never writes journal lines.

Invariants enforced
-------------------
* Each public method owns the transaction boundary (``commit`` on success,
  ``rollback`` on exception) unless constructed with ``auto_commit=False``,
  in which case it flushes and leaves the boundary to the caller.
* A budget's type matches its account's type; its period number is bounded
  by its budget period; its key is unique.
* Every amount change after creation goes through ``revise`` and leaves a
  ``BudgetRevisionModel`` row behind.

Failure modes
-------------
* ``BudgetNotFoundError`` / ``AccountNotFoundError`` for unknown ids.
* ``BudgetTypeMismatchError``, ``InvalidBudgetPeriodError``,
  ``ValidationError`` for bad input.
* ``InvalidTransitionError`` for a lifecycle step not allowed from the
  current status.
* ``DuplicateBudgetError`` when the key already exists.

Audit relevance
---------------
Structured log events for every state change carry budget id, status and
amounts.  Revisions record old and new amount, reason, actor and time.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ledger_kernel.db.base import live
from ledger_kernel.db.types import ZERO, to_decimal
from ledger_kernel.domain.calculations import percentage, variance
from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.rules import natural_balance, validate_budget_type_match
from ledger_kernel.exceptions import (
    AccountNotFoundError,
    BudgetNotFoundError,
    DuplicateBudgetError,
    InvalidTransitionError,
    ValidationError,
)
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.account import Account
from ledger_kernel.models.transaction import Transaction, TransactionStatus
from ledger_kernel.services.directory import ActorDirectory, CompanyDirectory, DirectoryChecks
from ledger_modules._service_helpers import unit_of_work
from ledger_modules.budget.config import BudgetConfig
from ledger_modules.budget.models import (
    TERMINAL_BUDGET_STATUSES,
    BudgetPeriod,
    BudgetStatus,
    BudgetType,
    BudgetVariance,
    BudgetVsActualReport,
    BudgetVsActualRow,
    budget_window,
    validate_period_number,
)
from ledger_modules.budget.orm import BudgetModel, BudgetRevisionModel

logger = get_logger("modules.budget.service")

_UPDATABLE_FIELDS = frozenset({
    "budget_amount",
    "description",
    "department_code",
    "project_code",
})


class BudgetService(DirectoryChecks):
    """
    Budget Tracker.

    Contract
    --------
    * Returns ORM ``BudgetModel`` rows for lifecycle operations and frozen
      DTOs (``BudgetVariance``, ``BudgetVsActualReport``) for analysis.
    * Clock is injectable for deterministic approval and revision stamps.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        config: BudgetConfig | None = None,
        companies: CompanyDirectory | None = None,
        actors: ActorDirectory | None = None,
        auto_commit: bool = True,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._config = config or BudgetConfig.with_defaults()
        self.companies = companies
        self.actors = actors
        self._auto_commit = auto_commit

    def _unit_of_work(self, operation: str, budget_id: UUID | None = None):
        return unit_of_work(
            self._session, self._auto_commit, logger, operation, budget_id=budget_id,
        )

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def get_budget(self, budget_id: UUID) -> BudgetModel:
        budget = self._session.get(BudgetModel, budget_id)
        if budget is None:
            raise BudgetNotFoundError(budget_id)
        return budget

    def list_budgets(
        self,
        company_id: UUID,
        fiscal_year: int | None = None,
        status: BudgetStatus | None = None,
    ) -> list[BudgetModel]:
        query = select(BudgetModel).where(BudgetModel.company_id == company_id)
        if fiscal_year is not None:
            query = query.where(BudgetModel.fiscal_year == fiscal_year)
        if status is not None:
            query = query.where(BudgetModel.status == status)
        query = query.order_by(
            BudgetModel.fiscal_year, BudgetModel.budget_period, BudgetModel.period_number,
        )
        return list(self._session.execute(query).scalars())

    def revision_history(self, budget_id: UUID) -> list[BudgetRevisionModel]:
        """Revisions of a budget, oldest first."""
        self.get_budget(budget_id)
        return list(self._session.execute(
            select(BudgetRevisionModel)
            .where(BudgetRevisionModel.budget_id == budget_id)
            .order_by(BudgetRevisionModel.revised_at, BudgetRevisionModel.created_at)
        ).scalars())

    def _budget_account(self, company_id: UUID, account_id: UUID) -> Account:
        account = self._session.get(Account, account_id)
        if account is None or account.is_deleted or account.company_id != company_id:
            raise AccountNotFoundError(account_id)
        return account

    def _check_amount(self, amount: Decimal) -> Decimal:
        amount = Decimal(str(amount))
        if amount < ZERO and not self._config.allow_negative_amounts:
            raise ValidationError(f"Budget amount must not be negative: {amount}")
        return amount

    def _transition(
        self,
        budget: BudgetModel,
        allowed: frozenset[BudgetStatus],
        target: BudgetStatus,
        operation: str,
    ) -> None:
        if budget.status not in allowed:
            raise InvalidTransitionError("Budget", budget.id, budget.status.value, operation)
        budget.status = target

    # -------------------------------------------------------------------------
    # Creation and edits
    # -------------------------------------------------------------------------

    def create_budget(
        self,
        company_id: UUID,
        account_id: UUID,
        fiscal_year: int,
        budget_period: BudgetPeriod,
        budget_type: BudgetType,
        budget_amount: Decimal,
        actor_id: UUID,
        period_number: int = 1,
        description: str | None = None,
        department_code: str | None = None,
        project_code: str | None = None,
    ) -> BudgetModel:
        """
        Create a DRAFT budget for one account and period.

        Raises:
            AccountNotFoundError, BudgetTypeMismatchError,
            InvalidBudgetPeriodError, ValidationError, DuplicateBudgetError.
        """
        self._require_company(company_id)
        self._require_actor(actor_id)
        account = self._budget_account(company_id, account_id)
        validate_budget_type_match(budget_type, account.account_type)
        validate_period_number(budget_period, period_number)
        amount = self._check_amount(budget_amount)

        with self._unit_of_work("create_budget"):
            existing = self._session.execute(
                select(BudgetModel.id).where(
                    BudgetModel.company_id == company_id,
                    BudgetModel.account_id == account_id,
                    BudgetModel.fiscal_year == fiscal_year,
                    BudgetModel.budget_period == budget_period,
                    BudgetModel.period_number == period_number,
                )
            ).first()
            if existing is not None:
                raise DuplicateBudgetError(
                    account_id, fiscal_year, budget_period.value, period_number,
                )

            budget = BudgetModel(
                company_id=company_id,
                account_id=account_id,
                fiscal_year=fiscal_year,
                budget_period=budget_period,
                period_number=period_number,
                budget_type=budget_type,
                budget_amount=amount,
                previous_actual=ZERO,
                current_actual=ZERO,
                achievement_rate=ZERO,
                variance_amount=ZERO,
                variance_rate=ZERO,
                status=BudgetStatus.DRAFT,
                description=description,
                department_code=department_code,
                project_code=project_code,
                created_by_id=actor_id,
            )
            savepoint = self._session.begin_nested()
            try:
                self._session.add(budget)
                self._session.flush()
                savepoint.commit()
            except IntegrityError:
                savepoint.rollback()
                raise DuplicateBudgetError(
                    account_id, fiscal_year, budget_period.value, period_number,
                )

        logger.info(
            "budget_created",
            extra={
                "budget_id": str(budget.id),
                "account_code": account.code,
                "fiscal_year": fiscal_year,
                "budget_period": budget_period.value,
                "period_number": period_number,
                "budget_amount": amount,
            },
        )
        return budget

    def update_budget(self, budget_id: UUID, actor_id: UUID, **fields) -> BudgetModel:
        """Edit a DRAFT budget's amount and descriptive fields."""
        self._require_actor(actor_id)
        unknown = set(fields) - _UPDATABLE_FIELDS
        if unknown:
            raise ValidationError(f"Budget field(s) not updatable: {', '.join(sorted(unknown))}")

        with self._unit_of_work("update_budget", budget_id):
            budget = self.get_budget(budget_id)
            if budget.status != BudgetStatus.DRAFT:
                raise InvalidTransitionError("Budget", budget.id, budget.status.value, "update")
            if "budget_amount" in fields:
                fields["budget_amount"] = self._check_amount(fields["budget_amount"])
            for name, value in fields.items():
                setattr(budget, name, value)
            budget.updated_by_id = actor_id

        logger.info(
            "budget_updated",
            extra={"budget_id": str(budget_id), "fields": sorted(fields)},
        )
        return budget

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def submit(self, budget_id: UUID, actor_id: UUID) -> BudgetModel:
        self._require_actor(actor_id)
        with self._unit_of_work("submit", budget_id):
            budget = self.get_budget(budget_id)
            self._transition(
                budget, frozenset({BudgetStatus.DRAFT}), BudgetStatus.SUBMITTED, "submit",
            )
            budget.updated_by_id = actor_id
        logger.info("budget_submitted", extra={"budget_id": str(budget_id)})
        return budget

    def approve(self, budget_id: UUID, approver_id: UUID) -> BudgetModel:
        """SUBMITTED -> APPROVED, stamping approver and time."""
        self._require_actor(approver_id)
        with self._unit_of_work("approve", budget_id):
            budget = self.get_budget(budget_id)
            self._transition(
                budget, frozenset({BudgetStatus.SUBMITTED}), BudgetStatus.APPROVED, "approve",
            )
            budget.approved_by_id = approver_id
            budget.approved_at = self._clock.now()
            budget.updated_by_id = approver_id
        logger.info(
            "budget_approved",
            extra={"budget_id": str(budget_id), "approved_by": str(approver_id)},
        )
        return budget

    def activate(self, budget_id: UUID, actor_id: UUID) -> BudgetModel:
        self._require_actor(actor_id)
        with self._unit_of_work("activate", budget_id):
            budget = self.get_budget(budget_id)
            self._transition(
                budget, frozenset({BudgetStatus.APPROVED}), BudgetStatus.ACTIVE, "activate",
            )
            budget.updated_by_id = actor_id
        logger.info("budget_activated", extra={"budget_id": str(budget_id)})
        return budget

    def close(self, budget_id: UUID, actor_id: UUID) -> BudgetModel:
        self._require_actor(actor_id)
        with self._unit_of_work("close", budget_id):
            budget = self.get_budget(budget_id)
            self._transition(
                budget, frozenset({BudgetStatus.ACTIVE}), BudgetStatus.CLOSED, "close",
            )
            budget.updated_by_id = actor_id
        logger.info("budget_closed", extra={"budget_id": str(budget_id)})
        return budget

    def cancel(self, budget_id: UUID, actor_id: UUID) -> BudgetModel:
        self._require_actor(actor_id)
        with self._unit_of_work("cancel", budget_id):
            budget = self.get_budget(budget_id)
            self._transition(
                budget,
                frozenset(BudgetStatus) - TERMINAL_BUDGET_STATUSES,
                BudgetStatus.CANCELLED,
                "cancel",
            )
            budget.updated_by_id = actor_id
        logger.info("budget_cancelled", extra={"budget_id": str(budget_id)})
        return budget

    def revise(
        self,
        budget_id: UUID,
        new_amount: Decimal,
        reason: str,
        actor_id: UUID,
    ) -> BudgetRevisionModel:
        """
        Change a budget's amount, appending a revision record.

        The variance figures are recalculated against the new amount.
        Closed and cancelled budgets cannot be revised.
        """
        self._require_actor(actor_id)
        if reason is None or not reason.strip():
            raise ValidationError("A revision reason is required")
        if len(reason) > self._config.max_revision_reason_length:
            raise ValidationError(
                f"Revision reason exceeds {self._config.max_revision_reason_length} characters"
            )
        amount = self._check_amount(new_amount)

        with self._unit_of_work("revise", budget_id):
            budget = self.get_budget(budget_id)
            if budget.status in TERMINAL_BUDGET_STATUSES:
                raise InvalidTransitionError("Budget", budget.id, budget.status.value, "revise")

            revision = BudgetRevisionModel(
                budget_id=budget.id,
                old_amount=to_decimal(budget.budget_amount),
                new_amount=amount,
                revision_reason=reason,
                revised_by_id=actor_id,
                revised_at=self._clock.now(),
                created_by_id=actor_id,
            )
            self._session.add(revision)
            budget.budget_amount = amount
            budget.updated_by_id = actor_id
            self._store_variance(budget)

        logger.info(
            "budget_revised",
            extra={
                "budget_id": str(budget_id),
                "old_amount": revision.old_amount,
                "new_amount": amount,
            },
        )
        return revision

    # -------------------------------------------------------------------------
    # Actuals
    # -------------------------------------------------------------------------

    def record_actual(
        self,
        budget_id: UUID,
        current_actual: Decimal,
        previous_actual: Decimal | None = None,
        actor_id: UUID | None = None,
    ) -> BudgetModel:
        """Set the actual figures and recalculate variance."""
        with self._unit_of_work("record_actual", budget_id):
            budget = self.get_budget(budget_id)
            budget.current_actual = Decimal(str(current_actual))
            if previous_actual is not None:
                budget.previous_actual = Decimal(str(previous_actual))
            if actor_id is not None:
                budget.updated_by_id = actor_id
            self._store_variance(budget)

        logger.info(
            "budget_actual_recorded",
            extra={"budget_id": str(budget_id), "current_actual": budget.current_actual},
        )
        return budget

    def _posted_activity(self, account: Account, start, end) -> Decimal:
        """
        Natural-balance posted activity of ``account`` between two dates.

        A parent account aggregates the activity of its whole subtree.
        """
        debit, credit = self._session.execute(
            select(
                func.coalesce(func.sum(Transaction.debit_amount), 0),
                func.coalesce(func.sum(Transaction.credit_amount), 0),
            )
            .join(Account, Account.id == Transaction.account_id)
            .where(
                Transaction.company_id == account.company_id,
                Transaction.status == TransactionStatus.POSTED,
                Transaction.transaction_date >= start,
                Transaction.transaction_date <= end,
                or_(
                    Account.id == account.id,
                    Account.full_code_path.like(f"{account.full_code_path}/%"),
                ),
            )
        ).one()
        return natural_balance(account.normal_balance, to_decimal(debit), to_decimal(credit))

    def sync_actual_from_ledger(
        self, budget_id: UUID, actor_id: UUID | None = None,
    ) -> BudgetModel:
        """
        Pull actuals from posted ledger activity.

        ``current_actual`` covers the budget window; ``previous_actual``
        the same window one year earlier.
        """
        with self._unit_of_work("sync_actual_from_ledger", budget_id):
            budget = self.get_budget(budget_id)
            account = self._session.get(Account, budget.account_id)
            start, end = budget_window(
                budget.fiscal_year, budget.budget_period, budget.period_number,
            )
            prior_start, prior_end = budget_window(
                budget.fiscal_year - 1, budget.budget_period, budget.period_number,
            )
            budget.current_actual = self._posted_activity(account, start, end)
            budget.previous_actual = self._posted_activity(account, prior_start, prior_end)
            if actor_id is not None:
                budget.updated_by_id = actor_id
            self._store_variance(budget)

        logger.info(
            "budget_actual_synced",
            extra={
                "budget_id": str(budget_id),
                "current_actual": budget.current_actual,
                "previous_actual": budget.previous_actual,
            },
        )
        return budget

    # -------------------------------------------------------------------------
    # Variance
    # -------------------------------------------------------------------------

    def _variance_of(self, budget: BudgetModel) -> BudgetVariance:
        planned = to_decimal(budget.budget_amount)
        actual = to_decimal(budget.current_actual)
        figures = variance(actual, planned)
        return BudgetVariance(
            budget_id=budget.id,
            budget_amount=planned,
            current_actual=actual,
            previous_actual=to_decimal(budget.previous_actual),
            achievement_rate=figures.achievement_rate,
            variance_amount=figures.variance_amount,
            variance_rate=figures.variance_rate,
            is_over_budget=actual > planned,
            remaining_budget=max(planned - actual, ZERO),
            over_budget_amount=max(actual - planned, ZERO),
            progress_rate=min(percentage(actual, planned), self._config.progress_cap),
        )

    def _store_variance(self, budget: BudgetModel) -> BudgetVariance:
        result = self._variance_of(budget)
        budget.achievement_rate = result.achievement_rate
        budget.variance_amount = result.variance_amount
        budget.variance_rate = result.variance_rate
        return result

    def calculate_variance(self, budget_id: UUID) -> BudgetVariance:
        """Recalculate and store the variance figures of a budget."""
        with self._unit_of_work("calculate_variance", budget_id):
            budget = self.get_budget(budget_id)
            result = self._store_variance(budget)
        logger.info(
            "budget_variance_calculated",
            extra={
                "budget_id": str(budget_id),
                "achievement_rate": result.achievement_rate,
                "variance_amount": result.variance_amount,
            },
        )
        return result

    def is_over_budget(self, budget_id: UUID) -> bool:
        return self._variance_of(self.get_budget(budget_id)).is_over_budget

    def remaining_budget(self, budget_id: UUID) -> Decimal:
        return self._variance_of(self.get_budget(budget_id)).remaining_budget

    def over_budget_amount(self, budget_id: UUID) -> Decimal:
        return self._variance_of(self.get_budget(budget_id)).over_budget_amount

    def progress_rate(self, budget_id: UUID) -> Decimal:
        """Actual as a percentage of budget, capped at the configured ceiling."""
        return self._variance_of(self.get_budget(budget_id)).progress_rate

    def budget_vs_actual(self, company_id: UUID, fiscal_year: int) -> BudgetVsActualReport:
        """
        Budget against actual for every non-cancelled budget of a year.

        Figures are computed from the stored actuals; nothing is written.
        """
        self._require_company(company_id)
        rows = self._session.execute(
            select(BudgetModel, Account)
            .join(Account, Account.id == BudgetModel.account_id)
            .where(
                BudgetModel.company_id == company_id,
                BudgetModel.fiscal_year == fiscal_year,
                BudgetModel.status != BudgetStatus.CANCELLED,
                live(Account),
            )
            .order_by(Account.code, BudgetModel.budget_period, BudgetModel.period_number)
        ).all()

        report_rows = []
        total_budget = ZERO
        total_actual = ZERO
        over_count = 0
        for budget, account in rows:
            figures = self._variance_of(budget)
            total_budget += figures.budget_amount
            total_actual += figures.current_actual
            if figures.is_over_budget:
                over_count += 1
            report_rows.append(BudgetVsActualRow(
                budget_id=budget.id,
                account_id=account.id,
                account_code=account.code,
                account_name=account.name,
                budget_type=budget.budget_type,
                budget_period=budget.budget_period,
                period_number=budget.period_number,
                status=budget.status,
                variance=figures,
            ))

        return BudgetVsActualReport(
            company_id=company_id,
            fiscal_year=fiscal_year,
            rows=tuple(report_rows),
            total_budget=total_budget,
            total_actual=total_actual,
            total_variance=total_actual - total_budget,
            over_budget_count=over_count,
        )
