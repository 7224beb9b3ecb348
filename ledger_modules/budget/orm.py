"""
SQLAlchemy ORM persistence models for the Budget module.

Responsibility
--------------
Budgets keyed by (company, account, fiscal year, budget period, period
number) and their append-only revision log.

Architecture position
---------------------
**Modules layer** -- ORM models consumed by ``BudgetService``.  Inherit
from ``TrackedBase`` (kernel db layer).

Invariants enforced
-------------------
* ``uq_budget_key``: one budget per (company_id, account_id, fiscal_year,
  budget_period, period_number).
* ``BudgetRevisionModel`` rows are never updated or deleted.  Mapper
  listeners below raise ``ImmutabilityViolationError`` before any SQL is
  sent.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import ForeignKey, Index, Integer, String, UniqueConstraint, event
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import TrackedBase, UUIDString
from ledger_kernel.db.types import PercentageNumeric, enum_column
from ledger_kernel.exceptions import ImmutabilityViolationError
from ledger_kernel.logging_config import get_logger
from ledger_modules.budget.models import BudgetPeriod, BudgetStatus, BudgetType

logger = get_logger("modules.budget.orm")


class BudgetModel(TrackedBase):
    """
    Planned amount for one account and period, with its actuals.

    achievement_rate, variance_amount and variance_rate are derived by
    ``BudgetService.calculate_variance`` and stored for reporting.
    """

    __tablename__ = "budgets"

    __table_args__ = (
        UniqueConstraint(
            "company_id", "account_id", "fiscal_year", "budget_period", "period_number",
            name="uq_budget_key",
        ),
        Index("idx_budget_company_year", "company_id", "fiscal_year"),
        Index("idx_budget_status", "status"),
    )

    company_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    account_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("accounts.id"), nullable=False,
    )

    fiscal_year: Mapped[int] = mapped_column(Integer, nullable=False)

    budget_period: Mapped[BudgetPeriod] = mapped_column(
        enum_column(BudgetPeriod), nullable=False,
    )

    # 1 for annual budgets
    period_number: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    budget_type: Mapped[BudgetType] = mapped_column(enum_column(BudgetType), nullable=False)

    budget_amount: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    previous_actual: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    current_actual: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    achievement_rate: Mapped[Decimal] = mapped_column(
        PercentageNumeric, nullable=False, default=Decimal("0"),
    )

    variance_amount: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    variance_rate: Mapped[Decimal] = mapped_column(
        PercentageNumeric, nullable=False, default=Decimal("0"),
    )

    status: Mapped[BudgetStatus] = mapped_column(
        enum_column(BudgetStatus), nullable=False, default=BudgetStatus.DRAFT,
    )

    description: Mapped[str | None] = mapped_column(String(500), nullable=True)
    department_code: Mapped[str | None] = mapped_column(String(50), nullable=True)
    project_code: Mapped[str | None] = mapped_column(String(50), nullable=True)

    approved_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(nullable=True)

    def __repr__(self) -> str:
        return (
            f"<BudgetModel FY{self.fiscal_year} {self.budget_period.value}"
            f"#{self.period_number} [{self.status.value}]>"
        )


class BudgetRevisionModel(TrackedBase):
    """An append-only record of one change to a budget's amount."""

    __tablename__ = "budget_revisions"

    __table_args__ = (
        Index("idx_budget_revision_budget", "budget_id"),
        Index("idx_budget_revision_revised_at", "revised_at"),
    )

    budget_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("budgets.id"), nullable=False,
    )

    old_amount: Mapped[Decimal] = mapped_column(nullable=False)

    new_amount: Mapped[Decimal] = mapped_column(nullable=False)

    revision_reason: Mapped[str] = mapped_column(String(500), nullable=False)

    revised_by_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    revised_at: Mapped[datetime] = mapped_column(nullable=False)

    @property
    def revision_amount(self) -> Decimal:
        return self.new_amount - self.old_amount

    def __repr__(self) -> str:
        return f"<BudgetRevisionModel {self.old_amount} -> {self.new_amount}>"


def _blocked(target: BudgetRevisionModel, operation: str) -> ImmutabilityViolationError:
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": "BudgetRevision",
            "entity_id": str(target.id),
            "operation": operation,
        },
    )
    return ImmutabilityViolationError(
        "BudgetRevision", target.id, "budget revisions are an append-only audit trail",
    )


@event.listens_for(BudgetRevisionModel, "before_update")
def _reject_revision_update(mapper, connection, target):
    raise _blocked(target, "UPDATE")


@event.listens_for(BudgetRevisionModel, "before_delete")
def _reject_revision_delete(mapper, connection, target):
    raise _blocked(target, "DELETE")
