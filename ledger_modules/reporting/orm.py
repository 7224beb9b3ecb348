"""
SQLAlchemy ORM persistence models for the Reporting module.

Responsibility
--------------
Generated financial report snapshots and their item trees.

Architecture position
---------------------
**Modules layer** -- ORM models consumed by ``ReportingService``.  Inherit
from ``TrackedBase`` (kernel db layer).

Invariants enforced
-------------------
* ``uq_financial_report_key``: one report per (company_id, report_type,
  fiscal_year, fiscal_period).  Regeneration updates that row in place.
* Reports are soft-deleted via ``deleted_at``; items belong to exactly one
  report and are replaced wholesale on regeneration.
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Boolean, Date, ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import SoftDeleteMixin, TrackedBase, UUIDString
from ledger_kernel.db.types import PercentageNumeric, enum_column, to_decimal
from ledger_modules.reporting.models import (
    FinancialRatios,
    ItemType,
    ReportStatus,
    ReportType,
    StatementTotals,
)
from ledger_modules.reporting.statements import financial_ratios

_TOTAL_FIELDS = tuple(StatementTotals.__dataclass_fields__)


class FinancialReportModel(SoftDeleteMixin, TrackedBase):
    """A generated, re-generable financial statement snapshot."""

    __tablename__ = "financial_reports"

    __table_args__ = (
        UniqueConstraint(
            "company_id", "report_type", "fiscal_year", "fiscal_period",
            name="uq_financial_report_key",
        ),
        Index("idx_financial_report_company", "company_id"),
        Index("idx_financial_report_period", "fiscal_year", "fiscal_period"),
        Index("idx_financial_report_status", "report_status"),
    )

    company_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    report_type: Mapped[ReportType] = mapped_column(enum_column(ReportType), nullable=False)

    report_title: Mapped[str] = mapped_column(String(200), nullable=False)

    fiscal_year: Mapped[int] = mapped_column(Integer, nullable=False)

    # e.g. "FY", "Q1", "2024-03"
    fiscal_period: Mapped[str] = mapped_column(String(20), nullable=False)

    base_date: Mapped[date] = mapped_column(Date, nullable=False)

    # Income statement and trial balance windows; None for point-in-time reports
    start_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    report_status: Mapped[ReportStatus] = mapped_column(
        enum_column(ReportStatus), nullable=False, default=ReportStatus.DRAFT,
    )

    total_assets: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    current_assets: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    non_current_assets: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    cash_and_equivalents: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    total_liabilities: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    current_liabilities: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    non_current_liabilities: Mapped[Decimal] = mapped_column(
        nullable=False, default=Decimal("0"),
    )
    total_equity: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    total_revenue: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    operating_revenue: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    total_expenses: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    operating_expenses: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    operating_income: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    income_before_tax: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    net_income: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    generated_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    generated_at: Mapped[datetime | None] = mapped_column(nullable=True)

    reviewed_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    reviewed_at: Mapped[datetime | None] = mapped_column(nullable=True)

    approved_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(nullable=True)

    published_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    published_at: Mapped[datetime | None] = mapped_column(nullable=True)

    remarks: Mapped[str | None] = mapped_column(String(1000), nullable=True)

    def __repr__(self) -> str:
        return f"<FinancialReportModel {self.report_title} [{self.report_status.value}]>"

    def apply_totals(self, totals: StatementTotals) -> None:
        for name in _TOTAL_FIELDS:
            setattr(self, name, getattr(totals, name))

    def to_totals(self) -> StatementTotals:
        return StatementTotals(**{name: to_decimal(getattr(self, name)) for name in _TOTAL_FIELDS})

    @property
    def ratios(self) -> FinancialRatios:
        """Ratios computed from this report's own totals."""
        return financial_ratios(self.to_totals())


class FinancialReportItemModel(TrackedBase):
    """One line of a report's item tree."""

    __tablename__ = "financial_report_items"

    __table_args__ = (
        Index("idx_financial_report_item_report", "report_id", "line_number"),
        Index("idx_financial_report_item_parent", "parent_id"),
    )

    report_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("financial_reports.id"), nullable=False,
    )

    parent_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("financial_report_items.id"), nullable=True,
    )

    account_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("accounts.id"), nullable=True,
    )

    item_code: Mapped[str] = mapped_column(String(50), nullable=False)
    item_name: Mapped[str] = mapped_column(String(200), nullable=False)
    item_name_en: Mapped[str | None] = mapped_column(String(300), nullable=True)

    line_number: Mapped[int] = mapped_column(Integer, nullable=False)
    item_level: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    item_type: Mapped[ItemType] = mapped_column(
        enum_column(ItemType), nullable=False, default=ItemType.ACCOUNT,
    )

    current_amount: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    previous_amount: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    change_amount: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    change_rate: Mapped[Decimal] = mapped_column(
        PercentageNumeric, nullable=False, default=Decimal("0"),
    )
    composition_ratio: Mapped[Decimal] = mapped_column(
        PercentageNumeric, nullable=False, default=Decimal("0"),
    )

    calculation_formula: Mapped[str | None] = mapped_column(String(500), nullable=True)

    is_bold: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    indent_level: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    def __repr__(self) -> str:
        return f"<FinancialReportItemModel {self.line_number}: {self.item_name}>"

    @property
    def is_total(self) -> bool:
        return self.item_type in (ItemType.TOTAL, ItemType.SUBTOTAL)

    @property
    def is_increase(self) -> bool:
        return self.change_amount > 0

    @property
    def is_decrease(self) -> bool:
        return self.change_amount < 0
