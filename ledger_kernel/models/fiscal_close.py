"""
Module: ledger_kernel.models.fiscal_close
Responsibility: Record of completed month and year closes per company.
Architecture position: Kernel > Models.

Invariants enforced:
    - One row per (company_id, period_key).  period_key is "YYYY-MM" for a
      month close and "YYYY-FY" for a year close.  Re-running a close
      refreshes closed_at instead of inserting a second row.
    - LedgerService.post rejects transactions dated in a year that has a
      "YYYY-FY" row.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import TrackedBase, UUIDString


def month_key(fiscal_year: int, fiscal_month: int) -> str:
    return f"{fiscal_year:04d}-{fiscal_month:02d}"


def year_key(fiscal_year: int) -> str:
    return f"{fiscal_year:04d}-FY"


class FiscalClose(TrackedBase):
    """A completed period close."""

    __tablename__ = "fiscal_closes"

    __table_args__ = (
        UniqueConstraint("company_id", "period_key", name="uq_fiscal_close_company_period"),
    )

    company_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    period_key: Mapped[str] = mapped_column(String(10), nullable=False)

    fiscal_year: Mapped[int] = mapped_column(Integer, nullable=False)

    # None for a year close
    fiscal_month: Mapped[int | None] = mapped_column(Integer, nullable=True)

    accounts_recomputed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    closed_at: Mapped[datetime] = mapped_column(nullable=False)

    def __repr__(self) -> str:
        return f"<FiscalClose {self.period_key}>"
