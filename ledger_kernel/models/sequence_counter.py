"""
Module: ledger_kernel.models.sequence_counter
Responsibility: Counter rows backing transaction number allocation.
Architecture position: Kernel > Models.  Read and written only by
    services/sequence_service.py.

Invariants enforced:
    - One row per (company_id, prefix, business_date).
    - current_value only ever increases, under a row lock.
"""

from datetime import date
from uuid import UUID

from sqlalchemy import BigInteger, Date, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import Base, UUIDString


class TransactionNumberCounter(Base):
    """
    Counter row for one (company, prefix, business date).

    Row-level locking keeps allocation strictly monotonic.
    """

    __tablename__ = "transaction_number_counters"

    __table_args__ = (
        UniqueConstraint(
            "company_id", "prefix", "business_date",
            name="uq_txn_counter_company_prefix_date",
        ),
    )

    company_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    # "JE", "SL", "AJ", ...
    prefix: Mapped[str] = mapped_column(String(10), nullable=False)

    business_date: Mapped[date] = mapped_column(Date, nullable=False)

    current_value: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
