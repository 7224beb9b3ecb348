"""
Module: ledger_kernel.models.transaction
Responsibility: ORM persistence for transactions -- the individual journal
    lines of the ledger -- plus the enums of the transaction lifecycle.
Architecture position: Kernel > Models.  May import from db/ and
    models/account.py only.

Invariants enforced:
    - Exactly one of debit_amount / credit_amount is > 0; the other is 0
      (DB CHECK constraint ck_transaction_debit_xor_credit, validated first
      by domain.rules.validate_line_amounts).
    - (company_id, transaction_number) is unique.
    - fiscal_year / fiscal_month / fiscal_quarter are derived from
      transaction_date by domain.fiscal.derive_fiscal_period on the write
      path, never recomputed by ORM hooks.
    - Once POSTED or CANCELLED a transaction is immutable
      (db/immutability.py).

Lifecycle:
    DRAFT -> PENDING -> APPROVED -> POSTED      (POSTED terminal, affects balance)
    DRAFT -> APPROVED
    DRAFT / PENDING -> CANCELLED                (terminal, no balance effect)
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import CheckConstraint, Date, ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import TrackedBase, UUIDString
from ledger_kernel.db.types import enum_column


class TransactionType(str, Enum):
    """Business origin of a transaction; selects the number prefix."""

    JOURNAL = "journal"
    SALES = "sales"
    PURCHASE = "purchase"
    CASH_RECEIPT = "cash_receipt"
    CASH_PAYMENT = "cash_payment"
    BANK_RECEIPT = "bank_receipt"
    BANK_PAYMENT = "bank_payment"
    ADJUSTMENT = "adjustment"
    CLOSING = "closing"


class TransactionStatus(str, Enum):
    """Lifecycle states of a transaction."""

    DRAFT = "draft"
    PENDING = "pending"
    APPROVED = "approved"
    POSTED = "posted"
    CANCELLED = "cancelled"


class TaxType(str, Enum):
    VAT_10 = "vat_10"
    VAT_0 = "vat_0"
    TAX_FREE = "tax_free"
    WITHHOLDING = "withholding"


class DocumentType(str, Enum):
    """Kind of supporting document behind a transaction."""

    TAX_INVOICE = "tax_invoice"
    CASH_RECEIPT = "cash_receipt"
    CREDIT_CARD = "credit_card"
    BANK_TRANSFER = "bank_transfer"
    PROMISSORY_NOTE = "promissory_note"
    RECEIPT = "receipt"
    CONTRACT = "contract"
    OTHER = "other"


TERMINAL_STATUSES = frozenset({TransactionStatus.POSTED, TransactionStatus.CANCELLED})

APPROVABLE_STATUSES = frozenset({TransactionStatus.DRAFT, TransactionStatus.PENDING})

CANCELLABLE_STATUSES = frozenset({TransactionStatus.DRAFT, TransactionStatus.PENDING})

EDITABLE_STATUSES = frozenset({TransactionStatus.DRAFT, TransactionStatus.PENDING})


class Transaction(TrackedBase):
    """
    A single journal line against one leaf account.

    Lines created together by one journal entry share ``journal_number``.
    """

    __tablename__ = "transactions"

    __table_args__ = (
        UniqueConstraint("company_id", "transaction_number", name="uq_transaction_company_number"),
        CheckConstraint(
            "(debit_amount > 0 AND credit_amount = 0) OR (debit_amount = 0 AND credit_amount > 0)",
            name="ck_transaction_debit_xor_credit",
        ),
        Index("idx_transaction_company_status", "company_id", "status"),
        Index("idx_transaction_account_date", "account_id", "transaction_date"),
        Index("idx_transaction_journal", "company_id", "journal_number"),
        Index("idx_transaction_fiscal", "company_id", "fiscal_year", "fiscal_month"),
    )

    company_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    transaction_number: Mapped[str] = mapped_column(String(50), nullable=False)

    journal_number: Mapped[str] = mapped_column(String(50), nullable=False)

    transaction_date: Mapped[date] = mapped_column(Date, nullable=False)

    transaction_type: Mapped[TransactionType] = mapped_column(
        enum_column(TransactionType), nullable=False,
    )

    status: Mapped[TransactionStatus] = mapped_column(
        enum_column(TransactionStatus),
        nullable=False,
        default=TransactionStatus.DRAFT,
    )

    account_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("accounts.id"), nullable=False,
    )

    debit_amount: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    credit_amount: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    fiscal_year: Mapped[int] = mapped_column(Integer, nullable=False)
    fiscal_month: Mapped[int] = mapped_column(Integer, nullable=False)
    fiscal_quarter: Mapped[int] = mapped_column(Integer, nullable=False)

    description: Mapped[str | None] = mapped_column(String(500), nullable=True)
    memo: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    business_partner: Mapped[str | None] = mapped_column(String(200), nullable=True)
    department: Mapped[str | None] = mapped_column(String(100), nullable=True)
    project_code: Mapped[str | None] = mapped_column(String(50), nullable=True)

    tax_type: Mapped[TaxType | None] = mapped_column(enum_column(TaxType), nullable=True)
    tax_amount: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    document_type: Mapped[DocumentType | None] = mapped_column(
        enum_column(DocumentType), nullable=True,
    )
    document_number: Mapped[str | None] = mapped_column(String(100), nullable=True)

    input_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    approved_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(nullable=True)

    posted_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    posted_at: Mapped[datetime | None] = mapped_column(nullable=True)

    cancelled_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    cancelled_at: Mapped[datetime | None] = mapped_column(nullable=True)
    cancel_reason: Mapped[str | None] = mapped_column(String(500), nullable=True)

    # Set on reversing / adjusting entries
    original_transaction_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("transactions.id"), nullable=True,
    )

    def __repr__(self) -> str:
        return f"<Transaction {self.transaction_number} [{self.status.value}]>"

    @property
    def is_debit(self) -> bool:
        return self.debit_amount > 0

    @property
    def amount(self) -> Decimal:
        """The line's single non-zero amount."""
        return self.debit_amount if self.is_debit else self.credit_amount

    @property
    def is_posted(self) -> bool:
        return self.status == TransactionStatus.POSTED

    @property
    def is_reversal(self) -> bool:
        return self.original_transaction_id is not None
