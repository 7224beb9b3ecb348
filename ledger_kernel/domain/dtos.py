"""
DTOs -- input values for the ledger write path.

JournalLineSpec is what callers hand to LedgerService: one line of a
journal entry, referencing its account by id.  Amounts are coerced to
Decimal on construction; the bookkeeping rules themselves are checked by
``domain.rules`` so that failures carry the line number.
"""

from dataclasses import dataclass, fields
from datetime import date
from decimal import Decimal
from uuid import UUID

from ledger_kernel.models.transaction import DocumentType, TaxType

_AMOUNT_FIELDS = ("debit_amount", "credit_amount", "tax_amount")


@dataclass(frozen=True)
class JournalLineSpec:
    """One line of a journal entry."""

    account_id: UUID
    transaction_date: date
    debit_amount: Decimal = Decimal("0")
    credit_amount: Decimal = Decimal("0")
    description: str | None = None
    memo: str | None = None
    business_partner: str | None = None
    department: str | None = None
    project_code: str | None = None
    tax_type: TaxType | None = None
    tax_amount: Decimal = Decimal("0")
    document_type: DocumentType | None = None
    document_number: str | None = None

    def __post_init__(self) -> None:
        for name in _AMOUNT_FIELDS:
            value = getattr(self, name)
            if not isinstance(value, Decimal):
                # str() keeps 0.1 from becoming 0.1000000000000000055...
                object.__setattr__(self, name, Decimal(str(value)))

    @classmethod
    def debit(cls, account_id: UUID, transaction_date: date, amount, **kwargs) -> "JournalLineSpec":
        return cls(account_id, transaction_date, debit_amount=amount, **kwargs)

    @classmethod
    def credit(cls, account_id: UUID, transaction_date: date, amount, **kwargs) -> "JournalLineSpec":
        return cls(account_id, transaction_date, credit_amount=amount, **kwargs)

    def descriptive_fields(self) -> dict:
        """Every field copied verbatim onto the Transaction row."""
        skip = {"account_id", "transaction_date", *_AMOUNT_FIELDS}
        return {f.name: getattr(self, f.name) for f in fields(self) if f.name not in skip}
