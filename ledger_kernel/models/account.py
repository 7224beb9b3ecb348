"""
Module: ledger_kernel.models.account
Responsibility: ORM persistence for the chart of accounts -- the target of
    every transaction line.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - Account code unique within a company (uq_account_company_code).
    - level = parent.level + 1 (1 for roots); kept by AccountService.
    - is_leaf is True iff the account has no live children; kept by
      AccountService whenever a child is added or soft-deleted.
    - Parent is a plain id reference.  Children and transactions are found
      by query, never through materialised collections.
    - ``version`` is the optimistic-lock counter: concurrent balance writers
      cannot silently overwrite each other.

Audit relevance:
    Accounts are never hard-deleted (see db/immutability.py).  Balance
    accumulators (debit_balance, credit_balance, current_balance) are a
    cache of posted history and can always be rebuilt by BalanceService.
"""

from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import Boolean, Date, ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import SoftDeleteMixin, TrackedBase, UUIDString
from ledger_kernel.db.types import enum_column


class AccountType(str, Enum):
    """Types of accounts in the chart of accounts."""

    ASSET = "asset"
    LIABILITY = "liability"
    EQUITY = "equity"
    REVENUE = "revenue"
    EXPENSE = "expense"


class AccountCategory(str, Enum):
    """Statement sub-classification within an account type."""

    CURRENT_ASSET = "current_asset"
    FIXED_ASSET = "fixed_asset"
    CURRENT_LIABILITY = "current_liability"
    LONG_TERM_LIABILITY = "long_term_liability"
    CAPITAL = "capital"
    OPERATING_REVENUE = "operating_revenue"
    NON_OPERATING_REVENUE = "non_operating_revenue"
    OPERATING_EXPENSE = "operating_expense"
    NON_OPERATING_EXPENSE = "non_operating_expense"


class NormalBalance(str, Enum):
    """Side on which an account's balance increases."""

    DEBIT = "debit"
    CREDIT = "credit"
    BOTH = "both"


# Nominal (temporary) accounts are cleared at year end
NOMINAL_ACCOUNT_TYPES = frozenset({AccountType.REVENUE, AccountType.EXPENSE})


class Account(SoftDeleteMixin, TrackedBase):
    """
    Chart of accounts entry -- a single node in the account hierarchy.

    Contract:
        (company_id, code) is unique.  Only live, active leaf accounts may
        be posting targets.
    """

    __tablename__ = "accounts"

    __table_args__ = (
        UniqueConstraint("company_id", "code", name="uq_account_company_code"),
        Index("idx_account_company_type", "company_id", "account_type"),
        Index("idx_account_parent", "parent_id"),
    )

    company_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    code: Mapped[str] = mapped_column(String(20), nullable=False)

    name: Mapped[str] = mapped_column(String(200), nullable=False)

    name_en: Mapped[str | None] = mapped_column(String(200), nullable=True)

    account_type: Mapped[AccountType] = mapped_column(
        enum_column(AccountType), nullable=False,
    )

    category: Mapped[AccountCategory | None] = mapped_column(
        enum_column(AccountCategory), nullable=True,
    )

    normal_balance: Mapped[NormalBalance] = mapped_column(
        enum_column(NormalBalance), nullable=False,
    )

    parent_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("accounts.id"), nullable=True,
    )

    level: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    is_leaf: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    # "1000/1100/1110" -- codes from the root down to this account
    full_code_path: Mapped[str] = mapped_column(String(500), nullable=False)

    description: Mapped[str | None] = mapped_column(String(500), nullable=True)

    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    track_balance: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    tax_code: Mapped[str | None] = mapped_column(String(20), nullable=True)

    debit_balance: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    credit_balance: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    current_balance: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    opening_balance: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    budget_amount: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    # Set by a year close on nominal accounts: balances accumulate from here
    balance_reset_on: Mapped[date | None] = mapped_column(Date, nullable=True)

    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self) -> str:
        return f"<Account {self.code}: {self.name}>"

    @property
    def is_debit_normal(self) -> bool:
        return self.normal_balance == NormalBalance.DEBIT

    @property
    def is_credit_normal(self) -> bool:
        return self.normal_balance == NormalBalance.CREDIT

    @property
    def is_nominal(self) -> bool:
        """Revenue and expense accounts are cleared at year end."""
        return self.account_type in NOMINAL_ACCOUNT_TYPES

    @property
    def is_postable(self) -> bool:
        return self.is_leaf and self.is_active and not self.is_deleted
