"""
Module: ledger_kernel.selectors.ledger_selector
Responsibility: Read-only ledger queries -- trial balance, general ledger,
    per-account posted totals, pending-work counts and transaction
    statistics.
Architecture position: Kernel > Selectors.  May import from models/, db/ and
    domain/.  MUST NOT import from services/.

Invariants enforced:
    - Only POSTED transactions feed balances, the trial balance and the
      general ledger.
    - Every query runs on the caller's session, so one report reads one
      snapshot and never a half-written journal.
    - Trial balance rows are ordered by (account type, sort order, code).
"""

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import and_, func, or_, select
from sqlalchemy.orm import Session

from ledger_kernel.db.base import live
from ledger_kernel.db.types import ZERO, to_decimal
from ledger_kernel.domain.rules import effective_opening_balance, natural_balance
from ledger_kernel.exceptions import AccountNotFoundError
from ledger_kernel.models.account import Account, AccountType
from ledger_kernel.models.transaction import Transaction, TransactionStatus
from ledger_kernel.selectors.base import BaseSelector


@dataclass(frozen=True)
class TrialBalanceRow:
    """A single row in a trial balance."""

    account_id: UUID
    account_code: str
    account_name: str
    account_type: AccountType
    debit_total: Decimal
    credit_total: Decimal
    balance: Decimal


@dataclass(frozen=True)
class TrialBalanceReport:
    company_id: UUID
    start_date: date
    end_date: date
    rows: tuple[TrialBalanceRow, ...]
    total_debit: Decimal
    total_credit: Decimal

    @property
    def is_balanced(self) -> bool:
        return self.total_debit == self.total_credit


@dataclass(frozen=True)
class GeneralLedgerLine:
    transaction_id: UUID
    transaction_date: date
    transaction_number: str
    description: str | None
    debit_amount: Decimal
    credit_amount: Decimal
    running_balance: Decimal


@dataclass(frozen=True)
class GeneralLedgerReport:
    """Chronological posted history of one account with a running balance."""

    account_id: UUID
    account_code: str
    account_name: str
    start_date: date
    end_date: date
    opening_balance: Decimal
    lines: tuple[GeneralLedgerLine, ...]
    closing_balance: Decimal
    total_debit: Decimal
    total_credit: Decimal


@dataclass(frozen=True)
class TransactionStatistics:
    """Counts and amounts of all transactions dated in a range."""

    company_id: UUID
    start_date: date
    end_date: date
    total_count: int
    total_amount: Decimal
    total_debit: Decimal
    total_credit: Decimal
    count_by_type: dict[str, int] = field(default_factory=dict)
    amount_by_type: dict[str, Decimal] = field(default_factory=dict)
    count_by_status: dict[str, int] = field(default_factory=dict)
    daily_counts: dict[str, int] = field(default_factory=dict)
    daily_amounts: dict[str, Decimal] = field(default_factory=dict)


class LedgerSelector(BaseSelector[Transaction]):
    """Read side of the ledger."""

    def __init__(self, session: Session):
        super().__init__(session)

    def _posted(self, company_id: UUID, start: date | None, end: date | None):
        query = select(
            Transaction.account_id,
            func.coalesce(func.sum(Transaction.debit_amount), 0),
            func.coalesce(func.sum(Transaction.credit_amount), 0),
        ).where(
            Transaction.company_id == company_id,
            Transaction.status == TransactionStatus.POSTED,
        )
        if start is not None:
            query = query.where(Transaction.transaction_date >= start)
        if end is not None:
            query = query.where(Transaction.transaction_date <= end)
        return query.group_by(Transaction.account_id)

    def posted_totals_by_account(
        self,
        company_id: UUID,
        start: date | None = None,
        end: date | None = None,
    ) -> dict[UUID, tuple[Decimal, Decimal]]:
        """account_id -> (posted debit total, posted credit total) in range."""
        rows = self.session.execute(self._posted(company_id, start, end)).all()
        return {
            account_id: (to_decimal(debit), to_decimal(credit))
            for account_id, debit, credit in rows
        }

    def trial_balance(
        self,
        company_id: UUID,
        start_date: date,
        end_date: date,
        include_empty: bool = False,
    ) -> TrialBalanceReport:
        """
        Posted debit and credit totals per posting account.

        Rows cover the live, balance-tracked leaf accounts plus any other
        account that holds posted lines in the window (e.g. one soft-deleted
        afterwards), so no posted line drops out of the totals.

        Args:
            include_empty: Also list accounts with no posted activity.
        """
        totals = self.posted_totals_by_account(company_id, start_date, end_date)
        postable = and_(
            Account.is_leaf.is_(True),
            Account.track_balance.is_(True),
            live(Account),
        )
        accounts = self.session.execute(
            select(Account)
            .where(
                Account.company_id == company_id,
                or_(postable, Account.id.in_(list(totals))),
            )
            .order_by(Account.account_type, Account.sort_order, Account.code)
        ).scalars()

        rows = []
        total_debit = ZERO
        total_credit = ZERO
        for account in accounts:
            debit, credit = totals.get(account.id, (ZERO, ZERO))
            if not include_empty and debit == ZERO and credit == ZERO:
                continue
            rows.append(TrialBalanceRow(
                account_id=account.id,
                account_code=account.code,
                account_name=account.name,
                account_type=account.account_type,
                debit_total=debit,
                credit_total=credit,
                balance=natural_balance(account.normal_balance, debit, credit),
            ))
            total_debit += debit
            total_credit += credit

        return TrialBalanceReport(
            company_id=company_id,
            start_date=start_date,
            end_date=end_date,
            rows=tuple(rows),
            total_debit=total_debit,
            total_credit=total_credit,
        )

    def balance_before(self, account: Account, day: date) -> Decimal:
        """Balance carried into ``day``: opening plus posted activity before it."""
        query = select(
            func.coalesce(func.sum(Transaction.debit_amount), 0),
            func.coalesce(func.sum(Transaction.credit_amount), 0),
        ).where(
            Transaction.account_id == account.id,
            Transaction.status == TransactionStatus.POSTED,
            Transaction.transaction_date < day,
        )
        reset_on = account.balance_reset_on if account.is_nominal else None
        if reset_on is not None:
            query = query.where(Transaction.transaction_date >= reset_on)
        debit, credit = self.session.execute(query).one()
        return effective_opening_balance(account) + natural_balance(
            account.normal_balance, to_decimal(debit), to_decimal(credit),
        )

    def general_ledger(
        self, account_id: UUID, start_date: date, end_date: date,
    ) -> GeneralLedgerReport:
        """
        Posted lines of one account in a date window with running balances.

        The running balance is seeded with the balance carried into
        ``start_date``: the opening balance plus all posted activity dated
        before the window (counted from ``balance_reset_on`` for a
        year-closed nominal account).  For a window starting before any
        activity this equals the plain opening balance.

        Raises:
            AccountNotFoundError: unknown or deleted account.
        """
        account = self.session.get(Account, account_id)
        if account is None or account.is_deleted:
            raise AccountNotFoundError(account_id)

        opening = self.balance_before(account, start_date)
        txns = self.session.execute(
            select(Transaction)
            .where(
                Transaction.account_id == account_id,
                Transaction.status == TransactionStatus.POSTED,
                Transaction.transaction_date >= start_date,
                Transaction.transaction_date <= end_date,
            )
            .order_by(Transaction.transaction_date, Transaction.transaction_number)
        ).scalars()

        running = opening
        total_debit = ZERO
        total_credit = ZERO
        lines = []
        for txn in txns:
            debit = to_decimal(txn.debit_amount)
            credit = to_decimal(txn.credit_amount)
            running += natural_balance(account.normal_balance, debit, credit)
            total_debit += debit
            total_credit += credit
            lines.append(GeneralLedgerLine(
                transaction_id=txn.id,
                transaction_date=txn.transaction_date,
                transaction_number=txn.transaction_number,
                description=txn.description,
                debit_amount=debit,
                credit_amount=credit,
                running_balance=running,
            ))

        return GeneralLedgerReport(
            account_id=account.id,
            account_code=account.code,
            account_name=account.name,
            start_date=start_date,
            end_date=end_date,
            opening_balance=opening,
            lines=tuple(lines),
            closing_balance=running,
            total_debit=total_debit,
            total_credit=total_credit,
        )

    def count_by_status(self, company_id: UUID, status: TransactionStatus) -> int:
        return self.session.execute(
            select(func.count(Transaction.id)).where(
                Transaction.company_id == company_id,
                Transaction.status == status,
            )
        ).scalar_one()

    def pending_count(self, company_id: UUID) -> int:
        """Submitted but unapproved transactions: these block a period close."""
        return self.count_by_status(company_id, TransactionStatus.PENDING)

    def transaction_statistics(
        self, company_id: UUID, start_date: date, end_date: date,
    ) -> TransactionStatistics:
        txns = self.session.execute(
            select(Transaction).where(
                Transaction.company_id == company_id,
                Transaction.transaction_date >= start_date,
                Transaction.transaction_date <= end_date,
            )
        ).scalars()

        count_by_type: dict[str, int] = defaultdict(int)
        amount_by_type: dict[str, Decimal] = defaultdict(lambda: ZERO)
        count_by_status: dict[str, int] = defaultdict(int)
        daily_counts: dict[str, int] = defaultdict(int)
        daily_amounts: dict[str, Decimal] = defaultdict(lambda: ZERO)
        total_count = 0
        total_debit = ZERO
        total_credit = ZERO

        for txn in txns:
            amount = to_decimal(txn.debit_amount) + to_decimal(txn.credit_amount)
            day = txn.transaction_date.isoformat()
            total_count += 1
            total_debit += to_decimal(txn.debit_amount)
            total_credit += to_decimal(txn.credit_amount)
            count_by_type[txn.transaction_type.value] += 1
            amount_by_type[txn.transaction_type.value] += amount
            count_by_status[txn.status.value] += 1
            daily_counts[day] += 1
            daily_amounts[day] += amount

        return TransactionStatistics(
            company_id=company_id,
            start_date=start_date,
            end_date=end_date,
            total_count=total_count,
            total_amount=total_debit + total_credit,
            total_debit=total_debit,
            total_credit=total_credit,
            count_by_type=dict(sorted(count_by_type.items())),
            amount_by_type=dict(sorted(amount_by_type.items())),
            count_by_status=dict(sorted(count_by_status.items())),
            daily_counts=dict(sorted(daily_counts.items())),
            daily_amounts=dict(sorted(daily_amounts.items())),
        )
