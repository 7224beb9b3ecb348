"""
BalanceService -- per-account balance maintenance.

Responsibility:
    Keeps each account's cached accumulators (debit_balance, credit_balance,
    current_balance) in step with its posted history, and recomputes
    balances from that history on demand.

Architecture position:
    Kernel > Services.  Called by LedgerService.post (incremental), by
    AccountService.set_opening_balance and by the period close
    orchestrator (full recompute and year-end reset).

Invariants enforced:
    - Only POSTED transactions contribute to a balance.  DRAFT, PENDING,
      APPROVED and CANCELLED lines never do.
    - Incremental application and full recompute agree: after any
      sequence of apply_posting calls, recompute_balance(persist=True)
      writes back the same accumulators.
    - Read-modify-write on an account row happens under a row lock, and
      the account's version column turns a lost update into
      OptimisticLockError instead of a silent overwrite.
    - Nominal accounts that have been year-closed accumulate only from
      ``balance_reset_on`` and exclude the opening balance.

Failure modes:
    - OptimisticLockError: the account row changed underneath the flush.
    - ValueError: negative posting amount (callers validate lines first).
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm.exc import StaleDataError

from ledger_kernel.db.types import ZERO, to_decimal
from ledger_kernel.domain.rules import effective_opening_balance, natural_balance
from ledger_kernel.exceptions import AccountNotFoundError, OptimisticLockError
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.account import Account
from ledger_kernel.models.transaction import Transaction, TransactionStatus
from ledger_kernel.services.base import BaseService

logger = get_logger("services.balance")


@dataclass(frozen=True)
class BalanceSnapshot:
    """Balance of one account derived from posted history."""

    account_id: UUID
    debit_total: Decimal
    credit_total: Decimal
    opening_balance: Decimal
    balance: Decimal
    as_of: date | None = None


def current_from_accumulators(account: Account) -> Decimal:
    return effective_opening_balance(account) + natural_balance(
        account.normal_balance,
        to_decimal(account.debit_balance),
        to_decimal(account.credit_balance),
    )


class BalanceService(BaseService[Account]):
    """
    Balance Calculator.

    Contract:
        Flush-only; the caller owns the transaction.
    """

    def _lock(self, account: Account) -> Account:
        # Reload under FOR UPDATE so the accumulators are current
        self.session.refresh(account, with_for_update=True)
        return account

    def _flush(self, account: Account) -> None:
        try:
            self.session.flush()
        except StaleDataError as exc:
            logger.warning(
                "account_balance_conflict",
                extra={"account_id": str(account.id), "account_code": account.code},
            )
            raise OptimisticLockError("Account", account.id) from exc

    def apply_posting(self, account: Account, amount: Decimal, is_debit: bool) -> Account:
        """
        Add a posted amount to the account's accumulators.

        Preconditions:
            ``amount`` >= 0.  Zero is a no-op.

        Postconditions:
            The debit or credit accumulator grew by ``amount`` and
            current_balance equals opening + natural(debit, credit).
        """
        if amount < ZERO:
            raise ValueError(f"Posting amount cannot be negative: {amount}")
        if amount == ZERO:
            return account

        self._lock(account)
        if is_debit:
            account.debit_balance = to_decimal(account.debit_balance) + amount
        else:
            account.credit_balance = to_decimal(account.credit_balance) + amount
        account.current_balance = current_from_accumulators(account)
        self._flush(account)

        logger.debug(
            "balance_applied",
            extra={
                "account_code": account.code,
                "amount": amount,
                "side": "debit" if is_debit else "credit",
                "current_balance": account.current_balance,
            },
        )
        return account

    def _posted_totals(
        self,
        account_id: UUID,
        as_of: date | None,
        since: date | None,
    ) -> tuple[Decimal, Decimal]:
        query = select(
            func.coalesce(func.sum(Transaction.debit_amount), 0),
            func.coalesce(func.sum(Transaction.credit_amount), 0),
        ).where(
            Transaction.account_id == account_id,
            Transaction.status == TransactionStatus.POSTED,
        )
        if as_of is not None:
            query = query.where(Transaction.transaction_date <= as_of)
        if since is not None:
            query = query.where(Transaction.transaction_date >= since)
        debit, credit = self.session.execute(query).one()
        return to_decimal(debit), to_decimal(credit)

    def recompute_balance(
        self,
        account: Account,
        as_of: date | None = None,
        since: date | None = None,
        persist: bool = False,
    ) -> BalanceSnapshot:
        """
        Aggregate the account's posted history into a balance.

        Args:
            account: Account to recompute.
            as_of: Inclusive upper date bound.
            since: Inclusive lower date bound.  For a year-closed nominal
                account the window never starts before balance_reset_on.
            persist: Rewrite the cached accumulators from history.  Only
                allowed for the unbounded window.

        Returns:
            BalanceSnapshot.  Re-running with the same inputs and history
            always yields the same snapshot.
        """
        if persist and (as_of is not None or since is not None):
            raise ValueError("persist=True requires the full history window")

        if persist:
            self._lock(account)

        reset_on = account.balance_reset_on if account.is_nominal else None
        if reset_on is not None and (since is None or since < reset_on):
            since = reset_on

        debit, credit = self._posted_totals(account.id, as_of, since)
        opening = effective_opening_balance(account)
        balance = opening + natural_balance(account.normal_balance, debit, credit)

        if persist:
            account.debit_balance = debit
            account.credit_balance = credit
            account.current_balance = balance
            self._flush(account)
            logger.debug(
                "balance_recomputed",
                extra={"account_code": account.code, "current_balance": balance},
            )

        return BalanceSnapshot(
            account_id=account.id,
            debit_total=debit,
            credit_total=credit,
            opening_balance=opening,
            balance=balance,
            as_of=as_of,
        )

    def account_balance(self, account_id: UUID, as_of: date | None = None) -> Decimal:
        """Point-in-time balance of an account."""
        account = self.session.get(Account, account_id)
        if account is None:
            raise AccountNotFoundError(account_id)
        return self.recompute_balance(account, as_of=as_of).balance

    def set_opening_balance(self, account: Account, amount: Decimal) -> Account:
        """Replace the opening balance and re-derive current_balance."""
        self._lock(account)
        account.opening_balance = amount
        account.current_balance = current_from_accumulators(account)
        self._flush(account)
        return account

    def reset_nominal_balance(self, account: Account, reset_on: date) -> Account:
        """
        Zero a revenue or expense account at year end.

        Postconditions:
            Accumulators only count postings dated on or after
            ``reset_on``; with none yet they are all zero.
        """
        if not account.is_nominal:
            raise ValueError(f"Account {account.code} is not a nominal account")

        self._lock(account)
        account.balance_reset_on = reset_on
        self._flush(account)
        self.recompute_balance(account, persist=True)

        logger.info(
            "nominal_balance_reset",
            extra={"account_code": account.code, "reset_on": reset_on},
        )
        return account
