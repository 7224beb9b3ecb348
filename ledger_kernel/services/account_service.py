"""
AccountService -- the chart of accounts registry.

Responsibility:
    Registers accounts into the hierarchy, keeps the derived ``level``,
    ``is_leaf`` and ``full_code_path`` fields correct, resolves the leaf
    accounts that are valid posting targets, and soft-deletes accounts.

Architecture position:
    Kernel > Services.  Used directly by callers and by LedgerService for
    posting-target validation.

Invariants enforced:
    - (company_id, code) unique.  Checked up front and backed by the
      uq_account_company_code constraint; an IntegrityError on insert is
      reported as DuplicateAccountCodeError.
    - Codes are 1..20 ASCII digits and levels stay within 1..10
      (ChartPolicy).
    - A parent loses its leaf flag when it gains a child and regains it
      when its last live child is soft-deleted.
    - An account that holds non-cancelled transactions never gains a
      child, so booked lines always sit on leaf accounts.
    - Accounts are never hard-deleted.

Failure modes:
    - InvalidAccountCodeError, AccountLevelError: shape rules.
    - DuplicateAccountCodeError: code already used in the company.
    - AccountNotFoundError: parent missing, deleted or in another company.
    - AccountHasChildrenError: soft delete of an account with live children.
    - AccountHasActivityError: a sub-account under an account that already
      holds transactions, or deleting or untracking an account that holds
      them.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ledger_kernel.db.base import live
from ledger_kernel.domain.clock import Clock
from ledger_kernel.domain.rules import ChartPolicy, balance_side
from ledger_kernel.exceptions import (
    AccountHasActivityError,
    AccountHasChildrenError,
    AccountNotFoundError,
    DuplicateAccountCodeError,
)
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.account import Account, AccountCategory, AccountType, NormalBalance
from ledger_kernel.models.transaction import Transaction, TransactionStatus
from ledger_kernel.services.balance_service import BalanceService
from ledger_kernel.services.base import BaseService
from ledger_kernel.services.directory import ActorDirectory, CompanyDirectory, DirectoryChecks

logger = get_logger("services.account")

_UPDATABLE_FIELDS = frozenset({
    "name",
    "name_en",
    "description",
    "sort_order",
    "is_active",
    "track_balance",
    "tax_code",
    "category",
    "budget_amount",
})


class AccountService(DirectoryChecks, BaseService[Account]):
    """
    Account Registry.

    Contract:
        Flush-only.  Returns ORM Account instances.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        chart_policy: ChartPolicy | None = None,
        companies: CompanyDirectory | None = None,
        actors: ActorDirectory | None = None,
    ):
        super().__init__(session, clock)
        self.chart_policy = chart_policy or ChartPolicy()
        self.companies = companies
        self.actors = actors
        self._balances = BalanceService(session, self.clock)

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def get_account(self, account_id: UUID) -> Account:
        account = self.session.execute(
            select(Account).where(Account.id == account_id, live(Account))
        ).scalar_one_or_none()
        if account is None:
            raise AccountNotFoundError(account_id)
        return account

    def get_account_by_code(self, company_id: UUID, code: str) -> Account:
        account = self.session.execute(
            select(Account).where(
                Account.company_id == company_id,
                Account.code == code,
                live(Account),
            )
        ).scalar_one_or_none()
        if account is None:
            raise AccountNotFoundError(f"{company_id}/{code}")
        return account

    def list_accounts(
        self,
        company_id: UUID,
        account_type: AccountType | None = None,
    ) -> list[Account]:
        query = select(Account).where(Account.company_id == company_id, live(Account))
        if account_type is not None:
            query = query.where(Account.account_type == account_type)
        query = query.order_by(Account.account_type, Account.sort_order, Account.code)
        return list(self.session.execute(query).scalars())

    def children(self, account_id: UUID) -> list[Account]:
        return list(self.session.execute(
            select(Account)
            .where(Account.parent_id == account_id, live(Account))
            .order_by(Account.sort_order, Account.code)
        ).scalars())

    def resolve_leaf_accounts(self, company_id: UUID) -> list[Account]:
        """
        Live accounts with no live children: the only valid posting targets.

        Derived from the hierarchy itself rather than the cached leaf flag.
        """
        child = Account.__table__.alias("child")
        has_live_child = (
            select(child.c.id)
            .where(child.c.parent_id == Account.id, child.c.deleted_at.is_(None))
            .exists()
        )
        return list(self.session.execute(
            select(Account)
            .where(Account.company_id == company_id, live(Account), ~has_live_child)
            .order_by(Account.account_type, Account.sort_order, Account.code)
        ).scalars())

    def _live_child_count(self, account_id: UUID) -> int:
        return self.session.execute(
            select(func.count(Account.id)).where(
                Account.parent_id == account_id, live(Account),
            )
        ).scalar_one()

    def _activity_count(self, account_id: UUID) -> int:
        """Non-cancelled transaction lines booked to ``account_id``."""
        return self.session.execute(
            select(func.count(Transaction.id)).where(
                Transaction.account_id == account_id,
                Transaction.status != TransactionStatus.CANCELLED,
            )
        ).scalar_one()

    # -------------------------------------------------------------------------
    # Commands
    # -------------------------------------------------------------------------

    def register_account(
        self,
        company_id: UUID,
        code: str,
        name: str,
        account_type: AccountType,
        actor_id: UUID,
        category: AccountCategory | None = None,
        parent_id: UUID | None = None,
        normal_balance: NormalBalance | None = None,
        name_en: str | None = None,
        description: str | None = None,
        sort_order: int = 0,
        track_balance: bool = True,
        tax_code: str | None = None,
        opening_balance: Decimal = Decimal("0"),
    ) -> Account:
        """
        Register a new account.

        Postconditions:
            - level = parent.level + 1, or 1 for a root.
            - full_code_path = parent.full_code_path + "/" + code.
            - The parent's is_leaf is False.
            - normal_balance defaults to the side implied by account_type.

        Raises:
            InvalidAccountCodeError, AccountLevelError,
            DuplicateAccountCodeError, AccountNotFoundError,
            AccountHasActivityError, CompanyNotFoundError, ActorNotFoundError.
        """
        self._require_company(company_id)
        self._require_actor(actor_id)
        self.chart_policy.validate_code(code)

        parent = None
        level = 1
        full_code_path = code
        if parent_id is not None:
            parent = self.session.get(Account, parent_id)
            if parent is None or parent.is_deleted or parent.company_id != company_id:
                raise AccountNotFoundError(parent_id)
            level = parent.level + 1
            full_code_path = f"{parent.full_code_path}/{code}"
        self.chart_policy.validate_level(level)
        if parent is not None and parent.is_leaf:
            activity = self._activity_count(parent.id)
            if activity:
                raise AccountHasActivityError(parent.code, activity, "add a sub-account")

        existing = self.session.execute(
            select(Account.id).where(Account.company_id == company_id, Account.code == code)
        ).scalar_one_or_none()
        if existing is not None:
            raise DuplicateAccountCodeError(company_id, code)

        account = Account(
            company_id=company_id,
            code=code,
            name=name,
            name_en=name_en,
            account_type=account_type,
            category=category,
            normal_balance=normal_balance or balance_side(account_type),
            parent_id=parent_id,
            level=level,
            is_leaf=True,
            full_code_path=full_code_path,
            description=description,
            sort_order=sort_order,
            track_balance=track_balance,
            tax_code=tax_code,
            opening_balance=opening_balance,
            current_balance=opening_balance,
            created_by_id=actor_id,
        )

        savepoint = self.session.begin_nested()
        try:
            self.session.add(account)
            if parent is not None and parent.is_leaf:
                parent.is_leaf = False
                parent.updated_by_id = actor_id
            self.session.flush()
            savepoint.commit()
        except IntegrityError:
            savepoint.rollback()
            raise DuplicateAccountCodeError(company_id, code)

        logger.info(
            "account_registered",
            extra={
                "company_id": str(company_id),
                "account_code": code,
                "account_type": account_type.value,
                "level": level,
            },
        )
        return account

    def update_account(self, account_id: UUID, actor_id: UUID, **fields) -> Account:
        """
        Change descriptive attributes of an account.

        Code, type, parent and balances are not editable here.
        Tracking cannot be switched off while the account holds
        transactions (AccountHasActivityError).
        """
        self._require_actor(actor_id)
        unknown = set(fields) - _UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Account field(s) not updatable: {', '.join(sorted(unknown))}")

        account = self.get_account(account_id)
        if fields.get("track_balance") is False and account.track_balance:
            activity = self._activity_count(account.id)
            if activity:
                raise AccountHasActivityError(account.code, activity, "stop tracking the balance")
        for key, value in fields.items():
            setattr(account, key, value)
        account.updated_by_id = actor_id
        self.session.flush()

        logger.info(
            "account_updated",
            extra={"account_code": account.code, "fields": sorted(fields)},
        )
        return account

    def set_opening_balance(
        self, account_id: UUID, amount: Decimal, actor_id: UUID,
    ) -> Account:
        self._require_actor(actor_id)
        account = self.get_account(account_id)
        self._balances.set_opening_balance(account, amount)
        account.updated_by_id = actor_id
        self.session.flush()
        logger.info(
            "opening_balance_set",
            extra={"account_code": account.code, "opening_balance": amount},
        )
        return account

    def soft_delete_account(self, account_id: UUID, actor_id: UUID) -> Account:
        """
        Tombstone an account.

        Raises:
            AccountHasChildrenError: the account still has live children.
            AccountHasActivityError: transactions are booked to the account;
                deactivate it instead.
        """
        self._require_actor(actor_id)
        account = self.get_account(account_id)

        child_count = self._live_child_count(account.id)
        if child_count:
            raise AccountHasChildrenError(account.code, child_count)
        activity = self._activity_count(account.id)
        if activity:
            raise AccountHasActivityError(account.code, activity, "delete the account")

        account.deleted_at = self.clock.now()
        account.is_active = False
        account.updated_by_id = actor_id
        self.session.flush()

        if account.parent_id is not None and self._live_child_count(account.parent_id) == 0:
            parent = self.session.get(Account, account.parent_id)
            parent.is_leaf = True
            parent.updated_by_id = actor_id
            self.session.flush()

        logger.info(
            "account_soft_deleted",
            extra={"account_code": account.code, "company_id": str(account.company_id)},
        )
        return account
