"""
LedgerService -- journal entries and the transaction state machine.

Responsibility:
    Validates and persists journal entries (one or more transaction lines),
    numbers them, and drives every line through its lifecycle:

        DRAFT -> PENDING -> APPROVED -> POSTED
        DRAFT -> APPROVED
        DRAFT / PENDING -> CANCELLED

    Posted lines are corrected with reversing or adjusting entries, never
    by cancellation or edit.

Architecture position:
    Kernel > Services.  Uses AccountService for posting-target checks,
    SequenceService for numbering and BalanceService for the balance side
    effect of posting.

Invariants enforced:
    - A journal entry is non-empty, every line carries exactly one positive
      amount, and total debits equal total credits.  All of this is checked
      before the first row is written.
    - Lines are written inside one savepoint: either every line exists or
      none does.
    - Only live, active, balance-tracked leaf accounts of the same company
      are targets.  post() checks the target again, so a line never lands
      on an account that was deactivated after the line was created.
    - post() is reachable only from APPROVED and runs under a row lock on
      the transaction, so a second post() sees POSTED and fails instead of
      applying the amount twice.  The status change and the balance update
      share a savepoint.
    - Nothing is posted into a year that has been closed.

Failure modes:
    - EmptyJournalError, InvalidLineAmountError, UnbalancedJournalError,
      NonLeafAccountError, InactiveAccountError, UntrackedAccountError,
      ValidationError.
    - AccountNotFoundError, TransactionNotFoundError.
    - InvalidTransitionError, PostedTransactionError, ClosedPeriodError.
    - DuplicateTransactionNumberError.
    - OptimisticLockError from the balance update.

Audit relevance:
    Every state transition stamps actor and clock time on the row and emits
    a structured log event (journal_entry_created, transaction_approved,
    transaction_posted, transaction_cancelled, reversing_entry_created).
"""

from collections.abc import Sequence
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ledger_kernel.domain.clock import Clock
from ledger_kernel.domain.dtos import JournalLineSpec
from ledger_kernel.domain.fiscal import derive_fiscal_period
from ledger_kernel.domain.numbering import NumberingPolicy
from ledger_kernel.domain.rules import check_journal_balance, validate_line_amounts
from ledger_kernel.exceptions import (
    AccountNotFoundError,
    ClosedPeriodError,
    DuplicateTransactionNumberError,
    EmptyJournalError,
    InactiveAccountError,
    InvalidTransitionError,
    NonLeafAccountError,
    PostedTransactionError,
    TransactionNotFoundError,
    UntrackedAccountError,
    ValidationError,
)
from ledger_kernel.logging_config import LogContext, get_logger
from ledger_kernel.models.account import Account
from ledger_kernel.models.fiscal_close import FiscalClose, year_key
from ledger_kernel.models.transaction import (
    APPROVABLE_STATUSES,
    CANCELLABLE_STATUSES,
    EDITABLE_STATUSES,
    Transaction,
    TransactionStatus,
    TransactionType,
)
from ledger_kernel.services.balance_service import BalanceService
from ledger_kernel.services.base import BaseService
from ledger_kernel.services.directory import ActorDirectory, CompanyDirectory, DirectoryChecks
from ledger_kernel.services.sequence_service import SequenceService

logger = get_logger("services.ledger")

_EDITABLE_FIELDS = frozenset({
    "account_id",
    "description",
    "memo",
    "business_partner",
    "department",
    "project_code",
    "tax_type",
    "tax_amount",
    "document_type",
    "document_number",
})

REVERSAL_DESCRIPTION_PREFIX = "Reversal: "


class LedgerService(DirectoryChecks, BaseService[Transaction]):
    """
    Ledger Engine.

    Contract:
        Flush-only; the caller commits.  Returns ORM Transaction rows.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        numbering: NumberingPolicy | None = None,
        companies: CompanyDirectory | None = None,
        actors: ActorDirectory | None = None,
        balance_service: BalanceService | None = None,
    ):
        super().__init__(session, clock)
        self.numbering = numbering or NumberingPolicy()
        self.companies = companies
        self.actors = actors
        self._sequences = SequenceService(session)
        self._balances = balance_service or BalanceService(session, self.clock)

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def get_transaction(self, transaction_id: UUID) -> Transaction:
        txn = self.session.get(Transaction, transaction_id)
        if txn is None:
            raise TransactionNotFoundError(transaction_id)
        return txn

    def get_journal_entry(self, company_id: UUID, journal_number: str) -> list[Transaction]:
        """All lines sharing ``journal_number``, in line order."""
        return list(self.session.execute(
            select(Transaction)
            .where(
                Transaction.company_id == company_id,
                Transaction.journal_number == journal_number,
            )
            .order_by(Transaction.transaction_number)
        ).scalars())

    def _locked(self, transaction_id: UUID) -> Transaction:
        txn = self.session.execute(
            select(Transaction)
            .where(Transaction.id == transaction_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if txn is None:
            raise TransactionNotFoundError(transaction_id)
        return txn

    # -------------------------------------------------------------------------
    # Validation helpers
    # -------------------------------------------------------------------------

    def _posting_target(self, company_id: UUID, account_id: UUID) -> Account:
        account = self.session.get(Account, account_id)
        if account is None or account.is_deleted or account.company_id != company_id:
            raise AccountNotFoundError(account_id)
        if not account.is_active:
            raise InactiveAccountError(account.code)
        if not account.is_leaf:
            raise NonLeafAccountError(account.code)
        if not account.track_balance:
            raise UntrackedAccountError(account.code)
        return account

    def _check_year_open(self, txn: Transaction) -> None:
        closed_through = self.session.execute(
            select(func.max(FiscalClose.fiscal_year)).where(
                FiscalClose.company_id == txn.company_id,
                FiscalClose.fiscal_month.is_(None),
            )
        ).scalar_one_or_none()
        if closed_through is not None and txn.fiscal_year <= closed_through:
            logger.warning(
                "closed_period_posting_rejected",
                extra={"transaction_number": txn.transaction_number, "fiscal_year": txn.fiscal_year},
            )
            raise ClosedPeriodError(txn.company_id, year_key(txn.fiscal_year))

    def _allocate_base(self, company_id: UUID, transaction_type: TransactionType, business_date) -> str:
        prefix = self.numbering.prefix_for(transaction_type)
        ordinal = self._sequences.next_value(company_id, prefix, business_date)
        return self.numbering.base_number(prefix, business_date, ordinal)

    def _build_line(
        self,
        company_id: UUID,
        spec: JournalLineSpec,
        transaction_number: str,
        journal_number: str,
        transaction_type: TransactionType,
        actor_id: UUID,
        original_transaction_id: UUID | None = None,
    ) -> Transaction:
        period = derive_fiscal_period(spec.transaction_date)
        return Transaction(
            company_id=company_id,
            transaction_number=transaction_number,
            journal_number=journal_number,
            transaction_date=spec.transaction_date,
            transaction_type=transaction_type,
            status=TransactionStatus.DRAFT,
            account_id=spec.account_id,
            debit_amount=spec.debit_amount,
            credit_amount=spec.credit_amount,
            tax_amount=spec.tax_amount,
            fiscal_year=period.year,
            fiscal_month=period.month,
            fiscal_quarter=period.quarter,
            input_by_id=actor_id,
            created_by_id=actor_id,
            original_transaction_id=original_transaction_id,
            **spec.descriptive_fields(),
        )

    def _write_lines(self, company_id: UUID, rows: list[Transaction]) -> None:
        """Add and flush ``rows`` inside one savepoint."""
        savepoint = self.session.begin_nested()
        try:
            self.session.add_all(rows)
            self.session.flush()
            savepoint.commit()
        except IntegrityError:
            savepoint.rollback()
            raise DuplicateTransactionNumberError(
                company_id, ", ".join(r.transaction_number for r in rows),
            )

    # -------------------------------------------------------------------------
    # Creation
    # -------------------------------------------------------------------------

    def create_journal_entry(
        self,
        company_id: UUID,
        lines: Sequence[JournalLineSpec],
        actor_id: UUID,
        transaction_type: TransactionType = TransactionType.JOURNAL,
    ) -> list[Transaction]:
        """
        Validate and persist a balanced journal entry as DRAFT lines.

        Preconditions:
            ``lines`` is non-empty, balanced, single-dated, and every line
            targets a postable account of ``company_id``.

        Postconditions:
            One Transaction per line, all DRAFT, sharing ``journal_number``.
            Multi-line entries are numbered ``<base>-1``, ``<base>-2``, ...

        Raises:
            EmptyJournalError, InvalidLineAmountError, UnbalancedJournalError,
            ValidationError (mixed dates), AccountNotFoundError,
            InactiveAccountError, NonLeafAccountError, UntrackedAccountError.
        """
        self._require_company(company_id)
        self._require_actor(actor_id)

        lines = list(lines)
        if not lines:
            raise EmptyJournalError()
        for line_number, line in enumerate(lines, start=1):
            validate_line_amounts(line_number, line.debit_amount, line.credit_amount)
        total_debit, total_credit = check_journal_balance(
            (line.debit_amount, line.credit_amount) for line in lines
        )
        entry_dates = {line.transaction_date for line in lines}
        if len(entry_dates) > 1:
            raise ValidationError("All lines of a journal entry must share one date")
        for line in lines:
            self._posting_target(company_id, line.account_id)

        entry_date = lines[0].transaction_date
        base = self._allocate_base(company_id, transaction_type, entry_date)
        numbers = self.numbering.line_numbers(base, len(lines))
        rows = [
            self._build_line(company_id, line, number, base, transaction_type, actor_id)
            for line, number in zip(lines, numbers)
        ]
        self._write_lines(company_id, rows)

        logger.info(
            "journal_entry_created",
            extra={
                "company_id": str(company_id),
                "journal_number": base,
                "line_count": len(rows),
                "total_debit": total_debit,
                "total_credit": total_credit,
            },
        )
        return rows

    def create_transaction(
        self,
        company_id: UUID,
        spec: JournalLineSpec,
        actor_id: UUID,
        transaction_type: TransactionType = TransactionType.JOURNAL,
    ) -> Transaction:
        """Persist a single one-sided DRAFT line (no balance check)."""
        self._require_company(company_id)
        self._require_actor(actor_id)
        validate_line_amounts(1, spec.debit_amount, spec.credit_amount)
        self._posting_target(company_id, spec.account_id)

        base = self._allocate_base(company_id, transaction_type, spec.transaction_date)
        txn = self._build_line(company_id, spec, base, base, transaction_type, actor_id)
        self._write_lines(company_id, [txn])

        logger.info(
            "transaction_created",
            extra={"transaction_number": txn.transaction_number, "amount": txn.amount},
        )
        return txn

    # -------------------------------------------------------------------------
    # Edits and transitions
    # -------------------------------------------------------------------------

    def update_transaction(self, transaction_id: UUID, actor_id: UUID, **fields) -> Transaction:
        """
        Edit descriptive fields or the target account of an open line.

        Amounts are not editable, so a balanced journal stays balanced.

        Raises:
            PostedTransactionError: the line is POSTED.
            InvalidTransitionError: the line is APPROVED or CANCELLED.
            ValidationError: a non-editable field was supplied.
        """
        self._require_actor(actor_id)
        blocked = set(fields) - _EDITABLE_FIELDS
        if blocked:
            raise ValidationError(
                f"Transaction field(s) not editable: {', '.join(sorted(blocked))}"
            )

        txn = self._locked(transaction_id)
        if txn.status == TransactionStatus.POSTED:
            raise PostedTransactionError(txn.id, "update")
        if txn.status not in EDITABLE_STATUSES:
            raise InvalidTransitionError("Transaction", txn.id, txn.status.value, "update")

        if "account_id" in fields:
            self._posting_target(txn.company_id, fields["account_id"])
        for key, value in fields.items():
            setattr(txn, key, value)
        txn.updated_by_id = actor_id
        self.session.flush()

        logger.info(
            "transaction_updated",
            extra={"transaction_number": txn.transaction_number, "fields": sorted(fields)},
        )
        return txn

    def submit(self, transaction_id: UUID, actor_id: UUID) -> Transaction:
        """DRAFT -> PENDING."""
        self._require_actor(actor_id)
        txn = self._locked(transaction_id)
        if txn.status != TransactionStatus.DRAFT:
            raise InvalidTransitionError("Transaction", txn.id, txn.status.value, "submit")
        txn.status = TransactionStatus.PENDING
        txn.updated_by_id = actor_id
        self.session.flush()
        logger.info("transaction_submitted", extra={"transaction_number": txn.transaction_number})
        return txn

    def approve(self, transaction_id: UUID, approver_id: UUID) -> Transaction:
        """DRAFT / PENDING -> APPROVED, stamping approver and time."""
        self._require_actor(approver_id)
        txn = self._locked(transaction_id)
        if txn.status not in APPROVABLE_STATUSES:
            raise InvalidTransitionError("Transaction", txn.id, txn.status.value, "approve")

        txn.status = TransactionStatus.APPROVED
        txn.approved_by_id = approver_id
        txn.approved_at = self.clock.now()
        txn.updated_by_id = approver_id
        self.session.flush()

        logger.info(
            "transaction_approved",
            extra={"transaction_number": txn.transaction_number, "approver_id": str(approver_id)},
        )
        return txn

    def post(self, transaction_id: UUID, actor_id: UUID) -> Transaction:
        """
        APPROVED -> POSTED, applying the amount to the account balance.

        The status change and the balance update commit together or not at
        all.  A second call fails with InvalidTransitionError.

        Raises:
            InactiveAccountError, UntrackedAccountError, AccountNotFoundError:
                the target account was changed after the line was created.
            ClosedPeriodError: the line is dated in a closed year.
        """
        self._require_actor(actor_id)
        txn = self._locked(transaction_id)
        with LogContext.bind(transaction_id=txn.id, company_id=txn.company_id):
            if txn.status != TransactionStatus.APPROVED:
                raise InvalidTransitionError("Transaction", txn.id, txn.status.value, "post")
            self._check_year_open(txn)
            # The chart may have changed since the line was created
            account = self._posting_target(txn.company_id, txn.account_id)
            with self.session.begin_nested():
                self._balances.apply_posting(account, txn.amount, txn.is_debit)
                txn.status = TransactionStatus.POSTED
                txn.posted_by_id = actor_id
                txn.posted_at = self.clock.now()
                txn.updated_by_id = actor_id
                self.session.flush()

            logger.info(
                "transaction_posted",
                extra={
                    "transaction_number": txn.transaction_number,
                    "account_code": account.code,
                    "amount": txn.amount,
                    "side": "debit" if txn.is_debit else "credit",
                },
            )
        return txn

    def cancel(self, transaction_id: UUID, reason: str, actor_id: UUID) -> Transaction:
        """
        DRAFT / PENDING -> CANCELLED.

        Raises:
            PostedTransactionError: POSTED lines need a reversing entry.
            InvalidTransitionError: any other non-cancellable status.
            ValidationError: blank reason.
        """
        self._require_actor(actor_id)
        if not reason or not reason.strip():
            raise ValidationError("A cancellation reason is required")

        txn = self._locked(transaction_id)
        if txn.status == TransactionStatus.POSTED:
            logger.warning(
                "posted_transaction_cancel_rejected",
                extra={"transaction_number": txn.transaction_number},
            )
            raise PostedTransactionError(txn.id, "cancel")
        if txn.status not in CANCELLABLE_STATUSES:
            raise InvalidTransitionError("Transaction", txn.id, txn.status.value, "cancel")

        txn.status = TransactionStatus.CANCELLED
        txn.cancel_reason = reason
        txn.cancelled_by_id = actor_id
        txn.cancelled_at = self.clock.now()
        txn.updated_by_id = actor_id
        self.session.flush()

        logger.info(
            "transaction_cancelled",
            extra={"transaction_number": txn.transaction_number, "reason": reason},
        )
        return txn

    def approve_journal(
        self, company_id: UUID, journal_number: str, approver_id: UUID,
    ) -> list[Transaction]:
        """Approve every line of one journal entry, or none of them."""
        lines = self._journal_or_raise(company_id, journal_number)
        with self.session.begin_nested():
            return [self.approve(line.id, approver_id) for line in lines]

    def post_journal(
        self, company_id: UUID, journal_number: str, actor_id: UUID,
    ) -> list[Transaction]:
        """Post every line of one journal entry, or none of them."""
        lines = self._journal_or_raise(company_id, journal_number)
        with self.session.begin_nested():
            return [self.post(line.id, actor_id) for line in lines]

    def _journal_or_raise(self, company_id: UUID, journal_number: str) -> list[Transaction]:
        lines = self.get_journal_entry(company_id, journal_number)
        if not lines:
            raise TransactionNotFoundError(journal_number)
        return lines

    # -------------------------------------------------------------------------
    # Corrections
    # -------------------------------------------------------------------------

    def _has_live_reversal(self, original: Transaction) -> bool:
        opposite_side = (
            Transaction.credit_amount > 0 if original.is_debit else Transaction.debit_amount > 0
        )
        return self.session.execute(
            select(Transaction.id).where(
                Transaction.original_transaction_id == original.id,
                Transaction.status != TransactionStatus.CANCELLED,
                opposite_side,
            )
        ).first() is not None

    def create_reversing_entry(self, original_id: UUID, actor_id: UUID) -> Transaction:
        """
        New DRAFT ADJUSTMENT line undoing a POSTED transaction.

        Postconditions:
            Same account, date and fiscal period as the original; debit and
            credit swapped; ``original_transaction_id`` points back; the
            description is prefixed "Reversal: "; the number is the
            adjustment base number plus "-REV".
        """
        self._require_actor(actor_id)
        original = self.get_transaction(original_id)
        if original.status != TransactionStatus.POSTED:
            raise InvalidTransitionError(
                "Transaction", original.id, original.status.value, "reverse",
            )
        if self._has_live_reversal(original):
            raise InvalidTransitionError(
                "Transaction", original.id, "posted (already reversed)", "reverse",
            )

        spec = JournalLineSpec(
            account_id=original.account_id,
            transaction_date=original.transaction_date,
            debit_amount=original.credit_amount,
            credit_amount=original.debit_amount,
            description=REVERSAL_DESCRIPTION_PREFIX + (original.description or original.transaction_number),
            business_partner=original.business_partner,
            department=original.department,
            project_code=original.project_code,
            document_type=original.document_type,
            document_number=original.document_number,
        )
        base = self._allocate_base(
            original.company_id, TransactionType.ADJUSTMENT, original.transaction_date,
        )
        number = self.numbering.reversal_number(base)
        reversal = self._build_line(
            original.company_id, spec, number, number,
            TransactionType.ADJUSTMENT, actor_id,
            original_transaction_id=original.id,
        )
        self._write_lines(original.company_id, [reversal])

        logger.info(
            "reversing_entry_created",
            extra={
                "original_number": original.transaction_number,
                "reversal_number": reversal.transaction_number,
            },
        )
        return reversal

    def create_adjusting_entry(
        self,
        original_id: UUID,
        replacement: JournalLineSpec,
        actor_id: UUID,
    ) -> tuple[Transaction, Transaction]:
        """
        Reverse a POSTED line and book its corrected replacement.

        Both lines are DRAFT ADJUSTMENT rows referencing the original and
        are created together or not at all.

        Returns:
            (reversal, replacement)
        """
        with self.session.begin_nested():
            reversal = self.create_reversing_entry(original_id, actor_id)
            original = self.get_transaction(original_id)
            validate_line_amounts(1, replacement.debit_amount, replacement.credit_amount)
            self._posting_target(original.company_id, replacement.account_id)

            base = self._allocate_base(
                original.company_id, TransactionType.ADJUSTMENT, replacement.transaction_date,
            )
            corrected = self._build_line(
                original.company_id, replacement, base, base,
                TransactionType.ADJUSTMENT, actor_id,
                original_transaction_id=original.id,
            )
            self._write_lines(original.company_id, [corrected])

        logger.info(
            "adjusting_entry_created",
            extra={
                "original_number": original.transaction_number,
                "reversal_number": reversal.transaction_number,
                "replacement_number": corrected.transaction_number,
            },
        )
        return reversal, corrected
