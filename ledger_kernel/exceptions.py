"""
Typed Exception Hierarchy for the Ledger Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers of the ledger (an API layer, a batch job, an operator console) must
react to failures by KIND, not by parsing messages:

  1. Every error has a TYPED exception class (catch by type, not message)
  2. Every exception has a CODE attribute (machine-readable, API-safe)
  3. Exceptions carry structured DATA (not just a message string)

Example:
    try:
        ledger.cancel(txn_id, reason="typo", actor_id=actor)
    except PostedTransactionError as e:
        # Posted lines are corrected with a reversing entry instead
        ledger.create_reversing_entry(e.transaction_id, actor_id=actor)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

All exceptions inherit from LedgerError:

    LedgerError (base)
    |
    +-- ValidationError
    |   +-- EmptyJournalError
    |   +-- UnbalancedJournalError
    |   +-- InvalidLineAmountError
    |   +-- NonLeafAccountError
    |   +-- InactiveAccountError
    |   +-- UntrackedAccountError
    |   +-- AccountHasActivityError
    |   +-- InvalidAccountCodeError
    |   +-- AccountLevelError
    |   +-- InvalidBudgetPeriodError
    |   +-- BudgetTypeMismatchError
    |   +-- UnsupportedReportTypeError
    |
    +-- NotFoundError
    |   +-- AccountNotFoundError
    |   +-- TransactionNotFoundError
    |   +-- BudgetNotFoundError
    |   +-- ReportNotFoundError
    |   +-- CompanyNotFoundError
    |   +-- ActorNotFoundError
    |
    +-- StateConflictError
    |   +-- InvalidTransitionError
    |   +-- PostedTransactionError
    |   +-- PendingTransactionsError
    |   +-- ClosedPeriodError
    |   +-- AccountHasChildrenError
    |   +-- ImmutabilityViolationError
    |
    +-- DuplicateError
    |   +-- DuplicateAccountCodeError
    |   +-- DuplicateTransactionNumberError
    |   +-- DuplicateBudgetError
    |
    +-- ConcurrencyError
        +-- OptimisticLockError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
Validation      | EMPTY_JOURNAL               | Journal entry submitted with no lines
                | UNBALANCED_JOURNAL          | Sum of debits != sum of credits
                | INVALID_LINE_AMOUNT         | Both/neither debit and credit, or < 0
                | NON_LEAF_ACCOUNT            | Posting target has child accounts
                | ACCOUNT_INACTIVE            | Posting target is deactivated
                | INVALID_ACCOUNT_CODE        | Code not numeric or too long
                | ACCOUNT_LEVEL_OUT_OF_RANGE  | Hierarchy deeper than allowed
                | INVALID_BUDGET_PERIOD       | Period number outside budget period
                | BUDGET_TYPE_MISMATCH        | Budget type incompatible w/ account
                | UNSUPPORTED_REPORT_TYPE     | Report type cannot be generated
----------------|-----------------------------|-----------------------------------------
Not found       | ACCOUNT_NOT_FOUND           | Account id/code doesn't exist
                | TRANSACTION_NOT_FOUND       | Transaction id doesn't exist
                | BUDGET_NOT_FOUND            | Budget id doesn't exist
                | REPORT_NOT_FOUND            | Report id doesn't exist
                | COMPANY_NOT_FOUND           | Company unknown to the directory
                | ACTOR_NOT_FOUND             | Actor unknown to the directory
----------------|-----------------------------|-----------------------------------------
State conflict  | INVALID_TRANSITION          | Operation invalid for current status
                | TRANSACTION_POSTED          | Cancel/edit of a posted transaction
                | PENDING_TRANSACTIONS        | Closing blocked by pending work
                | CLOSED_PERIOD               | Posting into a closed fiscal year
                | ACCOUNT_HAS_CHILDREN        | Deleting an account with children
                | IMMUTABILITY_VIOLATION      | Modifying an immutable record
----------------|-----------------------------|-----------------------------------------
Duplicate       | DUPLICATE_ACCOUNT_CODE      | Code already used in the company
                | DUPLICATE_TRANSACTION_NUMBER| Number already used in the company
                | DUPLICATE_BUDGET            | Budget key already exists
----------------|-----------------------------|-----------------------------------------
Concurrency     | OPTIMISTIC_LOCK             | Row changed by another writer
"""

from decimal import Decimal


class LedgerError(Exception):
    """
    Base exception for all ledger kernel errors.

    All subclasses carry a ``code`` class attribute for machine-readable
    identification.
    """

    code: str = "LEDGER_ERROR"


# =============================================================================
# Validation
# =============================================================================


class ValidationError(LedgerError):
    """Input violates a bookkeeping or structural rule."""

    code: str = "VALIDATION_ERROR"


class EmptyJournalError(ValidationError):
    """A journal entry must contain at least one line."""

    code: str = "EMPTY_JOURNAL"

    def __init__(self):
        super().__init__("Journal entry requires at least one line")


class UnbalancedJournalError(ValidationError):
    """Total debits do not equal total credits."""

    code: str = "UNBALANCED_JOURNAL"

    def __init__(self, total_debit: Decimal, total_credit: Decimal):
        self.total_debit = total_debit
        self.total_credit = total_credit
        super().__init__(
            f"Journal entry is unbalanced: debits {total_debit} != credits {total_credit}"
        )


class InvalidLineAmountError(ValidationError):
    """A line must carry exactly one positive amount."""

    code: str = "INVALID_LINE_AMOUNT"

    def __init__(self, line_number: int, reason: str):
        self.line_number = line_number
        self.reason = reason
        super().__init__(f"Line {line_number}: {reason}")


class NonLeafAccountError(ValidationError):
    """Only leaf accounts may be posting targets."""

    code: str = "NON_LEAF_ACCOUNT"

    def __init__(self, account_code: str):
        self.account_code = account_code
        super().__init__(
            f"Account {account_code} has sub-accounts; only leaf accounts accept postings"
        )


class InactiveAccountError(ValidationError):
    """Account is deactivated for new postings."""

    code: str = "ACCOUNT_INACTIVE"

    def __init__(self, account_code: str):
        self.account_code = account_code
        super().__init__(f"Account {account_code} is inactive")


class UntrackedAccountError(ValidationError):
    """Accounts that do not track a balance cannot be posting targets."""

    code: str = "ACCOUNT_UNTRACKED"

    def __init__(self, account_code: str):
        self.account_code = account_code
        super().__init__(f"Account {account_code} does not track a balance and accepts no postings")


class AccountHasActivityError(ValidationError):
    """A change to the chart would strand an account's transactions."""

    code: str = "ACCOUNT_HAS_ACTIVITY"

    def __init__(self, account_code: str, transaction_count: int, operation: str):
        self.account_code = account_code
        self.transaction_count = transaction_count
        self.operation = operation
        super().__init__(
            f"Cannot {operation}: account {account_code} has "
            f"{transaction_count} non-cancelled transaction(s)"
        )


class InvalidAccountCodeError(ValidationError):
    """Account code is not a numeric string of allowed length."""

    code: str = "INVALID_ACCOUNT_CODE"

    def __init__(self, account_code: str, reason: str):
        self.account_code = account_code
        self.reason = reason
        super().__init__(f"Invalid account code {account_code!r}: {reason}")


class AccountLevelError(ValidationError):
    """Derived hierarchy level falls outside the permitted range."""

    code: str = "ACCOUNT_LEVEL_OUT_OF_RANGE"

    def __init__(self, level: int, min_level: int, max_level: int):
        self.level = level
        self.min_level = min_level
        self.max_level = max_level
        super().__init__(
            f"Account level {level} outside permitted range [{min_level}, {max_level}]"
        )


class InvalidBudgetPeriodError(ValidationError):
    """Budget period number out of range for its budget period."""

    code: str = "INVALID_BUDGET_PERIOD"

    def __init__(self, budget_period: str, period_number: int, max_number: int):
        self.budget_period = budget_period
        self.period_number = period_number
        self.max_number = max_number
        super().__init__(
            f"Period number {period_number} invalid for {budget_period} budget "
            f"(allowed 1..{max_number})"
        )


class BudgetTypeMismatchError(ValidationError):
    """Budget type is incompatible with the linked account's type."""

    code: str = "BUDGET_TYPE_MISMATCH"

    def __init__(self, budget_type: str, account_type: str):
        self.budget_type = budget_type
        self.account_type = account_type
        super().__init__(
            f"{budget_type} budget cannot be linked to a {account_type} account"
        )


class UnsupportedReportTypeError(ValidationError):
    """Report type has no generator."""

    code: str = "UNSUPPORTED_REPORT_TYPE"

    def __init__(self, report_type: str):
        self.report_type = report_type
        super().__init__(f"Report type {report_type} cannot be generated")


# =============================================================================
# Not found
# =============================================================================


class NotFoundError(LedgerError):
    """Referenced entity does not exist."""

    code: str = "NOT_FOUND"
    entity_type: str = "entity"

    def __init__(self, entity_id: object):
        self.entity_id = str(entity_id)
        super().__init__(f"{self.entity_type} not found: {entity_id}")


class AccountNotFoundError(NotFoundError):
    code: str = "ACCOUNT_NOT_FOUND"
    entity_type: str = "Account"


class TransactionNotFoundError(NotFoundError):
    code: str = "TRANSACTION_NOT_FOUND"
    entity_type: str = "Transaction"


class BudgetNotFoundError(NotFoundError):
    code: str = "BUDGET_NOT_FOUND"
    entity_type: str = "Budget"


class ReportNotFoundError(NotFoundError):
    code: str = "REPORT_NOT_FOUND"
    entity_type: str = "FinancialReport"


class CompanyNotFoundError(NotFoundError):
    code: str = "COMPANY_NOT_FOUND"
    entity_type: str = "Company"


class ActorNotFoundError(NotFoundError):
    code: str = "ACTOR_NOT_FOUND"
    entity_type: str = "Actor"


# =============================================================================
# State conflict
# =============================================================================


class StateConflictError(LedgerError):
    """Operation is not valid for the entity's current lifecycle state."""

    code: str = "STATE_CONFLICT"


class InvalidTransitionError(StateConflictError):
    """Lifecycle transition not permitted from the current status."""

    code: str = "INVALID_TRANSITION"

    def __init__(
        self,
        entity_type: str,
        entity_id: object,
        current_status: str,
        operation: str,
    ):
        self.entity_type = entity_type
        self.entity_id = str(entity_id)
        self.current_status = current_status
        self.operation = operation
        super().__init__(
            f"Cannot {operation} {entity_type} {entity_id} in status {current_status}"
        )


class PostedTransactionError(StateConflictError):
    """Posted transactions are corrected by reversal, never edited or cancelled."""

    code: str = "TRANSACTION_POSTED"

    def __init__(self, transaction_id: object, operation: str):
        self.transaction_id = str(transaction_id)
        self.operation = operation
        super().__init__(
            f"Cannot {operation} posted transaction {transaction_id}; "
            "use a reversing or adjusting entry instead"
        )


class PendingTransactionsError(StateConflictError):
    """Closing is blocked while unapproved transactions exist."""

    code: str = "PENDING_TRANSACTIONS"

    def __init__(self, company_id: object, count: int):
        self.company_id = str(company_id)
        self.count = count
        super().__init__(
            f"Company {company_id} has {count} pending transaction(s); "
            "approve or cancel them before closing"
        )


class ClosedPeriodError(StateConflictError):
    """Posting into a fiscal year that has already been closed."""

    code: str = "CLOSED_PERIOD"

    def __init__(self, company_id: object, period_key: str):
        self.company_id = str(company_id)
        self.period_key = period_key
        super().__init__(f"Fiscal period {period_key} is closed for company {company_id}")


class AccountHasChildrenError(StateConflictError):
    """Accounts with live sub-accounts cannot be deleted."""

    code: str = "ACCOUNT_HAS_CHILDREN"

    def __init__(self, account_code: str, child_count: int):
        self.account_code = account_code
        self.child_count = child_count
        super().__init__(
            f"Account {account_code} has {child_count} sub-account(s) and cannot be deleted"
        )


class ImmutabilityViolationError(StateConflictError):
    """Attempted modification of a record that is append-only or finalized."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: object, reason: str):
        self.entity_type = entity_type
        self.entity_id = str(entity_id)
        self.reason = reason
        super().__init__(f"{entity_type} {entity_id} is immutable: {reason}")


# =============================================================================
# Duplicate
# =============================================================================


class DuplicateError(LedgerError):
    """A uniqueness key is already taken."""

    code: str = "DUPLICATE"


class DuplicateAccountCodeError(DuplicateError):
    code: str = "DUPLICATE_ACCOUNT_CODE"

    def __init__(self, company_id: object, account_code: str):
        self.company_id = str(company_id)
        self.account_code = account_code
        super().__init__(f"Account code {account_code} already exists in company {company_id}")


class DuplicateTransactionNumberError(DuplicateError):
    code: str = "DUPLICATE_TRANSACTION_NUMBER"

    def __init__(self, company_id: object, transaction_number: str):
        self.company_id = str(company_id)
        self.transaction_number = transaction_number
        super().__init__(
            f"Transaction number {transaction_number} already exists in company {company_id}"
        )


class DuplicateBudgetError(DuplicateError):
    code: str = "DUPLICATE_BUDGET"

    def __init__(
        self,
        account_id: object,
        fiscal_year: int,
        budget_period: str,
        period_number: int,
    ):
        self.account_id = str(account_id)
        self.fiscal_year = fiscal_year
        self.budget_period = budget_period
        self.period_number = period_number
        super().__init__(
            f"Budget already exists for account {account_id} "
            f"FY{fiscal_year} {budget_period} #{period_number}"
        )


# =============================================================================
# Concurrency
# =============================================================================


class ConcurrencyError(LedgerError):
    """Concurrent writers conflicted on the same row."""

    code: str = "CONCURRENCY_ERROR"


class OptimisticLockError(ConcurrencyError):
    """Row version changed between read and write."""

    code: str = "OPTIMISTIC_LOCK"

    def __init__(self, entity_type: str, entity_id: object):
        self.entity_type = entity_type
        self.entity_id = str(entity_id)
        super().__init__(
            f"{entity_type} {entity_id} was modified concurrently; reload and retry"
        )
