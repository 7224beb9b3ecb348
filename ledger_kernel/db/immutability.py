"""
ORM-Level Immutability Enforcement.

===============================================================================
WHY THIS EXISTS
===============================================================================

Posted bookkeeping records are corrected by new entries (reversing or
adjusting transactions), never by editing history.  Budget revisions are an
audit log.  These rules must hold no matter which code path touches the
session, so they are enforced as SQLAlchemy event listeners that fire BEFORE
the SQL is sent:

    session.flush()
         |
         v
    [before_flush]   --> hard delete of Account/Transaction? --> ImmutabilityViolationError
         |
    [before_update]  --> _check_*_immutability()              --> ImmutabilityViolationError
         |
    [before_delete]  --> _check_*_delete()                    --> ImmutabilityViolationError
         |
         v
    SQL sent to database (only if checks pass)

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity          | When Immutable                      | Why
----------------|-------------------------------------|--------------------------------
Transaction     | Once status is POSTED or CANCELLED  | Terminal states are history
Transaction     | Delete: ALWAYS                      | Lines are never removed
BudgetRevision  | ALWAYS (see ledger_modules.budget.orm) | Append-only audit trail
Account         | Delete: ALWAYS (soft delete only)   | Tombstone via deleted_at

updated_at / updated_by_id are audit metadata and may always change.

Usage:
    from ledger_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()  # called by create_tables()
"""

from sqlalchemy import event, inspect
from sqlalchemy.orm import Session

from ledger_kernel.exceptions import ImmutabilityViolationError
from ledger_kernel.logging_config import get_logger

logger = get_logger("db.immutability")

_AUDIT_FIELDS = frozenset({"updated_at", "updated_by_id"})

_registered = False


def _blocked(entity_type: str, entity_id: object, operation: str, reason: str):
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(entity_id),
            "operation": operation,
        },
    )
    return ImmutabilityViolationError(entity_type, entity_id, reason)


def _prior_status(target) -> str | None:
    """Status the row had before this flush began."""
    hist = inspect(target).attrs.status.history
    if hist.deleted:
        return hist.deleted[0]
    if hist.unchanged:
        return hist.unchanged[0]
    return None


def _check_hard_deletes_before_flush(session, flush_context, instances):
    """
    Reject hard deletes of Accounts and Transactions.

    Runs in before_flush because mapper-level delete events fire after the
    flush plan is final.
    """
    from ledger_kernel.models.account import Account
    from ledger_kernel.models.transaction import Transaction

    for obj in session.deleted:
        if isinstance(obj, Account):
            raise _blocked(
                "Account", obj.id, "DELETE",
                "accounts are soft-deleted via deleted_at, never removed",
            )
        if isinstance(obj, Transaction):
            raise _blocked(
                "Transaction", obj.id, "DELETE",
                "transactions are never deleted; cancel or reverse instead",
            )


def _check_transaction_immutability(mapper, connection, target):
    """
    Block changes to a transaction already in a terminal state.

    The transition INTO POSTED or CANCELLED is allowed; anything after it
    is not.
    """
    from ledger_kernel.models.transaction import TERMINAL_STATUSES

    prior = _prior_status(target)
    if prior is None or prior not in TERMINAL_STATUSES:
        return

    for attr in inspect(target).attrs:
        if attr.key in _AUDIT_FIELDS:
            continue
        if attr.history.has_changes():
            raise _blocked(
                "Transaction", target.id, "UPDATE",
                f"cannot modify field '{attr.key}' on a {prior} transaction",
            )


def register_immutability_listeners() -> None:
    """
    Register all immutability event listeners (idempotent).

    Call after all models are imported and before any writes.
    """
    global _registered
    if _registered:
        return

    from ledger_kernel.models.transaction import Transaction

    event.listen(Session, "before_flush", _check_hard_deletes_before_flush)
    event.listen(Transaction, "before_update", _check_transaction_immutability)

    _registered = True


def _safe_remove_listener(target, event_name, listener_fn):
    if event.contains(target, event_name, listener_fn):
        event.remove(target, event_name, listener_fn)


def unregister_immutability_listeners() -> None:
    """
    Remove the immutability listeners.

    WARNING: Only for tests that deliberately bypass the rules.
    """
    global _registered
    from ledger_kernel.models.transaction import Transaction

    _safe_remove_listener(Session, "before_flush", _check_hard_deletes_before_flush)
    _safe_remove_listener(Transaction, "before_update", _check_transaction_immutability)
    _registered = False
