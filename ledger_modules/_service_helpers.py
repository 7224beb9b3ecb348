"""
Shared helpers for module services.

Used by ledger_modules/*/service.py to own the session transaction
boundary of each public method the same way.

Architecture: Modules layer. Imports only from ledger_kernel.
"""

from collections.abc import Iterator
from contextlib import contextmanager
from logging import Logger

from sqlalchemy.orm import Session


@contextmanager
def unit_of_work(
    session: Session,
    auto_commit: bool,
    logger: Logger,
    operation: str,
    **context,
) -> Iterator[None]:
    """
    Commit on success and roll back on exception.

    With ``auto_commit=False`` the block is flushed instead and the
    transaction boundary stays with the caller, who also owns the rollback.
    """
    try:
        yield
        if auto_commit:
            session.commit()
        else:
            session.flush()
    except Exception:
        if auto_commit:
            session.rollback()
        logger.warning(
            "module_operation_rolled_back",
            extra={"operation": operation, **{k: str(v) for k, v in context.items()}},
        )
        raise
