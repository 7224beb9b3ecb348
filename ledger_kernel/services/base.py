"""
BaseService -- abstract base for all kernel services.

Responsibility:
    Common constructor and session-handling contract for the kernel
    services.  Services receive a SQLAlchemy ``Session`` and persist with
    ``session.flush()``, never ``session.commit()``.

Architecture position:
    Kernel > Services.  Every write service in ``ledger_kernel/services/``
    extends this class.

Invariants enforced:
    - Transaction boundaries: services flush within the caller's
      transaction and never commit or roll back themselves.  The caller
      (a module service, the period close orchestrator or a test) owns
      commit/rollback, so a multi-step operation is atomic.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from ledger_kernel.db.base import Base
from ledger_kernel.domain.clock import Clock, SystemClock

ModelType = TypeVar("ModelType", bound=Base)


class BaseService(ABC, Generic[ModelType]):
    """
    Abstract base class for kernel services.

    Guarantees:
        The service never calls ``session.commit()`` or
        ``session.rollback()``.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        """
        Args:
            session: SQLAlchemy session for database operations.
            clock: Time source for audit timestamps.  Defaults to SystemClock.
        """
        self.session = session
        self.clock = clock or SystemClock()
