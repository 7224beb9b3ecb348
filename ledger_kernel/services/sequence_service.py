"""
SequenceService -- per-company, per-day transaction number allocation.

Responsibility:
    Hands out the ordinal n used to build transaction numbers
    (``<prefix><yyyyMMdd>`` then ``<prefix><yyyyMMdd><n:04d>``).  Each
    (company, prefix, business date) has one counter row, locked with
    ``SELECT ... FOR UPDATE`` while it is incremented.

Architecture position:
    Kernel > Services.  Called by LedgerService when a journal entry,
    single transaction or reversing entry is numbered.

Invariants enforced:
    - Numbers never come from counting existing rows.  The locked counter
      row is the only source of the next value, so parallel writers and
      busy days cannot collide.
    - The increment is part of the caller's transaction: a rolled-back
      journal entry returns its number.

Failure modes:
    - IntegrityError on concurrent first use of a counter: handled with a
      savepoint rollback and a locked re-read.
"""

from datetime import date
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.sequence_counter import TransactionNumberCounter

logger = get_logger("services.sequence")


class SequenceService:
    """
    Allocates transaction number ordinals.

    Contract:
        ``next_value`` returns 1 for the first call on a
        (company, prefix, date) key and strictly increasing integers after
        that.  Never commits; the caller owns the transaction.
    """

    def __init__(self, session: Session):
        self._session = session

    def _locked_counter(
        self, company_id: UUID, prefix: str, business_date: date,
    ) -> TransactionNumberCounter | None:
        return self._session.execute(
            select(TransactionNumberCounter)
            .where(
                TransactionNumberCounter.company_id == company_id,
                TransactionNumberCounter.prefix == prefix,
                TransactionNumberCounter.business_date == business_date,
            )
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def next_value(self, company_id: UUID, prefix: str, business_date: date) -> int:
        """
        Lock (or create) the counter row and return the incremented value.

        Postconditions:
            The returned value is > 0 and greater than every value
            previously returned for the same key.
        """
        counter = self._locked_counter(company_id, prefix, business_date)

        if counter is None:
            # First use of this key.  Another writer may be creating it too,
            # so insert inside a savepoint.
            savepoint = self._session.begin_nested()
            try:
                counter = TransactionNumberCounter(
                    company_id=company_id,
                    prefix=prefix,
                    business_date=business_date,
                    current_value=1,
                )
                self._session.add(counter)
                self._session.flush()
                savepoint.commit()
                logger.debug(
                    "sequence_allocated",
                    extra={"prefix": prefix, "business_date": business_date, "value": 1},
                )
                return 1
            except IntegrityError:
                logger.debug(
                    "sequence_counter_race_retry",
                    extra={"prefix": prefix, "business_date": business_date},
                )
                savepoint.rollback()
                counter = self._locked_counter(company_id, prefix, business_date)
                if counter is None:
                    raise

        counter.current_value += 1
        self._session.flush()
        logger.debug(
            "sequence_allocated",
            extra={
                "prefix": prefix,
                "business_date": business_date,
                "value": counter.current_value,
            },
        )
        return counter.current_value

    def current_value(
        self, company_id: UUID, prefix: str, business_date: date,
    ) -> int:
        """Last value handed out for the key, 0 if none."""
        value = self._session.execute(
            select(TransactionNumberCounter.current_value).where(
                TransactionNumberCounter.company_id == company_id,
                TransactionNumberCounter.prefix == prefix,
                TransactionNumberCounter.business_date == business_date,
            )
        ).scalar_one_or_none()
        return value or 0
