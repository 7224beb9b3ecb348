"""
Module ORM Registry (``ledger_modules._orm_registry``).

Responsibility
--------------
Ensure every module-level SQLAlchemy ORM model is imported so that
``Base.metadata`` contains its table before tables are created, and
provide ``create_all_tables()`` -- the one entry point that builds the
complete schema.

Architecture position
---------------------
**Modules layer** -- utility.  Imports sibling ``ledger_modules`` packages
and ``ledger_kernel.db.engine`` (allowed: modules -> kernel).  MUST NOT be
imported by ``ledger_kernel``.
"""


def import_all_orm_models() -> None:
    """
    Import kernel models and every ``ledger_modules.*.orm`` module.

    Idempotent -- repeated calls are harmless.
    """
    # Kernel tables first: module tables hold foreign keys to accounts
    import ledger_kernel.models  # noqa: F401
    import ledger_modules.budget.orm  # noqa: F401
    import ledger_modules.reporting.orm  # noqa: F401


def create_all_tables() -> None:
    """
    Create kernel and module tables and register the immutability listeners.

    Preconditions:
        Engine must be initialized via ``init_engine_from_url()``.
    """
    from ledger_kernel.db.engine import create_tables

    import_all_orm_models()
    create_tables()
