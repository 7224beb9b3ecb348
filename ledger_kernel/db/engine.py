"""
Module: ledger_kernel.db.engine
Responsibility: SQLAlchemy engine initialization, session factory management,
    and transactional scope utilities.  The single point of database
    connection configuration for the ledger.
Architecture position: Kernel > DB.  May import from db/base.py and
    db/immutability.py.  create_tables() additionally imports the kernel models.

Supported backends:
    - PostgreSQL: pooled connections, READ COMMITTED, with explicit
      ``SELECT ... FOR UPDATE`` row locks where a read-modify-write must be
      serialized (account balances, number counters, transaction status).
    - SQLite (file or in-memory): SQLite ignores FOR UPDATE, so every
      transaction starts with ``BEGIN IMMEDIATE`` which takes the database
      write lock up front.  Writers are serialized; readers see committed
      state.  The pysqlite driver's implicit transaction handling is
      disabled so SAVEPOINT works.

Failure modes:
    - RuntimeError if get_engine/get_session/get_session_factory is called
      before init_engine_from_url().

Audit relevance:
    session_scope() gives every unit of work atomic commit-or-rollback
    semantics: a multi-line journal is either fully visible or absent.
"""

from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from ledger_kernel.logging_config import configure_logging, get_logger

logger = get_logger("db.engine")

_engine: Engine | None = None
_SessionFactory: sessionmaker[Session] | None = None


def _install_sqlite_transaction_hooks(engine: Engine) -> None:
    """Take over BEGIN from pysqlite so SAVEPOINT and write locking behave."""

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def build_engine(
    database_url: str,
    echo: bool = False,
    pool_size: int = 10,
    max_overflow: int = 10,
    pool_pre_ping: bool = True,
    pool_timeout: int = 30,
    pool_recycle: int = 1800,
    sqlite_busy_timeout: float = 30.0,
) -> Engine:
    """
    Create a configured engine without installing it as the module engine.

    Used directly when a caller needs a second, independent database
    (e.g. a file-backed SQLite database shared by worker threads).

    Args:
        database_url: PostgreSQL or SQLite URL.
        echo: If True, log all SQL statements.
        pool_size: PostgreSQL pool size.
        max_overflow: PostgreSQL connections beyond pool_size.
        pool_pre_ping: Test connections before use.
        pool_timeout: Seconds to wait for a pooled connection.
        pool_recycle: Seconds after which a connection is recycled.
        sqlite_busy_timeout: Seconds a SQLite writer waits for the lock.

    Returns:
        SQLAlchemy Engine instance.
    """
    if database_url.startswith("sqlite"):
        dialect = "sqlite"
        kwargs: dict = {
            "connect_args": {
                "check_same_thread": False,
                "timeout": sqlite_busy_timeout,
            },
        }
        if ":memory:" in database_url or database_url.rstrip("/") in ("sqlite:", "sqlite+pysqlite:"):
            # One shared connection, otherwise each checkout sees an empty database
            kwargs["poolclass"] = StaticPool
        engine = create_engine(database_url, echo=echo, **kwargs)
        _install_sqlite_transaction_hooks(engine)
    else:
        dialect = "postgresql"
        engine = create_engine(
            database_url,
            echo=echo,
            pool_size=pool_size,
            max_overflow=max_overflow,
            pool_pre_ping=pool_pre_ping,
            pool_timeout=pool_timeout,
            pool_recycle=pool_recycle,
            isolation_level="READ COMMITTED",
        )

    logger.debug("engine_built", extra={"dialect": dialect, "echo": echo})
    return engine


def init_engine_from_url(database_url: str, **kwargs) -> Engine:
    """
    Initialize the module-level engine from a database URL.

    Postconditions: Module-level engine and session factory are initialized.
        A second call replaces the first.

    Args:
        database_url: PostgreSQL or SQLite URL.
        **kwargs: Passed to build_engine().
    """
    global _engine, _SessionFactory

    engine = build_engine(database_url, **kwargs)
    _engine = engine
    _SessionFactory = sessionmaker(bind=_engine, expire_on_commit=False)

    configure_logging()
    logger.info(
        "engine_initialized",
        extra={"dialect": engine.dialect.name, "echo": kwargs.get("echo", False)},
    )
    return _engine


def get_engine() -> Engine:
    """
    Get the current engine instance.

    Raises:
        RuntimeError: If engine has not been initialized.
    """
    if _engine is None:
        raise RuntimeError("Engine not initialized. Call init_engine_from_url() first.")
    return _engine


def get_session() -> Session:
    """
    Get a new session instance.

    Raises:
        RuntimeError: If engine has not been initialized.
    """
    return get_session_factory()()


def get_session_factory() -> sessionmaker[Session]:
    """
    Get the session factory (one session per thread in concurrent callers).

    Raises:
        RuntimeError: If engine has not been initialized.
    """
    if _SessionFactory is None:
        raise RuntimeError("Engine not initialized. Call init_engine_from_url() first.")
    return _SessionFactory


@contextmanager
def session_scope() -> Generator[Session, None, None]:
    """
    Provide a transactional scope around a series of operations.

    On normal exit the session is committed and closed.  On exception it is
    rolled back, closed, and the exception re-raised.

    Usage:
        with session_scope() as session:
            LedgerService(session).create_journal_entry(...)
    """
    session = get_session()
    logger.debug("transaction_started")
    try:
        yield session
        session.commit()
        logger.debug("transaction_committed")
    except Exception:
        session.rollback()
        logger.warning("transaction_rolled_back", exc_info=True)
        raise
    finally:
        session.close()


def create_tables() -> None:
    """
    Create every table registered on ``Base.metadata`` and register the
    immutability listeners.

    Kernel models are always imported.  Module tables exist only if their
    ORM modules were imported first; ``ledger_modules._orm_registry.
    create_all_tables()`` does that for the full schema.
    """
    import ledger_kernel.models  # noqa: F401
    from ledger_kernel.db.base import Base
    from ledger_kernel.db.immutability import register_immutability_listeners

    engine = get_engine()
    Base.metadata.create_all(engine)
    register_immutability_listeners()
    logger.info("tables_created", extra={"table_count": len(Base.metadata.tables)})


def drop_tables() -> None:
    """Drop all tables. Use with caution - primarily for testing."""
    from ledger_kernel.db.base import Base

    Base.metadata.drop_all(get_engine())


def reset_engine() -> None:
    """Dispose the engine and forget the session factory (test cleanup)."""
    global _engine, _SessionFactory

    if _engine is not None:
        _engine.dispose()
        _engine = None

    _SessionFactory = None


def is_sqlite() -> bool:
    """Check if the current engine is SQLite."""
    return _engine is not None and _engine.dialect.name == "sqlite"
