"""
Module: supply_kernel.db.engine
Responsibility: SQLAlchemy engine initialization, session factory management,
    and transactional scope utilities.  This is the single point of database
    connection configuration for the kernel.
Architecture position: Kernel > DB.  May import from db/base.py.  MUST NOT import
    from services/, selectors/, or domain/ (create_tables imports models lazily).

Invariants enforced:
    - Every database call is bounded: PostgreSQL sessions carry a statement
      timeout and the pool has a checkout timeout; SQLite connections carry a
      busy timeout.  Nothing blocks indefinitely.
    - SQLite connections enforce foreign keys, as PostgreSQL always does.
    - PostgreSQL sessions run at READ COMMITTED; status changes rely on
      compare-and-swap UPDATEs, not on stronger isolation.

Failure modes:
    - RuntimeError if get_engine/get_session/get_session_factory called before
      init_engine_from_url().
    - sqlalchemy.exc.TimeoutError when the pool is exhausted for longer than
      the request timeout (translated to CollaboratorUnavailableError by the
      repository).
"""

from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import QueuePool

from supply_config.schema import PersistenceConfig
from supply_kernel.logging_config import configure_logging, get_logger

logger = get_logger("db.engine")

# Module-level engine and session factory
_engine: Engine | None = None
_SessionFactory: sessionmaker[Session] | None = None


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def build_engine(
    database_url: str,
    echo: bool = False,
    request_timeout_seconds: float = 30,
    pool_size: int = 10,
    max_overflow: int = 10,
    pool_recycle: int = 1800,
) -> Engine:
    """
    Create an engine whose every call is bounded by ``request_timeout_seconds``.

    PostgreSQL gets a pooled engine with a server-side statement timeout and
    a connect timeout.  SQLite (used by the test-suite and local demos) gets
    the driver's busy timeout; pool tuning does not apply to it.
    """
    url = make_url(database_url)
    backend = url.get_backend_name()

    if backend == "sqlite":
        engine = create_engine(
            url,
            echo=echo,
            connect_args={"timeout": request_timeout_seconds},
        )
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)
        return engine

    timeout_ms = int(request_timeout_seconds * 1000)
    connect_args = {}
    if backend == "postgresql":
        connect_args = {
            "connect_timeout": max(1, int(request_timeout_seconds)),
            "options": f"-c statement_timeout={timeout_ms}",
        }
    return create_engine(
        url,
        echo=echo,
        poolclass=QueuePool,
        pool_size=pool_size,
        max_overflow=max_overflow,
        pool_pre_ping=True,
        pool_timeout=request_timeout_seconds,
        pool_recycle=pool_recycle,
        isolation_level="READ COMMITTED",
        connect_args=connect_args,
    )


def init_engine_from_url(
    database_url: str,
    echo: bool = False,
    request_timeout_seconds: float = 30,
    pool_size: int = 10,
    max_overflow: int = 10,
) -> Engine:
    """
    Initialize the module-level engine and session factory.

    Postconditions: All subsequent get_engine/get_session calls use this
        engine.  A second call replaces the first.
    """
    global _engine, _SessionFactory

    _engine = build_engine(
        database_url,
        echo=echo,
        request_timeout_seconds=request_timeout_seconds,
        pool_size=pool_size,
        max_overflow=max_overflow,
    )
    _SessionFactory = sessionmaker(bind=_engine, expire_on_commit=False)

    configure_logging()
    logger.info(
        "engine_initialized",
        extra={
            "dialect": _engine.dialect.name,
            "request_timeout_seconds": request_timeout_seconds,
            "echo": echo,
        },
    )

    return _engine


def init_engine_from_config(
    database_url: str,
    persistence: PersistenceConfig,
    echo: bool = False,
) -> Engine:
    """Initialize the module-level engine with the timeouts and pool sizes of ``persistence``."""
    return init_engine_from_url(
        database_url,
        echo=echo,
        request_timeout_seconds=persistence.request_timeout_seconds,
        pool_size=persistence.pool_size,
        max_overflow=persistence.max_overflow,
    )


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
    if _SessionFactory is None:
        raise RuntimeError("Engine not initialized. Call init_engine_from_url() first.")
    return _SessionFactory()


def get_session_factory() -> sessionmaker[Session]:
    """
    Get the session factory for creating sessions.

    Useful when several actors work concurrently and each needs its own session.

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

    Postconditions: On normal exit, session is committed and closed.
        On exception, session is rolled back and closed, and the exception
        is re-raised to the caller.

    Usage:
        with session_scope() as session:
            session.add(entity)
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


def create_tables(engine: Engine | None = None) -> None:
    """
    Create all tables defined in the models.

    All ORM models are imported here so Base.metadata knows every table.
    """
    from supply_kernel.db.base import Base
    import supply_kernel.models  # noqa: F401

    Base.metadata.create_all(engine or get_engine())


def drop_tables(engine: Engine | None = None) -> None:
    """
    Drop all tables. Use with caution - primarily for testing.
    """
    from supply_kernel.db.base import Base
    import supply_kernel.models  # noqa: F401

    Base.metadata.drop_all(engine or get_engine())


def reset_engine() -> None:
    """Dispose the engine and forget the session factory. FOR TESTING ONLY."""
    global _engine, _SessionFactory
    if _engine is not None:
        _engine.dispose()
    _engine = None
    _SessionFactory = None
