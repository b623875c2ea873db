"""
Module: hsse_kernel.db.engine
Responsibility: process-wide engine and session factory, plus the
    ``session_scope`` unit of work every orchestrator call runs inside.
Architecture position: Kernel > DB.  Imports db/ only; create_tables and
    drop_tables import hsse_kernel.models lazily to populate the metadata.

Invariants enforced:
    - One orchestrator operation == one session_scope() == one transaction.
      A status change and its audit entry commit together or not at all.
    - PostgreSQL runs at READ COMMITTED.  Concurrent approvals are
      serialized by the status store's compare-and-swap UPDATE.
    - SQLite shares one connection (StaticPool) and SQLAlchemy emits BEGIN
      itself, so the SAVEPOINTs around sequence and extension inserts work.

Failure modes:
    - RuntimeError when the engine is used before init_engine_from_url().
"""

from contextlib import contextmanager
from dataclasses import dataclass
from typing import Generator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import QueuePool, StaticPool

from hsse_kernel.db.immutability import register_immutability_listeners
from hsse_kernel.logging_config import configure_logging, get_logger

logger = get_logger("db.engine")


@dataclass(frozen=True)
class PoolSettings:
    """Connection pool sizing for PostgreSQL; ignored on SQLite."""

    size: int = 20
    max_overflow: int = 10
    pre_ping: bool = True
    timeout: int = 30
    recycle: int = 1800


_engine: Engine | None = None
_SessionFactory: sessionmaker[Session] | None = None


def _sqlite_engine(database_url: str, echo: bool) -> Engine:
    engine = create_engine(
        database_url,
        echo=echo,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    @event.listens_for(engine, "connect")
    def _disable_pysqlite_autobegin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")

    return engine


def _postgres_engine(database_url: str, echo: bool, pool: PoolSettings) -> Engine:
    return create_engine(
        database_url,
        echo=echo,
        poolclass=QueuePool,
        pool_size=pool.size,
        max_overflow=pool.max_overflow,
        pool_pre_ping=pool.pre_ping,
        pool_timeout=pool.timeout,
        pool_recycle=pool.recycle,
        isolation_level="READ COMMITTED",
    )


def init_engine_from_url(
    database_url: str,
    echo: bool = False,
    pool: PoolSettings | None = None,
) -> Engine:
    """
    Create the engine and session factory for ``database_url``.

    ``sqlite://`` URLs get a single shared in-memory connection; anything
    else is treated as PostgreSQL.  Registers the ORM immutability
    listeners and installs structured logging if nothing has yet.
    Calling again without reset_engine() replaces the previous engine.
    """
    global _engine, _SessionFactory

    if database_url.startswith("sqlite"):
        dialect = "sqlite"
        _engine = _sqlite_engine(database_url, echo)
    else:
        dialect = "postgresql"
        _engine = _postgres_engine(database_url, echo, pool or PoolSettings())

    _SessionFactory = sessionmaker(bind=_engine, expire_on_commit=False)
    register_immutability_listeners()

    configure_logging()
    logger.info("engine_initialized", extra={"dialect": dialect, "echo": echo})
    return _engine


def get_engine() -> Engine:
    if _engine is None:
        raise RuntimeError("Engine not initialized. Call init_engine_from_url() first.")
    return _engine


def get_session_factory() -> sessionmaker[Session]:
    if _SessionFactory is None:
        raise RuntimeError("Engine not initialized. Call init_engine_from_url() first.")
    return _SessionFactory


@contextmanager
def session_scope(
    factory: sessionmaker[Session] | None = None,
) -> Generator[Session, None, None]:
    """
    One transaction: commit on normal exit, roll back and re-raise on error.

    Usage:
        with session_scope(factory) as session:
            session.add(entity)
    """
    session = (factory or get_session_factory())()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        logger.info("transaction_rolled_back", exc_info=True)
        raise
    finally:
        session.close()


def _metadata():
    from hsse_kernel.db.base import Base
    import hsse_kernel.models  # noqa: F401  registers all tables on Base.metadata

    return Base.metadata


def create_tables() -> None:
    _metadata().create_all(get_engine())


def drop_tables() -> None:
    """Drop every table. Tests only."""
    _metadata().drop_all(get_engine())


def reset_engine() -> None:
    """Dispose of the engine and forget the session factory."""
    global _engine, _SessionFactory

    if _engine is not None:
        _engine.dispose()
    _engine = None
    _SessionFactory = None
