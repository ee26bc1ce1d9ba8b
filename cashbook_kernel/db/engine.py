"""
Module: cashbook_kernel.db.engine
Responsibility: SQLAlchemy engine construction, table management and the
    transactional scope used by the SQL document store.
Architecture position: Kernel > DB.  May import from db/base.py only.

Invariants enforced:
    - session_scope() commits on success and rolls back on any exception.
    - In-memory SQLite URLs share one connection (StaticPool) so every
      session sees the same database.
"""

from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from cashbook_kernel.db.base import Base
from cashbook_kernel.logging_config import get_logger

logger = get_logger("db.engine")


def build_engine(database_url: str, echo: bool = False) -> Engine:
    """Create an engine with pool settings appropriate to the backend."""
    url = make_url(database_url)
    if url.get_backend_name() == "sqlite":
        kwargs: dict = {"connect_args": {"check_same_thread": False}}
        if url.database in (None, "", ":memory:"):
            kwargs["poolclass"] = StaticPool
        engine = create_engine(database_url, echo=echo, **kwargs)
    else:
        engine = create_engine(
            database_url,
            echo=echo,
            pool_pre_ping=True,
            pool_size=10,
            max_overflow=5,
            pool_timeout=30,
            isolation_level="READ COMMITTED",
        )

    logger.info(
        "engine_initialized",
        extra={"dialect": engine.dialect.name, "echo": echo},
    )
    return engine


@contextmanager
def session_scope(factory: sessionmaker[Session]) -> Generator[Session, None, None]:
    """
    Provide a transactional scope around a series of operations.

    Usage:
        with session_scope(factory) as session:
            session.add(row)
            # Commits on successful exit, rolls back on exception
    """
    session = factory()
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


def create_tables(engine: Engine) -> None:
    """Create the documents table if it does not exist."""
    Base.metadata.create_all(engine)


def drop_tables(engine: Engine) -> None:
    """Drop all tables. Use with caution - primarily for testing."""
    Base.metadata.drop_all(engine)
