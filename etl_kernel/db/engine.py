"""
Module: etl_kernel.db.engine
Responsibility: SQLAlchemy engine construction, table creation, and the
    transactional scope used by the chunk engine and the run journal.
Architecture position: Kernel > DB.  May import from db/base.py.  MUST NOT
    import from models, services or outer layers (except create_tables,
    which imports the model modules so Base.metadata knows every table).

Invariants enforced:
    - PostgreSQL sessions run at READ COMMITTED with pooled, pre-pinged
      connections.
    - SQLite (tests, local runs) is opened with check_same_thread=False so
      the controller's polling thread and the worker thread can share the
      pool.
    - TransactionManager.transaction() is commit-or-rollback: the block's
      writes become visible atomically or not at all.

Failure modes:
    - sqlalchemy.exc.ArgumentError for an unparseable database URL.
    - OperationalError if the database is unreachable.
"""

from contextlib import contextmanager
from typing import Any, Generator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, sessionmaker

from etl_kernel.logging_config import get_logger

logger = get_logger("db.engine")


def build_engine(
    database_url: str,
    echo: bool = False,
    pool_size: int = 5,
    max_overflow: int = 10,
    pool_pre_ping: bool = True,
    pool_timeout: int = 30,
    pool_recycle: int = 1800,
) -> Engine:
    """
    Build a SQLAlchemy engine for the given URL.

    Args:
        database_url: SQLAlchemy URL (postgresql+psycopg2://... or sqlite:///...).
        echo: If True, log all SQL statements.
        pool_size: Number of connections to keep in the pool (PostgreSQL).
        max_overflow: Max connections beyond pool_size (PostgreSQL).
        pool_pre_ping: If True, test connections before use.
        pool_timeout: Seconds to wait for a pooled connection.
        pool_recycle: Seconds after which a connection is recycled.

    Returns:
        SQLAlchemy Engine instance.
    """
    url = make_url(database_url)
    kwargs: dict[str, Any] = {"echo": echo}

    if url.get_backend_name() == "sqlite":
        kwargs["connect_args"] = {"check_same_thread": False, "timeout": 30}
    else:
        kwargs.update(
            pool_size=pool_size,
            max_overflow=max_overflow,
            pool_pre_ping=pool_pre_ping,
            pool_timeout=pool_timeout,
            pool_recycle=pool_recycle,
            isolation_level="READ COMMITTED",
        )

    engine = create_engine(url, **kwargs)

    logger.info(
        "engine_initialized",
        extra={
            "dialect": url.get_backend_name(),
            "database": url.database,
            "echo": echo,
        },
    )
    return engine


class TransactionManager:
    """
    Transaction capability shared by the sink and the run journal.

    Contract:
        ``transaction()`` yields a fresh Session; on normal exit the session
        is committed, on exception it is rolled back and the exception is
        re-raised.  The session is always closed.

    Non-goals:
        - Does NOT retry.  Retry classification belongs to the chunk engine.
    """

    def __init__(self, session_factory: sessionmaker[Session]):
        self._session_factory = session_factory

    @classmethod
    def from_engine(cls, engine: Engine) -> "TransactionManager":
        return cls(sessionmaker(bind=engine, expire_on_commit=False))

    @property
    def session_factory(self) -> sessionmaker[Session]:
        return self._session_factory

    @contextmanager
    def transaction(self) -> Generator[Session, None, None]:
        """
        Provide a transactional scope around a series of operations.

        Usage:
            with tx.transaction() as session:
                session.add(entity)
                # Commits on successful exit, rolls back on exception
        """
        session = self._session_factory()
        logger.debug("transaction_started")
        try:
            yield session
            session.commit()
            logger.debug("transaction_committed")
        except Exception:
            session.rollback()
            logger.debug("transaction_rolled_back")
            raise
        finally:
            session.close()


def create_tables(engine: Engine) -> None:
    """
    Create every table known to the ORM (customer + run journal).

    Idempotent: existing tables are left untouched.
    """
    from etl_kernel.db.base import Base

    # Import model modules so Base.metadata discovers their tables.
    import etl_batch.models.journal  # noqa: F401
    import etl_ingestion.models.customer  # noqa: F401

    Base.metadata.create_all(engine)
    logger.info(
        "tables_created",
        extra={"tables": sorted(Base.metadata.tables.keys())},
    )


def drop_tables(engine: Engine) -> None:
    """Drop all tables. Use with caution - primarily for testing."""
    from etl_kernel.db.base import Base

    Base.metadata.drop_all(engine)
