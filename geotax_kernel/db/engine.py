"""
Engines, session factories and the write transaction scope.

There is no module-level engine.  The CLI builds one per process from
``DatabaseSettings`` and hands a session factory to the services; tests
build one per test against a throwaway SQLite file.

Pool sizing matters for imports: every chunk worker holds one connection
for the length of its transaction, so ``pool_size + max_overflow`` should
be at least ``max_workers``.  A worker that cannot get a connection waits
``pool_timeout`` seconds and its chunk then fails.
"""

from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from geotax_kernel.logging_config import get_logger

logger = get_logger("db.engine")


def _sqlite_engine(database_url: str, echo: bool, busy_timeout: int) -> Engine:
    # Chunk workers write from several threads; SQLite serializes them on
    # its file lock and each waits up to busy_timeout seconds.
    engine = create_engine(
        database_url,
        echo=echo,
        connect_args={"check_same_thread": False, "timeout": busy_timeout},
    )

    @event.listens_for(engine, "connect")
    def _foreign_keys_on(dbapi_connection, _record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    return engine


def build_engine(
    database_url: str,
    echo: bool = False,
    pool_size: int = 20,
    max_overflow: int = 10,
    pool_timeout: int = 30,
    pool_recycle: int = 1800,
) -> Engine:
    """
    Engine for a PostgreSQL/PostGIS URL, or for a SQLite URL in tests.

    PostgreSQL connections are pre-pinged and recycled after
    ``pool_recycle`` seconds, and run at READ COMMITTED.  SQLite ignores the
    pool arguments and uses ``pool_timeout`` as its busy timeout.
    """
    if database_url.startswith("sqlite"):
        engine = _sqlite_engine(database_url, echo, pool_timeout)
    else:
        engine = create_engine(
            database_url,
            echo=echo,
            pool_size=pool_size,
            max_overflow=max_overflow,
            pool_timeout=pool_timeout,
            pool_recycle=pool_recycle,
            pool_pre_ping=True,
            isolation_level="READ COMMITTED",
        )

    logger.info(
        "engine_built",
        extra={
            "dialect": engine.dialect.name,
            "pool_size": pool_size,
            "max_overflow": max_overflow,
            "pool_timeout": pool_timeout,
        },
    )
    return engine


def build_session_factory(engine: Engine) -> sessionmaker[Session]:
    """Session factory bound to ``engine``; objects stay usable after commit."""
    return sessionmaker(bind=engine, expire_on_commit=False)


@contextmanager
def session_scope(session_factory: sessionmaker[Session]) -> Iterator[Session]:
    """
    One transaction: commit if the block finishes, roll back if it raises.

    The session is closed either way and the exception propagates.
    """
    session = session_factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        logger.debug("session_rolled_back", exc_info=True)
        raise
    finally:
        session.close()


def create_tables(engine: Engine) -> None:
    """
    Create every geotax table that does not exist yet.

    The jurisdiction geometry column belongs to the PostGIS migrations and
    is not created here.
    """
    from geotax_kernel.db.base import Base
    from geotax_kernel.models import import_all_models

    import_all_models()
    Base.metadata.create_all(engine)
    logger.info("tables_created", extra={"tables": sorted(Base.metadata.tables)})


def drop_tables(engine: Engine) -> None:
    """Drop every geotax table (tests and local resets)."""
    from geotax_kernel.db.base import Base
    from geotax_kernel.models import import_all_models

    import_all_models()
    Base.metadata.drop_all(engine)
