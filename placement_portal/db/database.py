import logging
from contextlib import contextmanager
from typing import Optional

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from placement_portal.core.config import get_settings

logger = logging.getLogger(__name__)

settings = get_settings()

_engine: Optional[Engine] = None

# Session factory, bound once the engine exists
SessionLocal = sessionmaker(autoflush=False)


def init_engine(url: Optional[str] = None) -> Engine:
    """
    (Re)create the engine and bind the session factory to it.
    Tests call this with a SQLite URL.
    """
    global _engine
    if _engine is not None:
        _engine.dispose()

    url = url or settings.sqlalchemy_url
    options = {"echo": settings.debug}  # Log SQL queries in debug mode
    if url.startswith("sqlite"):
        options["connect_args"] = {"check_same_thread": False}
    else:
        # pool_size=5: maintain 5 connections ready
        # max_overflow=10: allow 10 extra connections under load
        options.update(pool_size=5, max_overflow=10, pool_pre_ping=True)

    _engine = create_engine(url, **options)
    if url.startswith("sqlite"):
        _use_immediate_transactions(_engine)
    SessionLocal.configure(bind=_engine)
    return _engine


def _use_immediate_transactions(engine: Engine) -> None:
    """
    SQLite: take the write lock when the transaction begins, so concurrent
    writers wait on the busy timeout instead of failing with "database is locked".
    Foreign keys are off by default in SQLite and are switched on here.
    """

    @event.listens_for(engine, "connect")
    def _disable_driver_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        dbapi_connection.execute("PRAGMA foreign_keys=ON")

    @event.listens_for(engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def get_engine() -> Engine:
    if _engine is None:
        return init_engine()
    return _engine


@contextmanager
def get_db_session():
    """
    Context manager for database sessions.
    Commits on success, rolls back on any exception.
    Usage:
        with get_db_session() as db:
            db.execute(select(users))
    """
    get_engine()
    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def check_database_connection() -> bool:
    """
    Test if the database is reachable.
    Returns True if connection successful, False otherwise.
    """
    try:
        with get_db_session() as db:
            row = db.execute(text("SELECT 1")).fetchone()
            return row[0] == 1
    except Exception as e:
        logger.error("Database connection failed: %s", e)
        return False
