"""Database engine, session management and translation of driver failures."""

import logging
from collections.abc import Generator, Iterator
from contextlib import contextmanager
from typing import Any

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import DBAPIError, OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.orm import Session, sessionmaker

from authcore.core.config import Settings, get_settings
from authcore.core.errors import TransientError

logger = logging.getLogger(__name__)


def build_engine(settings: Settings) -> Engine:
    """
    Create the engine with timeouts on every path to the database.

    Pool checkout waits at most DB_POOL_TIMEOUT_SEC; on PostgreSQL the server
    also cancels statements running longer than DB_STATEMENT_TIMEOUT_MS.
    """
    url = settings.DATABASE_URL
    kwargs: dict[str, Any] = {"pool_pre_ping": True, "echo": settings.DEBUG}
    if url.startswith("sqlite"):
        kwargs["connect_args"] = {
            "check_same_thread": False,
            "timeout": settings.DB_POOL_TIMEOUT_SEC,
        }
    else:
        kwargs["pool_timeout"] = settings.DB_POOL_TIMEOUT_SEC
        kwargs["connect_args"] = {
            "connect_timeout": settings.DB_CONNECT_TIMEOUT_SEC,
            "options": f"-c statement_timeout={settings.DB_STATEMENT_TIMEOUT_MS}",
        }
    return create_engine(url, **kwargs)


engine = build_engine(get_settings())

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db() -> Generator[Session, None, None]:
    """Dependency that yields a DB session and closes it when done."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def check_db_connected(db: Session) -> bool:
    """Run a trivial query to verify the database is reachable."""
    try:
        db.execute(text("SELECT 1"))
        return True
    except Exception:
        return False


@contextmanager
def db_errors(session: Session, operation: str) -> Iterator[None]:
    """
    Roll back and re-raise driver timeouts and connection failures as TransientError.

    Integrity and programming errors propagate unchanged.
    """
    try:
        yield
    except (OperationalError, PoolTimeoutError) as e:
        session.rollback()
        logger.warning("Database unavailable during %s: %s", operation, e.__class__.__name__)
        raise TransientError(cause=e) from e
    except DBAPIError as e:
        if not e.connection_invalidated:
            raise
        session.rollback()
        logger.warning("Database connection lost during %s", operation)
        raise TransientError(cause=e) from e
