"""Engine, pool and session helpers for the record store."""

from contextlib import contextmanager
from typing import Any, Dict, Generator, Optional

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from ..errors import DeltaMetricsError
from ..utils.logging import get_logger
from .schema import Base

logger = get_logger(__name__)

# Connection pool constants for server databases.
MAX_IDLE_CONNECTIONS = 10
MAX_OPEN_CONNECTIONS = 100
MAX_CONNECTION_LIFETIME_SECONDS = 3600


class SchemaInitError(DeltaMetricsError):
    """Tables could not be created or verified. Fatal at startup."""


def _engine_options(url: str, statement_timeout_ms: Optional[int]) -> Dict[str, Any]:
    backend = make_url(url).get_backend_name()
    if backend == "sqlite":
        return {}

    options: Dict[str, Any] = {
        "pool_size": MAX_IDLE_CONNECTIONS,
        "max_overflow": MAX_OPEN_CONNECTIONS - MAX_IDLE_CONNECTIONS,
        "pool_recycle": MAX_CONNECTION_LIFETIME_SECONDS,
        "pool_pre_ping": True,
    }
    if statement_timeout_ms and backend == "postgresql":
        options["connect_args"] = {"options": f"-c statement_timeout={int(statement_timeout_ms)}"}
    return options


def _log_statement(conn, cursor, statement, parameters, context, executemany) -> None:
    logger.debug(f"SQL: {statement}")


def get_engine(url: str, log_sql: bool = False, statement_timeout_ms: Optional[int] = None) -> Engine:
    """
    Create the store engine.

    Args:
        url: SQLAlchemy database URL
        log_sql: Log every executed statement at DEBUG
        statement_timeout_ms: Per-statement timeout (PostgreSQL only)
    """
    engine = create_engine(url, future=True, **_engine_options(url, statement_timeout_ms))
    if log_sql:
        event.listen(engine, "before_cursor_execute", _log_statement)
    return engine


def init_schema(engine: Engine) -> None:
    """Create any missing tables for every registered model."""
    try:
        Base.metadata.create_all(engine)
    except SQLAlchemyError as e:
        raise SchemaInitError(f"Schema auto-create failed: {e}") from e
    logger.info(f"Schema verified: {len(Base.metadata.tables)} tables")


def get_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@contextmanager
def session_context(session_factory: sessionmaker) -> Generator[Session, None, None]:
    """
    Context manager for SQLAlchemy sessions.

    Rolls back on error and always closes. Commits are left to the caller
    so every write path decides its own error kind on commit failure.

    Usage:
        with session_context(factory) as session:
            session.add(row)
            session.commit()
    """
    session = session_factory()
    try:
        yield session
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
