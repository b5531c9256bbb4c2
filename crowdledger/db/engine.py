"""
Database connection and session management.

Uses synchronous SQLAlchemy sessions (SQLModel flavour).
The engine is built lazily from settings on first use so that importing
the package never opens a connection.

Aggregate columns on ``companies`` are only ever written with server-side
expressions (see ``crowdledger.domain.valuation_ledger``), so the default
READ COMMITTED isolation is sufficient for the ledger.
"""

from typing import Generator, Optional
from contextlib import contextmanager
from urllib.parse import urlparse
from sqlmodel import Session, SQLModel, create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy import text
import logging

from crowdledger.core.config import settings

logger = logging.getLogger(__name__)

_engine: Optional[Engine] = None
_session_factory: Optional[sessionmaker] = None


def build_engine(database_url: str, echo: bool = False) -> Engine:
    """
    Create an engine for the given URL.

    Plain postgresql:// URLs are rewritten to the psycopg (v3) driver.

    Args:
        database_url: SQLAlchemy database URL
        echo: Log SQL statements

    Returns:
        Configured Engine
    """
    if database_url.startswith("postgresql://"):
        database_url = database_url.replace("postgresql://", "postgresql+psycopg://")

    db_url = urlparse(database_url)
    logger.info(f"Database driver: {db_url.scheme}")
    logger.info(f"Database host: {db_url.hostname}")
    logger.info(f"Database name: {db_url.path[1:]}")

    if database_url.startswith("sqlite"):
        # Writers wait on the database lock instead of failing immediately
        return create_engine(
            database_url,
            echo=echo,
            connect_args={"check_same_thread": False, "timeout": 30},
        )

    return create_engine(
        database_url,
        echo=echo,
        pool_pre_ping=True,      # Verify connections before use
        isolation_level="READ COMMITTED",
    )


def build_session_factory(engine: Engine) -> sessionmaker:
    """
    Create a session factory bound to ``engine``.

    expire_on_commit=False keeps loaded rows readable after commit; callers
    refresh explicitly when they need post-commit aggregate values.
    """
    return sessionmaker(
        bind=engine,
        class_=Session,
        expire_on_commit=False,  # Prevents automatic refresh after commit
        autoflush=False,         # Explicit control over when to flush
        autocommit=False,        # Use transactions explicitly
    )


def get_engine() -> Engine:
    """Return the process engine, creating it from settings on first call."""
    global _engine, _session_factory
    if _engine is None:
        _engine = build_engine(settings.DATABASE_URL, echo=settings.DEBUG)
        _session_factory = build_session_factory(_engine)
        logger.info("Database engine configured")
    return _engine


def SessionLocal() -> Session:
    """Open a new session on the process engine."""
    get_engine()
    return _session_factory()


def create_tables(engine: Optional[Engine] = None) -> None:
    """Create all ledger tables (development and tests).

    Production schemas are expected to be managed by migrations.
    """
    import crowdledger.models  # noqa: F401  (registers tables on the metadata)

    SQLModel.metadata.create_all(engine or get_engine())


def verify_connection() -> None:
    """
    Run a trivial query against the configured database.

    Raises:
        Exception: Whatever the driver raises when the database is unreachable
    """
    try:
        with Session(get_engine()) as session:
            session.execute(text("SELECT 1"))
            logger.info("✅ Database connection test successful")
    except Exception as e:
        logger.error(f"❌ Failed to connect to database: {e}")
        raise


@contextmanager
def get_session_context():
    """
    Context manager for database sessions.

    Does NOT auto-commit - caller must explicitly commit.

    Usage:
        from crowdledger.db import get_session_context

        with get_session_context() as db:
            company = CompanyOperations.create(db, company, commit=False)
            db.commit()  # Explicit commit

    Yields:
        Session: Database session
    """
    session = SessionLocal()
    try:
        yield session
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


@contextmanager
def get_db_session() -> Generator[Session, None, None]:
    """
    Context manager for database sessions with auto-commit.

    Auto-commits on success, auto-rolls back on exception.
    Use this for scripts and background sweeps.

    Yields:
        Session: Database session
    """
    session = SessionLocal()
    try:
        yield session
        session.commit()  # Auto-commit on success
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
