"""
Database connection and session management.

Exports:
    - get_engine: Lazily built SQLAlchemy engine
    - build_engine / build_session_factory: Explicit construction (tests, scripts)
    - SessionLocal: Session factory on the process engine
    - create_tables: Create the ledger schema
    - get_session_context: Context manager without auto-commit (explicit control)
    - get_db_session: Context manager with auto-commit (for scripts/sweeps)
"""

from .engine import (
    get_engine,
    build_engine,
    build_session_factory,
    SessionLocal,
    create_tables,
    verify_connection,
    get_session_context,
    get_db_session,
)

__all__ = [
    "get_engine",
    "build_engine",
    "build_session_factory",
    "SessionLocal",
    "create_tables",
    "verify_connection",
    "get_session_context",
    "get_db_session",
]
