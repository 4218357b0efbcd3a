"""Database backends and connection creation."""

from stepwise.db.backend import BackendError, Cursor, Database, PreparedStatement
from stepwise.db.sqlite_backend import SQLiteBackend

try:
    from stepwise.db.postgres_backend import PostgresBackend
except ImportError:
    PostgresBackend = None  # type: ignore[assignment,misc]

__all__ = [
    "BackendError",
    "Cursor",
    "Database",
    "PostgresBackend",
    "PreparedStatement",
    "SQLiteBackend",
]
