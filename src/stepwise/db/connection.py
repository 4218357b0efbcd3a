"""Database connection creation from URLs."""

import logging
from pathlib import Path

from stepwise.classifier import classify
from stepwise.db.backend import BackendError, Database
from stepwise.db.sqlite_backend import SQLiteBackend
from stepwise.errors import ConnectFailure

logger = logging.getLogger(__name__)


def create_connection(url: str, user: str = "", password: str = "") -> Database:
    """Open a backend connection for a URL.

    Accepts ``sqlite:///path``, ``sqlite:///:memory:``, ``:memory:``, a bare
    file path, or a ``postgresql://`` / ``postgres://`` URL. Credentials are
    only used by PostgreSQL; SQLite ignores them.
    """
    url = url.strip()
    if not url:
        raise ConnectFailure("no database URL given")
    if url.startswith(("postgresql://", "postgres://")):
        return _create_postgres(url, user, password)
    path = _sqlite_path(url)
    if path is None:
        raise ConnectFailure(f"unsupported database URL: {url}")
    return _create_sqlite(path)


def _sqlite_path(url: str) -> str | None:
    """File path named by a SQLite URL, or None for other schemes."""
    if url == ":memory:":
        return url
    if url.startswith("sqlite:"):
        path = url.removeprefix("sqlite:")
        if path.startswith("//"):
            # sqlite:///relative or sqlite:////absolute
            path = path[3:] if path.startswith("///") else path[2:]
        return path or ":memory:"
    if "://" in url:
        return None
    return url


def _create_sqlite(db_path: Path | str) -> Database:
    """Open a SQLite backend."""
    try:
        return SQLiteBackend.open(db_path)
    except BackendError as exc:
        raise classify(exc, ConnectFailure) from exc


def _create_postgres(url: str, user: str, password: str) -> Database:
    """Open a PostgreSQL backend."""
    try:
        from stepwise.db.postgres_backend import PostgresBackend
    except ImportError as exc:
        raise ConnectFailure(
            "PostgreSQL support needs psycopg: pip install 'stepwise-sql[postgres]'"
        ) from exc

    try:
        return PostgresBackend.create(url, user, password)
    except BackendError as exc:
        logger.warning("PostgreSQL connection failed: %s", exc.message)
        raise classify(exc, ConnectFailure) from exc
