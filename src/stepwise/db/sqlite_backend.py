"""SQLite implementation of the Database protocol.

Thin wrapper around sqlite3.Connection. No SQL translation needed since
application code already uses ``?`` placeholders. SQLite reports errors by
result code and message only, so this module derives the SQLSTATE-like
codes the classifier expects.
"""

from __future__ import annotations

import logging
import re
import sqlite3
from datetime import date
from decimal import Decimal
from pathlib import Path
from typing import Any

from stepwise.db.backend import (
    CONNECTION_DOES_NOT_EXIST,
    INVALID_CURSOR_STATE,
    INVALID_DESCRIPTOR_INDEX,
    WRONG_PARAMETER_COUNT,
    BackendError,
    count_placeholders,
)
from stepwise.db.conversion import from_column, to_parameter
from stepwise.models.types import ColumnType

logger = logging.getLogger(__name__)

_VALUE_COUNT_RE = re.compile(
    r"has \d+ columns but \d+ values were supplied"
    r"|\d+ values for \d+ columns"
    r"|all VALUES must have the same number of terms",
    re.IGNORECASE,
)

# (pattern, sqlstate) checked in order against the lower-cased message
_MESSAGE_STATES: list[tuple[str, str]] = [
    ("syntax error", "42000"),
    ("incomplete input", "42000"),
    ("unrecognized token", "42000"),
    ("no such table", "42S02"),
    ("no such column", "42S22"),
    ("incorrect number of bindings", WRONG_PARAMETER_COUNT),
    ("closed database", CONNECTION_DOES_NOT_EXIST),
    ("cannot store", "HY000"),
    ("datatype mismatch", "HY000"),
]

_STORAGE_CLASSES: dict[type, str] = {
    int: "INTEGER",
    float: "REAL",
    str: "TEXT",
    bytes: "BLOB",
}


def _sqlstate_for(exc: sqlite3.Error) -> str | None:
    """Derive an SQLSTATE-like code from a sqlite3 exception."""
    message = str(exc)
    if _VALUE_COUNT_RE.search(message):
        return "21S01"
    lowered = message.lower()
    for pattern, state in _MESSAGE_STATES:
        if pattern in lowered:
            return state
    if isinstance(exc, sqlite3.IntegrityError):
        return "23000"
    # Not SQLSTATE-shaped; the classifier reports these as unclassified
    return getattr(exc, "sqlite_errorname", None)


def translate_error(exc: sqlite3.Error) -> BackendError:
    """Convert a sqlite3 exception into a BackendError."""
    return BackendError(_sqlstate_for(exc), str(exc))


def _adapt(value: Any) -> Any:
    """Store values sqlite3 has no (non-deprecated) adapter for as text."""
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, date):
        return value.isoformat()
    return value


class SQLiteCursor:
    """Wraps sqlite3.Cursor to satisfy the Cursor protocol."""

    def __init__(self, cursor: sqlite3.Cursor) -> None:
        """Initialize with a sqlite3 cursor that has produced rows."""
        self._cursor = cursor
        self._row: tuple[Any, ...] | None = None
        self._exhausted = False

    def advance(self) -> bool:
        """Move to the next row; False once the rows are exhausted."""
        if self._exhausted:
            return False
        try:
            self._row = self._cursor.fetchone()
        except sqlite3.Error as exc:
            raise translate_error(exc) from exc
        if self._row is None:
            self._exhausted = True
        return self._row is not None

    def _raw(self, ordinal: int) -> Any:
        if self._row is None:
            raise BackendError(INVALID_CURSOR_STATE, "no current row")
        if not 1 <= ordinal <= len(self._row):
            raise BackendError(
                INVALID_DESCRIPTOR_INDEX,
                f"column index {ordinal} out of range (row has {len(self._row)} columns)",
            )
        return self._row[ordinal - 1]

    def read_at(self, ordinal: int, column_type: ColumnType) -> Any:
        """Read and convert the column at a 1-based ordinal."""
        return from_column(self._raw(ordinal), column_type)

    def column_type_name(self, ordinal: int) -> str:
        """Storage class of the current value, as SQLite's ``typeof()`` reports it."""
        value = self._raw(ordinal)
        if value is None:
            return "NULL"
        return _STORAGE_CLASSES.get(type(value), type(value).__name__)

    def close(self) -> None:
        """Release the cursor."""
        self._row = None
        self._exhausted = True
        self._cursor.close()


class SQLiteStatement:
    """A query plus the parameters bound to it so far.

    sqlite3 prepares and caches statements internally on execute, so
    binding only records values by ordinal.
    """

    def __init__(self, conn: sqlite3.Connection, sql: str) -> None:
        """Initialize with the owning connection and the query text."""
        self._conn = conn
        self._sql = sql
        self._placeholder_count = count_placeholders(sql)
        self._params: dict[int, Any] = {}

    @property
    def placeholder_count(self) -> int:
        """Number of ``?`` placeholders in the query."""
        return self._placeholder_count

    def bind_at(self, ordinal: int, value: Any, column_type: ColumnType) -> None:
        """Validate and record a parameter value."""
        if not 1 <= ordinal <= self._placeholder_count:
            raise BackendError(
                INVALID_DESCRIPTOR_INDEX,
                f"parameter index {ordinal} out of range"
                f" (statement has {self._placeholder_count} placeholders)",
            )
        self._params[ordinal] = _adapt(to_parameter(value, column_type))

    def execute(self) -> SQLiteCursor | int:
        """Run the query with the bound parameters."""
        missing = [
            str(ordinal)
            for ordinal in range(1, self._placeholder_count + 1)
            if ordinal not in self._params
        ]
        if missing:
            raise BackendError(
                WRONG_PARAMETER_COUNT, f"no value bound for parameter {', '.join(missing)}"
            )
        params = [self._params[ordinal] for ordinal in range(1, self._placeholder_count + 1)]
        logger.debug("Executing: %s", self._sql)
        try:
            cursor = self._conn.execute(self._sql, params)
        except sqlite3.Error as exc:
            raise translate_error(exc) from exc
        if cursor.description is None:
            rowcount = cursor.rowcount
            cursor.close()
            return rowcount
        return SQLiteCursor(cursor)

    def close(self) -> None:
        """Forget bound parameters."""
        self._params.clear()

    def __str__(self) -> str:
        return self._sql


class SQLiteBackend:
    """SQLite implementation of the Database protocol.

    Passes all calls through to the underlying sqlite3.Connection. The
    connection starts in auto-commit mode (``isolation_level=None``);
    explicit transactions use sqlite3's deferred implicit BEGIN.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        """Initialize with a sqlite3 connection."""
        self._conn = conn

    @classmethod
    def open(cls, db_path: Path | str) -> SQLiteBackend:
        """Open (creating if needed) a SQLite database file or ``:memory:``."""
        db_path = str(db_path)
        if db_path != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)

        try:
            conn = sqlite3.connect(db_path, isolation_level=None)
            if db_path != ":memory:":
                # WAL gives readers a stable snapshot while a batch is pending
                conn.execute("PRAGMA journal_mode=WAL")
            conn.execute("PRAGMA foreign_keys=ON")
        except sqlite3.Error as exc:
            raise translate_error(exc) from exc
        logger.info("Opened SQLite database at %s", db_path)
        return cls(conn)

    def prepare(self, query: str) -> SQLiteStatement:
        """Prepare a parameterized query."""
        try:
            # Touching the connection fails fast if it was closed
            self._conn.total_changes  # noqa: B018
        except sqlite3.Error as exc:
            raise translate_error(exc) from exc
        return SQLiteStatement(self._conn, query)

    def set_auto_commit(self, enabled: bool) -> None:
        """Switch auto-commit; enabling commits any open transaction."""
        try:
            if enabled and self._conn.in_transaction:
                self._conn.commit()
            self._conn.isolation_level = None if enabled else "DEFERRED"
        except sqlite3.Error as exc:
            raise translate_error(exc) from exc

    def commit(self) -> None:
        """Commit the current transaction."""
        try:
            self._conn.commit()
        except sqlite3.Error as exc:
            raise translate_error(exc) from exc

    def rollback(self) -> None:
        """Roll back the current transaction."""
        try:
            self._conn.rollback()
        except sqlite3.Error as exc:
            raise translate_error(exc) from exc

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()
