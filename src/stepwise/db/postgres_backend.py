"""PostgreSQL implementation of the Database protocol.

Uses psycopg 3 for synchronous access. All application SQL uses ``?``
placeholders; this backend translates them to ``%s`` at prepare time.
PostgreSQL reports a real SQLSTATE on every server error, which is passed
through to the classifier unchanged.
"""

from __future__ import annotations

import logging
from typing import Any

import psycopg

from stepwise.db.backend import (
    CONNECTION_DOES_NOT_EXIST,
    INVALID_CURSOR_STATE,
    INVALID_DESCRIPTOR_INDEX,
    WRONG_PARAMETER_COUNT,
    BackendError,
    placeholder_positions,
)
from stepwise.db.conversion import from_column, to_parameter
from stepwise.models.types import ColumnType

logger = logging.getLogger(__name__)


def _translate_placeholders(sql: str) -> tuple[str, int]:
    """Convert ``?`` placeholders to ``%s`` for psycopg.

    Returns the translated query and the placeholder count. Literal ``%``
    characters are doubled only when the query takes parameters, since
    psycopg only interprets ``%`` when parameters are passed.
    """
    positions = set(placeholder_positions(sql))
    if not positions:
        return sql, 0
    parts: list[str] = []
    for index, ch in enumerate(sql):
        if index in positions:
            parts.append("%s")
        elif ch == "%":
            parts.append("%%")
        else:
            parts.append(ch)
    return "".join(parts), len(positions)


def translate_error(exc: psycopg.Error) -> BackendError:
    """Convert a psycopg exception into a BackendError."""
    message = exc.diag.message_primary or str(exc)
    return BackendError(exc.sqlstate, message)


class PostgresCursor:
    """Wraps psycopg.Cursor to satisfy the Cursor protocol."""

    def __init__(self, cursor: psycopg.Cursor[Any], conn: psycopg.Connection[Any]) -> None:
        """Initialize with a cursor that has produced rows."""
        self._cursor = cursor
        self._conn = conn
        self._row: tuple[Any, ...] | None = None
        self._exhausted = False

    def advance(self) -> bool:
        """Move to the next row; False once the rows are exhausted."""
        if self._exhausted:
            return False
        try:
            self._row = self._cursor.fetchone()
        except psycopg.Error as exc:
            raise translate_error(exc) from exc
        if self._row is None:
            self._exhausted = True
        return self._row is not None

    def _check_ordinal(self, ordinal: int) -> None:
        width = len(self._cursor.description or ())
        if not 1 <= ordinal <= width:
            raise BackendError(
                INVALID_DESCRIPTOR_INDEX,
                f"column index {ordinal} out of range (row has {width} columns)",
            )

    def read_at(self, ordinal: int, column_type: ColumnType) -> Any:
        """Read and convert the column at a 1-based ordinal."""
        if self._row is None:
            raise BackendError(INVALID_CURSOR_STATE, "no current row")
        self._check_ordinal(ordinal)
        return from_column(self._row[ordinal - 1], column_type)

    def column_type_name(self, ordinal: int) -> str | int:
        """Declared type name of a result column, or its OID if unknown."""
        self._check_ordinal(ordinal)
        oid = self._cursor.description[ordinal - 1].type_code  # type: ignore[index]
        info = self._conn.adapters.types.get(oid)
        return info.name if info is not None else oid

    def close(self) -> None:
        """Release the cursor."""
        self._row = None
        self._exhausted = True
        self._cursor.close()


class PostgresStatement:
    """A translated query plus the parameters bound to it so far."""

    def __init__(self, conn: psycopg.Connection[Any], sql: str) -> None:
        """Initialize with the owning connection and the ``?``-style query."""
        self._conn = conn
        self._sql = sql
        self._pg_sql, self._placeholder_count = _translate_placeholders(sql)
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
        self._params[ordinal] = to_parameter(value, column_type)

    def execute(self) -> PostgresCursor | int:
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
        logger.debug("Executing: %s", self._pg_sql)
        cursor = self._conn.cursor()
        try:
            cursor.execute(self._pg_sql, params or None)
        except psycopg.Error as exc:
            cursor.close()
            raise translate_error(exc) from exc
        if cursor.description is None:
            rowcount = cursor.rowcount
            cursor.close()
            return rowcount
        return PostgresCursor(cursor, self._conn)

    def close(self) -> None:
        """Forget bound parameters."""
        self._params.clear()

    def __str__(self) -> str:
        return self._sql


class PostgresBackend:
    """PostgreSQL implementation of the Database protocol.

    Wraps a single psycopg connection. The connection starts in auto-commit
    mode; with auto-commit off, psycopg opens a transaction on the first
    statement and keeps it until ``commit()`` or ``rollback()``.
    """

    def __init__(self, conn: psycopg.Connection[Any]) -> None:
        """Initialize with a psycopg connection."""
        self._conn = conn

    @classmethod
    def create(cls, url: str, user: str = "", password: str = "") -> PostgresBackend:
        """Connect using a URL, with optional separate credentials."""
        try:
            conn = psycopg.connect(
                url, user=user or None, password=password or None, autocommit=True
            )
        except psycopg.Error as exc:
            raise translate_error(exc) from exc
        logger.info("Connected to PostgreSQL at %s", conn.info.host)
        return cls(conn)

    def prepare(self, query: str) -> PostgresStatement:
        """Prepare a parameterized query."""
        if self._conn.closed:
            raise BackendError(CONNECTION_DOES_NOT_EXIST, "connection is closed")
        return PostgresStatement(self._conn, query)

    def set_auto_commit(self, enabled: bool) -> None:
        """Switch auto-commit; enabling commits any open transaction."""
        try:
            if enabled:
                self._conn.commit()
            self._conn.autocommit = enabled
        except psycopg.Error as exc:
            raise translate_error(exc) from exc

    def commit(self) -> None:
        """Commit the current transaction."""
        try:
            self._conn.commit()
        except psycopg.Error as exc:
            raise translate_error(exc) from exc

    def rollback(self) -> None:
        """Roll back the current transaction."""
        try:
            self._conn.rollback()
        except psycopg.Error as exc:
            raise translate_error(exc) from exc

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()
