"""Database backend protocol: a thin abstraction over DB-API connections.

Statements and contexts program against these protocols. Each backend
(SQLite, Postgres, ...) provides a concrete implementation. Driver
exceptions never cross this boundary: backends translate them into
``BackendError`` carrying an SQLSTATE-like code.
"""

from __future__ import annotations

from collections.abc import Iterator
from typing import Any, Protocol, runtime_checkable

from stepwise.models.types import ColumnType

# SQLSTATE codes raised by the backends themselves
WRONG_PARAMETER_COUNT = "07001"
INVALID_DESCRIPTOR_INDEX = "07009"
NUMERIC_OUT_OF_RANGE = "22003"
TYPE_MISMATCH = "22018"
INVALID_CURSOR_STATE = "24000"
CONNECTION_DOES_NOT_EXIST = "08003"


class BackendError(Exception):
    """A failure reported by the database, with its SQLSTATE-like code."""

    def __init__(self, sqlstate: str | None, message: str) -> None:
        """Initialize with the backend's code (may be None) and message."""
        super().__init__(message)
        self.sqlstate = sqlstate
        self.message = message

    def __repr__(self) -> str:
        return f"BackendError({self.sqlstate!r}, {self.message!r})"


@runtime_checkable
class Cursor(Protocol):
    """Forward-only cursor over the rows produced by a statement."""

    def advance(self) -> bool:
        """Move to the next row; False once the rows are exhausted."""
        ...

    def read_at(self, ordinal: int, column_type: ColumnType) -> Any:
        """Read the column at a 1-based ordinal of the current row."""
        ...

    def column_type_name(self, ordinal: int) -> str | int:
        """Return the backend's type identifier for a column."""
        ...

    def close(self) -> None:
        """Release the cursor."""
        ...


@runtime_checkable
class PreparedStatement(Protocol):
    """A parameterized query with ``?`` placeholders."""

    @property
    def placeholder_count(self) -> int:
        """Number of ``?`` placeholders in the query."""
        ...

    def bind_at(self, ordinal: int, value: Any, column_type: ColumnType) -> None:
        """Assign a value to the placeholder at a 1-based ordinal."""
        ...

    def execute(self) -> Cursor | int:
        """Run the statement.

        Returns a cursor when the statement produces rows, otherwise the
        number of affected rows (-1 when the driver cannot tell).
        """
        ...

    def close(self) -> None:
        """Release the statement and any open cursor."""
        ...


@runtime_checkable
class Database(Protocol):
    """Synchronous database connection.

    All application SQL uses ``?`` placeholders. Non-SQLite backends
    translate at prepare time (``?`` → ``%s`` for psycopg).
    """

    def prepare(self, query: str) -> PreparedStatement:
        """Prepare a parameterized query."""
        ...

    def set_auto_commit(self, enabled: bool) -> None:
        """Switch between auto-commit and explicit transactions."""
        ...

    def commit(self) -> None:
        """Commit the current transaction."""
        ...

    def rollback(self) -> None:
        """Roll back the current transaction."""
        ...

    def close(self) -> None:
        """Close the database connection."""
        ...


def count_placeholders(sql: str) -> int:
    """Count ``?`` placeholders outside quoted literals and identifiers."""
    return sum(1 for _ in placeholder_positions(sql))


def placeholder_positions(sql: str) -> Iterator[int]:
    """Yield the index of every ``?`` that is not inside quotes or comments."""
    quote: str | None = None
    i = 0
    length = len(sql)
    while i < length:
        ch = sql[i]
        if quote is not None:
            if ch == quote:
                # doubled quote is an escaped quote
                if i + 1 < length and sql[i + 1] == quote:
                    i += 1
                else:
                    quote = None
        elif ch in ("'", '"', "`"):
            quote = ch
        elif ch == "-" and sql.startswith("--", i):
            newline = sql.find("\n", i)
            i = length if newline == -1 else newline
        elif ch == "/" and sql.startswith("/*", i):
            end = sql.find("*/", i + 2)
            i = length if end == -1 else end + 1
        elif ch == "?":
            yield i
        i += 1
