"""Prepared statements bound and read by call order.

A ``Statement`` wraps one prepared query. Parameters are bound in the order
``bind*`` methods are called and columns are read in the order ``read*``
methods are called, so callers never track ordinals by hand:

    >>> stmt = Statement("SELECT name, cost FROM products WHERE id = ?", ctx)
    >>> name = stmt.bind_int(1).read_string()
    >>> cost = stmt.read_double()

Two ways to reach rows, which should not be mixed on one statement:

- ``read*`` on a statement with no cursor executes the query and positions
  on the first row. Meant for single-row or single-value queries.
- ``advance()`` (or iterating the statement) executes on its first call and
  then moves one row per call. After an auto-positioned ``read*``,
  ``advance()`` continues from the second row; it never re-executes.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from datetime import date
from decimal import Decimal
from enum import StrEnum
from typing import Any

from stepwise.classifier import classify, classify_mismatch
from stepwise.context import Context, get_context
from stepwise.db.backend import INVALID_CURSOR_STATE, TYPE_MISMATCH, BackendError, Cursor
from stepwise.errors import (
    BindFailure,
    ClosedStatementError,
    CommitFailure,
    ConnectFailure,
    FailureKind,
    ReadFailure,
)
from stepwise.models.types import ColumnType
from stepwise.ordinal import Ordinal

logger = logging.getLogger(__name__)


class StatementState(StrEnum):
    """Lifecycle of a statement."""

    UNEXECUTED = "unexecuted"
    POSITIONED = "positioned"
    DISCARDED = "discarded"


class Statement:
    """A prepared query with call-order parameter binding and column reading."""

    def __init__(self, query: str, context: Context | None = None) -> None:
        """Prepare ``query`` on ``context`` (the default context if omitted).

        Raises ConnectFailure if there is no connection.
        """
        self._context = context if context is not None else get_context()
        database = self._context.database
        try:
            self._prepared = database.prepare(query)
        except BackendError as exc:
            raise classify(exc, ConnectFailure) from exc
        self._query = query
        self._bind_ordinal = Ordinal()
        self._read_ordinal = Ordinal()
        self._cursor: Cursor | None = None
        self._no_result = False
        self._state = StatementState.UNEXECUTED
        self.rowcount = -1

    @property
    def query(self) -> str:
        """The query text as given."""
        return self._query

    @property
    def context(self) -> Context:
        """The context whose connection this statement uses."""
        return self._context

    @property
    def state(self) -> StatementState:
        """Where the statement is in its lifecycle."""
        return self._state

    @property
    def closed(self) -> bool:
        """Whether ``close()`` has been called."""
        return self._state is StatementState.DISCARDED

    @property
    def bind_ordinal(self) -> Ordinal:
        """Counter of placeholders bound so far."""
        return self._bind_ordinal

    @property
    def read_ordinal(self) -> Ordinal:
        """Counter of columns read from the current row."""
        return self._read_ordinal

    # -- Binding --

    def bind(self, value: Any, as_type: ColumnType | None = None) -> Statement:
        """Bind ``value`` to the next placeholder.

        The column type is inferred from the value unless ``as_type`` is
        given. The placeholder is used up even when the backend rejects the
        value, so later binds keep their call-order positions.

        Raises BindFailure if the backend rejects the value.
        """
        self._check_open()
        column_type = as_type if as_type is not None else ColumnType.infer(value)
        ordinal = self._bind_ordinal.next()
        try:
            self._prepared.bind_at(ordinal, value, column_type)
        except BackendError as exc:
            raise classify(exc, BindFailure) from exc
        return self

    def bind_int(self, value: int) -> Statement:
        """Bind a 32-bit integer."""
        return self.bind(value, ColumnType.INTEGER)

    def bind_long(self, value: int) -> Statement:
        """Bind a 64-bit integer."""
        return self.bind(value, ColumnType.LONG)

    def bind_short(self, value: int) -> Statement:
        """Bind a 16-bit integer."""
        return self.bind(value, ColumnType.SHORT)

    def bind_byte(self, value: int) -> Statement:
        """Bind an 8-bit integer."""
        return self.bind(value, ColumnType.BYTE)

    def bind_float(self, value: float) -> Statement:
        """Bind a single-precision float."""
        return self.bind(value, ColumnType.FLOAT)

    def bind_double(self, value: float) -> Statement:
        """Bind a double-precision float."""
        return self.bind(value, ColumnType.DOUBLE)

    def bind_decimal(self, value: Decimal | int | float) -> Statement:
        """Bind an arbitrary-precision decimal."""
        return self.bind(value, ColumnType.DECIMAL)

    def bind_bool(self, value: bool) -> Statement:
        """Bind a boolean."""
        return self.bind(value, ColumnType.BOOLEAN)

    def bind_bytes(self, value: bytes) -> Statement:
        """Bind a byte sequence."""
        return self.bind(value, ColumnType.BYTES)

    def bind_date(self, value: date) -> Statement:
        """Bind a calendar date."""
        return self.bind(value, ColumnType.DATE)

    def bind_string(self, value: str) -> Statement:
        """Bind a string."""
        return self.bind(value, ColumnType.STRING)

    def bind_object(self, value: Any) -> Statement:
        """Bind a value as-is for the driver to adapt."""
        return self.bind(value, ColumnType.OBJECT)

    # -- Rows --

    def advance(self) -> bool:
        """Move to the next row, executing the query on the first call.

        Resets the read ordinal. Returns False once the rows are exhausted,
        and keeps returning False on later calls.

        Raises ReadFailure if the query fails or produces no result set. A
        statement that produced no result set is not run again; later calls
        return False until ``reset()``.
        """
        self._check_open()
        if self._no_result:
            return False
        if self._cursor is None:
            self._open_cursor()
        return self._advance_cursor()

    def skip(self) -> None:
        """Pass over the next column without reading it."""
        self._check_open()
        if self._cursor is None and not self._no_result:
            self._position()
        self._read_ordinal.next()

    def read(self, as_type: ColumnType) -> Any:
        """Read the next column of the current row as ``as_type``.

        With no cursor yet, executes the query and positions on the first
        row first. SQL NULL reads as None for nullable types and as the
        zero value for numbers and booleans.

        Raises ReadFailure on a type mismatch, when reading past the last
        column, or when there is no current row.
        """
        self._check_open()
        if self._no_result:
            raise classify(BackendError(INVALID_CURSOR_STATE, "no current row"), ReadFailure)
        if self._cursor is None:
            self._position()
        assert self._cursor is not None
        ordinal = self._read_ordinal.next()
        try:
            return self._cursor.read_at(ordinal, as_type)
        except BackendError as exc:
            if exc.sqlstate == TYPE_MISMATCH:
                raise classify_mismatch(as_type, self, exc) from exc
            raise classify(exc, ReadFailure) from exc

    def read_int(self) -> int:
        """Read the next column as a 32-bit integer."""
        return self.read(ColumnType.INTEGER)

    def read_long(self) -> int:
        """Read the next column as a 64-bit integer."""
        return self.read(ColumnType.LONG)

    def read_short(self) -> int:
        """Read the next column as a 16-bit integer."""
        return self.read(ColumnType.SHORT)

    def read_byte(self) -> int:
        """Read the next column as an 8-bit integer."""
        return self.read(ColumnType.BYTE)

    def read_float(self) -> float:
        """Read the next column as a single-precision float."""
        return self.read(ColumnType.FLOAT)

    def read_double(self) -> float:
        """Read the next column as a double-precision float."""
        return self.read(ColumnType.DOUBLE)

    def read_decimal(self) -> Decimal | None:
        """Read the next column as a decimal."""
        return self.read(ColumnType.DECIMAL)

    def read_bool(self) -> bool:
        """Read the next column as a boolean."""
        return self.read(ColumnType.BOOLEAN)

    def read_bytes(self) -> bytes | None:
        """Read the next column as bytes."""
        return self.read(ColumnType.BYTES)

    def read_date(self) -> date | None:
        """Read the next column as a calendar date."""
        return self.read(ColumnType.DATE)

    def read_string(self) -> str | None:
        """Read the next column as a string."""
        return self.read(ColumnType.STRING)

    def read_object(self) -> Any:
        """Read the next column as the driver returned it."""
        return self.read(ColumnType.OBJECT)

    def column_type_name(self, ordinal: int) -> str | int:
        """The backend's type identifier for a column of the current result."""
        self._check_open()
        if self._cursor is None:
            raise ReadFailure("statement has no result set to describe", kind=FailureKind.NO_RESULT)
        try:
            return self._cursor.column_type_name(ordinal)
        except BackendError as exc:
            raise classify(exc, ReadFailure) from exc

    # -- Writes --

    def execute(self) -> None:
        """Run the statement without reading rows (INSERT, UPDATE, DELETE).

        Commits straight away under auto-commit. Otherwise the change stays
        in the connection's open transaction until ``Context.commit()``.
        The affected row count is left in ``rowcount``.

        Raises CommitFailure, after rolling back, if the statement fails.
        """
        self._check_open()
        try:
            self._run()
            if self._context.auto_commit:
                self._context.database.commit()
        except BackendError as exc:
            self._context._rollback_after(exc)
            raise classify(exc, CommitFailure) from exc
        logger.debug("%d row(s) affected by: %s", self.rowcount, self._query)

    def collect(self) -> Statement:
        """Add this statement to its context's pending batch."""
        self._check_open()
        self._context.collect(self)
        return self

    def _run(self) -> None:
        """Execute once, discarding any rows; backend errors propagate."""
        result = self._execute()
        if isinstance(result, int):
            self.rowcount = result
        else:
            self.rowcount = -1
            result.close()

    # -- Lifecycle --

    def reset(self) -> None:
        """Drop the cursor and rewind both ordinals for another run.

        Bound values are kept until they are bound again.
        """
        self._check_open()
        self._close_cursor()
        self._no_result = False
        self._bind_ordinal.reset()
        self._read_ordinal.reset()
        self._state = StatementState.UNEXECUTED

    def close(self) -> None:
        """Release the cursor and the prepared statement."""
        if self._state is StatementState.DISCARDED:
            return
        self._close_cursor()
        self._prepared.close()
        self._state = StatementState.DISCARDED

    def _check_open(self) -> None:
        if self._state is StatementState.DISCARDED:
            raise ClosedStatementError(f"statement is closed: {self._query}")

    def _execute(self) -> Cursor | int:
        # raises once a failed rollback has poisoned the context
        self._context.database
        self._close_cursor()
        return self._prepared.execute()

    def _open_cursor(self) -> None:
        try:
            result = self._execute()
        except BackendError as exc:
            raise classify(exc, ReadFailure) from exc
        if isinstance(result, int):
            self.rowcount = result
            self._no_result = True
            self._state = StatementState.POSITIONED
            raise ReadFailure(
                f"query produced no result set: {self._query}", kind=FailureKind.NO_RESULT
            )
        self._cursor = result
        self._state = StatementState.POSITIONED

    def _position(self) -> None:
        self._open_cursor()
        self._advance_cursor()

    def _advance_cursor(self) -> bool:
        assert self._cursor is not None
        self._read_ordinal.reset()
        try:
            return self._cursor.advance()
        except BackendError as exc:
            raise classify(exc, ReadFailure) from exc

    def _close_cursor(self) -> None:
        if self._cursor is not None:
            self._cursor.close()
            self._cursor = None

    def __iter__(self) -> Iterator[Statement]:
        """Yield this statement once per row; forward-only."""
        while self.advance():
            yield self

    def __enter__(self) -> Statement:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def __str__(self) -> str:
        return self._query

    def __repr__(self) -> str:
        return f"Statement({self._query!r}, state={self._state.value})"
