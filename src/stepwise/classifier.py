"""Backend error classification.

Turns a ``BackendError`` (SQLSTATE-like code plus message) into a typed
failure with a message that says what to fix. The mapping is deliberately
open: codes it does not know keep the backend's own message.
"""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING

from stepwise.db.backend import BackendError
from stepwise.errors import FailureKind, ReadFailure, StepwiseError
from stepwise.models.types import ColumnType

if TYPE_CHECKING:
    from stepwise.statement import Statement

logger = logging.getLogger(__name__)

# MySQL prepends this to every syntax error message
SYNTAX_PREAMBLE = (
    "You have an error in your SQL syntax; check the manual that corresponds to your "
    "MySQL server version for the right syntax to use "
)
EXCERPT_LENGTH = 60

COLUMN_COUNT_STATES = frozenset({"21S01", "21000"})
SYNTAX_STATES = frozenset({"42000", "42601"})
UNKNOWN_OBJECT_STATES = frozenset({"42S02", "42S22", "42P01", "42703", "42883"})
UNCERTAIN_STATES = frozenset({"HY000", "22P02", "22007"})

_SQLSTATE_RE = re.compile(r"[0-9A-Z]{5}")
_TYPE_PARAMS_RE = re.compile(r"\s*\(.*\)\s*$")

_TYPE_NAMES: dict[str | int, ColumnType] = {
    # SQLite storage classes and common declared types
    "integer": ColumnType.INTEGER,
    "int": ColumnType.INTEGER,
    "mediumint": ColumnType.INTEGER,
    "serial": ColumnType.INTEGER,
    "bigint": ColumnType.LONG,
    "bigserial": ColumnType.LONG,
    "smallint": ColumnType.SHORT,
    "tinyint": ColumnType.BYTE,
    "real": ColumnType.DOUBLE,
    "double": ColumnType.DOUBLE,
    "double precision": ColumnType.DOUBLE,
    "float": ColumnType.FLOAT,
    "decimal": ColumnType.DECIMAL,
    "numeric": ColumnType.DECIMAL,
    "boolean": ColumnType.BOOLEAN,
    "bit": ColumnType.BOOLEAN,
    "blob": ColumnType.BYTES,
    "binary": ColumnType.BYTES,
    "varbinary": ColumnType.BYTES,
    "date": ColumnType.DATE,
    "text": ColumnType.STRING,
    "varchar": ColumnType.STRING,
    "char": ColumnType.STRING,
    "character": ColumnType.STRING,
    "character varying": ColumnType.STRING,
    "clob": ColumnType.STRING,
    "json": ColumnType.OBJECT,
    # PostgreSQL type names as psycopg reports them
    "int2": ColumnType.SHORT,
    "int4": ColumnType.INTEGER,
    "int8": ColumnType.LONG,
    "float4": ColumnType.FLOAT,
    "float8": ColumnType.DOUBLE,
    "bool": ColumnType.BOOLEAN,
    "bytea": ColumnType.BYTES,
    "bpchar": ColumnType.STRING,
    "name": ColumnType.STRING,
    "jsonb": ColumnType.OBJECT,
    # PostgreSQL type OIDs
    16: ColumnType.BOOLEAN,
    17: ColumnType.BYTES,
    18: ColumnType.STRING,
    19: ColumnType.STRING,
    20: ColumnType.LONG,
    21: ColumnType.SHORT,
    23: ColumnType.INTEGER,
    25: ColumnType.STRING,
    114: ColumnType.OBJECT,
    700: ColumnType.FLOAT,
    701: ColumnType.DOUBLE,
    1042: ColumnType.STRING,
    1043: ColumnType.STRING,
    1082: ColumnType.DATE,
    1700: ColumnType.DECIMAL,
    3802: ColumnType.OBJECT,
}


def type_display_name(code: str | int) -> str:
    """Map a backend type identifier to the name ``ColumnType`` uses.

    Accepts type names in any case, with or without size parameters
    (``VARCHAR(255)``), and PostgreSQL OIDs. Unknown identifiers come back
    unchanged.
    """
    if isinstance(code, str):
        key: str | int = _TYPE_PARAMS_RE.sub("", code).strip().lower()
    else:
        key = code
    column_type = _TYPE_NAMES.get(key)
    if column_type is None:
        return str(code)
    return column_type.value


def _syntax_excerpt(message: str) -> str:
    """The part of a syntax error message that points at the problem."""
    if message.startswith(SYNTAX_PREAMBLE):
        message = message[len(SYNTAX_PREAMBLE) :]
    message = message.strip()
    if len(message) > EXCERPT_LENGTH:
        return message[:EXCERPT_LENGTH] + "..."
    return message


def classify(
    error: BackendError, failure_cls: type[StepwiseError] = StepwiseError
) -> StepwiseError:
    """Build a failure of ``failure_cls`` describing a backend error."""
    code = error.sqlstate
    message = error.message

    if code is None or not _SQLSTATE_RE.fullmatch(code):
        return failure_cls(
            f"could not classify database error: {message}",
            kind=FailureKind.UNCLASSIFIED,
            cause=error,
        )
    if code in COLUMN_COUNT_STATES:
        return failure_cls(
            "column count doesn't match value count",
            kind=FailureKind.COLUMN_COUNT,
            cause=error,
        )
    if code in SYNTAX_STATES:
        return failure_cls(
            f"syntax error near: {_syntax_excerpt(message)}",
            kind=FailureKind.SYNTAX,
            cause=error,
        )
    if code in UNKNOWN_OBJECT_STATES:
        return failure_cls(message, kind=FailureKind.UNKNOWN_OBJECT, cause=error)
    if code in UNCERTAIN_STATES:
        return failure_cls(
            f"likely a type mismatch in an insert/update: {message}",
            kind=FailureKind.LIKELY_TYPE_MISMATCH,
            cause=error,
        )
    return failure_cls(f"{message} (SQLSTATE {code})", kind=FailureKind.GENERIC, cause=error)


def _with_article(name: str) -> str:
    article = "an" if name.startswith(tuple("aeiou")) else "a"
    return f"{article} {name}"


def classify_mismatch(
    requested_type: ColumnType | str, statement: Statement, error: BackendError
) -> StepwiseError:
    """Explain a failed typed read using the column's declared type.

    Looks up the ordinal most recently read and asks the backend what type
    that column really is. Falls back to ``classify`` if the lookup fails.
    """
    ordinal = statement.read_ordinal.current()
    try:
        actual = statement.column_type_name(ordinal)
    except ReadFailure:
        logger.debug("Type lookup failed for column %d", ordinal, exc_info=True)
        return classify(error, ReadFailure)
    return ReadFailure(
        f"column {ordinal} is not {_with_article(str(requested_type))}; "
        f"database reports it is {type_display_name(actual)}.",
        kind=FailureKind.TYPE_MISMATCH,
        cause=error,
    )
