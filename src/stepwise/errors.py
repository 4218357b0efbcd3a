"""Typed failures raised by statements and contexts.

Every failure is unchecked (a ``RuntimeError``), carries a ``FailureKind``
from the classifier, and keeps the underlying ``BackendError`` as ``cause``
for callers that need the raw SQLSTATE.
"""

from __future__ import annotations

from enum import StrEnum

from stepwise.db.backend import BackendError


class FailureKind(StrEnum):
    """What the classifier made of a backend error."""

    UNCLASSIFIED = "unclassified"
    COLUMN_COUNT = "column_count"
    SYNTAX = "syntax"
    UNKNOWN_OBJECT = "unknown_object"
    LIKELY_TYPE_MISMATCH = "likely_type_mismatch"
    TYPE_MISMATCH = "type_mismatch"
    NO_RESULT = "no_result"
    GENERIC = "generic"


class StepwiseError(RuntimeError):
    """Base class for all stepwise failures."""

    def __init__(
        self,
        message: str,
        *,
        kind: FailureKind = FailureKind.GENERIC,
        cause: BackendError | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.kind = kind
        self.cause = cause

    @property
    def sqlstate(self) -> str | None:
        """SQLSTATE of the underlying backend error, if any."""
        return self.cause.sqlstate if self.cause is not None else None


class ConnectFailure(StepwiseError):
    """No usable connection: not connected, bad URL or settings, or refused."""


class BindFailure(StepwiseError):
    """The backend rejected a bound parameter."""


class ReadFailure(StepwiseError):
    """The backend rejected a column read or failed to run a query."""


class CommitFailure(StepwiseError):
    """A write or commit failed; a rollback was attempted."""


class RollbackFailure(StepwiseError):
    """Rolling back failed; the connection's transaction state is unknown.

    The context that raised this refuses further work until it is
    reconnected.
    """


class ClosedStatementError(StepwiseError):
    """A statement was used after ``close()``."""
