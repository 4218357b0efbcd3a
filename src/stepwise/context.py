"""Shared connection and transaction coordination.

A ``Context`` owns the one connection its statements share, the auto-commit
flag, and the batch of statements collected for the next commit. Every
statement created on a context sees the same transaction state; there is
no per-statement isolation.

A process-wide default context (set by ``stepwise.connect()``) lets
statements be created without passing a context explicitly.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import TYPE_CHECKING

from stepwise.classifier import classify
from stepwise.db.backend import BackendError, Database
from stepwise.db.connection import create_connection
from stepwise.errors import ClosedStatementError, CommitFailure, ConnectFailure, RollbackFailure

if TYPE_CHECKING:
    from stepwise.models.settings import ConnectionSettings
    from stepwise.statement import Statement

logger = logging.getLogger(__name__)

_default_context: Context | None = None


class Context:
    """A shared connection plus its transaction state.

    Starts in auto-commit mode, like a fresh DB-API/JDBC connection.
    """

    def __init__(self, database: Database | None = None) -> None:
        """Initialize around an open backend connection (or none yet)."""
        self._database = database
        self._auto_commit = True
        self._pending: list[Statement] = []
        self._poisoned = False

    @classmethod
    def connect(cls, url: str, user: str = "", password: str = "") -> Context:
        """Open a connection from a URL and wrap it in a new context."""
        return cls(create_connection(url, user, password))

    @classmethod
    def from_settings(cls, settings: ConnectionSettings) -> Context:
        """Open a connection from validated connection settings."""
        return cls.connect(settings.url, settings.user, settings.password)

    @property
    def connected(self) -> bool:
        """Whether the context holds a connection."""
        return self._database is not None

    @property
    def database(self) -> Database:
        """The shared connection.

        Raises ConnectFailure when there is none, and RollbackFailure when a
        failed rollback left its transaction state unknown.
        """
        if self._database is None:
            raise ConnectFailure("not connected to a database")
        if self._poisoned:
            raise RollbackFailure(
                "connection is in an unknown transaction state after a failed rollback;"
                " reconnect before using it again"
            )
        return self._database

    @property
    def auto_commit(self) -> bool:
        """Whether each statement commits as soon as it executes."""
        return self._auto_commit

    @property
    def pending(self) -> tuple[Statement, ...]:
        """Statements collected for the next ``commit_collected()``."""
        return tuple(self._pending)

    @property
    def poisoned(self) -> bool:
        """True after a rollback failed; the connection must not be reused."""
        return self._poisoned

    def statement(self, query: str) -> Statement:
        """Prepare a statement on this context."""
        from stepwise.statement import Statement

        return Statement(query, self)

    def set_auto_commit(self, enabled: bool) -> None:
        """Turn auto-commit on or off for the shared connection.

        Turning it on commits any transaction that is still open.
        """
        database = self.database
        try:
            database.set_auto_commit(enabled)
        except BackendError as exc:
            raise classify(exc, CommitFailure) from exc
        self._auto_commit = enabled
        logger.info("Auto-commit %s", "enabled" if enabled else "disabled")

    def collect(self, statement: Statement) -> None:
        """Add a statement to the batch for the next ``commit_collected()``.

        Nothing runs until the batch is committed.
        """
        self._pending.append(statement)

    def commit_batch(self, statements: Iterable[Statement]) -> None:
        """Execute statements in order and commit them as one unit.

        If any statement fails the whole transaction is rolled back and the
        triggering error is raised as a classified CommitFailure. Under
        auto-commit each statement commits as it runs, so only the
        statements after the failing one are skipped.

        Raises CommitFailure, before running anything, if a statement was
        prepared on another context.
        """
        batch = list(statements)
        if not batch:
            return
        for statement in batch:
            if statement.closed:
                raise ClosedStatementError(f"cannot commit a closed statement: {statement.query}")
            if statement.context is not self:
                raise CommitFailure(f"statement belongs to another context: {statement.query}")

        database = self.database
        try:
            for statement in batch:
                statement._run()
            if not self._auto_commit:
                database.commit()
        except BackendError as exc:
            logger.warning("Batch of %d statement(s) failed, rolling back: %s", len(batch), exc)
            self._rollback_after(exc)
            raise classify(exc, CommitFailure) from exc
        logger.info("Committed batch of %d statement(s)", len(batch))

    def commit_collected(self) -> None:
        """Commit every collected statement, in collection order.

        The batch is cleared before it runs, so a failed batch is never
        retried by a later call.
        """
        batch = self._pending
        self._pending = []
        self.commit_batch(batch)

    def commit(self) -> None:
        """Commit work left open by ``Statement.execute()`` with auto-commit off."""
        database = self.database
        try:
            database.commit()
        except BackendError as exc:
            self._rollback_after(exc)
            raise classify(exc, CommitFailure) from exc

    def rollback(self) -> None:
        """Discard the open transaction."""
        database = self.database
        try:
            database.rollback()
        except BackendError as exc:
            self._poisoned = True
            logger.exception("Rollback failed; connection state unknown")
            raise RollbackFailure(f"rollback failed: {exc.message}", cause=exc) from exc

    def _rollback_after(self, error: BackendError) -> None:
        """Roll back after ``error``; a failing rollback is fatal."""
        try:
            self.database.rollback()
        except BackendError as exc:
            self._poisoned = True
            logger.exception("Rollback after %r failed; connection state unknown", error)
            raise RollbackFailure(
                f"rollback failed after '{error.message}': {exc.message}", cause=exc
            ) from exc
        logger.info("Rolled back after: %s", error.message)

    def close(self) -> None:
        """Close the connection and forget collected statements."""
        self._pending.clear()
        if self._database is not None:
            self._database.close()
            self._database = None
        self._poisoned = False

    def __enter__(self) -> Context:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


def get_context() -> Context:
    """Return the process-wide default context."""
    if _default_context is None:
        raise ConnectFailure("not connected; call stepwise.connect() first")
    return _default_context


def set_context(context: Context | None) -> Context | None:
    """Install a new default context and return the one it replaces."""
    global _default_context
    previous = _default_context
    _default_context = context
    return previous
