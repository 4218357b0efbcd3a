"""stepwise: prepared statements bound and read by call order.

Module-level functions work on a process-wide default context, so a script
can connect once and create statements without passing a context around:

    import stepwise

    stepwise.connect("sqlite:///shop.db")
    stepwise.set_auto_commit(False)
    stepwise.Statement("INSERT INTO products VALUES (?, ?)").bind(1).bind("Widget").collect()
    stepwise.commit_collected()
"""

from pathlib import Path

from stepwise import config
from stepwise.context import Context, get_context, set_context
from stepwise.errors import (
    BindFailure,
    ClosedStatementError,
    CommitFailure,
    ConnectFailure,
    FailureKind,
    ReadFailure,
    RollbackFailure,
    StepwiseError,
)
from stepwise.models.settings import ConnectionSettings
from stepwise.models.types import ColumnType
from stepwise.ordinal import Ordinal
from stepwise.statement import Statement, StatementState

__version__ = "0.1.0"


def connect(url: str, user: str = "", password: str = "") -> Context:
    """Connect and make the new context the process-wide default."""
    context = Context.connect(url, user, password)
    set_context(context)
    return context


def connect_with(settings: ConnectionSettings) -> Context:
    """Connect from validated settings and make it the default context."""
    return connect(settings.url, settings.user, settings.password)


def connect_by_file(path: Path | str) -> Context:
    """Connect using a ``url``/``user``/``password`` properties file."""
    return connect_with(config.load_settings_file(path))


def connect_by_resource(package: str, resource: str) -> Context:
    """Connect using a properties file shipped as a package resource."""
    return connect_with(config.load_settings_resource(package, resource))


def connect_from_env() -> Context:
    """Connect using the STEPWISE_DATABASE_* environment variables."""
    return connect_with(config.settings_from_env())


def set_auto_commit(enabled: bool) -> None:
    """Set auto-commit on the default context."""
    get_context().set_auto_commit(enabled)


def collect(statement: Statement) -> None:
    """Add a statement to the default context's pending batch."""
    get_context().collect(statement)


def commit(*statements: Statement) -> None:
    """Execute statements on the default context and commit them as one unit."""
    get_context().commit_batch(statements)


def commit_collected() -> None:
    """Commit the default context's pending batch."""
    get_context().commit_collected()


def disconnect() -> None:
    """Close the default context's connection, if any."""
    context = set_context(None)
    if context is not None:
        context.close()


__all__ = [
    "BindFailure",
    "ClosedStatementError",
    "ColumnType",
    "CommitFailure",
    "ConnectFailure",
    "ConnectionSettings",
    "Context",
    "FailureKind",
    "Ordinal",
    "ReadFailure",
    "RollbackFailure",
    "Statement",
    "StatementState",
    "StepwiseError",
    "collect",
    "commit",
    "commit_collected",
    "connect",
    "connect_by_file",
    "connect_by_resource",
    "connect_from_env",
    "connect_with",
    "disconnect",
    "get_context",
    "set_auto_commit",
]
