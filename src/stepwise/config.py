"""Environment-variable and property-file configuration."""

import io
import logging
import os
import sys
from importlib import resources
from pathlib import Path

from dotenv import dotenv_values
from pydantic import ValidationError

from stepwise.errors import ConnectFailure
from stepwise.models.settings import ConnectionSettings

logger = logging.getLogger(__name__)

REQUIRED_KEYS = ("url", "user", "password")


def get_database_url() -> str:
    """Return the database URL from STEPWISE_DATABASE_URL."""
    return os.environ.get("STEPWISE_DATABASE_URL", "sqlite:///:memory:")


def get_database_user() -> str:
    """Return the database user from STEPWISE_DATABASE_USER."""
    return os.environ.get("STEPWISE_DATABASE_USER", "")


def get_database_password() -> str:
    """Return the database password from STEPWISE_DATABASE_PASSWORD."""
    return os.environ.get("STEPWISE_DATABASE_PASSWORD", "")


def get_log_level() -> str:
    """Return the logging level from STEPWISE_LOG_LEVEL."""
    return os.environ.get("STEPWISE_LOG_LEVEL", "WARNING")


def configure_logging() -> None:
    """Send log records to stderr at the configured level."""
    logging.basicConfig(
        level=getattr(logging, get_log_level().upper(), logging.WARNING),
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
        stream=sys.stderr,
    )


def settings_from_env() -> ConnectionSettings:
    """Build connection settings from the STEPWISE_DATABASE_* variables."""
    return _validate(
        {
            "url": get_database_url(),
            "user": get_database_user(),
            "password": get_database_password(),
        },
        "environment",
    )


def load_settings_file(path: Path | str) -> ConnectionSettings:
    """Read connection settings from a ``key=value`` properties file.

    The file must define ``url``, ``user`` and ``password`` (the latter two
    may be empty). Raises ConnectFailure if the file or a key is missing.
    """
    path = Path(path).expanduser()
    if not path.is_file():
        raise ConnectFailure(f"connection settings file not found: {path}")
    values = dotenv_values(path, interpolate=False)
    logger.debug("Loaded connection settings from %s", path)
    return _from_properties(values, str(path))


def load_settings_resource(package: str, resource: str) -> ConnectionSettings:
    """Read connection settings from a properties file shipped in a package."""
    try:
        source = resources.files(package).joinpath(resource)
        if not source.is_file():
            raise ConnectFailure(f"connection settings resource not found: {package}/{resource}")
        text = source.read_text(encoding="utf-8")
    except ModuleNotFoundError as exc:
        raise ConnectFailure(f"no such package for settings resource: {package}") from exc
    values = dotenv_values(stream=io.StringIO(text), interpolate=False)
    logger.debug("Loaded connection settings from resource %s/%s", package, resource)
    return _from_properties(values, f"{package}/{resource}")


def _from_properties(values: dict[str, str | None], source: str) -> ConnectionSettings:
    missing = [key for key in REQUIRED_KEYS if key not in values]
    if missing:
        raise ConnectFailure(f"{source} is missing required key(s): {', '.join(missing)}")
    # A bare "key" line with no "=" parses as None
    cleaned = {key: value or "" for key, value in values.items() if key in REQUIRED_KEYS}
    return _validate(cleaned, source)


def _validate(values: dict[str, str], source: str) -> ConnectionSettings:
    try:
        return ConnectionSettings.model_validate(values)
    except ValidationError as exc:
        raise ConnectFailure(f"invalid connection settings in {source}: {exc}") from exc
