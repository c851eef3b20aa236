"""Configuration management for graphlog.

Connection options are validated with pydantic. Environment-backed settings
are loaded with pydantic-settings so a transport can be built from
``GRAPHLOG_*`` variables or a ``.env`` file.
"""

import os
import re
from collections.abc import Mapping
from functools import lru_cache
from pathlib import Path
from threading import Lock
from typing import Any

from dotenv import load_dotenv
from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    SecretStr,
    ValidationError,
    field_validator,
)
from pydantic_settings import BaseSettings, SettingsConfigDict

_ENV_LOADED = False
_ENV_LOCK = Lock()

_LABEL_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
_REQUIRED_FIELDS = ("endpoint", "username", "password")


class ConfigurationError(Exception):
    """Exception raised when transport options are missing or invalid.

    Raised synchronously at construction. No database handle is created
    when this is raised.
    """

    pass


def _resolve_env_file() -> str | None:
    """Locate the .env file regardless of the current working directory.

    Preference order:
        1. GRAPHLOG_ENV_FILE environment variable (explicit override)
        2. Current working directory
    """
    override = os.getenv("GRAPHLOG_ENV_FILE")
    if override:
        override_path = Path(override).expanduser()
        if override_path.is_file():
            return str(override_path)

    cwd_candidate = Path.cwd() / ".env"
    if cwd_candidate.is_file():
        return str(cwd_candidate)

    return None


def ensure_env_loaded() -> None:
    """Load environment variables from disk exactly once."""
    global _ENV_LOADED

    with _ENV_LOCK:
        if _ENV_LOADED:
            return

        env_path = _resolve_env_file()
        if env_path:
            load_dotenv(env_path, override=False)

        _ENV_LOADED = True


class TransportOptions(BaseModel):
    """Connection options for a Neo4j log transport.

    Immutable once built. Accepts the camelCase spellings used by other
    logging ecosystems (``url``, ``minLevel``, ``nodeLabel``) as aliases.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    endpoint: str = Field(validation_alias=AliasChoices("endpoint", "url", "uri"))
    username: str = Field(validation_alias=AliasChoices("username", "user"))
    password: SecretStr
    min_level: str = Field(
        default="info",
        validation_alias=AliasChoices("min_level", "minLevel", "level"),
    )
    node_label: str = Field(
        default="Log",
        validation_alias=AliasChoices("node_label", "nodeLabel"),
    )
    silent: bool = False
    database: str | None = None

    @field_validator("endpoint", "username")
    @classmethod
    def _require_text(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("must not be empty")
        return value

    @field_validator("password")
    @classmethod
    def _require_secret(cls, value: SecretStr) -> SecretStr:
        if not value.get_secret_value().strip():
            raise ValueError("must not be empty")
        return value

    @field_validator("min_level", mode="before")
    @classmethod
    def _default_level(cls, value: Any) -> Any:
        if value is None or (isinstance(value, str) and not value.strip()):
            return "info"
        return value

    @field_validator("node_label", mode="before")
    @classmethod
    def _validate_label(cls, value: Any) -> Any:
        if value is None or value == "":
            return "Log"
        if not isinstance(value, str) or not _LABEL_PATTERN.match(value):
            raise ValueError(f"invalid node label {value!r}")
        return value

    @field_validator("silent", mode="before")
    @classmethod
    def _default_silent(cls, value: Any) -> Any:
        return False if value is None else value


def build_options(options: Mapping[str, Any] | None = None, **overrides: Any) -> TransportOptions:
    """Validate raw transport options.

    Args:
        options: Mapping of option names to values (snake_case or camelCase).
        **overrides: Keyword options, applied on top of ``options``.

    Returns:
        TransportOptions: Validated, frozen options.

    Raises:
        ConfigurationError: If endpoint, username or password is missing or
            empty, or if any other option is invalid.
    """
    raw: dict[str, Any] = dict(options or {})
    raw.update(overrides)

    try:
        return TransportOptions.model_validate(raw)
    except ValidationError as e:
        missing = sorted(
            {
                str(error["loc"][0])
                for error in e.errors()
                if error["loc"] and str(error["loc"][0]) in _REQUIRED_FIELDS
            }
        )
        if missing:
            raise ConfigurationError(
                "You have to define Neo4j endpoint, username and password! "
                f"Missing or empty: {', '.join(missing)}"
            ) from e
        raise ConfigurationError(f"Invalid transport options: {e}") from e


class GraphlogSettings(BaseSettings):
    """Environment-backed settings for graphlog.

    Every field maps to a ``GRAPHLOG_``-prefixed environment variable
    (``GRAPHLOG_ENDPOINT``, ``GRAPHLOG_PASSWORD``, ...).
    """

    model_config = SettingsConfigDict(
        env_prefix="GRAPHLOG_",
        case_sensitive=False,
        extra="ignore",
    )

    endpoint: str | None = None
    username: str | None = None
    password: SecretStr | None = None
    min_level: str = "info"
    node_label: str = "Log"
    silent: bool = False
    database: str | None = None

    # Level of graphlog's own diagnostic logging
    log_level: str = "INFO"

    def transport_options(self) -> dict[str, Any]:
        """Return the settings as raw transport options for ``build_options``."""
        return {
            "endpoint": self.endpoint,
            "username": self.username,
            "password": self.password.get_secret_value() if self.password else None,
            "min_level": self.min_level,
            "node_label": self.node_label,
            "silent": self.silent,
            "database": self.database,
        }


@lru_cache
def get_config() -> GraphlogSettings:
    """Return the cached environment settings.

    Loads the .env file on first call.
    """
    ensure_env_loaded()
    return GraphlogSettings()


# Export public API
__all__ = [
    "ConfigurationError",
    "GraphlogSettings",
    "TransportOptions",
    "build_options",
    "ensure_env_loaded",
    "get_config",
]
