"""Configuration models for the prerender service."""

import logging
import re
from functools import lru_cache
from pathlib import Path
from typing import Annotated, Any
from urllib.parse import urlparse

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)

from prerender.config.constants import (
    DEFAULT_BLACKLISTED_REQUEST_URLS,
    DEFAULT_BOT_USER_AGENTS,
    DEFAULT_CACHE_MAX_AGE_DAYS,
    DEFAULT_IGNORED_QUERY_PARAMETERS,
    DEFAULT_PRERENDERABLE_EXTENSIONS,
    DEFAULT_PRERENDERABLE_PATH_PATTERNS,
    DEFAULT_TIMEOUT_MS,
    ENV_PRODUCTION,
)
from prerender.config.errors import (
    InvalidConfigError,
    MismatchingConfigError,
    MissingConfigError,
)


SQLITE_URL_SCHEME = "sqlite"


@lru_cache(maxsize=256)
def compile_pattern(pattern: str) -> re.Pattern[str]:
    """Compile and memoize a path pattern."""
    return re.compile(pattern)


def _path_from_sqlite_url(url: str) -> Path:
    """Extract the database file path from a ``sqlite:///`` URL.

    ``sqlite:///var/db.sqlite`` is relative, ``sqlite:////var/db.sqlite``
    is absolute.
    """
    parsed = urlparse(url)
    if parsed.scheme != SQLITE_URL_SCHEME:
        msg = f"Unsupported database URL scheme '{parsed.scheme}', expected 'sqlite'"
        raise ValueError(msg)
    raw_path = parsed.path[1:] if parsed.path.startswith("/") else parsed.path
    if not raw_path:
        msg = "Database URL does not contain a file path"
        raise ValueError(msg)
    return Path(raw_path)


class DatabaseOptions(BaseModel):
    """Connection parameters for the snapshot database."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    path: Path | None = Field(default=None, description="SQLite database file")
    url: str | None = Field(default=None, description="sqlite:/// URL")
    connect_timeout_seconds: Annotated[float, Field(ge=0.0, le=600.0)] = 30.0
    poll_interval_seconds: Annotated[float, Field(gt=0.0, le=60.0)] = 1.0

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str | None) -> str | None:
        """Validate that the URL names a SQLite file."""
        if v is not None:
            _path_from_sqlite_url(v)
        return v

    @model_validator(mode="after")
    def validate_has_target(self) -> "DatabaseOptions":
        """Require at least one of path or url."""
        if self.path is None and self.url is None:
            msg = "database options must contain either 'path' or 'url'"
            raise ValueError(msg)
        return self

    def resolved_path(self) -> Path:
        """Get the database file path.

        Returns:
            Path from ``path`` if set, otherwise parsed from ``url``.
        """
        if self.path is not None:
            return self.path
        return _path_from_sqlite_url(self.url or "")


class PrerenderConfig(BaseModel):
    """Immutable operating parameters for the prerender pipeline.

    Every component receives this object explicitly; nothing reads it from
    global state.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    environment: Annotated[str, Field(min_length=1)] = ENV_PRODUCTION
    database: DatabaseOptions
    cache_max_age_days: Annotated[float, Field(ge=0.0)] = DEFAULT_CACHE_MAX_AGE_DAYS
    ignored_query_parameters: tuple[str, ...] = DEFAULT_IGNORED_QUERY_PARAMETERS
    log_file: Path | None = None
    browser_executable: Path | None = None
    prerenderable_path_patterns: tuple[str, ...] = DEFAULT_PRERENDERABLE_PATH_PATTERNS
    prerenderable_extensions: frozenset[str] = DEFAULT_PRERENDERABLE_EXTENSIONS
    bot_user_agents: frozenset[str] = DEFAULT_BOT_USER_AGENTS
    timeout_ms: Annotated[int, Field(gt=0)] = DEFAULT_TIMEOUT_MS
    whitelisted_request_urls: tuple[str, ...] = ()
    blacklisted_request_urls: tuple[str, ...] = DEFAULT_BLACKLISTED_REQUEST_URLS
    coalesce_renders: bool = False

    @field_validator("prerenderable_path_patterns")
    @classmethod
    def validate_patterns(cls, v: tuple[str, ...]) -> tuple[str, ...]:
        """Validate that every path pattern is a valid regex."""
        for pattern in v:
            try:
                compile_pattern(pattern)
            except re.error as e:
                msg = f"Invalid regex pattern '{pattern}': {e}"
                raise ValueError(msg) from e
        return v

    @field_validator("prerenderable_extensions")
    @classmethod
    def normalize_extensions(cls, v: frozenset[str]) -> frozenset[str]:
        """Lower-case extensions and strip a leading dot."""
        return frozenset(ext.strip().lower().removeprefix(".") for ext in v)

    @field_validator("bot_user_agents")
    @classmethod
    def normalize_user_agents(cls, v: frozenset[str]) -> frozenset[str]:
        """Lower-case bot user agents."""
        return frozenset(agent.lower() for agent in v)

    @field_validator("log_file")
    @classmethod
    def absolutize_log_file(cls, v: Path | None) -> Path | None:
        """Resolve a relative log file against the working directory."""
        if v is None or str(v) == "":
            return None
        return v if v.is_absolute() else Path.cwd() / v

    @property
    def is_production(self) -> bool:
        """Whether the service runs in the production environment."""
        return self.environment == ENV_PRODUCTION

    @property
    def log_level(self) -> int:
        """Default log level for the configured environment."""
        return logging.INFO if self.is_production else logging.DEBUG

    @property
    def path_regexps(self) -> list[re.Pattern[str]]:
        """Compiled path patterns."""
        return [compile_pattern(p) for p in self.prerenderable_path_patterns]

    @property
    def uses_whitelist(self) -> bool:
        """Whether the whitelist governs request interception."""
        return len(self.whitelisted_request_urls) > 0

    @property
    def interception_mode(self) -> str:
        """Name of the list governing request interception."""
        return "whitelist" if self.uses_whitelist else "blacklist"

    @property
    def cache_max_age_seconds(self) -> float:
        """Cache max age converted to seconds."""
        return self.cache_max_age_days * 86_400


def build_config(values: dict[str, Any], source: str = "config") -> PrerenderConfig:
    """Validate raw settings into a PrerenderConfig.

    Args:
        values: Raw settings keyed by PrerenderConfig field name.
        source: Description of where the settings came from.

    Returns:
        Validated, immutable configuration.

    Raises:
        MissingConfigError: If the database options are absent.
        InvalidConfigError: If any setting fails validation.
        MismatchingConfigError: If database path and url disagree.
    """
    if not values.get("database"):
        raise MissingConfigError("database")

    try:
        config = PrerenderConfig.model_validate(values)
    except ValidationError as e:
        raise InvalidConfigError.from_validation_error(e, source) from e

    db = config.database
    if db.path is not None and db.url is not None:
        if _path_from_sqlite_url(db.url) != db.path:
            raise MismatchingConfigError(
                "database.path",
                "database.url",
                "both are set but point at different files",
            )

    return config
