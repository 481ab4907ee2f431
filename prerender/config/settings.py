"""Environment overrides powered by Pydantic BaseSettings."""

from pathlib import Path
from typing import Any

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from prerender.config.constants import ENV_PREFIX


class PrerenderSettings(BaseSettings):
    """Settings read from ``PRERENDER_*`` environment variables or ``.env``.

    Only values that are actually set override the configuration file.
    """

    model_config = SettingsConfigDict(
        env_prefix=ENV_PREFIX,
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    environment: str | None = Field(default=None)
    database_path: Path | None = Field(default=None)
    database_url: str | None = Field(default=None)
    cache_max_age_days: float | None = Field(default=None)
    log_file: Path | None = Field(default=None)
    browser_executable: Path | None = Field(default=None)
    timeout_ms: int | None = Field(default=None)

    def overrides(self) -> dict[str, Any]:
        """Return the settings that are set, keyed like PrerenderConfig.

        Returns:
            Partial configuration mapping.
        """
        values: dict[str, Any] = {}
        for key in (
            "environment",
            "cache_max_age_days",
            "log_file",
            "browser_executable",
            "timeout_ms",
        ):
            value = getattr(self, key)
            if value is not None:
                values[key] = value

        database: dict[str, Any] = {}
        if self.database_path is not None:
            database["path"] = self.database_path
        if self.database_url is not None:
            database["url"] = self.database_url
        if database:
            values["database"] = database

        return values


def get_settings() -> PrerenderSettings:
    """Get a settings instance."""
    return PrerenderSettings()
