"""Configuration loading and validation module."""

from prerender.config.errors import (
    ConfigError,
    ConfigStateError,
    InvalidConfigError,
    MismatchingConfigError,
    MissingConfigError,
)
from prerender.config.loader import ConfigLoader, ConfigState, load_config
from prerender.config.models import DatabaseOptions, PrerenderConfig, build_config
from prerender.config.settings import PrerenderSettings, get_settings


__all__ = [
    # Errors
    "ConfigError",
    "InvalidConfigError",
    "MismatchingConfigError",
    "MissingConfigError",
    # Loading
    "ConfigLoader",
    "ConfigState",
    "ConfigStateError",
    "load_config",
    # Models
    "DatabaseOptions",
    "PrerenderConfig",
    "build_config",
    # Settings
    "PrerenderSettings",
    "get_settings",
]
