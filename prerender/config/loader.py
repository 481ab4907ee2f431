"""Configuration loader for YAML files and environment overrides."""

import hashlib
import json
import time
from enum import Enum, auto
from pathlib import Path
from typing import Any

import structlog
import yaml
from pydantic import ValidationError

from prerender.config.constants import COMPONENT_CONFIG
from prerender.config.errors import ConfigError, ConfigStateError, InvalidConfigError
from prerender.config.models import PrerenderConfig, build_config
from prerender.config.settings import PrerenderSettings


logger = structlog.get_logger()


class ConfigState(Enum):
    """Progress of a single ConfigLoader."""

    UNLOADED = auto()
    LOADING = auto()
    VALIDATED = auto()
    READY = auto()
    FAILED = auto()


# States each step may be entered from. FAILED and READY are final.
_ENTERED_FROM: dict[ConfigState, frozenset[ConfigState]] = {
    ConfigState.LOADING: frozenset({ConfigState.UNLOADED}),
    ConfigState.VALIDATED: frozenset({ConfigState.LOADING}),
    ConfigState.READY: frozenset({ConfigState.VALIDATED}),
    ConfigState.FAILED: frozenset({ConfigState.LOADING, ConfigState.VALIDATED}),
}


def _merge(base: dict[str, Any], overrides: dict[str, Any]) -> dict[str, Any]:
    """Merge overrides into base, one level deep for mappings."""
    merged = dict(base)
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = {**merged[key], **value}
        else:
            merged[key] = value
    return merged


class ConfigLoader:
    """Loads and validates the prerender configuration.

    A loader is used once: UNLOADED -> LOADING -> VALIDATED -> READY, or
    FAILED from any step after loading begins.

    Settings come from an optional YAML file whose keys are PrerenderConfig
    field names, overlaid by ``PRERENDER_*`` environment variables.
    """

    def __init__(self, settings: PrerenderSettings | None = None) -> None:
        """Initialize the loader.

        Args:
            settings: Environment settings; read from the process if omitted.
        """
        self._settings = settings
        self._state = ConfigState.UNLOADED
        self._file_checksum: str | None = None
        self._validation_errors: list[dict[str, str]] = []
        self._validation_duration_ms: float = 0

    @property
    def state(self) -> ConfigState:
        """Get the current loader state."""
        return self._state

    @property
    def file_checksum(self) -> str | None:
        """Get SHA-256 checksum of the loaded file."""
        return self._file_checksum

    @property
    def validation_errors(self) -> list[dict[str, str]]:
        """Get validation errors if any."""
        return self._validation_errors.copy()

    def _enter(self, state: ConfigState) -> None:
        if self._state not in _ENTERED_FROM[state]:
            raise ConfigStateError(self._state.name, state.name)
        self._state = state

    def _load_yaml_file(self, file_path: Path) -> dict[str, Any]:
        """Load a YAML file and record its checksum.

        Raises:
            FileNotFoundError: If file does not exist.
            yaml.YAMLError: If YAML parsing fails.
        """
        content_bytes = file_path.read_bytes()
        self._file_checksum = hashlib.sha256(content_bytes).hexdigest()
        parsed = yaml.safe_load(content_bytes.decode("utf-8")) or {}
        if not isinstance(parsed, dict):
            msg = f"Top-level YAML value in {file_path} must be a mapping"
            raise yaml.YAMLError(msg)
        return parsed

    def _environment_overrides(self) -> dict[str, Any]:
        """Read ``PRERENDER_*`` overrides.

        Raises:
            InvalidConfigError: If a variable holds a value of the wrong type.
        """
        if self._settings is None:
            try:
                self._settings = PrerenderSettings()
            except ValidationError as e:
                raise InvalidConfigError.from_validation_error(e, "environment") from e
        return self._settings.overrides()

    def load(self, config_path: Path | None = None) -> PrerenderConfig:
        """Load and validate the configuration.

        Args:
            config_path: Optional path to a YAML configuration file.

        Returns:
            Validated PrerenderConfig.

        Raises:
            ConfigError: If the file, the environment or the merged values
                are invalid.
            ConfigStateError: If the loader was already used.
        """
        start_time = time.perf_counter()
        self._enter(ConfigState.LOADING)
        source = str(config_path) if config_path else "environment"
        log = logger.bind(component=COMPONENT_CONFIG, source=source)

        try:
            values: dict[str, Any] = {}
            if config_path is not None:
                log.info("loading_config_file", file_path=str(config_path))
                values = self._load_yaml_file(config_path)

            values = _merge(values, self._environment_overrides())

            config = build_config(values, source=source)
            self._enter(ConfigState.VALIDATED)

            self._validation_duration_ms = (time.perf_counter() - start_time) * 1000
            log.info(
                "config_validation_complete",
                file_sha256=self._file_checksum,
                config_validation_duration_ms=round(self._validation_duration_ms, 2),
            )

            self._enter(ConfigState.READY)
            return config

        except FileNotFoundError as e:
            self._fail("file", str(e), "file_not_found", log)
            raise InvalidConfigError(
                f"Configuration file not found: {config_path}",
                errors=self._validation_errors.copy(),
            ) from e

        except yaml.YAMLError as e:
            self._fail("yaml", str(e), "yaml_parse_error", log)
            raise InvalidConfigError(
                f"Invalid YAML in {config_path}",
                errors=self._validation_errors.copy(),
            ) from e

        except InvalidConfigError as e:
            self._enter(ConfigState.FAILED)
            self._validation_errors.extend(e.errors)
            log.error(
                "config_validation_failed",
                validation_error_count=len(e.errors),
                errors=e.errors,
            )
            raise

        except ConfigError as e:
            self._fail("config", str(e), "value_error", log)
            raise

    def _fail(
        self,
        loc: str,
        msg: str,
        error_type: str,
        log: structlog.stdlib.BoundLogger,
    ) -> None:
        """Record a failure and move to FAILED."""
        self._enter(ConfigState.FAILED)
        self._validation_errors.append({"loc": loc, "msg": msg, "type": error_type})
        log.error("config_load_failed", error_type=error_type, error=msg)

    def get_validation_summary_json(self) -> str:
        """Get validation summary as JSON string with stable ordering."""
        return json.dumps(
            {
                "state": self._state.name,
                "file_sha256": self._file_checksum,
                "validation_error_count": len(self._validation_errors),
                "validation_errors": self._validation_errors,
                "validation_duration_ms": self._validation_duration_ms,
            },
            sort_keys=True,
            indent=2,
        )


def load_config(
    config_path: Path | None = None,
    settings: PrerenderSettings | None = None,
) -> PrerenderConfig:
    """Load configuration from a YAML file and the environment.

    Args:
        config_path: Optional YAML configuration file.
        settings: Optional pre-built environment settings.

    Returns:
        Validated PrerenderConfig.
    """
    return ConfigLoader(settings).load(config_path)
