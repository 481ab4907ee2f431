"""Configuration exceptions.

Configuration errors are raised synchronously while building or loading a
configuration and are fatal to startup.
"""

from pydantic import ValidationError

from prerender.errors import PrerenderError


class ConfigError(PrerenderError):
    """Base exception for configuration errors."""


class InvalidConfigError(ConfigError):
    """Raised when one or more settings have an invalid value.

    Attributes:
        errors: Structured error details (``loc``, ``msg``, ``type``).
    """

    def __init__(self, message: str, errors: list[dict[str, str]] | None = None) -> None:
        """Initialize the error.

        Args:
            message: Human-readable error message.
            errors: Optional structured error details.
        """
        self.errors = errors or []
        super().__init__(message)

    @classmethod
    def from_validation_error(
        cls, exc: ValidationError, source: str = "config"
    ) -> "InvalidConfigError":
        """Build an InvalidConfigError from a pydantic ValidationError.

        Args:
            exc: The pydantic validation error.
            source: Where the configuration came from (file path, "config").

        Returns:
            InvalidConfigError carrying flattened error details.
        """
        errors = [
            {
                "loc": ".".join(str(part) for part in error["loc"]),
                "msg": error["msg"],
                "type": error["type"],
            }
            for error in exc.errors()
        ]
        fields = ", ".join(e["loc"] or "<root>" for e in errors)
        return cls(
            f"Invalid configuration in {source}: {len(errors)} error(s) ({fields})",
            errors=errors,
        )


class MissingConfigError(ConfigError):
    """Raised when a required setting is absent."""

    def __init__(self, setting: str) -> None:
        """Initialize the error.

        Args:
            setting: Name of the missing setting.
        """
        self.setting = setting
        super().__init__(f"Missing required setting: {setting}")


class MismatchingConfigError(ConfigError):
    """Raised when two settings contradict each other."""

    def __init__(self, setting: str, other: str, message: str) -> None:
        """Initialize the error.

        Args:
            setting: The first conflicting setting.
            other: The second conflicting setting.
            message: Explanation of the conflict.
        """
        self.setting = setting
        self.other = other
        super().__init__(f"{setting} conflicts with {other}: {message}")


class ConfigStateError(ConfigError):
    """Raised when a loader step runs out of order, such as loading twice."""

    def __init__(self, current: str, attempted: str) -> None:
        self.current = current
        self.attempted = attempted
        super().__init__(f"Config loader cannot move from {current} to {attempted}")
