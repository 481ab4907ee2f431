"""Domain exceptions for the snapshot store.

Infrastructure failures (the database cannot be reached or migrated) are
kept apart from write failures so callers can decide which ones are fatal.
"""

from prerender.errors import PrerenderError


class StoreError(PrerenderError):
    """Base exception for all snapshot store errors."""


class StoreConnectionError(StoreError):
    """Raised when the database is not connected or cannot be reached."""

    def __init__(self, message: str = "Database not connected") -> None:
        """Initialize the connection error.

        Args:
            message: Human-readable error message.
        """
        super().__init__(message)


class SnapshotPersistError(StoreError):
    """Raised when writing a snapshot fails."""

    def __init__(self, url: str, message: str) -> None:
        """Initialize the persist error.

        Args:
            url: Cache key of the snapshot that could not be written.
            message: Human-readable error message.
        """
        self.url = url
        super().__init__(f"Failed to persist snapshot for {url}: {message}")


class MigrationError(StoreError):
    """Raised when a schema migration fails."""

    def __init__(self, version: int, message: str) -> None:
        """Initialize the migration error.

        Args:
            version: The migration version that failed.
            message: Human-readable error message.
        """
        self.version = version
        super().__init__(f"Migration {version} failed: {message}")
