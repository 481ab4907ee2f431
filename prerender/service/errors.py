"""Service exceptions."""

from prerender.errors import PrerenderError


class ServiceError(PrerenderError):
    """Base exception for orchestration service errors."""


class ServiceNotReadyError(ServiceError):
    """Raised when a request arrives while the service is not running."""

    def __init__(self, state_name: str) -> None:
        """Initialize the error.

        Args:
            state_name: Name of the state the service is in.
        """
        self.state_name = state_name
        super().__init__(
            f"Service is {state_name}, not RUNNING. Did you call start()?"
        )
