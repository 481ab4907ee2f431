"""Renderer exceptions."""

from prerender.errors import PrerenderError


class RendererError(PrerenderError):
    """Base exception for renderer errors."""


class RendererNotReadyError(RendererError):
    """Raised when rendering is requested before the browser is started."""

    def __init__(
        self,
        message: str = "Renderer must be started before rendering. Call start() first.",
    ) -> None:
        """Initialize the error.

        Args:
            message: Human-readable error message.
        """
        super().__init__(message)
