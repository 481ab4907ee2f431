"""Observability module for structured logging."""

from prerender.observability.logging import (
    LogFileWriter,
    bind_request_context,
    clear_request_context,
    configure_logging,
    get_logger,
    shutdown_logging,
)


__all__ = [
    "LogFileWriter",
    "bind_request_context",
    "clear_request_context",
    "configure_logging",
    "get_logger",
    "shutdown_logging",
]
