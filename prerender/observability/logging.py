"""Structured logging configuration."""

import json
import logging
import sys
from pathlib import Path
from typing import Any, TextIO

import structlog


class LogFileWriter:
    """structlog processor that appends every event to a file as JSON.

    The event dict is passed through unchanged so the console renderer
    still runs afterwards.
    """

    def __init__(self, path: Path) -> None:
        """Open the log file for appending.

        Args:
            path: Log file location; parent directories are created.
        """
        path.parent.mkdir(parents=True, exist_ok=True)
        self._path = path
        self._file: TextIO | None = path.open("a", encoding="utf-8")

    @property
    def path(self) -> Path:
        """Get the log file path."""
        return self._path

    @property
    def is_open(self) -> bool:
        """Whether the file is still accepting events."""
        return self._file is not None

    def __call__(
        self, logger: Any, method_name: str, event_dict: dict[str, Any]
    ) -> dict[str, Any]:
        """Write the event and return it for the next processor."""
        if self._file is not None:
            line = json.dumps(event_dict, default=str, sort_keys=True)
            try:
                self._file.write(line + "\n")
                self._file.flush()
            except OSError as e:
                self.close()
                print(  # noqa: T201
                    f"log file {self._path} disabled after write error: {e}",
                    file=sys.stderr,
                )
        return event_dict

    def close(self) -> None:
        """Close the underlying file."""
        if self._file is not None:
            self._file.close()
            self._file = None


_file_writer: LogFileWriter | None = None


def configure_logging(
    level: int = logging.INFO,
    output: TextIO = sys.stderr,
    json_format: bool = True,
    log_file: Path | None = None,
) -> None:
    """Configure structured logging for the application.

    Sets up structlog with JSON output format and standard processors
    for timestamps, log levels, and context binding. When ``log_file`` is
    given, every event is also appended to that file as a JSON line.

    Args:
        level: Logging level (default: INFO).
        output: Output stream (default: stderr).
        json_format: Whether to use JSON format (default: True).
        log_file: Optional file that receives a copy of every event.
    """
    global _file_writer  # noqa: PLW0603

    shutdown_logging()

    processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if log_file is not None:
        _file_writer = LogFileWriter(log_file)
        processors.append(_file_writer)

    if json_format:
        processors.append(structlog.processors.JSONRenderer(sort_keys=True))
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=output),
        cache_logger_on_first_use=False,
    )

    # Route standard library logging (uvicorn, playwright) to the same stream
    logging.basicConfig(
        format="%(message)s",
        stream=output,
        level=level,
        force=True,
    )


def shutdown_logging() -> None:
    """Close the log file sink, if one is open."""
    global _file_writer  # noqa: PLW0603

    if _file_writer is not None:
        _file_writer.close()
        _file_writer = None


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a bound logger instance.

    Args:
        name: Optional logger name.

    Returns:
        Bound logger instance.
    """
    logger: structlog.stdlib.BoundLogger = structlog.get_logger(name)
    return logger


def bind_request_context(request_id: str) -> None:
    """Bind request context to all subsequent log messages.

    Args:
        request_id: Unique request identifier.
    """
    structlog.contextvars.bind_contextvars(request_id=request_id)


def clear_request_context() -> None:
    """Clear request context from log messages."""
    structlog.contextvars.unbind_contextvars("request_id")
