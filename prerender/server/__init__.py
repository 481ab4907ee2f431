"""HTTP adapter exposing the prerender service."""

from prerender.server.app import (
    HEALTH_PATH,
    REJECTED_HEADER,
    RenderMode,
    create_app,
    request_from_starlette,
)


__all__ = [
    "HEALTH_PATH",
    "REJECTED_HEADER",
    "RenderMode",
    "create_app",
    "request_from_starlette",
]
