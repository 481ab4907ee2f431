"""HTTP front end for the prerender service."""

import uuid
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from enum import Enum

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import HTMLResponse, JSONResponse, PlainTextResponse, Response

from prerender import __version__
from prerender.config.constants import COMPONENT_SERVER
from prerender.observability.logging import bind_request_context, clear_request_context
from prerender.request.models import InboundRequest
from prerender.service.errors import ServiceNotReadyError
from prerender.service.service import PrerenderService
from prerender.service.state_machine import ServiceState
from prerender.store.errors import StoreConnectionError


logger = structlog.get_logger()

HEALTH_PATH = "/_prerender/health"
REJECTED_HEADER = "X-Prerender-Rejected"
REQUEST_ID_HEADER = "x-request-id"


class RenderMode(str, Enum):
    """How the server decides what to render.

    - SMART: classify every request and only render eligible ones
    - ALWAYS: render every request; an upstream proxy already filtered them
    """

    SMART = "smart"
    ALWAYS = "always"


def request_from_starlette(request: Request) -> InboundRequest:
    """Adapt a Starlette request into an InboundRequest.

    The request target keeps its original percent-encoding.

    Args:
        request: Incoming Starlette request.

    Returns:
        Framework-neutral request.
    """
    raw_path = request.scope.get("raw_path")
    path = raw_path.decode("latin-1") if raw_path else request.url.path
    query = request.url.query
    target = f"{path}?{query}" if query else path

    encrypted = request.url.scheme in ("https", "wss")
    server = request.scope.get("server")
    local_port = server[1] if server and server[1] else (443 if encrypted else 80)

    headers = {key: request.headers.getlist(key) for key in request.headers.keys()}

    return InboundRequest(
        method=request.method,
        url=target,
        headers=headers,
        local_port=local_port,
        encrypted=encrypted,
    )


def create_app(
    service: PrerenderService,
    mode: RenderMode | str = RenderMode.SMART,
    manage_lifecycle: bool = True,
) -> FastAPI:
    """Build the ASGI application.

    Args:
        service: Prerender service answering requests.
        mode: Whether to classify requests (smart) or render all (always).
        manage_lifecycle: Start and stop the service with the application.

    Returns:
        Configured FastAPI application.
    """
    render_mode = RenderMode(mode)
    log = logger.bind(component=COMPONENT_SERVER, mode=render_mode.value)

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        if manage_lifecycle:
            await service.start()
        log.info("server_ready")
        try:
            yield
        finally:
            if manage_lifecycle:
                await service.stop()

    app = FastAPI(
        title="prerender",
        version=__version__,
        lifespan=lifespan,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    app.state.service = service
    app.state.mode = render_mode

    async def not_ready(_: Request, exc: Exception) -> JSONResponse:
        log.warning("request_while_unavailable", error=str(exc))
        return JSONResponse({"error": str(exc)}, status_code=503)

    app.add_exception_handler(ServiceNotReadyError, not_ready)
    app.add_exception_handler(StoreConnectionError, not_ready)

    @app.get(HEALTH_PATH)
    async def health() -> JSONResponse:
        status_code = 200 if service.state == ServiceState.RUNNING else 503
        return JSONResponse(service.health(), status_code=status_code)

    @app.get("/{path:path}")
    async def prerender(request: Request) -> Response:
        inbound = request_from_starlette(request)
        bind_request_context(
            request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex[:12]
        )
        try:
            if render_mode is RenderMode.SMART:
                eligibility = service.should_handle(inbound)
                if not eligibility.accepted:
                    reason = eligibility.reason.value if eligibility.reason else ""
                    return PlainTextResponse(
                        "Not prerendered",
                        status_code=404,
                        headers={REJECTED_HEADER: reason},
                    )

            snapshot = await service.handle(inbound)
            log.info(
                "request_served",
                url=snapshot.url,
                status=snapshot.status,
                persisted=snapshot.is_persisted,
            )
            return HTMLResponse(
                snapshot.body,
                status_code=snapshot.status,
                headers=snapshot.headers_for_response(),
            )
        finally:
            clear_request_context()

    return app
