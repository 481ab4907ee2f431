"""Page renderer producing snapshots."""

import time

import structlog

from prerender import __version__
from prerender.config.constants import COMPONENT_RENDERER
from prerender.config.models import PrerenderConfig
from prerender.renderer.engine import BrowserEngine, PageOptions, PlaywrightEngine
from prerender.renderer.errors import RendererNotReadyError
from prerender.renderer.interception import InterceptionPolicy
from prerender.renderer.markup import (
    STATUS_NO_RESPONSE,
    is_metadata_response,
    parse_html,
    resolve_status,
    strip_markup,
)
from prerender.renderer.metrics import RenderMetrics
from prerender.store.models import Snapshot


logger = structlog.get_logger()

USER_AGENT = f"prerender/{__version__}"


class Renderer:
    """Renders URLs in a headless browser into script-free snapshots.

    Render failures never escape ``render``: they are logged and turned
    into an empty snapshot with status 400, which is never cached.
    """

    def __init__(
        self,
        config: PrerenderConfig,
        engine: BrowserEngine | None = None,
        metrics: RenderMetrics | None = None,
    ) -> None:
        """Initialize the renderer.

        Args:
            config: Prerender configuration.
            engine: Browser engine; Chromium via Playwright if omitted.
            metrics: Metrics sink; the shared instance if omitted.
        """
        self._config = config
        self._engine = engine or PlaywrightEngine(config.browser_executable)
        self._metrics = metrics or RenderMetrics.get_instance()
        self._policy = InterceptionPolicy.from_config(config)
        self._log = logger.bind(component=COMPONENT_RENDERER)

    @property
    def is_ready(self) -> bool:
        """Whether the browser is running."""
        return self._engine.is_running

    @property
    def policy(self) -> InterceptionPolicy:
        """Get the request interception policy."""
        return self._policy

    @property
    def metrics(self) -> RenderMetrics:
        """Get the metrics sink."""
        return self._metrics

    async def start(self) -> None:
        """Launch the browser."""
        await self._engine.start()
        self._log.info("renderer_started", interception_mode=self._policy.mode)

    async def stop(self) -> None:
        """Close the browser."""
        await self._engine.stop()
        self._log.info("renderer_stopped")

    def _page_options(self) -> PageOptions:
        return PageOptions(
            user_agent=USER_AGENT,
            timeout_ms=self._config.timeout_ms,
            allows=self._policy.allows,
        )

    async def render(self, url: str, tags: list[str] | None = None) -> Snapshot:
        """Render a URL.

        Args:
            url: Canonical URL to render.
            tags: Labels attached to the snapshot.

        Returns:
            Snapshot of the rendered page. On any failure, a snapshot with
            an empty body and status 400.

        Raises:
            RendererNotReadyError: If the renderer has not been started.
        """
        if not self.is_ready:
            raise RendererNotReadyError

        log = self._log.bind(url=url)
        start = time.perf_counter()

        try:
            page = await self._engine.load(url, self._page_options())

            stripped = 0
            if page.status is None or is_metadata_response(page.headers):
                status = resolve_status(page.status, page.headers)
                body = ""
            else:
                soup = parse_html(page.html) if page.html else None
                status = resolve_status(page.status, page.headers, soup)
                body = ""
                if soup is not None:
                    stripped = strip_markup(soup)
                    body = str(soup)

        except Exception as e:
            elapsed_ms = int((time.perf_counter() - start) * 1000)
            self._metrics.record_failure(elapsed_ms)
            log.error(
                "render_failed",
                error=str(e),
                error_type=type(e).__name__,
                elapsed_ms=elapsed_ms,
            )
            return Snapshot(
                url=url,
                body="",
                status=STATUS_NO_RESPONSE,
                response_time_ms=elapsed_ms,
                tags=tags or [],
            )

        elapsed_ms = int((time.perf_counter() - start) * 1000)
        self._metrics.record_render(
            status=status,
            duration_ms=elapsed_ms,
            body_bytes=len(body.encode("utf-8")),
            stripped=stripped,
            timed_out=page.timed_out,
        )
        log.info(
            "render_complete",
            status=status,
            upstream_status=page.status,
            body_bytes=len(body),
            elements_stripped=stripped,
            timed_out=page.timed_out,
            elapsed_ms=elapsed_ms,
        )
        return Snapshot(
            url=url,
            body=body,
            status=status,
            response_time_ms=elapsed_ms,
            tags=tags or [],
        )
