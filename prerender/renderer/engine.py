"""Headless browser engines."""

from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

import structlog
from playwright.async_api import (
    Browser,
    Playwright,
    Request,
    Response,
    Route,
    async_playwright,
)
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from prerender.config.constants import COMPONENT_RENDERER


logger = structlog.get_logger()

# Shadow DOM shims installed before any page script runs
SHADOW_DOM_INIT_SCRIPTS: tuple[str, ...] = (
    "if (window.customElements) customElements.forcePolyfill = true;",
    "ShadyDOM = { force: true };",
    "ShadyCSS = { shimcssproperties: true };",
)


@dataclass(frozen=True)
class PageOptions:
    """How a single page is loaded.

    Attributes:
        user_agent: User-Agent sent by the browser.
        timeout_ms: Navigation timeout in milliseconds.
        allows: Predicate deciding whether a request URL may load.
        init_scripts: Scripts evaluated before each document's own scripts.
    """

    user_agent: str
    timeout_ms: int
    allows: Callable[[str], bool] = lambda _url: True
    init_scripts: Sequence[str] = SHADOW_DOM_INIT_SCRIPTS


@dataclass(frozen=True)
class PageLoad:
    """Raw outcome of loading a page.

    Attributes:
        status: Status of the main navigation response, None if there was
            no response.
        headers: Lower-cased headers of the main navigation response.
        html: Serialized DOM, empty when there was no response.
        timed_out: Whether navigation hit the timeout before network idle.
    """

    status: int | None
    headers: dict[str, str] = field(default_factory=dict)
    html: str = ""
    timed_out: bool = False


class BrowserEngine(Protocol):
    """Loads pages in an isolated browser context.

    Implementations must release the context of every load, whether it
    succeeds or raises.
    """

    @property
    def is_running(self) -> bool:
        """Whether the browser is up."""
        ...

    async def start(self) -> None:
        """Launch the browser."""
        ...

    async def stop(self) -> None:
        """Close the browser."""
        ...

    async def load(self, url: str, options: PageOptions) -> PageLoad:
        """Navigate to a URL and capture the response and DOM."""
        ...


class PlaywrightEngine:
    """Chromium driven through Playwright.

    One browser is shared by every render; each load gets a fresh context
    so cookies, cache and storage never leak between pages.
    """

    def __init__(self, executable_path: Path | None = None) -> None:
        """Initialize the engine.

        Args:
            executable_path: Chromium binary to use instead of the bundled one.
        """
        self._executable_path = executable_path
        self._playwright: Playwright | None = None
        self._browser: Browser | None = None
        self._log = logger.bind(component=COMPONENT_RENDERER, engine="playwright")

    @property
    def is_running(self) -> bool:
        """Whether the browser is up."""
        return self._browser is not None

    async def start(self) -> None:
        """Launch Chromium.

        Starting a running engine is a no-op.
        """
        if self._browser is not None:
            return

        self._log.info(
            "browser_launching",
            executable_path=str(self._executable_path) if self._executable_path else None,
        )
        self._playwright = await async_playwright().start()
        try:
            self._browser = await self._playwright.chromium.launch(
                args=["--no-sandbox"],
                executable_path=self._executable_path,
            )
        except Exception:
            await self._playwright.stop()
            self._playwright = None
            raise

        self._log.info("browser_launched", version=self._browser.version)

    async def stop(self) -> None:
        """Close Chromium and the Playwright driver."""
        if self._browser is not None:
            self._log.info("browser_stopping")
            await self._browser.close()
            self._browser = None
        if self._playwright is not None:
            await self._playwright.stop()
            self._playwright = None
            self._log.info("browser_stopped")

    async def load(self, url: str, options: PageOptions) -> PageLoad:
        """Navigate to a URL and wait for the network to go idle.

        A navigation timeout is not fatal: the main response seen so far,
        if any, and the DOM as it stands are still returned.

        Args:
            url: Absolute URL to load.
            options: Page options.

        Returns:
            Captured response status, headers and serialized DOM.

        Raises:
            RuntimeError: If the engine has not been started.
        """
        if self._browser is None:
            msg = "Browser is not running"
            raise RuntimeError(msg)

        context = await self._browser.new_context(
            ignore_https_errors=True,
            user_agent=options.user_agent,
        )
        try:
            async def intercept(route: Route, request: Request) -> None:
                if options.allows(request.url):
                    await route.continue_()
                else:
                    self._log.debug("request_aborted", request_url=request.url)
                    await route.abort()

            await context.route("**/*", intercept)
            for script in options.init_scripts:
                await context.add_init_script(script)

            page = await context.new_page()
            navigations: list[Response] = []

            def on_response(response: Response) -> None:
                if (
                    response.request.is_navigation_request()
                    and response.frame == page.main_frame
                ):
                    navigations.append(response)

            page.on("response", on_response)

            timed_out = False
            try:
                response = await page.goto(
                    url,
                    timeout=options.timeout_ms,
                    wait_until="networkidle",
                )
            except PlaywrightTimeoutError:
                timed_out = True
                response = navigations[-1] if navigations else None
                self._log.warning(
                    "navigation_timeout",
                    url=url,
                    timeout_ms=options.timeout_ms,
                    response_captured=response is not None,
                )

            if response is None:
                return PageLoad(status=None, timed_out=timed_out)

            return PageLoad(
                status=response.status,
                headers={k.lower(): v for k, v in response.headers.items()},
                html=await page.content(),
                timed_out=timed_out,
            )
        finally:
            await context.close()
