"""Prerender orchestration service."""

from types import TracebackType

import structlog

from prerender.config.constants import COMPONENT_SERVICE
from prerender.config.models import PrerenderConfig
from prerender.observability.logging import configure_logging, shutdown_logging
from prerender.renderer.engine import BrowserEngine
from prerender.renderer.renderer import Renderer
from prerender.request.classifier import Eligibility, EligibilityClassifier
from prerender.request.models import InboundRequest
from prerender.request.url import canonicalize_url, resolve_cache_key
from prerender.service.errors import ServiceNotReadyError
from prerender.service.inflight import InflightRenders
from prerender.service.metrics import ServiceMetrics
from prerender.service.state_machine import ServiceState, ServiceStateMachine
from prerender.store.errors import SnapshotPersistError
from prerender.store.models import Snapshot
from prerender.store.store import SnapshotStore


logger = structlog.get_logger()


class PrerenderService:
    """Serves bot requests from cached snapshots, rendering on demand.

    Lifecycle: STOPPED -> STARTING -> RUNNING -> STOPPING -> STOPPED.
    Starting configures logging, connects the store and launches the
    browser, in that order; stopping releases them in reverse.

    For each eligible request the service resolves the cache key, serves a
    fresh snapshot when one exists, and otherwise renders the page once,
    persists the result if it is worth caching and returns it.
    """

    def __init__(  # noqa: PLR0913
        self,
        config: PrerenderConfig,
        store: SnapshotStore,
        renderer: Renderer,
        classifier: EligibilityClassifier | None = None,
        metrics: ServiceMetrics | None = None,
        configure_logs: bool = True,
        json_logs: bool = True,
    ) -> None:
        """Initialize the service.

        Args:
            config: Prerender configuration.
            store: Snapshot store.
            renderer: Page renderer.
            classifier: Eligibility classifier; built from config if omitted.
            metrics: Metrics sink; the shared instance if omitted.
            configure_logs: Whether start() configures structured logging.
            json_logs: Emit JSON log lines instead of console output.
        """
        self._config = config
        self._store = store
        self._renderer = renderer
        self._classifier = classifier or EligibilityClassifier(config)
        self._metrics = metrics or ServiceMetrics.get_instance()
        self._configure_logs = configure_logs
        self._json_logs = json_logs
        self._state_machine = ServiceStateMachine()
        self._inflight: InflightRenders[Snapshot] | None = (
            InflightRenders() if config.coalesce_renders else None
        )
        self._log = logger.bind(component=COMPONENT_SERVICE)

    @classmethod
    def from_config(
        cls,
        config: PrerenderConfig,
        engine: BrowserEngine | None = None,
        configure_logs: bool = True,
        json_logs: bool = True,
    ) -> "PrerenderService":
        """Build a service with the default store, renderer and classifier.

        Args:
            config: Prerender configuration.
            engine: Browser engine; Chromium via Playwright if omitted.
            configure_logs: Whether start() configures structured logging.
            json_logs: Emit JSON log lines instead of console output.

        Returns:
            A stopped service.
        """
        return cls(
            config=config,
            store=SnapshotStore(config.database),
            renderer=Renderer(config, engine=engine),
            classifier=EligibilityClassifier(config),
            configure_logs=configure_logs,
            json_logs=json_logs,
        )

    @property
    def config(self) -> PrerenderConfig:
        """Get the configuration."""
        return self._config

    @property
    def state(self) -> ServiceState:
        """Get the lifecycle state."""
        return self._state_machine.state

    @property
    def store(self) -> SnapshotStore:
        """Get the snapshot store."""
        return self._store

    @property
    def renderer(self) -> Renderer:
        """Get the renderer."""
        return self._renderer

    @property
    def metrics(self) -> ServiceMetrics:
        """Get the metrics sink."""
        return self._metrics

    # ===== Lifecycle =====

    async def start(self) -> None:
        """Start the service.

        Raises:
            ServiceStateError: If the service is not stopped or failed.
            StoreConnectionError: If the database stays unreachable.
            MigrationError: If the schema cannot be migrated.
        """
        self._state_machine.transition(ServiceState.STARTING)

        try:
            if self._configure_logs:
                configure_logging(
                    level=self._config.log_level,
                    json_format=self._json_logs,
                    log_file=self._config.log_file,
                )
            self._log.info(
                "service_starting",
                environment=self._config.environment,
                db_path=str(self._store.db_path),
            )
            await self._store.wait_for_availability()
            await self._renderer.start()
        except Exception as e:
            self._state_machine.transition(ServiceState.FAILED)
            self._log.error("service_start_failed", error=str(e))
            await self._release()
            raise

        self._state_machine.transition(ServiceState.RUNNING)
        self._log.info("service_started")

    async def stop(self) -> None:
        """Stop the service.

        Stopping a stopped service is a no-op.
        """
        if self._state_machine.state == ServiceState.STOPPED:
            return

        self._state_machine.transition(ServiceState.STOPPING)
        self._log.info("service_stopping")

        try:
            await self._renderer.stop()
            await self._store.close()
        except Exception:
            self._state_machine.transition(ServiceState.FAILED)
            raise

        self._state_machine.transition(ServiceState.STOPPED)
        self._log.info("service_stopped")
        if self._configure_logs:
            shutdown_logging()

    async def _release(self) -> None:
        """Release whatever was started before a startup failure."""
        if self._renderer.is_ready:
            try:
                await self._renderer.stop()
            except Exception as e:
                self._log.warning("renderer_release_failed", error=str(e))
        if self._store.is_connected:
            try:
                await self._store.close()
            except Exception as e:
                self._log.warning("store_release_failed", error=str(e))

    async def __aenter__(self) -> "PrerenderService":
        await self.start()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.stop()

    def _ensure_running(self) -> None:
        if not self._state_machine.is_running():
            raise ServiceNotReadyError(self._state_machine.state.name)

    # ===== Requests =====

    def should_handle(self, request: object) -> Eligibility:
        """Decide whether a request should be prerendered.

        Classification needs neither the store nor the browser, so it is
        available in every lifecycle state.

        Args:
            request: Candidate request.

        Returns:
            Eligibility decision with the rejection reason, if any.
        """
        return self._classifier.classify(request)

    async def handle(self, request: InboundRequest) -> Snapshot:
        """Serve a snapshot for an eligible request.

        Args:
            request: Request already accepted by ``should_handle``.

        Returns:
            A fresh cached snapshot, or a newly rendered one.

        Raises:
            ServiceNotReadyError: If the service is not running.
            StoreConnectionError: If the store connection was lost.
        """
        self._ensure_running()
        key = resolve_cache_key(request, self._config.ignored_query_parameters)
        return await self._serve(key)

    async def render_url(
        self,
        url: str,
        persist: bool = True,
        tags: list[str] | None = None,
    ) -> Snapshot:
        """Render a URL now, bypassing the cache lookup.

        Args:
            url: Absolute URL; canonicalized before use.
            persist: Whether to store the result if it is worth caching.
            tags: Labels attached to the snapshot.

        Returns:
            The rendered snapshot.

        Raises:
            ServiceNotReadyError: If the service is not running.
        """
        self._ensure_running()
        key = canonicalize_url(url, self._config.ignored_query_parameters)
        return await self._render(key, tags=tags, persist=persist)

    async def _serve(self, key: str) -> Snapshot:
        self._metrics.record_request()
        log = self._log.bind(url=key)

        cached = await self._store.find_by_key(key)
        if cached is not None and not SnapshotStore.is_stale(
            cached, self._config.cache_max_age_days
        ):
            self._metrics.record_hit()
            log.debug("snapshot_cache_hit", snapshot_id=cached.snapshot_id)
            return cached

        if cached is None:
            self._metrics.record_miss()
            log.debug("snapshot_cache_miss")
        else:
            self._metrics.record_stale()
            log.debug(
                "snapshot_stale",
                snapshot_id=cached.snapshot_id,
                updated_at=cached.updated_at.isoformat() if cached.updated_at else None,
            )

        tags = list(cached.tags) if cached is not None else None

        if self._inflight is None:
            return await self._render(key, tags=tags)

        snapshot, joined = await self._inflight.run(
            key, lambda: self._render(key, tags=tags)
        )
        if joined:
            self._metrics.record_coalesced()
            log.debug("render_coalesced")
        return snapshot

    async def _render(
        self,
        key: str,
        tags: list[str] | None = None,
        persist: bool = True,
    ) -> Snapshot:
        self._metrics.record_render()
        snapshot = await self._renderer.render(key, tags=tags)

        if not persist:
            return snapshot

        try:
            stored = await self._store.persist_if_worthwhile(snapshot)
        except SnapshotPersistError as e:
            self._metrics.record_persist_error()
            self._log.error(
                "snapshot_served_unsaved",
                url=key,
                status=snapshot.status,
                error=str(e),
            )
            return snapshot

        return stored or snapshot

    def health(self) -> dict[str, object]:
        """Describe service state and component metrics.

        Returns:
            JSON-serializable health report.
        """
        return {
            "state": self._state_machine.state.name,
            "store_connected": self._store.is_connected,
            "renderer_ready": self._renderer.is_ready,
            "interception_mode": self._config.interception_mode,
            "coalesce_renders": self._config.coalesce_renders,
            "metrics": {
                "service": self._metrics.to_dict(),
                "classifier": self._classifier.metrics.to_dict(),
                "store": self._store.metrics.to_dict(),
                "renderer": self._renderer.metrics.to_dict(),
            },
        }
