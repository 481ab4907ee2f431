"""Integration tests for the prerender service against a real store."""

import asyncio
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import TypeVar

import pytest

from prerender.config.models import PrerenderConfig
from prerender.renderer.engine import PageLoad
from prerender.request.classifier import RejectReason
from prerender.request.models import InboundRequest
from prerender.service.errors import ServiceNotReadyError
from prerender.service.service import PrerenderService
from prerender.service.state_machine import ServiceState, ServiceStateError
from prerender.store.errors import SnapshotPersistError, StoreConnectionError
from prerender.store.models import Snapshot
from tests.helpers.fakes import BOT_USER_AGENT, FakeEngine, make_config, make_service


T = TypeVar("T")

URL = "http://example.com/index.html"


def _request(url: str = "/index.html", host: str = "example.com") -> InboundRequest:
    return InboundRequest(
        method="GET",
        url=url,
        headers={"host": host, "user-agent": BOT_USER_AGENT},
    )


def _running(
    service: PrerenderService,
    func: Callable[[PrerenderService], Awaitable[T]],
) -> T:
    """Run func against a started service and stop it afterwards."""

    async def _run() -> T:
        async with service:
            return await func(service)

    return asyncio.run(_run())


def _failing_once(
    start: Callable[[], Awaitable[None]],
) -> Callable[[], Awaitable[None]]:
    calls = 0

    async def wrapped() -> None:
        nonlocal calls
        calls += 1
        if calls == 1:
            msg = "first launch fails"
            raise RuntimeError(msg)
        await start()

    return wrapped


@pytest.fixture
def config(tmp_path: Path) -> PrerenderConfig:
    """Configuration backed by a temporary database."""
    return make_config(tmp_path)


class TestServiceLifecycle:
    """Tests for starting and stopping the service."""

    @pytest.mark.integration
    def test_start_and_stop(self, config: PrerenderConfig) -> None:
        """Test start connects the store and launches the browser."""
        engine = FakeEngine()
        service = make_service(config, engine)

        async def check(svc: PrerenderService) -> None:
            assert svc.state == ServiceState.RUNNING
            assert svc.store.is_connected
            assert svc.renderer.is_ready

        _running(service, check)

        assert service.state == ServiceState.STOPPED
        assert not service.store.is_connected
        assert (engine.start_calls, engine.stop_calls) == (1, 1)

    @pytest.mark.integration
    def test_stop_when_stopped_is_noop(self, config: PrerenderConfig) -> None:
        """Test stopping a stopped service does nothing."""
        service = make_service(config)
        asyncio.run(service.stop())
        assert service.state == ServiceState.STOPPED

    @pytest.mark.integration
    def test_double_start_is_rejected(self, config: PrerenderConfig) -> None:
        """Test a running service cannot be started again."""
        service = make_service(config)

        async def check(svc: PrerenderService) -> None:
            with pytest.raises(ServiceStateError):
                await svc.start()

        _running(service, check)

    @pytest.mark.integration
    def test_store_failure_fails_start(self, tmp_path: Path) -> None:
        """Test an unreachable database leaves the service FAILED."""
        blocker = tmp_path / "blocker"
        blocker.write_text("")
        config = make_config(
            tmp_path,
            database={
                "path": blocker / "db.sqlite",
                "connect_timeout_seconds": 0.1,
                "poll_interval_seconds": 0.05,
            },
        )
        engine = FakeEngine()
        service = make_service(config, engine)

        with pytest.raises(StoreConnectionError):
            asyncio.run(service.start())

        assert service.state == ServiceState.FAILED
        assert engine.start_calls == 0

    @pytest.mark.integration
    def test_browser_failure_releases_store(self, config: PrerenderConfig) -> None:
        """Test a browser launch failure closes the already connected store."""

        class BrokenEngine(FakeEngine):
            async def start(self) -> None:
                msg = "chromium missing"
                raise RuntimeError(msg)

        service = make_service(config, BrokenEngine())

        with pytest.raises(RuntimeError, match="chromium missing"):
            asyncio.run(service.start())

        assert service.state == ServiceState.FAILED
        assert not service.store.is_connected

    @pytest.mark.integration
    def test_failed_service_can_restart(self, config: PrerenderConfig) -> None:
        """Test a service that failed to start may start again."""
        engine = FakeEngine()
        service = make_service(config, engine)
        engine.start = _failing_once(engine.start)  # type: ignore[method-assign]

        async def _run() -> ServiceState:
            with pytest.raises(RuntimeError):
                await service.start()
            await service.start()
            state = service.state
            await service.stop()
            return state

        assert asyncio.run(_run()) == ServiceState.RUNNING

    @pytest.mark.integration
    def test_requests_need_running_service(self, config: PrerenderConfig) -> None:
        """Test handle and render_url refuse to work before start."""
        service = make_service(config)

        with pytest.raises(ServiceNotReadyError, match="STOPPED"):
            asyncio.run(service.handle(_request()))
        with pytest.raises(ServiceNotReadyError):
            asyncio.run(service.render_url(URL))

    @pytest.mark.integration
    def test_classification_works_when_stopped(self, config: PrerenderConfig) -> None:
        """Test should_handle needs neither store nor browser."""
        service = make_service(config)

        assert service.should_handle(_request()).accepted
        rejected = service.should_handle(_request("/app.js"))
        assert rejected.reason == RejectReason.REJECTED_EXTENSION


class TestServiceHandle:
    """Tests for serving requests."""

    @pytest.mark.integration
    def test_index_page_is_rendered_and_stored(self, config: PrerenderConfig) -> None:
        """Test a bot request for /index.html is rendered and cached."""
        engine = FakeEngine()
        service = make_service(config, engine)

        async def check(svc: PrerenderService) -> tuple[Snapshot, Snapshot | None]:
            snapshot = await svc.handle(_request())
            return snapshot, await svc.store.find_by_key(URL)

        snapshot, stored = _running(service, check)

        assert engine.loaded_urls == [URL]
        assert snapshot.status == 200
        assert "Rendered by JavaScript" in snapshot.body
        assert "<script>" not in snapshot.body
        assert snapshot.is_persisted
        assert stored is not None
        assert stored.body == snapshot.body

    @pytest.mark.integration
    def test_fresh_snapshot_skips_render(self, config: PrerenderConfig) -> None:
        """Test a second request is served from the store."""
        engine = FakeEngine()
        service = make_service(config, engine)

        async def check(svc: PrerenderService) -> tuple[Snapshot, Snapshot]:
            return await svc.handle(_request()), await svc.handle(_request())

        first, second = _running(service, check)

        assert len(engine.loads) == 1
        assert second.snapshot_id == first.snapshot_id
        assert second.body == first.body
        assert service.metrics.cache_hits_total == 1
        assert service.metrics.cache_misses_total == 1

    @pytest.mark.integration
    def test_equivalent_urls_share_snapshot(self, config: PrerenderConfig) -> None:
        """Test query order and tracking parameters do not split the cache."""
        engine = FakeEngine()
        service = make_service(config, engine)

        async def check(svc: PrerenderService) -> None:
            await svc.handle(_request("/list?b=2&a=1&utm_source=mail"))
            await svc.handle(_request("/list?a=1&b=2"))

        _running(service, check)

        assert engine.loaded_urls == ["http://example.com/list?a=1&b=2"]

    @pytest.mark.integration
    def test_stale_snapshot_is_rerendered(self, tmp_path: Path) -> None:
        """Test snapshots older than the max age are rendered again."""
        config = make_config(tmp_path, cache_max_age_days=0)
        engine = FakeEngine()
        service = make_service(config, engine)

        async def check(svc: PrerenderService) -> None:
            await svc.handle(_request())
            await svc.handle(_request())

        _running(service, check)

        assert len(engine.loads) == 2
        assert service.metrics.cache_stale_total == 1
        assert service.store.metrics.snapshots_refreshed_total == 1

    @pytest.mark.integration
    def test_stale_rerender_keeps_tags(self, tmp_path: Path) -> None:
        """Test tags of the stored snapshot survive a re-render."""
        config = make_config(tmp_path, cache_max_age_days=0)
        service = make_service(config)

        async def check(svc: PrerenderService) -> Snapshot:
            await svc.render_url(URL, tags=["landing"])
            return await svc.handle(_request())

        assert _running(service, check).tags == ["landing"]

    @pytest.mark.integration
    def test_server_error_is_served_not_stored(self, config: PrerenderConfig) -> None:
        """Test a 500 render reaches the client but is not cached."""
        engine = FakeEngine(
            default=PageLoad(status=500, html="<html><body>boom</body></html>")
        )
        service = make_service(config, engine)

        async def check(svc: PrerenderService) -> tuple[Snapshot, Snapshot | None]:
            snapshot = await svc.handle(_request())
            return snapshot, await svc.store.find_by_key(URL)

        snapshot, stored = _running(service, check)

        assert snapshot.status == 500
        assert "boom" in snapshot.body
        assert stored is None

    @pytest.mark.integration
    def test_render_failure_is_served_as_400(self, config: PrerenderConfig) -> None:
        """Test a crashing render yields an empty 400 that is not stored."""
        service = make_service(config, FakeEngine(error=RuntimeError("crash")))

        async def check(svc: PrerenderService) -> tuple[Snapshot, Snapshot | None]:
            snapshot = await svc.handle(_request())
            return snapshot, await svc.store.find_by_key(URL)

        snapshot, stored = _running(service, check)

        assert (snapshot.status, snapshot.body) == (400, "")
        assert stored is None

    @pytest.mark.integration
    def test_client_error_page_is_stored(self, config: PrerenderConfig) -> None:
        """Test a page declaring 404 through its meta tag is cached as 404."""
        html = (
            '<html><head><meta name="render:status_code" content="404"></head>'
            "<body>Missing</body></html>"
        )
        service = make_service(
            config, FakeEngine(default=PageLoad(status=200, html=html))
        )

        async def check(svc: PrerenderService) -> Snapshot | None:
            await svc.handle(_request())
            return await svc.store.find_by_key(URL)

        stored = _running(service, check)

        assert stored is not None
        assert stored.status == 404

    @pytest.mark.integration
    def test_persist_error_still_serves(self, config: PrerenderConfig) -> None:
        """Test a failed write does not stop the render from being served."""
        service = make_service(config)

        async def failing_persist(snapshot: Snapshot) -> Snapshot | None:
            raise SnapshotPersistError(snapshot.url, "disk full")

        async def check(svc: PrerenderService) -> Snapshot:
            svc.store.persist_if_worthwhile = failing_persist  # type: ignore[method-assign]
            return await svc.handle(_request())

        snapshot = _running(service, check)

        assert snapshot.status == 200
        assert "Rendered by JavaScript" in snapshot.body
        assert not snapshot.is_persisted
        assert service.metrics.persist_errors_total == 1

    @pytest.mark.integration
    def test_render_url_without_persist(self, config: PrerenderConfig) -> None:
        """Test render_url can skip the store."""
        service = make_service(config)

        async def check(svc: PrerenderService) -> tuple[Snapshot, Snapshot | None]:
            snapshot = await svc.render_url(
                "HTTP://Example.com/index.html?utm_source=x#top", persist=False
            )
            return snapshot, await svc.store.find_by_key(URL)

        snapshot, stored = _running(service, check)

        assert snapshot.url == URL
        assert stored is None

    @pytest.mark.integration
    def test_concurrent_misses_render_once(self, tmp_path: Path) -> None:
        """Test coalescing shares one render among concurrent misses."""
        config = make_config(tmp_path, coalesce_renders=True)
        engine = FakeEngine(delay=0.05)
        service = make_service(config, engine)

        async def check(svc: PrerenderService) -> list[Snapshot]:
            return await asyncio.gather(*(svc.handle(_request()) for _ in range(4)))

        snapshots = _running(service, check)

        assert len(engine.loads) == 1
        assert {s.body for s in snapshots} == {snapshots[0].body}
        assert service.metrics.coalesced_total == 3

    @pytest.mark.integration
    def test_concurrent_misses_without_coalescing(
        self, config: PrerenderConfig
    ) -> None:
        """Test every concurrent miss renders when coalescing is off."""
        engine = FakeEngine(delay=0.05)
        service = make_service(config, engine)

        async def check(svc: PrerenderService) -> None:
            await asyncio.gather(*(svc.handle(_request()) for _ in range(3)))

        _running(service, check)

        assert len(engine.loads) == 3
        assert service.store.metrics.snapshots_inserted_total == 1

    @pytest.mark.integration
    def test_health_report(self, config: PrerenderConfig) -> None:
        """Test health describes state and component metrics."""
        service = make_service(config)

        async def check(svc: PrerenderService) -> dict[str, object]:
            await svc.handle(_request())
            return svc.health()

        health = _running(service, check)

        assert health["state"] == "RUNNING"
        assert health["store_connected"] is True
        assert health["renderer_ready"] is True
        assert health["interception_mode"] == "blacklist"
        metrics = health["metrics"]
        assert isinstance(metrics, dict)
        assert set(metrics) == {"service", "classifier", "store", "renderer"}

