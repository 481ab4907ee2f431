"""Command line interface for the prerender service."""

import asyncio
import json
import sys
from pathlib import Path
from urllib.parse import urlsplit

import click
import structlog
import uvicorn

from prerender import __version__
from prerender.config.constants import COMPONENT_CLI
from prerender.config.error_hints import format_validation_error
from prerender.config.errors import ConfigError
from prerender.config.loader import ConfigLoader
from prerender.config.models import PrerenderConfig
from prerender.observability.logging import configure_logging
from prerender.request.models import InboundRequest
from prerender.request.url import resolve_cache_key
from prerender.server.app import RenderMode, create_app
from prerender.service.service import PrerenderService
from prerender.store.store import SnapshotStore


logger = structlog.get_logger()

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 3000

config_option = click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="Path to YAML configuration file. PRERENDER_* variables override it.",
)


def _load_config_or_exit(config_path: Path | None) -> tuple[PrerenderConfig, ConfigLoader]:
    """Load configuration, printing hinted errors and exiting on failure.

    Args:
        config_path: Optional YAML configuration file.

    Returns:
        Tuple of (config, loader).
    """
    loader = ConfigLoader()
    try:
        return loader.load(config_path), loader
    except ConfigError as e:
        click.echo(f"Configuration validation failed: {e}", err=True)
        for error in loader.validation_errors:
            formatted = format_validation_error(
                location=error["loc"],
                message=error["msg"],
                error_type=error.get("type", "unknown"),
                include_hint=True,
            )
            click.echo(f"  - {formatted}", err=True)
        sys.exit(1)


def request_from_url(url: str, user_agent: str, method: str = "GET") -> InboundRequest:
    """Build the request a crawler would send for a URL.

    Args:
        url: Absolute URL.
        user_agent: User-Agent header value.
        method: HTTP method.

    Returns:
        Inbound request addressed to the URL's host.
    """
    parsed = urlsplit(url)
    encrypted = parsed.scheme == "https"
    target = parsed.path or "/"
    if parsed.query:
        target = f"{target}?{parsed.query}"

    headers = {"host": parsed.netloc}
    if user_agent:
        headers["user-agent"] = user_agent

    return InboundRequest(
        method=method,
        url=target,
        headers=headers,
        local_port=parsed.port or (443 if encrypted else 80),
        encrypted=encrypted,
    )


@click.group()
@click.version_option(version=__version__)
def cli() -> None:
    """Prerender JavaScript pages for search engine and social crawlers."""


@cli.command()
@config_option
@click.option("--host", default=DEFAULT_HOST, show_default=True, help="Bind address.")
@click.option("--port", default=DEFAULT_PORT, show_default=True, type=int, help="Bind port.")
@click.option(
    "--mode",
    type=click.Choice([m.value for m in RenderMode]),
    default=RenderMode.SMART.value,
    show_default=True,
    help="smart: classify requests first. always: render every request.",
)
@click.option("--json-logs/--console-logs", default=True, help="Log output format.")
def serve(
    config_path: Path | None,
    host: str,
    port: int,
    mode: str,
    json_logs: bool,
) -> None:
    """Run the prerender HTTP server."""
    configure_logging(json_format=json_logs)
    config, _ = _load_config_or_exit(config_path)

    service = PrerenderService.from_config(config, json_logs=json_logs)
    app = create_app(service, mode=mode)

    logger.bind(component=COMPONENT_CLI, command="serve").info(
        "server_starting", host=host, port=port, mode=mode
    )
    uvicorn.run(app, host=host, port=port, log_config=None)


@cli.command()
@click.argument("url")
@config_option
@click.option("--no-persist", is_flag=True, help="Do not store the snapshot.")
@click.option(
    "--output",
    "output_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Write the rendered body to this file.",
)
def render(
    url: str,
    config_path: Path | None,
    no_persist: bool,
    output_path: Path | None,
) -> None:
    """Render URL once and report the result."""
    configure_logging(json_format=False)
    config, _ = _load_config_or_exit(config_path)

    async def _render() -> tuple[int, dict[str, str], str, int | None]:
        service = PrerenderService.from_config(config, json_logs=False)
        async with service:
            snapshot = await service.render_url(url, persist=not no_persist)
        return (
            snapshot.status,
            snapshot.headers_for_response(),
            snapshot.body,
            snapshot.snapshot_id,
        )

    status, headers, body, snapshot_id = asyncio.run(_render())

    click.echo(f"Status: {status}")
    for name, value in sorted(headers.items()):
        click.echo(f"{name}: {value}")
    click.echo(f"Body: {len(body.encode('utf-8'))} bytes")
    click.echo(f"Stored: {'yes (id ' + str(snapshot_id) + ')' if snapshot_id else 'no'}")

    if output_path is not None:
        output_path.write_text(body, encoding="utf-8")
        click.echo(f"Body written to {output_path}")

    if not body:
        sys.exit(1)


@cli.command()
@config_option
@click.option("--url", required=True, help="Absolute URL a crawler would request.")
@click.option("--user-agent", default="", help="User-Agent header value.")
@click.option("--method", default="GET", show_default=True, help="HTTP method.")
def check(config_path: Path | None, url: str, user_agent: str, method: str) -> None:
    """Show whether a request would be prerendered."""
    configure_logging(json_format=False)
    config, _ = _load_config_or_exit(config_path)

    service = PrerenderService.from_config(config, configure_logs=False)
    request = request_from_url(url, user_agent=user_agent, method=method)
    eligibility = service.should_handle(request)

    click.echo(f"Cache key: {resolve_cache_key(request, config.ignored_query_parameters)}")
    if eligibility.accepted:
        click.echo("Decision: prerender")
        return

    reason = eligibility.reason.value if eligibility.reason else "unknown"
    click.echo(f"Decision: pass through ({reason})")
    sys.exit(1)


@cli.command("validate-config")
@config_option
def validate_config(config_path: Path | None) -> None:
    """Validate configuration without starting the service."""
    configure_logging(json_format=False)
    config, loader = _load_config_or_exit(config_path)

    click.echo("Configuration is valid!")
    click.echo(f"  Environment: {config.environment}")
    click.echo(f"  Database: {config.database.resolved_path()}")
    click.echo(f"  Cache max age: {config.cache_max_age_days} days")
    click.echo(f"  Timeout: {config.timeout_ms} ms")
    click.echo(f"  Bot user agents: {len(config.bot_user_agents)}")
    click.echo(f"  Interception: {config.interception_mode}")
    if loader.file_checksum:
        click.echo(f"  Checksum: {loader.file_checksum}")


@cli.command("db-stats")
@config_option
@click.option("--json", "json_output", is_flag=True, help="Output as JSON.")
def db_stats(config_path: Path | None, json_output: bool) -> None:
    """Display snapshot database statistics."""
    configure_logging(json_format=False)
    config, _ = _load_config_or_exit(config_path)

    async def _collect() -> tuple[dict[str, int], int]:
        store = SnapshotStore(config.database)
        await store.connect()
        try:
            return await store.get_stats(), await store.get_schema_version()
        finally:
            await store.close()

    stats, schema_version = asyncio.run(_collect())

    if json_output:
        output = {
            "database": str(config.database.resolved_path()),
            "schema_version": schema_version,
            "snapshots": stats,
        }
        click.echo(json.dumps(output, indent=2, sort_keys=True))
        return

    click.echo("Snapshot Database Statistics")
    click.echo("=" * 40)
    click.echo(f"  Database: {config.database.resolved_path()}")
    click.echo(f"  Schema Version: {schema_version}")
    click.echo("")
    click.echo("Snapshot Counts:")
    for name, count in sorted(stats.items()):
        click.echo(f"  {name}: {count}")


if __name__ == "__main__":
    cli()
