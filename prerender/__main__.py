"""Allow ``python -m prerender``."""

from prerender.cli.main import cli


cli()
