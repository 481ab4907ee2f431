"""Command line interface."""

from prerender.cli.main import cli


__all__ = ["cli"]
