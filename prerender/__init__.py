"""Render JavaScript pages to static HTML snapshots for crawlers."""

__version__ = "1.0.0"
