"""Headless browser rendering."""

from prerender.renderer.engine import (
    SHADOW_DOM_INIT_SCRIPTS,
    BrowserEngine,
    PageLoad,
    PageOptions,
    PlaywrightEngine,
)
from prerender.renderer.errors import RendererError, RendererNotReadyError
from prerender.renderer.interception import InterceptionPolicy
from prerender.renderer.metrics import RenderMetrics
from prerender.renderer.renderer import USER_AGENT, Renderer


__all__ = [
    "SHADOW_DOM_INIT_SCRIPTS",
    "USER_AGENT",
    "BrowserEngine",
    "InterceptionPolicy",
    "PageLoad",
    "PageOptions",
    "PlaywrightEngine",
    "RenderMetrics",
    "Renderer",
    "RendererError",
    "RendererNotReadyError",
]
