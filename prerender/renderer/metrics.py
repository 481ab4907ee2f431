"""Renderer metrics collection."""

from dataclasses import dataclass, field
from typing import ClassVar


@dataclass
class RenderMetrics:
    """Metrics for page renders.

    Attributes:
        renders_total: Render attempts.
        render_failures_total: Renders that raised and were degraded to 400.
        render_timeouts_total: Navigations that hit the timeout.
        render_duration_ms_total: Cumulative render time in milliseconds.
        render_bytes_total: Cumulative size of serialized bodies.
        elements_stripped_total: Script and import elements removed.
        status_counts: Resolved status code counts.
    """

    renders_total: int = 0
    render_failures_total: int = 0
    render_timeouts_total: int = 0
    render_duration_ms_total: float = 0.0
    render_bytes_total: int = 0
    elements_stripped_total: int = 0
    status_counts: dict[int, int] = field(default_factory=dict)

    _instance: ClassVar["RenderMetrics | None"] = None

    @classmethod
    def get_instance(cls) -> "RenderMetrics":
        """Get singleton metrics instance."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        """Reset metrics (primarily for testing)."""
        cls._instance = None

    def record_render(
        self,
        status: int,
        duration_ms: float,
        body_bytes: int,
        stripped: int = 0,
        timed_out: bool = False,
    ) -> None:
        """Record a completed render.

        Args:
            status: Resolved status code.
            duration_ms: Render duration in milliseconds.
            body_bytes: Size of the serialized body.
            stripped: Elements removed from the page.
            timed_out: Whether navigation timed out.
        """
        self.renders_total += 1
        self.render_duration_ms_total += duration_ms
        self.render_bytes_total += body_bytes
        self.elements_stripped_total += stripped
        self.status_counts[status] = self.status_counts.get(status, 0) + 1
        if timed_out:
            self.render_timeouts_total += 1

    def record_failure(self, duration_ms: float) -> None:
        """Record a render that raised.

        Args:
            duration_ms: Time spent before the failure.
        """
        self.renders_total += 1
        self.render_failures_total += 1
        self.render_duration_ms_total += duration_ms

    @property
    def avg_render_ms(self) -> float:
        """Average render duration in milliseconds."""
        if self.renders_total == 0:
            return 0.0
        return self.render_duration_ms_total / self.renders_total

    def to_dict(self) -> dict[str, object]:
        """Convert metrics to dictionary."""
        return {
            "renders_total": self.renders_total,
            "render_failures_total": self.render_failures_total,
            "render_timeouts_total": self.render_timeouts_total,
            "render_duration_ms_total": round(self.render_duration_ms_total, 3),
            "render_bytes_total": self.render_bytes_total,
            "elements_stripped_total": self.elements_stripped_total,
            "status_counts": {str(k): v for k, v in sorted(self.status_counts.items())},
        }
