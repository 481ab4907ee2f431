"""Metrics for the orchestration service."""

from dataclasses import dataclass
from typing import ClassVar


@dataclass
class ServiceMetrics:
    """Metrics for request handling.

    Attributes:
        requests_total: Requests handled.
        cache_hits_total: Requests served from a fresh snapshot.
        cache_stale_total: Requests that found a stale snapshot.
        cache_misses_total: Requests that found no snapshot.
        renders_total: Renders started by the service.
        coalesced_total: Requests that waited on another request's render.
        persist_errors_total: Renders served despite a failed write.
    """

    requests_total: int = 0
    cache_hits_total: int = 0
    cache_stale_total: int = 0
    cache_misses_total: int = 0
    renders_total: int = 0
    coalesced_total: int = 0
    persist_errors_total: int = 0

    _instance: ClassVar["ServiceMetrics | None"] = None

    @classmethod
    def get_instance(cls) -> "ServiceMetrics":
        """Get singleton metrics instance."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        """Reset metrics (primarily for testing)."""
        cls._instance = None

    def record_request(self) -> None:
        """Record a handled request."""
        self.requests_total += 1

    def record_hit(self) -> None:
        """Record a fresh cache hit."""
        self.cache_hits_total += 1

    def record_stale(self) -> None:
        """Record a stale cache entry."""
        self.cache_stale_total += 1

    def record_miss(self) -> None:
        """Record a cache miss."""
        self.cache_misses_total += 1

    def record_render(self) -> None:
        """Record a render started by the service."""
        self.renders_total += 1

    def record_coalesced(self) -> None:
        """Record a request that joined an in-flight render."""
        self.coalesced_total += 1

    def record_persist_error(self) -> None:
        """Record a failed write."""
        self.persist_errors_total += 1

    @property
    def hit_ratio(self) -> float:
        """Fraction of requests served from cache (0.0-1.0)."""
        if self.requests_total == 0:
            return 0.0
        return self.cache_hits_total / self.requests_total

    def to_dict(self) -> dict[str, float | int]:
        """Convert metrics to dictionary."""
        return {
            "requests_total": self.requests_total,
            "cache_hits_total": self.cache_hits_total,
            "cache_stale_total": self.cache_stale_total,
            "cache_misses_total": self.cache_misses_total,
            "renders_total": self.renders_total,
            "coalesced_total": self.coalesced_total,
            "persist_errors_total": self.persist_errors_total,
            "hit_ratio": round(self.hit_ratio, 4),
        }
