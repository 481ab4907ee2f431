"""Metrics collection for the snapshot store."""

from dataclasses import dataclass, field
from typing import ClassVar


@dataclass
class StoreMetrics:
    """Metrics for snapshot store operations.

    Attributes:
        lookups_total: Number of lookups by cache key.
        lookup_hits_total: Lookups that found a snapshot.
        snapshots_inserted_total: Snapshots written for a new URL.
        snapshots_updated_total: Snapshots overwritten with new content.
        snapshots_refreshed_total: Snapshots whose timestamp was refreshed.
        persist_skipped_total: Snapshots not written (failed or unchanged).
        persist_failed_total: Writes that raised a database error.
        db_tx_duration_ms: Cumulative transaction duration in milliseconds.
        db_tx_count: Number of transactions.
    """

    lookups_total: int = 0
    lookup_hits_total: int = 0
    snapshots_inserted_total: int = 0
    snapshots_updated_total: int = 0
    snapshots_refreshed_total: int = 0
    persist_skipped_total: int = 0
    persist_failed_total: int = 0
    db_tx_duration_ms: float = 0.0
    db_tx_count: int = 0

    _instance: ClassVar["StoreMetrics | None"] = None

    @classmethod
    def get_instance(cls) -> "StoreMetrics":
        """Get singleton metrics instance."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        """Reset metrics (primarily for testing)."""
        cls._instance = None

    def record_lookup(self, hit: bool) -> None:
        """Record a lookup.

        Args:
            hit: Whether a snapshot was found.
        """
        self.lookups_total += 1
        if hit:
            self.lookup_hits_total += 1

    def record_insert(self) -> None:
        """Record a new snapshot."""
        self.snapshots_inserted_total += 1

    def record_update(self) -> None:
        """Record an overwritten snapshot."""
        self.snapshots_updated_total += 1

    def record_refresh(self) -> None:
        """Record a timestamp-only refresh."""
        self.snapshots_refreshed_total += 1

    def record_skip(self) -> None:
        """Record a snapshot that was not written."""
        self.persist_skipped_total += 1

    def record_failure(self) -> None:
        """Record a failed write."""
        self.persist_failed_total += 1

    def record_tx_duration(self, duration_ms: float) -> None:
        """Record transaction duration.

        Args:
            duration_ms: Duration in milliseconds.
        """
        self.db_tx_duration_ms += duration_ms
        self.db_tx_count += 1

    @property
    def avg_tx_duration_ms(self) -> float:
        """Average transaction duration in milliseconds."""
        if self.db_tx_count == 0:
            return 0.0
        return self.db_tx_duration_ms / self.db_tx_count

    def to_dict(self) -> dict[str, float | int]:
        """Convert metrics to dictionary.

        Returns:
            Dictionary of metric name to value.
        """
        return {
            "lookups_total": self.lookups_total,
            "lookup_hits_total": self.lookup_hits_total,
            "snapshots_inserted_total": self.snapshots_inserted_total,
            "snapshots_updated_total": self.snapshots_updated_total,
            "snapshots_refreshed_total": self.snapshots_refreshed_total,
            "persist_skipped_total": self.persist_skipped_total,
            "persist_failed_total": self.persist_failed_total,
            "db_tx_duration_ms": round(self.db_tx_duration_ms, 3),
            "db_tx_count": self.db_tx_count,
        }


@dataclass
class TransactionContext:
    """Context for a single transaction with timing.

    Attributes:
        tx_id: Unique transaction identifier.
        start_time_ns: Start time in nanoseconds.
        operation: The operation being performed.
    """

    tx_id: str
    start_time_ns: int
    operation: str
    affected_rows: int = field(default=0)

    def add_affected_rows(self, rows: int) -> None:
        """Add to the affected row count."""
        self.affected_rows += rows
