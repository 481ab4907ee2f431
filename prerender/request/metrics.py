"""Metrics for eligibility classification."""

from dataclasses import dataclass, field
from typing import ClassVar


@dataclass
class ClassifierMetrics:
    """Counts of eligibility decisions.

    Rejections are grouped by reason so operators can see why crawler
    traffic is being passed through to the origin.
    """

    _instance: ClassVar["ClassifierMetrics | None"] = None

    accepted_total: int = 0
    rejected_total: int = 0
    rejected_by_reason: dict[str, int] = field(default_factory=dict)

    @classmethod
    def get_instance(cls) -> "ClassifierMetrics":
        """Get or create the singleton instance."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        """Reset the singleton instance for testing."""
        cls._instance = None

    def record_accepted(self) -> None:
        """Record an accepted request."""
        self.accepted_total += 1

    def record_rejected(self, reason: str) -> None:
        """Record a rejected request.

        Args:
            reason: Rejection reason value.
        """
        self.rejected_total += 1
        self.rejected_by_reason[reason] = self.rejected_by_reason.get(reason, 0) + 1

    def to_dict(self) -> dict[str, object]:
        """Convert metrics to dictionary."""
        return {
            "accepted_total": self.accepted_total,
            "rejected_total": self.rejected_total,
            "rejected_by_reason": dict(sorted(self.rejected_by_reason.items())),
        }
