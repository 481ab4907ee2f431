"""Data models for the snapshot store."""

from datetime import UTC, datetime
from enum import Enum
from typing import Annotated, Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from prerender.store.hash import compute_content_hash


HEADER_RESPONSE_TIME = "X-Response-Time"
HEADER_ORIGINAL_LOCATION = "X-Original-Location"
HEADER_PRERENDERED_MS = "X-Prerendered-Ms"


class PersistEvent(str, Enum):
    """What happened when a snapshot was offered to the store.

    - NEW: No record existed for the URL; one was inserted
    - UPDATED: A record existed with different content; it was overwritten
    - REFRESHED: A fresh render matched the stored content; only the
      timestamp moved forward
    - SKIPPED: Nothing was written
    """

    NEW = "NEW"
    UPDATED = "UPDATED"
    REFRESHED = "REFRESHED"
    SKIPPED = "SKIPPED"


class Snapshot(BaseModel):
    """Rendered result for one canonical URL.

    A snapshot without ``snapshot_id`` has never been written to the store;
    one read back from the store carries its row id and last write time.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    url: Annotated[str, Field(min_length=1, description="Canonical URL (cache key)")]
    body: str = Field(default="", description="Serialized HTML, may be empty")
    status: Annotated[int, Field(ge=0, description="Final HTTP status")]
    response_time_ms: Annotated[
        int, Field(default=0, ge=0, description="Elapsed render time")
    ]
    original_location: str = Field(
        default="", description="URL the page was rendered from"
    )
    tags: list[str] = Field(default_factory=list, description="Free-form labels")
    updated_at: datetime | None = Field(
        default=None, description="Last successful write (nullable if unsaved)"
    )
    snapshot_id: int | None = Field(default=None, description="Persisted row id")

    @model_validator(mode="before")
    @classmethod
    def default_original_location(cls, data: Any) -> Any:
        """Use the cache key as original location when none is given."""
        if isinstance(data, dict) and not data.get("original_location"):
            return {**data, "original_location": data.get("url", "")}
        return data

    @field_validator("updated_at")
    @classmethod
    def ensure_utc(cls, v: datetime | None) -> datetime | None:
        """Treat naive timestamps as UTC."""
        if v is not None and v.tzinfo is None:
            return v.replace(tzinfo=UTC)
        return v

    @property
    def content_hash(self) -> str:
        """Hash of body and status used to detect changed content."""
        return compute_content_hash(self.body, self.status)

    @property
    def is_persisted(self) -> bool:
        """Whether the snapshot came from the store."""
        return self.snapshot_id is not None

    @property
    def is_cacheable(self) -> bool:
        """Whether the render succeeded well enough to be cached.

        Failed renders (5xx or empty body) are never cached so broken
        output is not served until it expires.
        """
        return bool(self.body) and self.status < 500

    def headers_for_response(self) -> dict[str, str]:
        """Headers describing the render, sent with the snapshot body."""
        elapsed = str(self.response_time_ms)
        return {
            HEADER_RESPONSE_TIME: elapsed,
            HEADER_ORIGINAL_LOCATION: self.original_location,
            HEADER_PRERENDERED_MS: elapsed,
        }


class PersistResult(BaseModel):
    """Outcome of offering a snapshot to the store."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    event: PersistEvent = Field(description="What happened")
    snapshot: Snapshot | None = Field(
        default=None, description="Stored snapshot, None when skipped"
    )
    reason: str | None = Field(default=None, description="Why nothing was written")
