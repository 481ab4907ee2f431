"""Snapshot store backed by SQLite."""

from prerender.store.errors import (
    MigrationError,
    SnapshotPersistError,
    StoreConnectionError,
    StoreError,
)
from prerender.store.hash import compute_content_hash
from prerender.store.metrics import StoreMetrics
from prerender.store.models import PersistEvent, PersistResult, Snapshot
from prerender.store.schema import SCHEMA_VERSION, ensure_schema
from prerender.store.store import SnapshotStore


__all__ = [
    # Errors
    "MigrationError",
    "SnapshotPersistError",
    "StoreConnectionError",
    "StoreError",
    # Models
    "PersistEvent",
    "PersistResult",
    "Snapshot",
    # Store
    "SCHEMA_VERSION",
    "ensure_schema",
    "SnapshotStore",
    "StoreMetrics",
    "compute_content_hash",
]
