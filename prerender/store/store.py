"""SQLite snapshot store."""

import asyncio
import json
import sqlite3
import time
import uuid
from collections.abc import Callable, Generator
from contextlib import contextmanager
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import TypeVar

import structlog

from prerender.config.constants import COMPONENT_STORE
from prerender.config.models import DatabaseOptions
from prerender.store.errors import SnapshotPersistError, StoreConnectionError
from prerender.store.metrics import StoreMetrics, TransactionContext
from prerender.store.models import (
    HEADER_ORIGINAL_LOCATION,
    PersistEvent,
    PersistResult,
    Snapshot,
)
from prerender.store.schema import SCHEMA_VERSION, ensure_schema, read_schema_version


logger = structlog.get_logger()

T = TypeVar("T")


class SnapshotStore:
    """SQLite-backed store of rendered snapshots, keyed by canonical URL.

    The public API is async. Every database call runs in a worker thread
    and calls are serialized by a lock, so a single connection is shared
    safely. Uses WAL mode and upgrades the schema on connect.
    """

    def __init__(
        self,
        options: DatabaseOptions,
        metrics: StoreMetrics | None = None,
    ) -> None:
        """Initialize the store.

        Args:
            options: Database connection options.
            metrics: Metrics sink; the shared instance if omitted.
        """
        self._options = options
        self._db_path = options.resolved_path()
        self._conn: sqlite3.Connection | None = None
        self._lock = asyncio.Lock()
        self._metrics = metrics or StoreMetrics.get_instance()
        self._log = logger.bind(component=COMPONENT_STORE, db_path=str(self._db_path))

    @property
    def db_path(self) -> Path:
        """Get the database path."""
        return self._db_path

    @property
    def is_connected(self) -> bool:
        """Check if connected to database."""
        return self._conn is not None

    @property
    def metrics(self) -> StoreMetrics:
        """Get the metrics sink."""
        return self._metrics

    async def _run(self, func: Callable[..., T], *args: object) -> T:
        """Run a blocking call in a worker thread, one at a time."""
        async with self._lock:
            return await asyncio.to_thread(func, *args)

    # ===== Connection lifecycle =====

    def _connect_sync(self) -> None:
        if self._conn is not None:
            return

        self._log.info("connecting_to_database")
        try:
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
            conn = sqlite3.connect(
                str(self._db_path),
                timeout=self._options.connect_timeout_seconds,
                check_same_thread=False,
            )
        except (sqlite3.Error, OSError) as e:
            self._log.warning("database_connect_failed", error=str(e))
            raise StoreConnectionError(
                f"Cannot open database {self._db_path}: {e}"
            ) from e

        conn.row_factory = sqlite3.Row
        try:
            conn.execute("PRAGMA journal_mode=WAL")
            conn.execute("PRAGMA synchronous=NORMAL")
            old_version = read_schema_version(conn)
            applied = ensure_schema(conn)
        except sqlite3.Error as e:
            conn.close()
            self._log.warning("database_connect_failed", error=str(e))
            raise StoreConnectionError(
                f"Cannot initialize database {self._db_path}: {e}"
            ) from e
        except Exception:
            conn.close()
            raise

        self._conn = conn
        self._log.info(
            "database_connected",
            old_version=old_version,
            new_version=SCHEMA_VERSION,
            schema_upgrades=applied,
        )

    async def connect(self) -> None:
        """Open the database and bring its schema up to date.

        Creates the database file and parent directories if they don't
        exist. Connecting an already connected store is a no-op.

        Raises:
            StoreConnectionError: If the database cannot be opened.
            MigrationError: If the schema cannot be migrated.
        """
        await self._run(self._connect_sync)

    async def wait_for_availability(self) -> None:
        """Connect, retrying until the database answers or time runs out.

        Polls every ``poll_interval_seconds`` for at most
        ``connect_timeout_seconds``.

        Raises:
            StoreConnectionError: If the database is still unreachable
                when the timeout elapses.
        """
        deadline = time.monotonic() + self._options.connect_timeout_seconds
        attempt = 0

        while True:
            attempt += 1
            try:
                await self.connect()
                return
            except StoreConnectionError as e:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    self._log.error(
                        "database_unavailable",
                        attempts=attempt,
                        timeout_seconds=self._options.connect_timeout_seconds,
                    )
                    raise StoreConnectionError(
                        f"Database {self._db_path} unavailable after "
                        f"{attempt} attempts: {e}"
                    ) from e

                self._log.info("database_waiting", attempt=attempt, error=str(e))
                await asyncio.sleep(min(self._options.poll_interval_seconds, remaining))

    def _close_sync(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None
            self._log.info("database_closed")

    async def close(self) -> None:
        """Close the database connection."""
        await self._run(self._close_sync)

    def _ensure_connected(self) -> sqlite3.Connection:
        """Ensure database is connected.

        Returns:
            The database connection.

        Raises:
            StoreConnectionError: If not connected.
        """
        if self._conn is None:
            raise StoreConnectionError("Database not connected. Call connect() first.")
        return self._conn

    @contextmanager
    def _transaction(self, operation: str) -> Generator[TransactionContext]:
        """Context manager for transactions with timing and logging.

        Args:
            operation: Name of the operation for logging.

        Yields:
            Transaction context with timing information.
        """
        conn = self._ensure_connected()
        tx_id = str(uuid.uuid4())[:8]
        start_ns = time.perf_counter_ns()
        ctx = TransactionContext(
            tx_id=tx_id, start_time_ns=start_ns, operation=operation
        )

        self._log.debug("transaction_started", tx_id=tx_id, op=operation)

        try:
            yield ctx
            conn.commit()
            duration_ms = (time.perf_counter_ns() - start_ns) / 1_000_000
            self._metrics.record_tx_duration(duration_ms)

            self._log.debug(
                "transaction_complete",
                tx_id=tx_id,
                op=operation,
                affected_rows=ctx.affected_rows,
                duration_ms=round(duration_ms, 2),
            )

        except Exception:
            conn.rollback()
            duration_ms = (time.perf_counter_ns() - start_ns) / 1_000_000

            self._log.error(
                "transaction_failed",
                tx_id=tx_id,
                op=operation,
                duration_ms=round(duration_ms, 2),
            )
            raise

    # ===== Lookups =====

    def _row_to_snapshot(self, row: sqlite3.Row) -> Snapshot:
        headers = json.loads(row["headers"] or "{}")
        return Snapshot(
            url=row["url"],
            body=row["body"],
            status=row["status"],
            response_time_ms=row["response_time_ms"],
            original_location=headers.get(HEADER_ORIGINAL_LOCATION, row["url"]),
            tags=json.loads(row["tags"] or "[]"),
            updated_at=datetime.fromisoformat(row["updated_at"]),
            snapshot_id=row["id"],
        )

    def _find_by_key_sync(self, key: str) -> Snapshot | None:
        conn = self._ensure_connected()
        cursor = conn.execute("SELECT * FROM snapshots WHERE url = ?", (key,))
        row = cursor.fetchone()
        self._metrics.record_lookup(hit=row is not None)

        if row is None:
            return None
        return self._row_to_snapshot(row)

    async def find_by_key(self, key: str) -> Snapshot | None:
        """Get the snapshot stored under an exact cache key.

        Args:
            key: Canonical URL.

        Returns:
            The stored snapshot, or None if absent.

        Raises:
            StoreConnectionError: If not connected.
        """
        return await self._run(self._find_by_key_sync, key)

    @staticmethod
    def is_stale(
        snapshot: Snapshot,
        max_age_days: float,
        now: datetime | None = None,
    ) -> bool:
        """Check whether a snapshot is too old to serve.

        A snapshot that has never been written is always stale.

        Args:
            snapshot: Snapshot to check.
            max_age_days: Maximum age in days; fractions are allowed.
            now: Reference time (default: current UTC time).

        Returns:
            True if ``now - updated_at >= max_age_days``.
        """
        if snapshot.updated_at is None:
            return True
        reference = now or datetime.now(UTC)
        if reference.tzinfo is None:
            reference = reference.replace(tzinfo=UTC)
        return reference - snapshot.updated_at >= timedelta(days=max_age_days)

    # ===== Writes =====

    def _persist_sync(self, snapshot: Snapshot) -> PersistResult:
        if not snapshot.is_cacheable:
            self._metrics.record_skip()
            return PersistResult(event=PersistEvent.SKIPPED, reason="not_cacheable")

        now = datetime.now(UTC)
        content_hash = snapshot.content_hash
        headers_json = json.dumps(snapshot.headers_for_response(), sort_keys=True)
        tags_json = json.dumps(snapshot.tags)

        with self._transaction("persist_snapshot") as ctx:
            conn = self._ensure_connected()
            cursor = conn.execute(
                "SELECT id, content_hash, tags FROM snapshots WHERE url = ?",
                (snapshot.url,),
            )
            existing = cursor.fetchone()

            if existing is None:
                cursor = conn.execute(
                    """
                    INSERT INTO snapshots (
                        url, body, status, headers, tags, content_hash,
                        response_time_ms, created_at, updated_at
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        snapshot.url,
                        snapshot.body,
                        snapshot.status,
                        headers_json,
                        tags_json,
                        content_hash,
                        snapshot.response_time_ms,
                        now.isoformat(),
                        now.isoformat(),
                    ),
                )
                ctx.add_affected_rows(1)
                self._metrics.record_insert()
                stored = snapshot.model_copy(
                    update={"snapshot_id": cursor.lastrowid, "updated_at": now}
                )
                return PersistResult(event=PersistEvent.NEW, snapshot=stored)

            unchanged = (
                existing["content_hash"] == content_hash
                and existing["tags"] == tags_json
            )

            if unchanged and snapshot.is_persisted:
                # Nothing new since the snapshot was read back
                self._metrics.record_skip()
                return PersistResult(event=PersistEvent.SKIPPED, reason="unchanged")

            if unchanged:
                conn.execute(
                    """
                    UPDATE snapshots SET
                        headers = ?, response_time_ms = ?, updated_at = ?
                    WHERE id = ?
                    """,
                    (
                        headers_json,
                        snapshot.response_time_ms,
                        now.isoformat(),
                        existing["id"],
                    ),
                )
                event = PersistEvent.REFRESHED
                self._metrics.record_refresh()
            else:
                conn.execute(
                    """
                    UPDATE snapshots SET
                        body = ?, status = ?, headers = ?, tags = ?,
                        content_hash = ?, response_time_ms = ?, updated_at = ?
                    WHERE id = ?
                    """,
                    (
                        snapshot.body,
                        snapshot.status,
                        headers_json,
                        tags_json,
                        content_hash,
                        snapshot.response_time_ms,
                        now.isoformat(),
                        existing["id"],
                    ),
                )
                event = PersistEvent.UPDATED
                self._metrics.record_update()

            ctx.add_affected_rows(1)
            stored = snapshot.model_copy(
                update={"snapshot_id": existing["id"], "updated_at": now}
            )
            return PersistResult(event=event, snapshot=stored)

    async def persist(self, snapshot: Snapshot) -> PersistResult:
        """Offer a snapshot to the store and report what happened.

        A snapshot is written only if its body is non-empty, its status is
        below 500, and it is either new for its URL or differs from the
        stored content. A fresh render identical to the stored content only
        moves the stored timestamp forward.

        Args:
            snapshot: Snapshot to persist.

        Returns:
            Result describing the write.

        Raises:
            StoreConnectionError: If not connected.
            SnapshotPersistError: If the database rejects the write.
        """
        try:
            result = await self._run(self._persist_sync, snapshot)
        except sqlite3.Error as e:
            self._metrics.record_failure()
            self._log.error("snapshot_persist_failed", url=snapshot.url, error=str(e))
            raise SnapshotPersistError(snapshot.url, str(e)) from e

        self._log.debug(
            "snapshot_persist_result",
            url=snapshot.url,
            persist_event=result.event.value,
            reason=result.reason,
        )
        return result

    async def persist_if_worthwhile(self, snapshot: Snapshot) -> Snapshot | None:
        """Persist a snapshot when it is worth caching.

        Args:
            snapshot: Snapshot to persist.

        Returns:
            The stored snapshot with ``snapshot_id`` and ``updated_at`` set,
            or None when nothing was written.

        Raises:
            StoreConnectionError: If not connected.
            SnapshotPersistError: If the database rejects the write.
        """
        result = await self.persist(snapshot)
        return result.snapshot

    # ===== Statistics =====

    def _get_stats_sync(self) -> dict[str, int]:
        conn = self._ensure_connected()
        row = conn.execute(
            """
            SELECT
                COUNT(*),
                SUM(CASE WHEN status BETWEEN 200 AND 299 THEN 1 ELSE 0 END),
                SUM(CASE WHEN status BETWEEN 300 AND 399 THEN 1 ELSE 0 END),
                SUM(CASE WHEN status BETWEEN 400 AND 499 THEN 1 ELSE 0 END),
                COALESCE(SUM(LENGTH(body)), 0)
            FROM snapshots
            """
        ).fetchone()
        return {
            "snapshots": row[0],
            "status_2xx": row[1] or 0,
            "status_3xx": row[2] or 0,
            "status_4xx": row[3] or 0,
            "body_bytes": row[4],
        }

    async def get_stats(self) -> dict[str, int]:
        """Get snapshot counts.

        Returns:
            Dictionary with the total count, counts by status class, and
            the total size of stored bodies.
        """
        return await self._run(self._get_stats_sync)

    def _get_schema_version_sync(self) -> int:
        conn = self._ensure_connected()
        return read_schema_version(conn)

    async def get_schema_version(self) -> int:
        """Get current schema version.

        Returns:
            Current schema version number.
        """
        return await self._run(self._get_schema_version_sync)
