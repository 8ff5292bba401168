"""
SQLite-backed durable store for pending sync mutations.

The store is the system of record for what still has to reach the server.
Each call opens its own short-lived connection, so the store can be shared
between the drain task and callers enqueueing from elsewhere.
"""

import os
import sqlite3
import time
from contextlib import contextmanager
from typing import Callable, Iterator, List, Optional, Union

from shared.log import create_logger
from sync_queue.models import DEFAULT_MAX_RETRIES, QueueItem

log_trace, log_debug, log_info, log_warn, log_error = create_logger("Queue")

_COLUMNS = (
    "id, entity, operation, entity_id, payload, created_at, "
    "retry_count, last_error, next_attempt_at"
)


class QueueStoreError(Exception):
    """The queue database could not be read or written."""


class SyncQueueStore:
    """
    Durable, ordered queue of QueueItem records.

    Args:
        db_path: Path to the SQLite database file (created if missing)
        max_retries: Retry count at which an item counts as FAILED
        clock: Returns current epoch seconds; injectable for tests

    Usage:
        store = SyncQueueStore('/data/sync_queue.db')
        store.save(QueueItem.new('workout', 'create', 'w1', '{"title": "Leg Day"}'))
        for item in store.fetch_pending():
            ...
    """

    def __init__(
        self,
        db_path: str,
        max_retries: int = DEFAULT_MAX_RETRIES,
        clock: Callable[[], float] = time.time,
    ):
        self.db_path = str(db_path)
        self.max_retries = max_retries
        self._clock = clock

        parent = os.path.dirname(self.db_path)
        if parent:
            os.makedirs(parent, exist_ok=True)
        self._init_schema()

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        try:
            conn = sqlite3.connect(self.db_path, timeout=10.0)
        except sqlite3.Error as e:
            raise QueueStoreError(f"Cannot open sync queue at {self.db_path}: {e}") from e
        try:
            yield conn
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            raise QueueStoreError(f"Sync queue operation failed: {e}") from e
        finally:
            conn.close()

    def _init_schema(self) -> None:
        with self._connect() as conn:
            conn.execute('''
                CREATE TABLE IF NOT EXISTS sync_queue (
                    id TEXT PRIMARY KEY NOT NULL,
                    entity TEXT NOT NULL,
                    operation TEXT NOT NULL,
                    entity_id TEXT NOT NULL,
                    payload TEXT NOT NULL,
                    created_at REAL NOT NULL,
                    retry_count INTEGER NOT NULL DEFAULT 0,
                    last_error TEXT,
                    next_attempt_at REAL
                )
            ''')
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_sync_queue_created_at ON sync_queue (created_at)"
            )

    @staticmethod
    def _row_to_item(row: tuple) -> QueueItem:
        return QueueItem(
            id=row[0],
            entity=row[1],
            operation=row[2],
            entity_id=row[3],
            payload=row[4],
            created_at=row[5],
            retry_count=row[6],
            last_error=row[7],
            next_attempt_at=row[8],
        )

    # =========================================================================
    # Writes
    # =========================================================================

    def save(self, item: QueueItem) -> None:
        """Insert or update an item by id."""
        with self._connect() as conn:
            conn.execute(f'''
                INSERT INTO sync_queue ({_COLUMNS})
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    entity = excluded.entity,
                    operation = excluded.operation,
                    entity_id = excluded.entity_id,
                    payload = excluded.payload,
                    created_at = excluded.created_at,
                    retry_count = excluded.retry_count,
                    last_error = excluded.last_error,
                    next_attempt_at = excluded.next_attempt_at
            ''', (
                item.id, item.entity, item.operation, item.entity_id, item.payload,
                item.created_at, item.retry_count, item.last_error, item.next_attempt_at,
            ))
        log_trace(f"Saved {item.operation} {item.entity}/{item.entity_id} (retry {item.retry_count})")

    def delete(self, item: Union[QueueItem, str]) -> None:
        """Delete an item, given the item itself or its id."""
        item_id = item.id if isinstance(item, QueueItem) else str(item)
        with self._connect() as conn:
            conn.execute("DELETE FROM sync_queue WHERE id = ?", (item_id,))
        log_trace(f"Deleted queue item {item_id}")

    def clear_failed(self) -> int:
        """Delete every FAILED item. Returns the number removed."""
        with self._connect() as conn:
            cursor = conn.execute(
                "DELETE FROM sync_queue WHERE retry_count >= ?", (self.max_retries,)
            )
            deleted = cursor.rowcount
        if deleted:
            log_info(f"Cleared {deleted} failed item(s)")
        return deleted

    def clear_all(self) -> int:
        """Delete every item, pending or failed. Returns the number removed."""
        with self._connect() as conn:
            deleted = conn.execute("DELETE FROM sync_queue").rowcount
        log_info(f"Cleared {deleted} item(s)")
        return deleted

    # =========================================================================
    # Queries
    # =========================================================================

    def get(self, item_id: str) -> Optional[QueueItem]:
        with self._connect() as conn:
            row = conn.execute(
                f"SELECT {_COLUMNS} FROM sync_queue WHERE id = ?", (item_id,)
            ).fetchone()
        return self._row_to_item(row) if row else None

    def fetch_pending(self) -> List[QueueItem]:
        """
        Items ready to be processed now.

        Returns items under the retry limit whose backoff has elapsed (or
        was never set), oldest first.
        """
        now = self._clock()
        with self._connect() as conn:
            rows = conn.execute(f'''
                SELECT {_COLUMNS} FROM sync_queue
                WHERE retry_count < ?
                  AND (next_attempt_at IS NULL OR next_attempt_at <= ?)
                ORDER BY created_at ASC, rowid ASC
            ''', (self.max_retries, now)).fetchall()
        return [self._row_to_item(row) for row in rows]

    def fetch_all(self) -> List[QueueItem]:
        """Every item including failed ones, oldest first."""
        with self._connect() as conn:
            rows = conn.execute(
                f"SELECT {_COLUMNS} FROM sync_queue ORDER BY created_at ASC, rowid ASC"
            ).fetchall()
        return [self._row_to_item(row) for row in rows]

    def pending_count(self) -> int:
        """Items under the retry limit, whether ready or waiting for backoff."""
        with self._connect() as conn:
            row = conn.execute(
                "SELECT COUNT(*) FROM sync_queue WHERE retry_count < ?", (self.max_retries,)
            ).fetchone()
        return row[0]

    def failed_count(self) -> int:
        """Items that exhausted their retries."""
        with self._connect() as conn:
            row = conn.execute(
                "SELECT COUNT(*) FROM sync_queue WHERE retry_count >= ?", (self.max_retries,)
            ).fetchone()
        return row[0]
