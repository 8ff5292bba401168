"""
Persistent Queue Module

Provides the durable mutation queue for the sync engine using SQLite-backed
persistence. Pending mutations survive process restarts, crashes, and
backend outages.
"""

from sync_queue.models import QueueItem, EntityKind, SyncOperation, DEFAULT_MAX_RETRIES
from sync_queue.store import SyncQueueStore, QueueStoreError
from sync_queue.operations import (
    PayloadEncodingError,
    encode_payload,
    get_stats,
    get_failed_items,
)

__all__ = [
    'QueueItem',
    'EntityKind',
    'SyncOperation',
    'DEFAULT_MAX_RETRIES',
    'SyncQueueStore',
    'QueueStoreError',
    'PayloadEncodingError',
    'encode_payload',
    'get_stats',
    'get_failed_items',
]
