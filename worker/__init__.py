"""
Sync engine for draining the mutation queue.

Exports SyncEngine, which sends queued mutations to the backend with
exponential backoff, plus its status, connectivity and error types.
"""

from worker.engine import SyncEngine, build_engine, build_request
from worker.status import SyncState, SyncStatus, SyncSnapshot, StatusPublisher
from worker.connectivity import ConnectivityMonitor
from worker.errors import (
    SyncError,
    NetworkUnavailable,
    ServerError,
    EncodingFailed,
    MaxRetriesExceeded,
    Conflict,
    UnknownSyncError,
    classify_exception,
)

__all__ = [
    'SyncEngine',
    'build_engine',
    'build_request',
    'SyncState',
    'SyncStatus',
    'SyncSnapshot',
    'StatusPublisher',
    'ConnectivityMonitor',
    'SyncError',
    'NetworkUnavailable',
    'ServerError',
    'EncodingFailed',
    'MaxRetriesExceeded',
    'Conflict',
    'UnknownSyncError',
    'classify_exception',
]
