"""
Queue operations for payload encoding and maintenance queries.

Stateless operations that work on a store instance passed in.
"""

import dataclasses
import json
import time
from typing import Any, Callable, List

from pydantic import BaseModel

from shared.log import create_logger
from sync_queue.models import QueueItem
from sync_queue.store import SyncQueueStore

log_trace, log_debug, log_info, log_warn, log_error = create_logger("Queue")


class PayloadEncodingError(ValueError):
    """An object could not be turned into a JSON payload."""


def encode_payload(obj: Any) -> str:
    """
    Serialize an object snapshot into JSON payload text.

    Args:
        obj: JSON text (str or UTF-8 bytes), a dict/list, a pydantic model,
             a dataclass instance, or None (empty object)

    Returns:
        JSON text suitable for QueueItem.payload

    Raises:
        PayloadEncodingError: If the object cannot be serialized

    Example:
        >>> encode_payload({'title': 'Leg Day'})
        '{"title": "Leg Day"}'
    """
    if obj is None:
        return "{}"

    if isinstance(obj, bytes):
        try:
            obj = obj.decode('utf-8')
        except UnicodeDecodeError as e:
            raise PayloadEncodingError(f"Payload is not valid UTF-8: {e}") from e

    if isinstance(obj, str):
        try:
            json.loads(obj)
        except ValueError as e:
            raise PayloadEncodingError(f"Payload is not valid JSON: {e}") from e
        return obj

    if isinstance(obj, BaseModel):
        return obj.model_dump_json()

    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        obj = dataclasses.asdict(obj)

    try:
        return json.dumps(obj, default=_json_default)
    except (TypeError, ValueError) as e:
        raise PayloadEncodingError(f"Payload is not JSON serializable: {e}") from e


def _json_default(value: Any) -> Any:
    # datetimes and dates travel as ISO-8601, like the backend expects
    if hasattr(value, 'isoformat'):
        return value.isoformat()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def get_stats(store: SyncQueueStore, clock: Callable[[], float] = time.time) -> dict:
    """
    Get queue statistics by state.

    Args:
        store: Queue store to inspect
        clock: Returns current epoch seconds

    Returns:
        Dict with counts: {
            'pending': int,   # ready to be attempted now
            'waiting': int,   # sitting out a backoff delay
            'failed': int,    # exhausted retries
            'total': int
        }
    """
    now = clock()
    stats = {'pending': 0, 'waiting': 0, 'failed': 0, 'total': 0}
    for item in store.fetch_all():
        stats['total'] += 1
        if item.is_failed(store.max_retries):
            stats['failed'] += 1
        elif item.is_waiting(now, store.max_retries):
            stats['waiting'] += 1
        else:
            stats['pending'] += 1
    return stats


def get_failed_items(store: SyncQueueStore) -> List[QueueItem]:
    """Items that exhausted their retries, oldest first."""
    return [item for item in store.fetch_all() if item.is_failed(store.max_retries)]
