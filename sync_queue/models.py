"""
Queue item model for pending sync mutations.

One QueueItem is one local create/update/delete that still has to reach
the backend. Items are plain dataclasses; the store owns persistence and
the engine produces updated copies on every attempt.
"""

import time
import uuid
from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional

# Items at or over this retry count are FAILED and excluded from draining
DEFAULT_MAX_RETRIES = 5


class EntityKind(str, Enum):
    """Domain collection a mutation targets."""
    WORKOUT = "workout"
    BODY_METRIC = "bodyMetric"
    USER = "user"


class SyncOperation(str, Enum):
    """Kind of mutation."""
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


@dataclass
class QueueItem:
    """
    A pending sync operation.

    ``entity`` and ``operation`` hold the string values of EntityKind and
    SyncOperation. They are kept as strings so a row written by another
    version of the app still loads; unknown values are rejected when the
    item is synced.

    Attributes:
        id: Unique identifier, assigned at creation
        entity: EntityKind value
        operation: SyncOperation value
        entity_id: Identifier of the affected domain object
        payload: JSON snapshot of the object at enqueue time
        created_at: Epoch seconds, FIFO ordering key
        retry_count: Failed attempts so far
        last_error: Message of the most recent failure
        next_attempt_at: Epoch seconds before which the item is not retried
    """
    id: str
    entity: str
    operation: str
    entity_id: str
    payload: str
    created_at: float
    retry_count: int = 0
    last_error: Optional[str] = None
    next_attempt_at: Optional[float] = None

    @classmethod
    def new(
        cls,
        entity: 'EntityKind | str',
        operation: 'SyncOperation | str',
        entity_id: str,
        payload: str = "{}",
        now: Optional[float] = None,
    ) -> 'QueueItem':
        """Create a fresh item with no retry history."""
        return cls(
            id=str(uuid.uuid4()),
            entity=_value(entity),
            operation=_value(operation),
            entity_id=str(entity_id),
            payload=payload,
            created_at=time.time() if now is None else now,
        )

    def is_failed(self, max_retries: int = DEFAULT_MAX_RETRIES) -> bool:
        return self.retry_count >= max_retries

    def is_waiting(self, now: float, max_retries: int = DEFAULT_MAX_RETRIES) -> bool:
        """True while the item sits out a backoff delay."""
        if self.is_failed(max_retries):
            return False
        return self.next_attempt_at is not None and self.next_attempt_at > now

    def is_pending(self, now: float, max_retries: int = DEFAULT_MAX_RETRIES) -> bool:
        """True if the item may be attempted at *now*."""
        if self.is_failed(max_retries):
            return False
        return self.next_attempt_at is None or self.next_attempt_at <= now

    def with_failure(
        self,
        message: str,
        retry_count: int,
        next_attempt_at: Optional[float],
    ) -> 'QueueItem':
        """Copy with retry state for a failed attempt."""
        if next_attempt_at is not None:
            next_attempt_at = max(next_attempt_at, self.created_at)
        return replace(
            self,
            retry_count=max(retry_count, self.retry_count),
            last_error=message,
            next_attempt_at=next_attempt_at,
        )

    def reset(self) -> 'QueueItem':
        """Copy with retry state cleared (manual "retry failed")."""
        return replace(self, retry_count=0, last_error=None, next_attempt_at=None)


def _value(member) -> str:
    return member.value if isinstance(member, Enum) else str(member)
