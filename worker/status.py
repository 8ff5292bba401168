"""
Sync status reporting.

SyncStatus is what a UI shows next to the sync indicator. The engine pushes
a SyncSnapshot (status + pending count) to every subscriber whenever either
value changes.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional

from shared.log import create_logger

log_trace, log_debug, log_info, log_warn, log_error = create_logger("Status")


class SyncState(Enum):
    IDLE = "idle"
    SYNCING = "syncing"
    SUCCESS = "success"
    ERROR = "error"


@dataclass(frozen=True)
class SyncStatus:
    """Outcome of the latest drain pass. ``message`` is set for ERROR only."""
    state: SyncState = SyncState.IDLE
    message: Optional[str] = None

    @classmethod
    def idle(cls) -> 'SyncStatus':
        return cls(SyncState.IDLE)

    @classmethod
    def syncing(cls) -> 'SyncStatus':
        return cls(SyncState.SYNCING)

    @classmethod
    def success(cls) -> 'SyncStatus':
        return cls(SyncState.SUCCESS)

    @classmethod
    def error(cls, message: str) -> 'SyncStatus':
        return cls(SyncState.ERROR, message)

    @property
    def is_active(self) -> bool:
        return self.state is SyncState.SYNCING

    @property
    def is_error(self) -> bool:
        return self.state is SyncState.ERROR

    def __str__(self) -> str:
        if self.state is SyncState.ERROR:
            return self.message or "Sync error"
        return {
            SyncState.IDLE: "Idle",
            SyncState.SYNCING: "Syncing...",
            SyncState.SUCCESS: "Synced",
        }[self.state]


@dataclass(frozen=True)
class SyncSnapshot:
    status: SyncStatus
    pending_count: int


StatusCallback = Callable[[SyncSnapshot], None]


class StatusPublisher:
    """
    Callback list for status observers.

    Usage:
        publisher = StatusPublisher()
        unsubscribe = publisher.subscribe(lambda snap: print(snap.status))
        ...
        unsubscribe()
    """

    def __init__(self):
        self._callbacks: List[StatusCallback] = []

    def subscribe(self, callback: StatusCallback) -> Callable[[], None]:
        """Register *callback*; returns a function that removes it again."""
        self._callbacks.append(callback)

        def unsubscribe() -> None:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

        return unsubscribe

    def publish(self, snapshot: SyncSnapshot) -> None:
        # Subscriber errors are logged, remaining subscribers still run
        for callback in list(self._callbacks):
            try:
                callback(snapshot)
            except Exception as e:
                log_warn(f"Status subscriber {callback!r} raised {type(e).__name__}: {e}")
