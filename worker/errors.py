"""
Centralized error classification for sync attempts.

Maps whatever a sync attempt raised onto the sync error taxonomy, so the
engine and its callers make retry decisions from one place:

- NetworkUnavailable, ServerError: transient, retryable by policy
- EncodingFailed: structural, the item can never be sent as-is
- MaxRetriesExceeded: the item used up its retry budget
- Conflict: reserved for server-side conflict signaling
- UnknownSyncError: anything else
"""

import logging

from http_api.errors import (
    DecodingError,
    EncodingError,
    HttpError,
    NetworkError,
    Unauthorized,
)
from sync_queue.operations import PayloadEncodingError

logger = logging.getLogger(__name__)


class SyncError(Exception):
    """Base class for sync failures."""

    retryable = False
    default_message = "Sync error."

    def __init__(self, message: str = "") -> None:
        super().__init__(message or self.default_message)


class NetworkUnavailable(SyncError):
    retryable = True
    default_message = "No internet connection. Changes will sync when you're back online."


class ServerError(SyncError):
    retryable = True

    def __init__(self, status_code: int) -> None:
        self.status_code = status_code
        super().__init__(f"Server error (code {status_code}). Will retry automatically.")


class EncodingFailed(SyncError):
    default_message = "Failed to prepare data for sync."


class MaxRetriesExceeded(SyncError):
    default_message = "Sync failed after multiple attempts. Please try again manually."


class Conflict(SyncError):
    def __init__(self, message: str) -> None:
        super().__init__(f"Sync conflict: {message}")


class UnknownSyncError(SyncError):
    def __init__(self, message: str) -> None:
        super().__init__(f"Sync error: {message}")


def classify_exception(exc: Exception) -> SyncError:
    """
    Classify an exception raised by a sync attempt.

    Args:
        exc: The exception to classify

    Returns:
        SyncError instance describing the failure. SyncError inputs are
        returned unchanged.
    """
    if isinstance(exc, SyncError):
        return exc

    if isinstance(exc, NetworkError):
        logger.debug(f"Network error classified as NetworkUnavailable: {exc}")
        return NetworkUnavailable()

    if isinstance(exc, HttpError):
        logger.debug(f"HTTP {exc.status_code} classified as ServerError")
        return ServerError(exc.status_code)

    if isinstance(exc, (PayloadEncodingError, EncodingError)):
        logger.debug(f"Encoding error classified as EncodingFailed: {exc}")
        return EncodingFailed(str(exc))

    if isinstance(exc, (Unauthorized, DecodingError)):
        return UnknownSyncError(str(exc))

    logger.debug(f"Unknown exception classified as UnknownSyncError: {type(exc).__name__}")
    return UnknownSyncError(f"{type(exc).__name__}: {exc}")


def is_structural(error: SyncError) -> bool:
    """True for failures no retry can fix (the item itself is malformed)."""
    return isinstance(error, EncodingFailed)
