"""
Exceptions raised by the authenticated API client.

``str(error)`` is a short human-readable message; the sync engine stores it
as a queue item's ``last_error``.
"""

from __future__ import annotations

import json
from typing import Optional


class APIError(Exception):
    """Base class for every failure reported by APIClient."""

    default_message = "API request failed."

    def __init__(self, message: Optional[str] = None) -> None:
        super().__init__(message or self.default_message)


class HttpError(APIError):
    """
    Non-2xx response other than a 401 handled by token refresh.

    Attributes:
        status_code: HTTP status code
        body: Raw response body
    """

    def __init__(self, status_code: int, body: bytes = b"") -> None:
        self.status_code = status_code
        self.body = body
        super().__init__(f"Server error (HTTP {status_code}).")

    @property
    def server_message(self) -> Optional[str]:
        """Error message from a JSON body like ``{"message": ...}`` or ``{"error": ...}``."""
        try:
            decoded = json.loads(self.body)
        except ValueError:
            return None
        if not isinstance(decoded, dict):
            return None
        message = decoded.get("message") or decoded.get("error")
        return message if isinstance(message, str) else None


class NetworkError(APIError):
    """Transport failure: DNS, connect, timeout, or connection reset."""

    default_message = "Network error. Please check your connection."


class DecodingError(APIError):
    """A 2xx response body could not be decoded into the requested shape."""

    default_message = "Failed to parse server response."


class EncodingError(APIError):
    """A request body could not be serialized."""

    default_message = "Failed to prepare request data."


class Unauthorized(APIError):
    """Credentials are missing, expired, or were rejected after a refresh."""

    default_message = "Authentication required. Please sign in again."
