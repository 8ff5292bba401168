"""
Access/refresh token storage.

TokenStore is the interface APIClient reads credentials from and writes
refreshed credentials to. InMemoryTokenStore serves tests and short-lived
processes; FileTokenStore keeps tokens across restarts.
"""

from __future__ import annotations

import json
import logging
import os
import threading
from typing import Optional, Protocol, runtime_checkable

log = logging.getLogger(__name__)


@runtime_checkable
class TokenStore(Protocol):
    @property
    def access_token(self) -> Optional[str]: ...

    @property
    def refresh_token(self) -> Optional[str]: ...

    def save(self, access_token: str, refresh_token: str) -> None: ...

    def clear_tokens(self) -> None: ...


class InMemoryTokenStore:
    """Lock-guarded token pair held in process memory."""

    def __init__(
        self,
        access_token: Optional[str] = None,
        refresh_token: Optional[str] = None,
    ) -> None:
        self._lock = threading.Lock()
        self._access_token = access_token
        self._refresh_token = refresh_token

    @property
    def access_token(self) -> Optional[str]:
        with self._lock:
            return self._access_token

    @property
    def refresh_token(self) -> Optional[str]:
        with self._lock:
            return self._refresh_token

    def save(self, access_token: str, refresh_token: str) -> None:
        with self._lock:
            self._access_token = access_token
            self._refresh_token = refresh_token

    def clear_tokens(self) -> None:
        with self._lock:
            self._access_token = None
            self._refresh_token = None


class FileTokenStore(InMemoryTokenStore):
    """
    Token pair persisted as JSON.

    Loaded once at construction; every save/clear rewrites the file
    atomically (write to temp, rename). A missing or corrupt file means no
    credentials.
    """

    def __init__(self, path: str) -> None:
        super().__init__()
        self.path = str(path)
        self._load()

    def _load(self) -> None:
        if not os.path.exists(self.path):
            return
        try:
            with open(self.path, "r") as f:
                data = json.load(f)
            self._access_token = data.get("access_token")
            self._refresh_token = data.get("refresh_token")
        except (json.JSONDecodeError, OSError, AttributeError) as exc:
            log.warning("Token file %s unreadable, starting signed out: %s", self.path, exc)
            self._access_token = None
            self._refresh_token = None

    def _write(self) -> None:
        parent = os.path.dirname(self.path)
        if parent:
            os.makedirs(parent, exist_ok=True)
        temp_path = self.path + ".tmp"
        with open(temp_path, "w") as f:
            json.dump(
                {"access_token": self._access_token, "refresh_token": self._refresh_token},
                f,
            )
        os.replace(temp_path, self.path)

    def save(self, access_token: str, refresh_token: str) -> None:
        with self._lock:
            self._access_token = access_token
            self._refresh_token = refresh_token
            self._write()

    def clear_tokens(self) -> None:
        with self._lock:
            self._access_token = None
            self._refresh_token = None
            self._write()
