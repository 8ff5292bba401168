"""
Network reachability signal.

Tells the sync engine when the network comes back. Platform code can push
transitions through update(); without such a hook, start() probes the
backend periodically. Any non-5xx answer counts as reachable.

This module provides:
- ConnectivityMonitor: reconnect callbacks plus optional active probing
"""

import asyncio
from typing import Callable, List, Optional

import httpx

from shared.log import create_logger

log_trace, log_debug, log_info, log_warn, log_error = create_logger("Connectivity")

__all__ = ["ConnectivityMonitor"]


class ConnectivityMonitor:
    """
    Tracks online/offline state and fires callbacks on reconnect.

    Args:
        probe_url: URL probed by check_once() (typically the API base URL)
        probe_timeout: Probe timeout in seconds
        initially_connected: Assumed state before the first signal
        transport: Optional httpx transport for the probe client (tests)

    Usage:
        monitor = ConnectivityMonitor("https://kinexfit.com")
        monitor.on_reconnect(engine.process_queue)
        monitor.start(interval=30.0)
    """

    def __init__(
        self,
        probe_url: Optional[str] = None,
        probe_timeout: float = 5.0,
        initially_connected: bool = True,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.probe_url = probe_url
        self._probe_timeout = probe_timeout
        self._transport = transport
        self._is_connected = initially_connected
        self._callbacks: List[Callable[[], object]] = []
        self._task: Optional[asyncio.Task] = None

    @property
    def is_connected(self) -> bool:
        return self._is_connected

    def on_reconnect(self, callback: Callable[[], object]) -> None:
        """Register a callback fired on every offline -> online transition."""
        self._callbacks.append(callback)

    def update(self, is_connected: bool) -> None:
        """Record the current reachability; fires callbacks on reconnect."""
        was_connected = self._is_connected
        self._is_connected = is_connected

        if was_connected and not is_connected:
            log_info("Network unavailable")
        elif not was_connected and is_connected:
            log_info("Network available again")
            for callback in list(self._callbacks):
                try:
                    callback()
                except Exception as e:
                    # Remaining callbacks still run
                    log_warn(f"Reconnect callback {callback!r} raised {type(e).__name__}: {e}")

    async def check_once(self) -> bool:
        """Probe the backend once and feed the result to update()."""
        if not self.probe_url:
            return self._is_connected

        try:
            async with httpx.AsyncClient(
                timeout=self._probe_timeout, transport=self._transport
            ) as client:
                resp = await client.get(self.probe_url)
                reachable = resp.status_code < 500
        except httpx.TransportError as e:
            log_debug(f"Probe failed: {type(e).__name__}: {e}")
            reachable = False

        self.update(reachable)
        return reachable

    async def _probe_loop(self, interval: float) -> None:
        while True:
            await self.check_once()
            await asyncio.sleep(interval)

    def start(self, interval: float = 30.0) -> None:
        """Start periodic probing on the running event loop."""
        if self._task is not None and not self._task.done():
            log_trace("Already probing")
            return
        if not self.probe_url:
            raise ValueError("probe_url is required for active probing")
        self._task = asyncio.get_running_loop().create_task(self._probe_loop(interval))
        log_debug(f"Probing {self.probe_url} every {interval:.0f}s")

    async def stop(self) -> None:
        """Stop periodic probing."""
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
