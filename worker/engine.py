"""
Offline-first sync engine.

Drains the durable mutation queue against the backend:
- Local mutation is committed by the app, then enqueued here
- A drain pass sends every ready item, oldest first
- Success removes the item from the queue
- Failure records the error and schedules the next attempt with
  exponential backoff; after max_retries failures the item is FAILED
  and waits for a manual retry_failed() / clear_failed()

Triggers: enqueue, app foreground, pull-to-refresh, connectivity restored.
Only one drain pass runs at a time; extra triggers while it runs are no-ops.
"""

import asyncio
import json
import time
from typing import TYPE_CHECKING, Any, Callable, List, Optional, Set

from http_api.endpoints import base_path, single
from http_api.errors import HttpError
from http_api.requests import APIRequest, HTTPMethod
from shared.log import ROOT_LOGGER_NAME, create_logger
from sync_queue.models import EntityKind, QueueItem, SyncOperation
from sync_queue.operations import encode_payload, get_failed_items
from sync_queue.store import QueueStoreError, SyncQueueStore
from worker.backoff import DEFAULT_BASE_DELAY, calculate_delay, next_attempt_time
from worker.errors import EncodingFailed, MaxRetriesExceeded, classify_exception, is_structural
from worker.status import StatusCallback, StatusPublisher, SyncSnapshot, SyncState, SyncStatus

log_trace, log_debug, log_info, log_warn, log_error = create_logger("Engine")

if TYPE_CHECKING:
    from http_api.client import APIClient
    from http_api.tokens import TokenStore
    from validation.config import SyncConfig
    from worker.connectivity import ConnectivityMonitor


def build_request(item: QueueItem) -> APIRequest:
    """
    Map a queue item onto its REST call.

    Raises:
        EncodingFailed: Unknown entity/operation, or a payload that is not JSON
    """
    try:
        operation = SyncOperation(item.operation)
        entity = EntityKind(item.entity)
    except ValueError as e:
        raise EncodingFailed(
            f"Unrecognized sync operation {item.operation!r} for entity {item.entity!r}"
        ) from e

    if operation is SyncOperation.DELETE:
        return APIRequest.delete(single(entity, item.entity_id))

    try:
        body = item.payload.encode('utf-8')
        json.loads(body)
    except ValueError as e:
        raise EncodingFailed(f"Failed to prepare data for sync: {e}") from e

    if operation is SyncOperation.CREATE:
        return APIRequest.post(base_path(entity), body)
    return APIRequest.put(single(entity, item.entity_id), body)


class SyncEngine:
    """
    Orchestrates drain passes over the sync queue.

    Holds no queue state of its own beyond the in-flight pass and the last
    published status/pending count; every pass re-reads the store.

    Args:
        store: Durable queue store
        client: Authenticated API client used to send items
        config: SyncConfig (or any object with max_retries, base_delay,
                fail_fast_structural); defaults match the store
        clock: Returns current epoch seconds; injectable for tests
    """

    def __init__(
        self,
        store: SyncQueueStore,
        client: 'APIClient',
        config: Optional['SyncConfig'] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.store = store
        self.client = client
        self.max_retries = getattr(config, 'max_retries', store.max_retries)
        self.base_delay = getattr(config, 'base_delay', DEFAULT_BASE_DELAY)
        self.fail_fast_structural = getattr(config, 'fail_fast_structural', True)
        self.connectivity_check_interval = getattr(config, 'connectivity_check_interval', 30.0)
        self.monitor: Optional['ConnectivityMonitor'] = None
        self._clock = clock

        if self.max_retries != store.max_retries:
            log_warn(
                f"Engine max_retries={self.max_retries} differs from store "
                f"max_retries={store.max_retries}; using the store's failed/pending split"
            )

        self._status = SyncStatus.idle()
        self._pending_count = 0
        self._publisher = StatusPublisher()

        self._task: Optional[asyncio.Task] = None
        self._cancel_requested = False
        self._writes_during_pass = False

        self._refresh_pending_count()

    # =========================================================================
    # Published state
    # =========================================================================

    @property
    def status(self) -> SyncStatus:
        return self._status

    @property
    def pending_count(self) -> int:
        return self._pending_count

    @property
    def is_running(self) -> bool:
        """True while a drain pass is in flight."""
        return self._task is not None

    def subscribe(self, callback: StatusCallback) -> Callable[[], None]:
        """Receive a SyncSnapshot on every status or pending count change."""
        return self._publisher.subscribe(callback)

    def _publish(self) -> None:
        self._publisher.publish(SyncSnapshot(self._status, self._pending_count))

    def _set_status(self, status: SyncStatus) -> None:
        self._status = status
        self._publish()

    def _refresh_pending_count(self) -> None:
        try:
            count = self.store.pending_count()
        except QueueStoreError as e:
            log_warn(f"Could not read pending count: {e}")
            return
        if count != self._pending_count:
            self._pending_count = count
            self._publish()

    def acknowledge(self) -> None:
        """Collapse a reported Success/Error back to Idle once the UI has shown it."""
        if self._status.state in (SyncState.SUCCESS, SyncState.ERROR):
            self._set_status(SyncStatus.idle())

    # =========================================================================
    # Triggers
    # =========================================================================

    def start(self) -> Optional[asyncio.Task]:
        """
        Report failed items left from earlier sessions and start a pass.

        A bound monitor with a probe URL starts probing every
        connectivity_check_interval seconds.
        """
        self.log_failed_summary()
        task = self.process_queue()
        if task is not None and self.monitor is not None and self.monitor.probe_url:
            self.monitor.start(self.connectivity_check_interval)
        return task

    def bind_connectivity(self, monitor: 'ConnectivityMonitor') -> None:
        """Start a drain pass whenever *monitor* reports the network is back."""
        self.monitor = monitor
        monitor.on_reconnect(self.process_queue)

    async def close(self) -> None:
        """Stop connectivity probing and close the API client."""
        if self.monitor is not None:
            await self.monitor.stop()
        await self.client.close()

    def enqueue(
        self,
        operation: SyncOperation,
        entity: EntityKind,
        entity_id: str,
        payload: Any = None,
    ) -> QueueItem:
        """
        Record a mutation for background sync and trigger a drain pass.

        Call after the local change has been committed.

        Args:
            operation: create, update or delete
            entity: Entity kind the mutation targets
            entity_id: Identifier of the affected object
            payload: Object snapshot (anything encode_payload accepts);
                     ignored for delete

        Returns:
            The persisted QueueItem

        Raises:
            ValueError: Unknown operation or entity kind
            PayloadEncodingError: Payload cannot be serialized
            QueueStoreError: The queue could not be written
        """
        operation = SyncOperation(operation)
        entity = EntityKind(entity)
        body = "{}" if operation is SyncOperation.DELETE else encode_payload(payload)

        item = QueueItem.new(entity, operation, entity_id, body, now=self._clock())
        try:
            self.store.save(item)
        except QueueStoreError as e:
            log_error(f"Failed to enqueue {operation.value} {entity.value}/{entity_id}: {e}")
            raise

        log_debug(f"Enqueued {operation.value} {entity.value}/{entity_id} ({item.id})")
        if self._task is not None:
            self._writes_during_pass = True
        self._refresh_pending_count()
        self.process_queue()
        return item

    def process_queue(self) -> Optional[asyncio.Task]:
        """
        Start a drain pass unless one is already running.

        Returns:
            The in-flight pass task (a new one, or the one already running),
            or None when called without a running event loop.
        """
        if self._task is not None:
            log_trace("Drain pass already running")
            return self._task

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            log_debug("No running event loop, drain deferred to next trigger")
            return None

        self._cancel_requested = False
        self._writes_during_pass = False
        self._task = loop.create_task(self._run_pass())
        return self._task

    def cancel(self) -> None:
        """Ask the running pass to stop before its next item."""
        if self._task is not None:
            log_debug("Cancellation requested")
            self._cancel_requested = True

    async def wait_idle(self) -> None:
        """Wait for the in-flight drain pass, if any, to finish."""
        if self._task is not None:
            await self._task

    # =========================================================================
    # Drain pass
    # =========================================================================

    async def _run_pass(self) -> None:
        try:
            await self._drain()
        except asyncio.CancelledError:
            log_info("Drain pass task cancelled")
            self._refresh_pending_count()
            self._set_status(SyncStatus.error("Sync cancelled"))
            raise
        finally:
            self._task = None

    async def _drain(self) -> None:
        self._set_status(SyncStatus.syncing())

        try:
            items = self.store.fetch_pending()
        except QueueStoreError as e:
            log_error(f"Could not read sync queue: {e}")
            self._set_status(SyncStatus.error(str(e)))
            return

        if not items:
            self._refresh_pending_count()
            self._set_status(SyncStatus.success())
            return

        log_debug(f"Drain pass started with {len(items)} item(s)")
        all_succeeded = True
        attempted: Set[str] = set()

        while items:
            self._writes_during_pass = False
            for item in items:
                if self._cancel_requested:
                    log_info("Drain pass cancelled")
                    break
                attempted.add(item.id)
                if not await self._process_item(item):
                    all_succeeded = False

            if self._cancel_requested or not self._writes_during_pass:
                break

            # Items enqueued while this pass ran
            try:
                items = [i for i in self.store.fetch_pending() if i.id not in attempted]
            except QueueStoreError as e:
                log_error(f"Could not re-read sync queue: {e}")
                self._set_status(SyncStatus.error(str(e)))
                return

        self._refresh_pending_count()

        try:
            remaining = self.store.pending_count()
            failed = self.store.failed_count()
        except QueueStoreError as e:
            log_error(f"Could not read sync queue counts: {e}")
            self._set_status(SyncStatus.error(str(e)))
            return

        if all_succeeded and remaining == 0:
            log_debug("Drain pass finished, queue empty")
            self._set_status(SyncStatus.success())
        elif failed > 0:
            self._set_status(SyncStatus.error(f"{failed} item(s) failed to sync"))
        else:
            self._set_status(SyncStatus.error(f"{remaining} item(s) pending retry"))

    async def _process_item(self, item: QueueItem) -> bool:
        """Attempt one item. Returns False if it is still outstanding afterwards."""
        if item.next_attempt_at is not None and item.next_attempt_at > self._clock():
            log_trace(f"Item {item.id} waiting for backoff, skipped")
            return False

        if item.retry_count >= self.max_retries:
            return True

        try:
            await self.execute_sync(item)
        except Exception as e:
            self._record_failure(item, e)
            return False

        try:
            self.store.delete(item)
        except QueueStoreError as e:
            log_error(f"Synced item {item.id} could not be removed and will be sent again: {e}")
            return False

        log_debug(f"Synced {item.operation} {item.entity}/{item.entity_id}")
        return True

    def _record_failure(self, item: QueueItem, exc: Exception) -> None:
        error = classify_exception(exc)
        message = str(exc)
        retry_count = item.retry_count + 1

        if isinstance(exc, HttpError) and exc.server_message:
            log_debug(f"Item {item.id} rejected by server: {exc.server_message}")

        if self.fail_fast_structural and is_structural(error):
            updated = item.with_failure(message, max(retry_count, self.max_retries), None)
            log_warn(f"Item {item.id} cannot be sent and was marked failed: {message}")
        else:
            updated = item.with_failure(
                message,
                retry_count,
                next_attempt_time(self._clock(), retry_count, self.base_delay),
            )
            if updated.is_failed(self.max_retries):
                log_warn(f"Item {item.id}: {MaxRetriesExceeded()} Last error: {message}")
            else:
                delay = calculate_delay(retry_count, self.base_delay)
                log_debug(
                    f"Item {item.id} failed ({type(error).__name__}), "
                    f"retry {retry_count}/{self.max_retries} in {delay:.0f}s: {message}"
                )

        try:
            self.store.save(updated)
        except QueueStoreError as e:
            log_error(f"Could not record failure for item {item.id}: {e}")

    async def execute_sync(self, item: QueueItem) -> None:
        """Send one item. The response body of create/update is discarded."""
        request = build_request(item)
        if request.method is HTTPMethod.DELETE:
            await self.client.send_no_content(request)
        else:
            await self.client.send(request)

    # =========================================================================
    # Maintenance
    # =========================================================================

    def retry_failed(self) -> int:
        """
        Reset every FAILED item so it is attempted again, then start a pass.

        Returns:
            Number of items reset
        """
        try:
            reset = 0
            for item in self.store.fetch_all():
                if item.is_failed(self.max_retries):
                    self.store.save(item.reset())
                    reset += 1
        except QueueStoreError as e:
            log_error(f"Failed to retry failed items: {e}")
            raise

        if reset:
            log_info(f"Reset {reset} failed item(s) for retry")
            if self._task is not None:
                self._writes_during_pass = True
        self._refresh_pending_count()
        self.process_queue()
        return reset

    def clear_failed(self) -> int:
        """Delete FAILED items. Items waiting for backoff are kept."""
        removed = self.store.clear_failed()
        self._refresh_pending_count()
        return removed

    def failed_items(self) -> List[QueueItem]:
        return get_failed_items(self.store)

    def log_failed_summary(self, limit: int = 5) -> None:
        """Log failed items if any are present."""
        try:
            failed = self.failed_items()
        except QueueStoreError as e:
            log_warn(f"Could not read failed items: {e}")
            return
        if not failed:
            return
        log_warn(f"Sync queue contains {len(failed)} failed item(s) requiring review")
        for item in failed[-limit:]:
            log_debug(
                f"Failed {item.operation} {item.entity}/{item.entity_id} "
                f"after {item.retry_count} attempts: {(item.last_error or '')[:80]}"
            )


def build_engine(
    config: Optional['SyncConfig'] = None,
    token_store: Optional['TokenStore'] = None,
    clock: Callable[[], float] = time.time,
    probe_connectivity: bool = False,
    configure_logs: bool = False,
) -> SyncEngine:
    """
    Wire a SyncEngine from configuration.

    Args:
        config: SyncConfig; loaded from the environment when omitted
        token_store: Credential store; defaults to FileTokenStore when
                     config.token_file is set, else an empty in-memory store
        clock: Returns current epoch seconds
        probe_connectivity: Bind a ConnectivityMonitor that probes
                            config.api_base_url once start() is called
        configure_logs: Set up JSON logging for the library loggers at
                        config.log_level
    """
    from http_api.client import APIClient
    from http_api.tokens import FileTokenStore, InMemoryTokenStore
    from shared.logging_config import configure_logging
    from validation.config import load_config
    from worker.connectivity import ConnectivityMonitor

    if config is None:
        config = load_config()

    if configure_logs:
        configure_logging(config.log_level, ROOT_LOGGER_NAME)

    if token_store is None:
        if config.token_file:
            token_store = FileTokenStore(config.token_file)
        else:
            token_store = InMemoryTokenStore()

    store = SyncQueueStore(config.queue_db_path, max_retries=config.max_retries, clock=clock)
    client = APIClient(
        token_store,
        config.api_base_url,
        timeout=config.request_timeout,
        connect_timeout=config.connect_timeout,
    )
    engine = SyncEngine(store, client, config=config, clock=clock)

    if probe_connectivity:
        engine.bind_connectivity(ConnectivityMonitor(
            probe_url=config.api_base_url,
            probe_timeout=config.connect_timeout,
        ))
    return engine


__all__ = ['SyncEngine', 'build_engine', 'build_request']
