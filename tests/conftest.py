"""
Shared pytest fixtures for sync engine tests.

Provides reusable fixtures for:
- A controllable clock for backoff timing
- SQLite queue stores in isolated temp directories
- Token stores and API clients pointed at a fake backend
- SyncEngine instances with mocked or real clients
- Configuration objects and sample payloads

Async tests use @pytest.mark.asyncio (asyncio_mode = strict).
"""

import pytest
import pytest_asyncio
from unittest.mock import AsyncMock, MagicMock, Mock


API_BASE_URL = "http://api.test"


# =============================================================================
# Clock
# =============================================================================

class FakeClock:
    """Callable epoch-seconds clock that only moves when told to."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> float:
        self.now += seconds
        return self.now


@pytest.fixture
def fake_clock():
    """
    Controllable clock shared by store and engine.

    Usage:
        def test_backoff(engine, fake_clock):
            fake_clock.advance(60)
    """
    return FakeClock()


# =============================================================================
# Queue Fixtures
# =============================================================================

@pytest.fixture
def store(tmp_path, fake_clock):
    """SyncQueueStore backed by a temp SQLite file, using fake_clock."""
    from sync_queue.store import SyncQueueStore

    return SyncQueueStore(str(tmp_path / "sync_queue.db"), clock=fake_clock)


@pytest.fixture
def make_item(fake_clock):
    """
    Factory for QueueItem instances created "now" on fake_clock.

    Usage:
        def test_x(make_item):
            item = make_item(entity_id="w1", retry_count=2)
    """
    from sync_queue.models import QueueItem

    def _make(
        entity="workout",
        operation="create",
        entity_id="w1",
        payload='{"title": "Leg Day"}',
        **fields,
    ):
        item = QueueItem.new(entity, operation, entity_id, payload, now=fake_clock())
        for name, value in fields.items():
            setattr(item, name, value)
        return item

    return _make


# =============================================================================
# HTTP Fixtures
# =============================================================================

@pytest.fixture
def token_store():
    """InMemoryTokenStore holding a valid-looking token pair."""
    from http_api.tokens import InMemoryTokenStore

    return InMemoryTokenStore(access_token="old-access", refresh_token="refresh-1")


@pytest_asyncio.fixture
async def api_client(token_store):
    """
    APIClient for API_BASE_URL; mock the backend with respx.

    Usage:
        @pytest.mark.asyncio
        async def test_x(api_client):
            with respx.mock:
                respx.get(f"{API_BASE_URL}/x").mock(return_value=httpx.Response(200))
                await api_client.send_no_content(APIRequest.get("/x"))
    """
    from http_api.client import APIClient

    client = APIClient(token_store, API_BASE_URL)
    yield client
    await client.close()


@pytest.fixture
def mock_client():
    """
    Mock APIClient whose send/send_no_content succeed by default.

    Usage:
        def test_failure(mock_client):
            mock_client.send.side_effect = HttpError(500)
    """
    client = MagicMock()
    client.send = AsyncMock(return_value=None)
    client.send_no_content = AsyncMock(return_value=None)
    return client


# =============================================================================
# Engine Fixtures
# =============================================================================

@pytest.fixture
def mock_config():
    """
    Mock configuration object with the settings SyncEngine reads.

    Usage:
        def test_engine(mock_config):
            assert mock_config.max_retries == 5
    """
    config = Mock()
    config.api_base_url = API_BASE_URL
    config.max_retries = 5
    config.base_delay = 60.0
    config.request_timeout = 30.0
    config.connect_timeout = 5.0
    config.fail_fast_structural = True
    config.connectivity_check_interval = 30.0
    return config


@pytest.fixture
def engine(store, mock_client, mock_config, fake_clock):
    """SyncEngine over a temp store with a mocked client."""
    from worker.engine import SyncEngine

    return SyncEngine(store, mock_client, config=mock_config, clock=fake_clock)


@pytest.fixture
def valid_config_dict():
    """
    Dictionary with valid configuration values for SyncConfig instantiation.

    Usage:
        def test_config_parsing(valid_config_dict):
            config = SyncConfig(**valid_config_dict)
    """
    return {
        "api_base_url": "https://api.example.com",
        "max_retries": 5,
        "base_delay": 60.0,
        "request_timeout": 30.0,
        "connect_timeout": 5.0,
        "queue_db_path": "/tmp/sync_queue.db",
    }


@pytest.fixture
def sample_workout():
    """Workout payload as the app would snapshot it at enqueue time."""
    return {
        "title": "Leg Day",
        "content": "Squats 5x5\nLunges 3x12",
        "source": "manual",
        "created_at": "2024-01-15T10:00:00Z",
    }
