"""
Integration test fixtures for the sync engine.

These fixtures compose the unit test fixtures from tests/conftest.py
into a complete stack: real SQLite store, real APIClient (backend mocked
with respx) and a SyncEngine on the shared fake clock.

All integration tests should be marked with @pytest.mark.integration
"""

import pytest_asyncio


@pytest_asyncio.fixture
async def live_engine(store, api_client, mock_config, fake_clock):
    """
    SyncEngine wired to the real APIClient from tests/conftest.py.

    Usage:
        @pytest.mark.asyncio
        async def test_x(live_engine):
            with respx.mock:
                respx.post(...).mock(return_value=httpx.Response(201))
                live_engine.enqueue("create", "workout", "w1", {...})
                await live_engine.wait_idle()
    """
    from worker.engine import SyncEngine

    engine = SyncEngine(store, api_client, config=mock_config, clock=fake_clock)
    yield engine
    engine.cancel()
    await engine.wait_idle()
