"""
Shared pytest fixtures for frontier map tests.

Fixtures here are discovered automatically by pytest and available to all
test files.

Notes for new developers:
- External services (Overpass, OSRM) are never contacted: HTTP goes through
  httpx.MockTransport with a handler function written in the test
- Device positioning is replaced by FakePositionProvider, which lets a test
  push fixes and failures by hand
- Animation frames are stepped manually through ManualScheduler, so tests
  never sleep waiting for the event loop timer
"""

import httpx
import pytest
import pytest_asyncio

from factories import FakePositionProvider, ManualScheduler, fix
from src.navigation.config import NavigationConfig
from src.navigation.storage import LocationStore


@pytest.fixture
def config(tmp_path) -> NavigationConfig:
    """Default config with the store redirected into a temp directory."""
    return NavigationConfig(store_path=tmp_path / "state.json")


@pytest.fixture
def store(config) -> LocationStore:
    return LocationStore(config.store_path)


@pytest.fixture
def scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture
def provider() -> FakePositionProvider:
    return FakePositionProvider(fix=fix(48.8566, 2.3522))


@pytest_asyncio.fixture
async def make_client():
    """
    Factory for httpx clients backed by a MockTransport handler.

    Example:
        async def test_x(make_client):
            client = make_client(lambda request: httpx.Response(200, json={}))
    """
    clients: list[httpx.AsyncClient] = []

    def factory(handler) -> httpx.AsyncClient:
        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        clients.append(client)
        return client

    yield factory

    for client in clients:
        await client.aclose()
