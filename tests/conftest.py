"""
Pytest configuration and shared fixtures for LabSync tests.

Also home of the test credential issuer: the only way tests obtain an
authenticated session. It lives here, outside the installed package.
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Awaitable, Callable
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from aiohttp import web
from aiohttp.test_utils import TestServer

from labsync.config.models import APISettings, CacheSettings
from labsync.services.background_refresh import RefreshCoordinator
from labsync.services.cache_store import CacheStore
from labsync.services.catalog_service import CatalogService
from labsync.services.transport import CredentialStore, TransportClient
from labsync.shared.models import ApiResponse, CatalogRecord, OwnerRecord, UserSummary
from labsync.storage import JsonFileStorage, MemoryStorage

TEST_TOKEN = "test-token"  # pragma: allowlist secret


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeBackend:
    """Answers mocked transport calls by path.

    A route is keyed by path, or by ``"METHOD path"`` to answer one method
    only; a route value may be an exception to raise.
    """

    def __init__(self) -> None:
        self.routes: dict[str, Any] = {}
        self.calls: list[str] = []

    def handler(self, method: str) -> Callable[..., ApiResponse]:
        def answer(path: str, *args: Any, **kwargs: Any) -> ApiResponse:
            self.calls.append(f"{method} {path}")
            result = self.routes.get(f"{method} {path}", self.routes.get(path))
            if isinstance(result, Exception):
                raise result
            return ApiResponse(status=200, data=result)

        return answer

    def count(self, path: str, method: str = "GET") -> int:
        return self.calls.count(f"{method} {path}")


class FakeNavigator:
    """Records login redirects instead of navigating."""

    def __init__(self, location: str = "/catalog") -> None:
        self.location = location
        self.redirects = 0

    def current_location(self) -> str:
        return self.location

    def redirect_to_login(self) -> None:
        self.redirects += 1


def issue_test_credential(
    transport: TransportClient,
    *,
    user_id: str = "42",
    username: str = "student",
    token: str = TEST_TOKEN,
) -> UserSummary:
    """Give ``transport`` an authenticated session for tests."""
    user = UserSummary(id=user_id, username=username, role="student")
    transport.store_credential(token, user)
    return user


def make_catalog_record(record_id: str, **fields: Any) -> CatalogRecord:
    fields.setdefault("name", f"Record {record_id}")
    return CatalogRecord(id=record_id, **fields)


def make_owner_record(record_id: int, owner_id: str, template_id: str, **fields: Any) -> OwnerRecord:
    return OwnerRecord(id=record_id, owner_id=owner_id, template_id=template_id, **fields)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cache(clock: FakeClock) -> CacheStore[Any]:
    return CacheStore(clock=clock)


@pytest.fixture
def memory_storage() -> MemoryStorage:
    return MemoryStorage()


@pytest.fixture
def file_storage(tmp_path: Path) -> JsonFileStorage:
    return JsonFileStorage(tmp_path / "state.json")


@pytest.fixture
def navigator() -> FakeNavigator:
    return FakeNavigator()


@pytest_asyncio.fixture
async def serve() -> AsyncIterator[Callable[..., Awaitable[str]]]:
    """Start an aiohttp test backend with the given routes.

    Returns the API base URL of the started server.
    """
    servers: list[TestServer] = []

    async def _serve(*routes: web.RouteDef) -> str:
        app = web.Application()
        app.add_routes(list(routes))
        server = TestServer(app)
        await server.start_server()
        servers.append(server)
        return str(server.make_url("/api"))

    yield _serve

    for server in servers:
        await server.close()


@pytest_asyncio.fixture
async def make_transport(
    memory_storage: MemoryStorage,
) -> AsyncIterator[Callable[..., TransportClient]]:
    """Build transport clients against a base URL; closed at teardown."""
    clients: list[TransportClient] = []

    def _make(base_url: str, **kwargs: Any) -> TransportClient:
        settings = APISettings(base_url=base_url, timeout=kwargs.pop("timeout", 5.0))
        client = TransportClient(settings, CredentialStore(memory_storage), **kwargs)
        clients.append(client)
        return client

    yield _make

    for client in clients:
        await client.aclose()


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def mock_transport(backend: FakeBackend) -> AsyncMock:
    """TransportClient double whose get/post/delete are answered by ``backend``."""
    transport = AsyncMock(spec=TransportClient)
    transport.get.side_effect = backend.handler("GET")
    transport.post.side_effect = backend.handler("POST")
    transport.delete.side_effect = backend.handler("DELETE")
    return transport


@pytest_asyncio.fixture
async def refresher(cache: CacheStore[Any]) -> AsyncIterator[RefreshCoordinator]:
    coordinator = RefreshCoordinator(cache)
    yield coordinator
    await coordinator.aclose()


@pytest.fixture
def catalog_service(
    mock_transport: AsyncMock,
    cache: CacheStore[Any],
    refresher: RefreshCoordinator,
) -> CatalogService:
    settings = CacheSettings(catalog_max_age=60, owner_records_max_age=10)
    return CatalogService(mock_transport, cache, refresher, settings)
