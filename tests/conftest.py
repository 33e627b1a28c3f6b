"""Shared pytest fixtures for port manager tests."""

import asyncio
import random
from collections.abc import AsyncGenerator
from types import SimpleNamespace
from typing import Any
from unittest.mock import MagicMock

import pytest
from fastmcp import Client
from starlette.testclient import TestClient

from port_manager.core.config_loader import PortManagerConfig
from port_manager.core.exceptions import RuntimeUnavailableError
from port_manager.core.inventory import build_inventory
from port_manager.middleware import ErrorHandlingMiddleware, LoggingMiddleware, TimingMiddleware
from port_manager.models.ports import PortInventory, RawContainer
from port_manager.server import PortManagerServer
from port_manager.services import PortService


def make_container(
    container_id: str,
    name: str,
    port_table: dict[str, Any] | None,
    image: str = "nginx:alpine",
    status: str = "Up 5 minutes",
) -> RawContainer:
    """Build a RawContainer the way the runtime client would."""
    return RawContainer(
        id=container_id,
        names=[f"/{name}"],
        image=image,
        status=status,
        port_table=port_table,
    )


class FakeRuntimeClient:
    """In-memory stand-in for DockerRuntimeClient."""

    def __init__(self, containers: list[RawContainer] | None = None, error: Exception | None = None):
        self.containers = containers or []
        self.error = error
        self.snapshot_calls = 0
        self.ping_calls = 0

    async def snapshot(self) -> list[RawContainer]:
        self.snapshot_calls += 1
        if self.error:
            raise self.error
        return list(self.containers)

    async def ping(self) -> None:
        self.ping_calls += 1
        if self.error:
            raise self.error


@pytest.fixture
def web_container() -> RawContainer:
    """Container publishing 80/tcp on host port 8080."""
    return make_container(
        "a1b2c3d4e5f6a7b8c9d0",
        "web",
        {"80/tcp": [{"HostIp": "0.0.0.0", "HostPort": "8080"}]},
    )


@pytest.fixture
def db_container() -> RawContainer:
    """Container publishing two postgres ports and one unpublished port."""
    return make_container(
        "0f9e8d7c6b5a4f3e2d1c",
        "db",
        {
            "5432/tcp": [{"HostIp": "0.0.0.0", "HostPort": "5432"}],
            "5433/tcp": [{"HostIp": "127.0.0.1", "HostPort": "5433"}],
            "9187/tcp": None,
        },
        image="postgres:16",
    )


@pytest.fixture
def snapshot(web_container: RawContainer, db_container: RawContainer) -> list[RawContainer]:
    """Runtime snapshot with web and db containers."""
    return [web_container, db_container]


@pytest.fixture
def inventory(snapshot: list[RawContainer]) -> PortInventory:
    """Inventory built from the web/db snapshot."""
    return build_inventory(snapshot)


@pytest.fixture
def fake_runtime(snapshot: list[RawContainer]) -> FakeRuntimeClient:
    """Reachable runtime serving the web/db snapshot."""
    return FakeRuntimeClient(snapshot)


@pytest.fixture
def unavailable_runtime() -> FakeRuntimeClient:
    """Runtime whose daemon cannot be reached."""
    return FakeRuntimeClient(error=RuntimeUnavailableError("Docker daemon unavailable: refused"))


@pytest.fixture
def port_service(fake_runtime: FakeRuntimeClient) -> PortService:
    """Port service over the fake runtime with a seeded generator."""
    return PortService(fake_runtime, rng=random.Random(1234))


@pytest.fixture
def config(monkeypatch) -> PortManagerConfig:
    """Default configuration, unaffected by the caller's environment."""
    for var in ("HOST", "PORT", "LOG_LEVEL", "DOCKER_HOST", "PORT_MANAGER_CONFIG"):
        monkeypatch.delenv(var, raising=False)
    return PortManagerConfig()


@pytest.fixture
def server(config: PortManagerConfig, fake_runtime: FakeRuntimeClient) -> PortManagerServer:
    """Create port manager server instance for testing."""
    server = PortManagerServer(config, runtime_client=fake_runtime, rng=random.Random(1234))
    server._initialize_app()
    return server


@pytest.fixture
def unavailable_server(
    config: PortManagerConfig, unavailable_runtime: FakeRuntimeClient
) -> PortManagerServer:
    """Server whose runtime is down."""
    server = PortManagerServer(config, runtime_client=unavailable_runtime)
    server._initialize_app()
    return server


@pytest.fixture
async def client(server: PortManagerServer) -> AsyncGenerator[Client, None]:
    """Create FastMCP client connected to server in-memory."""
    async with Client(server.app) as client:
        yield client


@pytest.fixture
def http_client(server: PortManagerServer) -> TestClient:
    """HTTP client for the JSON API routes."""
    return TestClient(server.http_app())


@pytest.fixture
def unavailable_http_client(unavailable_server: PortManagerServer) -> TestClient:
    """HTTP client for a server whose runtime is down."""
    return TestClient(unavailable_server.http_app())


@pytest.fixture
def mock_context():
    """Create mock MiddlewareContext for unit tests."""
    context = MagicMock()
    context.method = "tools/call"
    context.source = "client"
    context.type = "request"
    context.message = SimpleNamespace(
        name="docker_ports",
        arguments={"action": "check", "port": 8080},
    )
    return context


@pytest.fixture
def logging_middleware() -> LoggingMiddleware:
    return LoggingMiddleware(include_payloads=True, max_payload_length=1000)


@pytest.fixture
def error_middleware() -> ErrorHandlingMiddleware:
    return ErrorHandlingMiddleware(include_traceback=False, track_error_stats=True)


@pytest.fixture
def timing_middleware() -> TimingMiddleware:
    return TimingMiddleware(slow_request_threshold_ms=50.0, track_statistics=True)


class MockCall:
    """Mock call_next function for middleware testing."""

    def __init__(self, return_value=None, exception=None, delay=0):
        self.return_value = return_value or {"status": "success"}
        self.exception = exception
        self.delay = delay
        self.call_count = 0

    async def __call__(self, context):
        self.call_count += 1

        if self.delay > 0:
            await asyncio.sleep(self.delay)

        if self.exception:
            raise self.exception

        return self.return_value
