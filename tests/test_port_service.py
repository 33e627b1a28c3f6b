"""Tests for PortService business logic and tool responses."""

import random

import pytest

from port_manager.core.config_loader import GeneratorConfig
from port_manager.core.exceptions import (
    GenerationExhaustedError,
    PortValidationError,
    RuntimeUnavailableError,
)
from port_manager.services import PortService

from .conftest import FakeRuntimeClient, make_container


class TestPortOperations:
    async def test_get_inventory_takes_fresh_snapshot(self, port_service, fake_runtime):
        first = await port_service.get_inventory()
        second = await port_service.get_inventory()

        assert first.used_ports == [5432, 5433, 8080]
        assert second == first
        assert fake_runtime.snapshot_calls == 2

    async def test_check_port_in_use(self, port_service):
        result = await port_service.check_port(8080)

        assert result.available is False
        assert result.used_by.container == "web"

    async def test_check_port_accepts_string(self, port_service):
        result = await port_service.check_port("3000")
        assert result.available is True

    async def test_invalid_port_never_reaches_runtime(self, port_service, fake_runtime):
        with pytest.raises(PortValidationError):
            await port_service.check_port(70000)

        assert fake_runtime.snapshot_calls == 0

    async def test_check_port_runtime_unavailable(self, unavailable_runtime):
        service = PortService(unavailable_runtime)

        with pytest.raises(RuntimeUnavailableError):
            await service.check_port(8080)

    async def test_random_port_uses_configured_defaults(self, port_service):
        result = await port_service.random_port()

        assert 3000 <= result.port <= 9999
        assert result.port not in (5432, 5433, 8080)
        assert result.range_low == 3000
        assert result.range_high == 9999
        assert result.attempts >= 1

    async def test_random_port_custom_range(self, port_service):
        result = await port_service.random_port(5432, 5434)
        assert result.port == 5434

    async def test_random_port_invalid_range_never_reaches_runtime(self, port_service, fake_runtime):
        with pytest.raises(PortValidationError):
            await port_service.random_port(9000, 8000)

        assert fake_runtime.snapshot_calls == 0

    async def test_random_port_exhausted(self):
        runtime = FakeRuntimeClient(
            [make_container("abcabcabcabc0000", "app", {"80/tcp": [{"HostIp": "", "HostPort": "3000"}]})]
        )
        service = PortService(runtime, GeneratorConfig(max_attempts=10))

        with pytest.raises(GenerationExhaustedError):
            await service.random_port(3000, 3000)

    async def test_random_port_exhaustive_fallback(self):
        runtime = FakeRuntimeClient(
            [make_container("abcabcabcabc0000", "app", {"80/tcp": [{"HostIp": "", "HostPort": "3000"}]})]
        )
        service = PortService(
            runtime,
            GeneratorConfig(max_attempts=1, exhaustive_fallback=True),
            rng=random.Random(0),
        )

        result = await service.random_port(3000, 3001)
        assert result.port == 3001

    async def test_health(self, port_service, fake_runtime):
        status = await port_service.health()

        assert status.model_dump() == {"status": "healthy", "docker": "connected"}
        assert fake_runtime.ping_calls == 1

    async def test_health_unavailable_does_not_raise(self, unavailable_runtime):
        status = await PortService(unavailable_runtime).health()

        assert status.status == "unhealthy"
        assert status.docker == "disconnected"
        assert "unavailable" in status.error


class TestToolResults:
    async def test_list_ports(self, port_service):
        result = await port_service.list_ports()
        data = result.structured_content

        assert data["success"] is True
        assert data["usedPorts"] == [5432, 5433, 8080]
        assert data["total_ports"] == 3
        assert data["total_containers"] == 2
        assert data["conflicts"] == {}
        assert "web [nginx:alpine]: 0.0.0.0:8080→80/tcp" in result.content[0].text

    async def test_list_ports_empty(self):
        result = await PortService(FakeRuntimeClient([])).list_ports()

        assert result.structured_content["usedPorts"] == []
        assert "No published ports found." in result.content[0].text

    async def test_list_ports_runtime_unavailable(self, unavailable_runtime):
        result = await PortService(unavailable_runtime).list_ports()
        data = result.structured_content

        assert data["success"] is False
        assert data["error"] == "Failed to get Docker container information"
        assert data["type"] == "/problems/runtime-unavailable"

    async def test_check_port_availability_used(self, port_service):
        result = await port_service.check_port_availability(5432)

        assert result.structured_content["available"] is False
        assert result.structured_content["usedBy"] == {"container": "db", "containerPort": "5432/tcp"}
        assert "in use by db" in result.content[0].text

    async def test_check_port_availability_missing_port(self, port_service):
        result = await port_service.check_port_availability(None)

        assert result.structured_content["success"] is False
        assert result.structured_content["error"] == "Invalid port number"

    async def test_suggest_random_port(self, port_service):
        result = await port_service.suggest_random_port(8079, 8081)
        data = result.structured_content

        assert data["available"] is True
        assert data["port"] in (8079, 8081)
        assert data["rangeLow"] == 8079
        assert data["rangeHigh"] == 8081

    async def test_suggest_random_port_exhausted(self):
        runtime = FakeRuntimeClient(
            [make_container("abcabcabcabc0000", "app", {"80/tcp": [{"HostIp": "", "HostPort": "3000"}]})]
        )
        result = await PortService(runtime).suggest_random_port(3000, 3000)

        assert result.structured_content["success"] is False
        assert result.structured_content["type"] == "/problems/generation-exhausted"

    async def test_runtime_health(self, unavailable_runtime):
        result = await PortService(unavailable_runtime).runtime_health()

        assert result.structured_content["success"] is False
        assert result.structured_content["docker"] == "disconnected"
