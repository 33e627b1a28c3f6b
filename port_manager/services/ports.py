"""
Port Service

Business logic for port inventory, availability and random port requests,
with formatted output for MCP tool responses.
"""

import random
from typing import Any

from fastmcp.tools.tool import ToolResult
from mcp.types import TextContent

from ..core.availability import check_port, validate_port
from ..core.config_loader import GeneratorConfig
from ..core.error_response import PortManagerErrorResponse
from ..core.exceptions import PortManagerError, RuntimeUnavailableError
from ..core.generator import draw_free_port, validate_range
from ..core.inventory import build_inventory, find_port_conflicts
from ..core.logging_config import get_server_logger
from ..core.runtime_client import DockerRuntimeClient
from ..models.ports import (
    HealthStatus,
    PortCheckResult,
    PortInventory,
    RandomPortResult,
)


class PortService:
    """Service for port inventory operations.

    Every request takes a fresh snapshot from the runtime client; nothing is
    cached between requests.
    """

    def __init__(
        self,
        runtime_client: DockerRuntimeClient,
        generator_config: GeneratorConfig | None = None,
        rng: random.Random | None = None,
    ):
        self.runtime_client = runtime_client
        self.generator_config = generator_config or GeneratorConfig()
        self.rng = rng
        self.logger = get_server_logger()

    async def get_inventory(self) -> PortInventory:
        """Build the port inventory from a new runtime snapshot."""
        snapshot = await self.runtime_client.snapshot()
        inventory = build_inventory(snapshot)
        self.logger.info(
            "Built port inventory",
            containers=len(inventory.containers),
            used_ports=len(inventory.used_ports),
        )
        return inventory

    async def check_port(self, port: Any) -> PortCheckResult:
        """Check a single port.

        The port is validated before the runtime is contacted.

        Raises:
            PortValidationError: If the port is not a number in 1-65535
            RuntimeUnavailableError: If the runtime cannot be reached
        """
        port_number = validate_port(port)
        inventory = await self.get_inventory()
        result = check_port(port_number, inventory)
        self.logger.info(
            "Checked port availability",
            port=port_number,
            available=result.available,
            used_by=result.used_by.container if result.used_by else None,
        )
        return result

    async def random_port(
        self,
        range_low: int | None = None,
        range_high: int | None = None,
        max_attempts: int | None = None,
    ) -> RandomPortResult:
        """Generate a random port that is free in the current inventory.

        Raises:
            PortValidationError: If the range is invalid
            RuntimeUnavailableError: If the runtime cannot be reached
            GenerationExhaustedError: If the attempt budget ran out
        """
        low = self.generator_config.range_low if range_low is None else range_low
        high = self.generator_config.range_high if range_high is None else range_high
        attempts_budget = self.generator_config.max_attempts if max_attempts is None else max_attempts

        validate_range(low, high, attempts_budget)

        inventory = await self.get_inventory()
        port, attempts = draw_free_port(
            inventory,
            low,
            high,
            attempts_budget,
            rng=self.rng,
            exhaustive_fallback=self.generator_config.exhaustive_fallback,
        )
        self.logger.info(
            "Generated random port", port=port, range_low=low, range_high=high, attempts=attempts
        )
        return RandomPortResult(port=port, range_low=low, range_high=high, attempts=attempts)

    async def health(self) -> HealthStatus:
        """Report whether the runtime answers."""
        try:
            await self.runtime_client.ping()
        except RuntimeUnavailableError as e:
            self.logger.error("Docker health check failed", error=str(e))
            return HealthStatus(status="unhealthy", docker="disconnected", error=str(e))
        return HealthStatus(status="healthy", docker="connected")

    # MCP tool responses

    async def list_ports(self) -> ToolResult:
        """List all host ports bound by running containers."""
        try:
            inventory = await self.get_inventory()
        except PortManagerError as e:
            return self._error_result(e, "list_ports", "Failed to list ports")

        conflicts = find_port_conflicts(inventory)
        formatted_text = "\n".join(self._format_inventory_summary(inventory, conflicts))
        structured = inventory.model_dump()
        structured.update(
            {
                "success": True,
                "total_ports": len(inventory.used_ports),
                "total_containers": len(inventory.containers),
                "conflicts": {
                    str(port): [owner.model_dump() for owner in owners]
                    for port, owners in conflicts.items()
                },
                "formatted_output": formatted_text,
            }
        )
        return ToolResult(
            content=[TextContent(type="text", text=formatted_text)],
            structured_content=structured,
        )

    async def check_port_availability(self, port: Any) -> ToolResult:
        """Check if a specific port is available."""
        try:
            result = await self.check_port(port)
        except PortManagerError as e:
            return self._error_result(e, "check_port", "Port check failed")

        if result.available:
            formatted_text = f"✅ Port {result.port} is available"
        else:
            owner = result.used_by
            formatted_text = (
                f"❌ Port {result.port} is in use by {owner.container} ({owner.container_port})"
                if owner
                else f"❌ Port {result.port} is in use"
            )

        structured = result.model_dump()
        structured.update({"success": True, "formatted_output": formatted_text})
        return ToolResult(
            content=[TextContent(type="text", text=formatted_text)],
            structured_content=structured,
        )

    async def suggest_random_port(
        self, range_low: int | None = None, range_high: int | None = None
    ) -> ToolResult:
        """Suggest a random free port."""
        try:
            result = await self.random_port(range_low, range_high)
        except PortManagerError as e:
            return self._error_result(e, "random_port", "Random port generation failed")

        formatted_text = (
            f"🎲 Port {result.port} is free "
            f"(range {result.range_low}-{result.range_high}, {result.attempts} attempt(s))"
        )
        structured = result.model_dump()
        structured.update({"success": True, "formatted_output": formatted_text})
        return ToolResult(
            content=[TextContent(type="text", text=formatted_text)],
            structured_content=structured,
        )

    async def runtime_health(self) -> ToolResult:
        """Report runtime connection health."""
        status = await self.health()
        if status.status == "healthy":
            formatted_text = "✅ Docker runtime connected"
        else:
            formatted_text = f"❌ Docker runtime disconnected: {status.error}"

        structured = status.model_dump()
        structured.update(
            {"success": status.status == "healthy", "formatted_output": formatted_text}
        )
        return ToolResult(
            content=[TextContent(type="text", text=formatted_text)],
            structured_content=structured,
        )

    def _error_result(self, error: PortManagerError, operation: str, message: str) -> ToolResult:
        """Build a standardized error ToolResult."""
        self.logger.error(
            "port service error",
            operation=operation,
            error=str(error),
            error_type=type(error).__name__,
        )
        _, body = PortManagerErrorResponse.from_exception(error, operation)
        formatted_text = f"❌ {message}: {error}"
        body["formatted_output"] = formatted_text
        return ToolResult(
            content=[TextContent(type="text", text=formatted_text)],
            structured_content=body,
        )

    def _format_inventory_summary(
        self, inventory: PortInventory, conflicts: dict[int, list[Any]]
    ) -> list[str]:
        """Format port usage summary grouped by container."""
        summary_lines = [
            "Docker Port Usage",
            f"Found {len(inventory.used_ports)} used ports across "
            f"{len(inventory.containers)} containers",
            "",
        ]

        if not inventory.containers:
            summary_lines.append("No published ports found.")
            return summary_lines

        summary_lines.append("PORT MAPPINGS:")
        for record in inventory.containers:
            ports_str = ", ".join(
                f"{binding.host_ip}:{binding.host_port}→{binding.container_port}"
                for binding in record.bindings
            )
            summary_lines.append(f"  {record.name} [{record.image}]: {ports_str}")

        if conflicts:
            summary_lines.extend(["", "PORT CONFLICTS:"])
            for port, owners in sorted(conflicts.items()):
                names = ", ".join(owner.container for owner in owners)
                summary_lines.append(f"⚠️  {port} used by: {names}")

        return summary_lines
