"""Port inventory MCP Resource.

Exposes the current host port inventory at ``ports://inventory`` as a
read-only alternative to the ``list`` action of the ``docker_ports`` tool.
"""

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from port_manager.services.ports import PortService

from fastmcp.resources.resource import FunctionResource
from pydantic import AnyUrl

from ..core.error_response import PortManagerErrorResponse
from ..core.exceptions import PortManagerError
from ..core.logging_config import get_server_logger

logger = get_server_logger()

INVENTORY_URI = "ports://inventory"


class PortInventoryResource(FunctionResource):
    """MCP Resource for the host port inventory.

    URI Pattern: ports://inventory
    """

    def __init__(self, port_service: "PortService"):
        """Initialize the port inventory resource.

        The service is captured in a closure to avoid setting attributes
        that Pydantic's BaseModel would reject.
        """

        async def _get_inventory() -> dict[str, Any]:
            try:
                inventory = await port_service.get_inventory()
            except PortManagerError as e:
                logger.error("Failed to get port inventory", error=str(e))
                _, body = PortManagerErrorResponse.from_exception(e, "port_inventory")
                body["resourceUri"] = INVENTORY_URI
                return body

            data = inventory.model_dump()
            data["resourceUri"] = INVENTORY_URI
            logger.info(
                "Port inventory resource served",
                used_ports=len(inventory.used_ports),
                containers=len(inventory.containers),
            )
            return data

        super().__init__(
            fn=_get_inventory,
            uri=AnyUrl(INVENTORY_URI),
            name="Docker Port Inventory",
            title="Host ports used by running containers",
            description="Host ports published by running Docker containers, with their owners",
            mime_type="application/json",
            tags={"docker", "ports", "networking"},
        )
