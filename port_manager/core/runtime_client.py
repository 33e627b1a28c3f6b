"""Docker runtime client.

Supplies point-in-time snapshots of running containers and their port binding
tables. All Docker SDK calls are blocking and run in worker threads; container
inspections for one snapshot run concurrently up to a configurable limit.
"""

import asyncio
from collections.abc import Callable
from typing import TYPE_CHECKING, Any, TypeVar

import docker
from docker.errors import DockerException, NotFound

from ..models.ports import RawContainer
from .exceptions import RuntimeUnavailableError
from .logging_config import get_server_logger

if TYPE_CHECKING:
    from .config_loader import RuntimeConfig

logger = get_server_logger()

DEFAULT_DOCKER_URL = "unix:///var/run/docker.sock"
DOCKER_CLIENT_TIMEOUT = 30
DEFAULT_MAX_CONCURRENT_INSPECTS = 8

T = TypeVar("T")


class DockerRuntimeClient:
    """Read-only access to a Docker daemon for port inventories."""

    def __init__(
        self,
        base_url: str = DEFAULT_DOCKER_URL,
        timeout: int = DOCKER_CLIENT_TIMEOUT,
        max_concurrent_inspects: int = DEFAULT_MAX_CONCURRENT_INSPECTS,
        api_client: docker.APIClient | None = None,
    ):
        self.base_url = base_url
        self.timeout = timeout
        self.max_concurrent_inspects = max(1, max_concurrent_inspects)
        self._client: docker.APIClient | None = api_client
        self._client_lock = asyncio.Lock()

    @classmethod
    def from_config(cls, runtime_config: "RuntimeConfig") -> "DockerRuntimeClient":
        """Create a client from the runtime section of the configuration."""
        return cls(
            base_url=runtime_config.base_url,
            timeout=runtime_config.timeout,
            max_concurrent_inspects=runtime_config.max_concurrent_inspects,
        )

    def _create_client(self) -> docker.APIClient:
        """Create the Docker API client (negotiates the API version with the daemon)."""
        return docker.APIClient(base_url=self.base_url, timeout=self.timeout)

    async def _run(self, operation: str, fn: Callable[..., T], *args: Any) -> T:
        """Run a blocking Docker SDK call off the event loop."""
        try:
            return await asyncio.to_thread(fn, *args)
        except NotFound:
            raise
        except (DockerException, OSError) as e:
            logger.error(
                "Docker runtime call failed",
                operation=operation,
                base_url=self.base_url,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise RuntimeUnavailableError(f"Docker daemon unavailable: {e}") from e

    async def _get_client(self) -> docker.APIClient:
        """Get the cached API client, creating it on first use."""
        async with self._client_lock:
            if self._client is None:
                # A failed creation leaves the cache empty so the next call retries
                self._client = await self._run("connect", self._create_client)
                logger.debug("Created Docker API client", base_url=self.base_url)
            return self._client

    async def ping(self) -> None:
        """Check that the daemon answers.

        Raises:
            RuntimeUnavailableError: If the daemon cannot be reached
        """
        client = await self._get_client()
        await self._run("ping", client.ping)

    async def list_containers(self) -> list[dict[str, Any]]:
        """List running containers (Id, Names, Image, Status, ...)."""
        client = await self._get_client()
        return await self._run("list_containers", client.containers)

    async def inspect_bindings(self, container_id: str) -> dict[str, Any] | None:
        """Return the container's NetworkSettings.Ports table.

        Returns None when the runtime reports no network settings or the
        container disappeared after it was listed.
        """
        client = await self._get_client()
        try:
            inspect = await self._run("inspect_container", client.inspect_container, container_id)
        except NotFound:
            logger.debug("Container vanished before inspection", container_id=container_id[:12])
            return None

        network_settings = inspect.get("NetworkSettings") or {}
        return network_settings.get("Ports")

    async def snapshot(self) -> list[RawContainer]:
        """Take one consistent snapshot of running containers and their bindings.

        Containers are listed once; each listed container is then inspected,
        and the result keeps the listing order.
        """
        containers = await self.list_containers()
        semaphore = asyncio.Semaphore(self.max_concurrent_inspects)

        async def _inspect(container_data: dict[str, Any]) -> RawContainer:
            container_id = container_data.get("Id", "")
            async with semaphore:
                port_table = await self.inspect_bindings(container_id)
            return RawContainer(
                id=container_id,
                names=container_data.get("Names") or [],
                image=container_data.get("Image") or "",
                status=container_data.get("Status") or "",
                port_table=port_table if isinstance(port_table, dict) else None,
            )

        snapshot = await asyncio.gather(*(_inspect(data) for data in containers))

        logger.debug("Took runtime snapshot", containers=len(snapshot))
        return list(snapshot)

    def close(self) -> None:
        """Close the underlying API client."""
        if self._client is not None:
            self._client.close()
            self._client = None
