"""Port inventory data models."""

from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

DEFAULT_HOST_IP = "0.0.0.0"  # nosec B104 - Docker reports all-interfaces bindings as blank

HostPort = Annotated[int, Field(ge=1, le=65535, description="Host port number")]


class PortModel(BaseModel):
    """Base model with wire-format defaults.

    Attributes are snake_case in Python; dumps use the camelCase keys the
    HTTP API has always returned and drop unset optional fields.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def model_dump(self, **kwargs) -> dict[str, Any]:
        """Convert to dict with exclude_none and by_alias by default."""
        kwargs.setdefault("exclude_none", True)
        kwargs.setdefault("by_alias", True)
        return super().model_dump(**kwargs)


class RawContainer(PortModel):
    """One container as reported by the runtime, paired with its binding table."""

    id: str
    names: list[str] = Field(default_factory=list)
    image: str = ""
    status: str = ""
    # NetworkSettings.Ports as returned by inspect; values are left untyped
    # so malformed entries reach the inventory builder instead of failing here
    port_table: dict[str, Any] | None = None


class PortBinding(PortModel):
    """Single container-port to host-port mapping."""

    model_config = ConfigDict(frozen=True)

    container_port: str
    host_port: HostPort
    host_ip: str = DEFAULT_HOST_IP


class ContainerRecord(PortModel):
    """Container that publishes at least one host port."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(description="Short (12 character) container id")
    name: str
    image: str = ""
    raw_status: str = Field(default="", alias="status")
    bindings: list[PortBinding] = Field(default_factory=list, alias="ports")


class PortInventory(PortModel):
    """Aggregated view of all host ports bound by containers."""

    model_config = ConfigDict(frozen=True)

    used_ports: list[int] = Field(default_factory=list)
    containers: list[ContainerRecord] = Field(default_factory=list)


class UsedBy(PortModel):
    """Owner of a host port."""

    model_config = ConfigDict(frozen=True)

    container: str
    container_port: str


class PortCheckResult(PortModel):
    """Availability answer for a single port."""

    port: int
    available: bool
    used_by: UsedBy | None = None


class RandomPortResult(PortModel):
    """Randomly generated free port."""

    port: HostPort
    available: Literal[True] = True
    range_low: int
    range_high: int
    attempts: int


class HealthStatus(PortModel):
    """Runtime connection health."""

    status: Literal["healthy", "unhealthy"]
    docker: Literal["connected", "disconnected"]
    error: str | None = None
