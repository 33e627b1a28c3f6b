"""Port inventory builder.

Turns the runtime's raw binding tables into a deduplicated, queryable view of
every host port currently bound by a container. Docker reports each entry of
``NetworkSettings.Ports`` as ``None`` (exposed, not published), an empty list,
or a list of ``{"HostIp": ..., "HostPort": ...}`` dicts; entries are first
classified into :class:`NoHostBinding` or :class:`BoundTo` so the unbound case
is handled in exactly one place.
"""

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from ..models.ports import (
    DEFAULT_HOST_IP,
    ContainerRecord,
    PortBinding,
    PortInventory,
    RawContainer,
    UsedBy,
)
from .logging_config import get_server_logger

logger = get_server_logger()

SHORT_ID_LENGTH = 12
NAME_SEPARATOR = "/"


@dataclass(frozen=True)
class NoHostBinding:
    """Container port is exposed but has no host-side allocation."""

    container_port: str


@dataclass(frozen=True)
class BoundTo:
    """Container port is published on one or more host addresses."""

    container_port: str
    bindings: tuple[Any, ...]


PortEntry = NoHostBinding | BoundTo


def classify_port_entry(container_port: str, host_bindings: Any) -> PortEntry:
    """Classify one binding-table entry."""
    if isinstance(host_bindings, list | tuple) and host_bindings:
        return BoundTo(container_port, tuple(host_bindings))
    return NoHostBinding(container_port)


def short_id(container_id: str) -> str:
    """Truncate a container id to its display form."""
    return container_id[:SHORT_ID_LENGTH]


def normalize_name(names: Sequence[str], container_id: str) -> str:
    """Return the first runtime name without its leading separator."""
    if not names:
        return short_id(container_id)
    name = names[0]
    if name.startswith(NAME_SEPARATOR):
        name = name[len(NAME_SEPARATOR) :]
    return name or short_id(container_id)


def _parse_host_port(host_port: Any) -> int | None:
    """Parse a HostPort value, returning None when it is unusable."""
    if isinstance(host_port, bool):
        return None
    if isinstance(host_port, int):
        port = host_port
    elif isinstance(host_port, str):
        candidate = host_port.strip()
        # ASCII digits only, int() would also accept other Unicode digits and "_"
        if not (candidate.isascii() and candidate.isdecimal()):
            return None
        port = int(candidate)
    else:
        return None
    if not (1 <= port <= 65535):
        return None
    return port


def _bindings_from_entry(entry: BoundTo, container_name: str) -> list[PortBinding]:
    """Expand a bound entry into PortBinding objects, skipping malformed items."""
    bindings: list[PortBinding] = []
    for raw_binding in entry.bindings:
        if not isinstance(raw_binding, Mapping):
            logger.warning(
                "Skipping malformed port binding",
                container=container_name,
                container_port=entry.container_port,
                binding=repr(raw_binding)[:100],
            )
            continue

        host_port = _parse_host_port(raw_binding.get("HostPort"))
        if host_port is None:
            logger.warning(
                "Skipping port binding with invalid host port",
                container=container_name,
                container_port=entry.container_port,
                host_port=raw_binding.get("HostPort"),
            )
            continue

        host_ip = raw_binding.get("HostIp") or ""
        bindings.append(
            PortBinding(
                container_port=entry.container_port,
                host_port=host_port,
                host_ip=str(host_ip).strip() or DEFAULT_HOST_IP,
            )
        )
    return bindings


def container_bindings(container: RawContainer) -> list[PortBinding]:
    """Collect the host-bound ports of a single container in declaration order."""
    port_table = container.port_table
    if not isinstance(port_table, Mapping):
        return []

    name = normalize_name(container.names, container.id)
    bindings: list[PortBinding] = []
    for container_port, host_bindings in port_table.items():
        entry = classify_port_entry(str(container_port), host_bindings)
        match entry:
            case BoundTo():
                bindings.extend(_bindings_from_entry(entry, name))
            case NoHostBinding():
                continue
    return bindings


def build_inventory(containers: Sequence[RawContainer]) -> PortInventory:
    """Build the port inventory for one runtime snapshot.

    Containers without a single host-bound port are left out of the result.
    ``used_ports`` is the sorted, deduplicated union of every host port in
    the returned containers.
    """
    used_ports: set[int] = set()
    records: list[ContainerRecord] = []

    for container in containers:
        bindings = container_bindings(container)
        if not bindings:
            continue

        used_ports.update(binding.host_port for binding in bindings)
        records.append(
            ContainerRecord(
                id=short_id(container.id),
                name=normalize_name(container.names, container.id),
                image=container.image,
                raw_status=container.status,
                bindings=bindings,
            )
        )

    inventory = PortInventory(used_ports=sorted(used_ports), containers=records)
    logger.debug(
        "Built port inventory",
        total_containers=len(containers),
        containers_with_ports=len(records),
        used_ports=len(inventory.used_ports),
    )
    return inventory


def find_port_conflicts(inventory: PortInventory) -> dict[int, list[UsedBy]]:
    """Find host ports bound by more than one container.

    IPv4 and IPv6 bindings of the same container port (``0.0.0.0:80`` and
    ``:::80``) count once. Owners are listed in enumeration order.
    """
    owners: dict[int, list[UsedBy]] = {}
    for record in inventory.containers:
        for binding in record.bindings:
            owner = UsedBy(container=record.name, container_port=binding.container_port)
            port_owners = owners.setdefault(binding.host_port, [])
            if owner not in port_owners:
                port_owners.append(owner)

    return {
        port: port_owners
        for port, port_owners in owners.items()
        if len({owner.container for owner in port_owners}) > 1
    }
