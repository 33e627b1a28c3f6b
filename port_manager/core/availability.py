"""Port availability checks against a port inventory."""

from typing import Any

from ..models.ports import PortCheckResult, PortInventory, UsedBy
from .exceptions import PortValidationError

MIN_PORT = 1
MAX_PORT = 65535


def validate_port(value: Any, field: str = "port") -> int:
    """Validate a caller-supplied port number.

    Args:
        value: Port as an integer or decimal string
        field: Field name reported in the validation error

    Returns:
        Port number as integer

    Raises:
        PortValidationError: If the value is not numeric or outside 1-65535
    """
    if isinstance(value, bool):
        raise PortValidationError("Invalid port number", field=field, value=value)

    if isinstance(value, int):
        port = value
    elif isinstance(value, str):
        candidate = value.strip()
        if candidate.startswith(("-", "+")):
            digits = candidate[1:]
        else:
            digits = candidate
        if not (digits.isascii() and digits.isdecimal()):
            raise PortValidationError("Invalid port number", field=field, value=value)
        port = int(candidate)
    else:
        raise PortValidationError("Invalid port number", field=field, value=value)

    if not (MIN_PORT <= port <= MAX_PORT):
        raise PortValidationError(
            f"Port must be between {MIN_PORT} and {MAX_PORT}, got {port}",
            field=field,
            value=value,
        )
    return port


def find_owner(port: int, inventory: PortInventory) -> UsedBy | None:
    """Return the first binding owning ``port`` in enumeration order."""
    for record in inventory.containers:
        for binding in record.bindings:
            if binding.host_port == port:
                return UsedBy(container=record.name, container_port=binding.container_port)
    return None


def check_port(port: int, inventory: PortInventory) -> PortCheckResult:
    """Check whether a host port is free in the given inventory.

    When several containers share the port the first one encountered wins,
    so repeated checks against the same snapshot give the same owner.
    """
    owner = find_owner(port, inventory)
    return PortCheckResult(port=port, available=owner is None, used_by=owner)
