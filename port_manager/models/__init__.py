"""Data models for the port manager."""

from .enums import PortAction
from .ports import (
    DEFAULT_HOST_IP,
    ContainerRecord,
    HealthStatus,
    PortBinding,
    PortCheckResult,
    PortInventory,
    RandomPortResult,
    RawContainer,
    UsedBy,
)

__all__ = [
    "DEFAULT_HOST_IP",
    "ContainerRecord",
    "HealthStatus",
    "PortAction",
    "PortBinding",
    "PortCheckResult",
    "PortInventory",
    "RandomPortResult",
    "RawContainer",
    "UsedBy",
]
