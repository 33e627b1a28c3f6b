"""Enum definitions for port manager tools."""

from enum import Enum


class PortAction(Enum):
    """Actions for the docker_ports tool."""

    LIST = "list"
    CHECK = "check"
    RANDOM = "random"
    HEALTH = "health"
