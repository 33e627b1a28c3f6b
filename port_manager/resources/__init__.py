"""MCP Resources for read-only port data."""

from .ports import INVENTORY_URI, PortInventoryResource

__all__ = ["INVENTORY_URI", "PortInventoryResource"]
