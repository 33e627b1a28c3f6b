"""
Port Manager Services

Service layer between the server surfaces and the port inventory core.
"""

from .ports import PortService  # noqa: F401

__all__ = [
    "PortService",
]
