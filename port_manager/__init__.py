"""Docker Port Manager: host port inventory for running containers."""

__version__ = "0.1.0"
