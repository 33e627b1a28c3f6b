"""Core exceptions for port manager operations."""

from typing import Any


class PortManagerError(Exception):
    """Base exception for port manager operations."""


class PortValidationError(PortManagerError):
    """Caller-supplied port or range failed validation."""

    def __init__(self, message: str, field: str = "port", value: Any = None):
        super().__init__(message)
        self.field = field
        self.value = value


class RuntimeUnavailableError(PortManagerError):
    """Container daemon could not be reached or answered with an error."""


class GenerationExhaustedError(PortManagerError):
    """Random port search used its attempt budget without finding a free port."""

    def __init__(self, range_low: int, range_high: int, attempts: int):
        super().__init__(
            f"Could not find available port in range {range_low}-{range_high} "
            f"after {attempts} attempts"
        )
        self.range_low = range_low
        self.range_high = range_high
        self.attempts = attempts


class ConfigurationError(PortManagerError):
    """Configuration validation or loading failed."""
