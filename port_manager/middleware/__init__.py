"""FastMCP middleware for the port manager MCP surface.

- LoggingMiddleware: Structured request/response logging with redaction
- ErrorHandlingMiddleware: Error statistics and severity-aware logging
- TimingMiddleware: Request timing and slow request detection
"""

from .error_handling import ErrorHandlingMiddleware
from .logging import LoggingMiddleware
from .timing import TimingMiddleware

__all__ = [
    "LoggingMiddleware",
    "ErrorHandlingMiddleware",
    "TimingMiddleware",
]
