"""Error handling middleware for the port manager MCP surface."""

from collections import defaultdict
from typing import Any

from fastmcp.server.middleware import Middleware, MiddlewareContext

from ..core.exceptions import PortValidationError, RuntimeUnavailableError
from ..core.logging_config import get_middleware_logger
from .logging import is_sensitive_field


class ErrorHandlingMiddleware(Middleware):
    """FastMCP middleware for error tracking.

    Counts errors per exception type and method, logs them at a level that
    matches their severity and always re-raises so FastMCP can format the
    MCP error response.
    """

    def __init__(self, include_traceback: bool = True, track_error_stats: bool = True):
        """Initialize error handling middleware.

        Args:
            include_traceback: Whether to include full stack traces in logs
            track_error_stats: Whether to track error statistics
        """
        self.logger = get_middleware_logger()
        self.include_traceback = include_traceback
        self.track_error_stats = track_error_stats

        self.error_stats: dict[str, int] = defaultdict(int)
        self.method_errors: dict[str, int] = defaultdict(int)

    async def on_message(self, context: MiddlewareContext, call_next):
        """Handle all MCP messages with error tracking."""
        try:
            return await call_next(context)
        except Exception as e:
            self._handle_error(e, context)
            raise

    def _handle_error(self, error: Exception, context: MiddlewareContext) -> None:
        """Record and log an error with its request context."""
        error_type = type(error).__name__
        method = context.method

        if self.track_error_stats:
            self.error_stats[f"{error_type}:{method}"] += 1
            self.method_errors[method] += 1

        error_data: dict[str, Any] = {
            "error_type": error_type,
            "error_message": str(error),
            "method": method,
            "source": context.source,
            "message_type": context.type,
        }

        if self.track_error_stats:
            error_data.update(
                {
                    "error_occurrence_count": self.error_stats[f"{error_type}:{method}"],
                    "method_error_count": self.method_errors[method],
                }
            )

        if hasattr(context.message, "__dict__"):
            error_data["message_context"] = {
                key: str(value)[:100]
                for key, value in context.message.__dict__.items()
                if not key.startswith("_") and not is_sensitive_field(key)
            }

        if self._is_critical_error(error):
            self.logger.critical(
                "Critical error in MCP request", **error_data, exc_info=self.include_traceback
            )
        elif self._is_warning_level_error(error):
            self.logger.warning("Warning-level error in MCP request", **error_data)
        else:
            self.logger.error("Error in MCP request", **error_data, exc_info=self.include_traceback)

    def _is_critical_error(self, error: Exception) -> bool:
        """Determine if error should be logged as critical."""
        return isinstance(error, SystemError | MemoryError | RecursionError)

    def _is_warning_level_error(self, error: Exception) -> bool:
        """Determine if error is expected enough to log as a warning.

        Bad caller input and an unreachable daemon are not server faults.
        """
        return isinstance(
            error,
            PortValidationError | RuntimeUnavailableError | TimeoutError | ConnectionError,
        )

    def get_error_statistics(self) -> dict[str, Any]:
        """Get error statistics.

        Returns:
            Dictionary with totals and the most frequent error types/methods
        """
        if not self.track_error_stats:
            return {"error_tracking": "disabled"}

        top_errors = sorted(self.error_stats.items(), key=lambda x: x[1], reverse=True)[:10]
        top_error_methods = sorted(self.method_errors.items(), key=lambda x: x[1], reverse=True)[
            :10
        ]

        return {
            "total_errors": sum(self.error_stats.values()),
            "unique_error_types": len(self.error_stats),
            "top_errors": top_errors,
            "top_error_methods": top_error_methods,
            "error_distribution": dict(self.error_stats),
        }

    def reset_statistics(self) -> None:
        """Reset all error statistics."""
        self.error_stats.clear()
        self.method_errors.clear()
        self.logger.info("Error statistics reset")
