"""Logging middleware for the port manager MCP surface."""

import time
from typing import Any

from fastmcp.server.middleware import Middleware, MiddlewareContext

from ..core.logging_config import get_middleware_logger

SENSITIVE_KEYWORDS = (
    "password",
    "passwd",
    "token",
    "secret",
    "key",
    "credential",
    "auth",
    "cert",
)


def is_sensitive_field(field_name: str) -> bool:
    """Check if a field name looks like it carries a secret."""
    field_lower = field_name.lower()
    return any(sensitive in field_lower for sensitive in SENSITIVE_KEYWORDS)


class LoggingMiddleware(Middleware):
    """FastMCP middleware for request/response logging.

    Logs every MCP message to the middleware logger with the tool name,
    sanitized arguments and the request duration.
    """

    def __init__(self, include_payloads: bool = True, max_payload_length: int = 1000):
        """Initialize logging middleware.

        Args:
            include_payloads: Whether to include request payloads in logs
            max_payload_length: Maximum length for payload strings before truncation
        """
        self.logger = get_middleware_logger()
        self.include_payloads = include_payloads
        self.max_payload_length = max_payload_length

    async def on_message(self, context: MiddlewareContext, call_next):
        """Log all MCP messages with timing."""
        start_time = time.perf_counter()

        log_data: dict[str, Any] = {
            "method": context.method,
            "source": context.source,
            "message_type": context.type,
        }
        tool_name = getattr(context.message, "name", None)
        if isinstance(tool_name, str):
            log_data["tool"] = tool_name

        if self.include_payloads and hasattr(context.message, "__dict__"):
            log_data["params"] = self._sanitize_message(context.message)

        self.logger.info("MCP request started", **log_data)

        try:
            result = await call_next(context)
        except Exception as e:
            duration_ms = round((time.perf_counter() - start_time) * 1000, 2)
            self.logger.error(
                "MCP request failed",
                method=context.method,
                success=False,
                duration_ms=duration_ms,
                error=str(e),
                error_type=type(e).__name__,
                exc_info=True,
            )
            raise

        duration_ms = round((time.perf_counter() - start_time) * 1000, 2)
        self.logger.info(
            "MCP request completed",
            method=context.method,
            success=True,
            duration_ms=duration_ms,
        )
        return result

    def _sanitize_message(self, message: Any) -> dict[str, Any]:
        """Sanitize message data for safe logging.

        Private attributes are dropped, sensitive fields redacted and long
        values truncated.
        """
        if not hasattr(message, "__dict__"):
            return {"message": str(message)[: self.max_payload_length]}

        sanitized: dict[str, Any] = {}
        for key, value in message.__dict__.items():
            if key.startswith("_"):
                continue

            if is_sensitive_field(key):
                sanitized[key] = "[REDACTED]"
            elif isinstance(value, dict):
                sanitized[key] = self._truncate(
                    {k: "[REDACTED]" if is_sensitive_field(str(k)) else v for k, v in value.items()}
                )
            elif isinstance(value, str | list):
                sanitized[key] = self._truncate(value)
            else:
                sanitized[key] = value

        return sanitized

    def _truncate(self, value: Any) -> Any:
        """Truncate a value whose string form exceeds the payload limit."""
        str_value = str(value)
        if len(str_value) > self.max_payload_length:
            return str_value[: self.max_payload_length] + "... [TRUNCATED]"
        return value
