"""Timing middleware for port manager performance monitoring."""

import time
from collections import defaultdict, deque
from typing import Any

from fastmcp.server.middleware import Middleware, MiddlewareContext

from ..core.logging_config import get_middleware_logger


class TimingMiddleware(Middleware):
    """FastMCP middleware for request timing.

    Every port request enumerates and inspects all running containers, so
    slow requests usually point at a slow or overloaded Docker daemon.
    """

    def __init__(
        self,
        slow_request_threshold_ms: float = 5000.0,
        track_statistics: bool = True,
        max_history_size: int = 1000,
    ):
        """Initialize timing middleware.

        Args:
            slow_request_threshold_ms: Threshold for logging slow requests (milliseconds)
            track_statistics: Whether to track timing statistics
            max_history_size: Maximum number of timing records kept per method
        """
        self.logger = get_middleware_logger()
        self.slow_threshold_ms = slow_request_threshold_ms
        self.track_statistics = track_statistics

        self.request_times: dict[str, deque] = defaultdict(lambda: deque(maxlen=max_history_size))
        self.total_requests = 0
        self.slow_requests = 0

    async def on_message(self, context: MiddlewareContext, call_next):
        """Time all MCP requests."""
        start_time = time.perf_counter()
        success = False

        try:
            result = await call_next(context)
            success = True
            return result
        finally:
            duration_ms = (time.perf_counter() - start_time) * 1000
            if self.track_statistics:
                self._update_statistics(context.method, duration_ms, success)
            self._log_timing(context, duration_ms, success)

    def _update_statistics(self, method: str, duration_ms: float, success: bool) -> None:
        """Record one request duration."""
        self.total_requests += 1
        if duration_ms > self.slow_threshold_ms:
            self.slow_requests += 1

        self.request_times[method].append({"duration_ms": duration_ms, "success": success})

    def _method_stats(self, method: str) -> dict[str, Any]:
        """Summarize the recorded durations of one method."""
        records = self.request_times.get(method)
        if not records:
            return {}

        durations = [record["duration_ms"] for record in records]
        return {
            "count": len(durations),
            "avg_ms": sum(durations) / len(durations),
            "min_ms": min(durations),
            "max_ms": max(durations),
            "success_rate": sum(1 for record in records if record["success"]) / len(records),
        }

    def _log_timing(self, context: MiddlewareContext, duration_ms: float, success: bool) -> None:
        """Log timing with a level that reflects request duration."""
        log_data: dict[str, Any] = {
            "method": context.method,
            "duration_ms": round(duration_ms, 2),
            "success": success,
            "source": context.source,
        }

        if self.track_statistics and (stats := self._method_stats(context.method)):
            log_data.update(
                {
                    "avg_duration_ms": round(stats["avg_ms"], 2),
                    "method_request_count": stats["count"],
                }
            )

        if duration_ms > self.slow_threshold_ms:
            self.logger.warning(
                "Slow request detected", **log_data, slow_threshold_ms=self.slow_threshold_ms
            )
        else:
            self.logger.debug("Request completed", **log_data)

    def get_performance_statistics(self) -> dict[str, Any]:
        """Get timing statistics for all tracked methods."""
        if not self.track_statistics:
            return {"performance_tracking": "disabled"}

        return {
            "total_requests": self.total_requests,
            "slow_requests": self.slow_requests,
            "slow_request_rate": self.slow_requests / max(self.total_requests, 1),
            "slow_threshold_ms": self.slow_threshold_ms,
            "method_stats": {method: self._method_stats(method) for method in self.request_times},
        }

    def reset_statistics(self) -> None:
        """Reset all timing statistics."""
        self.request_times.clear()
        self.total_requests = 0
        self.slow_requests = 0
        self.logger.info("Timing statistics reset")
