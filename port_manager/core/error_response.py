"""RFC 7807 compliant error response helpers.

Standardized error payloads following RFC 7807 (Problem Details for HTTP
APIs), shared by the HTTP routes and the MCP tool responses.
"""

from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, Field

from .exceptions import (
    GenerationExhaustedError,
    PortManagerError,
    PortValidationError,
    RuntimeUnavailableError,
)


class ErrorDetail(BaseModel):
    """RFC 7807 compliant error detail structure.

    Required fields:
    - success: Always False for error responses
    - error: Human-readable error message

    Optional RFC 7807 fields:
    - type: URI reference that identifies the problem type
    - title: Short, human-readable summary of the problem type
    - detail: Human-readable explanation specific to this occurrence
    - instance: URI reference that identifies the specific occurrence
    """

    success: bool = Field(default=False, description="Always False for errors")
    error: str = Field(description="Human-readable error message")
    type: str | None = Field(default=None, description="Problem type URI")
    title: str | None = Field(default=None, description="Problem type summary")
    detail: str | None = Field(default=None, description="Specific problem details")
    instance: str | None = Field(default=None, description="Problem occurrence URI")
    timestamp: str = Field(default_factory=lambda: datetime.now(UTC).isoformat())


class PortManagerErrorResponse:
    """Factory for creating standardized port manager error responses."""

    PROBLEM_TYPES: dict[str, dict[str, str]] = {
        "validation-error": {
            "type": "/problems/validation-error",
            "title": "Input Validation Failed",
        },
        "runtime-unavailable": {
            "type": "/problems/runtime-unavailable",
            "title": "Container Runtime Unavailable",
        },
        "generation-exhausted": {
            "type": "/problems/generation-exhausted",
            "title": "No Free Port Found",
        },
        "internal-error": {
            "type": "/problems/internal-error",
            "title": "Internal Server Error",
        },
    }

    STATUS_CODES: dict[str, int] = {
        "validation-error": 400,
        "runtime-unavailable": 503,
        "generation-exhausted": 500,
        "internal-error": 500,
    }

    @classmethod
    def create_error(
        cls,
        error_message: str,
        problem_type: str | None = None,
        detail: str | None = None,
        instance: str | None = None,
        context: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Create a standardized error response.

        Args:
            error_message: Primary error message
            problem_type: Standard problem type key or custom type URI
            detail: Additional problem-specific details
            instance: Identifier for this specific occurrence
            context: Additional context fields (port, range, etc.)

        Returns:
            RFC 7807 compliant error response dictionary
        """
        error_detail = ErrorDetail(error=error_message, detail=detail, instance=instance)

        if problem_type and problem_type in cls.PROBLEM_TYPES:
            problem_info = cls.PROBLEM_TYPES[problem_type]
            error_detail.type = problem_info["type"]
            error_detail.title = problem_info["title"]
        elif problem_type:
            error_detail.type = problem_type

        response = error_detail.model_dump(exclude_none=True)

        if context:
            # Filter out RFC 7807 reserved fields from context to avoid overwriting
            reserved_fields = {"success", "error", "type", "title", "detail", "instance", "timestamp"}
            response.update({k: v for k, v in context.items() if k not in reserved_fields})

        return response

    @classmethod
    def validation_error(
        cls, field: str, value: Any, reason: str, instance: str | None = None
    ) -> dict[str, Any]:
        """Standard validation error."""
        return cls.create_error(
            error_message="Invalid port number" if field == "port" else f"Invalid {field}",
            problem_type="validation-error",
            detail=f"The value '{value}' for field '{field}' is invalid: {reason}",
            instance=instance or f"/validation/{field}",
            context={"field": field, "value": str(value), "reason": reason},
        )

    @classmethod
    def runtime_unavailable(cls, operation: str, cause: str) -> dict[str, Any]:
        """Standard container runtime unavailable error."""
        return cls.create_error(
            error_message="Failed to get Docker container information",
            problem_type="runtime-unavailable",
            detail=f"Could not {operation}: {cause}",
            instance=f"/runtime/{operation}",
            context={"operation": operation, "cause": cause},
        )

    @classmethod
    def generation_exhausted(cls, range_low: int, range_high: int, attempts: int) -> dict[str, Any]:
        """Standard random port exhaustion error."""
        return cls.create_error(
            error_message="Could not find available port",
            problem_type="generation-exhausted",
            detail=(
                f"No free port found in range {range_low}-{range_high} "
                f"after {attempts} attempts"
            ),
            instance="/ports/random",
            context={"range_low": range_low, "range_high": range_high, "attempts": attempts},
        )

    @classmethod
    def generic_error(
        cls,
        error_message: str,
        context: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Generic error response for unexpected errors."""
        return cls.create_error(
            error_message=error_message,
            problem_type="internal-error",
            context=context or {},
        )

    @classmethod
    def from_exception(cls, error: Exception, operation: str) -> tuple[int, dict[str, Any]]:
        """Map an exception to an HTTP status code and error body.

        Args:
            error: The exception raised while serving the request
            operation: Short name of the failed operation

        Returns:
            Tuple of (status_code, error response dictionary)
        """
        if isinstance(error, PortValidationError):
            body = cls.validation_error(error.field, error.value, str(error))
            return cls.STATUS_CODES["validation-error"], body
        if isinstance(error, RuntimeUnavailableError):
            body = cls.runtime_unavailable(operation, str(error))
            return cls.STATUS_CODES["runtime-unavailable"], body
        if isinstance(error, GenerationExhaustedError):
            body = cls.generation_exhausted(error.range_low, error.range_high, error.attempts)
            return cls.STATUS_CODES["generation-exhausted"], body
        if isinstance(error, PortManagerError):
            return cls.STATUS_CODES["internal-error"], cls.generic_error(str(error))
        return cls.STATUS_CODES["internal-error"], cls.generic_error(
            f"Failed to {operation.replace('_', ' ')}"
        )
