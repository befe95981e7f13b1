"""Error definitions for MCP tools.

This module defines structured error types with stable codes
that can be surfaced to MCP clients. Codes match the ones carried by
the core exceptions and returned by the HTTP API.
"""

from dataclasses import dataclass
from typing import Any

# Error code constants shared with the core exceptions
INVALID_INPUT = "invalid_input"
JOB_NOT_FOUND = "job_not_found"
ARTIFACT_NOT_FOUND = "artifact_not_found"
BUILD_QUEUE_FULL = "build_queue_full"
INTERNAL_ERROR = "internal_error"


@dataclass
class MCPError:
    """Structured error response for MCP tools.

    Attributes:
        code: Stable error code for programmatic handling.
        message: Human-readable error message.
        details: Optional additional error details.
    """

    code: str
    message: str
    details: dict[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result: dict[str, Any] = {
            "code": self.code,
            "message": self.message,
        }
        if self.details is not None:
            result["details"] = self.details
        return result


def make_error(
    code: str,
    message: str,
    details: dict[str, Any] | None = None,
) -> MCPError:
    """Create an MCPError instance.

    Args:
        code: Stable error code.
        message: Human-readable message.
        details: Optional additional details.

    Returns:
        MCPError instance.
    """
    return MCPError(code=code, message=message, details=details)


def validation_error(
    message: str,
    code: str = INVALID_INPUT,
    details: dict[str, Any] | None = None,
) -> MCPError:
    """Create an input validation error."""
    return make_error(code, message, details)


def job_not_found(job_id: str) -> MCPError:
    """Create a job not found error."""
    return make_error(
        JOB_NOT_FOUND,
        f"Build not found: {job_id}",
        details={"job_id": job_id},
    )


def artifact_not_found(
    job_id: str, message: str, code: str = ARTIFACT_NOT_FOUND
) -> MCPError:
    """Create an artifact not found error."""
    return make_error(code, message, details={"job_id": job_id})


__all__ = [
    "ARTIFACT_NOT_FOUND",
    "BUILD_QUEUE_FULL",
    "INTERNAL_ERROR",
    "INVALID_INPUT",
    "JOB_NOT_FOUND",
    "MCPError",
    "artifact_not_found",
    "job_not_found",
    "make_error",
    "validation_error",
]
