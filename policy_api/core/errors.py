"""Application-level exception types.

This module defines domain errors used across services/adapters, enabling
consistent error handling, logging, and API responses.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, NotRequired, TypedDict


class ErrorDetails(TypedDict, total=False):
    """Structured error context for observability and clients.

    Fields are optional to keep backward compatibility while encouraging
    consistent shapes across the codebase.
    """

    code: str
    message: str
    hint: str
    http_status: int
    retry_after: int
    endpoint: str
    workflow: str
    classify_status: str
    max_bytes: int
    event: str
    origin: str
    decision_request_id: str
    request_id: str
    context: NotRequired[dict[str, Any]]


@dataclass
class AppError(Exception):
    """Base error for application/domain failures.

    Attributes:
        code: Stable, machine-readable error code.
        message: Human-readable error message.
        details: Optional structured details for debugging/observability.
    """

    code: str
    message: str
    details: ErrorDetails | None = None

    def __post_init__(self) -> None:
        # Populate Exception args so str(error) is useful in logs/tracebacks.
        super().__init__(self.message)


class ValidationAppError(AppError):
    """Raised when request input or config validation fails."""


class NotFoundAppError(AppError):
    """Raised when a policy or workflow route does not exist."""


class UpstreamAppError(AppError):
    """Raised when the classifier or a policy check cannot produce a result."""


class ForbiddenAppError(AppError):
    """Raised when a caller is not allowed to use an endpoint."""


class PayloadTooLargeAppError(AppError):
    """Raised when a request body exceeds the configured size limit."""


@dataclass
class RateLimitAppError(AppError):
    """Raised by the HTTP layer when a caller exhausted its window.

    Attributes:
        headers: Rate limit headers to attach to the 429 response.
    """

    headers: dict[str, str] = field(default_factory=dict)
