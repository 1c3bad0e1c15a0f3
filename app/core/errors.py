"""Application-level exception types.

Every failure of the verification pipeline is expressed as one of these
errors so the global exception handlers can map it to a single response
envelope and log it consistently.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, NotRequired, TypedDict


class ErrorDetails(TypedDict, total=False):
    """Structured error context for observability and clients."""

    code: str
    message: str
    hint: str
    limit: int
    max_chars: int
    actual_chars: int
    http_status: int
    upstream_status: int
    retry_after: int
    day: str
    model: str
    request_id: str
    fields: list[str]
    context: NotRequired[dict[str, Any]]


@dataclass
class AppError(Exception):
    """Base error for application/domain failures.

    Attributes:
        code: Stable, machine-readable error code.
        message: Human-readable error message (safe to show to callers).
        details: Optional structured details for debugging/observability.
    """

    code: str
    message: str
    details: ErrorDetails | None = None

    def __post_init__(self) -> None:
        # Populate Exception args so str(error) is useful in logs/tracebacks.
        super().__init__(self.message)


class ValidationAppError(AppError):
    """Raised when the request body fails validation."""


class ConfigurationAppError(AppError):
    """Raised when a required secret or credential is missing or unusable."""


class StoreAppError(AppError):
    """Raised when the usage-counter store cannot be read or written."""


class LLMAppError(AppError):
    """Raised when the provider call fails or returns unusable output."""


@dataclass
class QuotaExceededAppError(AppError):
    """Raised when the caller has used up today's quota."""

    headers: dict[str, str] | None = None


@dataclass
class UpstreamAppError(LLMAppError):
    """Raised when the provider answers with a non-success HTTP status."""

    status_code: int = 502
