"""Application-level exception types.

Domain errors raised by routes and adapters. Each subclass maps to one HTTP
status in ``app.core.exception_handlers``.

Exceeding the scan quota is deliberately *not* an error: the admission
middleware answers 429 itself without raising.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, NotRequired, TypedDict


class ErrorDetails(TypedDict, total=False):
    """Structured error context for observability and clients."""

    code: str
    message: str
    hint: str
    target: str
    retry_after: float
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
    """Raised when request input or configuration is invalid."""


class ScanAppError(AppError):
    """Raised when the scan orchestrator fails after admission."""


class ScanUnavailableAppError(AppError):
    """Raised when no scan orchestrator is configured."""
