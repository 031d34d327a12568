"""
Application exception hierarchy.

Exception Hierarchy:
    BaseApplicationError (base)
    ├── NotFoundError - Resource not found (404)
    └── ExternalServiceError - Redis, channel layer or other backing
                               service failures (503)

Each class carries the HTTP status it maps to. The DRF exception handler in
core.exception_handlers uses it to build responses, so views never translate
these by hand.

Usage:
    from core.exceptions import NotFoundError

    raise NotFoundError(
        f"No delivery entry for recipient {recipient_id}",
        error_code="DELIVERY_ENTRY_NOT_FOUND",
        details={"message_id": message_id},
    )
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from typing import Any


class BaseApplicationError(Exception):
    """
    Base exception for application-specific errors.

    Attributes:
        message: Human-readable error description
        error_code: Machine-readable code for client-side handling
        details: Additional error context
        http_status: Status code used when the error reaches the API layer
    """

    default_error_code: str = "APPLICATION_ERROR"
    http_status: int = 400

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.error_code = error_code or self.default_error_code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """
        Convert exception to an API error body.

        Example:
            {"error": "Chat not found", "error_code": "NOT_FOUND"}
        """
        result: dict[str, Any] = {
            "error": self.message,
            "error_code": self.error_code,
        }
        if self.details:
            result["details"] = self.details
        return result

    def __str__(self) -> str:
        return f"[{self.error_code}] {self.message}"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"error_code={self.error_code!r}, "
            f"details={self.details!r})"
        )


class NotFoundError(BaseApplicationError):
    """
    Raised when a single resource that must exist is missing.

    Example:
        A delivery entry targeted by mark_delivered does not exist for the
        given message and recipient.
    """

    default_error_code: str = "NOT_FOUND"
    http_status: int = 404


class ExternalServiceError(BaseApplicationError):
    """
    Raised when a backing service call fails.

    Note:
        Log the original error but never expose its details to clients.
    """

    default_error_code: str = "EXTERNAL_SERVICE_ERROR"
    http_status: int = 503
