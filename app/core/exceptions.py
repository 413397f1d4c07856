"""
Application errors raised outside the ServiceResult flow.

The websocket consumer has no result object to hand back when a live query
subscription is refused, so resolvers raise one of these and the consumer
turns it into an error frame with to_dict():

    ValidationError        bad frame or arguments (400-like)
    NotFoundError          conversation or message missing
    PermissionDeniedError  caller is not a participant

Usage:
    from core.exceptions import ValidationError

    raise ValidationError("Unknown query", error_code="UNKNOWN_QUERY")
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from typing import Any


class BaseApplicationError(Exception):
    """
    Base exception for all application-specific errors.

    Attributes:
        message: Human-readable error description
        error_code: Machine-readable code for client-side handling
        details: Additional error context (field errors, metadata, etc.)
    """

    default_error_code: str = "APPLICATION_ERROR"

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
        Convert exception to dictionary for API or websocket responses.

        Returns:
            Dict with error, error_code, and (when present) details keys
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


class ValidationError(BaseApplicationError):
    """Raised when input validation fails."""

    default_error_code: str = "VALIDATION_ERROR"


class NotFoundError(BaseApplicationError):
    """Raised when a requested resource is not found."""

    default_error_code: str = "NOT_FOUND"


class PermissionDeniedError(BaseApplicationError):
    """Raised when the caller lacks permission for an operation."""

    default_error_code: str = "PERMISSION_DENIED"
