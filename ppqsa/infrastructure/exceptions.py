"""
Exception classes for the outer layers of the PPQSA application.

The scoring and aggregation engine is total over its inputs and raises
nothing of its own; these types cover storage backends, boundary
validation and the HTTP surface.
"""

from __future__ import annotations

from typing import Any


class PPQSAError(Exception):
    """Base exception for all application errors."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
        user_message: str | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.user_message = user_message or self._get_default_user_message()

    def _get_default_user_message(self) -> str:
        return "An unexpected error occurred. Please try again."

    def __str__(self) -> str:
        return f"{self.__class__.__name__}: {self.message}"


class ValidationError(PPQSAError):
    """Raised when boundary input validation fails."""

    def __init__(
        self, field: str, message: str, value: Any = None, details: dict[str, Any] | None = None
    ):
        self.field = field
        self.value = value
        super().__init__(
            message=f"Validation failed for field '{field}': {message}",
            details=details or {"field": field, "value": value},
            user_message=f"Invalid {field.replace('_', ' ')}: {message}",
        )


class StorageError(PPQSAError):
    """Raised when the key/value backend cannot complete an operation."""

    def __init__(self, message: str, operation: str, details: dict[str, Any] | None = None):
        self.operation = operation
        super().__init__(
            message=f"Storage error during {operation}: {message}",
            details=details or {"operation": operation},
            user_message="Unable to save your changes. Please try again.",
        )


class InviteNotFoundError(PPQSAError):
    """Raised when an invite token is not present in the registry."""

    def __init__(self, token: str):
        self.token = token
        super().__init__(
            message=f"Invite with token {token!r} not found",
            details={"token": token},
            user_message="The selected invite could not be found. Please refresh and try again.",
        )


class SnapshotImportError(PPQSAError):
    """Raised when an uploaded snapshot log cannot be decoded at all."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(
            message=message,
            details=details,
            user_message="Import failed. Please check your file and try again.",
        )


def handle_storage_error(e: Exception, operation: str = "storage operation") -> StorageError:
    """
    Wrap a backend exception in a StorageError.

    Example:
        >>> try:
        ...     session.commit()
        ... except SQLAlchemyError as e:
        ...     raise handle_storage_error(e, "storage.put") from e
    """
    error_msg = str(e).lower()
    details: dict[str, Any] = {"operation": operation, "error_type": type(e).__name__}
    if "locked" in error_msg or "timeout" in error_msg:
        details["transient"] = True
    return StorageError(str(e), operation, details=details)


def create_user_friendly_error_message(error: Exception) -> str:
    """
    Create a user-friendly error message from any exception.

    Example:
        >>> create_user_friendly_error_message(ValidationError("target_score24", "must be finite"))
        'Invalid target score24: must be finite'
    """
    if isinstance(error, PPQSAError):
        return error.user_message

    messages = {
        "ValueError": "Invalid input provided. Please check your data and try again.",
        "KeyError": "Required information is missing. Please check your input.",
        "TypeError": "Incorrect data type provided. Please check your input format.",
    }
    return messages.get(
        type(error).__name__, "An unexpected error occurred. Please try again or contact support."
    )


def log_error_details(error: Exception, context: dict[str, Any] | None = None) -> dict[str, Any]:
    """Create structured error details for logging."""
    details = {
        "error_type": type(error).__name__,
        "error_message": str(error),
        "context": context or {},
    }

    if isinstance(error, PPQSAError):
        details.update({"user_message": error.user_message, "error_details": error.details})

    return details
