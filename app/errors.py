"""Application error taxonomy.

Every failure a request can end in is an AppError subclass carrying the
HTTP status it maps to. app.main registers a handler that renders them as
``{"message": ...}``.

Tests:
    - tests/unit/test_main.py::TestErrorHandlers
"""

from __future__ import annotations

__all__ = [
    "AccessDenied",
    "AppError",
    "ConfigurationError",
    "Conflict",
    "InsufficientCredits",
    "InternalError",
    "InvalidToken",
    "NotFound",
    "Unauthenticated",
    "UpstreamServiceError",
    "UserNotFound",
    "ValidationError",
]


class AppError(Exception):
    """Base exception for errors surfaced to API clients.

    Attributes:
        message: Human-readable message returned to the client
        status_code: HTTP status code
    """

    status_code: int = 500
    default_message: str = "An internal server error occurred."

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.default_message)
        self.message = message or self.default_message

    def __str__(self) -> str:
        return self.message


class Unauthenticated(AppError):
    """No session credential was presented."""

    status_code = 401
    default_message = "Not authenticated."


class InvalidToken(AppError):
    """Session credential is malformed, expired or badly signed."""

    status_code = 401
    default_message = "Invalid token."


class UserNotFound(AppError):
    """Session credential refers to a user that no longer exists."""

    status_code = 401
    default_message = "User not found."


class AccessDenied(AppError):
    status_code = 403
    default_message = "Access denied."


class InsufficientCredits(AppError):
    status_code = 402
    default_message = "Insufficient credits."


class ValidationError(AppError):
    status_code = 400
    default_message = "Invalid request."


class Conflict(AppError):
    status_code = 409
    default_message = "Resource already exists."


class NotFound(AppError):
    status_code = 404
    default_message = "Not found."


class UpstreamServiceError(AppError):
    """The generative service failed; wraps its error message."""

    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(f"An internal server error occurred: {message}")


class ConfigurationError(AppError):
    """Server is missing configuration required for the operation."""

    status_code = 500
    default_message = "Server configuration error: API key not found."


class InternalError(AppError):
    status_code = 500
