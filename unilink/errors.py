"""Error taxonomy shared by services and the API layer.

Services raise these; ``api.py`` turns them into ``{"error", "code"}`` bodies.
"""
from __future__ import annotations

from fastapi import status


class UniLinkError(Exception):
    """Base class for errors that map to a client-facing response."""
    status_code: int = status.HTTP_400_BAD_REQUEST
    default_code: str = "BAD_REQUEST"

    def __init__(self, message: str, code: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code


class ValidationFailed(UniLinkError):
    """Missing or invalid input, or a violated business rule."""
    status_code = status.HTTP_400_BAD_REQUEST
    default_code = "VALIDATION_ERROR"


class AuthenticationRequired(UniLinkError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_code = "AUTHENTICATION_REQUIRED"

    def __init__(self, message: str = "Authentication required", code: str | None = None) -> None:
        super().__init__(message, code)


class Forbidden(UniLinkError):
    status_code = status.HTTP_403_FORBIDDEN
    default_code = "FORBIDDEN"


class NotFound(UniLinkError):
    status_code = status.HTTP_404_NOT_FOUND
    default_code = "NOT_FOUND"
