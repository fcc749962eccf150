"""Service-layer exceptions mapped to HTTP responses.

Each class carries the HTTP status it maps to. ``extra`` holds additional
top-level fields for the error envelope (e.g. ``requires2FA``).
"""

from typing import Any, Optional


class ServiceError(Exception):
    """Base class for domain failures recovered at the API boundary."""

    status_code: int = 400

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        extra: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.extra = extra or {}


class ValidationError(ServiceError):
    """Malformed or missing input (400)."""
    status_code = 400


class ConflictError(ServiceError):
    """Duplicate email, username or similar (reported as 400)."""
    status_code = 400


class AuthenticationError(ServiceError):
    """Bad credentials (401)."""
    status_code = 401


class TwoFactorRequiredError(AuthenticationError):
    """Password was right but a second factor must accompany it (401)."""

    def __init__(self, message: str = "2FA code required") -> None:
        super().__init__(message, extra={"requires2FA": True})


class ForbiddenError(ServiceError):
    """Insufficient role or ownership (403)."""
    status_code = 403


class InvalidTokenError(ForbiddenError):
    """Access or refresh token that is invalid, expired or inactive (403)."""


class NotFoundError(ServiceError):
    """Referenced entity absent (404)."""
    status_code = 404


class InternalError(ServiceError):
    """Unexpected storage or crypto failure (500)."""
    status_code = 500
