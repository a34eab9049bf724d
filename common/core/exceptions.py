from typing import Optional


class AppException(Exception):
    """Base application exception."""

    status_code: int = 500
    default_detail: str = "Internal server error"

    def __init__(self, detail: Optional[str] = None):
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class AuthenticationError(AppException):
    """No verified user identity."""

    status_code = 401
    default_detail = "Unauthorized"


class ValidationError(AppException):
    """Validation error exception."""

    status_code = 400
    default_detail = "Invalid request"


class NotFoundError(AppException):
    """Resource not found exception."""

    status_code = 404
    default_detail = "Not found"


class ConflictError(AppException):
    """Request conflicts with current state (e.g. not enough credits)."""

    status_code = 403
    default_detail = "Conflict"


class UpstreamError(AppException):
    """An external collaborator (database, Stripe, email, CMS) failed.

    The detail is logged but never returned to the caller.
    """

    status_code = 500
    default_detail = "Internal server error"
