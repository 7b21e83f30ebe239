"""Application error taxonomy.

Every service raises a subclass of AppError. The code identifies the failure
kind for clients and the status_code is what the global exception handler
answers with. Collaborator failures (gateway, storage, raw driver errors)
are translated into one of these before leaving a service.
"""

from fastapi import status


class AppError(Exception):
    """Base application error."""

    status_code: int = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str, code: str = "app_error"):
        self.message = message
        self.code = code
        super().__init__(message)


class ValidationError(AppError):
    """Malformed or missing input detected after schema validation."""

    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY

    def __init__(self, message: str = "Invalid input", field: str | None = None):
        super().__init__(message, "validation_error")
        self.field = field


class UnauthorizedError(AppError):
    """No credential was presented."""

    status_code = status.HTTP_401_UNAUTHORIZED

    def __init__(self, message: str = "Authentication required", code: str = "unauthorized"):
        super().__init__(message, code)


class InvalidTokenError(UnauthorizedError):
    """Credential present but expired, malformed, revoked or unknown.

    All refresh and access token failures share one message so callers
    cannot tell which check failed.
    """

    def __init__(self, message: str = "Invalid or expired token"):
        super().__init__(message, "invalid_token")


class ForbiddenError(AppError):
    """Authenticated but not entitled to the resource."""

    status_code = status.HTTP_403_FORBIDDEN

    def __init__(self, message: str = "Permission denied", code: str = "forbidden"):
        super().__init__(message, code)


class NotFoundError(AppError):
    """Referenced entity does not exist."""

    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, message: str = "Not found", code: str = "not_found"):
        super().__init__(message, code)


class ConflictError(AppError):
    """Uniqueness violation."""

    status_code = status.HTTP_409_CONFLICT

    def __init__(
        self,
        message: str = "Already exists",
        code: str = "conflict",
        field: str | None = None,
    ):
        super().__init__(message, code)
        self.field = field


class InvalidSignatureError(AppError):
    """Payment callback signature does not match."""

    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str = "Invalid payment signature"):
        super().__init__(message, "invalid_signature")


class UpstreamError(AppError):
    """Payment gateway or object storage failure."""

    status_code = status.HTTP_502_BAD_GATEWAY

    def __init__(self, message: str = "Upstream service failure", code: str = "upstream_error"):
        super().__init__(message, code)


def error_payload(error: AppError, request_id: str | None) -> dict:
    """Response body for an AppError."""
    content: dict = {
        "error": True,
        "message": error.message,
        "code": error.code,
        "status_code": error.status_code,
        "request_id": request_id,
    }
    field = getattr(error, "field", None)
    if field:
        content["field"] = field
    return content
