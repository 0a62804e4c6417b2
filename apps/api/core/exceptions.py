"""
Custom exception classes and error handling.

Every domain error carries a stable error code. The handlers in main.py turn
them into the `{ok: false, error: {code, message, details}}` envelope.
"""
from fastapi import HTTPException, status
from typing import Optional, Dict, Any


class ErrorCode:
    AUTH_INVALID_CREDENTIALS = "AUTH_INVALID_CREDENTIALS"
    AUTH_ACCOUNT_LOCKED = "AUTH_ACCOUNT_LOCKED"
    AUTH_TOKEN_INVALID = "AUTH_TOKEN_INVALID"
    AUTH_TOKEN_EXPIRED = "AUTH_TOKEN_EXPIRED"
    AUTH_ACCOUNT_NOT_FOUND = "AUTH_ACCOUNT_NOT_FOUND"
    AUTH_ACCOUNT_INACTIVE = "AUTH_ACCOUNT_INACTIVE"
    AUTH_INSUFFICIENT_PERMISSIONS = "AUTH_INSUFFICIENT_PERMISSIONS"
    AUTH_KIDS_DATA_REQUIRED = "AUTH_KIDS_DATA_REQUIRED"

    VALIDATION_ERROR = "VALIDATION_ERROR"

    RESOURCE_NOT_FOUND = "RESOURCE_NOT_FOUND"
    RESOURCE_ALREADY_EXISTS = "RESOURCE_ALREADY_EXISTS"

    SESS_OVERLAP = "SESS_OVERLAP"
    SESS_CANNOT_CANCEL = "SESS_CANNOT_CANCEL"
    SESS_NOT_COMPLETED = "SESS_NOT_COMPLETED"
    SESS_INVALID_TRANSITION = "SESS_INVALID_TRANSITION"

    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"
    INTERNAL_SERVER_ERROR = "INTERNAL_SERVER_ERROR"


# Starlette renamed the 422 constant; the literal works on every version.
HTTP_422_UNPROCESSABLE = 422

# Fallback codes for HTTPExceptions raised without one (FastAPI internals, 405s...)
STATUS_ERROR_CODES = {
    status.HTTP_400_BAD_REQUEST: "BAD_REQUEST",
    status.HTTP_401_UNAUTHORIZED: ErrorCode.AUTH_TOKEN_INVALID,
    status.HTTP_403_FORBIDDEN: ErrorCode.AUTH_INSUFFICIENT_PERMISSIONS,
    status.HTTP_404_NOT_FOUND: ErrorCode.RESOURCE_NOT_FOUND,
    status.HTTP_405_METHOD_NOT_ALLOWED: "METHOD_NOT_ALLOWED",
    status.HTTP_409_CONFLICT: ErrorCode.RESOURCE_ALREADY_EXISTS,
    HTTP_422_UNPROCESSABLE: ErrorCode.VALIDATION_ERROR,
    status.HTTP_428_PRECONDITION_REQUIRED: ErrorCode.AUTH_KIDS_DATA_REQUIRED,
    status.HTTP_429_TOO_MANY_REQUESTS: ErrorCode.RATE_LIMIT_EXCEEDED,
}


class APIException(HTTPException):
    """Base API exception with consistent structure."""

    def __init__(
        self,
        status_code: int,
        detail: str,
        error_code: Optional[str] = None,
        headers: Optional[Dict[str, Any]] = None,
        details: Optional[Any] = None,
    ):
        super().__init__(status_code=status_code, detail=detail, headers=headers)
        self.error_code = error_code or STATUS_ERROR_CODES.get(status_code, "ERROR")
        self.details = details


class InvalidCredentialsError(APIException):
    """Unknown email or wrong password."""

    def __init__(self, detail: str = "Invalid email or password"):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            error_code=ErrorCode.AUTH_INVALID_CREDENTIALS,
            headers={"WWW-Authenticate": "Bearer"},
        )


class AccountLockedError(APIException):
    """Login rejected while the lockout window is open."""

    def __init__(self, retry_after_s: Optional[int] = None):
        headers = {"Retry-After": str(retry_after_s)} if retry_after_s else None
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Account temporarily locked due to too many failed login attempts",
            error_code=ErrorCode.AUTH_ACCOUNT_LOCKED,
            headers=headers,
        )


class InvalidTokenError(APIException):
    """Access or refresh token absent, revoked, expired or unverifiable."""

    def __init__(
        self,
        detail: str = "Invalid or expired token",
        error_code: str = ErrorCode.AUTH_TOKEN_INVALID,
    ):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            error_code=error_code,
            headers={"WWW-Authenticate": "Bearer"},
        )


class PreconditionRequiredError(APIException):
    """An onboarding step has to be completed first."""

    def __init__(self, detail: str, error_code: str = ErrorCode.AUTH_KIDS_DATA_REQUIRED):
        super().__init__(
            status_code=status.HTTP_428_PRECONDITION_REQUIRED,
            detail=detail,
            error_code=error_code,
        )


class NotFoundError(APIException):
    """Resource not found."""

    def __init__(self, resource: str, identifier: Any = None):
        detail = f"{resource} not found" if identifier is None else f"{resource} not found: {identifier}"
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=detail,
            error_code=ErrorCode.RESOURCE_NOT_FOUND,
        )


class ValidationError(APIException):
    """Validation error."""

    def __init__(self, detail: str, field: Optional[str] = None, details: Optional[Any] = None):
        super().__init__(
            status_code=HTTP_422_UNPROCESSABLE,
            detail=detail,
            error_code=ErrorCode.VALIDATION_ERROR,
            details=details if details is not None else ({"field": field} if field else None),
        )


class AccountInactiveError(APIException):
    """Suspended or deactivated account."""

    def __init__(self, account_status: str):
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Account is {account_status}",
            error_code=ErrorCode.AUTH_ACCOUNT_INACTIVE,
        )


class ForbiddenError(APIException):
    """Access denied."""

    def __init__(self, detail: str = "Access denied"):
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=detail,
            error_code=ErrorCode.AUTH_INSUFFICIENT_PERMISSIONS,
        )


class ConflictError(APIException):
    """Resource conflict (duplicate entry, overlapping booking)."""

    def __init__(self, detail: str, error_code: str = ErrorCode.RESOURCE_ALREADY_EXISTS, details: Optional[Any] = None):
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            detail=detail,
            error_code=error_code,
            details=details,
        )


class InvalidStateError(APIException):
    """Illegal lifecycle transition."""

    def __init__(self, detail: str, error_code: str):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=detail,
            error_code=error_code,
        )
