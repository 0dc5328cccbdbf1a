"""Authentication and request error taxonomy shared by the auth layer and the API"""

from enum import Enum

from fastapi import HTTPException


class ErrorCode(str, Enum):
    INVALID_TOKEN_FORMAT = "INVALID_TOKEN_FORMAT"
    INVALID_TOKEN = "INVALID_TOKEN"
    TOKEN_DISABLED = "TOKEN_DISABLED"
    TOKEN_EXPIRED = "TOKEN_EXPIRED"
    AUTHENTICATION_FAILED = "AUTHENTICATION_FAILED"
    UNAUTHORIZED = "UNAUTHORIZED"
    FORBIDDEN = "FORBIDDEN"
    CSRF_MISSING = "CSRF_MISSING"
    CSRF_INVALID = "CSRF_INVALID"
    RATE_LIMITED = "RATE_LIMITED"
    INTERNAL_ERROR = "INTERNAL_ERROR"

    @property
    def message(self) -> str:
        return ERROR_MESSAGES[self]

    @property
    def status_code(self) -> int:
        return ERROR_STATUS[self]


ERROR_MESSAGES = {
    ErrorCode.INVALID_TOKEN_FORMAT: "Invalid token format",
    ErrorCode.INVALID_TOKEN: "Invalid token",
    ErrorCode.TOKEN_DISABLED: "Token is disabled",
    ErrorCode.TOKEN_EXPIRED: "Token expired",
    ErrorCode.AUTHENTICATION_FAILED: "Authentication failed",
    ErrorCode.UNAUTHORIZED: "Unauthorized",
    ErrorCode.FORBIDDEN: "Forbidden",
    ErrorCode.CSRF_MISSING: "CSRF token missing",
    ErrorCode.CSRF_INVALID: "Invalid CSRF token",
    ErrorCode.RATE_LIMITED: "Too many requests. Please try again later.",
    ErrorCode.INTERNAL_ERROR: "Internal server error",
}

ERROR_STATUS = {
    ErrorCode.INVALID_TOKEN_FORMAT: 401,
    ErrorCode.INVALID_TOKEN: 401,
    ErrorCode.TOKEN_DISABLED: 401,
    ErrorCode.TOKEN_EXPIRED: 401,
    ErrorCode.AUTHENTICATION_FAILED: 401,
    ErrorCode.UNAUTHORIZED: 401,
    ErrorCode.FORBIDDEN: 403,
    ErrorCode.CSRF_MISSING: 403,
    ErrorCode.CSRF_INVALID: 403,
    ErrorCode.RATE_LIMITED: 429,
    ErrorCode.INTERNAL_ERROR: 500,
}


def auth_error(code: ErrorCode, detail: str | None = None) -> HTTPException:
    """Build the HTTPException for an error code; detail overrides the default message"""
    return HTTPException(status_code=code.status_code, detail=detail or code.message)
