"""Token error definitions.

All classified errors are defined here with their corresponding HTTP status codes.
Nothing raised by the signing library crosses the provider boundary; it is
re-wrapped into ApiError with an origin label naming the failing operation.
"""

from enum import Enum


class ApiErrorCode(str, Enum):
    """Standardized error codes.

    Format: E_CATEGORY_NAME
    """

    # Validation errors (400)
    E_INVALID_REQUEST = "E_INVALID_REQUEST"

    # Authentication errors (401)
    E_UNAUTHENTICATED = "E_UNAUTHENTICATED"
    E_TOKEN_EXPIRED = "E_TOKEN_EXPIRED"
    E_TOKEN_NOT_ACTIVE = "E_TOKEN_NOT_ACTIVE"

    # Not found errors (404)
    E_NOT_FOUND = "E_NOT_FOUND"

    # Server errors (500)
    E_SECRET_NOT_SET = "E_SECRET_NOT_SET"
    E_SIGN_FAILED = "E_SIGN_FAILED"
    E_TOKEN_INVALID = "E_TOKEN_INVALID"
    E_DECODE_FAILED = "E_DECODE_FAILED"
    E_INTERNAL = "E_INTERNAL"


# Error code to HTTP status mapping
ERROR_CODE_TO_STATUS: dict[ApiErrorCode, int] = {
    ApiErrorCode.E_INVALID_REQUEST: 400,
    ApiErrorCode.E_UNAUTHENTICATED: 401,
    ApiErrorCode.E_TOKEN_EXPIRED: 401,
    ApiErrorCode.E_TOKEN_NOT_ACTIVE: 401,
    ApiErrorCode.E_NOT_FOUND: 404,
    ApiErrorCode.E_SECRET_NOT_SET: 500,
    ApiErrorCode.E_SIGN_FAILED: 500,
    ApiErrorCode.E_TOKEN_INVALID: 500,
    ApiErrorCode.E_DECODE_FAILED: 500,
    ApiErrorCode.E_INTERNAL: 500,
}


class ApiError(Exception):
    """Classified error raised by the token provider and middleware.

    Attributes:
        code: The error code enum value
        message: Human-readable error message
        status_code: HTTP status code (derived from code)
        origin: Label of the operation that failed (e.g. "sign", "verify")
    """

    def __init__(self, code: ApiErrorCode, message: str, origin: str | None = None):
        self.code = code
        self.message = message
        self.status_code = ERROR_CODE_TO_STATUS.get(code, 500)
        self.origin = origin
        super().__init__(message)

    def __repr__(self) -> str:
        return (
            f"ApiError(code={self.code.value!r}, status_code={self.status_code}, "
            f"origin={self.origin!r}, message={self.message!r})"
        )


class SecretNotSetError(ApiError):
    """Raised when signing or verifying is attempted before a secret is configured."""

    def __init__(self, origin: str):
        super().__init__(ApiErrorCode.E_SECRET_NOT_SET, "JWT secret not set.", origin)


class UnauthenticatedError(ApiError):
    """Missing or unusable credentials on an inbound request."""

    def __init__(self, message: str = "Authentication required", origin: str | None = None):
        super().__init__(ApiErrorCode.E_UNAUTHENTICATED, message, origin)
