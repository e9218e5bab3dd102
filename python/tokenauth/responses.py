"""JSON envelopes and the exception handlers that render them.

    success: {"data": ...}
    failure: {"error": {"code": "E_...", "message": "..."}}

api_error_handler doubles as the auth middleware's default error path, so a
request rejected before routing renders exactly like an ApiError raised from
inside a route. Every 401 carries a `WWW-Authenticate: Bearer` challenge.
"""

from typing import Any

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from tokenauth.errors import ERROR_CODE_TO_STATUS, ApiError, ApiErrorCode
from tokenauth.logging import get_logger

logger = get_logger(__name__)

BEARER_CHALLENGE = {"WWW-Authenticate": "Bearer"}

# Framework-raised statuses (unknown route, bad method, ...) -> error code
_FRAMEWORK_STATUS_CODES = {
    400: ApiErrorCode.E_INVALID_REQUEST,
    401: ApiErrorCode.E_UNAUTHENTICATED,
    404: ApiErrorCode.E_NOT_FOUND,
    405: ApiErrorCode.E_INVALID_REQUEST,
    422: ApiErrorCode.E_INVALID_REQUEST,
}


def success_response(data: Any) -> dict[str, Any]:
    """Wrap route data in the success envelope."""
    return {"data": data}


def error_response(code: ApiErrorCode, message: str) -> dict[str, Any]:
    """Build the error envelope; the code is serialized as its string value."""
    return {"error": {"code": code.value, "message": message}}


def _render(code: ApiErrorCode, message: str, status_code: int | None = None) -> JSONResponse:
    status_code = status_code or ERROR_CODE_TO_STATUS.get(code, 500)
    return JSONResponse(
        status_code=status_code,
        content=error_response(code, message),
        headers=BEARER_CHALLENGE if status_code == 401 else None,
    )


async def api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
    """Render a classified ApiError with its own status."""
    return _render(exc.code, exc.message, exc.status_code)


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Render framework HTTP errors (e.g. 404 for an unknown route) in the envelope."""
    code = _FRAMEWORK_STATUS_CODES.get(exc.status_code, ApiErrorCode.E_INTERNAL)
    return _render(code, str(exc.detail or "An error occurred"), exc.status_code)


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Log the exception server-side and answer 500 E_INTERNAL without details."""
    logger.exception("unhandled_exception", error=str(exc), path=request.url.path)
    return _render(ApiErrorCode.E_INTERNAL, "Internal server error")
