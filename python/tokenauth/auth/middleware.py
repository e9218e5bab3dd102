"""Authentication middleware for FastAPI.

Provides:
- extract_token: Bearer token extraction from the Authorization header
- JwtMiddleware: `default` and `customizable` request handlers
- AuthMiddleware: Class form for app.add_middleware
- get_payload: Dependency for accessing the verified token payload

Handlers never raise on a missing or rejected token. The ApiError is handed
to the error path (`on_error`, api_error_handler by default) and the rest of
the pipeline is skipped.

Registering a handler:
    jwt_middleware = JwtMiddleware(provider)
    app.middleware("http")(jwt_middleware.default)
    # or, with per-route-group options
    app.middleware("http")(jwt_middleware.customizable(VerifyOptions(audience="api")))
"""

from collections.abc import Awaitable, Callable

from fastapi import Depends, Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from tokenauth.auth.options import VerifyOptions
from tokenauth.auth.payload import CompleteToken, Payload, StructuredPayload
from tokenauth.auth.provider import TokenProvider
from tokenauth.errors import ApiError, UnauthenticatedError
from tokenauth.logging import (
    clear_request_context,
    get_logger,
    set_request_context,
    set_subject,
)
from tokenauth.responses import api_error_handler

logger = get_logger(__name__)

# Header names
AUTHORIZATION_HEADER = "authorization"
BEARER_SCHEME = "Bearer"

MISSING_TOKEN_MESSAGE = "Authorization token missing"

# Paths that don't require authentication
PUBLIC_PATHS = {"/health", "/docs", "/redoc", "/openapi.json"}

CallNext = Callable[[Request], Awaitable[Response]]
RequestHandler = Callable[[Request, CallNext], Awaitable[Response]]
ErrorHandler = Callable[[Request, ApiError], Awaitable[Response]]


def extract_token(request: Request) -> str | None:
    """Extract the bearer token from the Authorization header.

    The header must be exactly "Bearer <token>": two parts separated by a
    single space, with the scheme spelled "Bearer". Anything else (missing
    header, other scheme, different case, extra spaces) yields None.
    """
    auth_header = request.headers.get(AUTHORIZATION_HEADER)
    if not auth_header:
        return None

    parts = auth_header.split(" ")
    if len(parts) != 2 or parts[0] != BEARER_SCHEME:
        return None

    return parts[1]


class JwtMiddleware:
    """Bearer token authentication handlers backed by a TokenProvider.

    On success the decoded payload is stored on `request.state.payload`
    and the request continues down the pipeline.
    """

    def __init__(self, provider: TokenProvider, on_error: ErrorHandler = api_error_handler):
        """Initialize the handlers.

        Args:
            provider: TokenProvider used to verify tokens.
            on_error: Error path; receives the request and the ApiError and
                returns the response to send.
        """
        self.provider = provider
        self.on_error = on_error

    async def _authenticate(
        self,
        request: Request,
        call_next: CallNext,
        options: VerifyOptions | None,
        origin: str,
    ) -> Response:
        set_request_context(path=request.url.path, method=request.method)
        try:
            token = extract_token(request)
            if not token:
                logger.warning("auth_failure", reason="missing_token", origin=origin)
                return await self.on_error(
                    request, UnauthenticatedError(MISSING_TOKEN_MESSAGE, origin=origin)
                )

            try:
                result = self.provider.verify(token, options)
            except ApiError as e:
                logger.warning(
                    "auth_failure",
                    reason="token_rejected",
                    origin=e.origin,
                    code=e.code.value,
                    status_code=e.status_code,
                )
                return await self.on_error(request, e)

            payload = result.payload if isinstance(result, CompleteToken) else result
            request.state.payload = payload
            if isinstance(payload, StructuredPayload) and isinstance(payload.sub, str):
                set_subject(payload.sub)

            return await call_next(request)
        finally:
            clear_request_context()

    async def default(self, request: Request, call_next: CallNext) -> Response:
        """Authenticate with the provider's default verify options."""
        return await self._authenticate(request, call_next, None, "default")

    def customizable(self, options: VerifyOptions | None = None) -> RequestHandler:
        """Build a handler that verifies with `options` merged over the provider defaults."""

        async def handler(request: Request, call_next: CallNext) -> Response:
            return await self._authenticate(request, call_next, options, "customizable")

        return handler


class AuthMiddleware(BaseHTTPMiddleware):
    """Authentication middleware for FastAPI.

    Order of checks:
    1. Skip if public path
    2. Extract bearer token
    3. Verify token via TokenProvider
    4. Attach payload to request state
    """

    def __init__(
        self,
        app: ASGIApp,
        provider: TokenProvider,
        verify_options: VerifyOptions | None = None,
        public_paths: set[str] | None = None,
        on_error: ErrorHandler = api_error_handler,
    ):
        """Initialize the auth middleware.

        Args:
            app: The ASGI application.
            provider: TokenProvider used for verification.
            verify_options: Optional call-site verify options for this app.
            public_paths: Paths served without authentication.
            on_error: Error path for rejected requests.
        """
        super().__init__(app)
        self.public_paths = PUBLIC_PATHS if public_paths is None else set(public_paths)
        handlers = JwtMiddleware(provider, on_error=on_error)
        self._handler = (
            handlers.default if verify_options is None else handlers.customizable(verify_options)
        )

    async def dispatch(self, request: Request, call_next: CallNext) -> Response:
        """Process the request through auth checks."""
        if request.url.path in self.public_paths:
            return await call_next(request)
        return await self._handler(request, call_next)


def get_payload(request: Request) -> Payload:
    """FastAPI dependency to get the verified token payload.

    Raises:
        ApiError: If no payload is set (middleware didn't run or path is public).
    """
    payload = getattr(request.state, "payload", None)
    if payload is None:
        raise UnauthenticatedError("Authentication required", origin="get_payload")
    return payload


# Type alias for dependency injection
PayloadDep = Depends(get_payload)
