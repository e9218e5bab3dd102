"""FastAPI application creation and configuration.

This module creates and configures a FastAPI application protected by bearer
token authentication. It registers exception handlers, the auth middleware,
and two routes:
- GET /health (public)
- GET /me (returns the verified token payload)

Token Provider:
- Built from settings via create_token_provider unless one is passed in
- The provider is stored on app.state.token_provider so routes can mint tokens
"""

from fastapi import FastAPI
from starlette.exceptions import HTTPException as StarletteHTTPException

from tokenauth.auth.middleware import AuthMiddleware, PayloadDep
from tokenauth.auth.options import VerifyOptions
from tokenauth.auth.payload import Payload, StringPayload
from tokenauth.auth.provider import TokenProvider
from tokenauth.config import Settings, create_token_provider, get_settings
from tokenauth.errors import ApiError
from tokenauth.logging import configure_logging, get_logger
from tokenauth.responses import (
    api_error_handler,
    http_exception_handler,
    success_response,
    unhandled_exception_handler,
)

logger = get_logger(__name__)


def create_app(
    provider: TokenProvider | None = None,
    verify_options: VerifyOptions | None = None,
    settings: Settings | None = None,
    skip_auth_middleware: bool = False,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        provider: Optional pre-configured TokenProvider (for testing).
        verify_options: Call-site verify options applied by the middleware.
        settings: Optional settings; defaults to get_settings().
        skip_auth_middleware: If True, skip adding auth middleware (for testing).

    Returns:
        Configured FastAPI application instance.
    """
    settings = settings or get_settings()
    configure_logging(json_format=settings.log_json)

    provider = provider or create_token_provider(settings)

    app = FastAPI(
        title="Token Auth API",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
    )
    app.state.token_provider = provider

    # Register exception handlers
    app.add_exception_handler(ApiError, api_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    @app.get("/health")
    async def health() -> dict:
        return success_response({"status": "ok"})

    @app.get("/me")
    async def me(payload: Payload = PayloadDep) -> dict:
        if isinstance(payload, StringPayload):
            return success_response({"payload": payload.value})
        return success_response({"claims": payload.claims})

    if not skip_auth_middleware:
        app.add_middleware(AuthMiddleware, provider=provider, verify_options=verify_options)

    logger.info("app_created", env=settings.tokenauth_env.value)
    return app
