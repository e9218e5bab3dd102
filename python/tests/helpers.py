"""Test helpers for token minting and common test operations.

Provides:
- Token minting directly through PyJWT (independent of TokenProvider)
- Header generation for test requests
- Bare Starlette requests for calling middleware handlers directly
"""

import time

import jwt
from starlette.requests import Request

# 64 bytes so every HS* algorithm gets a full-length key
TEST_SECRET = "test-secret-0123456789abcdef0123456789abcdef0123456789abcdef0123"
OTHER_SECRET = "other-secret-0123456789abcdef0123456789abcdef0123456789abcdef01"

DEFAULT_EXPIRES_IN = 3600  # 1 hour


def mint_test_token(
    subject: str = "user-1",
    expires_in: int | None = DEFAULT_EXPIRES_IN,
    secret: str = TEST_SECRET,
    algorithm: str = "HS256",
    **extra_claims,
) -> str:
    """Mint a test JWT token.

    Args:
        subject: The `sub` claim value.
        expires_in: Token validity in seconds from now (None for no exp).
        secret: HMAC secret to sign with.
        algorithm: Signing algorithm.
        **extra_claims: Additional claims to include in the token.

    Returns:
        A signed JWT token string.
    """
    now = int(time.time())
    payload = {"sub": subject, "iat": now, **extra_claims}
    if expires_in is not None:
        payload["exp"] = now + expires_in
    return jwt.encode(payload, secret, algorithm=algorithm)


def mint_expired_token(subject: str = "user-1") -> str:
    """Mint a token that expired 1 second ago."""
    return mint_test_token(subject, expires_in=-1)


def mint_not_yet_valid_token(subject: str = "user-1", delay: int = 3600) -> str:
    """Mint a token whose nbf is `delay` seconds in the future."""
    return mint_test_token(subject, nbf=int(time.time()) + delay)


def mint_token_with_bad_signature(subject: str = "user-1") -> str:
    """Mint a token signed with a different secret (bad signature)."""
    return mint_test_token(subject, secret=OTHER_SECRET)


def auth_headers(token: str) -> dict[str, str]:
    """Return headers dict with a bearer Authorization header."""
    return {"Authorization": f"Bearer {token}"}


def make_request(headers: dict[str, str] | None = None, path: str = "/me") -> Request:
    """Build a bare GET request for calling middleware handlers directly."""
    scope = {
        "type": "http",
        "method": "GET",
        "path": path,
        "root_path": "",
        "scheme": "http",
        "query_string": b"",
        "headers": [
            (name.lower().encode("latin-1"), value.encode("latin-1"))
            for name, value in (headers or {}).items()
        ],
    }
    return Request(scope)
