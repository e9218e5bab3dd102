"""Token authentication module.

This module provides:
- TokenProvider for signing, verifying and decoding JWTs
- Sign/verify/decode option records and the default-merge rule
- Payload types (structured claims or raw string)
- Auth middleware for FastAPI
"""

from tokenauth.auth.middleware import AuthMiddleware, JwtMiddleware, extract_token, get_payload
from tokenauth.auth.options import (
    DecodeOptions,
    KeyWithPassphrase,
    SignOptions,
    VerifyOptions,
    merge_options,
)
from tokenauth.auth.payload import CompleteToken, Payload, StringPayload, StructuredPayload
from tokenauth.auth.provider import TokenProvider

__all__ = [
    "AuthMiddleware",
    "CompleteToken",
    "DecodeOptions",
    "JwtMiddleware",
    "KeyWithPassphrase",
    "Payload",
    "SignOptions",
    "StringPayload",
    "StructuredPayload",
    "TokenProvider",
    "VerifyOptions",
    "extract_token",
    "get_payload",
    "merge_options",
]
