"""Tests for TokenProvider.sign_async / verify_async.

The asynchronous forms share classification with the synchronous ones and
differ only in the origin label they report.
"""

import pytest

from tests.helpers import (
    mint_expired_token,
    mint_not_yet_valid_token,
    mint_test_token,
    mint_token_with_bad_signature,
)
from tokenauth.auth.options import SignOptions, VerifyOptions
from tokenauth.auth.payload import CompleteToken, StringPayload
from tokenauth.errors import ApiError, ApiErrorCode


class TestSignAsync:
    """Tests for sign_async."""

    @pytest.mark.asyncio
    async def test_sign_async_round_trip(self, provider):
        token = await provider.sign_async({"sub": "user-1", "role": "admin"})
        payload = await provider.verify_async(token)

        assert payload.sub == "user-1"
        assert payload["role"] == "admin"

    @pytest.mark.asyncio
    async def test_sign_async_matches_sync_verification(self, provider):
        """A token from sign_async verifies synchronously and vice versa."""
        token = await provider.sign_async({"sub": "u"}, SignOptions(expires_in="5m"))

        assert provider.verify(token).sub == "u"
        assert (await provider.verify_async(provider.sign({"sub": "v"}))).sub == "v"

    @pytest.mark.asyncio
    async def test_sign_async_resigns_verified_payload(self, provider):
        verified = await provider.verify_async(await provider.sign_async({"sub": 42}))

        reissued = await provider.verify_async(await provider.sign_async(verified))

        assert reissued.sub == 42

    @pytest.mark.asyncio
    async def test_sign_async_without_secret(self, unconfigured_provider):
        with pytest.raises(ApiError) as exc_info:
            await unconfigured_provider.sign_async({"sub": "u"})

        assert exc_info.value.status_code == 500
        assert exc_info.value.code == ApiErrorCode.E_SECRET_NOT_SET
        assert exc_info.value.origin == "sign_async"

    @pytest.mark.asyncio
    async def test_sign_async_failure_origin(self, provider):
        with pytest.raises(ApiError) as exc_info:
            await provider.sign_async({"exp": 1}, SignOptions(expires_in=60))

        assert exc_info.value.code == ApiErrorCode.E_SIGN_FAILED
        assert exc_info.value.origin == "sign_async"

    @pytest.mark.asyncio
    async def test_sign_async_string_payload(self, provider):
        token = await provider.sign_async("opaque")

        assert await provider.verify_async(token) == StringPayload("opaque")


class TestVerifyAsync:
    """Tests for verify_async."""

    @pytest.mark.asyncio
    async def test_verify_async_without_secret(self, unconfigured_provider):
        with pytest.raises(ApiError) as exc_info:
            await unconfigured_provider.verify_async(mint_test_token())

        assert exc_info.value.code == ApiErrorCode.E_SECRET_NOT_SET
        assert exc_info.value.origin == "verify_async"

    @pytest.mark.asyncio
    async def test_verify_async_expired(self, provider):
        with pytest.raises(ApiError) as exc_info:
            await provider.verify_async(mint_expired_token())

        assert exc_info.value.status_code == 401
        assert exc_info.value.code == ApiErrorCode.E_TOKEN_EXPIRED
        assert exc_info.value.origin == "verify_async"

    @pytest.mark.asyncio
    async def test_verify_async_not_active(self, provider):
        with pytest.raises(ApiError) as exc_info:
            await provider.verify_async(mint_not_yet_valid_token())

        assert exc_info.value.status_code == 401
        assert exc_info.value.code == ApiErrorCode.E_TOKEN_NOT_ACTIVE

    @pytest.mark.asyncio
    async def test_verify_async_bad_signature(self, provider):
        with pytest.raises(ApiError) as exc_info:
            await provider.verify_async(mint_token_with_bad_signature())

        assert exc_info.value.status_code == 500
        assert exc_info.value.code == ApiErrorCode.E_TOKEN_INVALID
        assert exc_info.value.origin == "verify_async"

    @pytest.mark.asyncio
    async def test_verify_async_complete(self, provider):
        token = provider.sign({"sub": "u"}, SignOptions(keyid="k-1"))
        result = await provider.verify_async(token, VerifyOptions(complete=True))

        assert isinstance(result, CompleteToken)
        assert result.header["kid"] == "k-1"
        assert result.payload.sub == "u"
