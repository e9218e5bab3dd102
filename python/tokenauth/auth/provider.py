"""Token provider: sign, verify and decode JWTs with classified errors.

Provides:
- TokenProvider: holds the secret and default options, wraps PyJWT

Verification failures are classified as:
- expired / max_age exceeded -> 401 E_TOKEN_EXPIRED
- not yet valid (nbf)        -> 401 E_TOKEN_NOT_ACTIVE
- anything else              -> 500 E_TOKEN_INVALID
Signing or verifying without a secret -> 500 E_SECRET_NOT_SET.
"""

import asyncio
import time
from collections.abc import Mapping, MutableMapping
from datetime import UTC, datetime
from typing import Any

import jwt
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec, ed448, ed25519, rsa
from jwt import api_jws
from jwt.exceptions import (
    DecodeError,
    ExpiredSignatureError,
    ImmatureSignatureError,
    InvalidTokenError,
)

from tokenauth.auth.options import (
    DEFAULT_SIGN_ALGORITHM,
    DecodeOptions,
    KeyWithPassphrase,
    Secret,
    SignOptions,
    VerifyOptions,
    merge_options,
    timespan_seconds,
)
from tokenauth.auth.payload import (
    CompleteToken,
    Payload,
    StructuredPayload,
    payload_from_bytes,
)
from tokenauth.errors import ApiError, ApiErrorCode, SecretNotSetError
from tokenauth.logging import get_logger

logger = get_logger(__name__)

MIN_RSA_KEY_BITS = 2048

# Claims mapping (a verified StructuredPayload included) or a raw body
SignPayload = Mapping[str, Any] | str | bytes

HMAC_ALGORITHMS = ["HS256", "HS384", "HS512"]
RSA_ALGORITHMS = ["RS256", "RS384", "RS512"]
PSS_ALGORITHMS = ["PS256", "PS384", "PS512"]
EC_ALGORITHMS = ["ES256", "ES384", "ES512"]
OKP_ALGORITHMS = ["EdDSA"]

_PRIVATE_KEY_TYPES = (
    rsa.RSAPrivateKey,
    ec.EllipticCurvePrivateKey,
    ed25519.Ed25519PrivateKey,
    ed448.Ed448PrivateKey,
)

# Sign option -> claim it writes
_CLAIM_OPTIONS = {
    "audience": "aud",
    "issuer": "iss",
    "subject": "sub",
    "jwtid": "jti",
}


class TokenExpiredError(ExpiredSignatureError):
    """Expiry detected after PyJWT's own checks (max_age); carries the instant."""

    def __init__(self, message: str, expired_at: int):
        super().__init__(message)
        self.expired_at = expired_at


def _to_bytes(value: str | bytes) -> bytes:
    return value.encode("utf-8") if isinstance(value, str) else value


def _is_private_pem(value: Any) -> bool:
    return isinstance(value, str | bytes) and b"PRIVATE KEY-----" in _to_bytes(value)


def _signing_key(secret: Secret) -> Any:
    """Resolve the configured secret into a key PyJWT can sign with.

    PEM private keys (with or without passphrase) are loaded into
    cryptography key objects; everything else is passed through.
    """
    if isinstance(secret, KeyWithPassphrase):
        return serialization.load_pem_private_key(
            _to_bytes(secret.key), password=_to_bytes(secret.passphrase)
        )
    if _is_private_pem(secret):
        return serialization.load_pem_private_key(_to_bytes(secret), password=None)
    return secret


def _verification_key(secret: Secret) -> Any:
    """Resolve the configured secret into a key PyJWT can verify with.

    Private keys are reduced to their public half so a single asymmetric
    secret serves both signing and verification.
    """
    key = _signing_key(secret)
    if isinstance(key, _PRIVATE_KEY_TYPES):
        return key.public_key()
    return key


def _default_algorithms(key: Any) -> list[str]:
    """Algorithms accepted when none are configured, derived from the key type."""
    if isinstance(key, rsa.RSAPublicKey | rsa.RSAPrivateKey):
        return RSA_ALGORITHMS + PSS_ALGORITHMS
    if isinstance(key, ec.EllipticCurvePublicKey | ec.EllipticCurvePrivateKey):
        return list(EC_ALGORITHMS)
    if isinstance(
        key,
        ed25519.Ed25519PublicKey
        | ed25519.Ed25519PrivateKey
        | ed448.Ed448PublicKey
        | ed448.Ed448PrivateKey,
    ):
        return list(OKP_ALGORITHMS)
    if isinstance(key, str | bytes):
        data = _to_bytes(key)
        if b"BEGIN CERTIFICATE" in data:
            return RSA_ALGORITHMS + EC_ALGORITHMS
        if b"BEGIN RSA PUBLIC KEY" in data:
            return RSA_ALGORITHMS + PSS_ALGORITHMS
        if b"BEGIN PUBLIC KEY" in data:
            return RSA_ALGORITHMS + PSS_ALGORITHMS + EC_ALGORITHMS
    return list(HMAC_ALGORITHMS)


def _check_key_size(key: Any, algorithm: str, allow_insecure: bool | None) -> None:
    if allow_insecure or not algorithm.startswith(("RS", "PS")):
        return
    if isinstance(key, rsa.RSAPrivateKey | rsa.RSAPublicKey) and key.key_size < MIN_RSA_KEY_BITS:
        raise ValueError(
            f"secret has a minimum key size of {MIN_RSA_KEY_BITS} bits for {algorithm}"
        )


def _timestamp(value: Any) -> int:
    if isinstance(value, datetime):
        return int(value.timestamp())
    return int(value)


def _build_claims(payload: Mapping[str, Any], options: SignOptions) -> dict[str, Any]:
    """Apply sign options to a claims dict.

    Raises:
        ValueError: If an option would overwrite a claim already in the payload.
    """
    claims = dict(payload)

    if options.expires_in is not None and "exp" in claims:
        raise ValueError(
            'Bad "options.expires_in" option: the payload already has an "exp" property.'
        )
    if options.not_before is not None and "nbf" in claims:
        raise ValueError(
            'Bad "options.not_before" option: the payload already has an "nbf" property.'
        )
    for option_name, claim in _CLAIM_OPTIONS.items():
        if getattr(options, option_name) is not None and claim in claims:
            raise ValueError(
                f'Bad "options.{option_name}" option. The payload already has an "{claim}" property.'
            )

    timestamp = _timestamp(claims["iat"]) if "iat" in claims else int(time.time())
    if options.no_timestamp:
        claims.pop("iat", None)
    else:
        claims["iat"] = timestamp

    if options.not_before is not None:
        claims["nbf"] = timestamp + timespan_seconds(options.not_before)
    if options.expires_in is not None:
        claims["exp"] = timestamp + timespan_seconds(options.expires_in)

    for option_name, claim in _CLAIM_OPTIONS.items():
        value = getattr(options, option_name)
        if value is not None:
            claims[claim] = value

    return claims


def _unverified_claim(token: str, name: str) -> Any:
    """Read a claim without verification (used only to format error messages)."""
    try:
        raw = api_jws.decode_complete(token, options={"verify_signature": False})
    except DecodeError:
        return None
    payload = payload_from_bytes(raw["payload"])
    if isinstance(payload, StructuredPayload):
        return payload.get(name)
    return None


def _format_timestamp(value: Any) -> str:
    if isinstance(value, int | float) and not isinstance(value, bool):
        return datetime.fromtimestamp(value, tz=UTC).isoformat()
    return "unknown time"


def _validate_extra_claims(claims: StructuredPayload, options: VerifyOptions) -> None:
    """Checks PyJWT does not perform itself: sub, jti, nonce and max_age."""
    if options.subject is not None and claims.sub != options.subject:
        raise InvalidTokenError(f"jwt subject invalid. expected: {options.subject}")
    if options.jwtid is not None and claims.jti != options.jwtid:
        raise InvalidTokenError(f"jwt jwtid invalid. expected: {options.jwtid}")
    if options.nonce is not None and claims.get("nonce") != options.nonce:
        raise InvalidTokenError(f"jwt nonce invalid. expected: {options.nonce}")

    if options.max_age is not None:
        iat = claims.iat
        if not isinstance(iat, int | float) or isinstance(iat, bool):
            raise InvalidTokenError("iat required when max_age is specified")
        max_age_timestamp = int(iat) + timespan_seconds(options.max_age)
        if time.time() >= max_age_timestamp + (options.clock_tolerance or 0):
            raise TokenExpiredError("max_age exceeded", expired_at=max_age_timestamp)


def _requires_claims(options: VerifyOptions) -> bool:
    return any(
        value is not None
        for value in (
            options.audience,
            options.issuer,
            options.subject,
            options.jwtid,
            options.nonce,
            options.max_age,
        )
    )


class TokenProvider:
    """Signs, verifies and decodes JWTs for one configuration.

    The secret and the default option sets belong to this instance; they are
    expected to be configured once at startup, before requests are served.

    Usage:
        provider = TokenProvider(secret="...")
        provider.set_default_sign_options(SignOptions(expires_in="1h"))
        token = provider.sign({"sub": "user-1"})
        payload = provider.verify(token)
    """

    def __init__(
        self,
        secret: Secret | None = None,
        default_sign_options: SignOptions | None = None,
        default_verify_options: VerifyOptions | None = None,
    ):
        """Initialize the provider.

        Args:
            secret: Key material for signing and verification (may be set later).
            default_sign_options: Defaults applied when sign() omits a field.
            default_verify_options: Defaults applied when verify() omits a field.
        """
        self._secret = secret
        self._default_sign_options = default_sign_options
        self._default_verify_options = default_verify_options

    def set_secret(self, secret: Secret) -> None:
        """Replace the secret used by all subsequent operations."""
        self._secret = secret

    def set_default_sign_options(self, options: SignOptions | None) -> None:
        """Replace the default sign options."""
        self._default_sign_options = options

    def set_default_verify_options(self, options: VerifyOptions | None) -> None:
        """Replace the default verify options."""
        self._default_verify_options = options

    @property
    def default_sign_options(self) -> SignOptions | None:
        return self._default_sign_options

    @property
    def default_verify_options(self) -> VerifyOptions | None:
        return self._default_verify_options

    def _require_secret(self, origin: str) -> Secret:
        if not self._secret:
            logger.error("token_secret_missing", origin=origin)
            raise SecretNotSetError(origin)
        return self._secret

    # --- sign -----------------------------------------------------------

    def _encode(
        self, secret: Secret, payload: SignPayload, options: SignOptions | None
    ) -> str:
        merged = merge_options(self._default_sign_options, options) or SignOptions()
        algorithm = merged.algorithm or DEFAULT_SIGN_ALGORITHM
        key = _signing_key(secret)
        _check_key_size(key, algorithm, merged.allow_insecure_key_sizes)

        headers = dict(merged.header or {})
        if merged.keyid is not None:
            headers["kid"] = merged.keyid

        if isinstance(payload, Mapping):
            claims = _build_claims(payload, merged)
            token = jwt.encode(claims, key, algorithm=algorithm, headers=headers or None)
            # read-only mappings (StructuredPayload) are left as they are
            if merged.mutate_payload and isinstance(payload, MutableMapping):
                payload.clear()
                payload.update(claims)
            return token

        if isinstance(payload, str | bytes):
            if merged.expires_in is not None or merged.not_before is not None:
                raise ValueError("expires_in and not_before require an object payload")
            for option_name in _CLAIM_OPTIONS:
                if getattr(merged, option_name) is not None:
                    raise ValueError(f'"options.{option_name}" requires an object payload')
            return api_jws.encode(
                _to_bytes(payload), key, algorithm=algorithm, headers=headers or None
            )

        raise TypeError(f"payload must be a mapping, str or bytes, not {type(payload).__name__}")

    def sign(self, payload: SignPayload, options: SignOptions | None = None) -> str:
        """Sign a payload into a compact JWT.

        Args:
            payload: Claims mapping (a verified payload can be re-signed), or a
                raw string/bytes body.
            options: Call-site options, merged over the default sign options.

        Returns:
            The signed token.

        Raises:
            ApiError(E_SECRET_NOT_SET): No secret configured.
            ApiError(E_SIGN_FAILED): The signing library rejected the input.
        """
        secret = self._require_secret("sign")
        try:
            return self._encode(secret, payload, options)
        except Exception as e:
            logger.warning("token_sign_failed", origin="sign", error=str(e))
            raise ApiError(
                ApiErrorCode.E_SIGN_FAILED, f"Failed to sign the token: {e}", "sign"
            ) from e

    async def sign_async(
        self, payload: SignPayload, options: SignOptions | None = None
    ) -> str:
        """Asynchronous form of sign().

        The secret check runs on the event loop. Option merging, key loading and
        the PyJWT encode call all run in a worker thread via asyncio.to_thread.
        """
        secret = self._require_secret("sign_async")
        try:
            return await asyncio.to_thread(self._encode, secret, payload, options)
        except Exception as e:
            logger.warning("token_sign_failed", origin="sign_async", error=str(e))
            raise ApiError(
                ApiErrorCode.E_SIGN_FAILED, f"Failed to sign the token: {e}", "sign_async"
            ) from e

    # --- verify ---------------------------------------------------------

    def _decode_verified(
        self, secret: Secret, token: str, options: VerifyOptions | None
    ) -> Payload | CompleteToken:
        merged = merge_options(self._default_verify_options, options) or VerifyOptions()
        key = _verification_key(secret)
        algorithms = list(merged.algorithms) if merged.algorithms else _default_algorithms(key)

        try:
            decoded = jwt.decode_complete(
                token,
                key,
                algorithms=algorithms,
                audience=merged.audience,
                issuer=merged.issuer,
                leeway=merged.clock_tolerance or 0,
                options={
                    "verify_exp": not merged.ignore_expiration,
                    "verify_nbf": not merged.ignore_not_before,
                    "verify_iat": False,
                    "verify_aud": merged.audience is not None,
                    # sub/jti are only compared when subject/jwtid are expected
                    "verify_sub": False,
                    "verify_jti": False,
                },
            )
        except DecodeError:
            # The body may be a signed non-object string; that is only
            # acceptable when the signature holds and no claim is required.
            raw = api_jws.decode_complete(token, key, algorithms=algorithms)
            payload = payload_from_bytes(raw["payload"])
            if isinstance(payload, StructuredPayload):
                raise
            if _requires_claims(merged):
                raise InvalidTokenError("claims cannot be checked on a non-object payload")
            header = raw["header"]
        else:
            payload = StructuredPayload(decoded["payload"])
            _validate_extra_claims(payload, merged)
            header = decoded["header"]

        if merged.complete:
            return CompleteToken(header=header, payload=payload, signature=token.rsplit(".", 1)[-1])
        return payload

    def _classify_verify_error(self, token: str, error: Exception, origin: str) -> ApiError:
        if isinstance(error, ExpiredSignatureError):
            expired_at = getattr(error, "expired_at", None)
            if expired_at is None:
                expired_at = _unverified_claim(token, "exp")
            logger.warning("token_verify_failed", origin=origin, reason="expired")
            return ApiError(
                ApiErrorCode.E_TOKEN_EXPIRED,
                f"Token expired at {_format_timestamp(expired_at)}",
                origin,
            )
        if isinstance(error, ImmatureSignatureError):
            not_before = _unverified_claim(token, "nbf")
            logger.warning("token_verify_failed", origin=origin, reason="not_active")
            return ApiError(
                ApiErrorCode.E_TOKEN_NOT_ACTIVE,
                f"Token not active until {_format_timestamp(not_before)}",
                origin,
            )
        logger.warning("token_verify_failed", origin=origin, reason="invalid", error=str(error))
        return ApiError(
            ApiErrorCode.E_TOKEN_INVALID, f"Failed to verify the token: {error}", origin
        )

    def verify(self, token: str, options: VerifyOptions | None = None) -> Payload | CompleteToken:
        """Verify a token's signature and claims.

        Args:
            token: The compact JWT.
            options: Call-site options, merged over the default verify options.

        Returns:
            The payload, or a CompleteToken when `complete` is set.

        Raises:
            ApiError(E_SECRET_NOT_SET): No secret configured.
            ApiError(E_TOKEN_EXPIRED): exp (or max_age) is in the past.
            ApiError(E_TOKEN_NOT_ACTIVE): nbf is in the future.
            ApiError(E_TOKEN_INVALID): Any other verification failure.
        """
        secret = self._require_secret("verify")
        try:
            return self._decode_verified(secret, token, options)
        except Exception as e:
            raise self._classify_verify_error(token, e, "verify") from e

    async def verify_async(
        self, token: str, options: VerifyOptions | None = None
    ) -> Payload | CompleteToken:
        """Asynchronous form of verify().

        The secret check and error classification run on the event loop. Option
        merging, key loading, the PyJWT decode call and the extra claim checks
        all run in a worker thread via asyncio.to_thread.
        """
        secret = self._require_secret("verify_async")
        try:
            return await asyncio.to_thread(self._decode_verified, secret, token, options)
        except Exception as e:
            raise self._classify_verify_error(token, e, "verify_async") from e

    # --- decode ---------------------------------------------------------

    def decode(
        self, token: str, options: DecodeOptions | None = None
    ) -> Payload | CompleteToken | None:
        """Decode a token without verifying its signature or expiry.

        No secret is required. Strings that are not structurally a JWT
        decode to None.

        Raises:
            ApiError(E_DECODE_FAILED): The token parsed but its body could not be read.
        """
        try:
            raw = api_jws.decode_complete(token, options={"verify_signature": False})
            payload = payload_from_bytes(raw["payload"])
        except DecodeError as e:
            logger.debug("token_decode_unparseable", error=str(e))
            return None
        except Exception as e:
            logger.warning("token_decode_failed", origin="decode", error=str(e))
            raise ApiError(
                ApiErrorCode.E_DECODE_FAILED, f"Failed to decode the token: {e}", "decode"
            ) from e

        if options is not None and options.complete:
            return CompleteToken(
                header=raw["header"], payload=payload, signature=token.rsplit(".", 1)[-1]
            )
        return payload
