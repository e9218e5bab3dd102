"""Sign/verify/decode option records and the merge rule between them.

Each provider holds one default record per operation (set once at startup) and
accepts a call-site record per invocation. `merge_options` combines them field
by field: a call-site field that is not None wins, otherwise the default is
used, otherwise the field stays None and the library default applies.
"""

import re
from dataclasses import dataclass, fields, replace
from datetime import timedelta
from typing import Any, TypeVar

from cryptography.hazmat.primitives.asymmetric.types import (
    PrivateKeyTypes,
    PublicKeyTypes,
)

ALGORITHMS = (
    "HS256",
    "HS384",
    "HS512",
    "RS256",
    "RS384",
    "RS512",
    "ES256",
    "ES384",
    "ES512",
    "PS256",
    "PS384",
    "PS512",
    "EdDSA",
    "none",
)

DEFAULT_SIGN_ALGORITHM = "HS256"

# int/float seconds, timedelta, or "<n><unit>" strings such as "15m" or "7d"
TimeSpan = int | float | timedelta | str


@dataclass(frozen=True)
class KeyWithPassphrase:
    """PEM private key protected by a passphrase."""

    key: str | bytes
    passphrase: str | bytes


Secret = str | bytes | PrivateKeyTypes | PublicKeyTypes | KeyWithPassphrase


@dataclass(frozen=True)
class SignOptions:
    """Options for signing a token.

    Attributes:
        algorithm: JWS algorithm (defaults to HS256 when unset everywhere).
        keyid: Written to the `kid` header.
        expires_in: Lifetime added to `iat` to produce `exp`.
        not_before: Delay added to `iat` to produce `nbf`.
        audience: Written to `aud`.
        subject: Written to `sub`.
        issuer: Written to `iss`.
        jwtid: Written to `jti`.
        mutate_payload: Write the final claims back into the caller's dict.
        no_timestamp: Do not add `iat`.
        header: Extra JOSE header fields.
        allow_insecure_key_sizes: Allow RSA keys shorter than 2048 bits.
    """

    algorithm: str | None = None
    keyid: str | None = None
    expires_in: TimeSpan | None = None
    not_before: TimeSpan | None = None
    audience: str | list[str] | None = None
    subject: str | None = None
    issuer: str | None = None
    jwtid: str | None = None
    mutate_payload: bool | None = None
    no_timestamp: bool | None = None
    header: dict[str, Any] | None = None
    allow_insecure_key_sizes: bool | None = None


@dataclass(frozen=True)
class VerifyOptions:
    """Options for verifying a token.

    Attributes:
        algorithms: Accepted algorithms (derived from the key when unset).
        audience: Expected audience, or list of acceptable audiences.
        clock_tolerance: Leeway in seconds applied to exp/nbf/max_age.
        complete: Return header, payload and signature instead of the payload.
        issuer: Expected issuer, or list of acceptable issuers.
        ignore_expiration: Skip the `exp` check.
        ignore_not_before: Skip the `nbf` check.
        jwtid: Expected `jti`.
        nonce: Expected `nonce`.
        subject: Expected `sub`.
        max_age: Maximum allowed age measured from `iat`.
    """

    algorithms: list[str] | None = None
    audience: str | list[str] | None = None
    clock_tolerance: int | float | None = None
    complete: bool | None = None
    issuer: str | list[str] | None = None
    ignore_expiration: bool | None = None
    ignore_not_before: bool | None = None
    jwtid: str | None = None
    nonce: str | None = None
    subject: str | None = None
    max_age: TimeSpan | None = None


@dataclass(frozen=True)
class DecodeOptions:
    """Options for decoding a token without verification."""

    complete: bool | None = None


OptionsT = TypeVar("OptionsT", SignOptions, VerifyOptions, DecodeOptions)


def merge_options(defaults: OptionsT | None, overrides: OptionsT | None) -> OptionsT | None:
    """Merge call-site options over defaults, one field at a time.

    Args:
        defaults: Process-lifetime defaults (may be None).
        overrides: Options supplied at the call site (may be None).

    Returns:
        A new record, or None when both inputs are None.

    Raises:
        TypeError: If the two records are of different types.
    """
    if overrides is None:
        return defaults
    if defaults is None:
        return overrides
    if type(defaults) is not type(overrides):
        raise TypeError(
            f"Cannot merge {type(overrides).__name__} over {type(defaults).__name__}"
        )

    changes = {
        f.name: getattr(overrides, f.name)
        for f in fields(overrides)
        if getattr(overrides, f.name) is not None
    }
    return replace(defaults, **changes)


_TIMESPAN_PATTERN = re.compile(
    r"^\s*(?P<value>-?\d+(?:\.\d+)?)\s*"
    r"(?P<unit>ms|msecs?|milliseconds?|s|secs?|seconds?|m|mins?|minutes?|"
    r"h|hrs?|hours?|d|days?|w|weeks?|y|yrs?|years?)?\s*$",
    re.IGNORECASE,
)

_UNIT_SECONDS = {
    "ms": 0.001,
    "s": 1,
    "m": 60,
    "h": 3600,
    "d": 86400,
    "w": 604800,
    "y": 31557600,
}


def timespan_seconds(value: TimeSpan) -> int:
    """Convert a time span to whole seconds.

    Accepts seconds as int/float, a timedelta, or a string like "90",
    "90s", "15m", "2h", "7d", "1w", "1y". Fractions are truncated.

    Raises:
        ValueError: If the value cannot be interpreted as a time span.
    """
    if isinstance(value, bool):
        raise ValueError(f"Invalid time span: {value!r}")
    if isinstance(value, timedelta):
        return int(value.total_seconds())
    if isinstance(value, int | float):
        return int(value)
    if isinstance(value, str):
        match = _TIMESPAN_PATTERN.match(value)
        if match is None:
            raise ValueError(f"Invalid time span: {value!r}")
        unit = (match.group("unit") or "s").lower()
        key = "ms" if unit.startswith("ms") or unit.startswith("milli") else unit[0]
        return int(float(match.group("value")) * _UNIT_SECONDS[key])
    raise ValueError(f"Invalid time span: {value!r}")
