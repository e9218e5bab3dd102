"""Decoded token payload types.

A token body is either a JSON object of claims or an opaque string. Callers
pattern-match on the two shapes instead of probing a dict:

    match request.state.payload:
        case StructuredPayload(claims=claims):
            ...
        case StringPayload(value=value):
            ...
"""

import json
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class StructuredPayload(Mapping[str, Any]):
    """Payload whose body is a JSON object of claims."""

    claims: dict[str, Any] = field(default_factory=dict)

    def __getitem__(self, key: str) -> Any:
        return self.claims[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self.claims)

    def __len__(self) -> int:
        return len(self.claims)

    @property
    def iss(self) -> str | None:
        return self.claims.get("iss")

    @property
    def sub(self) -> str | None:
        return self.claims.get("sub")

    @property
    def aud(self) -> str | list[str] | None:
        return self.claims.get("aud")

    @property
    def exp(self) -> int | None:
        return self.claims.get("exp")

    @property
    def nbf(self) -> int | None:
        return self.claims.get("nbf")

    @property
    def iat(self) -> int | None:
        return self.claims.get("iat")

    @property
    def jti(self) -> str | None:
        return self.claims.get("jti")


@dataclass(frozen=True)
class StringPayload:
    """Payload whose body is not a JSON object (signed raw string)."""

    value: str


Payload = StructuredPayload | StringPayload


@dataclass(frozen=True)
class CompleteToken:
    """Header, payload and signature of a token (returned with complete=True)."""

    header: dict[str, Any]
    payload: Payload
    signature: str


def payload_from_bytes(raw: bytes) -> Payload:
    """Build a Payload from a raw token body.

    JSON objects become StructuredPayload; anything else (including JSON
    scalars and arrays) is kept as the original string.
    """
    text = raw.decode("utf-8")
    try:
        parsed = json.loads(text)
    except ValueError:
        return StringPayload(text)
    if isinstance(parsed, dict):
        return StructuredPayload(parsed)
    return StringPayload(text)
