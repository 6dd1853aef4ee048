from __future__ import annotations

from collections.abc import Mapping
from datetime import timedelta
from typing import Any, Protocol

from sessionguard.core.timeutil import utcnow
from sessionguard.services._shared.errors import TokenFormatError


class TokenInvalidError(Exception):
    """Signature, structure, or claim validation failed."""


class TokenExpiredError(TokenInvalidError):
    """The token is well-formed and correctly signed but past its ``exp``."""


class TokenProvider(Protocol):
    """
    Port for issuing and verifying signed access tokens.

    ``decode`` verifies signature and expiry and raises
    :class:`TokenExpiredError` or :class:`TokenInvalidError`; it never leaks
    library-specific exception types. ``decode_unverified`` only parses the
    claims and raises :class:`TokenFormatError` when that is impossible.
    """

    def create_access_token(
        self,
        *,
        identity: str,
        additional_claims: Mapping[str, Any] | None = None,
        expires_delta: timedelta,
    ) -> str: ...

    def decode(self, token: str) -> dict[str, Any]: ...

    def decode_unverified(self, token: str) -> dict[str, Any]: ...


class StubTokenProvider(TokenProvider):
    """Deterministic token provider used in unit tests.

    Tokens look like ``access.<sub>.<jti>``; claims are kept in memory and
    expiry is checked against the (freezable) wall clock.
    """

    def __init__(self) -> None:
        self._seq = 0
        self._issued: dict[str, dict[str, Any]] = {}

    def create_access_token(
        self,
        *,
        identity: str,
        additional_claims: Mapping[str, Any] | None = None,
        expires_delta: timedelta,
    ) -> str:
        self._seq += 1
        now = utcnow()
        jti = f"jti-{self._seq}"
        token = f"access.{identity}.{jti}"
        payload: dict[str, Any] = {
            "sub": identity,
            "type": "access",
            "jti": jti,
            "iat": int(now.timestamp()),
            "exp": int((now + expires_delta).timestamp()),
        }
        if additional_claims:
            payload.update(additional_claims)
        self._issued[token] = payload
        return token

    def decode(self, token: str) -> dict[str, Any]:
        payload = self._issued.get(token)
        if payload is None:
            raise TokenInvalidError("Unknown token")
        if payload["exp"] <= utcnow().timestamp():
            raise TokenExpiredError("Token has expired")
        return dict(payload)

    def decode_unverified(self, token: str) -> dict[str, Any]:
        payload = self._issued.get(token)
        if payload is None:
            raise TokenFormatError()
        return dict(payload)
