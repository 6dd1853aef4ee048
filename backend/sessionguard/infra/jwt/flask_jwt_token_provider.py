from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, cast

import jwt as pyjwt
from flask_jwt_extended.exceptions import JWTExtendedException

from sessionguard.services._shared.errors import TokenFormatError
from sessionguard.services._shared.ports import (
    TokenExpiredError,
    TokenInvalidError,
    TokenProvider,
)


def unverified_claims(token: str) -> dict[str, Any]:
    """
    Parse a JWT's claims **without** verifying signature or expiry.

    Only used to read ``exp`` when blacklisting a token, so the denylist
    entry can be dropped once the token would have expired anyway.

    :raises TokenFormatError: If the value is not a decodable JWT.
    """
    try:
        claims = pyjwt.decode(token, options={"verify_signature": False})
    except pyjwt.PyJWTError as exc:
        raise TokenFormatError(f"Invalid token format: {exc}") from exc
    if not isinstance(claims, dict):
        raise TokenFormatError()
    return claims


@dataclass(slots=True)
class JWTTokenProvider(TokenProvider):
    """
    Adapter for Flask-JWT-Extended.

    Library exceptions are translated into :class:`TokenExpiredError` and
    :class:`TokenInvalidError` so callers never depend on PyJWT directly.

    .. note::
       Requires an active Flask app context with proper JWT settings.
    """

    def create_access_token(
        self,
        *,
        identity: str,
        additional_claims: Mapping[str, Any] | None = None,
        expires_delta: timedelta,
    ) -> str:
        from flask_jwt_extended import create_access_token as _create_access

        # Flask-JWT-Extended generates jti, iat, nbf and type claims itself.
        return cast(
            str,
            _create_access(
                identity=identity,
                additional_claims=dict(additional_claims or {}),
                expires_delta=expires_delta,
            ),
        )

    def decode(self, token: str) -> dict[str, Any]:
        from flask_jwt_extended import decode_token

        try:
            return cast(dict[str, Any], decode_token(token))
        except pyjwt.ExpiredSignatureError as exc:
            raise TokenExpiredError(str(exc)) from exc
        except (pyjwt.InvalidTokenError, JWTExtendedException) as exc:
            raise TokenInvalidError(str(exc)) from exc

    def decode_unverified(self, token: str) -> dict[str, Any]:
        return unverified_claims(token)
