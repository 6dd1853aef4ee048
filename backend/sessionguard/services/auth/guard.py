from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime
from typing import Any

from sessionguard.core.timeutil import from_timestamp, utcnow
from sessionguard.models.token_blacklist import BlacklistReason
from sessionguard.services._shared.dto import EMPTY_CONTEXT, RequestContext
from sessionguard.services._shared.errors import StoreUnavailableError
from sessionguard.services._shared.ports import (
    BlacklistStore,
    TokenExpiredError,
    TokenInvalidError,
    TokenProvider,
    UserDirectory,
)
from sessionguard.services.auth.dto import AuthFailure, AuthFailureKind, Identity

logger = logging.getLogger(__name__)

BEARER = "bearer"


def extract_bearer(header: str | None) -> str | None:
    """
    Pull the token out of an ``Authorization: Bearer <token>`` header.

    The scheme is matched case-insensitively. Anything else yields ``None``.
    """
    if not header:
        return None
    scheme, _, value = header.strip().partition(" ")
    if scheme.lower() != BEARER:
        return None
    value = value.strip()
    return value or None


class AuthGuard:
    """
    Decide whether a presented access token authenticates a request.

    Checks run in a fixed order and stop at the first failure:

    1. a token is present
    2. it is not blacklisted (checked *before* the signature)
    3. signature and expiry verify
    4. the user still exists
    5. the token is not older than the user's last password change; a stale
       token is blacklisted on the spot
    6. the account is not under a temporary lock

    On success the user's ``last_active`` is refreshed on a best-effort basis.
    """

    def __init__(
        self,
        *,
        tokens: TokenProvider,
        blacklist: BlacklistStore,
        users: UserDirectory,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.tokens = tokens
        self.blacklist = blacklist
        self.users = users
        self._clock = clock

    def verify(
        self, token: str | None, ctx: RequestContext = EMPTY_CONTEXT
    ) -> Identity | AuthFailure:
        if not token:
            return AuthFailure(AuthFailureKind.NO_TOKEN, "Access denied. No token provided.")
        try:
            outcome = self._verify(token, ctx)
        except StoreUnavailableError as exc:
            logger.error("auth.verify.unavailable", extra={"reason": exc.store})
            return AuthFailure(AuthFailureKind.UNAVAILABLE, "Authentication is temporarily unavailable.")
        if isinstance(outcome, AuthFailure):
            logger.info("auth.verify.failed", extra={"failure": outcome.kind.value})
        return outcome

    def _verify(self, token: str, ctx: RequestContext) -> Identity | AuthFailure:
        if self.blacklist.is_blacklisted(token):
            return AuthFailure(AuthFailureKind.REVOKED, "Token has been revoked. Please login again.")

        try:
            claims = self.tokens.decode(token)
        except TokenExpiredError:
            return AuthFailure(AuthFailureKind.EXPIRED, "Token expired")
        except TokenInvalidError:
            return AuthFailure(AuthFailureKind.INVALID_SIGNATURE, "Invalid token")

        user_id = _subject_of(claims)
        iat = claims.get("iat")
        if (
            user_id is None
            or not isinstance(iat, int | float)
            or claims.get("type", "access") != "access"
        ):
            return AuthFailure(AuthFailureKind.INVALID_SIGNATURE, "Invalid token")

        user = self.users.get(user_id)
        if user is None:
            return AuthFailure(AuthFailureKind.USER_GONE, "User no longer exists")

        # password_changed_at is stamped one second early: a token issued up to one
        # second before the change passes until it expires. Whole-second iat cannot
        # order events inside that window.
        if user.password_changed_at is not None and iat < user.password_changed_at.timestamp():
            self.blacklist.add(token, user_id=user.id, reason=BlacklistReason.PASSWORD_CHANGE, ctx=ctx)
            logger.info("auth.verify.stale_after_password_change", extra={"user_id": user.id})
            return AuthFailure(
                AuthFailureKind.PASSWORD_CHANGED, "Password recently changed. Please login again."
            )

        now = self._clock()
        if user.is_locked(now):
            return AuthFailure(
                AuthFailureKind.ACCOUNT_LOCKED,
                "Account temporarily locked due to too many failed login attempts",
                lock_until=user.lock_until,
            )

        self._touch(user.id, now)
        return Identity(
            user_id=user.id,
            role=user.role,
            token=token,
            jti=claims.get("jti"),
            issued_at=from_timestamp(iat),
            expires_at=from_timestamp(claims["exp"]),
        )

    def _touch(self, user_id: int, now: datetime) -> None:
        try:
            self.users.touch_last_active(user_id, now)
        except StoreUnavailableError:
            logger.warning("auth.last_active.skipped", extra={"user_id": user_id}, exc_info=True)


def _subject_of(claims: dict[str, Any]) -> int | None:
    try:
        return int(claims["sub"])
    except (KeyError, TypeError, ValueError):
        return None
