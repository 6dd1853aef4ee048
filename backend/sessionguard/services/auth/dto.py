# sessionguard/services/auth/dto.py
from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import datetime, timedelta

# ---------------------------- Outcomes ------------------------------------ #


class AuthFailureKind(str, enum.Enum):
    """Closed set of reasons an authentication step can fail."""

    NO_TOKEN = "no_token"
    INVALID_SIGNATURE = "invalid_token"
    EXPIRED = "token_expired"
    REVOKED = "token_revoked"
    USER_GONE = "user_gone"
    PASSWORD_CHANGED = "password_changed"
    ACCOUNT_LOCKED = "account_locked"
    INVALID_REFRESH_TOKEN = "invalid_refresh_token"
    TOKEN_FORMAT = "token_format"
    UNAVAILABLE = "service_unavailable"
    INVALID_CREDENTIALS = "invalid_credentials"
    ACCOUNT_DISABLED = "account_disabled"


@dataclass(frozen=True, slots=True)
class AuthFailure:
    """
    A failed authentication outcome, returned (not raised) to the caller.

    :param kind: Failure category.
    :type kind: AuthFailureKind
    :param message: Human-readable explanation, safe to show to clients.
    :type message: str
    :param lock_until: End of the account lock (``ACCOUNT_LOCKED`` only).
    :type lock_until: datetime | None
    """

    kind: AuthFailureKind
    message: str
    lock_until: datetime | None = None


@dataclass(frozen=True, slots=True)
class Identity:
    """
    Authenticated caller attached to a request.

    :param user_id: Owner of the access token.
    :param role: Role claim copied from the token.
    :param token: The raw access token, kept so logout can blacklist it.
    :param jti: Unique token id.
    :param issued_at: ``iat`` claim (UTC).
    :param expires_at: ``exp`` claim (UTC).
    """

    user_id: int
    role: str
    token: str
    jti: str | None
    issued_at: datetime
    expires_at: datetime


@dataclass(frozen=True, slots=True)
class TokenPair:
    """
    Output DTO with access and refresh tokens.

    :param access_token: Encoded access JWT.
    :type access_token: str
    :param refresh_token: Opaque refresh token.
    :type refresh_token: str
    """

    access_token: str
    refresh_token: str
    access_expires_at: datetime
    refresh_expires_at: datetime


class LogoutScope(str, enum.Enum):
    SINGLE = "single"
    ALL_DEVICES = "all_devices"


@dataclass(frozen=True, slots=True)
class LogoutResult:
    """
    Outcome of a logout.

    :param scope: Scope that was applied.
    :param revoked_sessions: Refresh tokens transitioned to revoked-terminal.
    """

    scope: LogoutScope
    revoked_sessions: int


# ------------------------------ Config ------------------------------------ #


@dataclass(frozen=True, slots=True)
class AuthTokenConfig:
    """
    Token emission and lockout configuration.

    :param access_expires: Access token lifetime.
    :type access_expires: timedelta
    :param refresh_expires: Refresh token lifetime.
    :type refresh_expires: timedelta
    :param reuse_revokes_all: Revoke every session of a user whose rotated
        refresh token is presented again.
    :param max_failed_logins: Consecutive failures before a lock.
    :param lockout: Duration of a lock.
    """

    access_expires: timedelta = timedelta(minutes=15)
    refresh_expires: timedelta = timedelta(days=7)
    reuse_revokes_all: bool = False
    max_failed_logins: int = 5
    lockout: timedelta = timedelta(minutes=30)
