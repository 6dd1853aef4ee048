# sessionguard/services/auth/service.py
from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime

from sqlalchemy.exc import IntegrityError

from sessionguard.core.timeutil import utcnow
from sessionguard.infra.sqlalchemy.sql_user_directory import to_snapshot
from sessionguard.models.token_blacklist import BlacklistReason
from sessionguard.models.user import User
from sessionguard.services._shared.base import BaseService
from sessionguard.services._shared.dto import EMPTY_CONTEXT, RequestContext
from sessionguard.services._shared.errors import (
    ConflictError,
    StoreUnavailableError,
    TokenFormatError,
    unavailable_as,
    violates,
)
from sessionguard.services._shared.ports import (
    BlacklistStore,
    RefreshTokenStore,
    RefreshTokenView,
    TokenProvider,
    UserDirectory,
    UserSnapshot,
)
from sessionguard.services.auth.dto import (
    AuthFailure,
    AuthFailureKind,
    AuthTokenConfig,
    Identity,
    LogoutResult,
    LogoutScope,
    TokenPair,
)
from sessionguard.services.auth.guard import AuthGuard
from sessionguard.services.auth.issuer import TokenIssuer
from sessionguard.services.auth.rotation import UNAVAILABLE, RotationProtocol

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = "Invalid email or password"


class AuthService(BaseService):
    """
    Authentication lifecycle service (login / verify / refresh / logout).

    Composes :class:`TokenIssuer`, :class:`AuthGuard` and
    :class:`RotationProtocol` over injected stores; there is no process-wide
    client or connection. Expected failures come back as
    :class:`AuthFailure` values; only programming errors and conflicts
    (duplicate registration) raise.
    """

    def __init__(
        self,
        *,
        token_provider: TokenProvider,
        refresh_store: RefreshTokenStore,
        blacklist: BlacklistStore,
        users: UserDirectory,
        token_cfg: AuthTokenConfig | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        """
        Initialize the service with its dependencies.

        :param token_provider: Adapter for signing/verifying access tokens.
        :param refresh_store: Stateful store for opaque refresh tokens.
        :param blacklist: Denylist for access tokens (hash-keyed).
        :param users: Read side of the user table.
        :param token_cfg: Expiry, reuse and lockout configuration.
        """
        super().__init__(clock=clock)
        self.cfg = token_cfg or AuthTokenConfig()
        self.tokens = token_provider
        self.refresh_store = refresh_store
        self.blacklist = blacklist
        self.users = users
        self.issuer = TokenIssuer(
            tokens=token_provider, refresh_store=refresh_store, cfg=self.cfg, clock=clock
        )
        self.guard = AuthGuard(tokens=token_provider, blacklist=blacklist, users=users, clock=clock)
        self.rotation = RotationProtocol(
            issuer=self.issuer,
            refresh_store=refresh_store,
            blacklist=blacklist,
            users=users,
            cfg=self.cfg,
        )

    # ------------------------------------------------------------------ #
    # Core lifecycle
    # ------------------------------------------------------------------ #

    def issue(self, user: UserSnapshot, ctx: RequestContext = EMPTY_CONTEXT) -> TokenPair:
        return self.issuer.issue(user, ctx)

    def verify(self, access_token: str | None, ctx: RequestContext = EMPTY_CONTEXT) -> Identity | AuthFailure:
        return self.guard.verify(access_token, ctx)

    def rotate(self, refresh_token: str | None, ctx: RequestContext = EMPTY_CONTEXT) -> TokenPair | AuthFailure:
        return self.rotation.rotate(refresh_token, ctx)

    def revoke(
        self,
        access_token: str | None,
        refresh_token: str | None = None,
        scope: LogoutScope = LogoutScope.SINGLE,
        ctx: RequestContext = EMPTY_CONTEXT,
    ) -> LogoutResult | AuthFailure:
        """
        Log out the holder of ``access_token``.

        The access token must still verify; the outcome of a failed
        verification is returned unchanged.
        """
        identity = self.guard.verify(access_token, ctx)
        if isinstance(identity, AuthFailure):
            return identity
        return self.logout(identity, scope=scope, refresh_token=refresh_token, ctx=ctx)

    def logout(
        self,
        identity: Identity,
        *,
        scope: LogoutScope = LogoutScope.SINGLE,
        refresh_token: str | None = None,
        ctx: RequestContext = EMPTY_CONTEXT,
    ) -> LogoutResult | AuthFailure:
        return self.rotation.logout(identity, scope=scope, refresh_token=refresh_token, ctx=ctx)

    # ------------------------------------------------------------------ #
    # Login & registration
    # ------------------------------------------------------------------ #

    def login(self, email: str, password: str, ctx: RequestContext = EMPTY_CONTEXT) -> TokenPair | AuthFailure:
        """
        Authenticate credentials and issue a fresh token pair.

        Each wrong password counts towards a temporary lock; reaching
        ``max_failed_logins`` locks the account for ``lockout``.
        """
        now = self.now_utc()
        try:
            with unavailable_as("users"), self.rw_uow() as uow:
                checked = self._check_credentials(uow.users.get_by_email(email), password, now)
                if isinstance(checked, User):
                    checked.reset_failed_logins()
                    snapshot = to_snapshot(checked)
            if isinstance(checked, AuthFailure):
                logger.info("auth.login.failed", extra={"failure": checked.kind.value})
                return checked
            pair = self.issuer.issue(snapshot, ctx)
        except StoreUnavailableError as exc:
            logger.error("auth.login.unavailable", extra={"reason": exc.store})
            return AuthFailure(AuthFailureKind.UNAVAILABLE, UNAVAILABLE)

        logger.info("auth.login.succeeded", extra={"user_id": snapshot.id})
        return pair

    def _check_credentials(self, user: User | None, password: str, now: datetime) -> User | AuthFailure:
        if user is None:
            return AuthFailure(AuthFailureKind.INVALID_CREDENTIALS, INVALID_CREDENTIALS)
        if not user.is_active:
            return AuthFailure(AuthFailureKind.ACCOUNT_DISABLED, "Account is disabled")
        if user.is_locked(now):
            return self._locked(user)
        if not user.verify_password(password):
            locked = user.register_failed_login(
                now=now, max_attempts=self.cfg.max_failed_logins, lock_for=self.cfg.lockout
            )
            if locked:
                logger.warning("auth.account_locked", extra={"user_id": user.id})
                return self._locked(user)
            return AuthFailure(AuthFailureKind.INVALID_CREDENTIALS, INVALID_CREDENTIALS)
        return user

    @staticmethod
    def _locked(user: User) -> AuthFailure:
        return AuthFailure(
            AuthFailureKind.ACCOUNT_LOCKED,
            "Account temporarily locked due to too many failed login attempts",
            lock_until=to_snapshot(user).lock_until,
        )

    def register(
        self,
        *,
        email: str,
        password: str,
        full_name: str | None = None,
        role: str = "customer",
    ) -> UserSnapshot:
        """
        Create a user.

        :raises ConflictError: If the email is already registered.
        """
        try:
            with unavailable_as("users"), self.rw_uow() as uow:
                if uow.users.exists_by_email(email):
                    raise ConflictError("User", "Email already exists.")
                user = User(email=email, full_name=full_name, role=role)
                user.password = password
                uow.users.add(user)
                snapshot = to_snapshot(user)
        except IntegrityError as exc:
            if violates(exc, "uq_users_email", column="users.email"):
                raise ConflictError("User", "Email already exists.") from exc
            raise
        logger.info("auth.registered", extra={"user_id": snapshot.id})
        return snapshot

    # ------------------------------------------------------------------ #
    # Password change & sessions
    # ------------------------------------------------------------------ #

    def change_password(
        self,
        identity: Identity,
        *,
        current_password: str,
        new_password: str,
        ctx: RequestContext = EMPTY_CONTEXT,
    ) -> TokenPair | AuthFailure:
        """
        Change the caller's password and start a fresh session.

        Every refresh token of the user is revoked and the presented access
        token is blacklisted; other outstanding access tokens are rejected by
        the guard's password-change check.
        """
        try:
            with unavailable_as("users"), self.rw_uow() as uow:
                user = uow.users.get(identity.user_id)
                if user is None:
                    return AuthFailure(AuthFailureKind.USER_GONE, "User no longer exists")
                if not user.verify_password(current_password):
                    return AuthFailure(AuthFailureKind.INVALID_CREDENTIALS, "Current password is incorrect")
                user.set_password(new_password, at=self.now_utc())
                snapshot = to_snapshot(user)

            revoked = self.refresh_store.revoke_all_for_user(snapshot.id, ip=ctx.ip)
            self.blacklist.add(
                identity.token, user_id=snapshot.id, reason=BlacklistReason.PASSWORD_CHANGE, ctx=ctx
            )
            pair = self.issuer.issue(snapshot, ctx)
        except TokenFormatError as exc:
            return AuthFailure(AuthFailureKind.TOKEN_FORMAT, str(exc))
        except StoreUnavailableError as exc:
            logger.error("auth.password.unavailable", extra={"reason": exc.store})
            return AuthFailure(AuthFailureKind.UNAVAILABLE, UNAVAILABLE)

        logger.info("auth.password_changed", extra={"user_id": snapshot.id, "count": revoked})
        return pair

    def list_sessions(self, identity: Identity) -> list[RefreshTokenView] | AuthFailure:
        try:
            return self.refresh_store.list_active_for_user(identity.user_id)
        except StoreUnavailableError as exc:
            logger.error("auth.sessions.unavailable", extra={"reason": exc.store})
            return AuthFailure(AuthFailureKind.UNAVAILABLE, UNAVAILABLE)

    def end_user_sessions(self, user_id: int, ctx: RequestContext = EMPTY_CONTEXT) -> int | AuthFailure:
        """
        Revoke every refresh token of ``user_id`` on behalf of an operator.

        Access tokens already handed out stay valid until they expire.
        """
        try:
            count = self.refresh_store.revoke_all_for_user(user_id, ip=ctx.ip)
        except StoreUnavailableError as exc:
            logger.error("auth.sessions.unavailable", extra={"reason": exc.store})
            return AuthFailure(AuthFailureKind.UNAVAILABLE, UNAVAILABLE)
        logger.info("auth.sessions.ended", extra={"user_id": user_id, "count": count})
        return count
