from __future__ import annotations

import logging

from sessionguard.models.refresh_token import RefreshTokenState
from sessionguard.models.token_blacklist import BlacklistReason
from sessionguard.services._shared.dto import EMPTY_CONTEXT, RequestContext
from sessionguard.services._shared.errors import StoreUnavailableError, TokenFormatError
from sessionguard.services._shared.ports import BlacklistStore, RefreshTokenStore, UserDirectory
from sessionguard.services.auth.dto import (
    AuthFailure,
    AuthFailureKind,
    AuthTokenConfig,
    Identity,
    LogoutResult,
    LogoutScope,
    TokenPair,
)
from sessionguard.services.auth.issuer import TokenIssuer

logger = logging.getLogger(__name__)

INVALID_REFRESH = "Invalid or expired refresh token"
UNAVAILABLE = "Authentication is temporarily unavailable."


class RotationProtocol:
    """
    Single-use refresh token rotation and logout.

    Rotation issues the new pair *before* revoking the presented token and
    relies on the store's conditional revoke to pick one winner among
    concurrent callers. A caller that loses, or whose revoke fails outright,
    revokes the successor it just minted, so each token has at most one live
    successor.
    """

    def __init__(
        self,
        *,
        issuer: TokenIssuer,
        refresh_store: RefreshTokenStore,
        blacklist: BlacklistStore,
        users: UserDirectory,
        cfg: AuthTokenConfig,
    ) -> None:
        self.issuer = issuer
        self.refresh_store = refresh_store
        self.blacklist = blacklist
        self.users = users
        self.cfg = cfg

    # ------------------------------------------------------------------ #
    # Rotation
    # ------------------------------------------------------------------ #

    def rotate(
        self, refresh_token: str | None, ctx: RequestContext = EMPTY_CONTEXT
    ) -> TokenPair | AuthFailure:
        """
        Exchange a refresh token for a new pair.

        :returns: The new :class:`TokenPair`, or ``INVALID_REFRESH_TOKEN``
            whether the token is unknown, expired, already used, or lost a
            concurrent race. ``UNAVAILABLE`` when a store is down.
        """
        if not refresh_token:
            return AuthFailure(AuthFailureKind.INVALID_REFRESH_TOKEN, "Refresh token is required")
        try:
            return self._rotate(refresh_token, ctx)
        except StoreUnavailableError as exc:
            logger.error("refresh.unavailable", extra={"reason": exc.store})
            return AuthFailure(AuthFailureKind.UNAVAILABLE, UNAVAILABLE)

    def _rotate(self, refresh_token: str, ctx: RequestContext) -> TokenPair | AuthFailure:
        current = self.refresh_store.lookup_active(refresh_token)
        if current is None:
            self._check_reuse(refresh_token, ctx)
            return AuthFailure(AuthFailureKind.INVALID_REFRESH_TOKEN, INVALID_REFRESH)

        user = self.users.get(current.user_id)
        if user is None:
            return AuthFailure(AuthFailureKind.INVALID_REFRESH_TOKEN, INVALID_REFRESH)
        if not user.is_active:
            self.refresh_store.revoke(refresh_token, ip=ctx.ip)
            logger.info("refresh.owner_disabled", extra={"user_id": user.id})
            return AuthFailure(AuthFailureKind.INVALID_REFRESH_TOKEN, INVALID_REFRESH)

        pair = self.issuer.issue(user, ctx)
        try:
            won = self.refresh_store.revoke(refresh_token, ip=ctx.ip, replaced_by=pair.refresh_token)
        except StoreUnavailableError:
            self._discard(pair.refresh_token, ctx)
            raise
        if not won:
            # Lost the race: the successor must never become usable.
            self.refresh_store.revoke(pair.refresh_token, ip=ctx.ip)
            logger.warning("refresh.rotation_lost", extra={"user_id": user.id})
            return AuthFailure(AuthFailureKind.INVALID_REFRESH_TOKEN, INVALID_REFRESH)

        logger.info("refresh.rotated", extra={"user_id": user.id})
        return pair

    def _discard(self, successor: str, ctx: RequestContext) -> None:
        # The presented token may still be active; the successor must not be.
        try:
            self.refresh_store.revoke(successor, ip=ctx.ip)
        except StoreUnavailableError:
            logger.error("refresh.successor_orphaned", exc_info=True)

    def _check_reuse(self, refresh_token: str, ctx: RequestContext) -> None:
        record = self.refresh_store.get(refresh_token)
        if record is None or record.state is not RefreshTokenState.REVOKED_REPLACED:
            return
        logger.warning("refresh.reuse_detected", extra={"user_id": record.user_id})
        if self.cfg.reuse_revokes_all:
            count = self.refresh_store.revoke_all_for_user(record.user_id, ip=ctx.ip)
            logger.warning(
                "refresh.reuse_revoked_all", extra={"user_id": record.user_id, "count": count}
            )

    # ------------------------------------------------------------------ #
    # Logout
    # ------------------------------------------------------------------ #

    def logout(
        self,
        identity: Identity,
        *,
        scope: LogoutScope = LogoutScope.SINGLE,
        refresh_token: str | None = None,
        ctx: RequestContext = EMPTY_CONTEXT,
    ) -> LogoutResult | AuthFailure:
        """
        Blacklist the caller's access token and revoke refresh tokens.

        ``SINGLE`` revokes ``refresh_token`` (when given and owned by the
        caller); an unknown or already revoked token is not an error.
        ``ALL_DEVICES`` revokes every active refresh token of the user.
        """
        try:
            self.blacklist.add(
                identity.token, user_id=identity.user_id, reason=BlacklistReason.LOGOUT, ctx=ctx
            )
            if scope is LogoutScope.ALL_DEVICES:
                revoked = self.refresh_store.revoke_all_for_user(identity.user_id, ip=ctx.ip)
            elif refresh_token:
                revoked = int(
                    self.refresh_store.revoke(refresh_token, ip=ctx.ip, user_id=identity.user_id)
                )
            else:
                revoked = 0
        except TokenFormatError as exc:
            return AuthFailure(AuthFailureKind.TOKEN_FORMAT, str(exc))
        except StoreUnavailableError as exc:
            logger.error("logout.unavailable", extra={"reason": exc.store})
            return AuthFailure(AuthFailureKind.UNAVAILABLE, UNAVAILABLE)

        logger.info(
            "auth.logout",
            extra={"user_id": identity.user_id, "reason": scope.value, "count": revoked},
        )
        return LogoutResult(scope=scope, revoked_sessions=revoked)
