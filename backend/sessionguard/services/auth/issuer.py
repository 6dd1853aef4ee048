from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime

from sessionguard.core.timeutil import utcnow
from sessionguard.services._shared.dto import EMPTY_CONTEXT, RequestContext
from sessionguard.services._shared.ports import RefreshTokenStore, TokenProvider, UserSnapshot
from sessionguard.services.auth.dto import AuthTokenConfig, TokenPair

logger = logging.getLogger(__name__)


class TokenIssuer:
    """
    Mint an access/refresh token pair for a user.

    The access token is a signed JWT carrying ``sub`` (string user id) and
    ``role``; the refresh token is an opaque value owned by the
    :class:`RefreshTokenStore`. A store failure propagates as
    :class:`~sessionguard.services._shared.errors.StoreUnavailableError`.
    """

    def __init__(
        self,
        *,
        tokens: TokenProvider,
        refresh_store: RefreshTokenStore,
        cfg: AuthTokenConfig,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.tokens = tokens
        self.refresh_store = refresh_store
        self.cfg = cfg
        self._clock = clock

    def issue(self, user: UserSnapshot, ctx: RequestContext = EMPTY_CONTEXT) -> TokenPair:
        now = self._clock()
        access = self.tokens.create_access_token(
            identity=str(user.id),
            additional_claims={"role": user.role},
            expires_delta=self.cfg.access_expires,
        )
        refresh = self.refresh_store.create(user_id=user.id, ip=ctx.ip, user_agent=ctx.user_agent)
        logger.info("tokens.issued", extra={"user_id": user.id})
        return TokenPair(
            access_token=access,
            refresh_token=refresh.token,
            access_expires_at=now + self.cfg.access_expires,
            refresh_expires_at=refresh.expires_at,
        )
