from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timedelta

from sessionguard.core.timeutil import as_utc, utcnow
from sessionguard.models.refresh_token import RefreshToken
from sessionguard.services._shared.device import classify_device
from sessionguard.services._shared.errors import unavailable_as
from sessionguard.services._shared.ports import RefreshTokenStore, RefreshTokenView
from sessionguard.services._shared.ports.refresh_token_store import (
    DEFAULT_REFRESH_TTL,
    new_refresh_token_value,
)
from sessionguard.uow import SQLAlchemyReadOnlyUnitOfWork, SQLAlchemyUnitOfWork


def to_view(row: RefreshToken) -> RefreshTokenView:
    """Detach a row into an immutable view (naive SQLite values labelled UTC)."""
    return RefreshTokenView(
        token=row.token,
        user_id=row.user_id,
        is_active=row.is_active,
        expires_at=as_utc(row.expires_at),
        created_at=as_utc(row.created_at),
        created_by_ip=row.created_by_ip,
        revoked_at=as_utc(row.revoked_at) if row.revoked_at else None,
        revoked_by_ip=row.revoked_by_ip,
        replaced_by_token=row.replaced_by_token,
        user_agent=row.user_agent,
        platform=row.platform,
        browser=row.browser,
    )


class SQLRefreshTokenStore(RefreshTokenStore):
    """
    SQLAlchemy-backed refresh token store.

    Every call runs in its own unit of work. Revocation is a single
    ``UPDATE ... WHERE is_active`` so the database decides the one winner
    of a rotation race.

    :param ttl: Lifetime of newly created tokens.
    :param clock: Source of "now" (UTC, aware).
    """

    name = "refresh_tokens"

    def __init__(
        self,
        *,
        ttl: timedelta = DEFAULT_REFRESH_TTL,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.ttl = ttl
        self._clock = clock

    def create(self, *, user_id: int, ip: str | None, user_agent: str | None) -> RefreshTokenView:
        now = self._clock()
        device = classify_device(user_agent)
        row = RefreshToken(
            token=new_refresh_token_value(),
            user_id=user_id,
            is_active=True,
            expires_at=now + self.ttl,
            created_by_ip=ip,
            user_agent=user_agent,
            platform=device.platform,
            browser=device.browser,
        )
        with unavailable_as(self.name), SQLAlchemyUnitOfWork() as uow:
            uow.refresh_tokens.add(row)
            view = to_view(row)
        return view

    def lookup_active(self, token: str) -> RefreshTokenView | None:
        with unavailable_as(self.name), SQLAlchemyReadOnlyUnitOfWork() as uow:
            row = uow.refresh_tokens.get_usable(token, self._clock())
            return to_view(row) if row else None

    def get(self, token: str) -> RefreshTokenView | None:
        with unavailable_as(self.name), SQLAlchemyReadOnlyUnitOfWork() as uow:
            row = uow.refresh_tokens.get_by_token(token)
            return to_view(row) if row else None

    def revoke(
        self,
        token: str,
        *,
        ip: str | None,
        replaced_by: str | None = None,
        user_id: int | None = None,
    ) -> bool:
        with unavailable_as(self.name), SQLAlchemyUnitOfWork() as uow:
            return uow.refresh_tokens.revoke_if_active(
                token, at=self._clock(), ip=ip, replaced_by=replaced_by, user_id=user_id
            )

    def revoke_all_for_user(self, user_id: int, *, ip: str | None = None) -> int:
        with unavailable_as(self.name), SQLAlchemyUnitOfWork() as uow:
            return uow.refresh_tokens.revoke_all_for_user(user_id, at=self._clock(), ip=ip)

    def list_active_for_user(self, user_id: int) -> list[RefreshTokenView]:
        with unavailable_as(self.name), SQLAlchemyReadOnlyUnitOfWork() as uow:
            return [to_view(r) for r in uow.refresh_tokens.list_usable_for_user(user_id, self._clock())]

    def purge_expired(self, now: datetime) -> int:
        with unavailable_as(self.name), SQLAlchemyUnitOfWork() as uow:
            return uow.refresh_tokens.delete_expired(now)
