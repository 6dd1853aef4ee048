"""Refresh token repository with conditional (compare-and-set) revocation."""

from __future__ import annotations

from datetime import datetime
from typing import cast

from sqlalchemy import delete, select, update

from sessionguard.models.refresh_token import RefreshToken, revocation_values
from sessionguard.repositories.base import BaseRepository


class RefreshTokenRepository(BaseRepository[RefreshToken]):
    """Persistence for :class:`RefreshToken` rows."""

    model = RefreshToken

    def get_by_token(self, token: str) -> RefreshToken | None:
        stmt = select(RefreshToken).where(RefreshToken.token == token)
        return cast(RefreshToken | None, self.session.execute(stmt).scalars().first())

    def get_usable(self, token: str, now: datetime) -> RefreshToken | None:
        """Return the row only if it is active *and* unexpired."""
        stmt = select(RefreshToken).where(
            RefreshToken.token == token,
            RefreshToken.is_active.is_(True),
            RefreshToken.expires_at > now,
        )
        return cast(RefreshToken | None, self.session.execute(stmt).scalars().first())

    def revoke_if_active(
        self,
        token: str,
        *,
        at: datetime,
        ip: str | None,
        replaced_by: str | None = None,
        user_id: int | None = None,
    ) -> bool:
        """
        Revoke ``token`` only if it is still active, in one UPDATE statement.

        Two concurrent callers racing on the same token cannot both see a
        matched row: the database serializes the write, and the loser's
        ``WHERE is_active`` no longer matches.

        :returns: ``True`` for the caller whose update matched the row.
        """
        stmt = update(RefreshToken).where(
            RefreshToken.token == token,
            RefreshToken.is_active.is_(True),
        )
        if user_id is not None:
            stmt = stmt.where(RefreshToken.user_id == user_id)
        result = self.session.execute(
            stmt.values(**revocation_values(at=at, ip=ip, replaced_by=replaced_by)).execution_options(
                synchronize_session=False
            )
        )
        return result.rowcount == 1

    def revoke_all_for_user(self, user_id: int, *, at: datetime, ip: str | None) -> int:
        """Terminal-revoke every active row owned by ``user_id``."""
        result = self.session.execute(
            update(RefreshToken)
            .where(RefreshToken.user_id == user_id, RefreshToken.is_active.is_(True))
            .values(**revocation_values(at=at, ip=ip))
            .execution_options(synchronize_session=False)
        )
        return int(result.rowcount or 0)

    def list_usable_for_user(self, user_id: int, now: datetime) -> list[RefreshToken]:
        stmt = (
            select(RefreshToken)
            .where(
                RefreshToken.user_id == user_id,
                RefreshToken.is_active.is_(True),
                RefreshToken.expires_at > now,
            )
            .order_by(RefreshToken.id.asc())
        )
        return list(self.session.execute(stmt).scalars().all())

    def delete_expired(self, now: datetime) -> int:
        result = self.session.execute(
            delete(RefreshToken)
            .where(RefreshToken.expires_at <= now)
            .execution_options(synchronize_session=False)
        )
        return int(result.rowcount or 0)
