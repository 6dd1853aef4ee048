"""Blacklist repository keyed by access-token hash."""

from __future__ import annotations

from datetime import datetime
from typing import cast

from sqlalchemy import delete, select

from sessionguard.models.token_blacklist import TokenBlacklistEntry
from sessionguard.repositories.base import BaseRepository


class TokenBlacklistRepository(BaseRepository[TokenBlacklistEntry]):
    """Persistence for :class:`TokenBlacklistEntry` rows."""

    model = TokenBlacklistEntry

    def exists_hash(self, token_hash: str) -> bool:
        """Indexed existence check on the unique ``token_hash`` column."""
        stmt = select(TokenBlacklistEntry.id).where(TokenBlacklistEntry.token_hash == token_hash)
        return self.session.execute(stmt.limit(1)).first() is not None

    def get_by_hash(self, token_hash: str) -> TokenBlacklistEntry | None:
        stmt = select(TokenBlacklistEntry).where(TokenBlacklistEntry.token_hash == token_hash)
        return cast(TokenBlacklistEntry | None, self.session.execute(stmt).scalars().first())

    def delete_expired(self, now: datetime) -> int:
        result = self.session.execute(
            delete(TokenBlacklistEntry)
            .where(TokenBlacklistEntry.expires_at <= now)
            .execution_options(synchronize_session=False)
        )
        return int(result.rowcount or 0)
