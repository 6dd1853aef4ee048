from __future__ import annotations

from collections.abc import Callable
from datetime import datetime

from sqlalchemy.exc import IntegrityError

from sessionguard.core.timeutil import as_utc, utcnow
from sessionguard.models.token_blacklist import BlacklistReason, TokenBlacklistEntry, hash_token
from sessionguard.services._shared.dto import EMPTY_CONTEXT, RequestContext
from sessionguard.services._shared.errors import unavailable_as, violates
from sessionguard.services._shared.ports import BlacklistEntryView, BlacklistStore
from sessionguard.services._shared.ports.blacklist_store import ClaimsDecoder, expiry_of
from sessionguard.uow import SQLAlchemyReadOnlyUnitOfWork, SQLAlchemyUnitOfWork


def to_view(row: TokenBlacklistEntry) -> BlacklistEntryView:
    return BlacklistEntryView(
        token_hash=row.token_hash,
        user_id=row.user_id,
        reason=BlacklistReason(row.reason),
        blacklisted_at=as_utc(row.blacklisted_at),
        expires_at=as_utc(row.expires_at),
        ip_address=row.ip_address,
        user_agent=row.user_agent,
    )


class SQLBlacklistStore(BlacklistStore):
    """
    SQLAlchemy-backed access token denylist.

    Lookups hit the unique index on ``token_hash``. A concurrent duplicate
    insert loses on that index and returns the row that won.
    """

    name = "blacklist"

    def __init__(
        self,
        *,
        decode_unverified: ClaimsDecoder,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._decode = decode_unverified
        self._clock = clock

    def is_blacklisted(self, token: str) -> bool:
        with unavailable_as(self.name), SQLAlchemyReadOnlyUnitOfWork() as uow:
            return uow.blacklist.exists_hash(hash_token(token))

    def add(
        self,
        token: str,
        *,
        user_id: int,
        reason: BlacklistReason,
        ctx: RequestContext = EMPTY_CONTEXT,
    ) -> BlacklistEntryView:
        expires_at = expiry_of(self._decode(token))
        token_hash = hash_token(token)

        with unavailable_as(self.name):
            with SQLAlchemyReadOnlyUnitOfWork() as ro:
                existing = ro.blacklist.get_by_hash(token_hash)
                if existing is not None:
                    return to_view(existing)
            try:
                with SQLAlchemyUnitOfWork() as uow:
                    row = uow.blacklist.add(
                        TokenBlacklistEntry(
                            token_hash=token_hash,
                            user_id=user_id,
                            reason=reason.value,
                            blacklisted_at=self._clock(),
                            expires_at=expires_at,
                            ip_address=ctx.ip,
                            user_agent=ctx.user_agent,
                        )
                    )
                    view = to_view(row)
                return view
            except IntegrityError as exc:
                if not violates(
                    exc, "ix_token_blacklist_token_hash", column="token_blacklist.token_hash"
                ):
                    raise
            with SQLAlchemyReadOnlyUnitOfWork() as ro:
                winner = ro.blacklist.get_by_hash(token_hash)
                if winner is None:  # pragma: no cover - row vanished between statements
                    raise RuntimeError("Blacklist entry disappeared after a duplicate insert.")
                return to_view(winner)

    def purge_expired(self, now: datetime) -> int:
        with unavailable_as(self.name), SQLAlchemyUnitOfWork() as uow:
            return uow.blacklist.delete_expired(now)
