from __future__ import annotations

import threading
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Protocol

from sessionguard.core.timeutil import from_timestamp, utcnow
from sessionguard.models.token_blacklist import BlacklistReason, hash_token
from sessionguard.services._shared.dto import EMPTY_CONTEXT, RequestContext
from sessionguard.services._shared.errors import TokenFormatError

ClaimsDecoder = Callable[[str], Mapping[str, Any]]


def expiry_of(claims: Mapping[str, Any]) -> datetime:
    """Read ``exp`` from decoded claims.

    :raises TokenFormatError: If ``exp`` is missing or not numeric.
    """
    exp = claims.get("exp")
    if isinstance(exp, bool) or not isinstance(exp, int | float):
        raise TokenFormatError("Token has no usable 'exp' claim")
    return from_timestamp(exp)


@dataclass(frozen=True, slots=True)
class BlacklistEntryView:
    """
    Read-model for a blacklisted access token.

    :ivar token_hash: SHA-256 of the raw token (the lookup key).
    :ivar expires_at: Equals the token's own ``exp``; the entry is useless after.
    """

    token_hash: str
    user_id: int
    reason: BlacklistReason
    blacklisted_at: datetime
    expires_at: datetime
    ip_address: str | None = None
    user_agent: str | None = None


class BlacklistStore(Protocol):
    """
    Denylist for **access tokens**, keyed by token hash.

    ``add`` is idempotent: blacklisting the same token twice returns the
    first entry.
    """

    def is_blacklisted(self, token: str) -> bool: ...

    def add(
        self,
        token: str,
        *,
        user_id: int,
        reason: BlacklistReason,
        ctx: RequestContext = EMPTY_CONTEXT,
    ) -> BlacklistEntryView: ...

    def purge_expired(self, now: datetime) -> int: ...


class InMemoryBlacklistStore(BlacklistStore):
    """Simple in-memory denylist for access tokens."""

    def __init__(
        self,
        *,
        decode_unverified: ClaimsDecoder,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._decode = decode_unverified
        self._clock = clock
        self._entries: dict[str, BlacklistEntryView] = {}
        self._lock = threading.Lock()

    def is_blacklisted(self, token: str) -> bool:
        return hash_token(token) in self._entries

    def add(
        self,
        token: str,
        *,
        user_id: int,
        reason: BlacklistReason,
        ctx: RequestContext = EMPTY_CONTEXT,
    ) -> BlacklistEntryView:
        expires_at = expiry_of(self._decode(token))
        key = hash_token(token)
        with self._lock:
            existing = self._entries.get(key)
            if existing is not None:
                return existing
            entry = BlacklistEntryView(
                token_hash=key,
                user_id=user_id,
                reason=reason,
                blacklisted_at=self._clock(),
                expires_at=expires_at,
                ip_address=ctx.ip,
                user_agent=ctx.user_agent,
            )
            self._entries[key] = entry
            return entry

    def purge_expired(self, now: datetime) -> int:
        with self._lock:
            expired = [k for k, v in self._entries.items() if v.expires_at <= now]
            for key in expired:
                del self._entries[key]
        return len(expired)
