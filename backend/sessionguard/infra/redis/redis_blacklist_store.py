from __future__ import annotations

from collections.abc import Callable
from datetime import datetime
from typing import cast

import redis  # type: ignore[import-untyped]

from sessionguard.core.timeutil import from_timestamp, utcnow
from sessionguard.models.token_blacklist import BlacklistReason, hash_token
from sessionguard.services._shared.dto import EMPTY_CONTEXT, RequestContext
from sessionguard.services._shared.errors import StoreUnavailableError
from sessionguard.services._shared.ports import BlacklistEntryView, BlacklistStore
from sessionguard.services._shared.ports.blacklist_store import ClaimsDecoder, expiry_of


class RedisBlacklistStore(BlacklistStore):
    """
    Denylist for **access tokens** keyed by token hash.

    Each entry is a small hash whose TTL ends at the token's own ``exp``, so
    Redis drops it exactly when the token would have expired anyway.
    ``SET NX`` on the marker key keeps the first writer's entry.
    """

    def __init__(
        self,
        r: redis.Redis,
        *,
        decode_unverified: ClaimsDecoder,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.r = r
        self._decode = decode_unverified
        self._clock = clock

    @staticmethod
    def _k(token_hash: str) -> str:
        return f"blacklist:at:{token_hash}"

    def is_blacklisted(self, token: str) -> bool:
        try:
            return cast(int, self.r.exists(self._k(hash_token(token)))) == 1
        except redis.RedisError as exc:
            raise StoreUnavailableError("blacklist", exc) from exc

    def add(
        self,
        token: str,
        *,
        user_id: int,
        reason: BlacklistReason,
        ctx: RequestContext = EMPTY_CONTEXT,
    ) -> BlacklistEntryView:
        expires_at = expiry_of(self._decode(token))
        now = self._clock()
        token_hash = hash_token(token)
        key = self._k(token_hash)
        ttl = max(1, int(expires_at.timestamp() - now.timestamp()))

        mapping = {
            "user_id": str(user_id),
            "reason": reason.value,
            "blacklisted_at": str(now.timestamp()),
            "expires_at": str(int(expires_at.timestamp())),
            "ip_address": ctx.ip or "",
            "user_agent": ctx.user_agent or "",
        }
        try:
            # Claim the key first; a loser reads back the winner's entry.
            created = self.r.set(key, reason.value, ex=ttl, nx=True)
            if created:
                with self.r.pipeline(transaction=True) as p:
                    p.hset(f"{key}:meta", mapping=mapping)
                    p.expire(f"{key}:meta", ttl)
                    p.execute()
                return self._view(token_hash, mapping)
            existing = self.r.hgetall(f"{key}:meta")
        except redis.RedisError as exc:
            raise StoreUnavailableError("blacklist", exc) from exc

        if not existing:
            # Winner has not written its metadata yet.
            return self._view(token_hash, mapping)

        def _b(s: bytes | None, default: str = "") -> str:
            return s.decode() if s is not None else default

        return self._view(
            token_hash,
            {
                "user_id": _b(existing.get(b"user_id"), str(user_id)),
                "reason": _b(existing.get(b"reason"), reason.value),
                "blacklisted_at": _b(existing.get(b"blacklisted_at"), mapping["blacklisted_at"]),
                "expires_at": _b(existing.get(b"expires_at"), mapping["expires_at"]),
                "ip_address": _b(existing.get(b"ip_address")),
                "user_agent": _b(existing.get(b"user_agent")),
            },
        )

    def purge_expired(self, now: datetime) -> int:
        # Keys carry a TTL; Redis expires them natively.
        return 0

    @staticmethod
    def _view(token_hash: str, h: dict[str, str]) -> BlacklistEntryView:
        return BlacklistEntryView(
            token_hash=token_hash,
            user_id=int(h["user_id"]),
            reason=BlacklistReason(h["reason"]),
            blacklisted_at=from_timestamp(float(h["blacklisted_at"])),
            expires_at=from_timestamp(int(h["expires_at"])),
            ip_address=h["ip_address"] or None,
            user_agent=h["user_agent"] or None,
        )
