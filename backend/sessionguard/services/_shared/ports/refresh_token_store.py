from __future__ import annotations

import secrets
import threading
from collections.abc import Callable
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from typing import Protocol

from sessionguard.core.timeutil import utcnow
from sessionguard.models.refresh_token import RefreshTokenState
from sessionguard.services._shared.device import classify_device

DEFAULT_REFRESH_TTL = timedelta(days=7)

# 40 random bytes -> 80 hex characters
REFRESH_TOKEN_BYTES = 40


def new_refresh_token_value() -> str:
    """Generate a high-entropy opaque refresh token."""
    return secrets.token_hex(REFRESH_TOKEN_BYTES)


@dataclass(frozen=True, slots=True)
class RefreshTokenView:
    """
    Read-model for a refresh token record.

    :ivar token: Opaque secret value (unique key).
    :ivar user_id: Owner user id.
    :ivar is_active: ``False`` once revoked (by rotation or logout).
    :ivar expires_at: Absolute expiration (UTC).
    :ivar replaced_by_token: Successor in the replacement chain, if rotated.
    :ivar platform: Best-effort device platform (informational).
    :ivar browser: Best-effort browser family (informational).
    """

    token: str
    user_id: int
    is_active: bool
    expires_at: datetime
    created_at: datetime
    created_by_ip: str | None = None
    revoked_at: datetime | None = None
    revoked_by_ip: str | None = None
    replaced_by_token: str | None = None
    user_agent: str | None = None
    platform: str | None = None
    browser: str | None = None

    @property
    def state(self) -> RefreshTokenState:
        if self.is_active:
            return RefreshTokenState.ACTIVE
        if self.replaced_by_token:
            return RefreshTokenState.REVOKED_REPLACED
        return RefreshTokenState.REVOKED_TERMINAL

    def is_usable(self, now: datetime) -> bool:
        return self.is_active and self.expires_at > now


class RefreshTokenStore(Protocol):
    """
    Stateful store of refresh tokens.

    ``revoke`` MUST be an atomic conditional update ("inactive only if
    currently active") so that exactly one of several concurrent callers
    observes success. Every method raises
    :class:`~sessionguard.services._shared.errors.StoreUnavailableError` when
    the backend cannot be reached.
    """

    def create(self, *, user_id: int, ip: str | None, user_agent: str | None) -> RefreshTokenView:
        """Persist a new *active* token expiring after the store's TTL."""

    def lookup_active(self, token: str) -> RefreshTokenView | None:
        """Return the record only if it is active **and** unexpired."""

    def get(self, token: str) -> RefreshTokenView | None:
        """Return the record in whatever state it is (audit / reuse checks)."""

    def revoke(
        self,
        token: str,
        *,
        ip: str | None,
        replaced_by: str | None = None,
        user_id: int | None = None,
    ) -> bool:
        """
        Revoke ``token`` if still active (optionally only if owned by ``user_id``).

        :returns: ``True`` only for the caller that performed the transition.
        """

    def revoke_all_for_user(self, user_id: int, *, ip: str | None = None) -> int:
        """Terminal-revoke every active token of the user. :returns: count."""

    def list_active_for_user(self, user_id: int) -> list[RefreshTokenView]:
        """List usable (active, unexpired) tokens of the user."""

    def purge_expired(self, now: datetime) -> int:
        """Delete records whose ``expires_at`` has passed. :returns: count."""


class InMemoryRefreshTokenStore(RefreshTokenStore):
    """
    In-memory refresh token store with atomic conditional revocation.

    .. note::
       Uses a threading lock to emulate the backend's atomic UPDATE in tests.
    """

    def __init__(
        self,
        *,
        ttl: timedelta = DEFAULT_REFRESH_TTL,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.ttl = ttl
        self._clock = clock
        self._by_token: dict[str, RefreshTokenView] = {}
        self._lock = threading.Lock()

    def create(self, *, user_id: int, ip: str | None, user_agent: str | None) -> RefreshTokenView:
        now = self._clock()
        device = classify_device(user_agent)
        view = RefreshTokenView(
            token=new_refresh_token_value(),
            user_id=user_id,
            is_active=True,
            expires_at=now + self.ttl,
            created_at=now,
            created_by_ip=ip,
            user_agent=user_agent,
            platform=device.platform,
            browser=device.browser,
        )
        with self._lock:
            self._by_token[view.token] = view
        return view

    def lookup_active(self, token: str) -> RefreshTokenView | None:
        view = self._by_token.get(token)
        if view is None or not view.is_usable(self._clock()):
            return None
        return view

    def get(self, token: str) -> RefreshTokenView | None:
        return self._by_token.get(token)

    def revoke(
        self,
        token: str,
        *,
        ip: str | None,
        replaced_by: str | None = None,
        user_id: int | None = None,
    ) -> bool:
        with self._lock:
            view = self._by_token.get(token)
            if view is None or not view.is_active:
                return False
            if user_id is not None and view.user_id != user_id:
                return False
            self._by_token[token] = replace(
                view,
                is_active=False,
                revoked_at=self._clock(),
                revoked_by_ip=ip,
                replaced_by_token=replaced_by,
            )
            return True

    def revoke_all_for_user(self, user_id: int, *, ip: str | None = None) -> int:
        now = self._clock()
        count = 0
        with self._lock:
            for token, view in list(self._by_token.items()):
                if view.user_id == user_id and view.is_active:
                    self._by_token[token] = replace(
                        view, is_active=False, revoked_at=now, revoked_by_ip=ip
                    )
                    count += 1
        return count

    def list_active_for_user(self, user_id: int) -> list[RefreshTokenView]:
        now = self._clock()
        return [v for v in self._by_token.values() if v.user_id == user_id and v.is_usable(now)]

    def purge_expired(self, now: datetime) -> int:
        with self._lock:
            expired = [t for t, v in self._by_token.items() if v.expires_at <= now]
            for token in expired:
                del self._by_token[token]
        return len(expired)
