from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from typing import Protocol


@dataclass(frozen=True, slots=True)
class UserSnapshot:
    """
    The slice of a user the token lifecycle needs.

    :ivar password_changed_at: Tokens issued earlier are stale.
    :ivar lock_until: End of a temporary lock (meaningful with ``account_locked``).
    """

    id: int
    role: str
    is_active: bool = True
    password_changed_at: datetime | None = None
    account_locked: bool = False
    lock_until: datetime | None = None

    def is_locked(self, now: datetime) -> bool:
        return self.account_locked and self.lock_until is not None and self.lock_until > now


class UserDirectory(Protocol):
    """Read access to users plus the one write the auth core performs."""

    def get(self, user_id: int) -> UserSnapshot | None: ...

    def touch_last_active(self, user_id: int, at: datetime) -> None: ...


class InMemoryUserDirectory(UserDirectory):
    """Dictionary-backed directory for unit tests."""

    def __init__(self, *users: UserSnapshot) -> None:
        self._users: dict[int, UserSnapshot] = {u.id: u for u in users}
        self.last_active: dict[int, datetime] = {}

    def put(self, user: UserSnapshot) -> UserSnapshot:
        self._users[user.id] = user
        return user

    def update(self, user_id: int, **changes) -> UserSnapshot:
        return self.put(replace(self._users[user_id], **changes))

    def remove(self, user_id: int) -> None:
        self._users.pop(user_id, None)

    def get(self, user_id: int) -> UserSnapshot | None:
        return self._users.get(user_id)

    def touch_last_active(self, user_id: int, at: datetime) -> None:
        self.last_active[user_id] = at
