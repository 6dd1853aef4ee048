from __future__ import annotations

from datetime import datetime

from sessionguard.core.timeutil import as_utc
from sessionguard.models.user import User
from sessionguard.services._shared.errors import unavailable_as
from sessionguard.services._shared.ports import UserDirectory, UserSnapshot
from sessionguard.uow import SQLAlchemyReadOnlyUnitOfWork, SQLAlchemyUnitOfWork


def to_snapshot(user: User) -> UserSnapshot:
    return UserSnapshot(
        id=user.id,
        role=user.role,
        is_active=user.is_active,
        password_changed_at=as_utc(user.password_changed_at) if user.password_changed_at else None,
        account_locked=user.account_locked,
        lock_until=as_utc(user.lock_until) if user.lock_until else None,
    )


class SQLUserDirectory(UserDirectory):
    """Reads users through the ``users`` repository."""

    name = "users"

    def get(self, user_id: int) -> UserSnapshot | None:
        with unavailable_as(self.name), SQLAlchemyReadOnlyUnitOfWork() as uow:
            user = uow.users.get(user_id)
            return to_snapshot(user) if user else None

    def touch_last_active(self, user_id: int, at: datetime) -> None:
        with unavailable_as(self.name), SQLAlchemyUnitOfWork() as uow:
            uow.users.touch_last_active(user_id, at)
