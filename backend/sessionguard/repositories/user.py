"""User repository for persistence and authentication utilities."""

from __future__ import annotations

from datetime import datetime
from typing import cast

from sqlalchemy import select, update

from sessionguard.models.user import User
from sessionguard.repositories.base import BaseRepository


class UserRepository(BaseRepository[User]):
    """Persistence-only repository for :class:`User`.

    It NEVER handles JWT or refresh sessions — only DB-level user management.
    """

    model = User

    def get_by_email(self, email: str) -> User | None:
        """Fetch a user by email (case-insensitive).

        :param email: Email address to normalise and search.
        :returns: User instance or ``None`` when not found.
        """
        stmt = select(User).where(User.email == email.lower().strip())
        return cast(User | None, self.session.execute(stmt).scalars().first())

    def exists_by_email(self, email: str) -> bool:
        stmt = select(User.id).where(User.email == email.lower().strip())
        return bool(self.session.execute(stmt).first())

    def touch_last_active(self, user_id: int, at: datetime) -> bool:
        """Write ``last_active`` with a single UPDATE (no ORM load).

        :returns: ``True`` if a row was updated.
        """
        result = self.session.execute(
            update(User)
            .where(User.id == user_id)
            .values(last_active=at)
            .execution_options(synchronize_session=False)
        )
        return bool(result.rowcount)
