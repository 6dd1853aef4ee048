# sessionguard/services/_shared/base.py
from __future__ import annotations

from collections.abc import Callable
from datetime import datetime

from sessionguard.core.timeutil import utcnow
from sessionguard.uow.sqlalchemy_uow import (
    SQLAlchemyReadOnlyUnitOfWork,
    SQLAlchemyUnitOfWork,
)


class BaseService:
    """
    Base class for application services.

    Responsibilities
    ----------------
    * Provide helpers to run read-only and read-write units of work.
    * Own the clock so tests can pin "now".
    * Keep services thin, orchestration-only, no web/ORM leakage.

    Notes
    -----
    - Services must never touch the global session; always use a Unit of Work.
    - State changes live in the models (``set_password``, ``apply_revocation``).
    """

    def __init__(self, *, clock: Callable[[], datetime] = utcnow) -> None:
        """
        Initialize the base service.

        :param clock: Source of the current UTC time.
        :type clock: Callable[[], datetime]
        """
        self._clock = clock

    def now_utc(self) -> datetime:
        return self._clock()

    # -------------------------- UoW helpers ---------------------------------

    def rw_uow(self) -> SQLAlchemyUnitOfWork:
        """
        Create a read-write Unit of Work.

        :returns: Read-write UoW instance.
        :rtype: SQLAlchemyUnitOfWork
        """
        return SQLAlchemyUnitOfWork()

    def ro_uow(self) -> SQLAlchemyReadOnlyUnitOfWork:
        """
        Create a read-only Unit of Work.

        :returns: Read-only UoW instance (always rolls back).
        :rtype: SQLAlchemyReadOnlyUnitOfWork
        """
        return SQLAlchemyReadOnlyUnitOfWork()
