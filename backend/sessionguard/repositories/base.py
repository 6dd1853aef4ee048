"""Generic repository base for SQLAlchemy 2.x.

This module centralizes persistence-only concerns shared by all repositories:
- Session access (injected Unit of Work session or the Flask-scoped one).
- Primary-key lookups, equality filters, and flushing.
- No business logic, no commit/rollback — Services and stores own transactions.

Design decisions
----------------
* Repositories MUST remain thin and persistence-focused:
  - They never implement use cases or domain policies.
  - They never call commit/rollback; the Unit of Work does.
* State changes of domain records go through explicit model functions
  (e.g. :func:`~sessionguard.models.refresh_token.apply_revocation`) or
  through conditional bulk statements when atomicity matters.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Generic, TypeVar, cast

from sqlalchemy import Select, and_, select
from sqlalchemy.orm import InstrumentedAttribute, Session

from sessionguard.core.extensions import db

E = TypeVar("E")  # SQLAlchemy mapped entity type


class BaseRepository(Generic[E]):
    """Generic, persistence-only repository for a single aggregate.

    Subclasses MUST define ``model``: the SQLAlchemy mapped class.
    """

    #: SQLAlchemy mapped model (must be set by subclasses)
    model: type[E]

    def __init__(self, session: Session | None = None) -> None:
        """Initialise the repository with an optional SQLAlchemy session.

        When no explicit session is provided the repository falls back to the
        Flask-scoped session exposed by ``sessionguard.core.extensions``.
        """
        self._session: Session | None = session

    @property
    def session(self) -> Session:
        """Return the injected session, or the Flask-scoped one."""
        if self._session is not None:
            return self._session
        return cast(Session, db.session)

    def _pk_attr(self) -> InstrumentedAttribute[Any] | None:
        return getattr(self.model, "id", None)

    def _apply_equality_filters(
        self,
        stmt: Select[Any],
        filters: Mapping[str, Any] | None,
    ) -> Select[Any]:
        if not filters:
            return stmt
        clauses = [getattr(self.model, k) == v for k, v in filters.items()]
        return stmt.where(and_(*clauses)) if clauses else stmt

    # --------------------------------- CRUD ----------------------------------

    def add(self, instance: E) -> E:
        """Stage a new entity and flush to materialize the PK.

        :param instance: New entity instance.
        :returns: The same instance after ``flush()``.
        """
        self.session.add(instance)
        self.flush()
        return instance

    def get(self, entity_id: Any) -> E | None:
        """Retrieve a single entity by primary key.

        :raises RuntimeError: If no PK attribute can be detected.
        """
        pk_attr = self._pk_attr()
        if pk_attr is None:
            raise RuntimeError("BaseRepository.get requires a detectable PK attribute.")
        result = self.session.execute(select(self.model).where(pk_attr == entity_id))
        return cast(E | None, result.scalars().first())

    def find_one(self, **filters: Any) -> E | None:
        """Find a single entity by simple equality filters."""
        stmt: Select[Any] = self._apply_equality_filters(select(self.model), filters)
        return cast(E | None, self.session.execute(stmt).scalars().first())

    def list(self, **filters: Any) -> list[E]:
        """List entities matching equality filters, ordered by primary key."""
        stmt: Select[Any] = self._apply_equality_filters(select(self.model), filters)
        pk_attr = self._pk_attr()
        if pk_attr is not None:
            stmt = stmt.order_by(pk_attr.asc())
        return cast(list[E], list(self.session.execute(stmt).scalars().all()))

    def delete(self, instance: E) -> None:
        self.session.delete(instance)
        self.flush()

    def flush(self) -> None:
        """Flush pending changes to the database without committing."""
        self.session.flush()
