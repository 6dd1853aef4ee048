"""
Domain-level exceptions used within the service layer.

These exceptions are **framework-agnostic** and should never import or depend
on Flask or HTTP directly. They serve as stable contracts between
repositories, stores, domain models, and application services.

Authentication outcomes that a caller is expected to branch on (revoked,
expired, locked, ...) are *not* exceptions: they are returned as
:class:`~sessionguard.services.auth.dto.AuthFailure` values. The exceptions
below cover infrastructure seams and programming errors.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass

from sqlalchemy.exc import DBAPIError, IntegrityError, InterfaceError, OperationalError


def violates(exc: IntegrityError, constraint_name: str, *, column: str | None = None) -> bool:
    """
    Check whether an IntegrityError originates from a specific constraint.

    Parameters
    ----------
    exc : IntegrityError
        The exception raised by SQLAlchemy during flush/commit.
    constraint_name : str
        The name of the database constraint to match (e.g., 'uq_users_email').
    column : str | None
        Qualified column (``"users.email"``) to match instead. SQLite reports
        the column rather than the constraint name.

    Returns
    -------
    bool
        True if the IntegrityError matches the given constraint.
    """
    message = str(exc.orig).lower() if exc.orig else ""
    if constraint_name.lower() in message:
        return True
    return column is not None and column.lower() in message


# --------------------------------------------------------------------------- #
# Base types
# --------------------------------------------------------------------------- #


class ServiceError(Exception):
    """
    Base class for all service-level errors.

    Notes
    -----
    - These are *not* HTTP errors.
    - The API layer translates them to APIError.
    """

    pass


# --------------------------------------------------------------------------- #
# Specific domain-level errors
# --------------------------------------------------------------------------- #


@dataclass(slots=True)
class NotFoundError(ServiceError):
    """
    Raised when an entity is not found in the repository.

    :param entity: Entity name (e.g., "User").
    :type entity: str
    :param key: Identifier or search key.
    :type key: str | int
    """

    entity: str
    key: str | int

    def __str__(self) -> str:  # pragma: no cover
        return f"{self.entity} not found: {self.key}"


@dataclass(slots=True)
class ConflictError(ServiceError):
    """
    Raised when a unique constraint or business rule conflict occurs.

    :param entity: Entity name (e.g., "User").
    :type entity: str
    :param detail: Short human-readable explanation.
    :type detail: str
    """

    entity: str
    detail: str

    def __str__(self) -> str:  # pragma: no cover
        return f"Conflict on {self.entity}: {self.detail}"


class StoreUnavailableError(ServiceError):
    """
    Raised by token stores and the user directory when the backing service
    (database, Redis) cannot be reached.

    Kept apart from every authorization outcome so callers never read an
    outage as "this user is unauthorized".
    """

    def __init__(self, store: str, cause: BaseException | None = None) -> None:
        super().__init__(f"{store} is unavailable")
        self.store = store
        self.cause = cause


class TokenFormatError(ServiceError):
    """Raised when a token cannot be decoded into a claims mapping with ``exp``."""

    def __init__(self, message: str = "Invalid token format") -> None:
        super().__init__(message)


class InvalidStateTransition(ServiceError):
    """Raised when a refresh token record is revoked a second time."""

    def __init__(self, message: str = "Refresh token is already inactive") -> None:
        super().__init__(message)


@contextmanager
def unavailable_as(store: str) -> Iterator[None]:
    """
    Re-raise connection-level database errors as :class:`StoreUnavailableError`.

    Integrity and programming errors pass through untouched.

    :param store: Name reported in the error (``"users"``, ``"blacklist"``...).
    """
    try:
        yield
    except (OperationalError, InterfaceError) as exc:
        raise StoreUnavailableError(store, exc) from exc
    except DBAPIError as exc:
        if exc.connection_invalidated:
            raise StoreUnavailableError(store, exc) from exc
        raise
