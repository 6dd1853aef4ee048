"""Refresh token records and their revocation state machine."""

from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from sessionguard.core.extensions import db
from sessionguard.core.timeutil import as_utc
from sessionguard.services._shared.errors import InvalidStateTransition

from .base import PKMixin, ReprMixin, TimestampMixin


class RefreshTokenState(enum.Enum):
    """Exactly one of these holds for every record."""

    ACTIVE = "active"
    REVOKED_REPLACED = "revoked_replaced"  # produced by rotation
    REVOKED_TERMINAL = "revoked_terminal"  # produced by logout


class RefreshToken(PKMixin, ReprMixin, TimestampMixin, db.Model):
    """
    Opaque, single-use refresh token bound to a user.

    ``replaced_by_token`` links a rotated record to its successor, so the
    records of one login form an append-only replacement chain. The device
    columns are a best-effort classification of the issuing user agent and
    are never used for security decisions.
    """

    __tablename__ = "refresh_tokens"

    token: Mapped[str] = mapped_column(String(128), nullable=False, unique=True, index=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    created_by_ip: Mapped[str | None] = mapped_column(String(45), nullable=True)
    revoked_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    revoked_by_ip: Mapped[str | None] = mapped_column(String(45), nullable=True)
    replaced_by_token: Mapped[str | None] = mapped_column(String(128), nullable=True)

    user_agent: Mapped[str | None] = mapped_column(String(512), nullable=True)
    platform: Mapped[str | None] = mapped_column(String(20), nullable=True)
    browser: Mapped[str | None] = mapped_column(String(20), nullable=True)

    __table_args__ = (
        Index("ix_refresh_tokens_user_id_is_active", "user_id", "is_active"),
        Index("ix_refresh_tokens_expires_at", "expires_at"),
    )

    @property
    def state(self) -> RefreshTokenState:
        if self.is_active:
            return RefreshTokenState.ACTIVE
        if self.replaced_by_token:
            return RefreshTokenState.REVOKED_REPLACED
        return RefreshTokenState.REVOKED_TERMINAL

    def is_expired(self, now: datetime) -> bool:
        return as_utc(self.expires_at) <= now

    def is_usable(self, now: datetime) -> bool:
        """Active *and* unexpired; either failing check makes it unusable."""
        return self.is_active and not self.is_expired(now)


def revocation_values(
    *, at: datetime, ip: str | None, replaced_by: str | None = None
) -> dict[str, object]:
    """Column values written by a revocation, shared by ORM and bulk paths."""
    return {
        "is_active": False,
        "revoked_at": at,
        "revoked_by_ip": ip,
        "replaced_by_token": replaced_by,
    }


def apply_revocation(
    record: RefreshToken,
    *,
    at: datetime,
    ip: str | None,
    replaced_by: str | None = None,
) -> RefreshToken:
    """
    Move an active record to one of the two revoked states.

    This is the only mutation ever applied to a refresh token record. Stores
    that need atomicity issue the same values as a conditional UPDATE.

    :raises InvalidStateTransition: If the record is already inactive.
    """
    if not record.is_active:
        raise InvalidStateTransition()
    for column, value in revocation_values(at=at, ip=ip, replaced_by=replaced_by).items():
        setattr(record, column, value)
    return record
