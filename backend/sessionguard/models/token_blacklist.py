"""Blacklisted (explicitly revoked) access tokens."""

from __future__ import annotations

import enum
import hashlib
from datetime import datetime

from sqlalchemy import DateTime, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from sessionguard.core.extensions import db

from .base import PKMixin, ReprMixin


class BlacklistReason(str, enum.Enum):
    LOGOUT = "logout"
    SECURITY_BREACH = "security_breach"
    PASSWORD_CHANGE = "password_change"
    ADMIN_REVOKE = "admin_revoke"


def hash_token(token: str) -> str:
    """Return the SHA-256 hex digest used as the blacklist key."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


class TokenBlacklistEntry(PKMixin, ReprMixin, db.Model):
    """
    A revoked access token, stored by hash.

    ``expires_at`` equals the token's own ``exp`` claim, so a row lives exactly
    as long as the token could otherwise still be accepted. Rows are immutable.
    """

    __tablename__ = "token_blacklist"

    token_hash: Mapped[str] = mapped_column(String(64), nullable=False, unique=True, index=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False)
    reason: Mapped[str] = mapped_column(String(32), nullable=False)
    blacklisted_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    ip_address: Mapped[str | None] = mapped_column(String(45), nullable=True)
    user_agent: Mapped[str | None] = mapped_column(String(512), nullable=True)

    __table_args__ = (
        Index("ix_token_blacklist_expires_at", "expires_at"),
        Index("ix_token_blacklist_user_id_blacklisted_at", "user_id", "blacklisted_at"),
    )
