"""User model: the identity the token lifecycle authenticates."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any

from sqlalchemy import Boolean, DateTime, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, validates
from werkzeug.security import check_password_hash, generate_password_hash

from sessionguard.core.extensions import db
from sessionguard.core.timeutil import as_utc, utcnow

from .base import PKMixin, ReprMixin, TimestampMixin

ROLES = ("customer", "admin")

# JWT ``iat`` has one-second resolution; back-dating the change stamp by one
# second keeps a token minted right after the change from looking older.
PASSWORD_CHANGE_SKEW = timedelta(seconds=1)


class User(PKMixin, ReprMixin, TimestampMixin, db.Model):
    """
    Authentication identity.

    Fields
    ------
    email : str
        Login email. Stored normalized (lowercase, trimmed).
    password_hash : str
        Hashed password (write-only setter via ``password``).
    role : str
        ``customer`` or ``admin``; copied into the access token.
    is_active : bool
        Disabled accounts cannot log in.
    password_changed_at : datetime | None
        Tokens issued before this instant are rejected and blacklisted.
    account_locked, lock_until :
        Temporary lock set after repeated failed logins.
    failed_login_attempts : int
        Consecutive failures since the last successful login.
    last_active : datetime | None
        Refreshed (best effort) on every authenticated request.
    """

    __tablename__ = "users"

    email: Mapped[str] = mapped_column(String(254), nullable=False)
    password_hash: Mapped[str] = mapped_column(String(254), nullable=False)
    full_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    role: Mapped[str] = mapped_column(String(20), nullable=False, default="customer")
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    password_changed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    account_locked: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    lock_until: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    failed_login_attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_active: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        UniqueConstraint("email", name="uq_users_email"),
        Index("ix_users_email", "email"),
    )

    # -------------------- Password API --------------------
    @property
    def password(self) -> Any:  # pragma: no cover - explicit write-only contract
        """
        Disallow reading passwords.

        :raises AttributeError: Always, to ensure password is write-only.
        """
        raise AttributeError("Password is write-only.")

    @password.setter
    def password(self, raw: str) -> None:
        """
        Hash and set the initial password.

        Does not touch ``password_changed_at``; use :meth:`set_password` for a
        change that must invalidate outstanding tokens.
        """
        if not isinstance(raw, str) or not raw:
            raise ValueError("Password must be a non-empty string.")
        self.password_hash = generate_password_hash(raw)

    def set_password(self, raw: str, *, at: datetime | None = None) -> None:
        """
        Change the password and stamp ``password_changed_at``.

        :param raw: New plain text password.
        :param at: Moment of the change (defaults to now, UTC).
        """
        self.password = raw
        self.password_changed_at = (at or utcnow()) - PASSWORD_CHANGE_SKEW

    def verify_password(self, raw: str) -> bool:
        """
        Verify a password against the stored hash.

        :returns: ``True`` if it matches; otherwise ``False``.
        """
        if not self.password_hash:
            return False
        return bool(check_password_hash(self.password_hash, raw))

    # -------------------- Lockout API --------------------
    def is_locked(self, now: datetime) -> bool:
        """Return ``True`` while an account lock is in effect."""
        return bool(
            self.account_locked and self.lock_until is not None and as_utc(self.lock_until) > now
        )

    def register_failed_login(self, *, now: datetime, max_attempts: int, lock_for: timedelta) -> bool:
        """
        Count a failed login; lock the account once ``max_attempts`` is reached.

        :returns: ``True`` when this failure locked the account.
        """
        self.failed_login_attempts = (self.failed_login_attempts or 0) + 1
        if self.failed_login_attempts >= max_attempts:
            self.account_locked = True
            self.lock_until = now + lock_for
            self.failed_login_attempts = 0
            return True
        return False

    def reset_failed_logins(self) -> None:
        """Clear the failure counter and any expired lock after a good login."""
        self.failed_login_attempts = 0
        self.account_locked = False
        self.lock_until = None

    # -------------------- Validators --------------------
    @validates("email")
    def _normalize_email(self, key: str, value: str) -> str:
        """
        Normalize and validate email.

        :raises ValueError: If email is missing or malformed.
        """
        if not value or not isinstance(value, str):
            raise ValueError("Email is required.")
        v = value.strip().lower()
        # Minimal sanity check; full validation happens at API layer.
        if "@" not in v or "." not in v.split("@")[-1]:
            raise ValueError("Email format looks invalid.")
        return v

    @validates("role")
    def _validate_role(self, key: str, value: str) -> str:
        if value not in ROLES:
            raise ValueError(f"Unknown role: {value!r}")
        return value
