"""Convenience exports for application schemas."""

from __future__ import annotations

from .auth import (
    ChangePasswordSchema,
    IdentitySchema,
    LoginSchema,
    LogoutResultSchema,
    LogoutSchema,
    RefreshSchema,
    RegisterSchema,
    SessionSchema,
    TokenPairSchema,
    UserSchema,
)

__all__ = [
    "ChangePasswordSchema",
    "IdentitySchema",
    "LoginSchema",
    "LogoutResultSchema",
    "LogoutSchema",
    "RefreshSchema",
    "RegisterSchema",
    "SessionSchema",
    "TokenPairSchema",
    "UserSchema",
]
