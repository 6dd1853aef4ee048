"""Authentication-related Marshmallow schemas."""

from __future__ import annotations

from marshmallow import Schema, fields, validate


class RegisterSchema(Schema):
    """Input payload for account registration."""

    email = fields.Email(required=True, validate=validate.Length(max=254))
    password = fields.String(required=True, validate=validate.Length(min=8, max=128))
    full_name = fields.String(load_default=None, validate=validate.Length(max=100))


class LoginSchema(Schema):
    """Input payload for authenticating a user."""

    email = fields.Email(required=True, validate=validate.Length(max=254))
    password = fields.String(required=True, validate=validate.Length(min=1, max=128))


class RefreshSchema(Schema):
    """Input payload for refresh token rotation."""

    refresh_token = fields.String(required=True, validate=validate.Length(min=1, max=128))


class LogoutSchema(Schema):
    """Input payload for logout; ``all_devices`` ignores ``refresh_token``."""

    refresh_token = fields.String(load_default=None, validate=validate.Length(max=128))
    all_devices = fields.Boolean(load_default=False)


class ChangePasswordSchema(Schema):
    """Input payload for a password change."""

    current_password = fields.String(required=True, validate=validate.Length(min=1, max=128))
    new_password = fields.String(required=True, validate=validate.Length(min=8, max=128))


class TokenPairSchema(Schema):
    """Response payload carrying an access/refresh token pair."""

    access_token = fields.String(required=True)
    refresh_token = fields.String(required=True)
    access_expires_at = fields.AwareDateTime(required=True)
    refresh_expires_at = fields.AwareDateTime(required=True)
    token_type = fields.Constant("bearer")


class IdentitySchema(Schema):
    """Response payload exposing the authenticated identity (never the token)."""

    user_id = fields.Integer(required=True)
    role = fields.String(required=True)
    jti = fields.String(allow_none=True)
    issued_at = fields.AwareDateTime(required=True)
    expires_at = fields.AwareDateTime(required=True)


class UserSchema(Schema):
    """Response payload for a newly registered user."""

    id = fields.Integer(required=True)
    role = fields.String(required=True)
    is_active = fields.Boolean(required=True)


class SessionSchema(Schema):
    """One active refresh token, described by its device metadata."""

    created_at = fields.AwareDateTime()
    expires_at = fields.AwareDateTime()
    created_by_ip = fields.String(allow_none=True)
    platform = fields.String(allow_none=True)
    browser = fields.String(allow_none=True)


class LogoutResultSchema(Schema):
    scope = fields.Function(lambda obj: obj.scope.value)
    revoked_sessions = fields.Integer()
