"""Authentication endpoints using the service layer."""

from __future__ import annotations

from flask import Blueprint, request

from sessionguard.api.deps import (
    bearer_token,
    current_identity,
    json_response,
    request_context,
    require_auth,
    require_role,
    timing,
    unwrap,
)
from sessionguard.core.wiring import get_auth_service
from sessionguard.schemas import (
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
from sessionguard.services.auth import LogoutScope

bp = Blueprint("auth", __name__)

register_schema = RegisterSchema()
login_schema = LoginSchema()
refresh_schema = RefreshSchema()
logout_schema = LogoutSchema()
password_schema = ChangePasswordSchema()
token_schema = TokenPairSchema()
identity_schema = IdentitySchema()
user_schema = UserSchema()
session_schema = SessionSchema(many=True)
logout_result_schema = LogoutResultSchema()


@bp.post("/register")
@timing
def register():
    """Register a new user and return the created representation."""

    payload = register_schema.load(request.get_json(silent=True) or {})
    user = get_auth_service().register(
        email=payload["email"],
        password=payload["password"],
        full_name=payload["full_name"],
    )
    return json_response({"data": user_schema.dump(user)}, status=201)


@bp.post("/login")
@timing
def login():
    """Authenticate credentials and issue an access/refresh token pair."""

    data = login_schema.load(request.get_json(silent=True) or {})
    pair = unwrap(get_auth_service().login(data["email"], data["password"], request_context()))
    return json_response({"data": token_schema.dump(pair)})


@bp.post("/refresh")
@timing
def refresh():
    """Rotate the presented refresh token into a new pair (single use)."""

    data = refresh_schema.load(request.get_json(silent=True) or {})
    pair = unwrap(get_auth_service().rotate(data["refresh_token"], request_context()))
    return json_response({"data": token_schema.dump(pair)})


@bp.post("/logout")
@timing
def logout():
    """Blacklist the bearer token and end one session or all of them."""

    data = logout_schema.load(request.get_json(silent=True) or {})
    scope = LogoutScope.ALL_DEVICES if data["all_devices"] else LogoutScope.SINGLE
    result = unwrap(
        get_auth_service().revoke(
            bearer_token(),
            refresh_token=None if data["all_devices"] else data["refresh_token"],
            scope=scope,
            ctx=request_context(),
        )
    )
    return json_response({"data": logout_result_schema.dump(result)})


@bp.get("/me")
@require_auth
@timing
def me():
    """Return the authenticated identity."""

    return json_response({"data": identity_schema.dump(current_identity())})


@bp.get("/sessions")
@require_auth
@timing
def sessions():
    """List the caller's active refresh tokens with device metadata."""

    views = unwrap(get_auth_service().list_sessions(current_identity()))
    return json_response({"data": session_schema.dump(views)})


@bp.post("/password")
@require_auth
@timing
def change_password():
    """Change the password; every other session of the user ends."""

    data = password_schema.load(request.get_json(silent=True) or {})
    pair = unwrap(
        get_auth_service().change_password(
            current_identity(),
            current_password=data["current_password"],
            new_password=data["new_password"],
            ctx=request_context(),
        )
    )
    return json_response({"data": token_schema.dump(pair)})


@bp.delete("/users/<int:user_id>/sessions")
@require_role("admin")
@timing
def end_user_sessions(user_id: int):
    """Force-logout a user everywhere by revoking all of their refresh tokens."""

    count = unwrap(get_auth_service().end_user_sessions(user_id, request_context()))
    return json_response({"data": {"user_id": user_id, "revoked_sessions": count}})
