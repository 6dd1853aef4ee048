"""Build the auth service and its stores from application config.

Store handles are created once per application and kept in
``app.extensions``; nothing here is a module-level singleton.
"""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import cast

import redis  # type: ignore[import-untyped]
from flask import Flask, current_app

from sessionguard.infra.jwt.flask_jwt_token_provider import JWTTokenProvider, unverified_claims
from sessionguard.infra.redis.redis_blacklist_store import RedisBlacklistStore
from sessionguard.infra.sqlalchemy import SQLBlacklistStore, SQLRefreshTokenStore, SQLUserDirectory
from sessionguard.services._shared.ports import BlacklistStore
from sessionguard.services.auth import AuthService, AuthTokenConfig

log = logging.getLogger(__name__)

EXTENSION_KEY = "auth_service"
BLACKLIST_BACKENDS = ("sql", "redis")


def token_config_from(config: dict) -> AuthTokenConfig:
    return AuthTokenConfig(
        access_expires=timedelta(minutes=int(config["JWT_ACCESS_TOKEN_EXPIRES_MINUTES"])),
        refresh_expires=timedelta(days=int(config["REFRESH_TOKEN_EXPIRES_DAYS"])),
        reuse_revokes_all=bool(config["REFRESH_REUSE_REVOKES_ALL"]),
        max_failed_logins=int(config["AUTH_MAX_FAILED_LOGINS"]),
        lockout=timedelta(minutes=int(config["AUTH_LOCKOUT_MINUTES"])),
    )


def build_blacklist_store(app: Flask) -> BlacklistStore:
    """
    Select the blacklist backend from ``TOKEN_BLACKLIST_BACKEND``.

    :raises RuntimeError: On an unknown backend or ``redis`` without ``REDIS_URL``.
    """
    backend = str(app.config.get("TOKEN_BLACKLIST_BACKEND", "sql")).lower()
    if backend not in BLACKLIST_BACKENDS:
        raise RuntimeError(f"Unknown TOKEN_BLACKLIST_BACKEND: {backend!r}")
    if backend == "redis":
        url = app.config.get("REDIS_URL")
        if not url:
            raise RuntimeError("TOKEN_BLACKLIST_BACKEND=redis requires REDIS_URL.")
        client = redis.Redis.from_url(url)
        app.extensions["redis"] = client
        return RedisBlacklistStore(client, decode_unverified=unverified_claims)
    return SQLBlacklistStore(decode_unverified=unverified_claims)


def build_auth_service(app: Flask) -> AuthService:
    cfg = token_config_from(app.config)
    return AuthService(
        token_provider=JWTTokenProvider(),
        refresh_store=SQLRefreshTokenStore(ttl=cfg.refresh_expires),
        blacklist=build_blacklist_store(app),
        users=SQLUserDirectory(),
        token_cfg=cfg,
    )


def init_app(app: Flask) -> None:
    """Create the application's :class:`AuthService`."""
    service = build_auth_service(app)
    app.extensions[EXTENSION_KEY] = service
    log.debug("auth.wired blacklist=%s", type(service.blacklist).__name__)


def get_auth_service() -> AuthService:
    """Return the :class:`AuthService` bound to the current application."""
    return cast(AuthService, current_app.extensions[EXTENSION_KEY])
