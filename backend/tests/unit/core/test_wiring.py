"""Store selection and service wiring from configuration."""

from __future__ import annotations

from datetime import timedelta

import pytest
from flask import Flask

from sessionguard.core.config import TestingConfig
from sessionguard.core.wiring import EXTENSION_KEY, build_blacklist_store, token_config_from
from sessionguard.infra.redis.redis_blacklist_store import RedisBlacklistStore
from sessionguard.infra.sqlalchemy import SQLBlacklistStore, SQLRefreshTokenStore


def _app(**config) -> Flask:
    app = Flask(__name__)
    app.config.update(config)
    return app


def test_token_config_from_settings():
    cfg = token_config_from(
        {
            "JWT_ACCESS_TOKEN_EXPIRES_MINUTES": 5,
            "REFRESH_TOKEN_EXPIRES_DAYS": 1,
            "REFRESH_REUSE_REVOKES_ALL": True,
            "AUTH_MAX_FAILED_LOGINS": 3,
            "AUTH_LOCKOUT_MINUTES": 10,
        }
    )

    assert cfg.access_expires == timedelta(minutes=5)
    assert cfg.refresh_expires == timedelta(days=1)
    assert cfg.reuse_revokes_all is True
    assert (cfg.max_failed_logins, cfg.lockout) == (3, timedelta(minutes=10))


def test_sql_blacklist_is_the_default():
    assert isinstance(build_blacklist_store(_app()), SQLBlacklistStore)


def test_redis_blacklist_needs_url():
    with pytest.raises(RuntimeError, match="REDIS_URL"):
        build_blacklist_store(_app(TOKEN_BLACKLIST_BACKEND="redis"))


def test_redis_blacklist_client_is_kept_per_app():
    app = _app(TOKEN_BLACKLIST_BACKEND="redis", REDIS_URL="redis://localhost:6379/0")

    store = build_blacklist_store(app)

    assert isinstance(store, RedisBlacklistStore)
    assert app.extensions["redis"] is store.r


def test_unknown_backend_is_rejected():
    with pytest.raises(RuntimeError, match="Unknown"):
        build_blacklist_store(_app(TOKEN_BLACKLIST_BACKEND="memcached"))


def test_app_factory_wires_sql_stores(app):
    service = app.extensions[EXTENSION_KEY]

    assert isinstance(service.refresh_store, SQLRefreshTokenStore)
    assert isinstance(service.blacklist, SQLBlacklistStore)
    assert service.cfg.access_expires == timedelta(minutes=TestingConfig.JWT_ACCESS_TOKEN_EXPIRES_MINUTES)
