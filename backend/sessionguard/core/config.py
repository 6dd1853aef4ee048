"""Application settings with environment-based simple classes."""

from __future__ import annotations

import os
from collections.abc import Mapping
from typing import Final

from dotenv import load_dotenv

# Public selector env var (keep neutral name to avoid collisions)
ENV_VAR: Final[str] = "APP_ENV"  # 'development' | 'testing' | 'production'


# Load .env in development (no-op when the file is missing)
load_dotenv()


def env_bool(name: str, default: bool = False) -> bool:
    """Parse a boolean flag from an environment variable.

    Parameters
    ----------
    name: str
        Environment variable to inspect.
    default: bool, optional
        Value returned when the variable is unset. Defaults to ``False``.

    Returns
    -------
    bool
        ``True`` if the value resembles ``{"1", "true", "yes", "y", "on"}``
        ignoring case; otherwise ``False`` or ``default`` when missing.
    """
    val = os.getenv(name)
    if val is None:
        return default
    return str(val).strip().lower() in {"1", "true", "yes", "y", "on"}


def env_int(name: str, default: int) -> int:
    """Parse an integer from an environment variable, falling back on garbage."""
    val = os.getenv(name)
    if val is None or not val.strip():
        return default
    try:
        return int(val)
    except ValueError:
        return default


class BaseConfig:
    """Base configuration shared across environments.

    Attributes
    ----------
    API_BASE_PREFIX: str
        Root path for registering API blueprints.
    SECRET_KEY: str
        Flask secret. Should be overridden in production.
    JWT_SECRET_KEY: str
        Key used by ``flask-jwt-extended`` for signing access tokens.
    JWT_ACCESS_TOKEN_EXPIRES_MINUTES: int
        Access token lifetime (15 minutes by default).
    REFRESH_TOKEN_EXPIRES_DAYS: int
        Opaque refresh token lifetime (7 days by default).
    TOKEN_BLACKLIST_BACKEND: str
        ``"sql"`` (default) or ``"redis"``. Redis requires ``REDIS_URL``.
    REDIS_URL: str | None
        Connection URL for the optional Redis blacklist backend.
    REFRESH_REUSE_REVOKES_ALL: bool
        When ``True``, presenting an already-rotated refresh token revokes
        every session of its owner.
    AUTH_MAX_FAILED_LOGINS: int
        Consecutive failed logins before the account is locked.
    AUTH_LOCKOUT_MINUTES: int
        Duration of an automatic lock.
    SQLALCHEMY_DATABASE_URI: str
        Database connection string consumed by SQLAlchemy.
    LOG_LEVEL: str
        Root logging verbosity (``INFO`` by default).

    Notes
    -----
    Values are primarily sourced from environment variables, enabling
    configuration without code changes.
    """

    API_BASE_PREFIX = "/api"

    # Secrets / security
    SECRET_KEY = os.getenv("SECRET_KEY", "CHANGE_ME")
    JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "CHANGE_ME_JWT")
    JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
    JWT_TOKEN_LOCATION = ["headers"]

    # Token lifecycle
    JWT_ACCESS_TOKEN_EXPIRES_MINUTES = env_int("JWT_ACCESS_TOKEN_EXPIRES_MINUTES", 15)
    REFRESH_TOKEN_EXPIRES_DAYS = env_int("REFRESH_TOKEN_EXPIRES_DAYS", 7)
    TOKEN_BLACKLIST_BACKEND = os.getenv("TOKEN_BLACKLIST_BACKEND", "sql")
    REDIS_URL = os.getenv("REDIS_URL")
    REFRESH_REUSE_REVOKES_ALL = env_bool("REFRESH_REUSE_REVOKES_ALL", False)

    # Login lockout
    AUTH_MAX_FAILED_LOGINS = env_int("AUTH_MAX_FAILED_LOGINS", 5)
    AUTH_LOCKOUT_MINUTES = env_int("AUTH_LOCKOUT_MINUTES", 30)

    # DB
    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URL", "sqlite:///./dev.db")
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ECHO = env_bool("SQLALCHEMY_ECHO", False)

    # Flask & JSON
    JSON_SORT_KEYS = False
    PROPAGATE_EXCEPTIONS = False
    USE_PROXYFIX = env_bool("USE_PROXYFIX", True)

    # Logging
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    # Flask built-ins
    DEBUG = False
    TESTING = False


class DevelopmentConfig(BaseConfig):
    """Configuration tailored for local development."""

    DEBUG = env_bool("FLASK_DEBUG", True)
    SQLALCHEMY_ECHO = env_bool("SQLALCHEMY_ECHO", False)


class TestingConfig(BaseConfig):
    """Configuration for automated test runs.

    Notes
    -----
    - Forces ``TESTING`` mode and disables debug logs.
    - Uses an in-memory SQLite database unless ``TEST_DATABASE_URL`` is set.
    - Always uses the SQL blacklist so tests never need a Redis server.
    """

    TESTING = True
    DEBUG = False
    SECRET_KEY = "testing-secret"
    JWT_SECRET_KEY = "testing-jwt-secret-with-enough-length"
    SQLALCHEMY_DATABASE_URI = os.getenv("TEST_DATABASE_URL", "sqlite:///:memory:")
    SQLALCHEMY_ECHO = False
    TOKEN_BLACKLIST_BACKEND = "sql"
    REDIS_URL = None
    PROPAGATE_EXCEPTIONS = True


class ProductionConfig(BaseConfig):
    """Configuration defaults for production deployments."""

    DEBUG = False
    SQLALCHEMY_ECHO = False
    PROPAGATE_EXCEPTIONS = False


# Map names -> classes (simple, explicit)
CONFIG_MAP: Mapping[str, type[BaseConfig]] = {
    "development": DevelopmentConfig,
    "testing": TestingConfig,
    "production": ProductionConfig,
}


def get_config() -> type[BaseConfig]:
    """Return the configuration class inferred from ``APP_ENV``.

    Falls back to :class:`DevelopmentConfig` when ``APP_ENV`` is unset or
    unknown.
    """
    name = os.getenv(ENV_VAR, "development").strip().lower()
    return CONFIG_MAP.get(name, DevelopmentConfig)
