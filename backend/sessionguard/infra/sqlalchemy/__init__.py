"""SQLAlchemy adapters for the token stores and the user directory."""

from .sql_blacklist_store import SQLBlacklistStore
from .sql_refresh_token_store import SQLRefreshTokenStore
from .sql_user_directory import SQLUserDirectory

__all__ = ["SQLBlacklistStore", "SQLRefreshTokenStore", "SQLUserDirectory"]
