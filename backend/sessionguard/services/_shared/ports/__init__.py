"""
sessionguard.services._shared.ports
===================================

Collection of *ports* (hexagonal interfaces) that define the contracts
for token management and authentication infrastructure.

These ports decouple the service layer from concrete implementations
of token signing, revocation, refresh storage, and user lookup.

Modules
-------
- :mod:`token_provider`:
    Defines :class:`~.TokenProvider` — abstraction for access-token creation
    and verification, with its own closed exception types.

- :mod:`blacklist_store`:
    Defines :class:`~.BlacklistStore` — denylist of revoked access tokens.

- :mod:`refresh_token_store`:
    Defines :class:`~.RefreshTokenStore` and :class:`~.RefreshTokenView` —
    opaque refresh tokens with atomic conditional revocation.

- :mod:`user_directory`:
    Defines :class:`~.UserDirectory` and :class:`~.UserSnapshot`.

Design Notes
------------
Concrete adapters (SQLAlchemy, Redis, flask-jwt-extended) live under
``sessionguard.infra`` and are wired per application in
:mod:`sessionguard.core.wiring`. In-memory doubles live next to each port.
"""

from __future__ import annotations

from .blacklist_store import BlacklistEntryView, BlacklistStore, InMemoryBlacklistStore
from .refresh_token_store import (
    InMemoryRefreshTokenStore,
    RefreshTokenStore,
    RefreshTokenView,
)
from .token_provider import (
    StubTokenProvider,
    TokenExpiredError,
    TokenInvalidError,
    TokenProvider,
)
from .user_directory import InMemoryUserDirectory, UserDirectory, UserSnapshot

__all__ = [
    "BlacklistEntryView",
    "BlacklistStore",
    "InMemoryBlacklistStore",
    "InMemoryRefreshTokenStore",
    "InMemoryUserDirectory",
    "RefreshTokenStore",
    "RefreshTokenView",
    "StubTokenProvider",
    "TokenExpiredError",
    "TokenInvalidError",
    "TokenProvider",
    "UserDirectory",
    "UserSnapshot",
]
