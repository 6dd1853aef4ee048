from sessionguard.models.refresh_token import RefreshToken, RefreshTokenState, apply_revocation
from sessionguard.models.token_blacklist import BlacklistReason, TokenBlacklistEntry, hash_token
from sessionguard.models.user import User

__all__ = [
    "BlacklistReason",
    "RefreshToken",
    "RefreshTokenState",
    "TokenBlacklistEntry",
    "User",
    "apply_revocation",
    "hash_token",
]
