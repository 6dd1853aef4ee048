"""Token lifecycle: issuance, verification, rotation and logout."""

from .dto import (
    AuthFailure,
    AuthFailureKind,
    AuthTokenConfig,
    Identity,
    LogoutResult,
    LogoutScope,
    TokenPair,
)
from .guard import AuthGuard, extract_bearer
from .issuer import TokenIssuer
from .rotation import RotationProtocol
from .service import AuthService

__all__ = [
    "AuthFailure",
    "AuthFailureKind",
    "AuthGuard",
    "AuthService",
    "AuthTokenConfig",
    "Identity",
    "LogoutResult",
    "LogoutScope",
    "RotationProtocol",
    "TokenIssuer",
    "TokenPair",
    "extract_bearer",
]
