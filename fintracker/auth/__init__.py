"""Authentication package."""

from fintracker.auth.provider import (
    DEMO_USERS,
    AuthError,
    IdentityProvider,
    JWTTokenCodec,
    StaticIdentityProvider,
    load_users,
)

__all__ = [
    "DEMO_USERS",
    "AuthError",
    "IdentityProvider",
    "JWTTokenCodec",
    "StaticIdentityProvider",
    "load_users",
]
