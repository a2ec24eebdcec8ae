"""
Authentication and Authorization module.

Provides:
- JWT signing and verification (ES256)
- Password hashing (Argon2id)
- Refresh-token persistence by hash
- Bearer-token guard and role-based access control
"""

from app.auth.jwt import JwtSigner, TokenType
from app.auth.guard import (
    AuthGuardMiddleware,
    Identity,
    MeResolver,
    get_identity,
    resolve_me,
)
from app.auth.roles import Role, allow, owner_of
from app.auth.password import hash_password, verify_password
from app.auth.refresh_store import RefreshTokenStore, hash_refresh_token

__all__ = [
    # JWT
    "JwtSigner",
    "TokenType",
    # Guard
    "AuthGuardMiddleware",
    "Identity",
    "MeResolver",
    "get_identity",
    "resolve_me",
    # Roles
    "Role",
    "allow",
    "owner_of",
    # Password
    "hash_password",
    "verify_password",
    # Refresh tokens
    "RefreshTokenStore",
    "hash_refresh_token",
]
