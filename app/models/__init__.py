"""
Database Models

This module exports all SQLAlchemy models for the application.
"""

from app.models.user import ADMIN_ROLE, Role, User, UserPrivate, user_roles
from app.models.refresh_token import RefreshToken

__all__ = [
    "ADMIN_ROLE",
    "Role",
    "User",
    "UserPrivate",
    "user_roles",
    "RefreshToken",
]
