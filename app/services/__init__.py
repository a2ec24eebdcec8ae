"""
Service layer: repositories plus the authentication and user services.
"""

from app.services.auth import AuthService
from app.services.repository import RoleRepository, UserRepository
from app.services.users import UserService

__all__ = [
    "AuthService",
    "UserService",
    "UserRepository",
    "RoleRepository",
]
