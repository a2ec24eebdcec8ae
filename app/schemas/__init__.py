"""
Pydantic schemas for API request/response validation.

Field names are snake_case in Python and camelCase on the wire.
"""

from app.schemas.auth import (
    AuthResponse,
    RefreshTokenRequest,
    SignInRequest,
    SignOutResponse,
    SignUpRequest,
    TokenRefreshResponse,
    UserSummary,
)
from app.schemas.user import UserResponse, UserUpdate, user_to_response
from app.schemas.common import CamelModel, ErrorResponse, HealthResponse

__all__ = [
    # Auth
    "SignUpRequest",
    "SignInRequest",
    "RefreshTokenRequest",
    "AuthResponse",
    "TokenRefreshResponse",
    "SignOutResponse",
    "UserSummary",
    # User
    "UserResponse",
    "UserUpdate",
    "user_to_response",
    # Common
    "CamelModel",
    "ErrorResponse",
    "HealthResponse",
]
