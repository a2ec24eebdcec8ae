"""
Authentication-related schemas.
"""

from pydantic import EmailStr, Field, field_validator

from app.schemas.common import CamelModel


class SignUpRequest(CamelModel):
    """Account registration body."""

    email: EmailStr = Field(description="User email address")
    password: str = Field(min_length=8, max_length=128, description="User password")
    username: str = Field(min_length=1, max_length=255, description="Public username")

    @field_validator("email")
    @classmethod
    def lowercase_email(cls, v: str) -> str:
        return v.lower().strip()


class SignInRequest(CamelModel):
    """Login request with email and password."""

    email: EmailStr = Field(description="User email address")
    password: str = Field(max_length=128, description="User password")

    @field_validator("email")
    @classmethod
    def lowercase_email(cls, v: str) -> str:
        return v.lower().strip()


class RefreshTokenRequest(CamelModel):
    """Body for sign-out and refresh."""

    refresh_token: str = Field(description="Refresh token issued at sign-in")


class UserSummary(CamelModel):
    user_id: str
    username: str


class AuthResponse(CamelModel):
    """Token pair plus the signed-in user."""

    auth_token: str = Field(description="Short-lived access token")
    refresh_token: str = Field(description="Long-lived refresh token")
    user: UserSummary


class TokenRefreshResponse(CamelModel):
    """New access token; the refresh token is either echoed or rotated."""

    auth_token: str
    refresh_token: str


class SignOutResponse(CamelModel):
    success: bool = True
