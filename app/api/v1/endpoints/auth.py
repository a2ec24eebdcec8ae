"""
Authentication endpoints.

Provides:
- Sign-up (email/password/username → token pair)
- Sign-in (email/password → token pair)
- Sign-out (revoke a refresh token)
- Token refresh (with rotation near expiry)
"""

from fastapi import APIRouter, Depends, status

from app.auth.dependencies import get_auth_service
from app.schemas.auth import (
    AuthResponse,
    RefreshTokenRequest,
    SignInRequest,
    SignOutResponse,
    SignUpRequest,
    TokenRefreshResponse,
)
from app.schemas.common import ErrorResponse
from app.services.auth import AuthService

router = APIRouter()


@router.post(
    "/sign-up",
    response_model=AuthResponse,
    status_code=status.HTTP_201_CREATED,
    responses={status.HTTP_409_CONFLICT: {"model": ErrorResponse}},
    summary="Register a new user",
)
async def sign_up(
    body: SignUpRequest,
    service: AuthService = Depends(get_auth_service),
):
    """Create a new account with email, password, and username."""
    return await service.sign_up(body.email, body.password, body.username)


@router.post(
    "/sign-in",
    response_model=AuthResponse,
    responses={status.HTTP_401_UNAUTHORIZED: {"model": ErrorResponse}},
    summary="Authenticate with credentials",
)
async def sign_in(
    body: SignInRequest,
    service: AuthService = Depends(get_auth_service),
):
    """Sign in with email and password to receive auth and refresh tokens."""
    return await service.sign_in(body.email, body.password)


@router.post(
    "/sign-out",
    response_model=SignOutResponse,
    summary="Revoke a refresh token",
)
async def sign_out(
    body: RefreshTokenRequest,
    service: AuthService = Depends(get_auth_service),
):
    """
    Sign out by invalidating the provided refresh token.

    Always succeeds, whether or not the token was known.
    """
    return await service.sign_out(body.refresh_token)


@router.post(
    "/refresh",
    response_model=TokenRefreshResponse,
    responses={status.HTTP_401_UNAUTHORIZED: {"model": ErrorResponse}},
    summary="Refresh auth token",
)
async def refresh(
    body: RefreshTokenRequest,
    service: AuthService = Depends(get_auth_service),
):
    """Exchange a valid refresh token for a new auth token (and a new refresh token near expiry)."""
    return await service.refresh(body.refresh_token)
