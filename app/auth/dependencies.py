"""
FastAPI dependencies wiring request-scoped services to app-wide state.

Provides:
- get_settings / get_signer: objects built once in the app factory
- get_auth_service / get_user_service: per-request services on the
  request's database session
"""

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.jwt import JwtSigner
from app.core.config import Settings
from app.core.database import get_db
from app.services.auth import AuthService
from app.services.users import UserService


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_signer(request: Request) -> JwtSigner:
    return request.app.state.signer


async def get_auth_service(
    db: AsyncSession = Depends(get_db),
    signer: JwtSigner = Depends(get_signer),
    settings: Settings = Depends(get_settings),
) -> AuthService:
    return AuthService(db, signer, settings)


async def get_user_service(db: AsyncSession = Depends(get_db)) -> UserService:
    return UserService(db)


def get_client_ip(request: Request) -> str:
    """
    Extract client IP address from request.
    Handles X-Forwarded-For header for proxied requests.
    """
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        # Take the first IP (original client)
        return forwarded.split(",")[0].strip()

    if request.client:
        return request.client.host

    return "unknown"
