"""
API Router configuration.

Aggregates all v1 API endpoints with proper tagging and prefixes.
"""

from fastapi import APIRouter

from app.api.v1.endpoints import auth, health, users

api_router = APIRouter()

api_router.include_router(
    health.router,
    prefix="/health",
    tags=["health"]
)

# Authentication (public: sign-up, sign-in, sign-out, refresh)
api_router.include_router(
    auth.router,
    prefix="/auth",
    tags=["auth"]
)

# User profiles (role-checked per route)
api_router.include_router(
    users.router,
    prefix="/users",
    tags=["users"]
)
