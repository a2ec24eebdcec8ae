"""
User profile endpoints.

`{user_id}` accepts the literal `me` for the caller's own id.
"""

from fastapi import APIRouter, Depends, status

from app.auth.guard import Identity, resolve_me
from app.auth.roles import Role, allow
from app.auth.dependencies import get_user_service
from app.schemas.common import ErrorResponse
from app.schemas.user import UserResponse, UserUpdate, user_to_response
from app.services.users import UserService

router = APIRouter(dependencies=[Depends(resolve_me)])


@router.get(
    "/{user_id}",
    response_model=UserResponse,
    responses={
        status.HTTP_403_FORBIDDEN: {"model": ErrorResponse},
        status.HTTP_404_NOT_FOUND: {"model": ErrorResponse},
    },
    summary="Get user profile",
)
async def get_user(
    user_id: str,
    identity: Identity = Depends(allow(Role.AUTHENTICATED)),
    service: UserService = Depends(get_user_service),
):
    """Retrieve a user profile by ID. Any signed-in user may view any profile."""
    return user_to_response(await service.get_user(user_id))


@router.patch(
    "/{user_id}",
    response_model=UserResponse,
    responses={
        status.HTTP_403_FORBIDDEN: {"model": ErrorResponse},
        status.HTTP_404_NOT_FOUND: {"model": ErrorResponse},
        status.HTTP_409_CONFLICT: {"model": ErrorResponse},
    },
    summary="Update user profile",
)
async def update_user(
    user_id: str,
    body: UserUpdate,
    identity: Identity = Depends(allow(Role.ADMIN, Role.RESOURCE_OWNER)),
    service: UserService = Depends(get_user_service),
):
    """
    Update profile fields such as username.

    Requires: admin role or ownership of the profile
    """
    user = await service.update_user(user_id, username=body.username)
    return user_to_response(user)
