"""
Role-based authorization.

A role is a named, stateless predicate over `(identity, path params)`.
`allow(*roles)` builds a dependency that grants access when any role
matches, checked in the order given and stopping at the first match.

Usage:
    @router.patch("/{user_id}")
    async def update_user(
        identity: Identity = Depends(allow(Role.ADMIN, Role.RESOURCE_OWNER)),
    ):
        ...
"""

from enum import Enum
from typing import Callable, Mapping, Optional, Union

from fastapi import Depends, Request

from app.auth.guard import Identity, get_identity, resolve_me
from app.core.errors import ForbiddenError
from app.models.user import ADMIN_ROLE

RolePredicate = Callable[[Optional[Identity], Mapping[str, str]], bool]


class Role(str, Enum):
    EVERYONE = "everyone"
    AUTHENTICATED = "authenticated"
    ADMIN = "admin"
    RESOURCE_OWNER = "resource_owner"


def everyone(identity: Optional[Identity], params: Mapping[str, str]) -> bool:
    return True


def authenticated(identity: Optional[Identity], params: Mapping[str, str]) -> bool:
    return identity is not None


def admin(identity: Optional[Identity], params: Mapping[str, str]) -> bool:
    return identity is not None and identity.has_role(ADMIN_ROLE)


def owner_of(param: str) -> RolePredicate:
    """Predicate matching when the caller's id equals path param `param`."""

    def resource_owner(identity: Optional[Identity], params: Mapping[str, str]) -> bool:
        if identity is None:
            return False
        target = params.get(param)
        return target is not None and identity.user_id == target

    return resource_owner


ROLE_PREDICATES: dict[Role, RolePredicate] = {
    Role.EVERYONE: everyone,
    Role.AUTHENTICATED: authenticated,
    Role.ADMIN: admin,
    Role.RESOURCE_OWNER: owner_of("user_id"),
}


def _predicate_for(role: Union[Role, str, RolePredicate]) -> RolePredicate:
    if callable(role):
        return role
    return ROLE_PREDICATES[Role(role)]


def is_allowed(
    predicates: list[RolePredicate],
    identity: Optional[Identity],
    params: Mapping[str, str],
) -> bool:
    return any(predicate(identity, params) for predicate in predicates)


def allow(*roles: Union[Role, str, RolePredicate]):
    """
    Dependency factory granting access if any of `roles` matches.

    Roles are given by name (`Role.ADMIN`, "admin") or as predicates such as
    `owner_of("account_id")`. On no match the request fails with 403 and a
    generic message.

    Returns:
        Dependency returning the caller's identity (None for public roles)
    """
    if not roles:
        raise ValueError("allow() needs at least one role")
    predicates = [_predicate_for(role) for role in roles]

    async def role_checker(
        request: Request,
        _resolved: None = Depends(resolve_me),
        identity: Optional[Identity] = Depends(get_identity),
    ) -> Optional[Identity]:
        if not is_allowed(predicates, identity, request.path_params):
            raise ForbiddenError("Forbidden")
        return identity

    return role_checker
