"""
Authentication guard.

`AuthGuardMiddleware` runs on every request. It reads a bearer token from
the `Authorization` header, verifies it as an access token and stores the
caller's `Identity` (or None) on `request.state.identity`. It never rejects
a request itself; `allow(...)` in `app.auth.roles` does that, which lets
endpoints be public, optional-auth or protected.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from app.auth.jwt import JwtSigner, TokenType
from app.core.errors import AuthenticationError

ME = "me"


@dataclass(frozen=True)
class Identity:
    """Caller resolved from a verified access token."""

    user_id: str
    username: str
    roles: tuple[str, ...] = field(default_factory=tuple)

    def has_role(self, role: str) -> bool:
        return role in self.roles


def get_bearer_token(request: Request) -> Optional[str]:
    """Return the credential from `Authorization: Bearer <token>`, if any."""
    auth = request.headers.get("authorization")
    if not auth:
        return None
    scheme, _, credentials = auth.partition(" ")
    if scheme.lower() != "bearer":
        return None
    return credentials.strip() or None


def identity_from_claims(claims: Optional[dict[str, Any]]) -> Optional[Identity]:
    """Build an Identity from verified claims; anything but an access token yields None."""
    if not claims or claims.get("tt") != TokenType.AUTH.value:
        return None
    subject = claims.get("sub")
    if not isinstance(subject, str) or not subject:
        return None
    roles = claims.get("roles")
    if not isinstance(roles, (list, tuple)):
        roles = ()
    return Identity(
        user_id=subject,
        username=claims.get("username") or "",
        roles=tuple(role for role in roles if isinstance(role, str)),
    )


class AuthGuardMiddleware(BaseHTTPMiddleware):
    """Attach `request.state.identity` for every request."""

    def __init__(self, app, signer: JwtSigner):
        super().__init__(app)
        self.signer = signer

    async def dispatch(self, request: Request, call_next: Callable):
        token = get_bearer_token(request)
        request.state.identity = (
            identity_from_claims(self.signer.verify(token)) if token else None
        )
        return await call_next(request)


def get_identity(request: Request) -> Optional[Identity]:
    """Dependency returning the identity the guard attached, or None."""
    return getattr(request.state, "identity", None)


class MeResolver:
    """
    Rewrite a `me` path parameter to the caller's user id.

    Runs as a dependency before role checks and before the endpoint's own
    path parameters are read, so handlers only ever see real ids.

    Usage:
        router = APIRouter(dependencies=[Depends(resolve_me)])
    """

    def __init__(self, param: str = "user_id"):
        self.param = param

    async def __call__(self, request: Request) -> None:
        params = request.path_params
        if params.get(self.param) != ME:
            return

        identity = get_identity(request)
        if identity is None:
            raise AuthenticationError("Authentication required to resolve 'me'")
        params[self.param] = identity.user_id


resolve_me = MeResolver()
