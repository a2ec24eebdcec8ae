"""
JWT signing and verification.

Security measures:
- Asymmetric signatures only (ES256 by default); the private key stays on
  the signing side, the public key may be handed to verifier-only code
- Every token carries a type tag (`tt`) so tokens cannot be cross-used
- Verification failure is an expected outcome and returns None
- Signature checks are delegated to the crypto backend, never compared
  byte-by-byte here
"""

import time
from datetime import datetime
from enum import Enum
from typing import Any, Optional, Union

from jose import jwt
from jose.exceptions import JOSEError

from app.core.config import ASYMMETRIC_ALGORITHMS, Settings
from app.core.logging import get_logger

logger = get_logger(__name__)

Timestamp = Union[int, float, datetime]


class TokenType(str, Enum):
    """Values of the `tt` claim."""
    AUTH = "auth"
    REFRESH = "refresh"
    MAGIC_LINK = "magic_link"
    PASSWORD_RESET = "password_reset"


def _to_epoch(value: Timestamp) -> int:
    if isinstance(value, datetime):
        return int(value.timestamp())
    return int(value)


class JwtSigner:
    """Issues and validates signed, expiring tokens.

    Args:
        public_key: PEM-encoded verification key
        private_key: PEM-encoded signing key; omit for a verify-only instance
        algorithm: One of the asymmetric JWS algorithms
    """

    def __init__(
        self,
        public_key: str,
        private_key: Optional[str] = None,
        algorithm: str = "ES256",
    ) -> None:
        if algorithm not in ASYMMETRIC_ALGORITHMS:
            raise ValueError(f"Unsupported JWT algorithm: {algorithm}")
        self._public_key = public_key
        self._private_key = private_key
        self.algorithm = algorithm

    @classmethod
    def from_settings(cls, settings: Settings) -> "JwtSigner":
        return cls(
            public_key=settings.jwt_public_key,
            private_key=settings.jwt_private_key,
            algorithm=settings.jwt_algorithm,
        )

    @property
    def can_sign(self) -> bool:
        return self._private_key is not None

    def sign(
        self,
        claims: dict[str, Any],
        ttl_seconds: Optional[int] = None,
        *,
        expires_at: Optional[Timestamp] = None,
        not_before: Optional[Timestamp] = None,
        issued_at: Union[bool, Timestamp] = True,
    ) -> str:
        """
        Sign `claims` into a compact JWS string.

        `iat` is set to now unless `issued_at` is False (omit) or an explicit
        timestamp. `exp` comes from `expires_at` when given, otherwise from
        `ttl_seconds` relative to now.

        Raises:
            RuntimeError: If this instance holds no private key
        """
        if self._private_key is None:
            raise RuntimeError("JwtSigner has no private key; it can only verify")

        now = int(time.time())
        payload = {
            key: value
            for key, value in claims.items()
            if key not in {"iat", "exp", "nbf"}
        }

        if issued_at is True:
            payload["iat"] = now
        elif issued_at is not False:
            payload["iat"] = _to_epoch(issued_at)

        if expires_at is not None:
            payload["exp"] = _to_epoch(expires_at)
        elif ttl_seconds is not None:
            payload["exp"] = now + int(ttl_seconds)

        if not_before is not None:
            payload["nbf"] = _to_epoch(not_before)

        return jwt.encode(payload, self._private_key, algorithm=self.algorithm)

    def verify(self, token: str) -> Optional[dict[str, Any]]:
        """
        Verify signature, `exp` and `nbf` and return the claims.

        Returns None for malformed tokens, bad signatures, expired tokens and
        tokens that are not yet valid. Checking `tt` is up to the caller.
        """
        try:
            return jwt.decode(token, self._public_key, algorithms=[self.algorithm])
        except JOSEError as e:
            logger.debug("jwt_verify_failed", reason=type(e).__name__)
            return None
