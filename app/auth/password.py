"""
Password hashing primitive.

Argon2id with the RFC 9106 low-memory profile (64 MiB, 3 passes). Hashes
are self-describing PHC strings, so the profile can change later without
invalidating stored hashes.
"""

import secrets
import string

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError
from argon2.profiles import RFC_9106_LOW_MEMORY

_hasher = PasswordHasher.from_parameters(RFC_9106_LOW_MEMORY)

_TEMP_PASSWORD_ALPHABET = string.ascii_letters + string.digits + "-_.!@#"


def hash_password(password: str) -> str:
    return _hasher.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    """True iff `password` matches `password_hash`. Malformed hashes never match."""
    try:
        return _hasher.verify(password_hash, password)
    except (VerificationError, InvalidHashError):
        return False


def generate_temp_password(length: int = 20) -> str:
    """Random password with at least one lowercase, uppercase and digit character."""
    length = max(length, 12)
    while True:
        candidate = "".join(secrets.choice(_TEMP_PASSWORD_ALPHABET) for _ in range(length))
        if (
            any(c.islower() for c in candidate)
            and any(c.isupper() for c in candidate)
            and any(c.isdigit() for c in candidate)
        ):
            return candidate
