# Overview: Service-layer operations for password hashing; the credential store.

"""
Password hashing with bcrypt

WHY bcrypt: slow, salted and cost-parameterized. The stored hash embeds its
own salt and cost factor, so verification needs nothing but the hash.

SECURITY NOTES:
- Cost factor from BCRYPT_ROUNDS (12 by default)
- bcrypt only reads the first 72 bytes; longer passwords are refused at
  hashing time instead of being silently truncated
- bcrypt.checkpw() compares in constant time
"""

from functools import lru_cache

import bcrypt
from flask import current_app, has_app_context

from ..errors import HashingError, PasswordValidationError


MAX_PASSWORD_BYTES = 72
DEFAULT_ROUNDS = 12

# Verified against when the username is unknown
_DUMMY_PASSWORD = b"storefront-dummy-password"


def _encode(password: str) -> bytes:
    return password.encode('utf-8')


def validate_password(password: str) -> None:
    """
    Raises PasswordValidationError if password can't be hashed faithfully.
    """
    if not isinstance(password, str) or not password:
        raise PasswordValidationError("Password is required")

    if len(_encode(password)) > MAX_PASSWORD_BYTES:
        raise PasswordValidationError(
            f"Password must be at most {MAX_PASSWORD_BYTES} bytes"
        )


def _configured_rounds() -> int:
    if has_app_context():
        return current_app.config.get("BCRYPT_ROUNDS", DEFAULT_ROUNDS)
    return DEFAULT_ROUNDS


def hash_password(password: str, rounds: int | None = None) -> str:
    """
    Hash password using bcrypt.

    Raises PasswordValidationError for empty or over-long passwords and
    HashingError if salt generation or hashing fails (e.g. the OS random
    source is unavailable).
    """
    validate_password(password)

    if rounds is None:
        rounds = _configured_rounds()

    try:
        salt = bcrypt.gensalt(rounds=rounds)
        hashed = bcrypt.hashpw(_encode(password), salt)
    except (OSError, ValueError) as exc:
        raise HashingError("Password hashing failed") from exc

    return hashed.decode('utf-8')  # Store as string in database


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify password against bcrypt hash.

    Returns True if password matches hash, False otherwise. Never raises:
    malformed hashes and over-long passwords simply don't match.

    Every path costs one bcrypt check, so rejecting an empty or over-long
    password takes as long as rejecting a wrong one.
    """
    if not password or not password_hash:
        dummy_verify(password)
        return False

    encoded = _encode(password)
    if len(encoded) > MAX_PASSWORD_BYTES:
        dummy_verify(password)
        return False

    try:
        return bcrypt.checkpw(encoded, password_hash.encode('utf-8'))
    except ValueError:
        # Malformed or foreign hash format
        return False


@lru_cache(maxsize=4)
def _dummy_hash(rounds: int) -> bytes:
    return bcrypt.hashpw(_DUMMY_PASSWORD, bcrypt.gensalt(rounds=rounds))


def dummy_verify(password: str) -> None:
    """Burn one bcrypt verification so a missing user costs as much as a wrong password."""
    encoded = _encode(password if isinstance(password, str) else "")[:MAX_PASSWORD_BYTES]
    bcrypt.checkpw(encoded or b"x", _dummy_hash(_configured_rounds()))
