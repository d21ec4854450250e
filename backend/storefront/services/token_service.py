# Overview: Service-layer operations for opaque tokens (session ids, CSRF tokens).

"""
Opaque token generation

Tokens are random bytes from the OS CSPRNG, URL-safe base64 encoded.
They carry no structure; uniqueness is only probabilistic, so callers that
need it (session ids) check the store and retry.

WHY secrets.token_bytes: Cryptographically secure PRNG.
DO NOT use random.random() or uuid4() for auth tokens!
"""

import base64
import hashlib
import re
import secrets

from ..errors import EntropyError


DEFAULT_TOKEN_BYTES = 32   # 256 bits
MIN_TOKEN_BYTES = 16
MAX_TOKEN_LENGTH = 128

_TOKEN_RE = re.compile(r"[A-Za-z0-9_-]+")


def generate_token(byte_length: int = DEFAULT_TOKEN_BYTES) -> str:
    """
    Generate a URL-safe token from byte_length bytes of secure randomness.

    Raises EntropyError if the OS random source fails. There is no fallback
    to a weaker generator.
    """
    if byte_length < MIN_TOKEN_BYTES:
        raise ValueError(f"Tokens need at least {MIN_TOKEN_BYTES} bytes of entropy")

    try:
        raw = secrets.token_bytes(byte_length)
    except (OSError, NotImplementedError) as exc:
        raise EntropyError("Secure random source unavailable") from exc

    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def is_well_formed(token) -> bool:
    """True if token looks like something generate_token() could have produced."""
    if not isinstance(token, str) or not token:
        return False
    if len(token) > MAX_TOKEN_LENGTH:
        return False
    return _TOKEN_RE.fullmatch(token) is not None


def hash_token(token: str) -> str:
    """
    Hash token for database storage using SHA-256.

    WHY SHA-256 not bcrypt: Tokens are already high-entropy (unlike passwords).
    """
    return hashlib.sha256(token.encode('utf-8')).hexdigest()
