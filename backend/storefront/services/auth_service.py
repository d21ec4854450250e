# Overview: Service-layer operations for accounts; registration and credential checks.

"""
Account registration and authentication

WHY: Every session and every ledger mutation hangs off a User. Passwords
are hashed with bcrypt (see password_service.py); the plaintext never
reaches the database.

SECURITY NOTES:
- Username lookups are exact and case-sensitive
- Unknown usernames and wrong passwords raise the same InvalidCredentials,
  after the same amount of bcrypt work
- Session tokens managed separately (see session_service.py)
"""

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..errors import (
    InfrastructureError,
    InvalidCredentials,
    UsernameTaken,
    UsernameValidationError,
    UserNotFound,
)
from ..extensions import db
from ..models import User
from .concurrency import transaction
from .password_service import dummy_verify, hash_password, verify_password


MAX_USERNAME_LENGTH = 64


def validate_username(username: str) -> None:
    if not isinstance(username, str) or not username:
        raise UsernameValidationError("Username is required")

    if len(username) > MAX_USERNAME_LENGTH:
        raise UsernameValidationError(f"Username must be at most {MAX_USERNAME_LENGTH} characters")

    if username != username.strip():
        raise UsernameValidationError("Username must not start or end with whitespace")


def get_user(user_id: int) -> User:
    user = db.session.get(User, user_id)
    if not user:
        raise UserNotFound(user_id)
    return user


def get_user_by_username(username: str) -> User | None:
    return db.session.query(User).filter_by(username=username).first()


def register(username: str, password: str) -> User:
    """
    Create a new account with a zero balance.

    The password is hashed before the username check so the write
    transaction never waits on bcrypt.

    Raises:
        UsernameValidationError / PasswordValidationError: bad input
        UsernameTaken: username already registered (including a concurrent
            registration that wins the unique constraint)
        HashingError: bcrypt failed
    """
    validate_username(username)
    password_hash = hash_password(password)

    try:
        with transaction():
            if get_user_by_username(username):
                raise UsernameTaken(username)

            user = User(username=username, password_hash=password_hash, balance_cents=0)
            db.session.add(user)
    except InfrastructureError as exc:
        # Unique violation: another registration took the name between
        # check and insert
        if isinstance(exc.__cause__, IntegrityError):
            raise UsernameTaken(username) from exc.__cause__
        raise

    current_app.logger.info("%r registered", username)
    return user


def authenticate(username: str, password: str) -> User:
    """
    Return the User for a valid username/password pair.

    Raises InvalidCredentials otherwise, without revealing whether the
    username exists.
    """
    user = get_user_by_username(username) if username else None

    if not user:
        dummy_verify(password)
        raise InvalidCredentials()

    if not verify_password(password, user.password_hash):
        raise InvalidCredentials()

    return user
