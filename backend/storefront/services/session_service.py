# Overview: Service-layer operations for session; login, validation and expiry sweep.

"""
Session Management Service

WHY: A login produces two tokens. The session id is the bearer credential
(unguessable, meant for an HTTP-only cookie); the CSRF token must be read by
the caller's script and echoed back with every request. A request is only
authorized when both match the same stored session, which a cross-site
request can't arrange.

Lifecycle: Created -> Active -> Expired. There is no logout/revocation.
Expired sessions are rejected on lookup straight away and physically
deleted by sweep_expired_sessions() (see sweeper_service.py).

SECURITY FEATURES:
- Cryptographically secure random tokens (32 bytes each)
- Session ids hashed with SHA-256 before storage
- 24-hour absolute lifetime (SESSION_LIFETIME)
- Every authorization failure raises the same Unauthorized
- Originating IP recorded for security monitoring
"""

from dataclasses import dataclass
from datetime import datetime, timedelta

from flask import current_app

from ..errors import InfrastructureError, SessionIdExhausted, Unauthorized
from ..extensions import db
from ..models import User, UserSession
from storefront.time_utils import utcnow
from .auth_service import authenticate
from .concurrency import transaction
from .token_service import DEFAULT_TOKEN_BYTES, generate_token, hash_token, is_well_formed


# Configuration defaults (overridable through app.config)
SESSION_LIFETIME = timedelta(hours=24)
SESSION_ID_MAX_ATTEMPTS = 5


@dataclass(frozen=True)
class IssuedSession:
    """
    Returned once by login(). session_id is the only copy of the plaintext
    bearer credential; the database keeps its hash.
    """
    session_id: str
    csrf_token: str
    user_id: int
    expires_at: datetime


@dataclass(frozen=True)
class Principal:
    """Authenticated caller, passed explicitly to whatever acts on its behalf."""
    user_id: int
    session_pk: int
    expires_at: datetime


def _config(key: str, default):
    return current_app.config.get(key, default)


def _find_session(session_id: str) -> UserSession | None:
    return db.session.query(UserSession).filter_by(
        session_id_hash=hash_token(session_id)
    ).first()


def _generate_unique_session_id(byte_length: int, max_attempts: int) -> str:
    """
    Draw session ids until one is not already stored.

    Bounded so a misbehaving store can't spin us forever.
    """
    for attempt in range(max_attempts):
        candidate = generate_token(byte_length)
        if _find_session(candidate) is None:
            return candidate
        current_app.logger.warning(
            "Session id collision (attempt %d of %d)", attempt + 1, max_attempts
        )

    raise SessionIdExhausted(f"No unique session id after {max_attempts} attempts")


def _touch_last_login(user_id: int, now: datetime) -> None:
    """Best-effort: a failure here is logged and never aborts the caller."""
    try:
        with transaction():
            db.session.query(User).filter_by(id=user_id).update(
                {"last_login_at": now}, synchronize_session=False
            )
    except InfrastructureError:
        current_app.logger.exception("Failed to record last login for user %s", user_id)


def create_session(
    user_id: int,
    ip_address: str | None = None,
    now: datetime | None = None,
) -> IssuedSession:
    """
    Persist a new session for user_id and return its plaintext tokens.

    Raises EntropyError if no secure randomness is available and
    SessionIdExhausted if every candidate id collided.
    """
    byte_length = _config("TOKEN_BYTES", DEFAULT_TOKEN_BYTES)
    max_attempts = _config("SESSION_ID_MAX_ATTEMPTS", SESSION_ID_MAX_ATTEMPTS)

    now = now or utcnow()
    expires_at = now + _config("SESSION_LIFETIME", SESSION_LIFETIME)

    with transaction():
        session_id = _generate_unique_session_id(byte_length, max_attempts)
        csrf_token = generate_token(byte_length)

        record = UserSession(
            session_id_hash=hash_token(session_id),
            csrf_token=csrf_token,
            user_id=user_id,
            ip_address=ip_address,
            created_at=now,
            expires_at=expires_at,
        )
        db.session.add(record)

    return IssuedSession(
        session_id=session_id,
        csrf_token=csrf_token,
        user_id=user_id,
        expires_at=expires_at,
    )


def login(username: str, password: str, source_address: str | None = None) -> IssuedSession:
    """
    Authenticate and open a session.

    Raises InvalidCredentials for an unknown username or a wrong password
    (indistinguishable to the caller). last_login_at is updated afterwards,
    best-effort.
    """
    user = authenticate(username, password)
    user_id = user.id

    now = utcnow()
    issued = create_session(user_id, ip_address=source_address, now=now)
    _touch_last_login(user_id, now)

    current_app.logger.info("%r logged in from %s", username, source_address)
    return issued


def validate_session(session_id: str, csrf_token: str, now: datetime | None = None) -> Principal:
    """
    Resolve a (session id, CSRF token) pair to the authenticated Principal.

    Raises Unauthorized if:
    - Either token is missing or malformed
    - No session has this id
    - The session is past expires_at (even if not swept yet)
    - csrf_token is not exactly the token issued with the session

    Refreshes last_login_at on success.
    """
    if not is_well_formed(session_id) or not isinstance(csrf_token, str) or not csrf_token:
        raise Unauthorized()

    now = now or utcnow()

    record = _find_session(session_id)
    if not record:
        raise Unauthorized()

    if now > record.expires_at:
        raise Unauthorized()

    # Plain equality: binds the cookie channel to the header channel
    if not record.csrf_token or csrf_token != record.csrf_token:
        raise Unauthorized()

    principal = Principal(
        user_id=record.user_id,
        session_pk=record.id,
        expires_at=record.expires_at,
    )

    _touch_last_login(principal.user_id, now)
    return principal


def authorize(session_id: str, csrf_token: str) -> int:
    """Return the user id owning a valid session; raises Unauthorized otherwise."""
    return validate_session(session_id, csrf_token).user_id


def list_user_sessions(user_id: int, now: datetime | None = None) -> list[UserSession]:
    """Unexpired sessions held by user_id, newest first."""
    now = now or utcnow()
    return db.session.query(UserSession).filter(
        UserSession.user_id == user_id,
        UserSession.expires_at >= now,
    ).order_by(UserSession.created_at.desc(), UserSession.id.desc()).all()


def sweep_expired_sessions(now: datetime | None = None) -> int:
    """
    Delete every session with expires_at < now.

    Returns count of sessions deleted. A single DELETE statement, so no lock
    is held longer than that statement.
    """
    now = now or utcnow()

    with transaction():
        deleted = db.session.query(UserSession).filter(
            UserSession.expires_at < now
        ).delete(synchronize_session=False)

    current_app.logger.info("Swept %d expired sessions", deleted)
    return deleted
