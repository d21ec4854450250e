from __future__ import annotations

from ..extensions import db
from storefront.time_utils import to_utc_z, utcnow


class User(db.Model):
    """
    Storefront customer account.

    Balance is held in integer cents and may never go below zero; the
    CHECK constraint backs up the ledger service's own guard.
    """
    __tablename__ = "users"
    __table_args__ = (
        db.CheckConstraint("balance_cents >= 0", name="ck_users_balance_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(64), nullable=False, unique=True, index=True)

    # Bcrypt hashed password (salt and cost embedded)
    password_hash = db.Column(db.String(255), nullable=False)

    balance_cents = db.Column(db.BigInteger, nullable=False, default=0, server_default="0")

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    last_login_at = db.Column(db.DateTime, nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "username": self.username,
            "balance_cents": self.balance_cents,
            "created_at": to_utc_z(self.created_at),
            "last_login_at": to_utc_z(self.last_login_at) if self.last_login_at else None,
        }


class UserSession(db.Model):
    """
    Login session bound to one user and one CSRF token.

    The plaintext session id is handed to the caller once at login; only its
    SHA-256 hash is stored. The CSRF token is stored as issued since the
    caller's script must be able to echo it back.

    Rows past expires_at are logically gone (validation rejects them) and
    physically removed by the periodic sweep.
    """
    __tablename__ = "sessions"
    __table_args__ = (
        db.Index("ix_sessions_user_expires", "user_id", "expires_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    session_id_hash = db.Column(db.String(64), nullable=False, unique=True, index=True)
    csrf_token = db.Column(db.String(128), nullable=False)

    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    # Originating network address (IPv6 max length)
    ip_address = db.Column(db.String(45), nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    expires_at = db.Column(db.DateTime, nullable=False, index=True)

    user = db.relationship("User", backref=db.backref("sessions", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "ip_address": self.ip_address,
            "created_at": to_utc_z(self.created_at),
            "expires_at": to_utc_z(self.expires_at),
        }
