# backend/storefront/config.py
from __future__ import annotations
import os
from datetime import timedelta


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/storefront.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///storefront.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # bcrypt cost factor; tests lower this to keep hashing fast
    BCRYPT_ROUNDS = int(os.environ.get("BCRYPT_ROUNDS", "12"))

    # 32 bytes = 256 bits for both session ids and CSRF tokens
    TOKEN_BYTES = 32
    SESSION_LIFETIME = timedelta(hours=24)
    SESSION_ID_MAX_ATTEMPTS = 5

    SESSION_SWEEP_ENABLED = os.environ.get("SESSION_SWEEP_ENABLED", "false").lower() == "true"
    SESSION_SWEEP_INTERVAL = int(os.environ.get("SESSION_SWEEP_INTERVAL", str(24 * 60 * 60)))

    # Upper bound on waiting for a row lock inside a ledger transaction
    LOCK_TIMEOUT_MS = int(os.environ.get("LOCK_TIMEOUT_MS", "5000"))
    STATEMENT_TIMEOUT_MS = int(os.environ.get("STATEMENT_TIMEOUT_MS", "15000"))
