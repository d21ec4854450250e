# backend/storefront/__init__.py
import atexit
import logging

from flask import Flask

from .config import Config
from .extensions import db, install_sqlite_locking, migrate


def _engine_options(app: Flask) -> dict:
    """SQLite waits on the busy handler instead of a lock_timeout setting."""
    uri = app.config["SQLALCHEMY_DATABASE_URI"]
    options = dict(app.config.get("SQLALCHEMY_ENGINE_OPTIONS", {}))
    if uri.startswith("sqlite"):
        connect_args = dict(options.get("connect_args", {}))
        connect_args.setdefault("timeout", app.config["LOCK_TIMEOUT_MS"] / 1000.0)
        options["connect_args"] = connect_args
    return options


def create_app(config: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if config:
        app.config.update(config)

    app.config["SQLALCHEMY_ENGINE_OPTIONS"] = _engine_options(app)
    app.logger.setLevel(getattr(logging, str(app.config["LOG_LEVEL"]).upper(), logging.INFO))

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    with app.app_context():
        for engine in db.engines.values():
            install_sqlite_locking(engine)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    if app.config.get("SESSION_SWEEP_ENABLED"):
        from .services.sweeper_service import SessionSweeper
        sweeper = SessionSweeper(app).start()
        app.extensions["session_sweeper"] = sweeper
        atexit.register(sweeper.stop)

    return app
