import time
from datetime import timedelta

from storefront.extensions import db
from storefront.models import User, UserSession
from storefront.services import sweeper_service
from storefront.services.sweeper_service import SessionSweeper
from storefront.services.token_service import hash_token
from storefront.time_utils import utcnow


def _seed_sessions(app):
    with app.app_context():
        user = User(username="sweepme", password_hash="x", balance_cents=0)
        db.session.add(user)
        db.session.flush()
        now = utcnow()
        db.session.add_all([
            UserSession(session_id_hash=hash_token("old"), csrf_token="c1",
                        user_id=user.id, expires_at=now - timedelta(minutes=5)),
            UserSession(session_id_hash=hash_token("new"), csrf_token="c2",
                        user_id=user.id, expires_at=now + timedelta(hours=1)),
        ])
        db.session.commit()


def _session_count(app):
    with app.app_context():
        return db.session.query(UserSession).count()


def test_run_once_sweeps(file_app):
    _seed_sessions(file_app)

    assert SessionSweeper(file_app, interval=3600).run_once() == 1
    assert _session_count(file_app) == 1


def test_background_loop_sweeps_and_stops(file_app):
    _seed_sessions(file_app)
    sweeper = SessionSweeper(file_app, interval=0.05).start()
    try:
        deadline = time.monotonic() + 5
        while _session_count(file_app) != 1 and time.monotonic() < deadline:
            time.sleep(0.05)
    finally:
        sweeper.stop()

    assert _session_count(file_app) == 1
    assert not sweeper.running


def test_stop_does_not_wait_for_interval(file_app):
    sweeper = SessionSweeper(file_app, interval=3600).start()
    assert sweeper.running

    started = time.monotonic()
    sweeper.stop()

    assert time.monotonic() - started < 2
    assert not sweeper.running


def test_start_is_idempotent(file_app):
    sweeper = SessionSweeper(file_app, interval=3600).start()
    thread = sweeper._thread
    try:
        assert sweeper.start()._thread is thread
    finally:
        sweeper.stop()


def test_failed_sweep_is_logged_not_raised(file_app, monkeypatch, caplog):
    def broken_sweep():
        raise RuntimeError("database on fire")

    monkeypatch.setattr(sweeper_service, "sweep_expired_sessions", broken_sweep)

    assert SessionSweeper(file_app, interval=3600).run_once() is None
    assert "Session sweep failed" in caplog.text


def test_interval_defaults_to_config(file_app):
    assert SessionSweeper(file_app).interval == file_app.config["SESSION_SWEEP_INTERVAL"]
