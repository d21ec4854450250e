# Overview: Background thread that periodically deletes expired sessions.

from __future__ import annotations

import threading

from flask import Flask

from .session_service import sweep_expired_sessions


class SessionSweeper:
    """
    Runs sweep_expired_sessions() every `interval` seconds on its own thread.

    stop() wakes the thread and waits for it, so shutdown never sits out the
    remainder of an interval. A failed sweep is logged and the loop carries on.
    """

    def __init__(self, app: Flask, interval: float | None = None):
        self.app = app
        self.interval = interval if interval is not None else app.config["SESSION_SWEEP_INTERVAL"]
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> "SessionSweeper":
        if self.running:
            return self
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="session-sweeper", daemon=True)
        self._thread.start()
        self.app.logger.info("Session sweeper started (every %ss)", self.interval)
        return self

    def stop(self, timeout: float | None = 10.0) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            if self._thread.is_alive():
                self.app.logger.warning("Session sweeper did not stop within %ss", timeout)
            self._thread = None

    def run_once(self) -> int | None:
        """Sweep now. Returns the number removed, or None if the sweep failed."""
        with self.app.app_context():
            try:
                return sweep_expired_sessions()
            except Exception:
                self.app.logger.exception("Session sweep failed")
                return None

    def _run(self) -> None:
        # Event.wait returns True once stop() is called
        while not self._stop.wait(self.interval):
            self.run_once()
