"""Background cleanup of expired refresh tokens."""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Optional

from sqlalchemy.orm import Session

from blogauth.config import settings
from blogauth.core.database import SessionLocal
from blogauth.services.token_store import RefreshTokenStore, refresh_token_store

logger = logging.getLogger(__name__)


class TokenReaper:
    """Periodically deletes refresh-token rows whose expiry has passed."""

    def __init__(
        self,
        store: Optional[RefreshTokenStore] = None,
        session_factory: Callable[[], Session] = SessionLocal,
        interval_seconds: Optional[float] = None,
    ) -> None:
        self.store = store or refresh_token_store
        self.session_factory = session_factory
        self.interval_seconds = interval_seconds or settings.REAPER_INTERVAL_SECONDS
        self._thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()
        self._heartbeat: float = 0.0
        self._purged_count: int = 0
        self._lock = threading.Lock()

    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.is_running():
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run_loop, name="token-reaper", daemon=True)
        self._thread.start()
        logger.info("Token reaper started (interval=%.0fs)", self.interval_seconds)

    def stop(self) -> None:
        self._stop_event.set()
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=5)
        logger.info("Token reaper stopped")

    def status(self) -> dict:
        return {
            "running": self.is_running(),
            "last_heartbeat": self._heartbeat,
            "purged_count": self._purged_count,
        }

    def _run_loop(self) -> None:
        while not self._stop_event.is_set():
            try:
                self.purge_once()
            except Exception as exc:
                logger.exception("Token reaper pass failed: %s", exc)
            self._heartbeat = time.time()
            self._stop_event.wait(max(1.0, self.interval_seconds))

    def purge_once(self) -> int:
        db = self.session_factory()
        try:
            purged = self.store.purge_expired(db)
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

        with self._lock:
            self._purged_count += purged
        if purged:
            logger.info("Purged %d expired refresh token(s)", purged)
        return purged


token_reaper = TokenReaper()
