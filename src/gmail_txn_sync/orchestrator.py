"""Fan-out of per-user syncs onto a thread pool, with session and overlap checks."""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait as wait_futures

from .constants import SYNC_WORKERS
from .models import SyncResult
from .store import Database
from .sync import IncrementalSyncEngine, build_engine

logger = logging.getLogger(__name__)

NOT_LOGGED_IN = "not logged in"
ALREADY_RUNNING = "sync already in progress"


class SyncOrchestrator:
    """Entry point for manual and scheduled Gmail syncs.

    A user is synced only while they hold an active session.  At most one run
    per user is in flight at any time; different users run concurrently.
    """

    def __init__(
        self,
        db: Database,
        engine: IncrementalSyncEngine,
        max_workers: int = SYNC_WORKERS,
    ) -> None:
        self.db = db
        self.engine = engine
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="gmail-sync")
        self._lock = threading.Lock()
        self._in_flight: set[str] = set()

    @classmethod
    def from_settings(cls, settings, db: Database, **engine_kwargs) -> SyncOrchestrator:
        return cls(db, build_engine(settings, db, **engine_kwargs), max_workers=settings.SYNC_WORKERS)

    def sync_one(self, user_id: str) -> SyncResult:
        """Synchronously sync one logged-in user."""
        if not self.db.sessions.has_active_session(user_id):
            logger.info("Skipping Gmail sync for user %s: no active session", user_id)
            return SyncResult.failed(NOT_LOGGED_IN)
        return self._run(user_id)

    def eligible_users(self) -> list[str]:
        return [
            cred.user_id
            for cred in self.db.credentials.all()
            if cred.has_refresh_token and self.db.sessions.has_active_session(cred.user_id)
        ]

    def sweep_all(self, wait: bool = False) -> dict[str, Future]:
        """Dispatch one sync per eligible user; optionally block until all finish."""
        users = self.eligible_users()
        logger.info("Gmail sweep: %d eligible users", len(users))

        futures = {user_id: self._executor.submit(self._run, user_id) for user_id in users}
        if wait and futures:
            wait_futures(futures.values())
        return futures

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)

    def _run(self, user_id: str) -> SyncResult:
        with self._lock:
            if user_id in self._in_flight:
                logger.info("Gmail sync for user %s already running; skipping", user_id)
                return SyncResult.failed(ALREADY_RUNNING)
            self._in_flight.add(user_id)

        try:
            return self.engine.sync_user(user_id)
        except Exception as exc:  # noqa: BLE001
            logger.exception("Gmail sync failed for user %s", user_id)
            return SyncResult.failed(str(exc))
        finally:
            with self._lock:
                self._in_flight.discard(user_id)

    # --- context manager ---

    def __enter__(self) -> SyncOrchestrator:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:  # noqa: ANN001
        self.shutdown()
