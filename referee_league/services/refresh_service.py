"""
Periodic background refresh.

Runs ``smart_sync`` on a fixed interval with APScheduler. A new scheduler is
created on each ``start`` because a shut-down scheduler cannot be restarted.
"""
import logging
from typing import Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from ..utils.constants import DEFAULT_REFRESH_INTERVAL_SECONDS
from .server_client import CancellationToken
from .sync_service import LeagueSyncService, SyncResult

logger = logging.getLogger(__name__)

REFRESH_JOB_ID = "league-refresh"


class PeriodicRefreshService:
    """Cancellable scheduled task that keeps a client in step with the server."""

    def __init__(self, sync_service: LeagueSyncService,
                 interval_seconds: float = DEFAULT_REFRESH_INTERVAL_SECONDS):
        if interval_seconds <= 0:
            raise ValueError("Refresh interval must be positive")
        self.sync_service = sync_service
        self.interval_seconds = interval_seconds
        self._scheduler: Optional[BackgroundScheduler] = None
        self._cancel_token = CancellationToken()

    @property
    def is_running(self) -> bool:
        return self._scheduler is not None and self._scheduler.running

    def start(self) -> None:
        if self.is_running:
            return
        self._cancel_token = CancellationToken()
        self._scheduler = BackgroundScheduler()
        # One run at a time; missed runs collapse into one.
        self._scheduler.add_job(
            self.run_now,
            IntervalTrigger(seconds=self.interval_seconds),
            id=REFRESH_JOB_ID,
            max_instances=1,
            coalesce=True,
        )
        self._scheduler.start()
        logger.info("Periodic refresh started (every %s seconds)", self.interval_seconds)

    def stop(self) -> None:
        """
        Stop scheduling refreshes.

        A refresh already in flight is told to discard its result; its
        outstanding request still runs until its timeout.
        """
        self._cancel_token.cancel()
        if self._scheduler is not None:
            if self._scheduler.running:
                self._scheduler.shutdown(wait=False)
            self._scheduler = None
            logger.info("Periodic refresh stopped")

    def run_now(self) -> SyncResult:
        result = self.sync_service.smart_sync(self._cancel_token)
        if result.skipped:
            logger.debug("Refresh skipped: previous sync still running")
        elif not result.success:
            logger.warning("Refresh failed: %s", result.message)
        return result
