"""Background scheduler for periodic Raindrop imports."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.date import DateTrigger
from apscheduler.triggers.interval import IntervalTrigger

from raindrop_sync.adapters.raindrop.models import SyncSettings
from raindrop_sync.adapters.raindrop.sync.service import RaindropSyncService
from raindrop_sync.core.time_utils import UTC, ensure_utc
from raindrop_sync.infrastructure.persistence.sqlite.repositories import (
    SqliteBookmarkStoreAdapter,
    SqliteSyncRunRepositoryAdapter,
)

if TYPE_CHECKING:
    from raindrop_sync.adapters.raindrop.models import SyncResult
    from raindrop_sync.config import AppConfig
    from raindrop_sync.db.session import DatabaseSessionManager

logger = logging.getLogger(__name__)

SYNC_JOB_ID = "raindrop_sync"
CATCH_UP_JOB_ID = "raindrop_sync_catch_up"


class SchedulerService:
    """Runs the Raindrop import on a fixed interval.

    Only one import runs at a time: APScheduler's ``max_instances=1`` stops
    the interval job from overlapping itself, and ``run_sync`` skips any run
    requested while another one (manual or catch-up) is still going.
    """

    def __init__(
        self,
        cfg: AppConfig,
        db: DatabaseSessionManager,
        *,
        sync_service: RaindropSyncService | None = None,
        run_repository: SqliteSyncRunRepositoryAdapter | None = None,
    ) -> None:
        """Initialize scheduler service.

        Args:
            cfg: Application configuration
            db: DatabaseSessionManager instance
            sync_service: Sync service to use; built from ``cfg`` if omitted
            run_repository: Sync run history; built from ``db`` if omitted
        """
        self.cfg = cfg
        self.db = db
        self.sync_service = sync_service or RaindropSyncService.from_config(
            cfg.raindrop, SqliteBookmarkStoreAdapter(db)
        )
        self.runs = run_repository or SqliteSyncRunRepositoryAdapter(db)
        self._scheduler: AsyncIOScheduler | None = None
        self._started = False
        self._sync_in_progress = False

    async def start(self) -> None:
        """Start the scheduler with the configured interval job."""
        if self._started:
            logger.warning("scheduler_already_started")
            return

        self._scheduler = AsyncIOScheduler(timezone=UTC)
        raindrop = self.cfg.raindrop

        if raindrop.auto_sync_enabled:
            self._scheduler.add_job(
                self._run_scheduled_sync,
                trigger=IntervalTrigger(minutes=raindrop.sync_interval_minutes),
                id=SYNC_JOB_ID,
                name="Raindrop Bookmark Import",
                replace_existing=True,
                max_instances=1,  # Prevent overlapping runs
                coalesce=True,
            )
            logger.info(
                "scheduler_raindrop_job_added",
                extra={
                    "job_id": SYNC_JOB_ID,
                    "interval_minutes": raindrop.sync_interval_minutes,
                },
            )
        else:
            logger.info(
                "scheduler_raindrop_job_skipped",
                extra={
                    "has_api_token": bool(raindrop.api_token),
                    "interval_minutes": raindrop.sync_interval_minutes,
                },
            )

        self._scheduler.start()
        self._started = True
        logger.info("scheduler_started")

        if raindrop.auto_sync_enabled and await self.is_sync_overdue():
            self._scheduler.add_job(
                self._run_catch_up_sync,
                trigger=DateTrigger(run_date=datetime.now(UTC)),
                id=CATCH_UP_JOB_ID,
                name="Raindrop Missed Import",
                replace_existing=True,
            )
            logger.info("scheduler_missed_sync_queued", extra={"job_id": CATCH_UP_JOB_ID})

    async def stop(self) -> None:
        """Stop the scheduler gracefully."""
        if self._scheduler and self._started:
            self._scheduler.shutdown(wait=False)
            self._scheduler = None
            self._started = False
            logger.info("scheduler_stopped")

    async def is_sync_overdue(self, now: datetime | None = None) -> bool:
        """True when no successful run happened within the last interval."""
        interval = self.cfg.raindrop.sync_interval_minutes
        if interval <= 0:
            return False
        last_success = ensure_utc(await self.runs.async_get_last_success_time())
        if last_success is None:
            return True
        current = now or datetime.now(UTC)
        return current - last_success >= timedelta(minutes=interval)

    async def run_sync(self, *, trigger: str = "manual", **overrides: Any) -> SyncResult | None:
        """Run one import now and record it; returns None if one is already running.

        ``overrides`` replace individual ``SyncSettings`` fields (token, mode,
        config_value, target_folder_name, flatten).
        """
        if self._sync_in_progress:
            logger.warning("raindrop_sync_skipped_in_progress", extra={"trigger": trigger})
            return None

        self._sync_in_progress = True
        try:
            settings = SyncSettings.from_config(self.cfg.raindrop, **overrides)
            started_at = datetime.now(UTC)
            result = await self.sync_service.import_all(settings)
            await self.runs.async_record_run(
                result,
                mode=settings.mode,
                trigger=trigger,
                started_at=started_at,
                finished_at=datetime.now(UTC),
            )
            return result
        finally:
            self._sync_in_progress = False

    async def _run_scheduled_sync(self) -> None:
        await self._run_logged(trigger="scheduled")

    async def _run_catch_up_sync(self) -> None:
        await self._run_logged(trigger="catch_up")

    async def _run_logged(self, *, trigger: str) -> None:
        logger.info("scheduled_raindrop_sync_starting", extra={"trigger": trigger})
        try:
            result = await self.run_sync(trigger=trigger)
        except Exception as e:
            logger.exception(
                "scheduled_raindrop_sync_failed",
                extra={"trigger": trigger, "error": str(e)},
            )
            return

        if result is None:
            return
        logger.info(
            "scheduled_raindrop_sync_complete",
            extra={
                "trigger": trigger,
                "cid": result.correlation_id,
                "success": result.success,
                "imported": result.imported_count,
                "error": result.error_message,
                "duration_seconds": result.duration_seconds,
            },
        )

    def get_next_run_time(self, job_id: str = SYNC_JOB_ID) -> datetime | None:
        """Next scheduled run time, or None if the job or scheduler is not active."""
        if not self._scheduler or not self._started:
            return None
        job = self._scheduler.get_job(job_id)
        return job.next_run_time if job else None

    @property
    def is_running(self) -> bool:
        """Check if scheduler is running."""
        return self._started and self._scheduler is not None

    @property
    def sync_in_progress(self) -> bool:
        return self._sync_in_progress
