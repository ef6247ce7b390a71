"""SQLite implementation of the sync run history."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any

from raindrop_sync.core.time_utils import UTC, ensure_utc, to_naive_utc
from raindrop_sync.db.models import SyncRun, model_to_dict
from raindrop_sync.infrastructure.persistence.sqlite.base import SqliteBaseRepository

if TYPE_CHECKING:
    from raindrop_sync.adapters.raindrop.models import SyncResult


def _run_to_dict(record: SyncRun | None) -> dict[str, Any] | None:
    data = model_to_dict(record)
    if data is not None:
        data["started_at"] = ensure_utc(data["started_at"])
        data["finished_at"] = ensure_utc(data["finished_at"])
    return data


class SqliteSyncRunRepositoryAdapter(SqliteBaseRepository):
    """Adapter for SyncRun database operations."""

    async def async_record_run(
        self,
        result: SyncResult,
        *,
        mode: str,
        trigger: str = "manual",
        started_at: datetime | None = None,
        finished_at: datetime | None = None,
    ) -> int:
        """Store the outcome of one finished run.

        Args:
            result: Result returned by the sync service
            mode: Import mode the run used
            trigger: What started the run (manual, scheduled, catch_up)
            started_at: Run start; derived from the result duration if omitted
            finished_at: Run end; defaults to now

        Returns:
            Created record ID
        """
        finished = finished_at or datetime.now(UTC)
        started = started_at or finished - timedelta(seconds=result.duration_seconds)

        def _create() -> int:
            record = SyncRun.create(
                correlation_id=result.correlation_id,
                mode=mode,
                target_folder=result.target_folder_name,
                trigger=trigger,
                success=result.success,
                imported_count=result.imported_count,
                error_message=result.error_message,
                not_found_json=list(result.not_found) or None,
                started_at=to_naive_utc(started),
                finished_at=to_naive_utc(finished),
            )
            return record.id

        return await self._execute(_create, operation_name="record_sync_run")

    async def async_get_last_successful_run(self) -> dict[str, Any] | None:
        def _query() -> dict[str, Any] | None:
            record = (
                SyncRun.select()
                .where(SyncRun.success == True)  # noqa: E712
                .order_by(SyncRun.finished_at.desc(), SyncRun.id.desc())
                .first()
            )
            return _run_to_dict(record)

        return await self._execute(_query, operation_name="get_last_successful_run", read_only=True)

    async def async_get_last_success_time(self) -> datetime | None:
        run = await self.async_get_last_successful_run()
        return run["finished_at"] if run else None

    async def async_get_recent_runs(self, limit: int = 10) -> list[dict[str, Any]]:
        def _query() -> list[dict[str, Any]]:
            query = SyncRun.select().order_by(SyncRun.id.desc()).limit(limit)
            return [_run_to_dict(record) or {} for record in query]

        return await self._execute(_query, operation_name="get_recent_sync_runs", read_only=True)
