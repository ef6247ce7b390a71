"""Database session management for the local bookmark store.

``DatabaseSessionManager`` owns the SQLite connection settings, creates the
schema and runs blocking peewee calls in worker threads so that async code
never blocks the event loop.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import peewee
from playhouse.sqlite_ext import SqliteExtDatabase

from raindrop_sync.adapters.raindrop.sync.constants import ROOT_ID, TOOLBAR_ID
from raindrop_sync.core.backoff import backoff_delay
from raindrop_sync.db.models import ALL_MODELS, BookmarkNode, database_proxy

DB_OPERATION_TIMEOUT = 30.0
DB_MAX_RETRIES = 3

# Well-known folders every store starts with: (id, parent id, title, position).
SEED_FOLDERS: tuple[tuple[str, str | None, str, int], ...] = (
    (ROOT_ID, None, "", 0),
    (TOOLBAR_ID, ROOT_ID, "Bookmarks Toolbar", 0),
)


def _is_locked(exc: peewee.OperationalError) -> bool:
    message = str(exc).lower()
    return "locked" in message or "busy" in message


@dataclass
class DatabaseSessionManager:
    """Peewee-backed database session manager.

    Attributes:
        path: Path to the SQLite database file
        operation_timeout: Default timeout for database operations in seconds
        max_retries: Maximum retries when the database is locked or busy
    """

    path: str
    _logger: logging.Logger = field(default_factory=lambda: logging.getLogger(__name__))
    _database: peewee.SqliteDatabase = field(init=False)
    _write_lock: asyncio.Lock = field(init=False)

    operation_timeout: float = field(default=DB_OPERATION_TIMEOUT)
    max_retries: int = field(default=DB_MAX_RETRIES)

    def __post_init__(self) -> None:
        if self.path != ":memory:":
            Path(self.path).parent.mkdir(parents=True, exist_ok=True)

        self._database = SqliteExtDatabase(
            self.path,
            pragmas={
                "journal_mode": "wal",
                "synchronous": "normal",
                "foreign_keys": 1,
            },
            check_same_thread=False,
        )
        database_proxy.initialize(self._database)
        # SQLite allows one writer at a time; serialise writes in-process.
        self._write_lock = asyncio.Lock()

    @property
    def database(self) -> peewee.SqliteDatabase:
        """Access the underlying Peewee database instance."""
        return self._database

    def connection_context(self) -> Any:
        """Return a connection context manager."""
        return self._database.connection_context()

    def migrate(self) -> None:
        """Create tables and seed the root and toolbar folders."""
        with self._database.connection_context(), self._database.bind_ctx(ALL_MODELS):
            self._database.create_tables(ALL_MODELS, safe=True)
            with self._database.atomic():
                for node_id, parent_id, title, position in SEED_FOLDERS:
                    (
                        BookmarkNode.insert(
                            id=node_id, parent=parent_id, title=title, position=position
                        )
                        .on_conflict_ignore()
                        .execute()
                    )
        self._logger.info("db_migrated", extra={"path": self._mask_path(self.path)})

    def close(self) -> None:
        if not self._database.is_closed():
            self._database.close()

    async def _safe_db_operation(
        self,
        operation: Any,
        *args: Any,
        timeout: float | None = None,
        operation_name: str = "database_operation",
        read_only: bool = False,
        **kwargs: Any,
    ) -> Any:
        """Execute a blocking database operation in a thread with timeout and retry.

        Raises:
            TimeoutError: If the operation times out
            peewee.OperationalError: If the database stays locked after retries
            peewee.IntegrityError: If a constraint is violated
        """
        if timeout is None:
            timeout = self.operation_timeout

        def _op_wrapper() -> Any:
            with self._database.connection_context():
                return operation(*args, **kwargs)

        async def _run() -> Any:
            if read_only:
                # WAL mode lets readers run alongside the single writer.
                return await asyncio.to_thread(_op_wrapper)
            async with self._write_lock:
                return await asyncio.to_thread(_op_wrapper)

        extra: dict[str, Any] = {"operation": operation_name}
        for attempt in range(self.max_retries + 1):
            try:
                return await asyncio.wait_for(_run(), timeout=timeout)
            except TimeoutError:
                self._logger.exception("db_operation_timeout", extra={**extra, "timeout": timeout})
                raise
            except peewee.IntegrityError as exc:
                self._logger.exception("db_integrity_error", extra={**extra, "error": str(exc)})
                raise
            except peewee.OperationalError as exc:
                if not _is_locked(exc) or attempt == self.max_retries:
                    self._logger.exception(
                        "db_operational_error",
                        extra={**extra, "retries": attempt, "error": str(exc)},
                    )
                    raise
                wait_time = backoff_delay(attempt + 1, base_delay=0.1, max_delay=2.0)
                self._logger.warning(
                    "db_locked_retrying",
                    extra={**extra, "retry": attempt + 1, "wait_time": wait_time},
                )
                await asyncio.sleep(wait_time)
        raise AssertionError("unreachable")  # pragma: no cover

    @staticmethod
    def _mask_path(path: str) -> str:
        p = Path(path)
        if not p.name:
            return "..."
        parent = p.parent.name
        return f".../{parent}/{p.name}" if parent else p.name
