"""Command line entry point for Raindrop imports.

Usage:
    raindrop-sync sync [--mode tag|collection|all] [--value VALUES] [--folder NAME]
                       [--flatten | --no-flatten] [--token TOKEN]
    raindrop-sync collections [--token TOKEN]
    raindrop-sync daemon

Settings come from the environment (see ``raindrop_sync.config``); flags
override them for a single invocation.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import signal
import sys
from typing import TYPE_CHECKING

from raindrop_sync.adapters.raindrop.errors import RaindropSyncError
from raindrop_sync.adapters.raindrop.sync.service import RaindropSyncService
from raindrop_sync.config import load_config
from raindrop_sync.core.logging_utils import setup_json_logging
from raindrop_sync.db.session import DatabaseSessionManager
from raindrop_sync.infrastructure.persistence.sqlite.repositories import (
    SqliteBookmarkStoreAdapter,
)
from raindrop_sync.services.scheduler import SchedulerService

if TYPE_CHECKING:
    from collections.abc import Sequence

    from raindrop_sync.adapters.raindrop.models import CollectionRecord, ProgressUpdate
    from raindrop_sync.config import AppConfig

logger = logging.getLogger("raindrop_sync.cli")

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_CONFIG = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="raindrop-sync",
        description="Import Raindrop.io bookmarks into the local bookmark store.",
    )
    parser.add_argument("--log-level", default=None, help="Override LOG_LEVEL")
    parser.add_argument("--db", dest="db_path", default=None, help="Override BOOKMARKS_DB_PATH")
    commands = parser.add_subparsers(dest="command", required=True)

    sync = commands.add_parser("sync", help="Run one import now")
    sync.add_argument("--token", default=None, help="Raindrop API token")
    sync.add_argument("--mode", choices=("tag", "collection", "all"), default=None)
    sync.add_argument(
        "--value", dest="config_value", default=None, help="Comma-separated tags or collections"
    )
    sync.add_argument("--folder", dest="target_folder_name", default=None, help="Target folder")
    sync.add_argument(
        "--flatten",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Put every bookmark directly into the target folder",
    )

    collections = commands.add_parser("collections", help="Print the remote collection tree")
    collections.add_argument("--token", default=None, help="Raindrop API token")

    commands.add_parser("daemon", help="Run scheduled imports until interrupted")
    return parser


def _print_progress(update: ProgressUpdate) -> None:
    print(
        f"\rImporting... {update.percent:3d}% ({update.current}/{update.total})",
        end="" if update.percent < 100 else "\n",
        file=sys.stderr,
        flush=True,
    )


def format_collection_tree(records: Sequence[CollectionRecord]) -> list[str]:
    """Indented ``title (id)`` lines, children under their parents."""
    known = {record.id for record in records}
    children: dict[str | None, list[CollectionRecord]] = {}
    for record in records:
        parent = record.parent_id if record.parent_id in known else None
        children.setdefault(parent, []).append(record)

    lines: list[str] = []
    seen: set[str] = set()
    stack = [(record, 0) for record in reversed(children.get(None, []))]
    while stack:
        record, depth = stack.pop()
        if record.id in seen:
            continue
        seen.add(record.id)
        lines.append(f"{'  ' * depth}{record.title} ({record.id})")
        stack.extend((child, depth + 1) for child in reversed(children.get(record.id, [])))
    return lines


def _open_db(cfg: AppConfig) -> DatabaseSessionManager:
    db = DatabaseSessionManager(cfg.runtime.db_path)
    db.migrate()
    return db


async def _cmd_sync(cfg: AppConfig, args: argparse.Namespace) -> int:
    db = _open_db(cfg)
    try:
        service = RaindropSyncService.from_config(
            cfg.raindrop, SqliteBookmarkStoreAdapter(db), progress_listener=_print_progress
        )
        scheduler = SchedulerService(cfg, db, sync_service=service)
        result = await scheduler.run_sync(
            trigger="manual",
            token=args.token,
            mode=args.mode,
            config_value=args.config_value,
            target_folder_name=args.target_folder_name,
            flatten=args.flatten,
        )
    finally:
        db.close()

    if result is None:  # pragma: no cover - a fresh scheduler never has a run in progress
        return EXIT_FAILED
    if not result.success:
        print(f"Import failed: {result.error_message}", file=sys.stderr)
        return EXIT_FAILED

    print(f"Imported {result.imported_count} bookmarks into '{result.target_folder_name}'.")
    if result.not_found:
        print(f"Collection(s) not found: {', '.join(result.not_found)}")
    return EXIT_OK


async def _cmd_collections(cfg: AppConfig, args: argparse.Namespace) -> int:
    token = args.token or cfg.raindrop.api_token
    db = _open_db(cfg)
    service = RaindropSyncService.from_config(cfg.raindrop, SqliteBookmarkStoreAdapter(db))
    try:
        records = await service.list_collections(token)
    except RaindropSyncError as exc:
        print(f"Could not load collections: {exc}", file=sys.stderr)
        return EXIT_FAILED
    finally:
        db.close()

    for line in format_collection_tree(records):
        print(line)
    return EXIT_OK


async def _cmd_daemon(cfg: AppConfig, args: argparse.Namespace) -> int:
    if not cfg.raindrop.auto_sync_enabled:
        print(
            "Scheduled imports are disabled: set RAINDROP_API_TOKEN and a positive "
            "RAINDROP_SYNC_INTERVAL_MINUTES.",
            file=sys.stderr,
        )
        return EXIT_CONFIG

    db = _open_db(cfg)
    scheduler = SchedulerService(cfg, db)
    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop.set)

    await scheduler.start()
    logger.info(
        "daemon_started",
        extra={"next_run_time": str(scheduler.get_next_run_time())},
    )
    try:
        await stop.wait()
    finally:
        await scheduler.stop()
        db.close()
        logger.info("daemon_stopped")
    return EXIT_OK


COMMANDS = {
    "sync": _cmd_sync,
    "collections": _cmd_collections,
    "daemon": _cmd_daemon,
}


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    runtime_overrides: dict[str, str] = {}
    if args.log_level:
        runtime_overrides["log_level"] = args.log_level
    if args.db_path:
        runtime_overrides["db_path"] = args.db_path

    try:
        cfg = load_config(runtime=runtime_overrides) if runtime_overrides else load_config()
    except RuntimeError as exc:
        print(str(exc), file=sys.stderr)
        return EXIT_CONFIG

    setup_json_logging(
        cfg.runtime.log_level,
        use_loguru=cfg.runtime.log_use_loguru,
        log_file=cfg.runtime.log_file,
    )
    return asyncio.run(COMMANDS[args.command](cfg, args))


if __name__ == "__main__":
    sys.exit(main())
