from __future__ import annotations

import io
import os
import tempfile
import unittest
from contextlib import redirect_stderr, redirect_stdout
from pathlib import Path
from unittest.mock import AsyncMock, patch

from raindrop_sync.adapters.raindrop.errors import RaindropFetchError
from raindrop_sync.adapters.raindrop.models import CollectionRecord, SyncResult
from raindrop_sync.adapters.raindrop.sync.service import RaindropSyncService
from raindrop_sync.cli.sync import (
    EXIT_CONFIG,
    EXIT_FAILED,
    EXIT_OK,
    build_parser,
    format_collection_tree,
    main,
)
from raindrop_sync.services.scheduler import SchedulerService


class TestParser(unittest.TestCase):
    def test_sync_flags(self):
        args = build_parser().parse_args(
            ["--db", "/tmp/b.db", "sync", "--mode", "tag", "--value", "a,b", "--no-flatten"]
        )

        assert args.command == "sync"
        assert args.db_path == "/tmp/b.db"
        assert args.mode == "tag"
        assert args.config_value == "a,b"
        assert args.flatten is False
        assert args.token is None

    def test_unset_flags_are_none(self):
        args = build_parser().parse_args(["sync"])

        assert args.mode is None
        assert args.flatten is None
        assert args.target_folder_name is None

    def test_unknown_mode_rejected(self):
        with redirect_stderr(io.StringIO()), self.assertRaises(SystemExit):
            build_parser().parse_args(["sync", "--mode", "bookmarks"])


class TestFormatCollectionTree(unittest.TestCase):
    def test_children_indented_under_parents(self):
        records = [
            CollectionRecord(id="1", title="Work"),
            CollectionRecord(id="5", title="Reading"),
            CollectionRecord(id="2", title="Sub", parent_id="1"),
            CollectionRecord(id="3", title="Deep", parent_id="2"),
        ]

        assert format_collection_tree(records) == [
            "Work (1)",
            "  Sub (2)",
            "    Deep (3)",
            "Reading (5)",
        ]

    def test_orphans_listed_at_top_level(self):
        records = [CollectionRecord(id="9", title="Lost", parent_id="404")]

        assert format_collection_tree(records) == ["Lost (9)"]

    def test_cycles_are_not_printed(self):
        records = [
            CollectionRecord(id="1", title="A", parent_id="2"),
            CollectionRecord(id="2", title="B", parent_id="1"),
        ]

        assert format_collection_tree(records) == []


@patch("raindrop_sync.cli.sync.setup_json_logging")
class TestMain(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.db_path = str(Path(self._tmp.name) / "bookmarks.db")
        env = {"PATH": os.environ.get("PATH", ""), "RAINDROP_API_TOKEN": "abc"}
        self._env = patch.dict(os.environ, env, clear=True)
        self._env.start()

    def tearDown(self):
        self._env.stop()
        self._tmp.cleanup()

    def _main(self, *argv: str) -> tuple[int, str, str]:
        out, err = io.StringIO(), io.StringIO()
        with redirect_stdout(out), redirect_stderr(err):
            code = main(["--db", self.db_path, *argv])
        return code, out.getvalue(), err.getvalue()

    def test_invalid_config_exits_with_config_code(self, _logging):
        os.environ["RAINDROP_SYNC_MODE"] = "bookmarks"

        code, _, err = self._main("sync")

        assert code == EXIT_CONFIG
        assert "Configuration validation failed" in err

    def test_sync_success(self, _logging):
        result = SyncResult(
            success=True, imported_count=4, target_folder_name="Raindrop", not_found=["Nope"]
        )
        with patch.object(SchedulerService, "run_sync", AsyncMock(return_value=result)) as run:
            code, out, _ = self._main("sync", "--mode", "collection", "--value", "Work,Nope")

        assert code == EXIT_OK
        assert "Imported 4 bookmarks into 'Raindrop'." in out
        assert "Collection(s) not found: Nope" in out
        kwargs = run.await_args.kwargs
        assert kwargs["mode"] == "collection"
        assert kwargs["config_value"] == "Work,Nope"
        assert kwargs["flatten"] is None
        assert Path(self.db_path).exists()

    def test_sync_failure(self, _logging):
        result = SyncResult(success=False, error_message="Missing required settings: API token")
        with patch.object(SchedulerService, "run_sync", AsyncMock(return_value=result)):
            code, _, err = self._main("sync")

        assert code == EXIT_FAILED
        assert "Import failed: Missing required settings: API token" in err

    def test_collections_prints_tree(self, _logging):
        records = [
            CollectionRecord(id="1", title="Work"),
            CollectionRecord(id="2", title="Sub", parent_id="1"),
        ]
        with patch.object(
            RaindropSyncService, "list_collections", AsyncMock(return_value=records)
        ) as listing:
            code, out, _ = self._main("collections", "--token", "xyz")

        assert code == EXIT_OK
        assert out.splitlines() == ["Work (1)", "  Sub (2)"]
        listing.assert_awaited_once_with("xyz")

    def test_collections_error(self, _logging):
        error = RaindropFetchError("/collections", 401, "unauthorized")
        with patch.object(
            RaindropSyncService, "list_collections", AsyncMock(side_effect=error)
        ):
            code, _, err = self._main("collections")

        assert code == EXIT_FAILED
        assert "Could not load collections" in err

    def test_daemon_requires_schedule(self, _logging):
        os.environ["RAINDROP_SYNC_INTERVAL_MINUTES"] = "0"

        code, _, err = self._main("daemon")

        assert code == EXIT_CONFIG
        assert "Scheduled imports are disabled" in err
