"""Tests for the peewee-backed bookmark store and sync run history."""

from __future__ import annotations

import tempfile
import unittest
from datetime import UTC, datetime, timedelta
from pathlib import Path

from playhouse.sqlite_ext import SqliteExtDatabase

from raindrop_sync.adapters.raindrop.errors import BookmarkStoreError
from raindrop_sync.adapters.raindrop.models import SyncResult, SyncSettings
from raindrop_sync.adapters.raindrop.sync.constants import ROOT_ID, TOOLBAR_ID
from raindrop_sync.adapters.raindrop.sync.service import RaindropSyncService
from raindrop_sync.db.session import DatabaseSessionManager
from raindrop_sync.infrastructure.persistence.sqlite.repositories import (
    SqliteBookmarkStoreAdapter,
    SqliteSyncRunRepositoryAdapter,
)
from tests.conftest import FakeClock, FakeRaindropApi, collection, make_client_factory, raindrop


class _SqliteTestCase(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.db = DatabaseSessionManager(str(Path(self._tmp.name) / "bookmarks.db"))
        self.db.migrate()
        self.store = SqliteBookmarkStoreAdapter(self.db)

    def tearDown(self):
        self.db.close()
        self._tmp.cleanup()


class TestDatabaseSessionManager(_SqliteTestCase):
    def test_database_uses_sqlite_ext_with_pragmas(self):
        assert isinstance(self.db.database, SqliteExtDatabase)

        with self.db.connection_context():
            journal_mode = self.db.database.execute_sql("PRAGMA journal_mode").fetchone()[0]
            foreign_keys = self.db.database.execute_sql("PRAGMA foreign_keys").fetchone()[0]

        assert journal_mode.lower() == "wal"
        assert foreign_keys == 1


class TestSqliteBookmarkStore(_SqliteTestCase):
    async def test_migrate_seeds_root_folders_once(self):
        self.db.migrate()

        toolbar = await self.store.get(TOOLBAR_ID)
        root = await self.store.get(ROOT_ID)
        assert toolbar is not None and toolbar.is_folder
        assert toolbar.parent_id == ROOT_ID
        assert root is not None and root.parent_id is None
        assert [node.id for node in await self.store.get_children(ROOT_ID)] == [TOOLBAR_ID]

    async def test_create_and_list_children_in_order(self):
        folder = await self.store.create_folder(TOOLBAR_ID, "Raindrop")
        first = await self.store.create_bookmark(folder.id, "One", "https://one.example")
        second = await self.store.create_bookmark(folder.id, "Two", "https://two.example")
        sub = await self.store.create_folder(folder.id, "Sub")

        children = await self.store.get_children(folder.id)

        assert [node.id for node in children] == [first.id, second.id, sub.id]
        assert [node.position for node in children] == [0, 1, 2]
        assert children[0].url == "https://one.example"
        assert sub.is_folder

    async def test_search_matches_title_and_url(self):
        folder = await self.store.create_folder(TOOLBAR_ID, "Raindrop")
        await self.store.create_bookmark(folder.id, "Docs", "https://raindrop.io/docs")

        titles = sorted(node.title for node in await self.store.search("raindrop"))

        assert titles == ["Docs", "Raindrop"]

    async def test_remove_tree_deletes_descendants(self):
        folder = await self.store.create_folder(TOOLBAR_ID, "Raindrop")
        sub = await self.store.create_folder(folder.id, "Sub")
        leaf = await self.store.create_bookmark(sub.id, "Leaf", "https://leaf.example")

        await self.store.remove_tree(folder.id)

        assert await self.store.get(folder.id) is None
        assert await self.store.get(sub.id) is None
        assert await self.store.get(leaf.id) is None
        assert await self.store.get_children(TOOLBAR_ID) == []

    async def test_remove_rejects_non_empty_folder(self):
        folder = await self.store.create_folder(TOOLBAR_ID, "Raindrop")
        await self.store.create_bookmark(folder.id, "Leaf", "https://leaf.example")

        with self.assertRaises(BookmarkStoreError):
            await self.store.remove(folder.id)

    async def test_root_folders_are_protected(self):
        with self.assertRaises(BookmarkStoreError):
            await self.store.remove_tree(TOOLBAR_ID)

    async def test_missing_parent_is_an_error(self):
        with self.assertRaises(BookmarkStoreError):
            await self.store.create_bookmark("missing", "x", "https://x.example")

    async def test_bookmark_cannot_be_a_parent(self):
        leaf = await self.store.create_bookmark(TOOLBAR_ID, "Leaf", "https://leaf.example")

        with self.assertRaises(BookmarkStoreError):
            await self.store.create_folder(leaf.id, "Child")

    async def test_full_sync_against_sqlite(self):
        api = FakeRaindropApi(
            root=[collection(1, "Work")],
            children=[collection(2, "Sub", parent=1)],
            items={1: [raindrop(1, 1)], 2: [raindrop(2, 2), raindrop(3, 2)]},
        )
        service = RaindropSyncService(
            self.store, client_factory=make_client_factory(api, FakeClock())
        )
        settings = SyncSettings(
            token="t", target_folder_name="Raindrop", mode="collection", config_value="Work"
        )

        first = await service.import_all(settings)
        second = await service.import_all(settings)

        assert first.success and second.success
        assert second.imported_count == 3
        targets = [
            node
            for node in await self.store.search("Raindrop")
            if node.parent_id == TOOLBAR_ID and node.is_folder
        ]
        assert len(targets) == 1
        children = await self.store.get_children(targets[0].id)
        assert {node.title for node in children} == {"Item 1", "Sub"}


class TestSqliteSyncRunRepository(_SqliteTestCase):
    async def test_last_successful_run(self):
        runs = SqliteSyncRunRepositoryAdapter(self.db)
        earlier = datetime(2026, 1, 1, 8, 0, tzinfo=UTC)

        await runs.async_record_run(
            SyncResult(success=True, imported_count=3, correlation_id="a"),
            mode="tag",
            finished_at=earlier,
        )
        await runs.async_record_run(
            SyncResult(success=False, error_message="boom", correlation_id="b"),
            mode="tag",
            finished_at=earlier + timedelta(hours=1),
        )

        last = await runs.async_get_last_successful_run()
        assert last is not None
        assert last["correlation_id"] == "a"
        assert last["imported_count"] == 3
        assert await runs.async_get_last_success_time() == earlier

    async def test_no_runs(self):
        runs = SqliteSyncRunRepositoryAdapter(self.db)

        assert await runs.async_get_last_success_time() is None
        assert await runs.async_get_recent_runs() == []

    async def test_recent_runs_keep_not_found_names(self):
        runs = SqliteSyncRunRepositoryAdapter(self.db)
        await runs.async_record_run(
            SyncResult(success=True, not_found=["Nope"]), mode="collection", trigger="scheduled"
        )

        recent = await runs.async_get_recent_runs(limit=5)

        assert len(recent) == 1
        assert recent[0]["not_found_json"] == ["Nope"]
        assert recent[0]["trigger"] == "scheduled"
