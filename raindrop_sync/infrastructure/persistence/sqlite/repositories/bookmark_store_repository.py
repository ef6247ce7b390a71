"""SQLite implementation of the local bookmark store.

The sync service only sees the ``BookmarkStore`` protocol; this adapter maps
it onto the ``bookmark_nodes`` table.
"""

from __future__ import annotations

from peewee import fn

from raindrop_sync.adapters.raindrop.errors import BookmarkStoreError
from raindrop_sync.adapters.raindrop.sync.constants import ROOT_ID, TOOLBAR_ID
from raindrop_sync.adapters.raindrop.sync.protocols import BookmarkNode
from raindrop_sync.db.models import BookmarkNode as BookmarkNodeRow
from raindrop_sync.infrastructure.persistence.sqlite.base import SqliteBaseRepository

PROTECTED_NODE_IDS = frozenset({ROOT_ID, TOOLBAR_ID})


def _to_node(row: BookmarkNodeRow) -> BookmarkNode:
    return BookmarkNode(
        id=row.id,
        parent_id=row.parent_id,
        title=row.title or "",
        url=row.url,
        position=row.position,
    )


class SqliteBookmarkStoreAdapter(SqliteBaseRepository):
    """Hierarchical bookmark store backed by SQLite."""

    error_class = BookmarkStoreError

    async def search(self, title: str) -> list[BookmarkNode]:
        """Nodes whose title or URL contains ``title`` (case-insensitive)."""

        def _query() -> list[BookmarkNode]:
            query = (
                BookmarkNodeRow.select()
                .where(
                    BookmarkNodeRow.title.contains(title) | BookmarkNodeRow.url.contains(title)
                )
                .order_by(BookmarkNodeRow.created_at, BookmarkNodeRow.id)
            )
            return [_to_node(row) for row in query]

        return await self._execute(_query, operation_name="bookmark_search", read_only=True)

    async def get(self, node_id: str) -> BookmarkNode | None:
        def _query() -> BookmarkNode | None:
            row = BookmarkNodeRow.get_or_none(BookmarkNodeRow.id == node_id)
            return _to_node(row) if row else None

        return await self._execute(_query, operation_name="bookmark_get", read_only=True)

    async def get_children(self, folder_id: str) -> list[BookmarkNode]:
        def _query() -> list[BookmarkNode]:
            self._require_folder(folder_id)
            query = (
                BookmarkNodeRow.select()
                .where(BookmarkNodeRow.parent == folder_id)
                .order_by(BookmarkNodeRow.position, BookmarkNodeRow.created_at)
            )
            return [_to_node(row) for row in query]

        return await self._execute(_query, operation_name="bookmark_get_children", read_only=True)

    async def create_folder(self, parent_id: str, title: str) -> BookmarkNode:
        return await self._execute(
            self._create_node, parent_id, title, None, operation_name="bookmark_create_folder"
        )

    async def create_bookmark(self, parent_id: str, title: str, url: str) -> BookmarkNode:
        return await self._execute(
            self._create_node, parent_id, title, url, operation_name="bookmark_create"
        )

    async def remove(self, node_id: str) -> None:
        """Remove a bookmark or an empty folder."""

        def _delete() -> None:
            row = self._require_node(node_id)
            if row.url is None and BookmarkNodeRow.select().where(
                BookmarkNodeRow.parent == node_id
            ).exists():
                raise BookmarkStoreError(f"Folder {node_id} is not empty")
            row.delete_instance()

        await self._execute(_delete, operation_name="bookmark_remove")

    async def remove_tree(self, node_id: str) -> None:
        """Remove a folder together with everything below it."""

        def _delete() -> int:
            self._require_node(node_id)
            subtree = [node_id]
            frontier = [node_id]
            while frontier:
                children = [
                    row.id
                    for row in BookmarkNodeRow.select(BookmarkNodeRow.id).where(
                        BookmarkNodeRow.parent.in_(frontier)
                    )
                ]
                subtree.extend(children)
                frontier = children
            with self._session.database.atomic():
                # Children first so the foreign key never points at a deleted row.
                for node in reversed(subtree):
                    BookmarkNodeRow.delete().where(BookmarkNodeRow.id == node).execute()
            return len(subtree)

        await self._execute(_delete, operation_name="bookmark_remove_tree")

    def _create_node(self, parent_id: str, title: str, url: str | None) -> BookmarkNode:
        self._require_folder(parent_id)
        next_position = (
            BookmarkNodeRow.select(fn.COALESCE(fn.MAX(BookmarkNodeRow.position) + 1, 0))
            .where(BookmarkNodeRow.parent == parent_id)
            .scalar()
        )
        row = BookmarkNodeRow.create(
            parent=parent_id, title=title or "", url=url, position=next_position or 0
        )
        return _to_node(row)

    @staticmethod
    def _require_node(node_id: str) -> BookmarkNodeRow:
        if node_id in PROTECTED_NODE_IDS:
            raise BookmarkStoreError(f"Can't modify the root bookmark folders ({node_id})")
        row = BookmarkNodeRow.get_or_none(BookmarkNodeRow.id == node_id)
        if row is None:
            raise BookmarkStoreError(f"Can't find bookmark for id {node_id}")
        return row

    @staticmethod
    def _require_folder(folder_id: str) -> None:
        row = BookmarkNodeRow.get_or_none(BookmarkNodeRow.id == folder_id)
        if row is None:
            raise BookmarkStoreError(f"Can't find parent bookmark for id {folder_id}")
        if row.url is not None:
            raise BookmarkStoreError(f"Bookmark {folder_id} is not a folder")
