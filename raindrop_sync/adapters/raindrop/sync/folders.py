"""Mapping of remote collections onto local bookmark folders."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from raindrop_sync.adapters.raindrop.errors import CollectionCycleError
from raindrop_sync.adapters.raindrop.sync.constants import SYSTEM_COLLECTION_IDS, TOOLBAR_ID

if TYPE_CHECKING:
    from raindrop_sync.adapters.raindrop.sync.context import SyncRunContext
    from raindrop_sync.adapters.raindrop.sync.protocols import BookmarkStore

logger = logging.getLogger(__name__)


class FolderResolver:
    """Creates local folders for remote collections on demand.

    Ancestors are always resolved before descendants, and each collection id
    gets at most one local folder per run (``context.folder_cache``). Store
    errors propagate unchanged.
    """

    def __init__(self, store: BookmarkStore) -> None:
        self._store = store

    async def prepare_target_root(self, folder_name: str, *, correlation_id: str = "") -> str:
        """Find or create ``folder_name`` on the toolbar and empty it."""
        matches = await self._store.search(folder_name)
        target = next(
            (
                node
                for node in matches
                if node.is_folder and node.title == folder_name and node.parent_id == TOOLBAR_ID
            ),
            None,
        )
        if target is None:
            target_id = (await self._store.create_folder(TOOLBAR_ID, folder_name)).id
        else:
            target_id = target.id

        removed = 0
        for child in await self._store.get_children(target_id):
            if child.is_folder:
                await self._store.remove_tree(child.id)
            else:
                await self._store.remove(child.id)
            removed += 1

        logger.info(
            "raindrop_target_folder_prepared",
            extra={
                "correlation_id": correlation_id,
                "folder": folder_name,
                "folder_id": target_id,
                "created": target is None,
                "removed_children": removed,
            },
        )
        return target_id

    async def ensure_subfolder(self, parent_id: str, title: str) -> str:
        """Reuse the child folder titled ``title`` under ``parent_id`` or create it."""
        for child in await self._store.get_children(parent_id):
            if child.is_folder and child.title == title:
                return child.id
        folder = await self._store.create_folder(parent_id, title)
        logger.debug("raindrop_folder_created", extra={"folder_id": folder.id, "title": title})
        return folder.id

    async def resolve(
        self,
        context: SyncRunContext,
        collection_id: str | None,
        *,
        target_root_id: str,
        imported_root_id: str | None = None,
        flatten: bool = False,
    ) -> str:
        """Return the local folder id that items of ``collection_id`` go into."""
        return await self._resolve(
            context,
            collection_id,
            target_root_id=target_root_id,
            imported_root_id=str(imported_root_id) if imported_root_id is not None else None,
            flatten=flatten,
            visiting=set(),
        )

    async def _resolve(
        self,
        context: SyncRunContext,
        collection_id: str | None,
        *,
        target_root_id: str,
        imported_root_id: str | None,
        flatten: bool,
        visiting: set[str],
    ) -> str:
        normalized = str(collection_id) if collection_id is not None else ""
        if (
            not normalized
            or normalized in SYSTEM_COLLECTION_IDS
            or flatten
            or normalized == imported_root_id
        ):
            return target_root_id

        cached = context.folder_cache.get(normalized)
        if cached is not None:
            return cached

        record = context.directory.get(normalized)
        if record is None:
            logger.debug(
                "raindrop_collection_not_in_directory",
                extra={"correlation_id": context.correlation_id, "collection_id": normalized},
            )
            return target_root_id

        if normalized in visiting:
            raise CollectionCycleError(normalized)
        visiting.add(normalized)

        parent_folder_id = target_root_id
        if record.parent_id:
            parent_folder_id = await self._resolve(
                context,
                record.parent_id,
                target_root_id=target_root_id,
                imported_root_id=imported_root_id,
                flatten=flatten,
                visiting=visiting,
            )

        folder_id = await self.ensure_subfolder(parent_folder_id, record.title)
        context.folder_cache[normalized] = folder_id
        return folder_id
