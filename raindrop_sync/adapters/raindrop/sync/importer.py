"""Paginated import of one remote query into the local store."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from raindrop_sync.adapters.raindrop.sync.constants import PAGE_SIZE, SORT_ORDER

if TYPE_CHECKING:
    from raindrop_sync.adapters.raindrop.sync.context import SyncRunContext
    from raindrop_sync.adapters.raindrop.sync.folders import FolderResolver
    from raindrop_sync.adapters.raindrop.sync.progress import ProgressChannel
    from raindrop_sync.adapters.raindrop.sync.protocols import (
        BookmarkStore,
        RaindropClientProtocol,
    )

logger = logging.getLogger(__name__)


class PaginatedImportRunner:
    def __init__(
        self,
        *,
        store: BookmarkStore,
        resolver: FolderResolver,
        progress: ProgressChannel,
        page_size: int = PAGE_SIZE,
    ) -> None:
        self._store = store
        self._resolver = resolver
        self._progress = progress
        self._page_size = page_size

    async def run(
        self,
        client: RaindropClientProtocol,
        context: SyncRunContext,
        *,
        collection_id: str,
        target_root_id: str,
        search: str | None = None,
        imported_root_id: str | None = None,
        flatten: bool = False,
    ) -> int:
        """Import every page of one query; returns the number of leaves created.

        Items already in ``context.imported_ids`` (seen through an earlier,
        overlapping query) are skipped and not counted.
        """
        page = 0
        imported = 0
        received = 0
        skipped = 0

        while True:
            result = await client.fetch_raindrops(
                collection_id,
                page=page,
                perpage=self._page_size,
                search=search,
                sort=SORT_ORDER,
            )
            items = result.items
            if not items:
                break

            received += len(items)
            for item in items:
                item_id = str(item.id)
                if item_id in context.imported_ids:
                    skipped += 1
                    continue
                context.imported_ids.add(item_id)

                if flatten:
                    parent_id = target_root_id
                else:
                    parent_id = await self._resolver.resolve(
                        context,
                        item.collection_id,
                        target_root_id=target_root_id,
                        imported_root_id=imported_root_id,
                    )
                await self._store.create_bookmark(parent_id, item.title, item.link)
                imported += 1
                self._progress.advance(context.progress)

            if len(items) < self._page_size:
                break
            if result.count is not None and received >= result.count:
                break
            page += 1

        logger.info(
            "raindrop_query_imported",
            extra={
                "correlation_id": context.correlation_id,
                "collection_id": collection_id,
                "search": search,
                "pages": page + 1,
                "imported": imported,
                "duplicates_skipped": skipped,
            },
        )
        return imported
