"""In-memory model of the remote collection tree."""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from typing import TYPE_CHECKING

from raindrop_sync.adapters.raindrop.models import CollectionRecord

if TYPE_CHECKING:
    from collections.abc import Iterator

    from raindrop_sync.adapters.raindrop.sync.protocols import RaindropClientProtocol

logger = logging.getLogger(__name__)


class CollectionDirectory:
    """Lookup table of collection id -> ``CollectionRecord`` for one run."""

    def __init__(self) -> None:
        self._records: dict[str, CollectionRecord] = {}

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, collection_id: object) -> bool:
        return collection_id in self._records

    def __iter__(self) -> Iterator[CollectionRecord]:
        return iter(self._records.values())

    def get(self, collection_id: str | None) -> CollectionRecord | None:
        if collection_id is None:
            return None
        return self._records.get(str(collection_id))

    def clear(self) -> None:
        self._records.clear()

    def load(self, records: list[CollectionRecord]) -> None:
        """Replace the table with ``records``, keeping their order."""
        self._records = {record.id: record for record in records}

    async def refresh(self, client: RaindropClientProtocol, *, correlation_id: str = "") -> None:
        """Fetch root and nested collections concurrently and replace the table.

        Both requests must succeed; on failure the previous contents are left
        untouched and the client error propagates.
        """
        # Wait for both requests even when one fails so none outlives the client.
        outcomes = await asyncio.gather(
            client.fetch_root_collections(),
            client.fetch_child_collections(),
            return_exceptions=True,
        )
        for outcome in outcomes:
            if isinstance(outcome, BaseException):
                raise outcome
        root, children = outcomes
        self.load(
            [
                CollectionRecord(
                    id=collection.id,
                    title=collection.title,
                    parent_id=collection.parent_id,
                )
                for collection in [*root, *children]
            ]
        )
        logger.info(
            "raindrop_collections_loaded",
            extra={
                "correlation_id": correlation_id,
                "root_count": len(root),
                "child_count": len(children),
                "total": len(self._records),
            },
        )

    def lookup_by_title(self, name: str) -> str | None:
        """Case-insensitive exact title match; the first record in order wins."""
        wanted = name.strip().lower()
        if not wanted:
            return None
        for record in self._records.values():
            if record.title.strip().lower() == wanted:
                return record.id
        return None

    def descendants_of(self, collection_id: str) -> list[str]:
        """Ids of every collection below ``collection_id``, breadth first."""
        children: dict[str, list[str]] = {}
        for record in self._records.values():
            if record.parent_id is not None:
                children.setdefault(record.parent_id, []).append(record.id)

        root = str(collection_id)
        seen = {root}
        result: list[str] = []
        queue = deque([root])
        while queue:
            current = queue.popleft()
            for child_id in children.get(current, ()):
                # Malformed data can loop back to an ancestor; visit each id once.
                if child_id in seen:
                    continue
                seen.add(child_id)
                result.append(child_id)
                queue.append(child_id)
        return result
