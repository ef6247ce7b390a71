"""Protocol definitions (ports) for Raindrop sync.

Keeping these as Protocols isolates the sync orchestration from the concrete
HTTP client and the local bookmark store implementation.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from contextlib import AbstractAsyncContextManager

    from raindrop_sync.adapters.raindrop.models import (
        ProgressUpdate,
        RaindropCollection,
        RaindropPage,
    )


@dataclass(frozen=True)
class BookmarkNode:
    """A folder (``url is None``) or a leaf bookmark in the local store."""

    id: str
    parent_id: str | None
    title: str
    url: str | None = None
    position: int = 0

    @property
    def is_folder(self) -> bool:
        return self.url is None


class RaindropClientProtocol(Protocol):
    async def fetch_root_collections(self) -> list[RaindropCollection]: ...

    async def fetch_child_collections(self) -> list[RaindropCollection]: ...

    async def fetch_raindrops(
        self,
        collection_id: str,
        *,
        page: int,
        perpage: int = ...,
        search: str | None = None,
        sort: str | None = ...,
    ) -> RaindropPage: ...

    async def count_raindrops(
        self,
        collection_id: str,
        *,
        search: str | None = None,
        nested: bool = False,
    ) -> int: ...


class RaindropClientFactory(Protocol):
    def __call__(
        self, api_url: str, api_token: str
    ) -> AbstractAsyncContextManager[RaindropClientProtocol]: ...


class BookmarkStore(Protocol):
    """Local hierarchical bookmark store the sync writes into."""

    async def search(self, title: str) -> list[BookmarkNode]: ...

    async def get_children(self, folder_id: str) -> list[BookmarkNode]: ...

    async def create_folder(self, parent_id: str, title: str) -> BookmarkNode: ...

    async def create_bookmark(self, parent_id: str, title: str, url: str) -> BookmarkNode: ...

    async def remove(self, node_id: str) -> None: ...

    async def remove_tree(self, node_id: str) -> None: ...


class ProgressSink(Protocol):
    def __call__(self, update: ProgressUpdate) -> object: ...
