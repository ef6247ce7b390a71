"""Pytest configuration and shared test doubles.

Provides a scripted Raindrop API (served through ``httpx.MockTransport``), an
in-memory bookmark store, and a fake clock so throttling and backoff never
actually sleep.
"""

from __future__ import annotations

import itertools
from typing import Any

import httpx

from raindrop_sync.adapters.raindrop.client import RaindropClient, RequestThrottle
from raindrop_sync.adapters.raindrop.errors import BookmarkStoreError
from raindrop_sync.adapters.raindrop.sync.constants import ROOT_ID, TOOLBAR_ID
from raindrop_sync.adapters.raindrop.sync.protocols import BookmarkNode
from raindrop_sync.config import AppConfig, RaindropConfig, RuntimeConfig

API_URL = "https://api.raindrop.io/rest/v1"
API_PREFIX = "/rest/v1"


class FakeClock:
    """Monotonic clock whose ``sleep`` advances time instantly."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start
        self.sleeps: list[float] = []

    def time(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


def collection(cid: int, title: str, parent: int | None = None) -> dict[str, Any]:
    data: dict[str, Any] = {"_id": cid, "title": title}
    if parent is not None:
        data["parent"] = {"$id": parent}
    return data


def raindrop(rid: int, collection_id: int, title: str | None = None) -> dict[str, Any]:
    return {
        "_id": rid,
        "title": title or f"Item {rid}",
        "link": f"https://example.com/{rid}",
        "collection": {"$id": collection_id},
    }


class FakeRaindropApi:
    """Scripted Raindrop REST API.

    ``items`` maps a collection id to its raindrops; collection ``0`` returns
    every item, or the ``searches`` entry matching the ``search`` parameter.
    """

    def __init__(
        self,
        *,
        root: list[dict[str, Any]] | None = None,
        children: list[dict[str, Any]] | None = None,
        items: dict[int, list[dict[str, Any]]] | None = None,
        searches: dict[str, list[dict[str, Any]]] | None = None,
    ) -> None:
        self.root = root or []
        self.children = children or []
        self.items = items or {}
        self.searches = searches or {}
        # Per-collection "count" values that differ from the real item count.
        self.reported_counts: dict[int, int] = {}
        self.requests: list[httpx.Request] = []
        # Responses queued per path; consumed before the scripted data.
        self.overrides: dict[str, list[httpx.Response | Exception]] = {}

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path.removeprefix(API_PREFIX)

        queued = self.overrides.get(path)
        if queued:
            outcome = queued.pop(0)
            if isinstance(outcome, Exception):
                raise outcome
            return outcome

        if path == "/collections":
            return httpx.Response(200, json={"result": True, "items": self.root})
        if path == "/collections/childrens":
            return httpx.Response(200, json={"result": True, "items": self.children})
        if path.startswith("/raindrops/"):
            return self._raindrops(int(path.rsplit("/", 1)[1]), request.url.params)
        return httpx.Response(404, json={"result": False, "errorMessage": "Not found"})

    def _raindrops(self, cid: int, params: httpx.QueryParams) -> httpx.Response:
        search = params.get("search")
        if cid == 0:
            if search:
                source = self.searches.get(search, [])
            else:
                source = [item for items in self.items.values() for item in items]
        else:
            source = list(self.items.get(cid, []))
            if params.get("nested") == "true":
                for child in self._descendants(cid):
                    source.extend(self.items.get(child, []))

        perpage = int(params.get("perpage", 25))
        page = int(params.get("page", 0))
        chunk = source[page * perpage : (page + 1) * perpage] if perpage else []
        count = self.reported_counts.get(cid, len(source))
        return httpx.Response(200, json={"result": True, "items": chunk, "count": count})

    def _descendants(self, cid: int) -> list[int]:
        found: list[int] = []
        frontier = [cid]
        while frontier:
            current = frontier.pop()
            for entry in self.children:
                if entry.get("parent", {}).get("$id") == current and entry["_id"] not in found:
                    found.append(entry["_id"])
                    frontier.append(entry["_id"])
        return found

    def paths(self) -> list[str]:
        return [request.url.path.removeprefix(API_PREFIX) for request in self.requests]

    def item_requests(self, cid: int) -> list[httpx.Request]:
        """Page requests (perpage > 0) for one collection id."""
        return [
            request
            for request in self.requests
            if request.url.path == f"{API_PREFIX}/raindrops/{cid}"
            and request.url.params.get("perpage") != "0"
        ]


def make_client_factory(api: FakeRaindropApi, clock: FakeClock | None = None) -> Any:
    """Client factory wiring ``RaindropClient`` to ``api`` with a fake clock."""
    clock = clock or FakeClock()
    throttle = RequestThrottle(0.5, clock=clock.time, sleep=clock.sleep)

    def factory(api_url: str, api_token: str) -> RaindropClient:
        return RaindropClient(
            api_url,
            api_token,
            throttle=throttle,
            transport=httpx.MockTransport(api.handler),
            sleep=clock.sleep,
        )

    return factory


class InMemoryBookmarkStore:
    """Bookmark store fake with the same rules as the SQLite adapter."""

    def __init__(self) -> None:
        self._ids = itertools.count(1)
        self.nodes: dict[str, BookmarkNode] = {
            ROOT_ID: BookmarkNode(id=ROOT_ID, parent_id=None, title=""),
            TOOLBAR_ID: BookmarkNode(id=TOOLBAR_ID, parent_id=ROOT_ID, title="Bookmarks Toolbar"),
        }
        self.created_folders: list[BookmarkNode] = []
        self.created_bookmarks: list[BookmarkNode] = []
        self.fail_on_create_bookmark: Exception | None = None

    async def search(self, title: str) -> list[BookmarkNode]:
        needle = title.lower()
        return [
            node
            for node in self.nodes.values()
            if needle in node.title.lower() or (node.url and needle in node.url.lower())
        ]

    async def get_children(self, folder_id: str) -> list[BookmarkNode]:
        self._require_folder(folder_id)
        children = [node for node in self.nodes.values() if node.parent_id == folder_id]
        return sorted(children, key=lambda node: node.position)

    async def create_folder(self, parent_id: str, title: str) -> BookmarkNode:
        node = self._add(parent_id, title, None)
        self.created_folders.append(node)
        return node

    async def create_bookmark(self, parent_id: str, title: str, url: str) -> BookmarkNode:
        if self.fail_on_create_bookmark is not None:
            raise self.fail_on_create_bookmark
        node = self._add(parent_id, title, url)
        self.created_bookmarks.append(node)
        return node

    async def remove(self, node_id: str) -> None:
        node = self.nodes.get(node_id)
        if node is None:
            raise BookmarkStoreError(f"Can't find bookmark for id {node_id}")
        if node.is_folder and any(child.parent_id == node_id for child in self.nodes.values()):
            raise BookmarkStoreError(f"Folder {node_id} is not empty")
        del self.nodes[node_id]

    async def remove_tree(self, node_id: str) -> None:
        if node_id not in self.nodes:
            raise BookmarkStoreError(f"Can't find bookmark for id {node_id}")
        for child in [node for node in self.nodes.values() if node.parent_id == node_id]:
            await self.remove_tree(child.id)
        del self.nodes[node_id]

    def _add(self, parent_id: str, title: str, url: str | None) -> BookmarkNode:
        self._require_folder(parent_id)
        position = sum(1 for node in self.nodes.values() if node.parent_id == parent_id)
        node = BookmarkNode(
            id=f"n{next(self._ids)}", parent_id=parent_id, title=title, url=url, position=position
        )
        self.nodes[node.id] = node
        return node

    def _require_folder(self, folder_id: str) -> None:
        node = self.nodes.get(folder_id)
        if node is None:
            raise BookmarkStoreError(f"Can't find parent bookmark for id {folder_id}")
        if not node.is_folder:
            raise BookmarkStoreError(f"Bookmark {folder_id} is not a folder")

    # Test helpers -----------------------------------------------------------

    def folder(self, title: str, parent_id: str) -> BookmarkNode | None:
        return next(
            (
                node
                for node in self.nodes.values()
                if node.is_folder and node.title == title and node.parent_id == parent_id
            ),
            None,
        )

    def children_of(self, folder_id: str) -> list[BookmarkNode]:
        return [node for node in self.nodes.values() if node.parent_id == folder_id]

    def leaves_under(self, folder_id: str) -> list[BookmarkNode]:
        leaves: list[BookmarkNode] = []
        for node in self.children_of(folder_id):
            if node.is_folder:
                leaves.extend(self.leaves_under(node.id))
            else:
                leaves.append(node)
        return leaves


def make_test_app_config(
    *, raindrop: dict[str, Any] | None = None, runtime: dict[str, Any] | None = None
) -> AppConfig:
    raindrop_values: dict[str, Any] = {
        "api_url": API_URL,
        "api_token": "test-token",
        "target_folder": "Raindrop",
        "mode": "collection",
        "config_value": "Work",
    }
    raindrop_values.update(raindrop or {})
    runtime_values: dict[str, Any] = {"db_path": "/tmp/raindrop-test.db"}
    runtime_values.update(runtime or {})
    return AppConfig(
        raindrop=RaindropConfig(**raindrop_values),
        runtime=RuntimeConfig(**runtime_values),
    )
