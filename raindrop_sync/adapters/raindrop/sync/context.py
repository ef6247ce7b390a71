"""Per-run state shared by the folder resolver and the import runner."""

from __future__ import annotations

from dataclasses import dataclass, field

from raindrop_sync.adapters.raindrop.sync.directory import CollectionDirectory
from raindrop_sync.adapters.raindrop.sync.progress import ProgressState


@dataclass
class SyncRunContext:
    """Everything one sync run mutates in memory.

    A fresh context is created for every run and dropped afterwards, so nothing
    leaks from one run into the next.
    """

    correlation_id: str
    directory: CollectionDirectory = field(default_factory=CollectionDirectory)
    folder_cache: dict[str, str] = field(default_factory=dict)
    imported_ids: set[str] = field(default_factory=set)
    progress: ProgressState = field(default_factory=ProgressState)

    def reset_caches(self) -> None:
        self.folder_cache.clear()
        self.imported_ids.clear()

    def clear(self) -> None:
        self.folder_cache.clear()
        self.directory.clear()
