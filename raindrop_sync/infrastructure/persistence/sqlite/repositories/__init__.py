"""SQLite repository adapters.

Repository adapters that implement the store interfaces the sync service
depends on, using SQLite/Peewee as the persistence layer.
"""

from raindrop_sync.infrastructure.persistence.sqlite.repositories.bookmark_store_repository import (
    SqliteBookmarkStoreAdapter,
)
from raindrop_sync.infrastructure.persistence.sqlite.repositories.sync_run_repository import (
    SqliteSyncRunRepositoryAdapter,
)

__all__ = ["SqliteBookmarkStoreAdapter", "SqliteSyncRunRepositoryAdapter"]
