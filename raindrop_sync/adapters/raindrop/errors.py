"""Exception hierarchy for Raindrop synchronization."""

from __future__ import annotations


class RaindropSyncError(Exception):
    """Base exception for every sync failure."""


class SyncValidationError(RaindropSyncError):
    """Required sync input is missing or invalid."""


class RaindropClientError(RaindropSyncError):
    """Base exception for Raindrop API client errors."""


class RaindropFetchError(RaindropClientError):
    """The API answered with a non-success status."""

    def __init__(self, endpoint: str, status_code: int, reason: str = "", body: str = "") -> None:
        self.endpoint = endpoint
        self.status_code = status_code
        self.reason = reason
        self.body = body
        detail = f"{status_code} {reason}".strip()
        super().__init__(f"Raindrop API error ({endpoint}): {detail} - {body or 'Unknown error'}")


class RaindropThrottledError(RaindropFetchError):
    """HTTP 429 was still returned after every retry."""


class RaindropTransportError(RaindropClientError):
    """No response could be obtained after every retry."""

    def __init__(self, endpoint: str, attempts: int, error: Exception) -> None:
        self.endpoint = endpoint
        self.attempts = attempts
        super().__init__(
            f"Request to {endpoint} failed after {attempts} attempts: "
            f"{type(error).__name__}: {error}"
        )


class CollectionNotFoundError(RaindropSyncError):
    """None of the requested collection names exist in the directory."""

    def __init__(self, names: list[str]) -> None:
        self.names = list(names)
        super().__init__(f"Collection(s) not found: {', '.join(self.names)}")


class CollectionCycleError(RaindropSyncError):
    """The remote collection tree contains a parent cycle."""

    def __init__(self, collection_id: str) -> None:
        self.collection_id = collection_id
        super().__init__(f"Cyclic collection hierarchy detected at collection {collection_id}")


class BookmarkStoreError(RaindropSyncError):
    """A local bookmark store operation failed."""
