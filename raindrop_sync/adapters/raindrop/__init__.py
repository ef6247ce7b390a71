"""Raindrop.io integration adapter for one-way bookmark import."""

from raindrop_sync.adapters.raindrop.client import RaindropClient
from raindrop_sync.adapters.raindrop.sync.service import RaindropSyncService

__all__ = ["RaindropClient", "RaindropSyncService"]
