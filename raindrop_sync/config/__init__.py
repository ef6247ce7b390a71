from __future__ import annotations

from .integrations import DEFAULT_API_URL, RaindropConfig
from .runtime import RuntimeConfig
from .settings import AppConfig, Settings, load_config

__all__ = [
    "DEFAULT_API_URL",
    "AppConfig",
    "RaindropConfig",
    "RuntimeConfig",
    "Settings",
    "load_config",
]
