from __future__ import annotations

from typing import Any

VALID_SYNC_MODES = frozenset({"tag", "collection", "all"})


def _parse_positive_int(value: Any, *, name: str, default: int, allow_zero: bool = False) -> int:
    if value in (None, ""):
        return default
    try:
        parsed = int(str(value).strip())
    except ValueError as exc:
        msg = f"{name} must be a valid integer"
        raise ValueError(msg) from exc
    if parsed < 0 or (parsed == 0 and not allow_zero):
        msg = f"{name} must be positive"
        raise ValueError(msg)
    return parsed


def _parse_bool(value: Any, *, default: bool = False) -> bool:
    if value in (None, ""):
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in {"1", "true", "yes", "on"}


def _normalize_sync_mode(value: Any) -> str:
    mode = str(value or "collection").strip().lower()
    if mode not in VALID_SYNC_MODES:
        msg = f"Invalid sync mode: {mode}. Must be one of {sorted(VALID_SYNC_MODES)}"
        raise ValueError(msg)
    return mode


def _ensure_api_token(value: Any) -> str:
    if value in (None, ""):
        return ""
    token = str(value).strip()
    if len(token) > 500:
        msg = "Raindrop API token appears to be too long"
        raise ValueError(msg)
    if any(char in token for char in [" ", "\n", "\t"]):
        msg = "Raindrop API token contains invalid characters"
        raise ValueError(msg)
    return token
