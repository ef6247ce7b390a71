from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ._validators import _parse_bool

DEFAULT_DB_PATH = "/data/bookmarks.db"
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class RuntimeConfig(BaseModel):
    """Process-level settings: where the bookmark database lives and how to log."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    db_path: str = Field(default=DEFAULT_DB_PATH, validation_alias="BOOKMARKS_DB_PATH")
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")
    log_file: str | None = Field(default=None, validation_alias="LOG_FILE")
    log_use_loguru: bool = Field(default=False, validation_alias="LOG_USE_LOGURU")

    @field_validator("log_level", mode="before")
    @classmethod
    def _validate_log_level(cls, value: Any) -> str:
        level = str(value or "INFO").strip().upper()
        if level not in LOG_LEVELS:
            msg = f"Invalid log level: {value}. Must be one of {', '.join(LOG_LEVELS)}"
            raise ValueError(msg)
        return level

    @field_validator("db_path", mode="before")
    @classmethod
    def _validate_db_path(cls, value: Any) -> str:
        return str(value or "").strip() or DEFAULT_DB_PATH

    @field_validator("log_file", mode="before")
    @classmethod
    def _validate_log_file(cls, value: Any) -> str | None:
        if value is None:
            return None
        return str(value).strip() or None

    @field_validator("log_use_loguru", mode="before")
    @classmethod
    def _validate_use_loguru(cls, value: Any) -> bool:
        return _parse_bool(value)
