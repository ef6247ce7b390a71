from __future__ import annotations

import logging
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator

from ._validators import _ensure_api_token, _normalize_sync_mode, _parse_bool, _parse_positive_int

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.raindrop.io/rest/v1"


class RaindropConfig(BaseModel):
    """Raindrop.io integration configuration for bookmark synchronization."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    api_url: str = Field(default=DEFAULT_API_URL, validation_alias="RAINDROP_API_URL")
    api_token: str = Field(default="", validation_alias="RAINDROP_API_TOKEN")
    target_folder: str = Field(
        default="Raindrop",
        validation_alias="RAINDROP_TARGET_FOLDER",
        description="Toolbar folder that is wiped and rebuilt on every sync",
    )
    mode: str = Field(
        default="collection",
        validation_alias="RAINDROP_SYNC_MODE",
        description="tag, collection or all",
    )
    config_value: str = Field(
        default="",
        validation_alias="RAINDROP_SYNC_VALUE",
        description="Comma-separated tags or collection names",
    )
    flatten: bool = Field(default=False, validation_alias="RAINDROP_FLATTEN")
    sync_interval_minutes: int = Field(
        default=1440,
        validation_alias="RAINDROP_SYNC_INTERVAL_MINUTES",
        description="Minutes between scheduled syncs, 0 disables the schedule",
    )
    requests_per_minute: int = Field(default=120, validation_alias="RAINDROP_REQUESTS_PER_MINUTE")
    max_retries: int = Field(default=3, validation_alias="RAINDROP_MAX_RETRIES")
    retry_base_delay: float = Field(default=1.0, validation_alias="RAINDROP_RETRY_BASE_DELAY")
    request_timeout: float = Field(default=30.0, validation_alias="RAINDROP_REQUEST_TIMEOUT")

    @field_validator("api_url", mode="before")
    @classmethod
    def _validate_api_url(cls, value: Any) -> str:
        url = str(value or DEFAULT_API_URL).strip()
        if not url:
            return DEFAULT_API_URL
        if not url.startswith(("http://", "https://")):
            msg = "Raindrop API URL must start with http:// or https://"
            raise ValueError(msg)
        return url.rstrip("/")

    @field_validator("api_token", mode="before")
    @classmethod
    def _validate_api_token(cls, value: Any) -> str:
        return _ensure_api_token(value)

    @field_validator("target_folder", "config_value", mode="before")
    @classmethod
    def _strip_text(cls, value: Any, info: ValidationInfo) -> str:
        if value is None:
            return str(cls.model_fields[info.field_name].default)
        return str(value).strip()

    @field_validator("mode", mode="before")
    @classmethod
    def _validate_mode(cls, value: Any) -> str:
        return _normalize_sync_mode(value)

    @field_validator("flatten", mode="before")
    @classmethod
    def _validate_flatten(cls, value: Any) -> bool:
        return _parse_bool(value)

    @field_validator("sync_interval_minutes", mode="before")
    @classmethod
    def _validate_interval(cls, value: Any) -> int:
        return _parse_positive_int(
            value, name="Raindrop sync interval", default=1440, allow_zero=True
        )

    @field_validator("requests_per_minute", "max_retries", mode="before")
    @classmethod
    def _validate_positive(cls, value: Any, info: ValidationInfo) -> int:
        default = cls.model_fields[info.field_name].default
        return _parse_positive_int(value, name=info.field_name.replace("_", " "), default=default)

    @field_validator("retry_base_delay", "request_timeout", mode="before")
    @classmethod
    def _validate_seconds(cls, value: Any, info: ValidationInfo) -> float:
        if value in (None, ""):
            return float(cls.model_fields[info.field_name].default)
        try:
            parsed = float(str(value))
        except ValueError as exc:
            msg = f"{info.field_name.replace('_', ' ')} must be a number"
            raise ValueError(msg) from exc
        if parsed < 0:
            msg = f"{info.field_name.replace('_', ' ')} must not be negative"
            raise ValueError(msg)
        return parsed

    @property
    def auto_sync_enabled(self) -> bool:
        return self.sync_interval_minutes > 0 and bool(self.api_token)
