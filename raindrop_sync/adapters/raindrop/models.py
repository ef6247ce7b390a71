"""Models for the Raindrop API payloads and sync inputs/outputs."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, Field, field_validator

if TYPE_CHECKING:
    from raindrop_sync.config import RaindropConfig


def _as_id(value: Any) -> Any:
    # Raindrop ids are numbers on the wire; everything local keys on strings.
    if value is None or isinstance(value, str):
        return value
    return str(value)


class RaindropRef(BaseModel):
    """``{"$id": ...}`` reference to another Raindrop object."""

    id: str = Field(alias="$id")

    model_config = {"populate_by_name": True, "extra": "ignore"}

    @field_validator("id", mode="before")
    @classmethod
    def _normalize_id(cls, value: Any) -> Any:
        return _as_id(value)


class RaindropCollection(BaseModel):
    """Raindrop collection model."""

    id: str = Field(alias="_id")
    title: str = ""
    parent: RaindropRef | None = None

    model_config = {"populate_by_name": True, "extra": "ignore"}

    @field_validator("id", mode="before")
    @classmethod
    def _normalize_id(cls, value: Any) -> Any:
        return _as_id(value)

    @field_validator("title", mode="before")
    @classmethod
    def _title_or_empty(cls, value: Any) -> str:
        return "" if value is None else str(value)

    @property
    def parent_id(self) -> str | None:
        return self.parent.id if self.parent else None


class RaindropCollectionList(BaseModel):
    items: list[RaindropCollection] = Field(default_factory=list)

    model_config = {"extra": "ignore"}


class RaindropItem(BaseModel):
    """Raindrop bookmark ("raindrop") model."""

    id: str = Field(alias="_id")
    title: str = ""
    link: str = ""
    collection: RaindropRef | None = None

    model_config = {"populate_by_name": True, "extra": "ignore"}

    @field_validator("id", mode="before")
    @classmethod
    def _normalize_id(cls, value: Any) -> Any:
        return _as_id(value)

    @field_validator("title", "link", mode="before")
    @classmethod
    def _text_or_empty(cls, value: Any) -> str:
        return "" if value is None else str(value)

    @property
    def collection_id(self) -> str | None:
        return self.collection.id if self.collection else None


class RaindropPage(BaseModel):
    """One page of ``GET /raindrops/{collectionId}``."""

    items: list[RaindropItem] = Field(default_factory=list)
    count: int | None = None

    model_config = {"extra": "ignore"}


@dataclass(frozen=True)
class CollectionRecord:
    """Directory entry for one remote collection."""

    id: str
    title: str
    parent_id: str | None = None


@dataclass(frozen=True)
class ImportQuery:
    """One logical remote query executed by the import runner."""

    mode: str
    value: str | None = None


@dataclass(frozen=True)
class ProgressUpdate:
    percent: int
    current: int
    total: int


def parse_config_values(value: str | None) -> list[str]:
    """Split a comma-separated tag/collection setting into trimmed, non-empty values."""
    if not value:
        return []
    return [piece.strip() for piece in value.split(",") if piece.strip()]


class SyncSettings(BaseModel):
    """Input of one sync run.

    Fields are deliberately permissive; the orchestrator validates them so that
    a missing value becomes a failed ``SyncResult`` instead of an exception.
    """

    token: str = ""
    target_folder_name: str = ""
    mode: str = "collection"
    config_value: str = ""
    flatten: bool = False

    @field_validator("token", "target_folder_name", "config_value", mode="before")
    @classmethod
    def _strip(cls, value: Any) -> str:
        return "" if value is None else str(value).strip()

    @field_validator("mode", mode="before")
    @classmethod
    def _lower_mode(cls, value: Any) -> str:
        return str(value or "").strip().lower()

    @property
    def config_values(self) -> list[str]:
        return parse_config_values(self.config_value)

    def queries(self) -> list[ImportQuery]:
        if self.mode == "all":
            return [ImportQuery(mode="all")]
        return [ImportQuery(mode=self.mode, value=value) for value in self.config_values]

    @classmethod
    def from_config(cls, cfg: RaindropConfig, **overrides: Any) -> SyncSettings:
        data: dict[str, Any] = {
            "token": cfg.api_token,
            "target_folder_name": cfg.target_folder,
            "mode": cfg.mode,
            "config_value": cfg.config_value,
            "flatten": cfg.flatten,
        }
        data.update({key: value for key, value in overrides.items() if value is not None})
        return cls(**data)


class SyncResult(BaseModel):
    """Result of one sync run."""

    success: bool
    imported_count: int = 0
    target_folder_name: str | None = None
    error_message: str | None = None
    not_found: list[str] = Field(default_factory=list)
    correlation_id: str | None = None
    duration_seconds: float = 0.0
