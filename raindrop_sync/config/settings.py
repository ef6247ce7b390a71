from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from typing import Self

from pydantic import AliasChoices, BaseModel, Field, ValidationError, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .integrations import RaindropConfig
from .runtime import RuntimeConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AppConfig:
    raindrop: RaindropConfig
    runtime: RuntimeConfig


def _env_names(field: Any) -> list[str]:
    alias = field.validation_alias
    if isinstance(alias, AliasChoices):
        names = [choice for choice in alias.choices if isinstance(choice, str)]
    else:
        names = [alias] if isinstance(alias, str) else []
    if field.alias:
        names.append(field.alias)
    return names


def _section_from_env(model: type[BaseModel], source: Mapping[str, Any]) -> dict[str, Any]:
    """Pick the values of one config section out of flat ``ENV_NAME=value`` pairs."""
    section: dict[str, Any] = {}
    for name, field in model.model_fields.items():
        for env_name in _env_names(field):
            if env_name in source:
                section[name] = source[env_name]
                break
    return section


class Settings(BaseSettings):
    """Environment-backed settings.

    Each section is a plain pydantic model whose fields carry the environment
    variable name as ``validation_alias``; values passed to the constructor
    (``raindrop={...}``) win over the environment and ``.env``.
    """

    model_config = SettingsConfigDict(
        extra="ignore",
        populate_by_name=True,
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
    )

    raindrop: RaindropConfig = Field(default_factory=RaindropConfig)
    runtime: RuntimeConfig = Field(default_factory=RuntimeConfig)

    @model_validator(mode="before")
    @classmethod
    def _sections_from_env(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data

        source = {**os.environ, **data}
        merged = dict(data)
        for name, field in cls.model_fields.items():
            model = field.annotation
            if not (isinstance(model, type) and issubclass(model, BaseModel)):
                continue
            explicit = data.get(name)
            if explicit is not None and not isinstance(explicit, dict):
                continue
            section = {**_section_from_env(model, source), **(explicit or {})}
            if section:
                merged[name] = section
        return merged

    @model_validator(mode="after")
    def _warn_missing_sync_value(self) -> Self:
        if self.raindrop.mode != "all" and not self.raindrop.config_value:
            logger.warning("raindrop_sync_value_missing", extra={"mode": self.raindrop.mode})
        return self

    def as_app_config(self) -> AppConfig:
        return AppConfig(raindrop=self.raindrop, runtime=self.runtime)


def load_config(**overrides: Any) -> AppConfig:
    """Load configuration from the environment and an optional ``.env`` file.

    Keyword overrides (``raindrop={...}``, ``runtime={...}``) use field names and
    take precedence over both.

    Raises:
        RuntimeError: If configuration validation fails.
    """
    try:
        settings = Settings(**overrides)
    except (ValidationError, ValueError) as exc:
        msg = f"Configuration validation failed: {exc}"
        raise RuntimeError(msg) from exc
    return settings.as_app_config()
