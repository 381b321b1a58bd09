"""Configuration management for the Mowa server."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Optional

import structlog
import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict

from .errors import ConfigError

log = structlog.get_logger(__name__)

DEFAULT_STORAGE_DIR = Path("./storage")
DEFAULT_PORT = 8080


def resolve_port(value: Any) -> int:
    """Coerce a port value, falling back to the default when it is not an integer."""
    if value is None or value == "":
        return DEFAULT_PORT
    try:
        return int(value)
    except (TypeError, ValueError):
        log.warning("config.invalid_port", value=str(value), fallback=DEFAULT_PORT)
        return DEFAULT_PORT


class StorageSettings(BaseModel):
    """Location of the storage root. Administrator-provided, never user input."""

    model_config = ConfigDict(frozen=True)

    dir: Path = Field(
        default=DEFAULT_STORAGE_DIR,
        description="Directory under which every storage operation is confined.",
    )

    @field_validator("dir", mode="before")
    @classmethod
    def _default_dir(cls, value: Path | str | None) -> Path:
        if value is None or value == "":
            return DEFAULT_STORAGE_DIR
        return Path(value)


class MessagesSettings(BaseModel):
    model_config = ConfigDict(frozen=True)

    groups: dict[str, list[str]] = Field(
        default_factory=dict,
        description="Named recipient groups, expanded before sending.",
    )

    @field_validator("groups", mode="before")
    @classmethod
    def _ensure_groups(cls, value: Optional[dict[str, list[str]]]) -> dict[str, list[str]]:
        if value is None:
            return {}
        return value


class Settings(BaseSettings):
    """Immutable runtime configuration, built once at startup."""

    model_config = SettingsConfigDict(
        env_prefix="MOWA_",
        env_nested_delimiter="__",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    # Server
    host: str = Field(default="127.0.0.1", description="Interface to bind; localhost only by default.")
    port: int = Field(default=DEFAULT_PORT)

    # Logging
    log_level: str = Field(default="INFO")
    json_logs: bool = Field(default=False)

    messages: MessagesSettings = Field(default_factory=MessagesSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        # Values from the YAML file arrive as init kwargs; MOWA_* variables win over them.
        return env_settings, dotenv_settings, init_settings, file_secret_settings

    @field_validator("port", mode="before")
    @classmethod
    def _coerce_port(cls, value: Any) -> int:
        return resolve_port(value)

    @field_validator("messages", "storage", mode="before")
    @classmethod
    def _empty_section(cls, value: Any) -> Any:
        # An empty YAML section ("storage:") parses as None.
        if value is None:
            return {}
        return value


def load_settings(config_path: str | Path | None = None) -> Settings:
    """Build settings from an optional YAML file, with ``MOWA_*`` environment overrides."""
    if not config_path:
        return Settings()

    path = Path(config_path)
    try:
        with path.open("r", encoding="utf-8") as fh:
            data = yaml.safe_load(fh) or {}
    except OSError as exc:
        raise ConfigError(f"failed to read config file {path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise ConfigError(f"failed to parse config file {path}: {exc}") from exc

    if not isinstance(data, dict):
        raise ConfigError(f"failed to parse config file {path}: top level must be a mapping")

    try:
        settings = Settings(**data)
    except ValidationError as exc:
        raise ConfigError(f"invalid configuration in {path}: {exc}") from exc

    log.info(
        "config.loaded",
        path=str(path),
        groups=len(settings.messages.groups),
        storage_dir=str(settings.storage.dir),
    )
    return settings
