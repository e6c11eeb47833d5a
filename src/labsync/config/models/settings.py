"""LabSync Settings Configuration Model.

Main Settings class that consolidates all configuration domains.
"""

from __future__ import annotations

import logging
from pathlib import Path

import toml
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from labsync.config.models.api_settings import APISettings
from labsync.config.models.app_settings import (
    AppSettings,
    LoggingSettings,
    StorageSettings,
)
from labsync.config.models.cache_settings import CacheSettings
from labsync.shared.errors import ApplicationError, ErrorCode, ErrorContext

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Unified configuration access.

    Values come from (highest priority first) constructor arguments,
    ``LABSYNC_*`` environment variables (``__`` separates nested sections,
    e.g. ``LABSYNC_API__BASE_URL``) and the defaults below.
    """

    model_config = SettingsConfigDict(
        env_prefix="LABSYNC_",
        env_nested_delimiter="__",
        env_ignore_empty=True,
        extra="ignore",
    )

    app: AppSettings = Field(default_factory=AppSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    api: APISettings = Field(default_factory=APISettings)
    cache: CacheSettings = Field(default_factory=CacheSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)

    @classmethod
    def from_toml_file(cls, file_path: str | Path) -> Settings:
        """Load settings from a TOML file.

        Sections present in the file win; the environment and defaults fill
        in whatever the file leaves out.
        """
        file_path = Path(file_path)
        if not file_path.exists():
            raise ApplicationError(
                ErrorCode.CONFIG_MISSING,
                f"Configuration file not found: {file_path}",
                ErrorContext(
                    operation="load_settings",
                    additional_data={"path": file_path},
                ),
            )

        try:
            raw_config = toml.load(file_path)
        except toml.TomlDecodeError as e:
            raise ApplicationError(
                ErrorCode.CONFIG_ERROR,
                f"Invalid TOML in configuration file: {file_path}",
                ErrorContext(
                    operation="load_settings",
                    additional_data={"path": file_path},
                ),
                original_error=e,
            ) from e

        logger.debug("Loaded configuration from %s", file_path)
        return cls(**raw_config)

    def to_toml_file(self, file_path: str | Path) -> None:
        """Save settings to a TOML file."""
        file_path = Path(file_path)
        file_path.parent.mkdir(parents=True, exist_ok=True)

        with open(file_path, "w", encoding="utf-8") as f:
            toml.dump(self.model_dump(exclude_none=True), f)


__all__ = ["Settings"]
