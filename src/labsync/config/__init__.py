"""LabSync configuration.

There is no process-wide settings instance: build a ``Settings`` once at the
composition root and pass it down.
"""

from __future__ import annotations

from pathlib import Path

from .models import (
    APISettings,
    AppSettings,
    CacheSettings,
    LoggingSettings,
    Settings,
    StorageSettings,
)


def load_settings(config_file: str | Path | None = None) -> Settings:
    """Build settings from an optional TOML file plus the environment."""
    if config_file is None:
        return Settings()
    return Settings.from_toml_file(config_file)


__all__ = [
    "APISettings",
    "AppSettings",
    "CacheSettings",
    "LoggingSettings",
    "Settings",
    "StorageSettings",
    "load_settings",
]
