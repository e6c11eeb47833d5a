"""Configuration models for LabSync."""

from .api_settings import APISettings
from .app_settings import AppSettings, LoggingSettings, StorageSettings
from .cache_settings import CacheSettings
from .settings import Settings

__all__ = [
    "APISettings",
    "AppSettings",
    "CacheSettings",
    "LoggingSettings",
    "Settings",
    "StorageSettings",
]
