"""Application, logging and storage configuration models."""

from __future__ import annotations

from pydantic import BaseModel, Field


class AppSettings(BaseModel):
    """Application identity."""

    name: str = Field(default="LabSync", description="Application name")
    version: str = Field(default="0.1.0", description="Application version")


class LoggingSettings(BaseModel):
    """Logging configuration.

    Console output goes through rich; the optional file is JSON lines.
    """

    level: str = Field(default="INFO", description="Logging level")
    file: str | None = Field(default=None, description="Optional JSON log file path")
    rich_console: bool = Field(default=True, description="Use rich console output")


class StorageSettings(BaseModel):
    """Durable client state location."""

    state_file: str = Field(
        default="~/.labsync/state.json",
        description="JSON file holding the credential and view preferences",
    )


__all__ = [
    "AppSettings",
    "LoggingSettings",
    "StorageSettings",
]
