"""Cache configuration model.

Controls the TTL policy the catalog service applies to each resource
family.
"""

from __future__ import annotations

from pydantic import BaseModel, Field

from labsync.shared.constants import CacheDefaults


class CacheSettings(BaseModel):
    """Cache policy configuration (seconds)."""

    max_age: float = Field(
        default=CacheDefaults.MAX_AGE,
        gt=0,
        description="Default time-to-live for cached responses",
    )
    catalog_max_age: float = Field(
        default=CacheDefaults.CATALOG_MAX_AGE,
        gt=0,
        description="Time-to-live for catalog lists and records",
    )
    owner_records_max_age: float = Field(
        default=CacheDefaults.OWNER_RECORDS_MAX_AGE,
        gt=0,
        description="Time-to-live for per-owner record lists",
    )
    stale_while_revalidate: bool = Field(
        default=CacheDefaults.STALE_WHILE_REVALIDATE,
        description="Serve expired entries while refreshing in the background",
    )


__all__ = ["CacheSettings"]
