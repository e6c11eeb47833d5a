"""
Cache Configuration Constants
"""

# Base time units for TTL calculations
BASE_SECOND = 1
BASE_MINUTE = 60 * BASE_SECOND
BASE_HOUR = 60 * BASE_MINUTE


class CacheDefaults:
    """Default cache policy values (seconds)."""

    MAX_AGE = 5 * BASE_MINUTE
    CATALOG_MAX_AGE = 5 * BASE_MINUTE
    OWNER_RECORDS_MAX_AGE = 1 * BASE_MINUTE
    STALE_WHILE_REVALIDATE = True

    # Rough per-character size used by CacheStore.stats()
    BYTES_PER_CHAR = 2
