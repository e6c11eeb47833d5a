"""
Durable storage keys.

These keys survive process restarts; nothing else is persisted.
"""


class StorageKeys:
    """Keys used in durable and session key-value storage."""

    AUTH_TOKEN = "auth_token"  # noqa: S105  # nosec B105 - storage key name
    USER = "user"
    CATALOG_VIEW = "catalog_view"

    # Session storage
    REDIRECT_PATH = "redirect_path"
