"""LabSync services: transport, cache, catalog and account."""

from .account_service import AccountService
from .background_refresh import RefreshCoordinator
from .cache_store import (
    CacheEntry,
    CachePolicy,
    CacheResult,
    CacheStats,
    CacheStatus,
    CacheStore,
    generate_cache_key,
)
from .catalog_service import CatalogService
from .state_machine import AuthEvent, AuthState, AuthStateMachine
from .transport import (
    CredentialStore,
    Navigator,
    StreamCallbacks,
    TransportClient,
    UploadFile,
)

__all__ = [
    "AccountService",
    "AuthEvent",
    "AuthState",
    "AuthStateMachine",
    "CacheEntry",
    "CachePolicy",
    "CacheResult",
    "CacheStats",
    "CacheStatus",
    "CacheStore",
    "CatalogService",
    "CredentialStore",
    "Navigator",
    "RefreshCoordinator",
    "StreamCallbacks",
    "TransportClient",
    "UploadFile",
    "generate_cache_key",
]
