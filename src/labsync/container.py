"""Composition root.

``build_services`` constructs every collaborator exactly once and wires
them together; nothing in the package is a module-level singleton.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import aiohttp

from labsync.config import Settings
from labsync.services.account_service import AccountService
from labsync.services.background_refresh import RefreshCoordinator
from labsync.services.cache_store import CachePolicy, CacheStore
from labsync.services.catalog_service import CatalogService
from labsync.services.transport import CredentialStore, Navigator, TransportClient
from labsync.shared.logging import setup_structured_logger
from labsync.storage import JsonFileStorage, KeyValueStorage, MemoryStorage
from labsync.store import CatalogStore, ViewPreferences

logger = logging.getLogger(__name__)


@dataclass
class Services:
    """Every long-lived collaborator of one client session."""

    settings: Settings
    storage: KeyValueStorage
    session_storage: KeyValueStorage
    transport: TransportClient
    cache: CacheStore[Any]
    refresher: RefreshCoordinator
    catalog: CatalogService
    account: AccountService
    store: CatalogStore

    async def aclose(self) -> None:
        """Cancel store actions and background work, then close the HTTP
        session."""
        await self.store.close()
        await self.refresher.aclose()
        self.account.detach()
        await self.transport.aclose()

    async def __aenter__(self) -> Services:
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.aclose()


def apply_logging_settings(settings: Settings) -> logging.Logger:
    """Configure the ``labsync`` logger from ``settings.logging``."""
    configured = setup_structured_logger(
        level=settings.logging.level,
        log_file=settings.logging.file,
        use_rich_console=settings.logging.rich_console,
    )
    configured.info(
        "%s %s logging at %s",
        settings.app.name,
        settings.app.version,
        settings.logging.level,
    )
    return configured


def build_services(
    settings: Settings | None = None,
    *,
    storage: KeyValueStorage | None = None,
    session_storage: KeyValueStorage | None = None,
    navigator: Navigator | None = None,
    http_session: aiohttp.ClientSession | None = None,
    setup_logging: bool = False,
) -> Services:
    """Wire up a client session.

    Args:
        settings: Settings (built from the environment when omitted)
        storage: Durable storage; defaults to ``JsonFileStorage`` at
            ``settings.storage.state_file``
        session_storage: Per-session storage; in-memory by default
        navigator: Optional navigation hook used on 401
        http_session: Optional externally managed aiohttp session
        setup_logging: Apply ``settings.logging`` to the ``labsync`` logger
    """
    settings = settings or Settings()
    if setup_logging:
        apply_logging_settings(settings)
    if storage is None:
        storage = JsonFileStorage(Path(settings.storage.state_file).expanduser())
    session_storage = session_storage or MemoryStorage()

    transport = TransportClient(
        settings.api,
        CredentialStore(storage),
        session_storage=session_storage,
        navigator=navigator,
        session=http_session,
    )
    cache: CacheStore[Any] = CacheStore(
        CachePolicy(
            max_age=settings.cache.max_age,
            stale_while_revalidate=settings.cache.stale_while_revalidate,
        ),
    )
    refresher = RefreshCoordinator(cache)
    catalog = CatalogService(transport, cache, refresher, settings.cache)
    account = AccountService(transport)
    store = CatalogStore(catalog, ViewPreferences(storage))

    logger.debug("Built LabSync services for %s", settings.api.base_url)
    return Services(
        settings=settings,
        storage=storage,
        session_storage=session_storage,
        transport=transport,
        cache=cache,
        refresher=refresher,
        catalog=catalog,
        account=account,
        store=store,
    )


__all__ = ["Services", "apply_logging_settings", "build_services"]
