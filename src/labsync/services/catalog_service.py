"""Catalog and owner-record service.

Reads are cache-first with stale-while-revalidate and never raise for
backend failures. This is a deliberate degraded (offline) mode: the
catalog falls back to the embedded default catalog, which is cached so that
repeated failures do not hit the network on every call; a catalog record
falls back to its default counterpart; owner records fall back to an empty
list, which is not cached. Every substitution is logged at WARNING.

Writes (start/delete) propagate errors unchanged. Only after the backend
confirms a write is the owner's cached key family invalidated; there are no
optimistic local writes.
"""

from __future__ import annotations

import logging
import re
import time
from functools import partial
from typing import Any, Awaitable, Callable, TypeVar

from labsync.config.models import CacheSettings
from labsync.services import catalog_defaults
from labsync.services.background_refresh import RefreshCoordinator
from labsync.services.cache_store import (
    CachePolicy,
    CacheStatus,
    CacheStore,
    generate_cache_key,
)
from labsync.services.transport import TransportClient
from labsync.shared.constants import Endpoints
from labsync.shared.errors import (
    ErrorCode,
    ErrorContext,
    InfrastructureError,
    LabSyncError,
    UnresolvedAliasError,
)
from labsync.shared.logging import log_operation_error, log_operation_success
from labsync.shared.models import CatalogRecord, OwnerRecord

logger = logging.getLogger(__name__)

T = TypeVar("T")

Catalog = tuple[CatalogRecord, ...]
OwnerRecords = tuple[OwnerRecord, ...]


class CatalogService:
    """Catalog templates and per-owner records over transport and cache.

    Args:
        transport: Transport client used for every backend call
        cache: Cache store shared with the refresh coordinator
        refresher: Coordinator running fetches and background refreshes
        settings: Cache policy settings
    """

    def __init__(
        self,
        transport: TransportClient,
        cache: CacheStore[Any],
        refresher: RefreshCoordinator,
        settings: CacheSettings | None = None,
    ) -> None:
        settings = settings or CacheSettings()
        self.transport = transport
        self.cache = cache
        self.refresher = refresher
        self.catalog_policy = CachePolicy(
            max_age=settings.catalog_max_age,
            stale_while_revalidate=settings.stale_while_revalidate,
        )
        self.owner_records_policy = CachePolicy(
            max_age=settings.owner_records_max_age,
            stale_while_revalidate=settings.stale_while_revalidate,
        )

    # -- keys --------------------------------------------------------------

    @staticmethod
    def catalog_key() -> str:
        return generate_cache_key(Endpoints.TEMPLATES)

    @staticmethod
    def record_key(record_id: str) -> str:
        return generate_cache_key(Endpoints.template(record_id))

    @staticmethod
    def owner_records_key(owner_id: str) -> str:
        return generate_cache_key(Endpoints.owner_records(owner_id))

    @staticmethod
    def owner_key_pattern(owner_id: str) -> re.Pattern[str]:
        """Pattern matching every cache key under ``/users/{owner_id}/``."""
        return re.compile(f"^{re.escape(Endpoints.owner_root(owner_id))}/")

    # -- read path ---------------------------------------------------------

    async def _read(
        self,
        key: str,
        fetcher: Callable[[], Awaitable[T]],
        refresher: Callable[[], Awaitable[T]],
        policy: CachePolicy,
    ) -> T:
        """Serve ``key`` from cache, revalidating stale entries in the
        background with ``refresher``; on a miss, fetch with ``fetcher``."""
        result = self.cache.get(key)
        if result.status is CacheStatus.HIT:
            return result.data
        if result.status is CacheStatus.STALE:
            self.refresher.revalidate(key, refresher, policy)
            return result.data
        return await self.refresher.fetch(key, fetcher, policy)

    async def _fetch_catalog(self) -> Catalog:
        response = await self.transport.get(Endpoints.TEMPLATES, model=Catalog)
        return response.data or ()

    async def _refresh_catalog(self) -> Catalog:
        catalog = await self._fetch_catalog()
        if not catalog:
            raise InfrastructureError(
                ErrorCode.CACHE_REFRESH_FAILED,
                "Backend returned an empty catalog; keeping cached catalog",
                ErrorContext(operation="refresh_catalog"),
            )
        return catalog

    async def _load_catalog_or_default(self) -> Catalog:
        try:
            catalog = await self._fetch_catalog()
        except LabSyncError as e:
            log_operation_error(
                logger,
                e,
                operation="get_catalog",
                additional_context={"fallback": "default_catalog"},
                level=logging.WARNING,
            )
            return catalog_defaults.default_catalog()

        if not catalog:
            logger.warning("Backend returned an empty catalog; using the default catalog")
            return catalog_defaults.default_catalog()
        return catalog

    async def get_catalog(self) -> Catalog:
        """Return the catalog; never raises for backend failures."""
        return await self._read(
            self.catalog_key(),
            self._load_catalog_or_default,
            self._refresh_catalog,
            self.catalog_policy,
        )

    async def _fetch_record(self, record_id: str) -> CatalogRecord:
        response = await self.transport.get(Endpoints.template(record_id), model=CatalogRecord)
        return response.data

    async def _load_record_or_default(self, record_id: str) -> CatalogRecord:
        try:
            return await self._fetch_record(record_id)
        except LabSyncError as e:
            default = catalog_defaults.default_record(record_id)
            if default is None:
                raise
            log_operation_error(
                logger,
                e,
                operation="get_catalog_by_id",
                additional_context={"record_id": record_id, "fallback": "default_record"},
                level=logging.WARNING,
            )
            return default

    async def get_catalog_by_id(self, record_id: str | int) -> CatalogRecord | None:
        """Return one catalog record, or None if neither the backend nor the
        default catalog has it."""
        record_id = str(record_id)
        try:
            return await self._read(
                self.record_key(record_id),
                partial(self._load_record_or_default, record_id),
                partial(self._fetch_record, record_id),
                self.catalog_policy,
            )
        except LabSyncError as e:
            log_operation_error(
                logger,
                e,
                operation="get_catalog_by_id",
                additional_context={"record_id": record_id},
                level=logging.WARNING,
            )
            return None

    def resolve_alias(self, alias: str) -> str:
        """Map a link alias (``led``, ``uart``) to its catalog id.

        Raises:
            UnresolvedAliasError: If the alias is unknown
        """
        record_id = catalog_defaults.alias_to_id(alias)
        if record_id is None:
            raise UnresolvedAliasError(alias)
        return record_id

    async def get_catalog_by_alias(self, alias: str) -> CatalogRecord | None:
        try:
            record_id = self.resolve_alias(alias)
        except UnresolvedAliasError as e:
            log_operation_error(logger, e, level=logging.WARNING)
            return None
        return await self.get_catalog_by_id(record_id)

    async def _fetch_owner_records(self, owner_id: str) -> OwnerRecords:
        response = await self.transport.get(
            Endpoints.owner_records(owner_id),
            model=OwnerRecords,
        )
        return response.data or ()

    async def get_owner_records(self, owner_id: str | int) -> OwnerRecords:
        """Return the owner's records; an empty tuple if the backend fails."""
        owner_id = str(owner_id)
        fetcher = partial(self._fetch_owner_records, owner_id)
        try:
            return await self._read(
                self.owner_records_key(owner_id),
                fetcher,
                fetcher,
                self.owner_records_policy,
            )
        except LabSyncError as e:
            log_operation_error(
                logger,
                e,
                operation="get_owner_records",
                additional_context={"owner_id": owner_id, "fallback": "empty"},
                level=logging.WARNING,
            )
            return ()

    # -- write path --------------------------------------------------------

    def invalidate_owner(self, owner_id: str | int) -> int:
        """Drop every cached entry under ``/users/{owner_id}/`` and cancel
        background refreshes for them."""
        pattern = self.owner_key_pattern(str(owner_id))
        self.refresher.cancel_matching(pattern)
        return self.cache.remove_matching(pattern)

    async def start_record(self, owner_id: str | int, template_id: str | int) -> Any:
        """Start a record of ``template_id`` for ``owner_id``.

        Returns:
            The backend's ``data`` for the new record

        Raises:
            TransportError: Propagated unchanged; the cache is left untouched
        """
        owner_id = str(owner_id)
        template_id = str(template_id)
        start_time = time.perf_counter()
        try:
            response = await self.transport.post(
                Endpoints.owner_records(owner_id),
                {"template_id": template_id},
            )
        except LabSyncError as e:
            log_operation_error(
                logger,
                e,
                operation="start_record",
                additional_context={"owner_id": owner_id, "template_id": template_id},
            )
            raise

        self.invalidate_owner(owner_id)
        log_operation_success(
            logger,
            "start_record",
            (time.perf_counter() - start_time) * 1000,
            context={"owner_id": owner_id, "template_id": template_id},
        )
        return response.data

    async def delete_record(self, owner_id: str | int, record_id: int | str) -> None:
        """Delete one of the owner's records.

        Raises:
            TransportError: Propagated unchanged; the cache is left untouched
        """
        owner_id = str(owner_id)
        start_time = time.perf_counter()
        try:
            await self.transport.delete(Endpoints.owner_record(owner_id, record_id))
        except LabSyncError as e:
            log_operation_error(
                logger,
                e,
                operation="delete_record",
                additional_context={"owner_id": owner_id, "record_id": str(record_id)},
            )
            raise

        self.invalidate_owner(owner_id)
        log_operation_success(
            logger,
            "delete_record",
            (time.perf_counter() - start_time) * 1000,
            context={"owner_id": owner_id, "record_id": str(record_id)},
        )

    # -- maintenance -------------------------------------------------------

    def clear_cache(self) -> int:
        """Drop every cached entry and cancel background refreshes."""
        self.refresher.cancel_matching("")
        return self.cache.clear()

    async def prefetch_catalog(self) -> bool:
        return await self.refresher.prefetch(
            self.catalog_key(),
            self._load_catalog_or_default,
            self.catalog_policy,
        )


__all__ = ["CatalogService"]
