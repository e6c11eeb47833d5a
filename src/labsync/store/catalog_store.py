"""Reactive catalog store.

``CatalogStore`` is the only writer of the canonical ``catalog`` and
``owner_records`` collections. State is an immutable ``StoreState`` that is
replaced wholesale on every change; subscribers receive each new state.

Every action runs as a task inside a ``CancellationScope``. A newer
``load_catalog`` supersedes an older one, and a newer
``load_owner_records(owner)`` supersedes an older one for the same owner. A
superseded or cancelled action stops at its next await and never writes
canonical data. Mutations for one owner are serialized by a per-owner lock.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Coroutine
from dataclasses import dataclass, field, replace
from functools import partial
from typing import Any, Callable, TypeVar

from labsync.services.catalog_service import CatalogService
from labsync.shared.errors import LabSyncError
from labsync.shared.logging import log_operation_error
from labsync.shared.models import (
    CatalogRecord,
    FilterDescriptor,
    OwnerRecord,
    SortDescriptor,
)
from labsync.store.cancellation import CancellationScope
from labsync.store.keyed_lock import KeyedLock
from labsync.store.preferences import ViewPreferences
from labsync.store.query import filter_and_sort

logger = logging.getLogger(__name__)

T = TypeVar("T")

CATALOG_SLOT = "catalog"


def owner_slot(owner_id: str) -> str:
    return f"owner:{owner_id}"


@dataclass(frozen=True)
class StoreState:
    """Snapshot of the store. Collections are tuples and never mutated."""

    catalog: tuple[CatalogRecord, ...] = ()
    owner_records: tuple[OwnerRecord, ...] = ()
    filters: FilterDescriptor = field(default_factory=FilterDescriptor)
    sort: SortDescriptor = field(default_factory=SortDescriptor)
    loading: bool = False
    error: str | None = None


StateListener = Callable[[StoreState], None]


class CatalogStore:
    """Canonical catalog state with filtered and sorted views.

    Args:
        service: Catalog service the actions delegate to
        preferences: Where filters and sort are persisted; restored here
        scope: Lifetime scope for actions (the store creates its own when
            omitted; ``close()`` cancels it)
    """

    def __init__(
        self,
        service: CatalogService,
        preferences: ViewPreferences | None = None,
        *,
        scope: CancellationScope | None = None,
    ) -> None:
        self.service = service
        self.preferences = preferences
        self._scope = scope or CancellationScope("catalog_store")
        self._slots: dict[str, asyncio.Task[Any]] = {}
        self._owner_locks = KeyedLock()
        self._loading = 0
        self._listeners: list[StateListener] = []

        if preferences is not None:
            filters, sort = preferences.load()
        else:
            filters, sort = FilterDescriptor(), SortDescriptor()
        self._state = StoreState(filters=filters, sort=sort)

    @property
    def state(self) -> StoreState:
        return self._state

    @property
    def scope(self) -> CancellationScope:
        return self._scope

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Call ``listener(state)`` after every change; returns an
        unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # -- state plumbing ----------------------------------------------------

    def _commit(self, **changes: Any) -> None:
        self._state = replace(self._state, **changes)
        for listener in list(self._listeners):
            listener(self._state)

    def _begin(self) -> None:
        self._loading += 1
        self._commit(loading=True, error=None)

    def _end(self) -> None:
        self._loading -= 1
        if self._loading == 0:
            self._commit(loading=False)

    def _record_failure(self, error: Exception, operation: str) -> None:
        if isinstance(error, LabSyncError):
            log_operation_error(logger, error, operation=operation)
            message = error.user_message
        else:
            logger.exception("Unexpected failure in %s", operation)
            message = str(error) or type(error).__name__
        self._commit(error=message)

    def _release_slot(self, slot: str, task: asyncio.Task[Any]) -> None:
        if self._slots.get(slot) is task:
            del self._slots[slot]

    def _cancel_slot(self, slot: str) -> None:
        task = self._slots.pop(slot, None)
        if task is not None and not task.done():
            task.cancel()
            logger.debug("Cancelled in-flight %s", slot)

    async def _run(
        self,
        coro: Coroutine[Any, Any, T],
        *,
        slot: str | None = None,
        scope: CancellationScope | None = None,
    ) -> T | None:
        """Run an action in ``scope``, superseding the previous holder of
        ``slot``. Returns None if the action was cancelled by its scope or
        superseded; re-raises its exception otherwise."""
        scope = scope or self._scope
        task = scope.spawn(coro, name=slot or coro.__name__)
        if slot is not None:
            self._cancel_slot(slot)
            self._slots[slot] = task
            task.add_done_callback(partial(self._release_slot, slot))

        try:
            await asyncio.wait({task})
        except asyncio.CancelledError:
            # The caller went away: stop the action too.
            task.cancel()
            raise

        if task.cancelled():
            return None
        return task.result()

    # -- read actions ------------------------------------------------------

    async def load_catalog(
        self,
        *,
        scope: CancellationScope | None = None,
    ) -> tuple[CatalogRecord, ...] | None:
        """Replace the catalog with the service's catalog.

        Failures are surfaced in ``state.error``, not raised.
        """
        return await self._run(self._load_catalog(), slot=CATALOG_SLOT, scope=scope)

    async def _load_catalog(self) -> tuple[CatalogRecord, ...] | None:
        self._begin()
        try:
            catalog = await self.service.get_catalog()
        except Exception as e:  # noqa: BLE001
            self._record_failure(e, "load_catalog")
            return None
        else:
            self._commit(catalog=tuple(catalog))
            return self._state.catalog
        finally:
            self._end()

    async def load_owner_records(
        self,
        owner_id: str | int,
        *,
        scope: CancellationScope | None = None,
    ) -> tuple[OwnerRecord, ...] | None:
        """Replace the owner records with the service's list for ``owner_id``."""
        owner_id = str(owner_id)
        return await self._run(
            self._load_owner_records(owner_id),
            slot=owner_slot(owner_id),
            scope=scope,
        )

    async def _load_owner_records(self, owner_id: str) -> tuple[OwnerRecord, ...] | None:
        self._begin()
        try:
            records = await self.service.get_owner_records(owner_id)
        except Exception as e:  # noqa: BLE001
            self._record_failure(e, "load_owner_records")
            return None
        else:
            self._commit(owner_records=tuple(records))
            return self._state.owner_records
        finally:
            self._end()

    # -- write actions -----------------------------------------------------

    async def start_record(
        self,
        owner_id: str | int,
        template_id: str | int,
        *,
        scope: CancellationScope | None = None,
    ) -> Any:
        """Start a record, then reload the owner's records from the backend.

        Raises:
            Exception: Whatever the service raised; ``state.error`` is set
                and nothing is reloaded
        """
        owner_id = str(owner_id)
        return await self._run(
            self._start_record(owner_id, str(template_id), scope),
            scope=scope,
        )

    async def _start_record(
        self,
        owner_id: str,
        template_id: str,
        scope: CancellationScope | None,
    ) -> Any:
        async with self._owner_locks.hold(owner_id):
            self._begin()
            try:
                try:
                    result = await self.service.start_record(owner_id, template_id)
                except Exception as e:
                    self._record_failure(e, "start_record")
                    raise
                await self.load_owner_records(owner_id, scope=scope)
                return result
            finally:
                self._end()

    async def delete_record(
        self,
        owner_id: str | int,
        record_id: int | str,
        *,
        scope: CancellationScope | None = None,
    ) -> None:
        """Delete a record; on success remove exactly that record locally.

        Raises:
            Exception: Whatever the service raised; ``state.error`` is set
                and ``owner_records`` is left untouched
        """
        await self._run(self._delete_record(str(owner_id), record_id), scope=scope)

    async def _delete_record(self, owner_id: str, record_id: int | str) -> None:
        async with self._owner_locks.hold(owner_id):
            self._begin()
            try:
                try:
                    await self.service.delete_record(owner_id, record_id)
                except Exception as e:
                    self._record_failure(e, "delete_record")
                    raise
                # A load that started before the delete may still hold the record.
                self._cancel_slot(owner_slot(owner_id))
                self._commit(
                    owner_records=tuple(
                        record
                        for record in self._state.owner_records
                        if not (record.owner_id == owner_id and str(record.id) == str(record_id))
                    ),
                )
            finally:
                self._end()

    # -- view --------------------------------------------------------------

    def _persist_view(self) -> None:
        if self.preferences is None:
            return
        try:
            self.preferences.save(self._state.filters, self._state.sort)
        except LabSyncError as e:
            log_operation_error(logger, e, operation="save_view_preferences", level=logging.WARNING)

    def set_filters(self, partial_filters: FilterDescriptor | dict[str, Any]) -> FilterDescriptor:
        """Merge ``partial_filters`` into the current filters."""
        self._commit(filters=self._state.filters.merged(partial_filters))
        self._persist_view()
        return self._state.filters

    def set_sort(self, sort: SortDescriptor | dict[str, Any]) -> SortDescriptor:
        if not isinstance(sort, SortDescriptor):
            sort = SortDescriptor.model_validate(sort)
        self._commit(sort=sort)
        self._persist_view()
        return sort

    def get_filtered_records(self) -> tuple[CatalogRecord, ...]:
        """The catalog filtered and sorted by the current descriptors."""
        state = self._state
        return filter_and_sort(state.catalog, state.filters, state.sort, state.owner_records)

    def find_record(self, record_id: str | int) -> CatalogRecord | None:
        record_id = str(record_id)
        return next((record for record in self._state.catalog if record.id == record_id), None)

    # -- lifecycle ---------------------------------------------------------

    def clear_error(self) -> None:
        self._commit(error=None)

    async def refresh(
        self,
        *,
        scope: CancellationScope | None = None,
    ) -> tuple[CatalogRecord, ...] | None:
        """Drop cached data and reload the catalog."""
        self.service.clear_cache()
        return await self.load_catalog(scope=scope)

    def reset(self) -> None:
        """Cancel in-flight loads, drop cached data and empty the collections."""
        for slot in list(self._slots):
            self._cancel_slot(slot)
        self.service.clear_cache()
        self._commit(catalog=(), owner_records=(), error=None)

    async def close(self) -> None:
        """Cancel every action started in the store's own scope."""
        self._slots.clear()
        await self._scope.aclose()


__all__ = [
    "CATALOG_SLOT",
    "CatalogStore",
    "StateListener",
    "StoreState",
    "owner_slot",
]
