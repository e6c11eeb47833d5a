"""Supervised background revalidation for the cache store.

``RefreshCoordinator`` owns every task that writes into a ``CacheStore``:

* background refreshes started on a stale read are single-flight per key,
  cancellable, and never raise to the reader;
* explicit fetches supersede a pending background refresh for the same key
  and are shared by concurrent callers;
* every write carries the token issued when its fetch started, so the cache
  rejects results that arrive after fresher data or an invalidation.
"""

from __future__ import annotations

import asyncio
import logging
import re
import time
from functools import partial
from typing import Any, Awaitable, Callable, TypeVar

from labsync.services.cache_store import CachePolicy, CacheStore
from labsync.shared.errors import (
    ErrorCode,
    ErrorContext,
    InfrastructureError,
    LabSyncError,
)
from labsync.shared.logging import log_operation_error, log_operation_success

logger = logging.getLogger(__name__)

T = TypeVar("T")

Fetcher = Callable[[], Awaitable[T]]


class RefreshCoordinator:
    """Runs cache-filling fetches on behalf of the catalog service.

    Args:
        cache: The cache store the fetched payloads are written to.
    """

    def __init__(self, cache: CacheStore[Any]) -> None:
        self.cache = cache
        self._refreshes: dict[str, asyncio.Task[Any]] = {}
        self._fetches: dict[str, asyncio.Task[Any]] = {}
        self._tasks: set[asyncio.Task[Any]] = set()

    def _track(self, registry: dict[str, asyncio.Task[Any]], key: str, task: asyncio.Task[Any]) -> None:
        registry[key] = task
        self._tasks.add(task)
        task.add_done_callback(partial(self._settle, registry, key))

    def _settle(self, registry: dict[str, asyncio.Task[Any]], key: str, task: asyncio.Task[Any]) -> None:
        self._tasks.discard(task)
        if registry.get(key) is task:
            del registry[key]
        # Mark the outcome as retrieved; awaiting callers already saw it
        if not task.cancelled():
            task.exception()

    def is_refreshing(self, key: str) -> bool:
        task = self._refreshes.get(key)
        return task is not None and not task.done()

    def is_fetching(self, key: str) -> bool:
        task = self._fetches.get(key)
        return task is not None and not task.done()

    def revalidate(
        self,
        key: str,
        fetcher: Fetcher[Any],
        policy: CachePolicy | None = None,
    ) -> asyncio.Task[Any]:
        """Refresh ``key`` in the background.

        If a refresh for ``key`` is already running, its task is returned and
        no new request is made. If an explicit fetch is running, the returned
        task just follows it.
        """
        existing = self._refreshes.get(key)
        if existing is not None and not existing.done():
            logger.debug("Refresh for %s already in flight", key)
            return existing

        pending_fetch = self._fetches.get(key)
        if pending_fetch is not None and not pending_fetch.done():
            coro = self._follow(key, pending_fetch)
        else:
            coro = self._run_refresh(key, fetcher, policy)

        task = asyncio.create_task(coro, name=f"revalidate:{key}")
        self._track(self._refreshes, key, task)
        return task

    async def _follow(self, key: str, fetch_task: asyncio.Task[Any]) -> None:
        try:
            await asyncio.shield(fetch_task)
        except Exception as e:  # noqa: BLE001
            # The explicit caller receives and handles the error itself
            logger.debug("Followed fetch for %s failed: %s", key, e)

    async def _run_refresh(
        self,
        key: str,
        fetcher: Fetcher[Any],
        policy: CachePolicy | None,
    ) -> None:
        token = self.cache.issue_token(key)
        try:
            await self._refresh_with(key, fetcher, policy, token)
        finally:
            self.cache.release_token(token)

    async def _refresh_with(
        self,
        key: str,
        fetcher: Fetcher[Any],
        policy: CachePolicy | None,
        token: int,
    ) -> None:
        start_time = time.perf_counter()
        try:
            data = await fetcher()
        except asyncio.CancelledError:
            logger.debug("Background refresh for %s cancelled", key)
            raise
        except LabSyncError as e:
            log_operation_error(
                logger=logger,
                error=e,
                operation="revalidate",
                additional_context={"key": key},
                level=logging.WARNING,
            )
            return
        except Exception as e:  # noqa: BLE001
            # Boundary: a background task has no caller to propagate to
            error = InfrastructureError(
                ErrorCode.CACHE_REFRESH_FAILED,
                f"Background refresh failed for {key}: {e!s}",
                ErrorContext(operation="revalidate", additional_data={"key": key}),
                original_error=e,
            )
            log_operation_error(logger=logger, error=error, operation="revalidate")
            return

        written = self.cache.set(key, data, policy, token=token)
        log_operation_success(
            logger=logger,
            operation="revalidate",
            duration_ms=(time.perf_counter() - start_time) * 1000,
            result_info={"key": key, "written": written},
        )

    async def fetch(
        self,
        key: str,
        fetcher: Fetcher[T],
        policy: CachePolicy | None = None,
    ) -> T:
        """Fetch ``key`` now and write the result to the cache.

        Cancels a pending background refresh for ``key``. Concurrent calls
        for the same key share one request. Errors propagate to every
        caller and nothing is written.
        """
        self._cancel_refresh(key)

        task = self._fetches.get(key)
        if task is None or task.done():
            task = asyncio.create_task(
                self._run_fetch(key, fetcher, policy),
                name=f"fetch:{key}",
            )
            self._track(self._fetches, key, task)
        else:
            logger.debug("Joining in-flight fetch for %s", key)

        return await asyncio.shield(task)

    async def _run_fetch(
        self,
        key: str,
        fetcher: Fetcher[T],
        policy: CachePolicy | None,
    ) -> T:
        token = self.cache.issue_token(key)
        try:
            data = await fetcher()
            if not self.cache.set(key, data, policy, token=token):
                logger.debug("Fetched %s but a newer write or invalidation won", key)
        finally:
            self.cache.release_token(token)
        return data

    async def prefetch(
        self,
        key: str,
        fetcher: Fetcher[Any],
        policy: CachePolicy | None = None,
    ) -> bool:
        """Warm the cache for ``key``. Failures are logged, not raised."""
        try:
            await self.fetch(key, fetcher, policy)
        except LabSyncError as e:
            log_operation_error(
                logger=logger,
                error=e,
                operation="prefetch",
                additional_context={"key": key},
                level=logging.WARNING,
            )
            return False
        return True

    def _cancel_refresh(self, key: str) -> bool:
        task = self._refreshes.pop(key, None)
        if task is None or task.done():
            return False
        task.cancel()
        logger.debug("Cancelled background refresh for %s", key)
        return True

    def _detach_fetch(self, key: str) -> None:
        # Callers already waiting keep their result; later callers start over.
        if self._fetches.pop(key, None) is not None:
            logger.debug("Detached in-flight fetch for %s", key)

    def cancel(self, key: str) -> bool:
        """Stop serving in-flight work for ``key`` to new callers.

        The background refresh is cancelled. An explicit fetch keeps running
        for the callers already awaiting it, but later calls start a new one.
        Returns True if a refresh was cancelled.
        """
        self._detach_fetch(key)
        return self._cancel_refresh(key)

    def cancel_matching(self, pattern: str | re.Pattern[str]) -> int:
        """``cancel`` every key matched by ``pattern`` (``re.search``)."""
        regex = re.compile(pattern) if isinstance(pattern, str) else pattern
        keys = [key for key in (*self._refreshes, *self._fetches) if regex.search(key)]
        return sum(1 for key in set(keys) if self.cancel(key))

    async def aclose(self) -> None:
        """Cancel every refresh and fetch and wait for them to finish."""
        tasks = list(self._tasks)
        self._refreshes.clear()
        self._fetches.clear()
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        logger.debug("Refresh coordinator closed (%d tasks cancelled)", len(tasks))


__all__ = ["Fetcher", "RefreshCoordinator"]
