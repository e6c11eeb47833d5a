"""Per-key mutual exclusion for async mutations."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

logger = logging.getLogger(__name__)


class KeyedLock:
    """A lazily created ``asyncio.Lock`` per key.

    Holders of the same key run one at a time, in arrival order; different
    keys never block each other. A key's lock is dropped once nobody holds
    or waits for it.

    Example:
        >>> locks = KeyedLock()
        >>> async def mutate(owner_id):
        ...     async with locks.hold(owner_id):
        ...         ...
    """

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._users: dict[str, int] = {}

    def __len__(self) -> int:
        return len(self._locks)

    def locked(self, key: str) -> bool:
        lock = self._locks.get(key)
        return lock is not None and lock.locked()

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        self._users[key] = self._users.get(key, 0) + 1

        if lock.locked():
            logger.debug("Waiting for lock on %s", key)
        try:
            async with lock:
                yield
        finally:
            self._users[key] -= 1
            if self._users[key] == 0:
                del self._users[key]
                del self._locks[key]


__all__ = ["KeyedLock"]
