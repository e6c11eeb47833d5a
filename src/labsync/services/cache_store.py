"""In-memory TTL cache with stale-while-revalidate support.

The store keeps at most one entry per key. Reads never raise: absence and
expiry are reported through ``CacheStatus``. Writes may carry a fetch-start
token issued by ``issue_token()``; a write whose token is older than the
newest write or invalidation already recorded for its key is rejected, so a
slow fetch cannot clobber fresher data.
"""

from __future__ import annotations

import logging
import re
import sys
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Generic, TypeVar

import orjson

from labsync.shared.constants import CacheDefaults

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CacheStatus(str, Enum):
    """Outcome of a cache read."""

    HIT = "hit"
    STALE = "stale"
    MISS = "miss"
    EXPIRED = "expired"


@dataclass(frozen=True)
class CachePolicy:
    """Freshness policy for one entry.

    Attributes:
        max_age: Seconds the entry is fresh after it was written.
        stale_while_revalidate: Whether an expired entry may still be served.
    """

    max_age: float = CacheDefaults.MAX_AGE
    stale_while_revalidate: bool = CacheDefaults.STALE_WHILE_REVALIDATE


@dataclass(frozen=True)
class CacheEntry(Generic[T]):
    """A cached payload with its freshness metadata."""

    key: str
    payload: T
    created_at: float
    expires_at: float
    policy: CachePolicy
    token: int

    def is_fresh(self, now: float) -> bool:
        return now < self.expires_at


@dataclass(frozen=True)
class CacheResult(Generic[T]):
    """Result of ``CacheStore.get``; ``data`` is None unless HIT or STALE."""

    data: T | None
    status: CacheStatus

    @property
    def usable(self) -> bool:
        return self.status in (CacheStatus.HIT, CacheStatus.STALE)


@dataclass(frozen=True)
class CacheStats:
    """Point-in-time summary of the store contents."""

    total_entries: int
    valid_entries: int
    expired_entries: int
    total_size_bytes: int

    @property
    def total_size_kb(self) -> float:
        return round(self.total_size_bytes / 1024, 2)


_MIN_JSON_INT = -(2**63)
_MAX_JSON_INT = 2**64 - 1


def _canonical(value: Any) -> Any:
    """Reduce ``value`` to something orjson serializes deterministically.

    Mapping keys become strings and integers orjson cannot encode become
    their decimal text.
    """
    if isinstance(value, dict):
        items = sorted(
            ((str(k), type(k).__name__, v) for k, v in value.items()),
            key=lambda item: (item[0], item[1]),
        )
        return {key: _canonical(v) for key, _, v in items}
    if isinstance(value, (list, tuple)):
        return [_canonical(v) for v in value]
    if isinstance(value, int) and not isinstance(value, bool):
        if not _MIN_JSON_INT <= value <= _MAX_JSON_INT:
            return str(value)
    return value


def generate_cache_key(path: str, params: dict[Any, Any] | None = None) -> str:
    """Build a deterministic cache key for a resource path and params.

    Params are serialized with sorted keys, so the same param set in any
    insertion order yields the same key. Non-string keys are stringified.

    Example:
        >>> generate_cache_key("/templates", {"b": 2, "a": 1})
        '/templates:{"a":1,"b":2}'
    """
    serialized = orjson.dumps(
        _canonical(params or {}),
        option=orjson.OPT_SORT_KEYS,
        default=str,
    ).decode("utf-8")
    return f"{path}:{serialized}"


def _estimate_size(key: str, payload: Any) -> int:
    try:
        payload_size = len(orjson.dumps(payload, default=str))
    except TypeError:
        payload_size = sys.getsizeof(payload)
    return (len(key) * CacheDefaults.BYTES_PER_CHAR) + payload_size


class CacheStore(Generic[T]):
    """Keyed TTL cache over opaque payloads.

    Args:
        default_policy: Policy applied when ``set`` is called without one.
        clock: Monotonic time source in seconds; injectable for tests.
    """

    def __init__(
        self,
        default_policy: CachePolicy | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.default_policy = default_policy or CachePolicy()
        self._clock = clock
        self._entries: dict[str, CacheEntry[T]] = {}
        # Newest token written or invalidated per key.
        self._floors: dict[str, int] = {}
        # Applies to keys with no floor of their own (advanced by clear()).
        self._global_floor = 0
        self._next_token = 0
        # Tokens of fetches still running, with the key each will write.
        self._outstanding: dict[int, str | None] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def _advance(self) -> int:
        self._next_token += 1
        return self._next_token

    def issue_token(self, key: str | None = None) -> int:
        """Return a new fetch-start token, greater than every earlier one.

        The token counts as outstanding until ``release_token`` is called.
        While it is, ``remove_matching`` also invalidates ``key`` even if
        nothing is cached under it yet.
        """
        token = self._advance()
        self._outstanding[token] = key
        return token

    def release_token(self, token: int) -> None:
        """Mark the fetch that owns ``token`` as finished."""
        self._outstanding.pop(token, None)

    def _floor(self, key: str) -> int:
        return max(self._floors.get(key, 0), self._global_floor)

    def get(self, key: str) -> CacheResult[T]:
        entry = self._entries.get(key)
        if entry is None:
            return CacheResult(None, CacheStatus.MISS)

        if entry.is_fresh(self._clock()):
            return CacheResult(entry.payload, CacheStatus.HIT)

        if entry.policy.stale_while_revalidate:
            return CacheResult(entry.payload, CacheStatus.STALE)

        return CacheResult(None, CacheStatus.EXPIRED)

    def get_entry(self, key: str) -> CacheEntry[T] | None:
        return self._entries.get(key)

    def set(
        self,
        key: str,
        data: T,
        policy: CachePolicy | None = None,
        *,
        token: int | None = None,
    ) -> bool:
        """Create or overwrite the entry for ``key``.

        Args:
            key: Cache key
            data: Payload to store
            policy: Freshness policy (defaults to the store's default policy)
            token: Fetch-start token of the request that produced ``data``;
                a fresh token is issued when omitted.

        Returns:
            False if the write was rejected because a newer write or an
            invalidation for ``key`` is already recorded, True otherwise.
        """
        if token is None:
            token = self._advance()

        if token <= self._floor(key):
            logger.debug(
                "Rejected out-of-order cache write for %s (token %d <= %d)",
                key,
                token,
                self._floor(key),
            )
            return False

        policy = policy or self.default_policy
        now = self._clock()
        self._entries[key] = CacheEntry(
            key=key,
            payload=data,
            created_at=now,
            expires_at=now + policy.max_age,
            policy=policy,
            token=token,
        )
        self._floors[key] = token
        return True

    def _invalidate(self, key: str) -> None:
        self._entries.pop(key, None)
        self._floors[key] = self._advance()

    def remove(self, key: str) -> bool:
        """Drop the entry for ``key`` and reject writes from fetches started
        before this call. Returns True if an entry was present."""
        existed = key in self._entries
        self._invalidate(key)
        return existed

    def remove_matching(self, pattern: str | re.Pattern[str]) -> int:
        """Invalidate every key matched by ``pattern`` (``re.search``).

        Returns:
            Number of entries removed.
        """
        regex = re.compile(pattern) if isinstance(pattern, str) else pattern
        keys = {k for k in self._entries if regex.search(k)}
        keys.update(k for k in self._floors if regex.search(k))
        keys.update(k for k in self._outstanding.values() if k is not None and regex.search(k))

        removed = 0
        for key in keys:
            if key in self._entries:
                removed += 1
            self._invalidate(key)

        logger.debug("Invalidated %d cache entries matching %s", removed, regex.pattern)
        return removed

    def clear(self) -> int:
        """Drop all entries. Returns the number removed."""
        removed = len(self._entries)
        self._entries.clear()
        self._floors.clear()
        self._global_floor = self._advance()
        logger.debug("Cleared %d cache entries", removed)
        return removed

    def purge_expired(self) -> int:
        """Drop expired entries that may not be served stale.

        Floors that can no longer reject a write are pruned too: those no
        newer than ``clear()``'s floor, and those older than every
        outstanding fetch token.
        """
        now = self._clock()
        expired = [
            key
            for key, entry in self._entries.items()
            if not entry.is_fresh(now) and not entry.policy.stale_while_revalidate
        ]
        for key in expired:
            del self._entries[key]
        if expired:
            logger.debug("Purged %d expired cache entries", len(expired))

        pruned = self._prune_floors()
        if pruned:
            logger.debug("Pruned %d cache write floors", pruned)
        return len(expired)

    def _prune_floors(self) -> int:
        oldest = min(self._outstanding, default=None)
        dead = [
            key
            for key, floor in self._floors.items()
            if floor <= self._global_floor or oldest is None or floor < oldest
        ]
        for key in dead:
            del self._floors[key]
        return len(dead)

    def floor_count(self) -> int:
        """Number of keys carrying their own write floor."""
        return len(self._floors)

    def keys(self) -> list[str]:
        return list(self._entries)

    def stats(self) -> CacheStats:
        now = self._clock()
        valid = sum(1 for entry in self._entries.values() if entry.is_fresh(now))
        size = sum(_estimate_size(k, e.payload) for k, e in self._entries.items())
        return CacheStats(
            total_entries=len(self._entries),
            valid_entries=valid,
            expired_entries=len(self._entries) - valid,
            total_size_bytes=size,
        )


__all__ = [
    "CacheEntry",
    "CachePolicy",
    "CacheResult",
    "CacheStats",
    "CacheStatus",
    "CacheStore",
    "generate_cache_key",
]
