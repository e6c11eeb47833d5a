"""Reactive catalog store and its helpers."""

from .cancellation import CancellationScope
from .catalog_store import CatalogStore, StateListener, StoreState
from .keyed_lock import KeyedLock
from .preferences import ViewPreferences
from .query import filter_and_sort, filter_records, sort_records

__all__ = [
    "CancellationScope",
    "CatalogStore",
    "KeyedLock",
    "StateListener",
    "StoreState",
    "ViewPreferences",
    "filter_and_sort",
    "filter_records",
    "sort_records",
]
