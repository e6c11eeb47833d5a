"""Persisted catalog view preferences (filters and sort)."""

from __future__ import annotations

import logging

from pydantic import ValidationError

from labsync.shared.constants import StorageKeys
from labsync.shared.errors import ErrorCode, ErrorContext, InfrastructureError
from labsync.shared.logging import log_operation_error
from labsync.shared.models import FilterDescriptor, SortDescriptor
from labsync.storage import KeyValueStorage

logger = logging.getLogger(__name__)


class ViewPreferences:
    """Saves and restores the user's last catalog view.

    Stored under ``catalog_view`` as ``{"filters": {...}, "sort": {...}}``.
    A missing or unreadable entry restores the defaults.
    """

    def __init__(self, storage: KeyValueStorage, key: str = StorageKeys.CATALOG_VIEW) -> None:
        self._storage = storage
        self._key = key

    def load(self) -> tuple[FilterDescriptor, SortDescriptor]:
        raw = self._storage.get(self._key)
        if not isinstance(raw, dict):
            return FilterDescriptor(), SortDescriptor()

        try:
            filters = FilterDescriptor.model_validate(raw.get("filters") or {})
            sort = SortDescriptor.model_validate(raw.get("sort") or {})
        except ValidationError as e:
            error = InfrastructureError(
                ErrorCode.STORAGE_READ_FAILED,
                "Stored catalog view preferences are invalid; using defaults",
                ErrorContext(operation="load_view_preferences"),
                original_error=e,
            )
            log_operation_error(logger, error, level=logging.WARNING)
            return FilterDescriptor(), SortDescriptor()

        return filters, sort

    def save(self, filters: FilterDescriptor, sort: SortDescriptor) -> None:
        self._storage.set(
            self._key,
            {
                "filters": filters.model_dump(mode="json", exclude_none=True),
                "sort": sort.model_dump(mode="json"),
            },
        )


__all__ = ["ViewPreferences"]
