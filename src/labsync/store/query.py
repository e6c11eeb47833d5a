"""Pure filter and sort functions over catalog records.

Nothing here mutates its inputs; every call returns a new tuple.
"""

from __future__ import annotations

from functools import cmp_to_key
from typing import Any, Callable, Iterable, Sequence

from labsync.shared.models import (
    CatalogRecord,
    FilterDescriptor,
    OwnerRecord,
    RecordStatus,
    SortDescriptor,
    SortDirection,
    SortField,
)


def status_index(owner_records: Iterable[OwnerRecord]) -> dict[str, RecordStatus]:
    """Map catalog id to the status of the owner's record for it.

    When several records share a template, the last one wins.
    """
    return {record.template_id: record.status for record in owner_records}


def _matches_search(record: CatalogRecord, needle: str) -> bool:
    return any(
        needle in part.casefold()
        for part in (record.name, record.description, record.secondary_name)
        if part
    )


def filter_records(
    catalog: Sequence[CatalogRecord],
    filters: FilterDescriptor,
    owner_records: Iterable[OwnerRecord] = (),
) -> tuple[CatalogRecord, ...]:
    """Keep the records satisfying every constraint present in ``filters``.

    ``category``, ``difficulty_level`` and ``status`` match exactly;
    ``search_text`` is a case-insensitive substring of the name, the
    description or the secondary name, each matched on its own. A record's
    status comes from the owner's records; no owner record means
    ``not_started``.
    """
    if filters.is_empty:
        return tuple(catalog)

    statuses = status_index(owner_records) if filters.status is not None else {}
    needle = filters.search_text.casefold() if filters.search_text else None

    def keep(record: CatalogRecord) -> bool:
        if filters.category is not None and record.category != filters.category:
            return False
        if (
            filters.difficulty_level is not None
            and record.difficulty_level != filters.difficulty_level
        ):
            return False
        if filters.status is not None:
            status = statuses.get(record.id, RecordStatus.NOT_STARTED)
            if status is not filters.status:
                return False
        if needle is not None and not _matches_search(record, needle):
            return False
        return True

    return tuple(record for record in catalog if keep(record))


def _sort_value(record: CatalogRecord, field: SortField) -> Any:
    value = getattr(record, field.value)
    if value is None:
        # Missing values sort as 0 (or the empty string for text fields)
        return "" if field is SortField.NAME else 0
    return value


def make_comparator(sort: SortDescriptor) -> Callable[[CatalogRecord, CatalogRecord], int]:
    """Three-way comparator for ``sort``; equal values compare as 0."""
    sign = -1 if sort.direction is SortDirection.DESC else 1

    def compare(a: CatalogRecord, b: CatalogRecord) -> int:
        left = _sort_value(a, sort.field)
        right = _sort_value(b, sort.field)
        if left == right:
            return 0
        return sign * (-1 if left < right else 1)

    return compare


def sort_records(
    records: Sequence[CatalogRecord],
    sort: SortDescriptor | None,
) -> tuple[CatalogRecord, ...]:
    """Stable sort by ``sort``; ``None`` keeps the input order."""
    if sort is None:
        return tuple(records)
    return tuple(sorted(records, key=cmp_to_key(make_comparator(sort))))


def filter_and_sort(
    catalog: Sequence[CatalogRecord],
    filters: FilterDescriptor,
    sort: SortDescriptor | None,
    owner_records: Iterable[OwnerRecord] = (),
) -> tuple[CatalogRecord, ...]:
    return sort_records(filter_records(catalog, filters, owner_records), sort)


__all__ = [
    "filter_and_sort",
    "filter_records",
    "make_comparator",
    "sort_records",
    "status_index",
]
