"""Filter and sort descriptors for catalog views."""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from labsync.shared.models.records import RecordStatus


class SortField(str, Enum):
    """Catalog fields a view can be sorted by."""

    NAME = "name"
    DIFFICULTY_LEVEL = "difficulty_level"
    DURATION_MINUTES = "duration_minutes"
    ORDER_INDEX = "order_index"


class SortDirection(str, Enum):
    ASC = "asc"
    DESC = "desc"


class FilterDescriptor(BaseModel):
    """User-adjustable catalog filter.

    Every field is optional; ``None`` means no constraint.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    category: str | None = None
    difficulty_level: int | None = None
    status: RecordStatus | None = None
    search_text: str | None = None

    def merged(self, partial: FilterDescriptor | dict[str, Any]) -> FilterDescriptor:
        """Return a copy with the fields present in ``partial`` replaced.

        A dict may set a field back to ``None`` to drop that constraint.
        """
        if isinstance(partial, FilterDescriptor):
            updates = partial.model_dump(exclude_unset=True)
        else:
            updates = dict(partial)
        return FilterDescriptor.model_validate({**self.model_dump(), **updates})

    @property
    def is_empty(self) -> bool:
        return all(value is None for value in self.model_dump().values())


class SortDescriptor(BaseModel):
    """Sort order of a catalog view. Default: curated order, ascending."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    field: SortField = Field(default=SortField.ORDER_INDEX)
    direction: SortDirection = Field(default=SortDirection.ASC)
