"""Catalog and owner record models.

These Pydantic models are the validating decode step at the transport
boundary: server payloads are normalized into them before they reach the
catalog service, so downstream code never branches on missing keys.

Both models accept the backend's wire names (``difficulty``, ``duration``,
``project_name``, ``user_id``, ``experiment_id``, ``progress``) as well as
the Python field names.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class RecordModel(BaseModel):
    """Base for immutable records decoded from the backend.

    ``extra="ignore"`` lets the backend add fields without breaking decoding.
    """

    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)


class RecordStatus(str, Enum):
    """Lifecycle of an owner's record."""

    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"


def _id_to_str(value: Any) -> Any:
    # Backend ids arrive as ints or strings depending on the endpoint
    if isinstance(value, int) and not isinstance(value, bool):
        return str(value)
    return value


class CatalogRecord(RecordModel):
    """A catalog template (an experiment a learner can start).

    Attributes:
        id: Canonical catalog id
        name: Display name
        category: Category slug (basic, intermediate, advanced, project)
        difficulty_level: 1 (beginner) to 3 (advanced)
        duration_minutes: Expected duration
        description: Short description
        order_index: Position in the curated ordering
        secondary_name: Project name shown next to the display name
        learning_objectives: Learning objectives, in display order
        is_active: Whether the template is offered
    """

    id: str
    name: str
    category: str | None = None
    difficulty_level: int | None = Field(
        default=None,
        validation_alias=AliasChoices("difficulty_level", "difficulty"),
    )
    duration_minutes: int | None = Field(
        default=None,
        validation_alias=AliasChoices("duration_minutes", "duration"),
    )
    description: str | None = None
    order_index: int | None = None
    secondary_name: str | None = Field(
        default=None,
        validation_alias=AliasChoices("secondary_name", "project_name"),
    )
    learning_objectives: tuple[str, ...] = ()
    is_active: bool = True

    @field_validator("id", mode="before")
    @classmethod
    def normalize_id(cls, value: Any) -> Any:
        return _id_to_str(value)


class OwnerRecord(RecordModel):
    """A user's instance of a catalog record."""

    id: int
    owner_id: str = Field(validation_alias=AliasChoices("owner_id", "user_id"))
    template_id: str = Field(
        validation_alias=AliasChoices("template_id", "experiment_id"),
    )
    status: RecordStatus = RecordStatus.NOT_STARTED
    progress_percent: float = Field(
        default=0.0,
        ge=0.0,
        le=100.0,
        validation_alias=AliasChoices("progress_percent", "progress"),
    )
    started_at: datetime | None = None
    updated_at: datetime | None = None

    @field_validator("owner_id", "template_id", mode="before")
    @classmethod
    def normalize_ids(cls, value: Any) -> Any:
        return _id_to_str(value)
