"""Tests for shared Pydantic models."""

import pytest
from pydantic import ValidationError

from labsync.shared.models import (
    CatalogRecord,
    Envelope,
    FilterDescriptor,
    LoginResult,
    OwnerRecord,
    RecordStatus,
    SortDescriptor,
    SortDirection,
    SortField,
)


class TestCatalogRecord:
    """Test decoding of catalog records."""

    def test_accepts_wire_names(self):
        record = CatalogRecord.model_validate(
            {
                "id": 7,
                "name": "Traffic light",
                "difficulty": 2,
                "duration": 45,
                "project_name": "LightFlow",
                "unknown_field": "ignored",
            }
        )

        assert record.id == "7"
        assert record.difficulty_level == 2
        assert record.duration_minutes == 45
        assert record.secondary_name == "LightFlow"
        assert record.is_active is True

    def test_is_immutable(self):
        record = CatalogRecord(id="1", name="LED")

        with pytest.raises(ValidationError):
            record.name = "Other"  # type: ignore[misc]

    def test_name_is_required(self):
        with pytest.raises(ValidationError):
            CatalogRecord.model_validate({"id": "1"})


class TestOwnerRecord:
    """Test decoding of owner records."""

    def test_accepts_wire_names(self):
        record = OwnerRecord.model_validate(
            {
                "id": 5,
                "user_id": 42,
                "experiment_id": 3,
                "status": "in_progress",
                "progress": 50,
            }
        )

        assert record.owner_id == "42"
        assert record.template_id == "3"
        assert record.status is RecordStatus.IN_PROGRESS
        assert record.progress_percent == 50.0

    def test_progress_is_bounded(self):
        with pytest.raises(ValidationError):
            OwnerRecord(id=1, owner_id="1", template_id="2", progress_percent=120)


class TestEnvelopeAndLogin:
    """Test envelope and login payloads."""

    def test_envelope_defaults(self):
        envelope = Envelope.model_validate({"data": [1, 2]})

        assert envelope.success is True
        assert envelope.data == [1, 2]
        assert envelope.error is None

    def test_login_result_accepts_access_token(self):
        result = LoginResult.model_validate(
            {"access_token": "abc", "user": {"id": 1, "username": "kim"}}
        )

        assert result.token == "abc"
        assert result.user.id == "1"


class TestViewDescriptors:
    """Test filter and sort descriptors."""

    def test_default_sort_is_curated_ascending(self):
        sort = SortDescriptor()

        assert sort.field is SortField.ORDER_INDEX
        assert sort.direction is SortDirection.ASC

    def test_merged_replaces_only_given_fields(self):
        filters = FilterDescriptor(category="basic", difficulty_level=1)

        merged = filters.merged({"difficulty_level": None, "search_text": "led"})

        assert merged == FilterDescriptor(category="basic", search_text="led")
        assert filters.difficulty_level == 1

    def test_merged_with_descriptor_uses_set_fields(self):
        filters = FilterDescriptor(category="basic")

        merged = filters.merged(FilterDescriptor(status=RecordStatus.COMPLETED))

        assert merged.category == "basic"
        assert merged.status is RecordStatus.COMPLETED

    def test_is_empty(self):
        assert FilterDescriptor().is_empty
        assert not FilterDescriptor(search_text="x").is_empty

    def test_unknown_filter_field_is_rejected(self):
        with pytest.raises(ValidationError):
            FilterDescriptor.model_validate({"colour": "red"})
