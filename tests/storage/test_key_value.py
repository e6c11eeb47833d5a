"""Tests for key-value storage backends."""

import logging

import pytest

from labsync.shared.errors import ErrorCode, InfrastructureError
from labsync.storage import JsonFileStorage, MemoryStorage


class TestMemoryStorage:
    """Test the in-process storage."""

    def test_get_set_remove(self):
        storage = MemoryStorage({"a": 1})

        storage.set("b", {"x": [1, 2]})
        storage.remove("a")
        storage.remove("missing")

        assert storage.get("a") is None
        assert storage.get("b") == {"x": [1, 2]}
        assert storage.keys() == ["b"]


class TestJsonFileStorage:
    """Test the JSON file storage."""

    def test_values_survive_reopen(self, tmp_path):
        path = tmp_path / "state" / "state.json"
        storage = JsonFileStorage(path)

        storage.set("auth_token", "abc")
        storage.set("catalog_view", {"sort": {"field": "name"}})

        reopened = JsonFileStorage(path)
        assert reopened.get("auth_token") == "abc"
        assert reopened.get("catalog_view") == {"sort": {"field": "name"}}

    def test_remove_persists(self, file_storage):
        file_storage.set("auth_token", "abc")
        file_storage.remove("auth_token")

        assert JsonFileStorage(file_storage.path).get("auth_token") is None

    def test_no_temporary_files_left(self, tmp_path):
        storage = JsonFileStorage(tmp_path / "state.json")
        storage.set("k", 1)
        storage.set("k", 2)

        assert [p.name for p in tmp_path.iterdir()] == ["state.json"]

    def test_corrupt_file_is_ignored(self, tmp_path, caplog):
        path = tmp_path / "state.json"
        path.write_bytes(b"{not json")

        with caplog.at_level(logging.WARNING):
            storage = JsonFileStorage(path)

        assert storage.get("auth_token") is None
        assert any(r.error_code == "STORAGE_READ_FAILED" for r in caplog.records if hasattr(r, "error_code"))

    def test_non_object_file_is_ignored(self, tmp_path):
        path = tmp_path / "state.json"
        path.write_bytes(b"[1, 2, 3]")

        assert JsonFileStorage(path).get("0") is None

    def test_unserializable_value_raises(self, file_storage):
        with pytest.raises(InfrastructureError) as exc_info:
            file_storage.set("bad", object())

        assert exc_info.value.code is ErrorCode.STORAGE_WRITE_FAILED
