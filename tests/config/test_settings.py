"""Tests for LabSync settings loading."""

import pytest
from pydantic import ValidationError

from labsync.config import APISettings, Settings, load_settings
from labsync.shared.constants import CacheDefaults, HTTPConfig
from labsync.shared.errors import ApplicationError, ErrorCode


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in (
        "LABSYNC_API__BASE_URL",
        "LABSYNC_API__TIMEOUT",
        "LABSYNC_CACHE__MAX_AGE",
        "LABSYNC_LOGGING__LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)


class TestSettingsDefaults:
    """Test default values."""

    def test_defaults(self):
        settings = Settings()

        assert settings.api.base_url == HTTPConfig.DEFAULT_BASE_URL
        assert settings.api.timeout == HTTPConfig.DEFAULT_TIMEOUT
        assert settings.cache.max_age == CacheDefaults.MAX_AGE
        assert settings.cache.stale_while_revalidate is True
        assert settings.logging.level == "INFO"
        assert settings.storage.state_file == "~/.labsync/state.json"

    def test_base_url_trailing_slash_is_stripped(self):
        assert APISettings(base_url="http://host/api/").base_url == "http://host/api"

    def test_timeout_must_be_positive(self):
        with pytest.raises(ValidationError):
            APISettings(timeout=0)


class TestSettingsEnvironment:
    """Test LABSYNC_* environment overrides."""

    def test_nested_environment_override(self, monkeypatch):
        monkeypatch.setenv("LABSYNC_API__BASE_URL", "https://lab.example.org/api")
        monkeypatch.setenv("LABSYNC_CACHE__MAX_AGE", "30")

        settings = Settings()

        assert settings.api.base_url == "https://lab.example.org/api"
        assert settings.api.timeout == HTTPConfig.DEFAULT_TIMEOUT
        assert settings.cache.max_age == 30.0


class TestSettingsToml:
    """Test TOML file loading and saving."""

    def test_load_from_file(self, tmp_path):
        config_file = tmp_path / "labsync.toml"
        config_file.write_text(
            '[api]\nbase_url = "https://lab.example.org/api"\ntimeout = 10\n'
            "[cache]\nstale_while_revalidate = false\n",
            encoding="utf-8",
        )

        settings = load_settings(config_file)

        assert settings.api.base_url == "https://lab.example.org/api"
        assert settings.api.timeout == 10.0
        assert settings.cache.stale_while_revalidate is False
        assert settings.cache.max_age == CacheDefaults.MAX_AGE

    def test_missing_file(self, tmp_path):
        with pytest.raises(ApplicationError) as exc_info:
            Settings.from_toml_file(tmp_path / "missing.toml")

        assert exc_info.value.code is ErrorCode.CONFIG_MISSING

    def test_invalid_toml(self, tmp_path):
        config_file = tmp_path / "broken.toml"
        config_file.write_text("[api\nbase_url = ", encoding="utf-8")

        with pytest.raises(ApplicationError) as exc_info:
            Settings.from_toml_file(config_file)

        assert exc_info.value.code is ErrorCode.CONFIG_ERROR
        assert exc_info.value.original_error is not None

    def test_round_trip_through_file(self, tmp_path):
        config_file = tmp_path / "nested" / "labsync.toml"
        settings = Settings(api={"base_url": "https://lab.example.org/api"})

        settings.to_toml_file(config_file)
        loaded = Settings.from_toml_file(config_file)

        assert loaded.api.base_url == "https://lab.example.org/api"
        assert loaded.logging.file is None

    def test_load_settings_without_file(self):
        assert isinstance(load_settings(), Settings)
