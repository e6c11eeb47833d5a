"""Tests for the composition root."""

import logging

import pytest
from aiohttp import web

from conftest import FakeNavigator, issue_test_credential
from labsync import apply_logging_settings, build_services
from labsync.config import Settings
from labsync.services.state_machine import AuthEvent, AuthState
from labsync.storage import JsonFileStorage, MemoryStorage


class TestBuildServices:
    """Test build_services wiring."""

    @pytest.mark.asyncio
    async def test_wires_shared_collaborators(self, tmp_path):
        settings = Settings(
            api={"base_url": "http://127.0.0.1:1/api"},
            cache={"max_age": 42, "catalog_max_age": 7},
            storage={"state_file": str(tmp_path / "state.json")},
        )

        async with build_services(settings) as services:
            assert isinstance(services.storage, JsonFileStorage)
            assert isinstance(services.session_storage, MemoryStorage)
            assert services.catalog.cache is services.cache
            assert services.refresher.cache is services.cache
            assert services.catalog.transport is services.transport
            assert services.account.transport is services.transport
            assert services.store.service is services.catalog
            assert services.cache.default_policy.max_age == 42
            assert services.catalog.catalog_policy.max_age == 7

    @pytest.mark.asyncio
    async def test_each_call_builds_independent_services(self):
        first = build_services(storage=MemoryStorage())
        second = build_services(storage=MemoryStorage())

        assert first.cache is not second.cache
        assert first.transport is not second.transport
        await first.aclose()
        await second.aclose()

    @pytest.mark.asyncio
    async def test_catalog_401_expires_login_session(self, serve):
        async def records(request):
            return web.json_response({"error": "expired"}, status=401)

        base_url = await serve(web.get("/api/users/7/records", records))

        async with build_services(
            Settings(api={"base_url": base_url}),
            storage=MemoryStorage(),
        ) as services:
            issue_test_credential(services.transport)
            services.account.auth.dispatch(AuthEvent.LOGIN_STARTED)
            services.account.auth.dispatch(AuthEvent.LOGIN_SUCCEEDED)

            await services.store.load_owner_records("7")

            assert services.transport.is_authenticated is False
            assert services.account.auth.state is AuthState.ANONYMOUS

    def test_setup_logging_applies_logging_settings(self, tmp_path):
        log_file = tmp_path / "labsync.log"
        settings = Settings(
            logging={"level": "DEBUG", "file": str(log_file), "rich_console": False},
        )

        apply_logging_settings(settings)
        configured = logging.getLogger("labsync")
        try:
            assert configured.level == logging.DEBUG
            assert any(isinstance(h, logging.FileHandler) for h in configured.handlers)
            assert "LabSync 0.1.0 logging at DEBUG" in log_file.read_text(encoding="utf-8")
        finally:
            for handler in list(configured.handlers):
                handler.close()
                configured.removeHandler(handler)
            configured.propagate = True
            configured.setLevel(logging.NOTSET)

    @pytest.mark.asyncio
    async def test_end_to_end_catalog_load(self, serve):
        async def templates(request):
            return web.json_response(
                {"success": True, "data": [{"id": 2, "name": "LED", "difficulty": 1}]}
            )

        base_url = await serve(web.get("/api/templates", templates))
        storage = MemoryStorage()

        async with build_services(
            Settings(api={"base_url": base_url}),
            storage=storage,
            navigator=FakeNavigator(),
        ) as services:
            await services.store.load_catalog()
            services.store.set_filters({"difficulty_level": 1})

            assert [record.id for record in services.store.get_filtered_records()] == ["2"]
            assert storage.get("catalog_view") == {
                "filters": {"difficulty_level": 1},
                "sort": {"field": "order_index", "direction": "asc"},
            }
