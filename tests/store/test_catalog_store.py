"""Tests for the reactive catalog store."""

import asyncio
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio

from conftest import make_catalog_record, make_owner_record
from labsync.services import catalog_defaults
from labsync.services.catalog_service import CatalogService
from labsync.shared.errors import (
    ErrorCode,
    InfrastructureError,
    OperationCancelledError,
    ServerError,
    create_http_status_error,
    create_network_error,
)
from labsync.shared.models import (
    FilterDescriptor,
    RecordStatus,
    SortDescriptor,
    SortDirection,
    SortField,
)
from labsync.store import CancellationScope, CatalogStore, ViewPreferences


CATALOG = (
    make_catalog_record("2", difficulty_level=1, order_index=2),
    make_catalog_record("5", difficulty_level=2, order_index=1),
)


@pytest_asyncio.fixture
async def store(catalog_service, memory_storage):
    catalog_store = CatalogStore(catalog_service, ViewPreferences(memory_storage))
    yield catalog_store
    await catalog_store.close()


@pytest.fixture
def gated_service():
    """CatalogService double whose calls can be held open by a test."""
    service = AsyncMock(spec=CatalogService)
    service.clear_cache.return_value = 0
    return service


class TestLoadCatalog:
    """Test catalog loading."""

    @pytest.mark.asyncio
    async def test_load_catalog(self, store, backend):
        backend.routes["/templates"] = CATALOG

        result = await store.load_catalog()

        assert result == CATALOG
        assert store.state.catalog == CATALOG
        assert store.state.loading is False
        assert store.state.error is None

    @pytest.mark.asyncio
    async def test_offline_load_serves_default_catalog(self, store, backend):
        backend.routes["/templates"] = create_network_error("offline")

        await store.load_catalog()

        assert store.state.catalog == catalog_defaults.default_catalog()
        assert store.state.error is None

    @pytest.mark.asyncio
    async def test_unexpected_failure_sets_error(self, gated_service):
        gated_service.get_catalog.side_effect = RuntimeError("boom")
        catalog_store = CatalogStore(gated_service)

        assert await catalog_store.load_catalog() is None
        assert catalog_store.state.error == "boom"
        assert catalog_store.state.loading is False
        await catalog_store.close()

    @pytest.mark.asyncio
    async def test_newer_load_supersedes_older(self, gated_service):
        release = asyncio.Event()
        started = asyncio.Event()
        old = (make_catalog_record("old"),)
        new = (make_catalog_record("new"),)

        async def get_catalog():
            if not started.is_set():
                started.set()
                await release.wait()
                return old
            return new

        gated_service.get_catalog.side_effect = get_catalog
        catalog_store = CatalogStore(gated_service)

        first = asyncio.create_task(catalog_store.load_catalog())
        await started.wait()
        second = await catalog_store.load_catalog()
        release.set()

        assert await first is None
        assert second == new
        assert catalog_store.state.catalog == new
        assert catalog_store.state.loading is False
        await catalog_store.close()

    @pytest.mark.asyncio
    async def test_cancelled_scope_never_writes(self, gated_service):
        started = asyncio.Event()

        async def get_catalog():
            started.set()
            await asyncio.Event().wait()

        gated_service.get_catalog.side_effect = get_catalog
        catalog_store = CatalogStore(gated_service)
        scope = CancellationScope("view")

        pending = asyncio.create_task(catalog_store.load_catalog(scope=scope))
        await started.wait()
        scope.cancel()

        assert await pending is None
        assert catalog_store.state.catalog == ()
        assert catalog_store.state.loading is False
        with pytest.raises(OperationCancelledError):
            await catalog_store.load_catalog(scope=scope)
        await catalog_store.close()

    @pytest.mark.asyncio
    async def test_cancelling_the_caller_stops_the_action(self, gated_service):
        started = asyncio.Event()

        async def get_catalog():
            started.set()
            await asyncio.Event().wait()

        gated_service.get_catalog.side_effect = get_catalog
        catalog_store = CatalogStore(gated_service)

        caller = asyncio.create_task(catalog_store.load_catalog())
        await started.wait()
        caller.cancel()
        with pytest.raises(asyncio.CancelledError):
            await caller
        await catalog_store.close()

        assert catalog_store.state.loading is False
        assert catalog_store.state.catalog == ()


class TestOwnerRecords:
    """Test owner record actions."""

    @pytest.mark.asyncio
    async def test_start_record_reloads_owner_records(self, store, backend):
        backend.routes["GET /users/7/records"] = ()
        await store.load_owner_records("7")
        backend.routes["POST /users/7/records"] = {"id": 11}
        backend.routes["GET /users/7/records"] = (make_owner_record(11, "7", "3"),)

        result = await store.start_record("7", "3")

        matching = [
            record
            for record in store.state.owner_records
            if record.template_id == "3" and record.owner_id == "7"
        ]
        assert result == {"id": 11}
        assert len(matching) == 1
        assert store.state.loading is False

    @pytest.mark.asyncio
    async def test_failed_start_sets_error_and_raises(self, store, backend):
        backend.routes["POST /users/7/records"] = create_http_status_error(
            500, "down", user_message="Try again later"
        )

        with pytest.raises(ServerError):
            await store.start_record("7", "3")

        assert store.state.error == "Try again later"
        assert store.state.loading is False
        assert backend.count("/users/7/records") == 0

    @pytest.mark.asyncio
    async def test_failed_delete_changes_nothing(self, store, backend, catalog_service, cache):
        records = (make_owner_record(1, "7", "2"), make_owner_record(2, "7", "5"))
        backend.routes["GET /users/7/records"] = records
        await store.load_owner_records("7")
        backend.routes["DELETE /users/7/records/1"] = create_http_status_error(
            500, "down", user_message="Delete failed"
        )

        with pytest.raises(ServerError):
            await store.delete_record("7", 1)

        assert store.state.owner_records == records
        assert store.state.error == "Delete failed"
        assert catalog_service.owner_records_key("7") in cache

    @pytest.mark.asyncio
    async def test_delete_removes_exactly_one_record(self, store, backend):
        records = (make_owner_record(1, "7", "2"), make_owner_record(2, "7", "5"))
        backend.routes["GET /users/7/records"] = records
        await store.load_owner_records(7)
        backend.routes["DELETE /users/7/records/1"] = None

        await store.delete_record(7, 1)

        assert store.state.owner_records == (records[1],)
        assert store.state.error is None

    @pytest.mark.asyncio
    async def test_mutations_for_one_owner_are_serialized(self, gated_service):
        release = asyncio.Event()
        order = []

        async def start_record(owner_id, template_id):
            order.append(f"start {template_id}")
            if template_id == "a":
                await release.wait()
            order.append(f"end {template_id}")
            return {"template_id": template_id}

        gated_service.start_record.side_effect = start_record
        gated_service.get_owner_records.return_value = ()
        catalog_store = CatalogStore(gated_service)

        first = asyncio.create_task(catalog_store.start_record("7", "a"))
        await asyncio.sleep(0.01)
        second = asyncio.create_task(catalog_store.start_record("7", "b"))
        await asyncio.sleep(0.01)

        assert order == ["start a"]
        release.set()
        await asyncio.gather(first, second)
        assert order == ["start a", "end a", "start b", "end b"]
        await catalog_store.close()


class TestView:
    """Test filters, sort and derived views."""

    @pytest.mark.asyncio
    async def test_filtered_and_sorted_view(self, store, backend):
        backend.routes["/templates"] = CATALOG
        await store.load_catalog()

        assert [r.id for r in store.get_filtered_records()] == ["5", "2"]

        store.set_filters({"difficulty_level": 1})
        assert [r.id for r in store.get_filtered_records()] == ["2"]

        store.set_filters({"difficulty_level": None})
        store.set_sort({"field": "difficulty_level", "direction": "desc"})
        assert [r.id for r in store.get_filtered_records()] == ["5", "2"]

    @pytest.mark.asyncio
    async def test_status_filter_uses_owner_records(self, store, backend):
        backend.routes["/templates"] = CATALOG
        backend.routes["/users/7/records"] = (
            make_owner_record(1, "7", "5", status=RecordStatus.COMPLETED),
        )
        await store.load_catalog()
        await store.load_owner_records("7")

        store.set_filters(FilterDescriptor(status=RecordStatus.COMPLETED))

        assert [r.id for r in store.get_filtered_records()] == ["5"]

    @pytest.mark.asyncio
    async def test_view_preferences_persist(self, catalog_service, memory_storage):
        first = CatalogStore(catalog_service, ViewPreferences(memory_storage))
        first.set_filters({"category": "basic"})
        first.set_sort(SortDescriptor(field=SortField.NAME, direction=SortDirection.DESC))

        second = CatalogStore(catalog_service, ViewPreferences(memory_storage))

        assert second.state.filters == FilterDescriptor(category="basic")
        assert second.state.sort == SortDescriptor(
            field=SortField.NAME, direction=SortDirection.DESC
        )
        await first.close()
        await second.close()

    @pytest.mark.asyncio
    async def test_every_view_change_is_saved(self, store, mocker):
        save = mocker.spy(store.preferences, "save")

        store.set_filters({"category": "basic"})
        store.set_sort({"field": "name"})

        assert save.call_count == 2
        assert save.call_args.args == (
            FilterDescriptor(category="basic"),
            SortDescriptor(field=SortField.NAME),
        )

    @pytest.mark.asyncio
    async def test_failed_save_keeps_view(self, store, mocker, caplog):
        mocker.patch.object(
            store.preferences,
            "save",
            side_effect=InfrastructureError(ErrorCode.STORAGE_WRITE_FAILED, "disk full"),
        )

        store.set_filters({"difficulty_level": 2})

        assert store.state.filters == FilterDescriptor(difficulty_level=2)
        assert any(
            getattr(r, "error_code", None) == "STORAGE_WRITE_FAILED" for r in caplog.records
        )

    @pytest.mark.asyncio
    async def test_find_record(self, store, backend):
        backend.routes["/templates"] = CATALOG
        await store.load_catalog()

        assert store.find_record(5) == CATALOG[1]
        assert store.find_record("404") is None


class TestLifecycle:
    """Test subscriptions, errors and resets."""

    @pytest.mark.asyncio
    async def test_subscribers_see_every_state(self, store, backend):
        backend.routes["/templates"] = CATALOG
        states = []
        unsubscribe = store.subscribe(states.append)

        await store.load_catalog()
        unsubscribe()
        store.clear_error()

        assert states[0].loading is True
        assert states[-1].loading is False
        assert states[-1].catalog == CATALOG
        assert all(state.catalog in ((), CATALOG) for state in states)

    @pytest.mark.asyncio
    async def test_new_action_clears_error(self, store, backend):
        backend.routes["DELETE /users/7/records/1"] = create_http_status_error(500, "down")
        with pytest.raises(ServerError):
            await store.delete_record("7", 1)
        assert store.state.error is not None

        backend.routes["/templates"] = CATALOG
        await store.load_catalog()

        assert store.state.error is None

    @pytest.mark.asyncio
    async def test_refresh_refetches(self, store, backend):
        backend.routes["/templates"] = CATALOG
        await store.load_catalog()
        await store.load_catalog()

        await store.refresh()

        assert backend.count("/templates") == 2

    @pytest.mark.asyncio
    async def test_reset(self, store, backend, cache):
        backend.routes["/templates"] = CATALOG
        await store.load_catalog()

        store.reset()

        assert store.state.catalog == ()
        assert store.state.owner_records == ()
        assert len(cache) == 0
