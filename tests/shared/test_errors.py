"""Tests for the LabSync error hierarchy and classification helpers."""

from pathlib import Path

import pytest

from labsync.shared.constants import UserMessages
from labsync.shared.errors import (
    DomainError,
    ErrorCode,
    ErrorContext,
    ErrorKind,
    ForbiddenError,
    HttpStatusError,
    InfrastructureError,
    LabSyncError,
    NetworkError,
    NotFoundError,
    ServerError,
    TransportError,
    UnauthorizedError,
    UnresolvedAliasError,
    create_http_status_error,
    create_network_error,
)


class TestErrorContext:
    """Test ErrorContext coercion and masking."""

    def test_additional_data_is_coerced_to_primitives(self):
        context = ErrorContext(
            operation="load",
            additional_data={"count": 3, "path": Path("/tmp/x"), "kind": ErrorKind.NETWORK},
        )

        assert context.additional_data == {"count": 3, "path": "/tmp/x", "kind": "network"}

    def test_unconvertible_value_is_rejected(self):
        with pytest.raises(TypeError):
            ErrorContext(additional_data={"payload": object()})

    def test_safe_dict_masks_user_id(self):
        context = ErrorContext(operation="load", user_id="12345")

        data = context.safe_dict()

        assert data == {"operation": "load", "additional_data": {}}

    def test_context_is_frozen(self):
        context = ErrorContext(operation="load")

        with pytest.raises(AttributeError):
            context.operation = "other"  # type: ignore[misc]


class TestLabSyncError:
    """Test the base error."""

    def test_str_includes_code(self):
        error = DomainError(ErrorCode.UNRESOLVED_ALIAS, "bad input")

        assert str(error) == "UNRESOLVED_ALIAS: bad input"
        assert error.user_message == "bad input"

    def test_to_dict(self):
        cause = ValueError("boom")
        error = InfrastructureError(
            ErrorCode.STORAGE_WRITE_FAILED,
            "write failed",
            ErrorContext(operation="flush"),
            original_error=cause,
        )

        data = error.to_dict()

        assert data["code"] == "STORAGE_WRITE_FAILED"
        assert data["context"]["operation"] == "flush"
        assert data["original_error"] == "boom"

    def test_hierarchy(self):
        assert issubclass(TransportError, InfrastructureError)
        assert issubclass(UnresolvedAliasError, DomainError)
        assert issubclass(DomainError, LabSyncError)


class TestHttpStatusClassification:
    """Test mapping HTTP statuses to error kinds."""

    @pytest.mark.parametrize(
        ("status", "error_cls", "kind", "code"),
        [
            (401, UnauthorizedError, ErrorKind.UNAUTHORIZED, ErrorCode.API_UNAUTHORIZED),
            (403, ForbiddenError, ErrorKind.FORBIDDEN, ErrorCode.API_FORBIDDEN),
            (404, NotFoundError, ErrorKind.NOT_FOUND, ErrorCode.API_NOT_FOUND),
            (500, ServerError, ErrorKind.SERVER_ERROR, ErrorCode.API_SERVER_ERROR),
            (503, ServerError, ErrorKind.SERVER_ERROR, ErrorCode.API_SERVER_ERROR),
            (422, HttpStatusError, ErrorKind.VALIDATION, ErrorCode.API_REQUEST_FAILED),
        ],
    )
    def test_status_maps_to_kind(self, status, error_cls, kind, code):
        error = create_http_status_error(status, "failed", path="/templates")

        assert type(error) is error_cls
        assert error.kind is kind
        assert error.code is code
        assert error.status == status
        assert error.context.additional_data["path"] == "/templates"

    def test_user_message_defaults_to_message(self):
        error = create_http_status_error(500, "GET /x failed")

        assert error.user_message == "GET /x failed"

    def test_explicit_user_message(self):
        error = create_http_status_error(400, "GET /x failed", user_message="Name is required")

        assert error.user_message == "Name is required"
        assert error.to_dict()["kind"] == "validation"


class TestFactories:
    """Test the remaining error factories."""

    def test_network_error(self):
        error = create_network_error("no route", path="/templates")

        assert isinstance(error, NetworkError)
        assert error.kind is ErrorKind.NETWORK
        assert error.code is ErrorCode.NETWORK_ERROR
        assert error.status is None
        assert error.user_message == UserMessages.NO_RESPONSE

    def test_timeout_uses_timeout_code(self):
        error = create_network_error("slow", timed_out=True)

        assert error.code is ErrorCode.API_TIMEOUT

    def test_unresolved_alias_error_keeps_alias(self):
        error = UnresolvedAliasError("nope")

        assert error.alias == "nope"
        assert error.code is ErrorCode.UNRESOLVED_ALIAS
