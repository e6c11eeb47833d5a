"""LabSync Error Handling Module

This module defines the error handling system for LabSync, providing
structured error classes with context information and user-presentable
messages.

The error hierarchy follows these principles:
- One Source of Truth: All error codes are defined in ErrorCode enum
- Structured Context: ErrorContext provides additional information
- User-presentable Messages: Transport errors always carry a user_message
- Proper Exception Chaining: Original exceptions are preserved
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from pathlib import Path
from typing import Any, Union

from labsync.shared.constants import UserMessages

# Type alias for primitive context values (str, int, float, bool only)
PrimitiveContextValue = Union[str, int, float, bool]

# Default keys to mask in safe_dict for PII protection
SAFE_DICT_MASK_KEYS: tuple[str, ...] = ("user_id",)


class ErrorCode(str, Enum):
    """Error codes for LabSync.

    This enum serves as the single source of truth for all error codes
    used throughout the library.
    """

    # Network and API Errors
    NETWORK_ERROR = "NETWORK_ERROR"
    API_TIMEOUT = "API_TIMEOUT"
    API_UNAUTHORIZED = "API_UNAUTHORIZED"
    API_FORBIDDEN = "API_FORBIDDEN"
    API_NOT_FOUND = "API_NOT_FOUND"
    API_SERVER_ERROR = "API_SERVER_ERROR"
    API_REQUEST_FAILED = "API_REQUEST_FAILED"
    API_INVALID_RESPONSE = "API_INVALID_RESPONSE"
    BUSINESS_VALIDATION_FAILED = "BUSINESS_VALIDATION_FAILED"
    STREAM_DECODE_ERROR = "STREAM_DECODE_ERROR"

    # Catalog Errors
    UNRESOLVED_ALIAS = "UNRESOLVED_ALIAS"

    # Cache Errors
    CACHE_REFRESH_FAILED = "CACHE_REFRESH_FAILED"

    # Storage Errors
    STORAGE_READ_FAILED = "STORAGE_READ_FAILED"
    STORAGE_WRITE_FAILED = "STORAGE_WRITE_FAILED"

    # Configuration Errors
    CONFIG_ERROR = "CONFIG_ERROR"
    CONFIG_MISSING = "CONFIG_MISSING"

    # State Errors
    INVALID_STATE_TRANSITION = "INVALID_STATE_TRANSITION"
    OPERATION_CANCELLED = "OPERATION_CANCELLED"


class ErrorKind(str, Enum):
    """Classification attached to every transport failure."""

    UNAUTHORIZED = "unauthorized"
    FORBIDDEN = "forbidden"
    NOT_FOUND = "not_found"
    SERVER_ERROR = "server_error"
    VALIDATION = "validation"
    NETWORK = "network"


def _coerce_primitives(value: Any | None) -> dict[str, PrimitiveContextValue] | None:
    """Coerce additional_data values to primitives.

    Converts Path, Enum, Decimal to primitive types.

    Args:
        value: Input dictionary or None

    Returns:
        Dictionary with primitive values only, or None

    Raises:
        TypeError: If value is not a dict or contains unconvertible types
    """
    if value is None:
        return None

    if not isinstance(value, dict):
        error_msg = f"additional_data must be dict, got {type(value).__name__}"
        raise TypeError(error_msg)

    coerced: dict[str, PrimitiveContextValue] = {}
    for key, val in value.items():
        if isinstance(val, (str, int, float, bool)):
            coerced[key] = val
        elif isinstance(val, Path):
            coerced[key] = str(val)
        elif isinstance(val, Enum):
            coerced[key] = val.value
        elif isinstance(val, Decimal):
            coerced[key] = float(val)
        else:
            error_msg = (
                f"Cannot coerce {type(val).__name__} to primitive type. "
                f"Only str, int, float, bool, Path, Enum, Decimal are allowed."
            )
            raise TypeError(error_msg)

    return coerced


@dataclass(frozen=True)
class ErrorContext:
    """Context information for errors.

    Only primitive types (str, int, float, bool) are allowed in
    additional_data to keep serialization safe and to keep payloads and
    credentials out of logs.

    Attributes:
        operation: Optional operation name that caused the error
        user_id: Optional user ID (masked in logs)
        additional_data: Optional dict with primitive values only
    """

    operation: str | None = None
    user_id: str | None = None
    additional_data: dict[str, PrimitiveContextValue] | None = None

    def __post_init__(self) -> None:
        """Post-initialization validation and coercion."""
        if self.additional_data is not None:
            coerced = _coerce_primitives(self.additional_data)
            object.__setattr__(self, "additional_data", coerced)

    def safe_dict(self, *, mask_keys: tuple[str, ...] | None = None) -> dict[str, Any]:
        """Export context as dict with PII masking.

        Args:
            mask_keys: Fields to exclude from output. Defaults to SAFE_DICT_MASK_KEYS.

        Returns:
            Dictionary with masked sensitive fields and guaranteed additional_data key.

        Example:
            >>> context = ErrorContext(user_id="12345", operation="load")
            >>> context.safe_dict()
            {'operation': 'load', 'additional_data': {}}
        """
        if mask_keys is None:
            mask_keys = SAFE_DICT_MASK_KEYS

        data: dict[str, Any] = {}
        if self.operation is not None and "operation" not in mask_keys:
            data["operation"] = self.operation
        if self.user_id is not None and "user_id" not in mask_keys:
            data["user_id"] = self.user_id

        if self.additional_data is not None and "additional_data" not in mask_keys:
            data["additional_data"] = self.additional_data
        else:
            data["additional_data"] = {}

        return data


class LabSyncError(Exception):
    """Base exception class for all LabSync errors."""

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        context: ErrorContext | None = None,
        original_error: Exception | None = None,
    ) -> None:
        """Initialize LabSyncError.

        Args:
            code: Error code from ErrorCode enum
            message: Human-readable error message
            context: Additional context information
            original_error: Original exception that caused this error
        """
        self.code = code
        self.message = message
        self.context = context or ErrorContext()
        self.original_error = original_error

        super().__init__(f"{code.value}: {message}")

    def __str__(self) -> str:
        """Return string representation of the error."""
        return f"{self.code.value}: {self.message}"

    @property
    def user_message(self) -> str:
        """Message suitable for showing to an end user."""
        return self.message

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging with PII masking."""
        return {
            "code": self.code.value,
            "message": self.message,
            "context": self.context.safe_dict(),
            "original_error": str(self.original_error) if self.original_error else None,
        }


class DomainError(LabSyncError):
    """Domain-specific errors.

    Raised when catalog rules are violated, e.g. an alias that does not map
    to any catalog record.
    """


class InfrastructureError(LabSyncError):
    """Infrastructure-related errors.

    Raised when interacting with external systems: the HTTP backend or the
    local durable storage.
    """


class ApplicationError(LabSyncError):
    """Application-level errors (configuration, state machine misuse)."""


class TransportError(InfrastructureError):
    """A classified transport failure.

    Every rejection of the Transport Client is an instance of this class
    and carries the failure ``kind``, the HTTP ``status`` (``None`` when no
    response was received) and a ``user_message``.
    """

    kind: ErrorKind = ErrorKind.NETWORK

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        context: ErrorContext | None = None,
        original_error: Exception | None = None,
        *,
        status: int | None = None,
        user_message: str | None = None,
        payload: Any = None,
    ) -> None:
        super().__init__(code, message, context, original_error)
        self.status = status
        self.payload = payload
        self._user_message = user_message or message

    @property
    def user_message(self) -> str:
        return self._user_message

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["kind"] = self.kind.value
        data["status"] = self.status
        return data


class NetworkError(TransportError):
    """No response was received (connection failure, timeout)."""

    kind = ErrorKind.NETWORK


class HttpStatusError(TransportError):
    """The server answered with a 4xx or 5xx status."""

    kind = ErrorKind.VALIDATION


class UnauthorizedError(HttpStatusError):
    """HTTP 401."""

    kind = ErrorKind.UNAUTHORIZED


class ForbiddenError(HttpStatusError):
    """HTTP 403."""

    kind = ErrorKind.FORBIDDEN


class NotFoundError(HttpStatusError):
    """HTTP 404."""

    kind = ErrorKind.NOT_FOUND


class ServerError(HttpStatusError):
    """HTTP 5xx."""

    kind = ErrorKind.SERVER_ERROR


class BusinessValidationError(TransportError):
    """A 2xx envelope that carries an ``error`` field, or a payload that
    fails the validating decode step."""

    kind = ErrorKind.VALIDATION


class UnresolvedAliasError(DomainError):
    """Catalog lookup by alias failed."""

    def __init__(self, alias: str) -> None:
        super().__init__(
            ErrorCode.UNRESOLVED_ALIAS,
            f"No catalog record for alias: {alias}",
            ErrorContext(
                operation="resolve_alias",
                additional_data={"alias": alias},
            ),
        )
        self.alias = alias


class InvalidTransitionError(ApplicationError):
    """A state machine received an event its current state does not accept."""


class OperationCancelledError(ApplicationError):
    """An action was started on a scope that has already been cancelled."""


_STATUS_ERRORS: dict[int, tuple[type[HttpStatusError], ErrorCode]] = {
    401: (UnauthorizedError, ErrorCode.API_UNAUTHORIZED),
    403: (ForbiddenError, ErrorCode.API_FORBIDDEN),
    404: (NotFoundError, ErrorCode.API_NOT_FOUND),
}


def create_http_status_error(
    status: int,
    message: str,
    *,
    operation: str | None = None,
    path: str | None = None,
    user_message: str | None = None,
    payload: Any = None,
) -> HttpStatusError:
    """Create the HttpStatusError subclass matching an HTTP status code."""
    additional_data: dict[str, PrimitiveContextValue] = {"status": status}
    if path is not None:
        additional_data["path"] = path
    context = ErrorContext(operation=operation, additional_data=additional_data)

    if status in _STATUS_ERRORS:
        error_cls, code = _STATUS_ERRORS[status]
    elif status >= 500:  # noqa: PLR2004
        error_cls, code = ServerError, ErrorCode.API_SERVER_ERROR
    else:
        error_cls, code = HttpStatusError, ErrorCode.API_REQUEST_FAILED

    return error_cls(
        code,
        message,
        context,
        status=status,
        user_message=user_message,
        payload=payload,
    )


def create_network_error(
    message: str,
    *,
    operation: str | None = None,
    path: str | None = None,
    original_error: Exception | None = None,
    timed_out: bool = False,
) -> NetworkError:
    """Create a network error (no response received)."""
    additional_data: dict[str, PrimitiveContextValue] | None = (
        {"path": path} if path else None
    )
    return NetworkError(
        ErrorCode.API_TIMEOUT if timed_out else ErrorCode.NETWORK_ERROR,
        message,
        ErrorContext(operation=operation, additional_data=additional_data),
        original_error,
        user_message=UserMessages.NO_RESPONSE,
    )
