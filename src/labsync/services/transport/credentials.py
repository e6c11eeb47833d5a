"""Durable bearer credential and cached user summary."""

from __future__ import annotations

import logging

from pydantic import ValidationError

from labsync.shared.constants import StorageKeys
from labsync.shared.errors import ErrorCode, ErrorContext, InfrastructureError
from labsync.shared.logging import log_operation_error
from labsync.shared.models import UserSummary
from labsync.storage import KeyValueStorage

logger = logging.getLogger(__name__)


class CredentialStore:
    """Reads and writes the credential in durable storage.

    Only ``TransportClient.store_credential`` and
    ``TransportClient.clear_credential`` call the writers; everything else
    reads through the client.
    """

    def __init__(self, storage: KeyValueStorage) -> None:
        self._storage = storage

    @property
    def token(self) -> str | None:
        token = self._storage.get(StorageKeys.AUTH_TOKEN)
        return token if isinstance(token, str) and token else None

    @property
    def user(self) -> UserSummary | None:
        raw = self._storage.get(StorageKeys.USER)
        if raw is None:
            return None
        try:
            return UserSummary.model_validate(raw)
        except ValidationError as e:
            error = InfrastructureError(
                ErrorCode.STORAGE_READ_FAILED,
                "Stored user summary is malformed; ignoring it",
                ErrorContext(operation="read_user_summary"),
                original_error=e,
            )
            log_operation_error(logger, error, level=logging.WARNING)
            return None

    def save(self, token: str, user: UserSummary | None = None) -> None:
        self._storage.set(StorageKeys.AUTH_TOKEN, token)
        if user is not None:
            self._storage.set(StorageKeys.USER, user.model_dump(mode="json"))
        else:
            self._storage.remove(StorageKeys.USER)

    def clear(self) -> None:
        self._storage.remove(StorageKeys.AUTH_TOKEN)
        self._storage.remove(StorageKeys.USER)
