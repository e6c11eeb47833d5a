"""Durable key-value storage.

Holds the small amount of client state that survives a restart: the
credential token, the user summary and the catalog view preferences.
Values are JSON-compatible and serialized with orjson.
"""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Protocol

import orjson

from labsync.shared.errors import ErrorCode, ErrorContext, InfrastructureError
from labsync.shared.logging import log_operation_error

logger = logging.getLogger(__name__)


class KeyValueStorage(Protocol):
    """Minimal key-value storage interface."""

    def get(self, key: str) -> Any | None: ...

    def set(self, key: str, value: Any) -> None: ...

    def remove(self, key: str) -> None: ...


class MemoryStorage:
    """In-process storage. Used for session storage and in tests."""

    def __init__(self, initial: dict[str, Any] | None = None) -> None:
        self._data: dict[str, Any] = dict(initial or {})

    def get(self, key: str) -> Any | None:
        return self._data.get(key)

    def set(self, key: str, value: Any) -> None:
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> list[str]:
        return list(self._data)


class JsonFileStorage:
    """Key-value storage backed by a single JSON file.

    The whole document is rewritten on every change through a temporary
    file and ``os.replace`` so a crash never leaves a half-written file.

    Args:
        path: Location of the JSON document. Parent directories are created
            on first write.
    """

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path).expanduser()
        self._data: dict[str, Any] = self._load()

    def _load(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}

        try:
            raw = orjson.loads(self.path.read_bytes())
        except (OSError, orjson.JSONDecodeError) as e:
            # A corrupt state file must not prevent the client from starting
            error = InfrastructureError(
                ErrorCode.STORAGE_READ_FAILED,
                f"Ignoring unreadable state file: {self.path}",
                ErrorContext(
                    operation="storage_load",
                    additional_data={"path": self.path},
                ),
                original_error=e,
            )
            log_operation_error(logger, error, level=logging.WARNING)
            return {}

        if not isinstance(raw, dict):
            logger.warning("State file %s does not hold an object, ignoring", self.path)
            return {}
        return raw

    def _flush(self) -> None:
        context = ErrorContext(
            operation="storage_write",
            additional_data={"path": self.path},
        )
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=self.path.parent,
                prefix=f".{self.path.name}.",
            )
            try:
                with os.fdopen(fd, "wb") as f:
                    f.write(orjson.dumps(self._data))
                os.replace(tmp_name, self.path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except (OSError, TypeError) as e:
            raise InfrastructureError(
                ErrorCode.STORAGE_WRITE_FAILED,
                f"Failed to write state file: {self.path}",
                context,
                original_error=e,
            ) from e

    def get(self, key: str) -> Any | None:
        return self._data.get(key)

    def set(self, key: str, value: Any) -> None:
        self._data[key] = value
        self._flush()

    def remove(self, key: str) -> None:
        if key in self._data:
            del self._data[key]
            self._flush()
