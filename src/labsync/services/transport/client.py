"""Async HTTP transport for the LabSync backend.

``TransportClient`` wraps an ``aiohttp.ClientSession`` and normalizes every
exchange with the JSON backend:

* the bearer credential is attached from the ``CredentialStore``;
* the response envelope ``{success, data, message?, error?}`` is unwrapped
  into an ``ApiResponse``, optionally validated against a pydantic type;
* every failure is raised as a classified ``TransportError`` carrying a
  user-presentable message;
* a 401 clears the credential, notifies ``on_unauthorized`` listeners and
  sends the user to the login entry point.
"""

from __future__ import annotations

import asyncio
import codecs
import logging
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, AsyncIterator, Callable, Mapping, Protocol
from urllib.parse import urlsplit

import aiohttp
import orjson
from aiolimiter import AsyncLimiter
from pydantic import TypeAdapter, ValidationError

from labsync.config.models import APISettings
from labsync.services.transport.credentials import CredentialStore
from labsync.shared.constants import EnvelopeKeys, HTTPConfig, StorageKeys, UserMessages
from labsync.shared.errors import (
    BusinessValidationError,
    ErrorCode,
    ErrorContext,
    HttpStatusError,
    TransportError,
    create_http_status_error,
    create_network_error,
)
from labsync.shared.logging import log_api_call
from labsync.shared.models import ApiResponse, Envelope, UserSummary
from labsync.storage import KeyValueStorage, MemoryStorage

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int], None]

_ENVELOPE_KEYS = frozenset({EnvelopeKeys.SUCCESS, EnvelopeKeys.DATA, EnvelopeKeys.ERROR})
_MESSAGE_KEYS = (EnvelopeKeys.MESSAGE, EnvelopeKeys.ERROR, EnvelopeKeys.DETAIL)


class Navigator(Protocol):
    """The presentation layer's view of navigation, as seen by the client."""

    def current_location(self) -> str:
        """Return the current location (path plus optional query)."""
        ...

    def redirect_to_login(self) -> None:
        """Navigate to the login entry point."""
        ...


@dataclass(frozen=True)
class UploadFile:
    """A file part of a multipart upload."""

    filename: str
    content: bytes
    content_type: str = "application/octet-stream"


@dataclass
class StreamCallbacks:
    """Callbacks invoked by ``TransportClient.stream``. All are optional."""

    on_start: Callable[[], None] | None = None
    on_chunk: Callable[[str], None] | None = None
    on_complete: Callable[[str], None] | None = None
    on_error: Callable[[TransportError], None] | None = None


class _BufferSink:
    """Collects what ``MultipartWriter.write`` emits."""

    def __init__(self) -> None:
        self.chunks: list[bytes] = []

    async def write(self, data: bytes) -> None:
        self.chunks.append(bytes(data))


@lru_cache(maxsize=64)
def _adapter(model: Any) -> TypeAdapter[Any]:
    return TypeAdapter(model)


def _json_default(value: Any) -> Any:
    model_dump = getattr(value, "model_dump", None)
    if callable(model_dump):
        return model_dump(mode="json")
    raise TypeError(f"Type is not JSON serializable: {type(value).__name__}")


def _clean_params(params: Mapping[str, Any] | None) -> dict[str, str | int | float] | None:
    if not params:
        return None
    cleaned: dict[str, str | int | float] = {}
    for key, value in params.items():
        if value is None:
            continue
        if isinstance(value, bool):
            cleaned[key] = "true" if value else "false"
        elif isinstance(value, (int, float, str)):
            cleaned[key] = value
        else:
            cleaned[key] = str(value)
    return cleaned


def _extract_message(payload: Any) -> str | None:
    if not isinstance(payload, dict):
        return None
    for key in _MESSAGE_KEYS:
        value = payload.get(key)
        if isinstance(value, str) and value:
            return value
    return None


def _try_json(raw: bytes) -> Any:
    if not raw:
        return None
    try:
        return orjson.loads(raw)
    except orjson.JSONDecodeError:
        return None


class TransportClient:
    """Asynchronous client for the LabSync JSON backend.

    The client owns its ``aiohttp.ClientSession`` unless one is injected;
    use it as an async context manager or call ``aclose()``.

    Args:
        settings: API settings (base URL, timeout, login path, limits)
        credentials: Durable credential storage
        session_storage: Per-session storage used to remember where to go
            back to after login (defaults to in-memory)
        navigator: Optional navigation hook used on 401
        session: Optional externally managed ``aiohttp.ClientSession``
    """

    def __init__(
        self,
        settings: APISettings,
        credentials: CredentialStore,
        *,
        session_storage: KeyValueStorage | None = None,
        navigator: Navigator | None = None,
        session: aiohttp.ClientSession | None = None,
    ) -> None:
        self.settings = settings
        self.credentials = credentials
        self.session_storage = session_storage or MemoryStorage()
        self.navigator = navigator
        self._session = session
        self._owns_session = session is None
        self._timeout = aiohttp.ClientTimeout(total=settings.timeout)
        self._rate_limiter = AsyncLimiter(settings.rate_limit, settings.rate_limit_period)
        self._concurrency_limiter = asyncio.Semaphore(settings.max_concurrent_requests)
        self._unauthorized_listeners: list[Callable[[], None]] = []

    async def __aenter__(self) -> TransportClient:
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the owned HTTP session."""
        if self._owns_session and self._session is not None and not self._session.closed:
            await self._session.close()
            logger.debug("Transport session closed")
        self._session = None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=self._timeout,
                headers={"User-Agent": self.settings.user_agent},
            )
            self._owns_session = True
        return self._session

    # -- credentials -------------------------------------------------------

    @property
    def current_user(self) -> UserSummary | None:
        return self.credentials.user

    @property
    def is_authenticated(self) -> bool:
        return self.credentials.token is not None

    def store_credential(self, token: str, user: UserSummary | None = None) -> None:
        """Persist the bearer credential (and user summary) after login."""
        self.credentials.save(token, user)
        logger.debug("Stored credential for user %s", user.id if user else "<unknown>")

    def clear_credential(self) -> None:
        """Forget the bearer credential and cached user summary."""
        self.credentials.clear()
        logger.debug("Cleared stored credential")

    def on_unauthorized(self, listener: Callable[[], None]) -> Callable[[], None]:
        """Call ``listener()`` after every 401 has cleared the credential;
        returns an unsubscribe callable."""
        self._unauthorized_listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._unauthorized_listeners:
                self._unauthorized_listeners.remove(listener)

        return unsubscribe

    # -- plumbing ----------------------------------------------------------

    def _url(self, path: str) -> str:
        if not path.startswith("/"):
            path = f"/{path}"
        return f"{self.settings.base_url}{path}"

    def _headers(self, extra: Mapping[str, str] | None = None) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        token = self.credentials.token
        if token:
            headers["Authorization"] = f"Bearer {token}"
        if extra:
            headers.update(extra)
        return headers

    @asynccontextmanager
    async def _open(
        self,
        method: str,
        path: str,
        *,
        params: Mapping[str, Any] | None = None,
        data: Any = None,
        headers: Mapping[str, str] | None = None,
    ) -> AsyncIterator[aiohttp.ClientResponse]:
        """Send a request and yield the response; transport failures become
        ``NetworkError``."""
        operation = f"{method} {path}"
        status: int | None = None
        start_time = time.perf_counter()
        session = self._get_session()
        try:
            async with self._rate_limiter, self._concurrency_limiter:
                async with session.request(
                    method,
                    self._url(path),
                    params=_clean_params(params),
                    data=data,
                    headers=self._headers(headers),
                    timeout=self._timeout,
                ) as response:
                    status = response.status
                    yield response
        except asyncio.TimeoutError as e:
            raise create_network_error(
                f"{operation} timed out after {self.settings.timeout}s",
                operation=operation,
                path=path,
                original_error=e,
                timed_out=True,
            ) from e
        except aiohttp.ClientError as e:
            raise create_network_error(
                f"{operation} failed: {e!s}",
                operation=operation,
                path=path,
                original_error=e,
            ) from e
        finally:
            log_api_call(
                logger,
                path,
                method=method,
                status_code=status,
                duration_ms=(time.perf_counter() - start_time) * 1000,
            )

    def _status_error(self, method: str, path: str, status: int, payload: Any) -> HttpStatusError:
        error = create_http_status_error(
            status,
            f"{method} {path} failed with status {status}",
            operation=f"{method} {path}",
            path=path,
            user_message=_extract_message(payload) or UserMessages.REQUEST_FAILED,
            payload=payload,
        )
        if status == 401:  # noqa: PLR2004
            self._handle_unauthorized()
        return error

    def _is_login_location(self, location: str) -> bool:
        login_path = self.settings.login_path.rstrip("/") or "/"
        current = urlsplit(location).path.rstrip("/") or "/"
        return current == login_path or current.startswith(f"{login_path}/")

    def _handle_unauthorized(self) -> None:
        self.clear_credential()
        for listener in list(self._unauthorized_listeners):
            listener()
        if self.navigator is None:
            return

        location = self.navigator.current_location()
        if self._is_login_location(location):
            return

        self.session_storage.set(StorageKeys.REDIRECT_PATH, location)
        logger.info("Session expired; redirecting to login from %s", location)
        self.navigator.redirect_to_login()

    def _invalid_response(
        self,
        method: str,
        path: str,
        status: int,
        message: str,
        original_error: Exception | None = None,
    ) -> BusinessValidationError:
        return BusinessValidationError(
            ErrorCode.API_INVALID_RESPONSE,
            f"{method} {path}: {message}",
            ErrorContext(
                operation=f"{method} {path}",
                additional_data={"path": path, "status": status},
            ),
            original_error,
            status=status,
            user_message=UserMessages.INVALID_RESPONSE,
        )

    def _handle_response(
        self,
        method: str,
        path: str,
        status: int,
        raw: bytes,
        model: Any = None,
    ) -> ApiResponse:
        if status >= 400:  # noqa: PLR2004
            raise self._status_error(method, path, status, _try_json(raw))

        if not raw:
            return ApiResponse(status=status, data=None)

        try:
            payload = orjson.loads(raw)
        except orjson.JSONDecodeError as e:
            raise self._invalid_response(method, path, status, "response is not JSON", e) from e

        if isinstance(payload, dict) and _ENVELOPE_KEYS & payload.keys():
            try:
                envelope = Envelope.model_validate(payload)
            except ValidationError as e:
                raise self._invalid_response(method, path, status, "malformed envelope", e) from e
        else:
            envelope = Envelope(data=payload)

        if envelope.error or not envelope.success:
            user_message = (
                envelope.error
                if isinstance(envelope.error, str) and envelope.error
                else envelope.message or UserMessages.REQUEST_FAILED
            )
            raise BusinessValidationError(
                ErrorCode.BUSINESS_VALIDATION_FAILED,
                f"{method} {path} rejected: {user_message}",
                ErrorContext(
                    operation=f"{method} {path}",
                    additional_data={"path": path, "status": status},
                ),
                status=status,
                user_message=user_message,
                payload=payload,
            )

        data = envelope.data
        if model is not None:
            try:
                data = _adapter(model).validate_python(data)
            except ValidationError as e:
                raise self._invalid_response(
                    method,
                    path,
                    status,
                    f"payload failed validation ({e.error_count()} errors)",
                    e,
                ) from e

        return ApiResponse(status=status, data=data, message=envelope.message)

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: Mapping[str, Any] | None = None,
        body: Any = None,
        model: Any = None,
    ) -> ApiResponse:
        """Perform a JSON request and return the unwrapped response.

        Args:
            method: HTTP method
            path: Path relative to the API base URL
            params: Query parameters (``None`` values are dropped)
            body: JSON-serializable request body
            model: Optional type the envelope ``data`` is validated against

        Raises:
            TransportError: Classified failure (see ``ErrorKind``)
        """
        data = None
        headers = None
        if body is not None:
            data = orjson.dumps(body, default=_json_default)
            headers = {"Content-Type": "application/json"}

        async with self._open(method, path, params=params, data=data, headers=headers) as response:
            raw = await response.read()
            status = response.status

        return self._handle_response(method, path, status, raw, model)

    async def get(
        self,
        path: str,
        params: Mapping[str, Any] | None = None,
        *,
        model: Any = None,
    ) -> ApiResponse:
        return await self.request("GET", path, params=params, model=model)

    async def post(self, path: str, body: Any = None, *, model: Any = None) -> ApiResponse:
        return await self.request("POST", path, body=body, model=model)

    async def put(self, path: str, body: Any = None, *, model: Any = None) -> ApiResponse:
        return await self.request("PUT", path, body=body, model=model)

    async def patch(self, path: str, body: Any = None, *, model: Any = None) -> ApiResponse:
        return await self.request("PATCH", path, body=body, model=model)

    async def delete(self, path: str, *, model: Any = None) -> ApiResponse:
        return await self.request("DELETE", path, model=model)

    # -- bodies that are not plain JSON -------------------------------------

    async def upload(
        self,
        path: str,
        fields: Mapping[str, Any] | None = None,
        files: Mapping[str, UploadFile] | None = None,
        *,
        on_progress: ProgressCallback | None = None,
        model: Any = None,
    ) -> ApiResponse:
        """POST a ``multipart/form-data`` body, reporting percent progress.

        Progress is reported as the encoded body is handed to the
        connection, once per chunk, ending at 100.
        """
        writer = aiohttp.MultipartWriter("form-data")
        for name, value in (fields or {}).items():
            part = writer.append(str(value))
            part.set_content_disposition("form-data", name=name)
        for name, file in (files or {}).items():
            part = writer.append(file.content, {"Content-Type": file.content_type})
            part.set_content_disposition("form-data", name=name, filename=file.filename)

        sink = _BufferSink()
        await writer.write(sink)
        body = b"".join(sink.chunks)
        total = len(body)

        async def produce() -> AsyncIterator[bytes]:
            sent = 0
            for offset in range(0, total, HTTPConfig.CHUNK_SIZE):
                chunk = body[offset : offset + HTTPConfig.CHUNK_SIZE]
                yield chunk
                sent += len(chunk)
                if on_progress is not None:
                    on_progress(sent * 100 // total)

        headers = {
            "Content-Type": writer.content_type,
            "Content-Length": str(total),
        }
        async with self._open("POST", path, data=produce(), headers=headers) as response:
            raw = await response.read()
            status = response.status

        return self._handle_response("POST", path, status, raw, model)

    async def download(
        self,
        path: str,
        params: Mapping[str, Any] | None = None,
        *,
        on_progress: ProgressCallback | None = None,
    ) -> bytes:
        """GET a binary body. Progress is reported only when the server
        sends ``Content-Length``."""
        buffer = bytearray()
        async with self._open("GET", path, params=params) as response:
            if response.status >= 400:  # noqa: PLR2004
                raise self._status_error("GET", path, response.status, _try_json(await response.read()))

            total = response.content_length
            last_percent = -1
            async for chunk in response.content.iter_chunked(HTTPConfig.CHUNK_SIZE):
                buffer.extend(chunk)
                if on_progress is not None and total:
                    percent = min(100, len(buffer) * 100 // total)
                    if percent != last_percent:
                        on_progress(percent)
                        last_percent = percent

        return bytes(buffer)

    async def stream(
        self,
        path: str,
        body: Any = None,
        callbacks: StreamCallbacks | None = None,
    ) -> str:
        """POST ``body`` and read the response text incrementally.

        Each decoded chunk is passed to ``on_chunk``; the accumulated text is
        passed to ``on_complete`` and returned. Any failure is passed to
        ``on_error`` and then raised.
        """
        callbacks = callbacks or StreamCallbacks()
        if callbacks.on_start is not None:
            callbacks.on_start()

        decoder = codecs.getincrementaldecoder("utf-8")()
        parts: list[str] = []

        def emit(text: str) -> None:
            if text:
                parts.append(text)
                if callbacks.on_chunk is not None:
                    callbacks.on_chunk(text)

        headers = {"Content-Type": "application/json", "Accept": "text/event-stream"}
        data = orjson.dumps(body, default=_json_default) if body is not None else None
        try:
            async with self._open("POST", path, data=data, headers=headers) as response:
                if response.status >= 400:  # noqa: PLR2004
                    raise self._status_error(
                        "POST",
                        path,
                        response.status,
                        _try_json(await response.read()),
                    )
                async for chunk in response.content.iter_any():
                    emit(decoder.decode(chunk))
                emit(decoder.decode(b"", final=True))
        except UnicodeDecodeError as e:
            error = BusinessValidationError(
                ErrorCode.STREAM_DECODE_ERROR,
                f"POST {path}: stream is not valid UTF-8",
                ErrorContext(operation=f"POST {path}", additional_data={"path": path}),
                e,
                user_message=UserMessages.INVALID_RESPONSE,
            )
            if callbacks.on_error is not None:
                callbacks.on_error(error)
            raise error from e
        except TransportError as e:
            if callbacks.on_error is not None:
                callbacks.on_error(e)
            raise

        full_text = "".join(parts)
        if callbacks.on_complete is not None:
            callbacks.on_complete(full_text)
        return full_text


__all__ = [
    "Navigator",
    "ProgressCallback",
    "StreamCallbacks",
    "TransportClient",
    "UploadFile",
]
