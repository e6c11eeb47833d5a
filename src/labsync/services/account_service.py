"""Account, profile and generation endpoints.

Thin pass-through over the transport client; nothing here is cached. Login
and logout drive the ``AuthStateMachine`` and are the only callers of the
client's credential writers.
"""

from __future__ import annotations

import logging
from typing import Any, Callable

import orjson

from labsync.services.state_machine import AuthEvent, AuthState, AuthStateMachine
from labsync.services.transport import (
    ProgressCallback,
    StreamCallbacks,
    TransportClient,
    UploadFile,
)
from labsync.shared.constants import Endpoints, HTTPConfig
from labsync.shared.errors import LabSyncError
from labsync.shared.logging import log_operation_error
from labsync.shared.models import ApiResponse, LoginResult, UserSummary

logger = logging.getLogger(__name__)

EventCallback = Callable[[Any], None]


class _EventLineParser:
    """Splits streamed text into lines and decodes ``data:`` lines as JSON.

    Lines may be split across chunks, so text is buffered until a newline.
    """

    def __init__(self, on_event: EventCallback | None) -> None:
        self._on_event = on_event
        self._buffer = ""
        self.events: list[Any] = []

    def feed(self, text: str) -> None:
        self._buffer += text
        while "\n" in self._buffer:
            line, self._buffer = self._buffer.split("\n", 1)
            self._handle(line)

    def close(self) -> None:
        if self._buffer:
            self._handle(self._buffer)
            self._buffer = ""

    def _handle(self, line: str) -> None:
        line = line.rstrip("\r")
        if not line.startswith(HTTPConfig.STREAM_EVENT_PREFIX):
            return
        payload = line[len(HTTPConfig.STREAM_EVENT_PREFIX) :].strip()
        if not payload:
            return
        try:
            event = orjson.loads(payload)
        except orjson.JSONDecodeError:
            logger.warning("Skipping malformed stream event: %.80s", payload)
            return
        self.events.append(event)
        if self._on_event is not None:
            self._on_event(event)


class AccountService:
    """Authentication, profile, preferences, progress and generation calls.

    A 401 on any request made through ``transport`` expires an
    authenticated session, whichever service issued it.

    Args:
        transport: Transport client
        auth: Session state machine (a fresh one is created when omitted)
    """

    def __init__(self, transport: TransportClient, auth: AuthStateMachine | None = None) -> None:
        self.transport = transport
        if auth is None:
            initial = AuthState.AUTHENTICATED if transport.is_authenticated else AuthState.ANONYMOUS
            auth = AuthStateMachine(initial)
        self.auth = auth
        self._unsubscribe = transport.on_unauthorized(self._session_expired)

    def _session_expired(self) -> None:
        if self.auth.can_handle(AuthEvent.SESSION_EXPIRED):
            self.auth.dispatch(AuthEvent.SESSION_EXPIRED)

    def detach(self) -> None:
        """Stop following the transport's 401 notifications."""
        self._unsubscribe()

    # -- authentication ----------------------------------------------------

    async def login(self, username: str, password: str) -> UserSummary:
        """Log in and persist the credential.

        A login that fails or is cancelled leaves the session in ``FAILED``,
        from which a new login may start.

        Raises:
            TransportError: On rejected credentials or transport failure
        """
        self.auth.dispatch(AuthEvent.LOGIN_STARTED)
        try:
            response = await self.transport.post(
                Endpoints.LOGIN,
                {"username": username, "password": password},
                model=LoginResult,
            )
        except BaseException:
            if self.auth.state is AuthState.AUTHENTICATING:
                self.auth.dispatch(AuthEvent.LOGIN_FAILED)
            raise

        result: LoginResult = response.data
        self.transport.store_credential(result.token, result.user)
        self.auth.dispatch(AuthEvent.LOGIN_SUCCEEDED)
        logger.info("User %s logged in", result.user.username)
        return result.user

    async def logout(self) -> bool:
        """Log out. The local credential is cleared even if the server call
        fails; returns whether the server acknowledged the logout."""
        acknowledged = False
        try:
            await self.transport.post(Endpoints.LOGOUT)
            acknowledged = True
        except LabSyncError as e:
            log_operation_error(logger, e, operation="logout", level=logging.WARNING)
        finally:
            self.transport.clear_credential()
            self.auth.dispatch(AuthEvent.LOGGED_OUT)
        return acknowledged

    async def current_user(self) -> UserSummary:
        response = await self.transport.get(Endpoints.CURRENT_USER, model=UserSummary)
        return response.data

    async def update_password(self, old_password: str, new_password: str) -> Any:
        response = await self.transport.put(
            Endpoints.PASSWORD,
            {"old_password": old_password, "new_password": new_password},
        )
        return response.data

    # -- profile and preferences -------------------------------------------

    async def get_profile(self, user_id: str | int) -> Any:
        response = await self.transport.get(Endpoints.profile(str(user_id)))
        return response.data

    async def update_profile(self, user_id: str | int, profile: dict[str, Any]) -> Any:
        response = await self.transport.put(Endpoints.profile(str(user_id)), profile)
        return response.data

    async def get_preferences(self, user_id: str | int) -> Any:
        response = await self.transport.get(Endpoints.preferences(str(user_id)))
        return response.data

    async def update_preferences(self, user_id: str | int, preferences: dict[str, Any]) -> Any:
        response = await self.transport.put(Endpoints.preferences(str(user_id)), preferences)
        return response.data

    async def upload_avatar(
        self,
        user_id: str | int,
        file: UploadFile,
        on_progress: ProgressCallback | None = None,
    ) -> Any:
        response: ApiResponse = await self.transport.upload(
            Endpoints.avatar(str(user_id)),
            files={"avatar": file},
            on_progress=on_progress,
        )
        return response.data

    async def get_progress(self, user_id: str | int) -> Any:
        response = await self.transport.get(Endpoints.progress(str(user_id)))
        return response.data

    # -- generation --------------------------------------------------------

    async def generate(self, params: dict[str, Any]) -> Any:
        response = await self.transport.post(Endpoints.GENERATE, params)
        return response.data

    async def generate_stream(
        self,
        params: dict[str, Any],
        on_event: EventCallback | None = None,
    ) -> list[Any]:
        """Stream a generation and decode its ``data:`` events.

        Each decoded event is passed to ``on_event`` as it arrives; all
        events are returned once the stream completes. Malformed events are
        logged and skipped.
        """
        parser = _EventLineParser(on_event)
        await self.transport.stream(
            Endpoints.GENERATE_STREAM,
            params,
            StreamCallbacks(on_chunk=parser.feed),
        )
        parser.close()
        return parser.events


__all__ = ["AccountService", "EventCallback"]
