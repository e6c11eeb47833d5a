"""Authentication session state machine.

The session moves through an explicit set of states; each state accepts a
closed set of events. An event the current state does not accept raises
``InvalidTransitionError`` instead of being silently ignored.
"""

from __future__ import annotations

import logging
from enum import Enum
from types import MappingProxyType
from typing import Callable, Mapping

from labsync.shared.errors import ErrorCode, ErrorContext, InvalidTransitionError

logger = logging.getLogger(__name__)


class AuthState(Enum):
    """Authentication states of a client session."""

    ANONYMOUS = "anonymous"
    AUTHENTICATING = "authenticating"
    AUTHENTICATED = "authenticated"
    FAILED = "failed"


class AuthEvent(Enum):
    """Events that drive the authentication state machine."""

    LOGIN_STARTED = "login_started"
    LOGIN_SUCCEEDED = "login_succeeded"
    LOGIN_FAILED = "login_failed"
    LOGGED_OUT = "logged_out"
    SESSION_EXPIRED = "session_expired"


TRANSITIONS: Mapping[AuthState, Mapping[AuthEvent, AuthState]] = MappingProxyType(
    {
        AuthState.ANONYMOUS: MappingProxyType(
            {
                AuthEvent.LOGIN_STARTED: AuthState.AUTHENTICATING,
                AuthEvent.LOGGED_OUT: AuthState.ANONYMOUS,
            },
        ),
        AuthState.AUTHENTICATING: MappingProxyType(
            {
                AuthEvent.LOGIN_SUCCEEDED: AuthState.AUTHENTICATED,
                AuthEvent.LOGIN_FAILED: AuthState.FAILED,
                AuthEvent.LOGGED_OUT: AuthState.ANONYMOUS,
            },
        ),
        AuthState.AUTHENTICATED: MappingProxyType(
            {
                AuthEvent.LOGIN_STARTED: AuthState.AUTHENTICATING,
                AuthEvent.LOGGED_OUT: AuthState.ANONYMOUS,
                AuthEvent.SESSION_EXPIRED: AuthState.ANONYMOUS,
            },
        ),
        AuthState.FAILED: MappingProxyType(
            {
                AuthEvent.LOGIN_STARTED: AuthState.AUTHENTICATING,
                AuthEvent.LOGGED_OUT: AuthState.ANONYMOUS,
            },
        ),
    },
)

TransitionListener = Callable[[AuthState, AuthState, AuthEvent], None]


class AuthStateMachine:
    """Tracks the authentication state of one client session.

    Args:
        initial: Starting state; ``AUTHENTICATED`` when a stored credential
            is restored at startup
    """

    def __init__(self, initial: AuthState = AuthState.ANONYMOUS) -> None:
        self._state = initial
        self._listeners: list[TransitionListener] = []

    @property
    def state(self) -> AuthState:
        return self._state

    @property
    def is_authenticated(self) -> bool:
        return self._state is AuthState.AUTHENTICATED

    def can_handle(self, event: AuthEvent) -> bool:
        return event in TRANSITIONS[self._state]

    def subscribe(self, listener: TransitionListener) -> Callable[[], None]:
        """Register ``listener(previous, current, event)``; returns an
        unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def dispatch(self, event: AuthEvent) -> AuthState:
        """Apply ``event`` and return the new state.

        Raises:
            InvalidTransitionError: If the current state does not accept
                ``event``
        """
        allowed = TRANSITIONS[self._state]
        if event not in allowed:
            raise InvalidTransitionError(
                ErrorCode.INVALID_STATE_TRANSITION,
                f"Event {event.value} is not valid in state {self._state.value}",
                ErrorContext(
                    operation="auth_dispatch",
                    additional_data={"state": self._state.value, "event": event.value},
                ),
            )

        previous = self._state
        self._state = allowed[event]
        logger.debug(
            "Auth state %s -> %s on %s",
            previous.value,
            self._state.value,
            event.value,
        )

        for listener in list(self._listeners):
            listener(previous, self._state, event)
        return self._state

    def reset(self) -> None:
        """Return to ``ANONYMOUS`` without notifying listeners."""
        self._state = AuthState.ANONYMOUS


__all__ = [
    "TRANSITIONS",
    "AuthEvent",
    "AuthState",
    "AuthStateMachine",
    "TransitionListener",
]
