"""
Session state machine.

The machine is a frozen snapshot plus a pure `transition` function; the
WorkerSession driver feeds it events and performs the I/O each state needs.

    DISCONNECTED -> CONNECTING -> AWAITING_REGISTRATION -> HEARTBEATING
         ^                                                      |
         +------------------------ CLOSING <--------------------+
                                      |
                                      +--> CLOSED (close was requested)
"""

from dataclasses import dataclass, replace
from enum import Enum
from typing import Callable, Dict, Tuple

from worker_fleet.core.exceptions import SessionError


class SessionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    AWAITING_REGISTRATION = "awaiting_registration"
    HEARTBEATING = "heartbeating"
    CLOSING = "closing"
    CLOSED = "closed"


class SessionEvent(str, Enum):
    CONNECT = "connect"
    OPENED = "opened"
    REGISTERED = "registered"
    CONNECTION_LOST = "connection_lost"
    CLOSE_REQUESTED = "close_requested"
    CLOSED = "closed"
    RECONNECT_DUE = "reconnect_due"


@dataclass(frozen=True)
class SessionSnapshot:
    state: SessionState = SessionState.DISCONNECTED
    close_requested: bool = False
    registered: bool = False
    connection_attempts: int = 0

    @property
    def is_terminal(self) -> bool:
        return self.state is SessionState.CLOSED

    @property
    def should_reconnect(self) -> bool:
        return self.state is SessionState.DISCONNECTED and not self.close_requested

    @property
    def can_heartbeat(self) -> bool:
        return self.state is SessionState.HEARTBEATING


def _start_connecting(s: SessionSnapshot) -> SessionSnapshot:
    return replace(
        s,
        state=SessionState.CONNECTING,
        registered=False,
        connection_attempts=s.connection_attempts + 1,
    )


def _request_close(s: SessionSnapshot) -> SessionSnapshot:
    # Nothing is open while disconnected, so there is nothing to wait for
    if s.state in (SessionState.DISCONNECTED, SessionState.CLOSED):
        return replace(s, state=SessionState.CLOSED, close_requested=True)
    return replace(s, state=SessionState.CLOSING, close_requested=True)


def _finish_closing(s: SessionSnapshot) -> SessionSnapshot:
    if s.close_requested:
        return replace(s, state=SessionState.CLOSED, registered=False)
    return replace(s, state=SessionState.DISCONNECTED, registered=False)


def _lose_connection(s: SessionSnapshot) -> SessionSnapshot:
    return replace(s, state=SessionState.CLOSING)


_Transition = Callable[[SessionSnapshot], SessionSnapshot]

_TRANSITIONS: Dict[Tuple[SessionState, SessionEvent], _Transition] = {
    (SessionState.DISCONNECTED, SessionEvent.CONNECT): _start_connecting,
    (SessionState.DISCONNECTED, SessionEvent.RECONNECT_DUE): _start_connecting,
    (SessionState.DISCONNECTED, SessionEvent.CLOSE_REQUESTED): _request_close,
    (SessionState.CONNECTING, SessionEvent.OPENED): lambda s: replace(
        s, state=SessionState.AWAITING_REGISTRATION
    ),
    (SessionState.CONNECTING, SessionEvent.CONNECTION_LOST): _lose_connection,
    (SessionState.CONNECTING, SessionEvent.CLOSE_REQUESTED): _request_close,
    (SessionState.AWAITING_REGISTRATION, SessionEvent.REGISTERED): lambda s: replace(
        s, state=SessionState.HEARTBEATING, registered=True
    ),
    (SessionState.AWAITING_REGISTRATION, SessionEvent.CONNECTION_LOST): _lose_connection,
    (SessionState.AWAITING_REGISTRATION, SessionEvent.CLOSE_REQUESTED): _request_close,
    (SessionState.HEARTBEATING, SessionEvent.CONNECTION_LOST): _lose_connection,
    (SessionState.HEARTBEATING, SessionEvent.CLOSE_REQUESTED): _request_close,
    (SessionState.CLOSING, SessionEvent.CONNECTION_LOST): lambda s: s,
    (SessionState.CLOSING, SessionEvent.CLOSE_REQUESTED): _request_close,
    (SessionState.CLOSING, SessionEvent.CLOSED): _finish_closing,
    (SessionState.CLOSED, SessionEvent.CLOSE_REQUESTED): lambda s: s,
}


def transition(snapshot: SessionSnapshot, event: SessionEvent) -> SessionSnapshot:
    """
    Apply `event` to `snapshot` and return the next snapshot.

    Raises:
        SessionError: the event is not valid in the current state
    """
    handler = _TRANSITIONS.get((snapshot.state, event))
    if handler is None:
        raise SessionError(
            f"Invalid session event {event.value} in state {snapshot.state.value}",
            details={"state": snapshot.state.value, "event": event.value},
        )
    return handler(snapshot)
