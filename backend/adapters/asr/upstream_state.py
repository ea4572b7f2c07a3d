"""
Upstream session lifecycle states.

IDLE -> CONNECTING -> CONFIGURING -> READY -> CLOSED

CLOSED is reachable from every state (explicit close, handshake failure,
upstream error, upstream disconnect). Nothing leaves CLOSED.
"""
from enum import Enum


class UpstreamState(str, Enum):
    """Lifecycle of one outbound transcription connection."""
    IDLE = "IDLE"                  # Constructed, connect() not called yet
    CONNECTING = "CONNECTING"      # Opening the outbound socket
    CONFIGURING = "CONFIGURING"    # Socket open, session update being sent
    READY = "READY"                # Configured; audio may be appended
    CLOSED = "CLOSED"              # Terminal


class InvalidTransition(Exception):
    """Raised when a state change is not allowed from the current state."""

    def __init__(self, current: UpstreamState, target: UpstreamState) -> None:
        super().__init__(f"invalid upstream transition {current.value} -> {target.value}")
        self.current = current
        self.target = target


_ALLOWED: dict[UpstreamState, frozenset[UpstreamState]] = {
    UpstreamState.IDLE: frozenset({UpstreamState.CONNECTING, UpstreamState.CLOSED}),
    UpstreamState.CONNECTING: frozenset({UpstreamState.CONFIGURING, UpstreamState.CLOSED}),
    UpstreamState.CONFIGURING: frozenset({UpstreamState.READY, UpstreamState.CLOSED}),
    UpstreamState.READY: frozenset({UpstreamState.CLOSED}),
    UpstreamState.CLOSED: frozenset(),
}


def check_transition(current: UpstreamState, target: UpstreamState) -> UpstreamState:
    """
    Validate a transition and return the target state.

    Raises:
        InvalidTransition if target is not reachable from current.
    """
    if target not in _ALLOWED[current]:
        raise InvalidTransition(current, target)
    return target
