"""Presence registry and signaling relay over websockets."""

from .broadcaster import PresenceBroadcaster  # noqa: F401
from .connections import ConnectionManager, safe_send_json  # noqa: F401
from .dispatcher import RelayDispatcher  # noqa: F401
from .errors import (  # noqa: F401
    MalformedPayloadError,
    RelayError,
    SessionClosedError,
    UnknownEventError,
)
from .events import Emission, InvalidFrameError, build_envelope, parse_frame  # noqa: F401
from .hub import RelayHub  # noqa: F401
from .registry import PresenceRegistry  # noqa: F401
from .session import ConnectionSession, SessionState  # noqa: F401

__all__ = [
    "ConnectionManager",
    "ConnectionSession",
    "Emission",
    "InvalidFrameError",
    "MalformedPayloadError",
    "PresenceBroadcaster",
    "PresenceRegistry",
    "RelayDispatcher",
    "RelayError",
    "RelayHub",
    "SessionClosedError",
    "SessionState",
    "UnknownEventError",
    "build_envelope",
    "parse_frame",
    "safe_send_json",
]
