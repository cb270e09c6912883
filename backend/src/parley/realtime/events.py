"""Event names and the JSON envelope exchanged over the relay websocket.

Every frame is a JSON object ``{"event": <name>, "data": <payload>}``. The
``data`` key is omitted for events that carry no payload (``voice-call-offline``,
``accept-call`` and friends). Several event and field names are misspelt
(``msg-recieve``, ``recieverId``); deployed clients depend on them, so they are
kept verbatim.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Dict

# Client -> server
ADD_USER = "add-user"
SIGNOUT = "signout"
OUTGOING_VOICE_CALL = "outgoing-voice-call"
OUTGOING_VIDEO_CALL = "outgoing-video-call"
REJECT_VOICE_CALL = "reject-voice-call"
REJECT_VIDEO_CALL = "reject-video-call"
ACCEPT_INCOMING_CALL = "accept-incoming-call"
SEND_MSG = "send-msg"
MARK_READ = "mark-read"

# Server -> client
ONLINE_USERS = "online-users"
INCOMING_VOICE_CALL = "incoming-voice-call"
INCOMING_VIDEO_CALL = "incoming-video-call"
VOICE_CALL_OFFLINE = "voice-call-offline"
VIDEO_CALL_OFFLINE = "video-call-offline"
VOICE_CALL_REJECTED = "voice-call-rejected"
VIDEO_CALL_REJECTED = "video-call-rejected"
ACCEPT_CALL = "accept-call"
MSG_RECEIVE = "msg-recieve"
MARK_READ_RECEIVE = "mark-read-recieve"
ERROR = "error"

# Keepalive, both directions
PING = "ping"
PONG = "pong"


class InvalidFrameError(ValueError):
    """Raised when a websocket frame is not a valid event envelope."""


@dataclass(frozen=True, slots=True)
class Emission:
    """A single outbound event addressed to one connection."""

    connection_id: str
    event: str
    data: Any = None


def build_envelope(event: str, data: Any = None) -> Dict[str, Any]:
    envelope: Dict[str, Any] = {"event": event}
    if data is not None:
        envelope["data"] = data
    return envelope


def parse_frame(raw: str) -> tuple[str, Any]:
    """Decode a text frame into ``(event, data)``."""

    try:
        message = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise InvalidFrameError("Invalid message format") from exc

    if not isinstance(message, dict):
        raise InvalidFrameError("Message payload must be a JSON object")

    event = message.get("event")
    if not isinstance(event, str) or not event:
        raise InvalidFrameError("Message event must be provided")
    return event, message.get("data")


__all__ = [
    "ADD_USER",
    "SIGNOUT",
    "OUTGOING_VOICE_CALL",
    "OUTGOING_VIDEO_CALL",
    "REJECT_VOICE_CALL",
    "REJECT_VIDEO_CALL",
    "ACCEPT_INCOMING_CALL",
    "SEND_MSG",
    "MARK_READ",
    "ONLINE_USERS",
    "INCOMING_VOICE_CALL",
    "INCOMING_VIDEO_CALL",
    "VOICE_CALL_OFFLINE",
    "VIDEO_CALL_OFFLINE",
    "VOICE_CALL_REJECTED",
    "VIDEO_CALL_REJECTED",
    "ACCEPT_CALL",
    "MSG_RECEIVE",
    "MARK_READ_RECEIVE",
    "ERROR",
    "PING",
    "PONG",
    "Emission",
    "InvalidFrameError",
    "build_envelope",
    "parse_frame",
]
