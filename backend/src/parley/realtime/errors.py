"""Exceptions raised by the relay core."""

from __future__ import annotations


class RelayError(Exception):
    """Base class for relay failures that stay local to one handler call."""

    category = "error"

    def __init__(self, event: str, detail: str) -> None:
        super().__init__(f"{event}: {detail}")
        self.event = event
        self.detail = detail


class MalformedPayloadError(RelayError):
    """Raised when an event payload lacks a field its handler needs."""

    category = "malformed"


class UnknownEventError(RelayError):
    """Raised when no handler is registered for an incoming event name."""

    category = "unknown"

    def __init__(self, event: str) -> None:
        super().__init__(event, "no handler registered")


class SessionClosedError(RelayError):
    """Raised when an event arrives for a session that has already closed."""

    category = "closed"

    def __init__(self, event: str) -> None:
        super().__init__(event, "session is closed")


__all__ = [
    "RelayError",
    "MalformedPayloadError",
    "UnknownEventError",
    "SessionClosedError",
]
