"""State held for a single live relay connection."""

from __future__ import annotations

import enum
import logging
from typing import Any

from .broadcaster import PresenceBroadcaster
from .errors import MalformedPayloadError, SessionClosedError
from .events import ADD_USER, SIGNOUT, Emission
from .registry import PresenceRegistry

logger = logging.getLogger(__name__)


class SessionState(str, enum.Enum):
    CONNECTED = "connected"
    IDENTIFIED = "identified"
    CLOSED = "closed"


def coerce_user_id(event: str, value: Any, *, field: str = "id") -> str:
    """Return ``value`` as a registry key, rejecting non-scalar identifiers."""

    # bool is an int subclass but never a user id
    if isinstance(value, bool) or not isinstance(value, (str, int)):
        raise MalformedPayloadError(event, f"'{field}' must be a string user id")
    user_id = str(value)
    if not user_id:
        raise MalformedPayloadError(event, f"'{field}' must not be empty")
    return user_id


class ConnectionSession:
    """One websocket connection and the identity it announced.

    ``CONNECTED`` -> ``IDENTIFIED`` on ``add-user``; back to ``CONNECTED`` when
    the session signs its own user out; ``CLOSED`` once the transport goes away.
    """

    def __init__(
        self,
        connection_id: str,
        registry: PresenceRegistry,
        broadcaster: PresenceBroadcaster,
        *,
        cleanup_on_disconnect: bool = True,
    ) -> None:
        self.connection_id = connection_id
        self.state = SessionState.CONNECTED
        self.user_id: str | None = None
        self._registry = registry
        self._broadcaster = broadcaster
        self._cleanup_on_disconnect = cleanup_on_disconnect

    def __repr__(self) -> str:
        return f"ConnectionSession({self.connection_id!r}, state={self.state.value}, user={self.user_id!r})"

    @property
    def closed(self) -> bool:
        return self.state is SessionState.CLOSED

    def _ensure_open(self, event: str) -> None:
        if self.closed:
            raise SessionClosedError(event)

    async def add_user(self, user_id: Any) -> list[Emission]:
        self._ensure_open(ADD_USER)
        user_id = coerce_user_id(ADD_USER, user_id, field="userId")
        await self._registry.set(user_id, self.connection_id)
        self.user_id = user_id
        self.state = SessionState.IDENTIFIED
        logger.info("Connection %s identified as %s", self.connection_id, user_id)
        return await self._broadcaster.announce(self.connection_id)

    async def signout(self, user_id: Any) -> list[Emission]:
        self._ensure_open(SIGNOUT)
        user_id = coerce_user_id(SIGNOUT, user_id, field="userId")
        await self._registry.remove(user_id)
        if user_id == self.user_id:
            self.user_id = None
            self.state = SessionState.CONNECTED
        logger.info("Connection %s signed out %s", self.connection_id, user_id)
        return await self._broadcaster.announce(self.connection_id)

    async def close(self) -> list[Emission]:
        """Mark the session closed and release its registry entries.

        Without ``cleanup_on_disconnect`` entries survive the socket, so a client
        may reconnect without announcing itself again.
        """

        if self.closed:
            return []
        self.state = SessionState.CLOSED
        if not self._cleanup_on_disconnect:
            return []
        removed = await self._registry.remove_connection(self.connection_id)
        if not removed:
            return []
        logger.info("Connection %s closed; released %s", self.connection_id, ", ".join(removed))
        return await self._broadcaster.announce(self.connection_id)


__all__ = ["ConnectionSession", "SessionState", "coerce_user_id"]
