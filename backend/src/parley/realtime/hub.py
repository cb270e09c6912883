"""Wiring of the relay components for one application instance."""

from __future__ import annotations

import logging
import uuid
from typing import Any

import anyio
from fastapi.websockets import WebSocket

from .broadcaster import PresenceBroadcaster
from .connections import ConnectionManager
from .dispatcher import RelayDispatcher
from .events import Emission
from .registry import PresenceRegistry
from .session import ConnectionSession

logger = logging.getLogger(__name__)


class RelayHub:
    """Owns the presence registry and hands it to every session it opens."""

    def __init__(
        self,
        *,
        cleanup_on_disconnect: bool = True,
        strict_call_target: bool = False,
    ) -> None:
        self.registry = PresenceRegistry()
        self.connections = ConnectionManager()
        self.broadcaster = PresenceBroadcaster(self.registry, self.connections)
        self.dispatcher = RelayDispatcher(
            self.registry,
            self.connections,
            strict_call_target=strict_call_target,
        )
        self.cleanup_on_disconnect = cleanup_on_disconnect

    @classmethod
    def from_settings(cls, settings: Any) -> "RelayHub":
        return cls(
            cleanup_on_disconnect=settings.relay_cleanup_on_disconnect,
            strict_call_target=settings.relay_strict_call_target,
        )

    async def open_session(self, websocket: WebSocket) -> ConnectionSession:
        """Assign a connection id to ``websocket`` and start tracking it."""

        connection_id = uuid.uuid4().hex
        await self.connections.connect(connection_id, websocket)
        logger.info("Connection %s opened", connection_id)
        return ConnectionSession(
            connection_id,
            self.registry,
            self.broadcaster,
            cleanup_on_disconnect=self.cleanup_on_disconnect,
        )

    async def dispatch(self, session: ConnectionSession, event: str, payload: Any) -> list[Emission]:
        return await self.dispatcher.dispatch(session, event, payload)

    async def close_session(self, session: ConnectionSession) -> None:
        # Runs from the socket task's finally block, which may already be cancelled.
        with anyio.CancelScope(shield=True):
            await self.connections.disconnect(session.connection_id)
            emissions = await session.close()
            await self.connections.deliver(emissions)
        logger.info("Connection %s closed", session.connection_id)


__all__ = ["RelayHub"]
