"""Bookkeeping for live websocket connections addressed by connection id."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Iterable

from fastapi.websockets import WebSocket, WebSocketDisconnect, WebSocketState

from app.monitoring.metrics import relay_connections, relay_events_total

from .events import Emission, build_envelope

logger = logging.getLogger(__name__)


async def safe_send_json(websocket: WebSocket, data: dict[str, Any]) -> bool:
    """Safely send JSON data through websocket, handling disconnections gracefully.

    Returns True if message was sent successfully, False otherwise.
    """
    if websocket.application_state != WebSocketState.CONNECTED:
        return False
    try:
        await websocket.send_json(data)
        return True
    except (WebSocketDisconnect, RuntimeError) as e:
        logger.debug("Failed to send websocket message: %s", e)
        return False


class ConnectionManager:
    """Track active websocket connections by their transport-assigned id."""

    def __init__(self) -> None:
        self._connections: Dict[str, WebSocket] = {}
        self._lock = asyncio.Lock()

    def __contains__(self, connection_id: object) -> bool:
        return connection_id in self._connections

    async def connect(self, connection_id: str, websocket: WebSocket) -> None:
        async with self._lock:
            if connection_id not in self._connections:
                relay_connections.inc()
            self._connections[connection_id] = websocket

    async def disconnect(self, connection_id: str) -> None:
        async with self._lock:
            if self._connections.pop(connection_id, None) is not None:
                relay_connections.dec()

    async def connection_ids(self) -> list[str]:
        async with self._lock:
            return list(self._connections)

    async def send(self, connection_id: str, event: str, data: Any = None) -> bool:
        websocket = self._connections.get(connection_id)
        if websocket is None:
            logger.debug("Dropping %s for unknown connection %s", event, connection_id)
            return False
        delivered = await safe_send_json(websocket, build_envelope(event, data))
        if delivered:
            relay_events_total.labels(event, "out").inc()
        return delivered

    async def deliver(self, emissions: Iterable[Emission]) -> int:
        """Send each emission once; no retries. Returns the delivered count."""

        delivered = 0
        for emission in emissions:
            if await self.send(emission.connection_id, emission.event, emission.data):
                delivered += 1
        return delivered


__all__ = ["ConnectionManager", "safe_send_json"]
