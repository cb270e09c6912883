"""Fan out the online-user snapshot whenever presence changes."""

from __future__ import annotations

from app.monitoring.metrics import presence_online_users

from .connections import ConnectionManager
from .events import ONLINE_USERS, Emission
from .registry import PresenceRegistry


class PresenceBroadcaster:
    def __init__(self, registry: PresenceRegistry, connections: ConnectionManager) -> None:
        self._registry = registry
        self._connections = connections

    async def announce(self, origin_connection_id: str) -> list[Emission]:
        """Build one ``online-users`` emission per connection other than the origin."""

        online = await self._registry.snapshot()
        presence_online_users.set(len(online))
        recipients = await self._connections.connection_ids()
        return [
            Emission(connection_id, ONLINE_USERS, {"onlineUsers": list(online)})
            for connection_id in recipients
            if connection_id != origin_connection_id
        ]


__all__ = ["PresenceBroadcaster"]
