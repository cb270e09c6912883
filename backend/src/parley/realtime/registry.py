"""In-memory presence registry mapping user identities to live connections."""

from __future__ import annotations

import asyncio
from typing import Dict


class PresenceRegistry:
    """Tracks which connection currently speaks for each user id.

    One entry per user: registering the same user again replaces the previous
    connection. State lives in process memory only and starts empty.
    """

    def __init__(self) -> None:
        self._online: Dict[str, str] = {}
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._online)

    async def set(self, user_id: str, connection_id: str) -> None:
        async with self._lock:
            self._online[user_id] = connection_id

    async def remove(self, user_id: str) -> bool:
        async with self._lock:
            return self._online.pop(user_id, None) is not None

    async def lookup(self, user_id: str | None) -> str | None:
        if user_id is None:
            return None
        async with self._lock:
            return self._online.get(user_id)

    async def snapshot(self) -> list[str]:
        """Return the registered user ids at call time, not a live view."""

        async with self._lock:
            return list(self._online)

    async def remove_connection(self, connection_id: str) -> list[str]:
        """Drop every user id still mapped to ``connection_id``.

        Users that re-registered on a newer connection are left untouched.
        """

        async with self._lock:
            stale = [user_id for user_id, owner in self._online.items() if owner == connection_id]
            for user_id in stale:
                del self._online[user_id]
            return stale


__all__ = ["PresenceRegistry"]
