"""Relay handlers forwarding call signaling and chat events between users.

Each handler resolves a target connection through the presence registry and
returns the emissions to perform; the dispatcher owns delivery. Handlers never
touch the transport, which keeps them testable without a live socket.
"""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Dict, Mapping

from app.monitoring.metrics import (
    relay_dropped_total,
    relay_events_total,
    relay_fallbacks_total,
    relay_handler_errors_total,
)

from . import events
from .connections import ConnectionManager
from .errors import MalformedPayloadError, RelayError, SessionClosedError, UnknownEventError
from .events import Emission
from .registry import PresenceRegistry
from .session import ConnectionSession, coerce_user_id

logger = logging.getLogger(__name__)

Handler = Callable[[ConnectionSession, Any, PresenceRegistry], Awaitable[list[Emission]]]


def _require_mapping(event: str, payload: Any) -> Mapping[str, Any]:
    if not isinstance(payload, Mapping):
        raise MalformedPayloadError(event, "payload must be an object")
    return payload


def _require_user_id(event: str, payload: Mapping[str, Any], field: str) -> str:
    if payload.get(field) is None:
        raise MalformedPayloadError(event, f"missing '{field}'")
    return coerce_user_id(event, payload[field], field=field)


def _usable_user_id(event: str, value: Any, field: str) -> str | None:
    if value is None:
        return None
    try:
        return coerce_user_id(event, value, field=field)
    except MalformedPayloadError:
        return None


def _dropped(event: str, user_id: str | None) -> list[Emission]:
    logger.debug("%s target %s is offline; dropping", event, user_id)
    relay_dropped_total.labels(event).inc()
    return []


class RelayDispatcher:
    """Route named relay events to their handlers.

    ``strict_call_target`` controls how outgoing calls pick their callee. By
    default a call without ``to`` falls back to ``from`` and therefore rings
    the caller; with the flag set only ``to`` is used.
    """

    def __init__(
        self,
        registry: PresenceRegistry,
        connections: ConnectionManager,
        *,
        strict_call_target: bool = False,
    ) -> None:
        self._registry = registry
        self._connections = connections
        self._strict_call_target = strict_call_target
        self._handlers: Dict[str, Handler] = {
            events.ADD_USER: self._add_user,
            events.SIGNOUT: self._signout,
            events.OUTGOING_VOICE_CALL: self._outgoing_call(
                events.OUTGOING_VOICE_CALL, events.INCOMING_VOICE_CALL, events.VOICE_CALL_OFFLINE
            ),
            events.OUTGOING_VIDEO_CALL: self._outgoing_call(
                events.OUTGOING_VIDEO_CALL, events.INCOMING_VIDEO_CALL, events.VIDEO_CALL_OFFLINE
            ),
            events.REJECT_VOICE_CALL: self._reject_call(
                events.REJECT_VOICE_CALL, events.VOICE_CALL_REJECTED
            ),
            events.REJECT_VIDEO_CALL: self._reject_call(
                events.REJECT_VIDEO_CALL, events.VIDEO_CALL_REJECTED
            ),
            events.ACCEPT_INCOMING_CALL: self._accept_incoming_call,
            events.SEND_MSG: self._send_msg,
            events.MARK_READ: self._mark_read,
            events.PING: self._ping,
            events.PONG: self._pong,
        }

    @property
    def event_names(self) -> list[str]:
        return sorted(self._handlers)

    async def handle(self, session: ConnectionSession, event: str, payload: Any) -> list[Emission]:
        """Run the handler for ``event`` and return its emissions without sending them."""

        handler = self._handlers.get(event)
        if handler is None:
            raise UnknownEventError(event)
        if session.closed:
            raise SessionClosedError(event)
        relay_events_total.labels(event, "in").inc()
        return await handler(session, payload, self._registry)

    async def dispatch(self, session: ConnectionSession, event: str, payload: Any) -> list[Emission]:
        """Handle one incoming event and deliver what it produced.

        Failures are confined to this invocation: they are logged and counted,
        never surfaced to the client, and never propagate to the receive loop.
        """

        try:
            emissions = await self.handle(session, event, payload)
        except UnknownEventError as exc:
            logger.debug("Ignoring %s from %s: %s", event, session.connection_id, exc.detail)
            relay_handler_errors_total.labels(event, exc.category).inc()
            return []
        except RelayError as exc:
            logger.warning(
                "Rejected %s from connection %s: %s", event, session.connection_id, exc.detail
            )
            relay_handler_errors_total.labels(event, exc.category).inc()
            return []
        except Exception:
            logger.exception("Relay handler for %s failed", event)
            relay_handler_errors_total.labels(event, "error").inc()
            return []

        await self._connections.deliver(emissions)
        return emissions

    # ------------------------------------------------------------------
    # Presence
    # ------------------------------------------------------------------

    async def _add_user(
        self, session: ConnectionSession, payload: Any, registry: PresenceRegistry
    ) -> list[Emission]:
        return await session.add_user(payload)

    async def _signout(
        self, session: ConnectionSession, payload: Any, registry: PresenceRegistry
    ) -> list[Emission]:
        return await session.signout(payload)

    # ------------------------------------------------------------------
    # Calls
    # ------------------------------------------------------------------

    def _outgoing_call(self, event: str, forward_event: str, offline_event: str) -> Handler:
        async def handler(
            session: ConnectionSession, payload: Any, registry: PresenceRegistry
        ) -> list[Emission]:
            data = _require_mapping(event, payload)
            if self._strict_call_target:
                target_key: str | None = _require_user_id(event, data, "to")
            else:
                field = "to" if data.get("to") is not None else "from"
                if data.get(field) is None:
                    raise MalformedPayloadError(event, "missing 'to' and 'from'")
                # an id that cannot be registered simply matches nobody
                target_key = _usable_user_id(event, data[field], field)

            target = await registry.lookup(target_key)
            if target is not None:
                return [Emission(target, forward_event, payload)]

            sender = await registry.lookup(_usable_user_id(event, data.get("from"), "from"))
            if sender is None:
                return _dropped(event, target_key)
            logger.debug("%s target %s offline; notifying caller", event, target_key)
            relay_fallbacks_total.labels(event).inc()
            return [Emission(sender, offline_event)]

        return handler

    def _reject_call(self, event: str, forward_event: str) -> Handler:
        async def handler(
            session: ConnectionSession, payload: Any, registry: PresenceRegistry
        ) -> list[Emission]:
            caller = _require_user_id(event, _require_mapping(event, payload), "from")
            target = await registry.lookup(caller)
            if target is None:
                return _dropped(event, caller)
            return [Emission(target, forward_event)]

        return handler

    async def _accept_incoming_call(
        self, session: ConnectionSession, payload: Any, registry: PresenceRegistry
    ) -> list[Emission]:
        event = events.ACCEPT_INCOMING_CALL
        caller = _require_user_id(event, _require_mapping(event, payload), "id")
        target = await registry.lookup(caller)
        if target is None:
            return _dropped(event, caller)
        return [Emission(target, events.ACCEPT_CALL)]

    # ------------------------------------------------------------------
    # Messaging
    # ------------------------------------------------------------------

    async def _send_msg(
        self, session: ConnectionSession, payload: Any, registry: PresenceRegistry
    ) -> list[Emission]:
        event = events.SEND_MSG
        data = _require_mapping(event, payload)
        recipient = _require_user_id(event, data, "to")
        target = await registry.lookup(recipient)
        if target is None:
            return _dropped(event, recipient)
        return [
            Emission(
                target,
                events.MSG_RECEIVE,
                {"from": data.get("from"), "message": data.get("message")},
            )
        ]

    async def _mark_read(
        self, session: ConnectionSession, payload: Any, registry: PresenceRegistry
    ) -> list[Emission]:
        event = events.MARK_READ
        data = _require_mapping(event, payload)
        sender = _require_user_id(event, data, "id")
        target = await registry.lookup(sender)
        if target is None:
            return _dropped(event, sender)
        return [
            Emission(
                target,
                events.MARK_READ_RECEIVE,
                {"id": data.get("id"), "recieverId": data.get("recieverId")},
            )
        ]

    async def _ping(
        self, session: ConnectionSession, payload: Any, registry: PresenceRegistry
    ) -> list[Emission]:
        return [Emission(session.connection_id, events.PONG)]

    async def _pong(
        self, session: ConnectionSession, payload: Any, registry: PresenceRegistry
    ) -> list[Emission]:
        return []


__all__ = ["Handler", "RelayDispatcher"]
