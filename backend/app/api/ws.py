"""WebSocket endpoint carrying presence and call-signaling events."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import AsyncIterator, Awaitable, Callable
from typing import Any, Dict, TypeVar

from fastapi import APIRouter, WebSocket, status
from fastapi.websockets import WebSocketDisconnect, WebSocketState

from parley.realtime import RelayHub, safe_send_json
from parley.realtime.events import ERROR, PING, InvalidFrameError, build_envelope, parse_frame

from app.config import Settings

router = APIRouter(tags=["ws"])

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def iter_keepalive_messages(
    websocket: WebSocket,
    receiver: Callable[[], Awaitable[T]],
    *,
    timeout_seconds: float | int | None,
    ping_interval_seconds: float | int | None,
    ping_payload: Dict[str, Any] | None = None,
) -> AsyncIterator[T]:
    """Yield messages from *receiver* while sending keepalive pings when idle."""

    ping_payload = ping_payload or build_envelope(PING)
    timeout = float(timeout_seconds) if timeout_seconds else 0.0
    interval = float(ping_interval_seconds) if ping_interval_seconds else 0.0
    last_activity = time.monotonic()
    last_ping_sent: float | None = None

    while True:
        try:
            if timeout > 0:
                message = await asyncio.wait_for(receiver(), timeout=timeout)
            else:
                message = await receiver()
        except asyncio.TimeoutError:
            if websocket.application_state != WebSocketState.CONNECTED:
                break

            now = time.monotonic()
            should_ping = interval <= 0 or (
                now - last_activity >= interval
                and (last_ping_sent is None or now - last_ping_sent >= interval)
            )
            if should_ping:
                if not await safe_send_json(websocket, ping_payload):
                    break
                last_ping_sent = now
            continue
        except (RuntimeError, WebSocketDisconnect):
            break
        else:
            last_activity = time.monotonic()
            last_ping_sent = None
            yield message


async def _send_error(websocket: WebSocket, detail: str) -> None:
    await safe_send_json(websocket, build_envelope(ERROR, {"detail": detail}))


def _origin_allowed(websocket: WebSocket, settings: Settings) -> bool:
    origin = websocket.headers.get("origin")
    if origin is None:
        return True
    return origin.rstrip("/") in settings.allowed_origins


@router.websocket("/ws")
async def websocket_relay(websocket: WebSocket) -> None:
    """Relay presence, call signaling and chat delivery between connected users."""

    settings: Settings = websocket.app.state.settings
    hub: RelayHub = websocket.app.state.relay_hub

    if not _origin_allowed(websocket, settings):
        logger.warning("Rejected relay handshake from origin %s", websocket.headers.get("origin"))
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason="Origin not allowed")
        return

    # Track the socket before accepting so peers see it once the client is told it is connected.
    session = await hub.open_session(websocket)
    try:
        await websocket.accept()
        async for raw_message in iter_keepalive_messages(
            websocket,
            websocket.receive_text,
            timeout_seconds=settings.websocket_keepalive_timeout_seconds,
            ping_interval_seconds=settings.websocket_keepalive_ping_interval_seconds,
        ):
            try:
                event, payload = parse_frame(raw_message)
            except InvalidFrameError as exc:
                await _send_error(websocket, str(exc))
                continue
            await hub.dispatch(session, event, payload)
    finally:
        await hub.close_session(session)
