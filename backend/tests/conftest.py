"""Shared pytest fixtures for backend tests."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Any, Iterator

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from fastapi.websockets import WebSocketState

ROOT_DIR = Path(__file__).resolve().parents[1]
for path in (ROOT_DIR, ROOT_DIR / "src"):
    if str(path) not in sys.path:
        sys.path.insert(0, str(path))

from app.config import Settings
from app.main import create_app
from app.monitoring.registry import registry
from parley.realtime import ConnectionSession, RelayHub


class DummyWebSocket:
    def __init__(self) -> None:
        self.application_state = WebSocketState.CONNECTED
        self.sent: list[dict[str, Any]] = []

    async def send_json(self, payload: dict[str, Any]) -> None:
        self.sent.append(payload)

    @property
    def events(self) -> list[str]:
        return [message["event"] for message in self.sent]


@pytest.fixture(autouse=True)
def reset_metrics() -> Iterator[None]:
    registry.reset()
    yield
    registry.reset()


@pytest.fixture()
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture()
def settings(tmp_path: Path) -> Settings:
    """Settings isolated from the developer's environment and .env file."""

    return Settings(
        _env_file=None,
        uploads_root=tmp_path / "uploads",
        frontend_origin="http://localhost:3000",
        external_ip_url="https://ip.example/?format=json",
    )


@pytest.fixture()
def app(settings: Settings) -> FastAPI:
    return create_app(settings)


@pytest.fixture()
def client(app: FastAPI) -> Iterator[TestClient]:
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture()
def hub() -> RelayHub:
    return RelayHub()


@pytest.fixture()
def connect(hub: RelayHub):
    """Return a coroutine attaching a dummy websocket to ``hub`` or the given hub."""

    async def _connect(target: RelayHub | None = None) -> tuple[ConnectionSession, DummyWebSocket]:
        websocket = DummyWebSocket()
        session = await (target or hub).open_session(websocket)  # type: ignore[arg-type]
        return session, websocket

    return _connect
