"""Small utility endpoints exposed next to the relay."""

from __future__ import annotations

import logging
import uuid
from collections.abc import AsyncIterator
from typing import Annotated

import httpx
from fastapi import APIRouter, Depends, status
from fastapi.responses import PlainTextResponse, Response

from app.api.deps import get_app_settings
from app.config import Settings

router = APIRouter(tags=["utility"])

logger = logging.getLogger(__name__)


async def get_http_client(
    settings: Annotated[Settings, Depends(get_app_settings)],
) -> AsyncIterator[httpx.AsyncClient]:
    async with httpx.AsyncClient(timeout=settings.external_request_timeout_seconds) as client:
        yield client


@router.get("/uuid")
def generate_uuid() -> dict[str, str]:
    """Return a freshly generated UUID4."""

    return {"id": str(uuid.uuid4())}


@router.get("/ping-external", response_model=None)
async def ping_external(
    client: Annotated[httpx.AsyncClient, Depends(get_http_client)],
    settings: Annotated[Settings, Depends(get_app_settings)],
) -> dict[str, str] | Response:
    """Report the public IP address as seen by an external echo service."""

    try:
        response = await client.get(settings.external_ip_url)
        response.raise_for_status()
        ip_address = response.json()["ip"]
    except (httpx.HTTPError, ValueError, KeyError, TypeError):
        logger.exception("External IP lookup against %s failed", settings.external_ip_url)
        return PlainTextResponse("Bad Gateway", status_code=status.HTTP_502_BAD_GATEWAY)
    return {"yourIp": str(ip_address)}
