"""Common API dependencies."""

from __future__ import annotations

from fastapi import Request

from app.config import Settings


def get_app_settings(request: Request) -> Settings:
    """Return the settings the running application was created with."""

    return request.app.state.settings
