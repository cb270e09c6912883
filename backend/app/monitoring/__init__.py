"""Monitoring helpers and metric registry for the relay service."""

from . import metrics, registry

__all__ = ["metrics", "registry"]
