"""Metric definitions for the presence and relay core."""

from __future__ import annotations

from .registry import registry


relay_connections = registry.gauge(
    "relay_active_connections",
    "Number of websocket connections currently attached to the relay.",
)

relay_events_total = registry.counter(
    "relay_events_total",
    "Count of relay events processed, split by direction.",
    label_names=("event", "direction"),
)

relay_fallbacks_total = registry.counter(
    "relay_fallbacks_total",
    "Offline notifications sent back to a caller whose target was absent.",
    label_names=("event",),
)

relay_dropped_total = registry.counter(
    "relay_dropped_total",
    "Relay events silently dropped because the target was not registered.",
    label_names=("event",),
)

relay_handler_errors_total = registry.counter(
    "relay_handler_errors_total",
    "Relay handler invocations that failed.",
    label_names=("event", "category"),
)

presence_online_users = registry.gauge(
    "presence_online_users",
    "Number of user identities currently registered in the presence registry.",
)
