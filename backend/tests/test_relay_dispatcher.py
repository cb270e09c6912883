from __future__ import annotations

import logging

import pytest

from app.monitoring.metrics import (
    relay_dropped_total,
    relay_fallbacks_total,
    relay_handler_errors_total,
)
from parley.realtime import Emission, RelayHub


@pytest.mark.anyio("asyncio")
async def test_send_msg_reaches_only_the_target(hub, connect) -> None:
    alice, alice_ws = await connect()
    bob, bob_ws = await connect()
    carol, carol_ws = await connect()
    await hub.registry.set("alice", alice.connection_id)
    await hub.registry.set("bob", bob.connection_id)

    await hub.dispatch(alice, "send-msg", {"to": "bob", "from": "alice", "message": "hi"})

    assert bob_ws.sent == [{"event": "msg-recieve", "data": {"from": "alice", "message": "hi"}}]
    assert alice_ws.sent == []
    assert carol_ws.sent == []


@pytest.mark.anyio("asyncio")
async def test_send_msg_after_target_removed_is_dropped(hub, connect) -> None:
    alice, _ = await connect()
    bob, bob_ws = await connect()
    await hub.registry.set("alice", alice.connection_id)
    await hub.registry.set("bob", bob.connection_id)
    payload = {"to": "bob", "from": "alice", "message": "hi"}

    await hub.dispatch(alice, "send-msg", payload)
    await hub.registry.remove("bob")
    emissions = await hub.dispatch(alice, "send-msg", payload)

    assert emissions == []
    assert len(bob_ws.sent) == 1
    assert relay_dropped_total.value("send-msg") == 1.0


@pytest.mark.anyio("asyncio")
@pytest.mark.parametrize(
    ("trigger", "forwarded"),
    [
        ("outgoing-voice-call", "incoming-voice-call"),
        ("outgoing-video-call", "incoming-video-call"),
    ],
)
async def test_outgoing_call_forwards_payload_unchanged(hub, connect, trigger, forwarded) -> None:
    alice, alice_ws = await connect()
    bob, bob_ws = await connect()
    await hub.registry.set("alice", alice.connection_id)
    await hub.registry.set("bob", bob.connection_id)
    payload = {"to": "bob", "from": "alice", "roomId": "call-17", "callType": "voice"}

    await hub.dispatch(alice, trigger, payload)

    assert bob_ws.sent == [{"event": forwarded, "data": payload}]
    assert alice_ws.sent == []


@pytest.mark.anyio("asyncio")
@pytest.mark.parametrize(
    ("trigger", "offline"),
    [
        ("outgoing-voice-call", "voice-call-offline"),
        ("outgoing-video-call", "video-call-offline"),
    ],
)
async def test_outgoing_call_to_absent_user_notifies_caller(hub, connect, trigger, offline) -> None:
    alice, alice_ws = await connect()
    await hub.registry.set("alice", alice.connection_id)

    await hub.dispatch(alice, trigger, {"to": "bob", "from": "alice"})

    assert alice_ws.sent == [{"event": offline}]
    assert relay_fallbacks_total.value(trigger) == 1.0


@pytest.mark.anyio("asyncio")
async def test_outgoing_call_without_to_rings_the_caller(hub, connect) -> None:
    alice, alice_ws = await connect()
    await hub.registry.set("alice", alice.connection_id)

    emissions = await hub.dispatcher.handle(alice, "outgoing-voice-call", {"from": "alice"})

    assert emissions == [Emission(alice.connection_id, "incoming-voice-call", {"from": "alice"})]


@pytest.mark.anyio("asyncio")
async def test_outgoing_call_with_null_to_falls_back_to_from(hub, connect) -> None:
    alice, _ = await connect()
    await hub.registry.set("alice", alice.connection_id)

    emissions = await hub.dispatcher.handle(
        alice, "outgoing-video-call", {"to": None, "from": "alice"}
    )

    assert [emission.event for emission in emissions] == ["incoming-video-call"]


@pytest.mark.anyio("asyncio")
@pytest.mark.parametrize("callee", ["", {"id": "bob"}, True])
async def test_outgoing_call_with_unusable_to_notifies_caller(hub, connect, callee) -> None:
    alice, alice_ws = await connect()
    bob, bob_ws = await connect()
    await hub.registry.set("alice", alice.connection_id)
    await hub.registry.set("bob", bob.connection_id)

    await hub.dispatch(alice, "outgoing-voice-call", {"to": callee, "from": "alice"})

    assert alice_ws.sent == [{"event": "voice-call-offline"}]
    assert bob_ws.sent == []
    assert relay_handler_errors_total.value("outgoing-voice-call", "malformed") == 0.0
    assert relay_fallbacks_total.value("outgoing-voice-call") == 1.0


@pytest.mark.anyio("asyncio")
async def test_strict_call_target_requires_to(connect, caplog) -> None:
    hub = RelayHub(strict_call_target=True)
    session, _ = await connect(hub)
    await hub.registry.set("alice", session.connection_id)

    with caplog.at_level(logging.WARNING):
        emissions = await hub.dispatch(session, "outgoing-voice-call", {"from": "alice"})

    assert emissions == []
    assert relay_handler_errors_total.value("outgoing-voice-call", "malformed") == 1.0
    assert any("missing 'to'" in record.getMessage() for record in caplog.records)


@pytest.mark.anyio("asyncio")
async def test_outgoing_call_with_unregistered_caller_is_silent(hub, connect) -> None:
    alice, alice_ws = await connect()

    emissions = await hub.dispatch(alice, "outgoing-voice-call", {"to": "bob", "from": "alice"})

    assert emissions == []
    assert alice_ws.sent == []
    assert relay_fallbacks_total.value("outgoing-voice-call") == 0.0


@pytest.mark.anyio("asyncio")
@pytest.mark.parametrize(
    ("trigger", "forwarded"),
    [
        ("reject-voice-call", "voice-call-rejected"),
        ("reject-video-call", "video-call-rejected"),
    ],
)
async def test_reject_call_notifies_caller(hub, connect, trigger, forwarded) -> None:
    alice, alice_ws = await connect()
    bob, _ = await connect()
    await hub.registry.set("alice", alice.connection_id)

    await hub.dispatch(bob, trigger, {"from": "alice"})

    assert alice_ws.sent == [{"event": forwarded}]


@pytest.mark.anyio("asyncio")
async def test_reject_call_for_unregistered_caller_emits_nothing(hub, connect) -> None:
    bob, bob_ws = await connect()

    emissions = await hub.dispatch(bob, "reject-voice-call", {"from": "A"})

    assert emissions == []
    assert bob_ws.sent == []
    assert relay_handler_errors_total.value("reject-voice-call", "malformed") == 0.0


@pytest.mark.anyio("asyncio")
async def test_accept_incoming_call_signals_caller(hub, connect) -> None:
    alice, alice_ws = await connect()
    bob, bob_ws = await connect()
    await hub.registry.set("alice", alice.connection_id)

    await hub.dispatch(bob, "accept-incoming-call", {"id": "alice"})
    await hub.dispatch(bob, "accept-incoming-call", {"id": "nobody"})

    assert alice_ws.sent == [{"event": "accept-call"}]
    assert bob_ws.sent == []


@pytest.mark.anyio("asyncio")
async def test_mark_read_forwards_receipt(hub, connect) -> None:
    alice, alice_ws = await connect()
    bob, _ = await connect()
    await hub.registry.set("alice", alice.connection_id)

    await hub.dispatch(bob, "mark-read", {"id": "alice", "recieverId": "bob", "extra": True})

    assert alice_ws.sent == [
        {"event": "mark-read-recieve", "data": {"id": "alice", "recieverId": "bob"}}
    ]


@pytest.mark.anyio("asyncio")
async def test_numeric_user_ids_are_matched_as_strings(hub, connect) -> None:
    alice, _ = await connect()
    bob, bob_ws = await connect()
    await hub.dispatch(bob, "add-user", 42)

    await hub.dispatch(alice, "send-msg", {"to": "42", "from": 7, "message": "yo"})

    assert bob_ws.sent[-1] == {"event": "msg-recieve", "data": {"from": 7, "message": "yo"}}


@pytest.mark.anyio("asyncio")
@pytest.mark.parametrize(
    ("event", "payload"),
    [
        ("send-msg", "bob"),
        ("send-msg", {"from": "alice", "message": "no recipient"}),
        ("mark-read", {"recieverId": "bob"}),
        ("accept-incoming-call", []),
        ("reject-video-call", {"from": {"nested": "id"}}),
        ("add-user", None),
        ("signout", True),
    ],
)
async def test_malformed_payload_is_logged_and_contained(hub, connect, caplog, event, payload) -> None:
    alice, alice_ws = await connect()

    with caplog.at_level(logging.WARNING):
        emissions = await hub.dispatch(alice, event, payload)

    assert emissions == []
    assert alice_ws.sent == []
    assert relay_handler_errors_total.value(event, "malformed") == 1.0
    assert any(record.levelno == logging.WARNING for record in caplog.records)


@pytest.mark.anyio("asyncio")
async def test_unknown_event_is_ignored(hub, connect) -> None:
    alice, alice_ws = await connect()

    assert await hub.dispatch(alice, "teleport", {"to": "bob"}) == []
    assert alice_ws.sent == []
    assert relay_handler_errors_total.value("teleport", "unknown") == 1.0


@pytest.mark.anyio("asyncio")
async def test_unexpected_handler_failure_does_not_propagate(hub, connect, monkeypatch, caplog) -> None:
    alice, _ = await connect()

    async def broken_lookup(user_id):
        raise RuntimeError("registry exploded")

    monkeypatch.setattr(hub.registry, "lookup", broken_lookup)

    with caplog.at_level(logging.ERROR):
        emissions = await hub.dispatch(alice, "send-msg", {"to": "bob", "from": "alice"})

    assert emissions == []
    assert relay_handler_errors_total.value("send-msg", "error") == 1.0
    assert any("send-msg" in record.getMessage() for record in caplog.records)


@pytest.mark.anyio("asyncio")
async def test_ping_is_answered_with_pong(hub, connect) -> None:
    alice, alice_ws = await connect()

    await hub.dispatch(alice, "ping", None)

    assert alice_ws.sent == [{"event": "pong"}]


@pytest.mark.anyio("asyncio")
async def test_events_on_closed_session_are_rejected(hub, connect) -> None:
    alice, alice_ws = await connect()
    bob, bob_ws = await connect()
    await hub.registry.set("bob", bob.connection_id)
    await hub.close_session(alice)

    assert await hub.dispatch(alice, "send-msg", {"to": "bob", "from": "alice"}) == []
    assert bob_ws.sent == []
    assert relay_handler_errors_total.value("send-msg", "closed") == 1.0


def test_dispatch_table_covers_every_client_event(hub) -> None:
    assert set(hub.dispatcher.event_names) >= {
        "add-user",
        "signout",
        "outgoing-voice-call",
        "outgoing-video-call",
        "reject-voice-call",
        "reject-video-call",
        "accept-incoming-call",
        "send-msg",
        "mark-read",
    }
