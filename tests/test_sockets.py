"""Tests for the /chat Socket.IO namespace and the server-side relay."""
from unittest.mock import AsyncMock

import pytest
import socketio

from app.services import presence_service
from app.sockets import chat as chat_sockets
from app.sockets.chat import ChatNamespace, emit_to_user


@pytest.fixture
def namespace():
    server = socketio.AsyncServer(async_mode="asgi")
    ns = ChatNamespace()
    server.register_namespace(ns)
    ns.emit = AsyncMock()
    ns.enter_room = AsyncMock()
    chat_sockets.set_namespace(ns)
    try:
        yield ns
    finally:
        chat_sockets.set_namespace(None)


async def test_setup_joins_identity_room_and_marks_online(namespace, fake_redis):
    await namespace.trigger_event("setup", "sid-1", {"user_id": "user-1"})

    namespace.enter_room.assert_awaited_once_with("sid-1", "user:user-1")
    assert await presence_service.is_online("user-1")
    events = [call.args[0] for call in namespace.emit.await_args_list]
    assert "connected" in events


async def test_setup_without_user_is_ignored(namespace):
    await namespace.trigger_event("setup", "sid-1", {})
    namespace.enter_room.assert_not_awaited()


async def test_disconnect_marks_offline(namespace, fake_redis):
    await namespace.trigger_event("setup", "sid-1", {"user_id": "user-1"})
    await namespace.trigger_event("disconnect", "sid-1", "client disconnect")
    assert not await presence_service.is_online("user-1")


async def test_online_while_any_session_remains(namespace, fake_redis):
    await namespace.trigger_event("setup", "sid-1", {"user_id": "user-1"})
    await namespace.trigger_event("setup", "sid-2", {"user_id": "user-1"})
    await namespace.trigger_event("disconnect", "sid-1", "transport close")
    assert await presence_service.is_online("user-1")


async def test_typing_forwarded_to_peer(namespace):
    await namespace.trigger_event("setup", "sid-1", {"user_id": "user-1"})
    namespace.emit.reset_mock()

    await namespace.trigger_event("typing", "sid-1", {"peer_id": "user-2"})
    namespace.emit.assert_awaited_once_with(
        "typing",
        {"from_user_id": "user-1", "peer_id": "user-2"},
        room="user:user-2",
        skip_sid="sid-1",
    )


async def test_new_message_broadcast_to_receiver(namespace):
    payload = {"receiver_id": "user-2", "message": "hi"}
    await namespace.trigger_event("new_message", "sid-1", payload)
    namespace.emit.assert_awaited_once_with(
        "message_received", payload, room="user:user-2", skip_sid="sid-1"
    )


async def test_screen_signal_relayed_to_room(namespace):
    payload = {"room_id": "call-9", "signal": {"sdp": "..."}, "sender_id": "user-1"}
    await namespace.trigger_event("screen_signal", "sid-1", payload)
    namespace.emit.assert_awaited_once_with(
        "screen_signal_received", payload, room="call-9", skip_sid="sid-1"
    )


async def test_join_room(namespace):
    await namespace.trigger_event("join_room", "sid-1", "call-9")
    namespace.enter_room.assert_awaited_once_with("sid-1", "call-9")


class TestEmitToUser:

    async def test_skips_offline_users(self, namespace):
        assert await emit_to_user("user-2", "message_received", {}) is False
        namespace.emit.assert_not_awaited()

    async def test_emits_to_online_user(self, namespace, fake_redis):
        await presence_service.mark_online("user-2", "sid-9")
        assert await emit_to_user("user-2", "message_received", {"id": "m1"}) is True
        namespace.emit.assert_awaited_once_with(
            "message_received", {"id": "m1"}, room="user:user-2"
        )

    async def test_emit_failure_is_swallowed(self, namespace, fake_redis):
        await presence_service.mark_online("user-2", "sid-9")
        namespace.emit.side_effect = RuntimeError("transport gone")
        assert await emit_to_user("user-2", "message_received", {}) is False

    async def test_no_namespace_registered(self):
        chat_sockets.set_namespace(None)
        assert await emit_to_user("user-2", "message_received", {}) is False
