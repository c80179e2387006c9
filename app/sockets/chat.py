"""
Kindred - Real-time chat relay (Socket.IO namespace ``/chat``).

Clients call ``setup`` with their user id to join the identity channel
``user:{id}``; anything addressed to that user is broadcast there.  Delivery
is fire-and-forget: no acknowledgements, retries or offline queue.  Users
who are not connected simply read the message from history later.
"""

from __future__ import annotations

from typing import Any

import socketio
import structlog

from app.services import presence_service

logger = structlog.get_logger("kindred.sockets.chat")

_namespace: "ChatNamespace" | None = None


class ChatNamespace(socketio.AsyncNamespace):
    """Per-user channels plus typing, message and screen-share relays."""

    def __init__(self) -> None:
        super().__init__("/chat")
        self._sessions: dict[str, str] = {}

    @staticmethod
    def user_room(user_id: str) -> str:
        return f"user:{user_id}"

    async def on_connect(self, sid: str, environ: dict, auth: Any = None) -> None:
        logger.debug("socket_connected", sid=sid)

    async def on_setup(self, sid: str, payload: dict) -> None:
        user_id = str((payload or {}).get("user_id") or "")
        if not user_id:
            return
        self._sessions[sid] = user_id
        await self.enter_room(sid, self.user_room(user_id))
        await presence_service.mark_online(user_id, sid)
        await self.emit("connected", {"user_id": user_id}, room=sid)
        logger.info("socket_setup", sid=sid, user_id=user_id)

    async def on_join_room(self, sid: str, room: str) -> None:
        if room:
            await self.enter_room(sid, str(room))

    async def on_typing(self, sid: str, payload: dict) -> None:
        await self._relay_typing(sid, payload, "typing")

    async def on_stop_typing(self, sid: str, payload: dict) -> None:
        await self._relay_typing(sid, payload, "stop_typing")

    async def on_new_message(self, sid: str, payload: dict) -> None:
        receiver_id = (payload or {}).get("receiver_id")
        if not receiver_id:
            return
        await self.emit(
            "message_received",
            payload,
            room=self.user_room(str(receiver_id)),
            skip_sid=sid,
        )

    async def on_screen_signal(self, sid: str, payload: dict) -> None:
        # payload: {room_id, signal, sender_id}
        room_id = (payload or {}).get("room_id")
        if not room_id:
            return
        await self.emit("screen_signal_received", payload, room=str(room_id), skip_sid=sid)

    async def on_disconnect(self, sid: str, reason: Any = None) -> None:
        user_id = self._sessions.pop(sid, None)
        if user_id:
            await presence_service.mark_offline(user_id, sid)
            logger.info("socket_disconnected", sid=sid, user_id=user_id)

    async def _relay_typing(self, sid: str, payload: dict, event: str) -> None:
        peer_id = (payload or {}).get("peer_id")
        if not peer_id:
            return
        await self.emit(
            event,
            {"from_user_id": self._sessions.get(sid), "peer_id": str(peer_id)},
            room=self.user_room(str(peer_id)),
            skip_sid=sid,
        )


def set_namespace(namespace: ChatNamespace | None) -> None:
    global _namespace
    _namespace = namespace


async def emit_to_user(user_id: str, event: str, payload: dict) -> bool:
    """Broadcast *event* to a user's channel if they are connected.

    Returns whether an emit was attempted.  Failures are logged and
    swallowed: the database write that triggered the event already stands.
    """
    if _namespace is None:
        return False
    if not await presence_service.is_online(user_id):
        logger.debug("relay_skipped_offline", user_id=user_id, event_name=event)
        return False
    try:
        await _namespace.emit(event, payload, room=ChatNamespace.user_room(user_id))
    except Exception as exc:
        logger.warning("relay_emit_failed", user_id=user_id, event_name=event, error=str(exc))
        return False
    return True
