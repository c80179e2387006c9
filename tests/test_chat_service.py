"""Tests for direct messaging."""
import uuid
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest
from sqlalchemy import func, select

from app.exceptions import ForbiddenError, InvalidRequestError, NotFoundError
from app.models.chat import ChatPreference
from app.models.user import Block
from app.services.chat_service import ChatService
from app.services.mission_service import MissionService
from app.sockets import chat as chat_relay

UTC = timezone.utc
NOW = datetime(2024, 6, 1, 12, 0, tzinfo=UTC)


@pytest.fixture
def chat_service():
    return ChatService(mission_service=MissionService(tz=UTC))


@pytest.fixture
def relay(monkeypatch):
    mock = AsyncMock(return_value=True)
    monkeypatch.setattr(chat_relay, "emit_to_user", mock)
    return mock


class TestSendMessage:

    async def test_persists_and_relays(self, db, user_factory, chat_service, relay):
        a, b = await user_factory(), await user_factory()
        message = await chat_service.send_message(db, a.id, b.id, "hello", now=NOW)

        assert message.id is not None
        assert message.is_read is False
        relay.assert_awaited_once()
        user_id, event, payload = relay.await_args.args
        assert user_id == str(b.id)
        assert event == "message_received"
        assert payload["message"] == "hello"
        assert payload["sender_id"] == str(a.id)

    async def test_counts_towards_mission(self, db, user_factory, chat_service, relay):
        a, b = await user_factory(), await user_factory()
        for _ in range(3):
            await chat_service.send_message(db, a.id, b.id, "hi", now=NOW)
        status = await chat_service.mission_service.get_status(db, a.id, now=NOW)
        assert status["send_messages"]["progress"] == 3

    async def test_unknown_receiver(self, db, user_factory, chat_service, relay):
        a = await user_factory()
        with pytest.raises(NotFoundError):
            await chat_service.send_message(db, a.id, uuid.uuid4(), "hi", now=NOW)

    async def test_blocked_either_way(self, db, user_factory, chat_service, relay):
        a, b = await user_factory(), await user_factory()
        db.add(Block(blocker_id=b.id, blocked_id=a.id))
        await db.flush()
        with pytest.raises(ForbiddenError):
            await chat_service.send_message(db, a.id, b.id, "hi", now=NOW)
        with pytest.raises(ForbiddenError):
            await chat_service.send_message(db, b.id, a.id, "hi", now=NOW)
        relay.assert_not_awaited()


class TestHistory:

    async def test_ascending_and_marks_read(self, db, user_factory, chat_service, relay):
        a, b = await user_factory(), await user_factory()
        await chat_service.send_message(db, a.id, b.id, "first", now=NOW)
        await chat_service.send_message(db, b.id, a.id, "second", now=NOW + timedelta(seconds=1))
        await chat_service.send_message(db, a.id, b.id, "third", now=NOW + timedelta(seconds=2))

        history = await chat_service.get_history(db, b.id, a.id)
        assert [m.message for m in history] == ["first", "second", "third"]

        # b read a's messages; b's own message to a is still unread
        by_text = {m.message: m for m in history}
        assert by_text["first"].is_read is True
        assert by_text["third"].is_read is True
        assert by_text["second"].is_read is False

    async def test_search_is_case_insensitive(self, db, user_factory, chat_service, relay):
        a, b = await user_factory(), await user_factory()
        await chat_service.send_message(db, a.id, b.id, "Dinner on Friday?", now=NOW)
        await chat_service.send_message(db, b.id, a.id, "sure", now=NOW)
        await chat_service.send_message(db, a.id, b.id, "100% match", now=NOW)

        found = await chat_service.get_history(db, a.id, b.id, search="FRIDAY")
        assert [m.message for m in found] == ["Dinner on Friday?"]

        found = await chat_service.get_history(db, a.id, b.id, search="%")
        assert [m.message for m in found] == ["100% match"]

    async def test_other_conversations_excluded(self, db, user_factory, chat_service, relay):
        a, b, c = await user_factory(), await user_factory(), await user_factory()
        await chat_service.send_message(db, a.id, b.id, "to b", now=NOW)
        await chat_service.send_message(db, a.id, c.id, "to c", now=NOW)
        history = await chat_service.get_history(db, a.id, b.id)
        assert [m.message for m in history] == ["to b"]


class TestConversations:

    async def test_latest_per_counterpart_newest_first(
        self, db, user_factory, chat_service, relay
    ):
        me, b, c = await user_factory(), await user_factory(), await user_factory()
        await chat_service.send_message(db, b.id, me.id, "b-1", now=NOW)
        await chat_service.send_message(db, c.id, me.id, "c-1", now=NOW + timedelta(seconds=1))
        await chat_service.send_message(db, b.id, me.id, "b-2", now=NOW + timedelta(seconds=2))

        conversations = await chat_service.list_conversations(db, me.id)
        assert [(c_["user_id"], c_["last_message"]) for c_ in conversations] == [
            (b.id, "b-2"),
            (c.id, "c-1"),
        ]
        assert conversations[0]["unread_count"] == 2
        assert conversations[1]["unread_count"] == 1

    async def test_empty(self, db, user_factory, chat_service):
        me = await user_factory()
        assert await chat_service.list_conversations(db, me.id) == []

    async def test_pinned_first_then_newest(self, db, user_factory, chat_service, relay):
        me, b, c, d = [await user_factory() for _ in range(4)]
        await chat_service.send_message(db, b.id, me.id, "b", now=NOW)
        await chat_service.send_message(db, c.id, me.id, "c", now=NOW + timedelta(seconds=1))
        await chat_service.send_message(db, d.id, me.id, "d", now=NOW + timedelta(seconds=2))
        await chat_service.set_pinned(db, me.id, b.id, True)

        conversations = await chat_service.list_conversations(db, me.id)
        assert [c_["user_id"] for c_ in conversations] == [b.id, d.id, c.id]
        assert [c_["is_pinned"] for c_ in conversations] == [True, False, False]

        # pins are per user
        other_side = await chat_service.list_conversations(db, b.id)
        assert other_side[0]["is_pinned"] is False


class TestPinning:

    async def test_pin_then_unpin_reuses_row(self, db, user_factory, chat_service):
        me, other = await user_factory(), await user_factory()
        first = await chat_service.set_pinned(db, me.id, other.id, True)
        second = await chat_service.set_pinned(db, me.id, other.id, False)
        assert first.id == second.id
        assert second.is_pinned is False
        assert await db.scalar(select(func.count()).select_from(ChatPreference)) == 1

    async def test_unknown_target(self, db, user_factory, chat_service):
        me = await user_factory()
        with pytest.raises(NotFoundError):
            await chat_service.set_pinned(db, me.id, uuid.uuid4(), True)

    async def test_cannot_pin_self(self, db, user_factory, chat_service):
        me = await user_factory()
        with pytest.raises(InvalidRequestError):
            await chat_service.set_pinned(db, me.id, me.id, True)


class TestReactions:

    async def test_react_and_replace(self, db, user_factory, chat_service, relay):
        a, b = await user_factory(), await user_factory()
        message = await chat_service.send_message(db, a.id, b.id, "hello", now=NOW)
        relay.reset_mock()

        await chat_service.add_reaction(db, b.id, message.id, "love", now=NOW)
        updated = await chat_service.add_reaction(
            db, b.id, message.id, "laugh", now=NOW + timedelta(seconds=5)
        )
        await chat_service.add_reaction(db, a.id, message.id, "wow", now=NOW)

        by_user = {r["user_id"]: r["type"] for r in updated.reactions}
        assert by_user == {str(b.id): "laugh", str(a.id): "wow"}
        assert len(updated.reactions) == 2

        # b's reactions went to a, a's reaction went to b
        targets = [call.args[0] for call in relay.await_args_list]
        assert targets == [str(a.id), str(a.id), str(b.id)]
        user_id, event, payload = relay.await_args_list[0].args
        assert event == "message_reaction"
        assert payload["message_id"] == str(message.id)
        assert payload["type"] == "love"

    async def test_outsider_cannot_react(self, db, user_factory, chat_service, relay):
        a, b, outsider = await user_factory(), await user_factory(), await user_factory()
        message = await chat_service.send_message(db, a.id, b.id, "hello", now=NOW)
        with pytest.raises(NotFoundError):
            await chat_service.add_reaction(db, outsider.id, message.id, "like")
        assert not message.reactions

    async def test_unknown_message(self, db, user_factory, chat_service):
        a = await user_factory()
        with pytest.raises(NotFoundError):
            await chat_service.add_reaction(db, a.id, uuid.uuid4(), "like")

    async def test_invalid_type(self, db, user_factory, chat_service, relay):
        a, b = await user_factory(), await user_factory()
        message = await chat_service.send_message(db, a.id, b.id, "hello", now=NOW)
        with pytest.raises(InvalidRequestError):
            await chat_service.add_reaction(db, b.id, message.id, "meh")
