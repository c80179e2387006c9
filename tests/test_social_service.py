"""Tests for follows, blocks and profile visits."""
import uuid
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import func, select

from app.exceptions import InvalidRequestError, NotFoundError
from app.models.user import Block, ProfileVisit
from app.services.social_service import SocialService, is_blocked_between

UTC = timezone.utc
NOW = datetime(2024, 6, 1, 12, 0, tzinfo=UTC)


@pytest.fixture
def social():
    return SocialService(tz=UTC)


class TestFollows:

    async def test_follow_and_counts(self, db, user_factory, social):
        a, b, c = await user_factory(), await user_factory(), await user_factory()
        await social.follow(db, a.id, b.id)
        await social.follow(db, c.id, b.id)
        await social.follow(db, b.id, a.id)

        assert await social.is_following(db, a.id, b.id)
        assert not await social.is_following(db, b.id, c.id)
        assert await social.follow_counts(db, b.id) == (2, 1)

    async def test_follow_rules(self, db, user_factory, social):
        a, b = await user_factory(), await user_factory()
        with pytest.raises(InvalidRequestError):
            await social.follow(db, a.id, a.id)
        await social.follow(db, a.id, b.id)
        with pytest.raises(InvalidRequestError) as exc:
            await social.follow(db, a.id, b.id)
        assert exc.value.message == "You already follow this user"

    async def test_unfollow(self, db, user_factory, social):
        a, b = await user_factory(), await user_factory()
        with pytest.raises(InvalidRequestError):
            await social.unfollow(db, a.id, b.id)
        await social.follow(db, a.id, b.id)
        await social.unfollow(db, a.id, b.id)
        assert not await social.is_following(db, a.id, b.id)


class TestBlocks:

    async def test_block_removes_follows_both_ways(self, db, user_factory, social):
        a, b = await user_factory(), await user_factory()
        await social.follow(db, a.id, b.id)
        await social.follow(db, b.id, a.id)

        await social.block(db, a.id, b.id)
        assert await is_blocked_between(db, b.id, a.id)
        assert await social.follow_counts(db, a.id) == (0, 0)

    async def test_block_twice_keeps_one_row(self, db, user_factory, social):
        a, b = await user_factory(), await user_factory()
        await social.block(db, a.id, b.id)
        await social.block(db, a.id, b.id)
        assert await db.scalar(select(func.count()).select_from(Block)) == 1

    async def test_unblock(self, db, user_factory, social):
        a, b = await user_factory(), await user_factory()
        await social.block(db, a.id, b.id)
        await social.unblock(db, a.id, b.id)
        assert not await is_blocked_between(db, a.id, b.id)

    async def test_cannot_block_self(self, db, user_factory, social):
        a = await user_factory()
        with pytest.raises(InvalidRequestError):
            await social.block(db, a.id, a.id)


class TestVisits:

    async def test_one_visit_per_day(self, db, user_factory, social):
        a, b = await user_factory(), await user_factory()
        assert await social.record_visit(db, a.id, b.id, NOW) is True
        assert await social.record_visit(db, a.id, b.id, NOW + timedelta(hours=3)) is False
        assert await social.record_visit(db, a.id, b.id, NOW + timedelta(days=1)) is True
        assert await db.scalar(select(func.count()).select_from(ProfileVisit)) == 2

    async def test_self_visit_ignored(self, db, user_factory, social):
        a = await user_factory()
        assert await social.record_visit(db, a.id, a.id, NOW) is False

    async def test_unknown_profile_is_404(self, db, user_factory, social):
        a = await user_factory()
        with pytest.raises(NotFoundError):
            await social.record_visit(db, a.id, uuid.uuid4(), NOW)
        assert await db.scalar(select(func.count()).select_from(ProfileVisit)) == 0

    async def test_list_visitors_newest_first(self, db, user_factory, social):
        me, early, late = await user_factory(), await user_factory(), await user_factory()
        await social.record_visit(db, early.id, me.id, NOW)
        await social.record_visit(db, late.id, me.id, NOW + timedelta(minutes=5))

        visitors = await social.list_visitors(db, me.id)
        assert [u.id for u, _ in visitors] == [late.id, early.id]

    async def test_blocked_visitors_hidden(self, db, user_factory, social):
        me, creep = await user_factory(), await user_factory()
        await social.record_visit(db, creep.id, me.id, NOW)
        await social.block(db, me.id, creep.id)
        assert await social.list_visitors(db, me.id) == []


class TestSearch:

    async def test_matches_username_or_full_name(self, db, user_factory, social):
        me = await user_factory()
        by_username = await user_factory(username="skywalker", full_name="Luke")
        by_name = await user_factory(username="lskw", full_name="Anakin SKYWALKER")
        await user_factory(username="solo", full_name="Han")

        found = await social.search_users(db, me.id, "Skywalker")
        assert {u.id for u in found} == {by_username.id, by_name.id}

    async def test_excludes_self_blocked_and_inactive(self, db, user_factory, social):
        me = await user_factory(username="pat_me")
        blocked = await user_factory(username="pat_blocked")
        blocker = await user_factory(username="pat_blocker")
        await user_factory(username="pat_paused", account_status="paused")
        visible = await user_factory(username="pat_visible")
        await social.block(db, me.id, blocked.id)
        await social.block(db, blocker.id, me.id)

        found = await social.search_users(db, me.id, "pat_")
        assert [u.id for u in found] == [visible.id]

    async def test_no_query_lists_everyone_visible(self, db, user_factory, social):
        me = await user_factory()
        others = {(await user_factory()).id for _ in range(3)}
        assert {u.id for u in await social.search_users(db, me.id)} == others

    async def test_wildcards_are_literal(self, db, user_factory, social):
        me = await user_factory()
        literal = await user_factory(username="100%_real")
        await user_factory(username="100x")
        found = await social.search_users(db, me.id, "100%")
        assert [u.id for u in found] == [literal.id]
