"""Unit tests for ProfileService: registration, edits, public view, boost and travel."""
import uuid
from datetime import datetime, timedelta, timezone

import pytest

from app.exceptions import ConflictError, InvalidRequestError, NotFoundError
from app.models.user import Block
from app.schemas.user import UserCreate, UserUpdate
from app.services import presence_service
from app.services.mission_service import MissionService
from app.services.profile_service import ProfileService
from app.services.social_service import SocialService

UTC = timezone.utc
NOW = datetime(2024, 6, 1, 12, 0, tzinfo=UTC)


@pytest.fixture
def profile_service():
    return ProfileService(
        mission_service=MissionService(tz=UTC),
        social_service=SocialService(tz=UTC),
    )


class TestRegister:

    async def test_starting_coins_and_normalised_email(self, db, profile_service):
        user = await profile_service.register(
            db,
            UserCreate(username="  ada  ", email="Ada@Example.com", full_name="Ada L"),
        )
        assert user.username == "ada"
        assert user.email == "ada@example.com"
        assert user.coins == 1000
        assert user.travel_mode is False

    @pytest.mark.parametrize(
        "username, email",
        [("taken", "fresh@example.com"), ("fresh", "TAKEN@example.com")],
    )
    async def test_duplicate_rejected(self, db, user_factory, profile_service, username, email):
        await user_factory(username="taken", email="taken@example.com")
        with pytest.raises(ConflictError):
            await profile_service.register(
                db, UserCreate(username=username, email=email, full_name="X")
            )


class TestUpdateProfile:

    async def test_applies_only_sent_fields(self, db, user_factory, profile_service):
        user = await user_factory(bio="old", religion="None")
        await profile_service.update_profile(
            db, user, UserUpdate(bio="new"), now=NOW
        )
        assert user.bio == "new"
        assert user.religion == "None"
        assert user.updated_at == NOW

    async def test_counts_towards_mission(self, db, user_factory, profile_service):
        user = await user_factory()
        await profile_service.update_profile(db, user, UserUpdate(bio="hi"), now=NOW)
        status = await profile_service.mission_service.get_status(db, user.id, now=NOW)
        assert status["update_profile"]["claimable"] is True

    async def test_empty_update_rejected(self, db, user_factory, profile_service):
        user = await user_factory()
        with pytest.raises(InvalidRequestError) as exc:
            await profile_service.update_profile(db, user, UserUpdate(), now=NOW)
        assert exc.value.message == "No fields to update"


class TestPublicProfile:

    async def test_view_logs_visit_and_reports_presence(
        self, db, user_factory, profile_service
    ):
        viewer, target = await user_factory(), await user_factory()
        await presence_service.mark_online(str(target.id), "sid-1")

        view = await profile_service.get_public_profile(db, viewer.id, target.id, now=NOW)
        assert view["user"].id == target.id
        assert view["is_online"] is True
        assert view["is_following"] is False
        assert (view["followers_count"], view["following_count"]) == (0, 0)

        visitors = await profile_service.social_service.list_visitors(db, target.id)
        assert [u.id for u, _ in visitors] == [viewer.id]

    async def test_blocked_pair_hidden(self, db, user_factory, profile_service):
        viewer, target = await user_factory(), await user_factory()
        db.add(Block(blocker_id=target.id, blocked_id=viewer.id))
        await db.flush()
        with pytest.raises(NotFoundError):
            await profile_service.get_public_profile(db, viewer.id, target.id, now=NOW)

    async def test_unknown_user(self, db, user_factory, profile_service):
        viewer = await user_factory()
        with pytest.raises(NotFoundError):
            await profile_service.get_public_profile(db, viewer.id, uuid.uuid4(), now=NOW)


class TestBoostAndTravel:

    async def test_boost_window(self, db, user_factory, profile_service):
        user = await user_factory()
        await profile_service.activate_boost(db, user, now=NOW)
        assert user.boost_expires_at == NOW + timedelta(minutes=30)

    async def test_travel_toggle(self, db, user_factory, profile_service):
        user = await user_factory()
        await profile_service.set_travel_mode(db, user, True, 48.85, 2.35)
        assert user.travel_mode is True
        assert (user.travel_latitude, user.travel_longitude) == (48.85, 2.35)

        await profile_service.set_travel_mode(db, user, False)
        assert user.travel_mode is False
        assert user.travel_latitude is None

    async def test_travel_requires_coordinates(self, db, user_factory, profile_service):
        user = await user_factory()
        with pytest.raises(InvalidRequestError):
            await profile_service.set_travel_mode(db, user, True, latitude=10.0)
