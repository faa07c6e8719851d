"""Tests for the dual-mode accessors (query with one argument, update with two)."""

import asyncio

import pytest

from puppet_app.errors import (
    BackendFailureError,
    NotFoundError,
    NotLoggedInError,
    PermissionDeniedError,
)
from puppet_app.puppet.mock import PuppetMock
from puppet_app.puppet.models import FileBox, PuppetEventName


def run_started(puppet, body):
    """Start the puppet, run ``body(puppet)`` and always stop afterwards."""

    async def scenario():
        await puppet.start()
        try:
            return await body(puppet)
        finally:
            await puppet.stop()

    return asyncio.run(scenario())


class TestRoomTopic:
    """Test room_topic / get_room_topic / set_room_topic."""

    def test_update_then_query(self, puppet):
        """The value written is the value read back."""

        async def body(p):
            p.mock_room("room_1", "initial", ["logined_user_id"])
            result = await p.room_topic("room_1", "T")
            return result, await p.room_topic("room_1")

        result, topic = run_started(puppet, body)
        assert result is None
        assert topic == "T"

    def test_named_spellings_share_behavior(self, puppet):
        """get_/set_ spellings reach the same state as the dual-mode call."""

        async def body(p):
            p.mock_room("room_1", "initial", [])
            await p.set_room_topic("room_1", "named")
            first = await p.room_topic("room_1")
            await p.room_topic("room_1", "dual")
            return first, await p.get_room_topic("room_1")

        assert run_started(puppet, body) == ("named", "dual")

    def test_extra_arguments_rejected(self, puppet):
        """More than one value is a caller error."""

        async def body(p):
            p.mock_room("room_1", "initial", [])
            with pytest.raises(TypeError):
                await p.room_topic("room_1", "a", "b")
            return await p.room_topic("room_1")

        assert run_started(puppet, body) == "initial"

    def test_query_unknown_room(self, puppet):
        """Query mode surfaces NotFoundError for unknown ids."""

        async def body(p):
            with pytest.raises(NotFoundError) as exc_info:
                await p.room_topic("nope")
            return exc_info.value

        error = run_started(puppet, body)
        assert error.entity_kind == "room"
        assert error.entity_id == "nope"

    def test_update_emits_room_topic_event(self, puppet, recorded_events):
        """Changing a topic announces new and old values."""
        events = recorded_events(puppet, PuppetEventName.ROOM_TOPIC)

        async def body(p):
            p.mock_room("room_1", "old", [])
            await p.room_topic("room_1", "new")

        run_started(puppet, body)
        assert events == [
            (PuppetEventName.ROOM_TOPIC, ("room_1", "new", "old", "logined_user_id")),
        ]

    def test_update_marks_room_payload_dirty(self, puppet):
        """A cached room payload is refetched after an update."""

        async def body(p):
            p.mock_room("room_1", "old", [])
            before = await p.room_payload("room_1")
            await p.room_topic("room_1", "new")
            return before, await p.room_payload("room_1")

        before, after = run_started(puppet, body)
        assert before.topic == "old"
        assert after.topic == "new"

    def test_update_requires_login(self, puppet):
        """Mutations on a never-started session fail."""
        puppet.mock_room("room_1", "old", [])

        with pytest.raises(NotLoggedInError):
            asyncio.run(puppet.room_topic("room_1", "new"))

        assert asyncio.run(puppet.room_topic("room_1")) == "old"


class TestRoomAnnounce:
    """Test room_announce / get_room_announce / set_room_announce."""

    def test_defaults_to_empty(self, puppet):
        """A room without an announcement reads back an empty string."""

        async def body(p):
            p.mock_room("room_1", "topic", [])
            return await p.get_room_announce("room_1")

        assert run_started(puppet, body) == ""

    def test_update_then_query(self, puppet):
        async def body(p):
            p.mock_room("room_1", "topic", [])
            await p.room_announce("room_1", "meeting at 10")
            await p.set_room_announce("room_1", "meeting at 11")
            return await p.room_announce("room_1")

        assert run_started(puppet, body) == "meeting at 11"

    def test_extra_arguments_rejected(self, puppet):
        async def body(p):
            p.mock_room("room_1", "topic", [])
            with pytest.raises(TypeError):
                await p.room_announce("room_1", "a", "b")

        run_started(puppet, body)


class TestContactAlias:
    """Test contact_alias / get_contact_alias / set_contact_alias."""

    def test_update_then_query(self, puppet):
        async def body(p):
            p.mock_contact("contact_1", "Alice")
            assert await p.contact_alias("contact_1") is None
            await p.contact_alias("contact_1", "Ally")
            return await p.contact_alias("contact_1")

        assert run_started(puppet, body) == "Ally"

    def test_none_clears_alias(self, puppet):
        """Passing None explicitly is an update, not a query."""

        async def body(p):
            p.mock_contact("contact_1", "Alice", alias="Ally")
            result = await p.contact_alias("contact_1", None)
            return result, await p.get_contact_alias("contact_1")

        assert run_started(puppet, body) == (None, None)

    def test_update_marks_contact_payload_dirty(self, puppet):
        async def body(p):
            p.mock_contact("contact_1", "Alice")
            before = await p.contact_payload("contact_1")
            await p.set_contact_alias("contact_1", "Ally")
            return before, await p.contact_payload("contact_1")

        before, after = run_started(puppet, body)
        assert before.alias is None
        assert after.alias == "Ally"

    def test_query_unknown_contact(self, puppet):
        async def body(p):
            with pytest.raises(NotFoundError):
                await p.contact_alias("ghost")

        run_started(puppet, body)

    def test_extra_arguments_rejected(self, puppet):
        async def body(p):
            p.mock_contact("contact_1", "Alice")
            with pytest.raises(TypeError):
                await p.contact_alias("contact_1", "a", "b")

        run_started(puppet, body)


class TestContactAvatar:
    """Test contact_avatar / get_contact_avatar / set_contact_avatar."""

    def test_placeholder_until_set(self, puppet):
        """A known contact without an avatar yields the placeholder image."""

        async def body(p):
            return await p.contact_avatar("logined_user_id")

        avatar = run_started(puppet, body)
        assert isinstance(avatar, FileBox)
        assert avatar.mime_type == "image/png"
        assert avatar.size > 0

    def test_set_own_avatar(self, puppet):
        """The logged-in user can replace their own avatar."""
        image = FileBox(name="me.png", data=b"\x89PNG", mime_type="image/png")

        async def body(p):
            result = await p.contact_avatar("logined_user_id", image)
            payload = await p.contact_payload("logined_user_id")
            return result, payload, await p.get_contact_avatar("logined_user_id")

        result, payload, avatar = run_started(puppet, body)
        assert result is None
        assert payload.avatar == "me.png"
        assert avatar == image

    def test_set_avatar_for_others_denied(self, puppet):
        image = FileBox(name="them.png", data=b"\x89PNG", mime_type="image/png")

        async def body(p):
            p.mock_contact("contact_1", "Alice")
            with pytest.raises(PermissionDeniedError) as exc_info:
                await p.set_contact_avatar("contact_1", image)
            return exc_info.value

        error = run_started(puppet, body)
        assert error.target_id == "contact_1"
        assert error.recoverable is False


class TestUpdateFailures:
    """Updates keep the payload cache honest when something goes wrong."""

    def test_raising_subscriber_does_not_fail_update(self, puppet):
        """A broken room-topic handler neither fails the call nor hides the event."""
        later = []

        def broken(*_):
            raise RuntimeError("subscriber bug")

        puppet.on(PuppetEventName.ROOM_TOPIC, broken)
        puppet.on(PuppetEventName.ROOM_TOPIC, lambda *args: later.append(args))

        async def body(p):
            p.mock_room("r1", "old", [])
            await p.room_payload("r1")
            await p.room_topic("r1", "new")
            return await p.room_topic("r1"), await p.room_payload("r1")

        topic, payload = run_started(puppet, body)
        assert topic == "new"
        assert payload.topic == "new"
        assert later == [("r1", "new", "old", "logined_user_id")]

    def test_backend_failure_after_write_still_marks_dirty(self, mock_options):
        """A partially applied update never leaves a stale cached payload."""

        class FlakyTopicPuppet(PuppetMock):
            async def _set_room_topic(self, room_id, topic):
                await super()._set_room_topic(room_id, topic)
                raise BackendFailureError("ack lost", operation="room_topic")

        puppet = FlakyTopicPuppet(mock_options)

        async def body(p):
            p.mock_room("r1", "old", [])
            await p.room_payload("r1")
            with pytest.raises(BackendFailureError):
                await p.room_topic("r1", "new")
            return await p.room_payload("r1")

        assert run_started(puppet, body).topic == "new"

    def test_failed_alias_update_marks_contact_dirty(self, mock_options):
        class FlakyAliasPuppet(PuppetMock):
            async def _set_contact_alias(self, contact_id, alias):
                await super()._set_contact_alias(contact_id, alias)
                raise BackendFailureError("ack lost", operation="contact_alias")

        puppet = FlakyAliasPuppet(mock_options)

        async def body(p):
            p.mock_contact("contact_1", "Alice")
            await p.contact_payload("contact_1")
            with pytest.raises(BackendFailureError):
                await p.contact_alias("contact_1", "Ally")
            return await p.contact_payload("contact_1")

        assert run_started(puppet, body).alias == "Ally"
