"""
In-memory mock puppet backend.

PuppetMock keeps every entity as a raw dict in process memory, so whatever
it is told can be read back: ``room_topic(id, "T")`` followed by
``room_topic(id)`` returns ``"T"``. Unknown ids raise NotFoundError. The
``mock_*`` helpers play the part of the remote side, storing inbound
records and emitting the matching events.

Placeholder data (always succeeding for known ids):
    * ``room_qrcode`` returns ``"<room_id> mock qrcode"``
    * avatars that were never set return a small placeholder image
    * ``message_file`` on a message without an attachment returns a
      placeholder text file

backend_options understood:
    user_id: identity logged in by start() (default "logined_user_id")
    message_interval_seconds: period of the pretend inbound message,
        None or 0 disables it (default 3.0)
"""

import asyncio
import contextlib
import itertools
from typing import Any, Optional

from ..config.defaults import PuppetOptions
from ..errors import (
    MalformedPayloadError,
    NotFoundError,
    PermissionDeniedError,
    UnsupportedError,
)
from ..utils.time import to_epoch_ms
from .base import CacheFactory, Puppet
from .models import (
    ContactGender,
    ContactPayload,
    ContactType,
    EntityKind,
    FileBox,
    FriendshipPayload,
    FriendshipType,
    MessagePayload,
    MessageType,
    PuppetEventName,
    Receiver,
    RoomMemberPayload,
    RoomPayload,
)

MOCK_MESSAGE_ID = "mockid"
DEFAULT_USER_ID = "logined_user_id"
DEFAULT_MESSAGE_INTERVAL_SECONDS = 3.0

PLACEHOLDER_AVATAR_BASE64 = (
    "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR42mNkYPhfDwAChwGA60e6kgAAAABJRU5ErkJggg=="
)
PLACEHOLDER_FILE_BASE64 = "cRH9qeL3XyVnaXJkppBuH20tf5JlcG9uFX1lL2IvdHRRRS9kMMQxOPLKNYIzQQ=="


def _require_fields(kind: EntityKind, raw_payload: Any, fields: tuple[str, ...]) -> None:
    if not isinstance(raw_payload, dict):
        raise MalformedPayloadError(
            f"Raw {kind.value} payload must be a mapping",
            entity_kind=kind.value,
            raw_payload=raw_payload,
            missing_fields=list(fields)
        )
    missing = [name for name in fields if raw_payload.get(name) in (None, "")]
    if missing:
        raise MalformedPayloadError(
            f"Raw {kind.value} payload missing {', '.join(missing)}",
            entity_kind=kind.value,
            raw_payload=raw_payload,
            missing_fields=missing
        )


def _enum_value(kind: EntityKind, enum_cls: Any, raw_payload: dict, key: str, default: Any) -> Any:
    value = raw_payload.get(key)
    if value is None:
        return default
    try:
        return enum_cls(value)
    except ValueError as e:
        raise MalformedPayloadError(
            f"Raw {kind.value} payload has invalid {key}: {value!r}",
            entity_kind=kind.value,
            raw_payload=raw_payload
        ) from e


class PuppetMock(Puppet):
    """Mock backend keeping all entities in memory."""

    default_watchdog_timeout_seconds = 30

    def __init__(
        self,
        options: Optional[PuppetOptions] = None,
        cache_factory: Optional[CacheFactory] = None
    ) -> None:
        super().__init__(options, cache_factory)

        backend_options = self.options.backend_options
        self.user_id: str = backend_options.get("user_id", DEFAULT_USER_ID)
        self.message_interval_seconds: Optional[float] = backend_options.get(
            "message_interval_seconds", DEFAULT_MESSAGE_INTERVAL_SECONDS
        )

        self.contacts: dict[str, dict[str, Any]] = {}
        self.friendships: dict[str, dict[str, Any]] = {}
        self.messages: dict[str, dict[str, Any]] = {}
        self.rooms: dict[str, dict[str, Any]] = {}
        self.files: dict[str, FileBox] = {}

        self._ids = itertools.count(1)
        self._pretend_task: Optional[asyncio.Task] = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def _start_backend(self) -> str:
        self.logger.info("Mock backend starting", user_id=self.user_id)

        self.contacts.setdefault(self.user_id, {
            "id": self.user_id,
            "name": "mock name",
            "type": ContactType.PERSONAL.value,
        })
        self.messages[MOCK_MESSAGE_ID] = {
            "id": MOCK_MESSAGE_ID,
            "type": MessageType.TEXT.value,
            "text": "mock text",
            "timestamp": to_epoch_ms(),
            "from": "xxx",
            "to": self.user_id,
        }

        if self.message_interval_seconds:
            self._pretend_task = asyncio.ensure_future(self._pretend_messages())

        return self.user_id

    async def _stop_backend(self) -> None:
        self.logger.info("Mock backend stopping")

        task, self._pretend_task = self._pretend_task, None
        if task is not None:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

    async def _pretend_messages(self) -> None:
        while True:
            await asyncio.sleep(self.message_interval_seconds)
            self.logger.debug("Pretending a new message was received", message_id=MOCK_MESSAGE_ID)
            self.emit(PuppetEventName.MESSAGE, MOCK_MESSAGE_ID)

    async def ding(self, data: Optional[str] = None) -> None:
        self.logger.debug("ding()", data=data)
        self.emit(PuppetEventName.DONG, data)

    # ------------------------------------------------------------------
    # Remote side simulation
    # ------------------------------------------------------------------

    def mock_contact(self, contact_id: str, name: str, **fields: Any) -> None:
        """Make a contact known to the backend."""
        self.contacts[contact_id] = {"id": contact_id, "name": name, **fields}
        self.contact_payload_dirty(contact_id)

    def mock_room(self, room_id: str, topic: str, member_ids: list[str],
                  owner_id: Optional[str] = None) -> None:
        """Make a room known to the backend."""
        self.rooms[room_id] = {
            "id": room_id,
            "topic": topic,
            "owner_id": owner_id,
            "member_ids": list(member_ids),
            "announce": "",
            "aliases": {},
        }
        self.room_payload_dirty(room_id)

    def mock_inbound_message(self, from_id: str, text: str,
                             room_id: Optional[str] = None) -> str:
        """Store a received text message and announce it."""
        message_id = self._next_id("msg")
        self.messages[message_id] = {
            "id": message_id,
            "type": MessageType.TEXT.value,
            "text": text,
            "timestamp": to_epoch_ms(),
            "from": from_id,
            "to": None if room_id else self.user_id,
            "room": room_id,
        }
        self.emit(PuppetEventName.MESSAGE, message_id)
        return message_id

    def mock_friendship_request(self, contact_id: str, hello: str) -> str:
        """Store a received friend request and announce it."""
        friendship_id = self._next_id("friendship")
        self.friendships[friendship_id] = {
            "id": friendship_id,
            "contact_id": contact_id,
            "type": FriendshipType.RECEIVE.value,
            "hello": hello,
            "ticket": f"ticket-{friendship_id}",
        }
        self.contacts.setdefault(contact_id, {"id": contact_id, "name": contact_id})
        self.emit(PuppetEventName.FRIENDSHIP, friendship_id)
        return friendship_id

    def _next_id(self, prefix: str) -> str:
        return f"mock_{prefix}_{next(self._ids)}"

    def _lookup(self, kind: EntityKind, store: dict[str, Any], entity_id: str) -> Any:
        if entity_id not in store:
            raise NotFoundError(
                f"Unknown {kind.value} id: {entity_id}",
                entity_kind=kind.value,
                entity_id=entity_id
            )
        return store[entity_id]

    def _require_login(self, operation: str) -> str:
        identity = self.self_id()
        self.logger.debug(f"{operation}()", identity=identity)
        return identity

    def _check_receiver(self, receiver: Receiver) -> None:
        if receiver.room_id:
            self._lookup(EntityKind.ROOM, self.rooms, receiver.room_id)
        if receiver.contact_id:
            self._lookup(EntityKind.CONTACT, self.contacts, receiver.contact_id)

    def _store_outbound(self, receiver: Receiver, message_type: MessageType,
                        text: Optional[str] = None,
                        filename: Optional[str] = None) -> str:
        message_id = self._next_id("msg")
        self.messages[message_id] = {
            "id": message_id,
            "type": message_type.value,
            "text": text,
            "filename": filename,
            "timestamp": to_epoch_ms(),
            "from": self.self_id(),
            "to": receiver.contact_id,
            "room": receiver.room_id,
        }
        return message_id

    # ------------------------------------------------------------------
    # Contact
    # ------------------------------------------------------------------

    async def contact_raw_payload(self, contact_id: str) -> dict[str, Any]:
        self.logger.debug("contact_raw_payload()", contact_id=contact_id)
        return dict(self._lookup(EntityKind.CONTACT, self.contacts, contact_id))

    def contact_raw_payload_parser(self, raw_payload: Any) -> ContactPayload:
        _require_fields(EntityKind.CONTACT, raw_payload, ("id",))
        return ContactPayload(
            id=raw_payload["id"],
            gender=_enum_value(EntityKind.CONTACT, ContactGender, raw_payload,
                               "gender", ContactGender.UNKNOWN),
            type=_enum_value(EntityKind.CONTACT, ContactType, raw_payload,
                             "type", ContactType.UNKNOWN),
            name=raw_payload.get("name") or "",
            alias=raw_payload.get("alias"),
            avatar=raw_payload.get("avatar"),
            city=raw_payload.get("city"),
            province=raw_payload.get("province"),
            signature=raw_payload.get("signature"),
            friend=raw_payload.get("friend"),
        )

    async def contact_list(self) -> list[str]:
        return list(self.contacts)

    async def contact_qrcode(self, contact_id: str) -> str:
        if contact_id != self.self_id():
            raise PermissionDeniedError(
                "can not get qrcode for others",
                operation="contact_qrcode",
                target_id=contact_id
            )
        raise UnsupportedError("contact_qrcode is not supported", operation="contact_qrcode")

    async def _get_contact_alias(self, contact_id: str) -> Optional[str]:
        return self._lookup(EntityKind.CONTACT, self.contacts, contact_id).get("alias")

    async def _set_contact_alias(self, contact_id: str, alias: Optional[str]) -> None:
        self._require_login("contact_alias")
        self._lookup(EntityKind.CONTACT, self.contacts, contact_id)["alias"] = alias

    async def _get_contact_avatar(self, contact_id: str) -> FileBox:
        self._lookup(EntityKind.CONTACT, self.contacts, contact_id)
        key = f"avatar:{contact_id}"
        if key in self.files:
            return self.files[key]
        return FileBox.from_base64(PLACEHOLDER_AVATAR_BASE64, "mock-avatar.png", "image/png")

    async def _set_contact_avatar(self, contact_id: str, file: FileBox) -> None:
        identity = self._require_login("contact_avatar")
        if contact_id != identity:
            raise PermissionDeniedError(
                "can not set avatar for others",
                operation="contact_avatar",
                target_id=contact_id
            )
        self._lookup(EntityKind.CONTACT, self.contacts, contact_id)["avatar"] = file.name
        self.files[f"avatar:{contact_id}"] = file

    # ------------------------------------------------------------------
    # Message
    # ------------------------------------------------------------------

    async def message_raw_payload(self, message_id: str) -> dict[str, Any]:
        self.logger.debug("message_raw_payload()", message_id=message_id)
        return dict(self._lookup(EntityKind.MESSAGE, self.messages, message_id))

    def message_raw_payload_parser(self, raw_payload: Any) -> MessagePayload:
        _require_fields(EntityKind.MESSAGE, raw_payload, ("id", "type", "timestamp"))
        if not raw_payload.get("to") and not raw_payload.get("room"):
            raise MalformedPayloadError(
                "Raw message payload has neither a receiver nor a room",
                entity_kind=EntityKind.MESSAGE.value,
                raw_payload=raw_payload,
                missing_fields=["to", "room"]
            )
        return MessagePayload(
            id=raw_payload["id"],
            timestamp=int(raw_payload["timestamp"]),
            type=_enum_value(EntityKind.MESSAGE, MessageType, raw_payload,
                             "type", MessageType.UNKNOWN),
            from_id=raw_payload.get("from"),
            to_id=raw_payload.get("to"),
            room_id=raw_payload.get("room"),
            text=raw_payload.get("text"),
            filename=raw_payload.get("filename"),
            mention_ids=tuple(raw_payload.get("mentions") or ()),
        )

    async def message_list(self) -> list[str]:
        return list(self.messages)

    async def message_file(self, message_id: str) -> FileBox:
        self._lookup(EntityKind.MESSAGE, self.messages, message_id)
        if message_id in self.files:
            return self.files[message_id]
        return FileBox.from_base64(PLACEHOLDER_FILE_BASE64, f"mock-file{message_id}.txt", "text/plain")

    async def message_send_text(self, receiver: Receiver, text: str) -> None:
        self._require_login("message_send_text")
        self._check_receiver(receiver)
        self._store_outbound(receiver, MessageType.TEXT, text=text)

    async def message_send_file(self, receiver: Receiver, file: FileBox) -> None:
        self._require_login("message_send_file")
        self._check_receiver(receiver)
        message_type = MessageType.IMAGE if file.mime_type.startswith("image/") else MessageType.ATTACHMENT
        message_id = self._store_outbound(receiver, message_type, filename=file.name)
        self.files[message_id] = file

    async def message_send_contact(self, receiver: Receiver, contact_id: str) -> None:
        self._require_login("message_send_contact")
        self._check_receiver(receiver)
        self._lookup(EntityKind.CONTACT, self.contacts, contact_id)
        self._store_outbound(receiver, MessageType.CONTACT, text=contact_id)

    async def message_forward(self, receiver: Receiver, message_id: str) -> None:
        self._require_login("message_forward")
        self._check_receiver(receiver)
        source = self._lookup(EntityKind.MESSAGE, self.messages, message_id)
        forwarded_id = self._store_outbound(
            receiver,
            MessageType(source["type"]),
            text=source.get("text"),
            filename=source.get("filename"),
        )
        if message_id in self.files:
            self.files[forwarded_id] = self.files[message_id]

    # ------------------------------------------------------------------
    # Room
    # ------------------------------------------------------------------

    async def room_raw_payload(self, room_id: str) -> dict[str, Any]:
        self.logger.debug("room_raw_payload()", room_id=room_id)
        raw = dict(self._lookup(EntityKind.ROOM, self.rooms, room_id))
        raw["member_ids"] = list(raw["member_ids"])
        return raw

    def room_raw_payload_parser(self, raw_payload: Any) -> RoomPayload:
        _require_fields(EntityKind.ROOM, raw_payload, ("id",))
        return RoomPayload(
            id=raw_payload["id"],
            topic=raw_payload.get("topic") or "",
            owner_id=raw_payload.get("owner_id"),
            member_ids=tuple(raw_payload.get("member_ids") or ()),
            admin_ids=tuple(raw_payload.get("admin_ids") or ()),
            avatar=raw_payload.get("avatar"),
        )

    async def room_list(self) -> list[str]:
        return list(self.rooms)

    async def room_create(self, contact_ids: list[str], topic: str) -> str:
        identity = self._require_login("room_create")
        for contact_id in contact_ids:
            self._lookup(EntityKind.CONTACT, self.contacts, contact_id)

        room_id = self._next_id("room")
        members = [identity] + [cid for cid in dict.fromkeys(contact_ids) if cid != identity]
        self.mock_room(room_id, topic, members, owner_id=identity)
        self.emit(PuppetEventName.ROOM_JOIN, room_id, members[1:], identity)
        return room_id

    async def room_add(self, room_id: str, contact_id: str) -> None:
        identity = self._require_login("room_add")
        room = self._lookup(EntityKind.ROOM, self.rooms, room_id)
        self._lookup(EntityKind.CONTACT, self.contacts, contact_id)

        if contact_id not in room["member_ids"]:
            room["member_ids"].append(contact_id)
            self.room_payload_dirty(room_id)
            self.emit(PuppetEventName.ROOM_JOIN, room_id, [contact_id], identity)

    async def room_del(self, room_id: str, contact_id: str) -> None:
        identity = self._require_login("room_del")
        room = self._lookup(EntityKind.ROOM, self.rooms, room_id)

        if room["owner_id"] != identity:
            raise PermissionDeniedError(
                "only the room owner can remove members",
                operation="room_del",
                target_id=room_id
            )
        if contact_id not in room["member_ids"]:
            raise NotFoundError(
                f"{contact_id} is not a member of {room_id}",
                entity_kind=EntityKind.ROOM_MEMBER.value,
                entity_id=contact_id
            )

        room["member_ids"].remove(contact_id)
        self.room_payload_dirty(room_id)
        self.room_member_payload_dirty(room_id, contact_id)
        self.emit(PuppetEventName.ROOM_LEAVE, room_id, [contact_id], identity)

    async def room_quit(self, room_id: str) -> None:
        identity = self._require_login("room_quit")
        room = self._lookup(EntityKind.ROOM, self.rooms, room_id)

        if identity in room["member_ids"]:
            room["member_ids"].remove(identity)
            self.room_payload_dirty(room_id)
            self.room_member_payload_dirty(room_id, identity)

    async def room_qrcode(self, room_id: str) -> str:
        self._lookup(EntityKind.ROOM, self.rooms, room_id)
        return f"{room_id} mock qrcode"

    async def room_avatar(self, room_id: str) -> FileBox:
        payload = await self.room_payload(room_id)
        if payload.avatar and payload.avatar in self.files:
            return self.files[payload.avatar]
        self.logger.warning("room_avatar() avatar not found, using the placeholder", room_id=room_id)
        return FileBox.from_base64(PLACEHOLDER_AVATAR_BASE64, "mock-room-avatar.png", "image/png")

    async def room_member_list(self, room_id: str) -> list[str]:
        return list(self._lookup(EntityKind.ROOM, self.rooms, room_id)["member_ids"])

    async def room_member_raw_payload(self, room_id: str, contact_id: str) -> dict[str, Any]:
        room = self._lookup(EntityKind.ROOM, self.rooms, room_id)
        if contact_id not in room["member_ids"]:
            raise NotFoundError(
                f"{contact_id} is not a member of {room_id}",
                entity_kind=EntityKind.ROOM_MEMBER.value,
                entity_id=contact_id
            )
        contact = self.contacts.get(contact_id, {})
        return {
            "id": contact_id,
            "room_alias": room["aliases"].get(contact_id),
            "name": contact.get("name"),
            "avatar": contact.get("avatar"),
        }

    def room_member_raw_payload_parser(self, raw_payload: Any) -> RoomMemberPayload:
        _require_fields(EntityKind.ROOM_MEMBER, raw_payload, ("id",))
        return RoomMemberPayload(
            id=raw_payload["id"],
            room_alias=raw_payload.get("room_alias"),
            name=raw_payload.get("name"),
            avatar=raw_payload.get("avatar"),
        )

    async def _get_room_topic(self, room_id: str) -> str:
        return self._lookup(EntityKind.ROOM, self.rooms, room_id)["topic"]

    async def _set_room_topic(self, room_id: str, topic: str) -> None:
        identity = self._require_login("room_topic")
        room = self._lookup(EntityKind.ROOM, self.rooms, room_id)
        old_topic, room["topic"] = room["topic"], topic
        self.emit(PuppetEventName.ROOM_TOPIC, room_id, topic, old_topic, identity)

    async def _get_room_announce(self, room_id: str) -> str:
        return self._lookup(EntityKind.ROOM, self.rooms, room_id)["announce"]

    async def _set_room_announce(self, room_id: str, text: str) -> None:
        self._require_login("room_announce")
        self._lookup(EntityKind.ROOM, self.rooms, room_id)["announce"] = text

    # ------------------------------------------------------------------
    # Friendship
    # ------------------------------------------------------------------

    async def friendship_raw_payload(self, friendship_id: str) -> dict[str, Any]:
        self.logger.debug("friendship_raw_payload()", friendship_id=friendship_id)
        return dict(self._lookup(EntityKind.FRIENDSHIP, self.friendships, friendship_id))

    def friendship_raw_payload_parser(self, raw_payload: Any) -> FriendshipPayload:
        _require_fields(EntityKind.FRIENDSHIP, raw_payload, ("id", "contact_id"))
        return FriendshipPayload(
            id=raw_payload["id"],
            contact_id=raw_payload["contact_id"],
            type=_enum_value(EntityKind.FRIENDSHIP, FriendshipType, raw_payload,
                             "type", FriendshipType.UNKNOWN),
            hello=raw_payload.get("hello"),
            ticket=raw_payload.get("ticket"),
        )

    async def friendship_list(self) -> list[str]:
        return list(self.friendships)

    async def friendship_verify(self, contact_id: str, hello: str) -> None:
        self._require_login("friendship_verify")
        friendship_id = self._next_id("friendship")
        self.friendships[friendship_id] = {
            "id": friendship_id,
            "contact_id": contact_id,
            "type": FriendshipType.VERIFY.value,
            "hello": hello,
        }

    async def friendship_accept(self, friendship_id: str) -> None:
        self._require_login("friendship_accept")
        friendship = self._lookup(EntityKind.FRIENDSHIP, self.friendships, friendship_id)

        if friendship["type"] != FriendshipType.RECEIVE.value:
            raise PermissionDeniedError(
                "only received friend requests can be accepted",
                operation="friendship_accept",
                target_id=friendship_id
            )

        friendship["type"] = FriendshipType.CONFIRM.value
        contact_id = friendship["contact_id"]
        self._lookup(EntityKind.CONTACT, self.contacts, contact_id)["friend"] = True
        self.friendship_payload_dirty(friendship_id)
        self.contact_payload_dirty(contact_id)
