"""
Normalized payload models shared by every puppet backend.

Raw payloads are backend-native and opaque to the contract; each backend
parses them into the frozen dataclasses below, which are what the payload
cache stores and the automation layer consumes.
"""

import base64
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


class PuppetEventName(str, Enum):
    """Events published by a puppet session."""
    DONG = "dong"
    ERROR = "error"
    FRIENDSHIP = "friendship"
    LOGIN = "login"
    LOGOUT = "logout"
    MESSAGE = "message"
    READY = "ready"
    RESET = "reset"
    ROOM_JOIN = "room-join"
    ROOM_LEAVE = "room-leave"
    ROOM_TOPIC = "room-topic"
    SCAN = "scan"

    def __str__(self) -> str:
        return self.value


# Inbound activity that proves the backend is alive
WATCHDOG_FEEDING_EVENTS = frozenset({
    PuppetEventName.DONG,
    PuppetEventName.FRIENDSHIP,
    PuppetEventName.LOGIN,
    PuppetEventName.MESSAGE,
    PuppetEventName.ROOM_JOIN,
    PuppetEventName.ROOM_LEAVE,
    PuppetEventName.ROOM_TOPIC,
    PuppetEventName.SCAN,
})


class EntityKind(str, Enum):
    """Entity kinds exposed by the contract."""
    CONTACT = "contact"
    FRIENDSHIP = "friendship"
    MESSAGE = "message"
    ROOM = "room"
    ROOM_MEMBER = "room_member"


class ContactGender(Enum):
    UNKNOWN = 0
    MALE = 1
    FEMALE = 2


class ContactType(Enum):
    UNKNOWN = 0
    PERSONAL = 1
    OFFICIAL = 2


class MessageType(Enum):
    UNKNOWN = 0
    ATTACHMENT = 1
    AUDIO = 2
    CONTACT = 3
    EMOTICON = 4
    IMAGE = 5
    TEXT = 6
    VIDEO = 7
    URL = 8


class FriendshipType(Enum):
    UNKNOWN = 0
    CONFIRM = 1
    RECEIVE = 2
    VERIFY = 3


@dataclass(frozen=True)
class ContactPayload:
    """Normalized contact."""
    id: str
    gender: ContactGender = ContactGender.UNKNOWN
    type: ContactType = ContactType.UNKNOWN
    name: str = ""
    alias: Optional[str] = None
    avatar: Optional[str] = None
    city: Optional[str] = None
    province: Optional[str] = None
    signature: Optional[str] = None
    friend: Optional[bool] = None


@dataclass(frozen=True)
class MessagePayload:
    """Normalized message; text for TEXT messages, filename for attachments."""
    id: str
    timestamp: int                                   # UTC epoch milliseconds
    type: MessageType
    from_id: Optional[str] = None
    to_id: Optional[str] = None
    room_id: Optional[str] = None
    text: Optional[str] = None
    filename: Optional[str] = None
    mention_ids: tuple[str, ...] = ()


@dataclass(frozen=True)
class RoomPayload:
    """Normalized room."""
    id: str
    topic: str
    owner_id: Optional[str] = None
    member_ids: tuple[str, ...] = ()
    admin_ids: tuple[str, ...] = ()
    avatar: Optional[str] = None


@dataclass(frozen=True)
class RoomMemberPayload:
    """Normalized membership of one contact in one room."""
    id: str
    room_alias: Optional[str] = None
    name: Optional[str] = None
    avatar: Optional[str] = None


@dataclass(frozen=True)
class FriendshipPayload:
    """Normalized friendship request or confirmation."""
    id: str
    contact_id: str
    type: FriendshipType = FriendshipType.UNKNOWN
    hello: Optional[str] = None
    ticket: Optional[str] = None


@dataclass(frozen=True)
class Receiver:
    """Destination of an outbound message: a contact, a room, or a contact within a room."""
    contact_id: Optional[str] = None
    room_id: Optional[str] = None

    def __post_init__(self) -> None:
        if not self.contact_id and not self.room_id:
            raise ValueError("Receiver needs a contact_id or a room_id")

    @property
    def target_id(self) -> str:
        """Conversation the message lands in."""
        return self.room_id or self.contact_id  # type: ignore[return-value]


@dataclass(frozen=True)
class FileBox:
    """Attachment handle; encoding beyond base64 belongs to the backend."""
    name: str
    data: bytes = field(repr=False)
    mime_type: str = "application/octet-stream"

    @classmethod
    def from_base64(cls, encoded: str, name: str,
                    mime_type: str = "application/octet-stream") -> "FileBox":
        return cls(name=name, data=base64.b64decode(encoded), mime_type=mime_type)

    def to_base64(self) -> str:
        return base64.b64encode(self.data).decode("ascii")

    @property
    def size(self) -> int:
        return len(self.data)
