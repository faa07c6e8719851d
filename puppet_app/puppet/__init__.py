"""
Puppet contract and backends.

A puppet drives one messaging session through its lifecycle and exposes
contact, room, message and friendship operations to the automation layer.
"""

from .base import Puppet
from .mock import PuppetMock
from .models import (
    ContactGender,
    ContactPayload,
    ContactType,
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
from .registry import available_backends, create_puppet, get_backend, register_backend

__all__ = [
    "Puppet",
    "PuppetMock",
    "ContactGender",
    "ContactPayload",
    "ContactType",
    "FileBox",
    "FriendshipPayload",
    "FriendshipType",
    "MessagePayload",
    "MessageType",
    "PuppetEventName",
    "Receiver",
    "RoomMemberPayload",
    "RoomPayload",
    "available_backends",
    "create_puppet",
    "get_backend",
    "register_backend",
]
