"""
Backend-agnostic puppet session contract.

A Puppet drives one messaging session through its lifecycle and exposes the
contact, room, message and friendship operations the automation layer uses.
Lifecycle bookkeeping (state machine, identity, watchdog) lives here once;
concrete backends implement the bring-up/teardown hooks and the per-entity
raw fetch, parse, list and mutation operations.

Dual-mode accessors (contact alias and avatar, room topic and announcement)
are single coroutines dispatched on positional arity:

    topic = await puppet.room_topic(room_id)       # query
    await puppet.room_topic(room_id, "new topic")  # mutation

The same contract is also spelled ``get_room_topic(room_id)`` /
``set_room_topic(room_id, topic)``; both spellings run through one
implementation, which delegates to the backend's ``_get_*``/``_set_*`` hooks.
"""

import asyncio
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Optional, TypeVar

import structlog

from ..cache.payload_cache import MemoryPayloadCache, PayloadCache
from ..config.defaults import (
    DEFAULT_WATCHDOG_TIMEOUT_SECONDS,
    PuppetOptions,
    get_default_options,
)
from ..errors import (
    AlreadyOnError,
    AlreadyStartingError,
    NotFoundError,
    NotLoggedInError,
)
from ..events.bus import Event, EventBus, Handler
from ..state.machine import StateMachine
from ..state.models import SessionState
from ..watchdog.supervisor import Watchdog, WatchdogFood
from .models import (
    WATCHDOG_FEEDING_EVENTS,
    ContactPayload,
    EntityKind,
    FileBox,
    FriendshipPayload,
    MessagePayload,
    PuppetEventName,
    Receiver,
    RoomMemberPayload,
    RoomPayload,
)

logger = structlog.get_logger(__name__)

P = TypeVar("P")

CacheFactory = Callable[[str, int], PayloadCache]


def _dual_mode_value(operation: str, values: tuple) -> Any:
    if len(values) > 1:
        raise TypeError(
            f"{operation}() takes an entity id and at most one value "
            f"({len(values) + 1} given)"
        )
    return values[0]


class Puppet(ABC):
    """Abstract puppet session shared by every backend."""

    # Backends override this to change the liveness timeout they expect
    default_watchdog_timeout_seconds: float = DEFAULT_WATCHDOG_TIMEOUT_SECONDS

    def __init__(
        self,
        options: Optional[PuppetOptions] = None,
        cache_factory: Optional[CacheFactory] = None
    ) -> None:
        self.options = options or get_default_options()
        self.name = self.options.name
        self.logger = logger.bind(puppet=self.name, backend=type(self).__name__)

        self.state = StateMachine(name=self.name)
        self.events = EventBus(name=self.name)
        self.id: Optional[str] = None

        # Resolved once; the supervisor reads it through this attribute only
        self.watchdog_timeout: float = (
            self.options.watchdog_timeout_seconds
            or self.default_watchdog_timeout_seconds
        )
        self.watchdog = Watchdog(self.watchdog_timeout, name=f"{self.name}.watchdog")
        self.watchdog.on_reset(self._on_watchdog_reset)

        factory = cache_factory or MemoryPayloadCache
        max_size = self.options.cache_max_size
        self.cache_contact_payload: PayloadCache = factory(f"{self.name}.contact", max_size)
        self.cache_friendship_payload: PayloadCache = factory(f"{self.name}.friendship", max_size)
        self.cache_message_payload: PayloadCache = factory(f"{self.name}.message", max_size)
        self.cache_room_payload: PayloadCache = factory(f"{self.name}.room", max_size)
        self.cache_room_member_payload: PayloadCache = factory(f"{self.name}.room_member", max_size)

        self.logger.info(
            "Puppet initialized",
            watchdog_timeout_seconds=self.watchdog_timeout,
            cache_max_size=max_size,
            endpoint=self.options.endpoint,
            token_set=bool(self.options.token)
        )

    def __repr__(self) -> str:
        return f"{type(self).__name__}<{self.name}>"

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def on(self, event_name: PuppetEventName, handler: Handler) -> None:
        """Subscribe a callable or coroutine function to an event."""
        self.events.on(event_name, handler)

    def off(self, event_name: PuppetEventName, subscriber: Any) -> None:
        self.events.off(event_name, subscriber)

    def subscribe(self, event_name: PuppetEventName, maxsize: int = 0) -> "asyncio.Queue[Event]":
        """Queue receiving every future emission of ``event_name``."""
        return self.events.subscribe(event_name, maxsize=maxsize)

    def emit(self, event_name: PuppetEventName, *args: Any) -> int:
        """
        Publish an event; inbound activity feeds the watchdog.

        Feeding only happens while the session is on or starting, so events
        that straggle in after teardown never re-arm the supervisor.
        """
        if event_name in WATCHDOG_FEEDING_EVENTS and self.state.current_state() in (
            SessionState.ON, SessionState.PENDING_ON
        ):
            self.watchdog.feed(WatchdogFood(kind=str(event_name)))
        return self.events.emit(event_name, *args)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """
        Bring the session up and log in.

        Raises:
            AlreadyOnError: The session is already on
            AlreadyStartingError: Another start() is in flight
        """
        self.logger.info("start()", state=self.state.current_state().value)

        current = self.state.current_state()
        if current is SessionState.PENDING_OFF:
            self.logger.info("start() waiting for an in-flight stop() to finish")
            await self.state.await_state(SessionState.OFF)
            current = self.state.current_state()

        if current is SessionState.ON:
            raise AlreadyOnError(
                "start() called on a puppet that is already on",
                context={"puppet": self.name}
            )
        if current is not SessionState.OFF:
            raise AlreadyStartingError(
                "start() called while another start() is in flight",
                context={"puppet": self.name, "state": current.value}
            )

        self.state.begin_transition(SessionState.ON, trigger="start")
        backend_started = False
        try:
            identity = await self._start_backend()
            backend_started = True
            self.login(identity)
        except BaseException as e:
            self.watchdog.sleep()
            if backend_started:
                await self._teardown_after_failed_start()
            self.id = None
            self.state.rollback_transition(trigger="start_failed")
            self.logger.error(
                "Backend bring-up failed, rolled back to off",
                error=str(e),
                error_type=type(e).__name__
            )
            raise

        self.watchdog.feed(WatchdogFood(kind="start"))
        self.state.complete_transition(SessionState.ON, trigger="start")
        self.emit(PuppetEventName.READY)

    async def _teardown_after_failed_start(self) -> None:
        # The bring-up error is the one the caller sees
        try:
            await self._stop_backend()
        except Exception as e:
            self.logger.error(
                "Backend teardown after failed start also failed",
                error=str(e),
                error_type=type(e).__name__
            )

    async def stop(self) -> None:
        """
        Tear the session down. Stopping a stopped session is not an error.

        A missed watchdog feed goes through this same path.
        """
        await self._stop(trigger="stop")

    async def _stop(self, trigger: str) -> None:
        self.logger.info("stop()", trigger=trigger, state=self.state.current_state().value)

        while True:
            current = self.state.current_state()
            if current.target is SessionState.OFF:
                if current is SessionState.PENDING_OFF:
                    self.logger.warning("stop() called while stopping, waiting for off")
                await self.state.await_state(SessionState.OFF)
                return
            if current is SessionState.PENDING_ON:
                self.logger.info("stop() waiting for an in-flight start() to settle")
                await self.state.await_settled()
                continue
            break

        self.state.begin_transition(SessionState.OFF, trigger=trigger)
        self.watchdog.sleep()
        try:
            await self._stop_backend()
        finally:
            if self.id is not None:
                self.logger.info("Identity cleared by teardown", identity=self.id)
            self.id = None
            self.state.complete_transition(SessionState.OFF, trigger=trigger)

    async def logout(self) -> None:
        """
        Log the current identity out without changing the on/off state.

        The logout event is emitted before the identity is cleared so
        subscribers can still read it.

        Raises:
            NotLoggedInError: No identity is logged in
        """
        self.logger.info("logout()", identity=self.id)

        if not self.id:
            raise NotLoggedInError(
                "logout() called before login",
                operation="logout",
                context={"puppet": self.name}
            )

        identity = self.id
        await self._logout_backend(identity)
        self.emit(PuppetEventName.LOGOUT, identity)
        self.id = None

    def login(self, identity: str) -> None:
        """Record a logged-in identity and announce it."""
        if not identity:
            raise ValueError("login() requires a non-empty identity")
        if self.id is not None:
            raise AlreadyOnError(
                f"login() called while logged in as {self.id}",
                context={"puppet": self.name, "identity": identity}
            )

        self.logger.info("login()", identity=identity)
        self.id = identity
        self.emit(PuppetEventName.LOGIN, identity)

    def self_id(self) -> str:
        """Identity of the logged-in user."""
        if not self.id:
            raise NotLoggedInError(
                "Puppet is not logged in",
                operation="self_id",
                context={"puppet": self.name}
            )
        return self.id

    def logon_off(self) -> bool:
        """True while an identity is logged in."""
        return bool(self.id)

    async def _on_watchdog_reset(self, food: WatchdogFood) -> None:
        reason = f"watchdog timeout after {food.kind}"
        self.logger.warning("Watchdog reset, stopping session", reason=reason)
        self.emit(PuppetEventName.RESET, reason)
        try:
            await self._stop(trigger="watchdog_reset")
        except Exception as e:
            self.logger.error(
                "Stop after watchdog reset failed",
                error=str(e),
                error_type=type(e).__name__
            )
            self.emit(PuppetEventName.ERROR, e)

    @abstractmethod
    async def _start_backend(self) -> str:
        """Backend bring-up; returns the logged-in identity."""

    @abstractmethod
    async def _stop_backend(self) -> None:
        """Backend teardown; nothing may mutate session state afterwards."""

    async def _logout_backend(self, identity: str) -> None:
        """Backend logout work; the default has none."""

    @abstractmethod
    async def ding(self, data: Optional[str] = None) -> None:
        """Liveness probe; the backend answers with a ``dong`` event."""

    # ------------------------------------------------------------------
    # Payload cache glue
    # ------------------------------------------------------------------

    async def _load_payload(
        self,
        kind: EntityKind,
        cache: PayloadCache,
        cache_key: str,
        fetch: Callable[[], Awaitable[Any]],
        parse: Callable[[Any], P]
    ) -> P:
        if not cache_key:
            raise NotFoundError(
                f"Empty {kind.value} id",
                entity_kind=kind.value,
                entity_id=cache_key
            )

        if cache.has(cache_key):
            cached = cache.get(cache_key)
            if cached is not None:
                return cached  # type: ignore[no-any-return]

        raw_payload = await fetch()
        payload = parse(raw_payload)
        cache.set(cache_key, payload)
        return payload

    async def contact_payload(self, contact_id: str) -> ContactPayload:
        return await self._load_payload(
            EntityKind.CONTACT,
            self.cache_contact_payload,
            contact_id,
            lambda: self.contact_raw_payload(contact_id),
            self.contact_raw_payload_parser,
        )

    async def friendship_payload(self, friendship_id: str) -> FriendshipPayload:
        return await self._load_payload(
            EntityKind.FRIENDSHIP,
            self.cache_friendship_payload,
            friendship_id,
            lambda: self.friendship_raw_payload(friendship_id),
            self.friendship_raw_payload_parser,
        )

    async def message_payload(self, message_id: str) -> MessagePayload:
        return await self._load_payload(
            EntityKind.MESSAGE,
            self.cache_message_payload,
            message_id,
            lambda: self.message_raw_payload(message_id),
            self.message_raw_payload_parser,
        )

    async def room_payload(self, room_id: str) -> RoomPayload:
        return await self._load_payload(
            EntityKind.ROOM,
            self.cache_room_payload,
            room_id,
            lambda: self.room_raw_payload(room_id),
            self.room_raw_payload_parser,
        )

    async def room_member_payload(self, room_id: str, contact_id: str) -> RoomMemberPayload:
        return await self._load_payload(
            EntityKind.ROOM_MEMBER,
            self.cache_room_member_payload,
            self._room_member_key(room_id, contact_id),
            lambda: self.room_member_raw_payload(room_id, contact_id),
            self.room_member_raw_payload_parser,
        )

    def contact_payload_dirty(self, contact_id: str) -> None:
        self.cache_contact_payload.delete(contact_id)

    def friendship_payload_dirty(self, friendship_id: str) -> None:
        self.cache_friendship_payload.delete(friendship_id)

    def message_payload_dirty(self, message_id: str) -> None:
        self.cache_message_payload.delete(message_id)

    def room_payload_dirty(self, room_id: str) -> None:
        self.cache_room_payload.delete(room_id)

    def room_member_payload_dirty(self, room_id: str, contact_id: str) -> None:
        self.cache_room_member_payload.delete(self._room_member_key(room_id, contact_id))

    @staticmethod
    def _room_member_key(room_id: str, contact_id: str) -> str:
        if not room_id or not contact_id:
            return ""
        return f"{room_id}:{contact_id}"

    # ------------------------------------------------------------------
    # Dual-mode accessors
    # ------------------------------------------------------------------

    async def contact_alias(self, contact_id: str, *alias: Optional[str]) -> Optional[str]:
        """
        Query or set a contact alias.

        ``contact_alias(id)`` returns the alias; ``contact_alias(id, alias)``
        sets it and returns None. Passing ``None`` as the alias clears it.
        """
        if not alias:
            self.logger.debug("contact_alias() query", contact_id=contact_id)
            return await self._get_contact_alias(contact_id)

        value = _dual_mode_value("contact_alias", alias)
        self.logger.debug("contact_alias() update", contact_id=contact_id, alias=value)
        try:
            await self._set_contact_alias(contact_id, value)
        finally:
            self.contact_payload_dirty(contact_id)
        return None

    async def get_contact_alias(self, contact_id: str) -> Optional[str]:
        return await self.contact_alias(contact_id)

    async def set_contact_alias(self, contact_id: str, alias: Optional[str]) -> None:
        await self.contact_alias(contact_id, alias)

    async def contact_avatar(self, contact_id: str, *file: FileBox) -> Optional[FileBox]:
        """Query (``contact_avatar(id)``) or set (``contact_avatar(id, file)``) an avatar."""
        if not file:
            self.logger.debug("contact_avatar() query", contact_id=contact_id)
            return await self._get_contact_avatar(contact_id)

        value = _dual_mode_value("contact_avatar", file)
        self.logger.debug("contact_avatar() update", contact_id=contact_id, file=value.name)
        try:
            await self._set_contact_avatar(contact_id, value)
        finally:
            self.contact_payload_dirty(contact_id)
        return None

    async def get_contact_avatar(self, contact_id: str) -> FileBox:
        return await self.contact_avatar(contact_id)  # type: ignore[return-value]

    async def set_contact_avatar(self, contact_id: str, file: FileBox) -> None:
        await self.contact_avatar(contact_id, file)

    async def room_topic(self, room_id: str, *topic: str) -> Optional[str]:
        """Query (``room_topic(id)``) or set (``room_topic(id, topic)``) a room topic."""
        if not topic:
            self.logger.debug("room_topic() query", room_id=room_id)
            return await self._get_room_topic(room_id)

        value = _dual_mode_value("room_topic", topic)
        self.logger.debug("room_topic() update", room_id=room_id, topic=value)
        try:
            await self._set_room_topic(room_id, value)
        finally:
            self.room_payload_dirty(room_id)
        return None

    async def get_room_topic(self, room_id: str) -> str:
        return await self.room_topic(room_id)  # type: ignore[return-value]

    async def set_room_topic(self, room_id: str, topic: str) -> None:
        await self.room_topic(room_id, topic)

    async def room_announce(self, room_id: str, *text: str) -> Optional[str]:
        """Query (``room_announce(id)``) or set (``room_announce(id, text)``) an announcement."""
        if not text:
            self.logger.debug("room_announce() query", room_id=room_id)
            return await self._get_room_announce(room_id)

        value = _dual_mode_value("room_announce", text)
        self.logger.debug("room_announce() update", room_id=room_id, text=value)
        try:
            await self._set_room_announce(room_id, value)
        finally:
            self.room_payload_dirty(room_id)
        return None

    async def get_room_announce(self, room_id: str) -> str:
        return await self.room_announce(room_id)  # type: ignore[return-value]

    async def set_room_announce(self, room_id: str, text: str) -> None:
        await self.room_announce(room_id, text)

    # ------------------------------------------------------------------
    # Contact
    # ------------------------------------------------------------------

    @abstractmethod
    async def contact_raw_payload(self, contact_id: str) -> Any:
        """Backend-native contact record; NotFoundError for unknown ids."""

    @abstractmethod
    def contact_raw_payload_parser(self, raw_payload: Any) -> ContactPayload:
        """Normalize a raw contact; MalformedPayloadError on schema violation."""

    @abstractmethod
    async def contact_list(self) -> list[str]: ...

    @abstractmethod
    async def contact_qrcode(self, contact_id: str) -> str: ...

    @abstractmethod
    async def _get_contact_alias(self, contact_id: str) -> Optional[str]: ...

    @abstractmethod
    async def _set_contact_alias(self, contact_id: str, alias: Optional[str]) -> None: ...

    @abstractmethod
    async def _get_contact_avatar(self, contact_id: str) -> FileBox: ...

    @abstractmethod
    async def _set_contact_avatar(self, contact_id: str, file: FileBox) -> None: ...

    # ------------------------------------------------------------------
    # Message
    # ------------------------------------------------------------------

    @abstractmethod
    async def message_raw_payload(self, message_id: str) -> Any: ...

    @abstractmethod
    def message_raw_payload_parser(self, raw_payload: Any) -> MessagePayload: ...

    @abstractmethod
    async def message_list(self) -> list[str]: ...

    @abstractmethod
    async def message_file(self, message_id: str) -> FileBox: ...

    @abstractmethod
    async def message_send_text(self, receiver: Receiver, text: str) -> None: ...

    @abstractmethod
    async def message_send_file(self, receiver: Receiver, file: FileBox) -> None: ...

    @abstractmethod
    async def message_send_contact(self, receiver: Receiver, contact_id: str) -> None: ...

    @abstractmethod
    async def message_forward(self, receiver: Receiver, message_id: str) -> None: ...

    # ------------------------------------------------------------------
    # Room
    # ------------------------------------------------------------------

    @abstractmethod
    async def room_raw_payload(self, room_id: str) -> Any: ...

    @abstractmethod
    def room_raw_payload_parser(self, raw_payload: Any) -> RoomPayload: ...

    @abstractmethod
    async def room_list(self) -> list[str]: ...

    @abstractmethod
    async def room_create(self, contact_ids: list[str], topic: str) -> str:
        """Create a room and return its id."""

    @abstractmethod
    async def room_add(self, room_id: str, contact_id: str) -> None: ...

    @abstractmethod
    async def room_del(self, room_id: str, contact_id: str) -> None: ...

    @abstractmethod
    async def room_quit(self, room_id: str) -> None: ...

    @abstractmethod
    async def room_qrcode(self, room_id: str) -> str: ...

    @abstractmethod
    async def room_avatar(self, room_id: str) -> FileBox: ...

    @abstractmethod
    async def room_member_list(self, room_id: str) -> list[str]: ...

    @abstractmethod
    async def room_member_raw_payload(self, room_id: str, contact_id: str) -> Any: ...

    @abstractmethod
    def room_member_raw_payload_parser(self, raw_payload: Any) -> RoomMemberPayload: ...

    @abstractmethod
    async def _get_room_topic(self, room_id: str) -> str: ...

    @abstractmethod
    async def _set_room_topic(self, room_id: str, topic: str) -> None: ...

    @abstractmethod
    async def _get_room_announce(self, room_id: str) -> str: ...

    @abstractmethod
    async def _set_room_announce(self, room_id: str, text: str) -> None: ...

    # ------------------------------------------------------------------
    # Friendship
    # ------------------------------------------------------------------

    @abstractmethod
    async def friendship_raw_payload(self, friendship_id: str) -> Any: ...

    @abstractmethod
    def friendship_raw_payload_parser(self, raw_payload: Any) -> FriendshipPayload: ...

    @abstractmethod
    async def friendship_list(self) -> list[str]: ...

    @abstractmethod
    async def friendship_verify(self, contact_id: str, hello: str) -> None:
        """Send a friend request to a contact."""

    @abstractmethod
    async def friendship_accept(self, friendship_id: str) -> None:
        """Accept a received friend request."""
